# Overview: Service-layer operations for payment; receivable settlements after a credit sale.

"""
Payment Processing Service

WHY: A credit or partial sale leaves an Accounts Receivable balance that the
customer settles later, possibly in several instalments.

DESIGN PRINCIPLES:
- Payments are separate from sales (many-to-one relationship)
- The open balance is derived from the ledger (AR debits - AR credits for
  the sale's transaction id), never from a stored counter
- A settlement can never exceed the open balance
- Each settlement is one balanced fact: debit Cash/Bank / credit Accounts Receivable
"""

from flask import current_app

from ..errors import OriginalTransactionNotFoundError, ValidationError
from ..extensions import db
from ..models import (
    LedgerAccount,
    Payment,
    PaymentMethod,
    PaymentStatus,
    ReferenceType,
    SaleTransaction,
    TransactionType,
)
from . import audit_service, balance_service
from .concurrency import lock_for_update, run_in_unit_of_work
from .ledger_service import LedgerFact, post_double_entry


def record_customer_payment(
    company_id: int,
    sale_id: int,
    amount_cents: int,
    payment_method: str = PaymentMethod.CASH.value,
    created_by: int | None = None,
    payment_reference: str | None = None,
) -> Payment:
    """
    Settle (part of) a sale's open receivable.

    Raises OriginalTransactionNotFoundError for an unknown sale and
    ValidationError for a non-positive amount or one above the open balance.
    """
    if amount_cents is None or amount_cents <= 0:
        raise ValidationError("amount_cents must be positive", details={"amount_cents": amount_cents})
    try:
        PaymentMethod(payment_method)
    except ValueError as exc:
        raise ValidationError(
            f"Invalid payment method: {payment_method!r}", details={"payment_method": payment_method}
        ) from exc

    def _op() -> Payment:
        sale = lock_for_update(
            db.session.query(SaleTransaction).filter(
                SaleTransaction.id == sale_id,
                SaleTransaction.company_id == company_id,
            )
        ).first()
        if sale is None:
            raise OriginalTransactionNotFoundError(sale_id)

        outstanding = balance_service.receivable_outstanding_cents(company_id, sale.transaction_number)
        if amount_cents > outstanding:
            raise ValidationError(
                "Payment exceeds the outstanding balance",
                details={"sale_id": sale_id, "outstanding_cents": outstanding, "amount_cents": amount_cents},
            )

        debit, _ = post_double_entry(
            LedgerFact(
                transaction_id=sale.transaction_number,
                company_id=company_id,
                transaction_type=TransactionType.PAYMENT,
                debit_account=LedgerAccount.CASH_BANK,
                debit_amount=amount_cents,
                credit_account=LedgerAccount.ACCOUNTS_RECEIVABLE,
                credit_amount=amount_cents,
                description=f"Payment received on sale {sale.transaction_number}",
                reference_type=ReferenceType.PAYMENTS,
                linked_entity_id=sale.linked_entity_id,
                account_id=sale.account_id,
                created_by=created_by,
            )
        )

        payment = Payment(
            company_id=company_id,
            sale_id=sale.id,
            payment_method=payment_method,
            amount_cents=amount_cents,
            change_cents=0,
            status=PaymentStatus.COMPLETED.value,
            payment_reference=payment_reference,
            entry_group_id=debit.entry_group_id,
            paid_by=sale.linked_entity_id,
            created_by=created_by,
        )
        db.session.add(payment)
        db.session.flush()
        return payment

    payment = run_in_unit_of_work(_op, label="customer payment")
    current_app.logger.info(
        "Payment %s recorded: sale=%s amount=%s", payment.id, sale_id, amount_cents
    )
    audit_service.notify(
        company_id, "Create", "Payment", payment.id,
        actor_id=created_by,
        payload={"sale_id": sale_id, "amount_cents": amount_cents},
    )
    return payment


def list_payments(company_id: int, sale_id: int | None = None) -> list[Payment]:
    query = db.session.query(Payment).filter(Payment.company_id == company_id)
    if sale_id is not None:
        query = query.filter(Payment.sale_id == sale_id)
    return query.order_by(Payment.id.asc()).all()
