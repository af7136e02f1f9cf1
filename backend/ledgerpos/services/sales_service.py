"""
Sale orchestrator - one POS sale as one all-or-nothing unit of work.

Sequence (SaleWorkflow states in brackets):
  [VALIDATING]          totals reconcile, products/batches exist, serial detail is sane
  [INVENTORY_RESERVED]  each line's batch decremented by a conditional UPDATE,
                        sale persisted, serialized units marked Sold, account resolved
  [LEDGER_POSTED]       revenue, tax, discount, payment-received facts posted
  [PAYMENT_RECORDED]    Payment row written
  [COMMITTED]           transaction committed; receipt and audit requested afterwards

Any failure before COMMITTED rolls back every write and leaves the workflow
ABORTED. Receipt and audit failures happen after commit and are swallowed.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Optional

from flask import current_app

from ..errors import (
    BatchNotFoundError,
    DuplicateSerialError,
    InsufficientStockError,
    InvalidTotalsError,
    ValidationError,
)
from ..extensions import db
from ..models import (
    Account,
    Company,
    EntityType,
    LedgerAccount,
    LedgerEntry,
    Payment,
    PaymentMethod,
    PaymentStatus,
    ReferenceType,
    SaleLine,
    SaleTransaction,
    TransactionType,
)
from . import account_service, audit_service, catalog_service, document_service, inventory_service, receipt_service
from .concurrency import run_in_unit_of_work
from .ledger_service import LedgerFact, post_double_entry
from ..validation import int_field, str_field, str_list_field

DISCOUNT_POLICIES = ("settlement", "revenue")


class WorkflowStateError(Exception):
    """Raised on an illegal SaleWorkflow transition (programming error)."""


class SaleState(str, enum.Enum):
    VALIDATING = "VALIDATING"
    INVENTORY_RESERVED = "INVENTORY_RESERVED"
    LEDGER_POSTED = "LEDGER_POSTED"
    PAYMENT_RECORDED = "PAYMENT_RECORDED"
    COMMITTED = "COMMITTED"
    ABORTED = "ABORTED"


class SaleWorkflow:
    """Linear state machine for one sale or return attempt."""

    TRANSITIONS = {
        SaleState.VALIDATING: SaleState.INVENTORY_RESERVED,
        SaleState.INVENTORY_RESERVED: SaleState.LEDGER_POSTED,
        SaleState.LEDGER_POSTED: SaleState.PAYMENT_RECORDED,
        SaleState.PAYMENT_RECORDED: SaleState.COMMITTED,
    }

    def __init__(self):
        self.state = SaleState.VALIDATING
        self.history = [SaleState.VALIDATING]
        self.aborted_at: SaleState | None = None
        self.error: Exception | None = None

    @property
    def is_terminal(self) -> bool:
        return self.state in (SaleState.COMMITTED, SaleState.ABORTED)

    def advance(self, new_state: SaleState) -> None:
        expected = self.TRANSITIONS.get(self.state)
        if expected != new_state:
            raise WorkflowStateError(f"Illegal transition {self.state.value} -> {SaleState(new_state).value}")
        self.state = new_state
        self.history.append(new_state)

    def abort(self, error: Exception | None = None) -> None:
        if self.state == SaleState.COMMITTED:
            raise WorkflowStateError("Cannot abort a committed transaction")
        if self.state == SaleState.ABORTED:
            return
        self.aborted_at = self.state
        self.error = error
        self.state = SaleState.ABORTED
        self.history.append(SaleState.ABORTED)


# =============================================================================
# REQUEST / RESULT
# =============================================================================

@dataclass
class SaleLineRequest:
    product_id: int
    batch_id: int
    quantity: int
    unit_price_cents: int
    serial_numbers: list[str] = field(default_factory=list)

    @property
    def line_total_cents(self) -> int:
        return self.quantity * self.unit_price_cents

    @classmethod
    def from_dict(cls, data: dict) -> "SaleLineRequest":
        return cls(
            product_id=int_field(data, "product_id", required=True),
            batch_id=int_field(data, "batch_id", required=True),
            quantity=int_field(data, "quantity", required=True),
            unit_price_cents=int_field(data, "unit_price_cents", required=True),
            serial_numbers=str_list_field(data, "serial_numbers"),
        )


@dataclass
class SaleRequest:
    company_id: int
    lines: list[SaleLineRequest]
    paid_amount_cents: int
    payment_method: str = PaymentMethod.CASH.value
    discount_cents: int = 0
    tax_cents: int = 0
    subtotal_cents: Optional[int] = None
    total_payable_cents: Optional[int] = None
    payment_reference: Optional[str] = None
    linked_entity_id: Optional[int] = None
    created_by: Optional[int] = None

    @classmethod
    def from_dict(cls, data: dict) -> "SaleRequest":
        lines = data.get("lines")
        if not isinstance(lines, list) or not lines:
            raise ValidationError("lines must be a non-empty list", details={"field": "lines"})
        return cls(
            company_id=int_field(data, "company_id", required=True),
            lines=[SaleLineRequest.from_dict(line or {}) for line in lines],
            paid_amount_cents=int_field(data, "paid_amount_cents", required=True),
            payment_method=str_field(data, "payment_method") or PaymentMethod.CASH.value,
            discount_cents=int_field(data, "discount_cents", 0),
            tax_cents=int_field(data, "tax_cents", 0),
            subtotal_cents=int_field(data, "subtotal_cents"),
            total_payable_cents=int_field(data, "total_payable_cents"),
            payment_reference=str_field(data, "payment_reference", max_len=128),
            linked_entity_id=int_field(data, "linked_entity_id"),
            created_by=int_field(data, "created_by"),
        )


@dataclass
class SaleResult:
    sale: SaleTransaction
    entries: list[LedgerEntry]
    payment: Payment
    account: Optional[Account]
    workflow: SaleWorkflow
    receipt_path: Optional[str] = None

    @property
    def state(self) -> SaleState:
        return self.workflow.state

    def to_dict(self) -> dict:
        return {
            "sale": self.sale.to_dict(include_lines=True),
            "ledger_entries": [e.to_dict() for e in self.entries],
            "payment": self.payment.to_dict(),
            "account_id": self.account.id if self.account is not None else None,
            "state": self.state.value,
            "receipt_path": self.receipt_path,
        }


# =============================================================================
# VALIDATION (no mutation)
# =============================================================================

def reconcile_totals(request: SaleRequest) -> tuple[int, int]:
    """
    Check caller-supplied totals; returns (subtotal_cents, total_payable_cents).

    subtotal = sum(quantity x unit price); total_payable = subtotal - discount + tax.
    """
    for name in ("discount_cents", "tax_cents", "paid_amount_cents"):
        if getattr(request, name) < 0:
            raise ValidationError(f"{name} must be >= 0", details={"field": name})

    subtotal = sum(line.line_total_cents for line in request.lines)
    if request.subtotal_cents is not None and request.subtotal_cents != subtotal:
        raise InvalidTotalsError(field="subtotal_cents", expected=subtotal, given=request.subtotal_cents)

    total = subtotal - request.discount_cents + request.tax_cents
    if request.total_payable_cents is not None and request.total_payable_cents != total:
        raise InvalidTotalsError(field="total_payable_cents", expected=total, given=request.total_payable_cents)
    if total < 0:
        raise InvalidTotalsError(field="discount_cents", expected=subtotal + request.tax_cents, given=request.discount_cents)
    return subtotal, total


def _validate_request_shape(request: SaleRequest) -> None:
    if not request.lines:
        raise ValidationError("Sale must have at least one line")
    try:
        PaymentMethod(request.payment_method)
    except ValueError as exc:
        raise ValidationError(
            f"Invalid payment method: {request.payment_method!r}",
            details={"payment_method": request.payment_method},
        ) from exc
    for idx, line in enumerate(request.lines):
        if line.quantity <= 0:
            raise ValidationError("quantity must be positive", details={"line": idx, "quantity": line.quantity})
        if line.unit_price_cents < 0:
            raise ValidationError("unit_price_cents must be >= 0", details={"line": idx})


def _validate_lines(request: SaleRequest) -> list[list[str]]:
    """Products and batches exist, stock looks sufficient, serials are sane. Returns serials per line."""
    serials_per_line = []
    seen_serials = set()
    for line in request.lines:
        product = catalog_service.get_product(request.company_id, line.product_id)
        batch = inventory_service.get_batch(request.company_id, line.batch_id)
        if batch is None or batch.product_id != product.id:
            raise BatchNotFoundError(product_id=line.product_id, batch_id=line.batch_id)
        # Advance check only; the conditional UPDATE re-checks at decrement time
        if batch.quantity < line.quantity:
            raise InsufficientStockError(
                product_id=line.product_id,
                batch_id=line.batch_id,
                requested=line.quantity,
                available=batch.quantity,
            )

        serials = inventory_service.validate_serials(product, line.quantity, line.serial_numbers)
        for serial in serials:
            if serial in seen_serials:
                raise DuplicateSerialError(serial)
            seen_serials.add(serial)
        serials_per_line.append(serials)
    return serials_per_line


def _discount_credit_account(recognition_account: LedgerAccount) -> LedgerAccount:
    policy = current_app.config.get("DISCOUNT_CREDIT_POLICY", "settlement")
    if policy not in DISCOUNT_POLICIES:
        raise ValidationError(f"Unknown DISCOUNT_CREDIT_POLICY: {policy!r}")
    if policy == "revenue":
        return LedgerAccount.SALES_REVENUE
    return recognition_account


# =============================================================================
# EXECUTE
# =============================================================================

def execute_sale(request: SaleRequest) -> SaleResult:
    """
    Run one sale as a single unit of work.

    Raises (nothing persisted in every case): ValidationError, InvalidTotalsError,
    ProductNotFoundError, BatchNotFoundError, InsufficientStockError,
    DuplicateSerialError, SerialCountMismatchError, EntityNotFoundError,
    UnbalancedEntryError / InvalidEntryError, RetryableError.
    """
    _validate_request_shape(request)
    subtotal, total = reconcile_totals(request)
    paid = request.paid_amount_cents
    is_credit_sale = paid < total
    change_given = max(0, paid - total)
    recognition_account = LedgerAccount.ACCOUNTS_RECEIVABLE if is_credit_sale else LedgerAccount.CASH_BANK
    discount_credit = _discount_credit_account(recognition_account)

    attempt = {}

    def _op() -> SaleResult:
        workflow = attempt["workflow"] = SaleWorkflow()
        company_id = request.company_id

        serials_per_line = _validate_lines(request)

        # Inventory
        for line in request.lines:
            inventory_service.reserve_and_decrement(company_id, line.product_id, line.batch_id, line.quantity)

        number, _ = document_service.next_document_number(company_id=company_id, document_type=document_service.SALE)

        account = None
        if request.linked_entity_id is not None:
            account = account_service.find_or_create_account(
                request.linked_entity_id, company_id, role=EntityType.CUSTOMER, created_by=request.created_by
            )

        sale = SaleTransaction(
            company_id=company_id,
            transaction_number=number,
            subtotal_cents=subtotal,
            discount_cents=request.discount_cents,
            tax_cents=request.tax_cents,
            total_payable_cents=total,
            paid_amount_cents=paid,
            change_given_cents=change_given,
            payment_method=request.payment_method,
            payment_reference=request.payment_reference,
            linked_entity_id=request.linked_entity_id,
            account_id=account.id if account is not None else None,
            created_by=request.created_by,
        )
        db.session.add(sale)
        db.session.flush()

        for line, serials in zip(request.lines, serials_per_line):
            db.session.add(
                SaleLine(
                    sale_id=sale.id,
                    product_id=line.product_id,
                    batch_id=line.batch_id,
                    quantity=line.quantity,
                    unit_price_cents=line.unit_price_cents,
                    line_total_cents=line.line_total_cents,
                    serial_numbers=serials or None,
                )
            )
            if serials:
                inventory_service.mark_units_sold(company_id, line.product_id, line.batch_id, serials, sale.id)
        db.session.flush()
        workflow.advance(SaleState.INVENTORY_RESERVED)

        # Ledger
        common = dict(
            transaction_id=number,
            company_id=company_id,
            reference_type=ReferenceType.POS_TRANSACTIONS,
            linked_entity_id=request.linked_entity_id,
            account_id=account.id if account is not None else None,
            created_by=request.created_by,
        )
        entries = list(
            post_double_entry(
                LedgerFact(
                    transaction_type=TransactionType.SALE,
                    debit_account=recognition_account,
                    debit_amount=subtotal,
                    credit_account=LedgerAccount.SALES_REVENUE,
                    credit_amount=subtotal,
                    description=f"Sale {number}",
                    **common,
                )
            )
        )
        payment_group = None if is_credit_sale else entries[0].entry_group_id

        if request.tax_cents > 0:
            entries.extend(
                post_double_entry(
                    LedgerFact(
                        transaction_type=TransactionType.TAX,
                        debit_account=recognition_account,
                        debit_amount=request.tax_cents,
                        credit_account=LedgerAccount.TAX_PAYABLE,
                        credit_amount=request.tax_cents,
                        description=f"Tax on sale {number}",
                        **common,
                    )
                )
            )

        if request.discount_cents > 0:
            entries.extend(
                post_double_entry(
                    LedgerFact(
                        transaction_type=TransactionType.DISCOUNT,
                        debit_account=LedgerAccount.DISCOUNT_EXPENSE,
                        debit_amount=request.discount_cents,
                        credit_account=discount_credit,
                        credit_amount=request.discount_cents,
                        description=f"Discount on sale {number}",
                        **common,
                    )
                )
            )

        if is_credit_sale and paid > 0:
            received = post_double_entry(
                LedgerFact(
                    transaction_type=TransactionType.PAYMENT,
                    debit_account=LedgerAccount.CASH_BANK,
                    debit_amount=paid,
                    credit_account=LedgerAccount.ACCOUNTS_RECEIVABLE,
                    credit_amount=paid,
                    description=f"Payment received on sale {number}",
                    **common,
                )
            )
            entries.extend(received)
            payment_group = received[0].entry_group_id
        workflow.advance(SaleState.LEDGER_POSTED)

        # Payment
        payment = Payment(
            company_id=company_id,
            sale_id=sale.id,
            payment_method=request.payment_method,
            amount_cents=paid,
            change_cents=change_given,
            status=(PaymentStatus.PENDING if is_credit_sale else PaymentStatus.COMPLETED).value,
            payment_reference=request.payment_reference,
            entry_group_id=payment_group,
            paid_by=request.linked_entity_id,
            created_by=request.created_by,
        )
        db.session.add(payment)
        db.session.flush()
        workflow.advance(SaleState.PAYMENT_RECORDED)

        return SaleResult(sale=sale, entries=entries, payment=payment, account=account, workflow=workflow)

    try:
        result = run_in_unit_of_work(_op, label="sale")
    except Exception as exc:
        workflow = attempt.get("workflow")
        state = workflow.state.value if workflow else SaleState.VALIDATING.value
        if workflow:
            workflow.abort(exc)
        current_app.logger.warning(
            "Sale aborted at %s for company %s: %s %s",
            state, request.company_id, type(exc).__name__, getattr(exc, "details", None),
        )
        raise

    result.workflow.advance(SaleState.COMMITTED)
    sale = result.sale
    current_app.logger.info(
        "Sale %s committed: company=%s total=%s paid=%s entries=%d",
        sale.transaction_number, sale.company_id, sale.total_payable_cents, sale.paid_amount_cents, len(result.entries),
    )

    result.receipt_path = receipt_service.request_receipt(
        "sale_receipt", lambda: sale_receipt_data(sale), document_number=sale.transaction_number
    )
    audit_service.notify(
        sale.company_id, "Create", "SaleTransaction", sale.id,
        actor_id=sale.created_by,
        payload={"transaction_number": sale.transaction_number, "total_payable_cents": sale.total_payable_cents},
    )
    return result


def sale_receipt_data(sale: SaleTransaction) -> dict:
    company = db.session.get(Company, sale.company_id)
    lines = []
    for line in sale.lines:
        data = line.to_dict()
        data["name"] = line.product.name
        data["sku"] = line.product.sku
        lines.append(data)
    data = sale.to_dict()
    data.update(
        {
            "document_number": sale.transaction_number,
            "company_name": company.name if company else "",
            "lines": lines,
            "balance_due_cents": max(0, sale.total_payable_cents - sale.paid_amount_cents),
        }
    )
    return data


# =============================================================================
# QUERIES
# =============================================================================

def get_sale(sale_id: int, company_id: int | None = None) -> SaleTransaction | None:
    sale = db.session.get(SaleTransaction, sale_id)
    if sale is None or (company_id is not None and sale.company_id != company_id):
        return None
    return sale


def list_sales(company_id: int, limit: int = 100) -> list[SaleTransaction]:
    limit = max(1, min(int(limit or 100), 500))
    return (
        db.session.query(SaleTransaction)
        .filter(SaleTransaction.company_id == company_id)
        .order_by(SaleTransaction.id.desc())
        .limit(limit)
        .all()
    )
