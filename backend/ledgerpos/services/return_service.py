"""
Return orchestrator - the mirror of a sale, also one all-or-nothing unit of work.

DESIGN PRINCIPLES:
- A return references a committed SaleTransaction by id; nothing happens
  until that sale is found (OriginalTransactionNotFoundError otherwise)
- Per (product, batch), returned quantity may never exceed quantity sold
  minus quantity already returned
- Serialized units must currently be Sold on the original sale
- Refund value defaults to quantity x ORIGINAL unit price and may not exceed it
- Ledger: debit Sales Return / credit Cash/Bank (cash refund) or Accounts
  Payable (credit note); a cash refund also writes a negative Payment

All validation runs before any inventory is restored.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from flask import current_app
from sqlalchemy import func

from ..errors import (
    DuplicateSerialError,
    InvalidReturnQuantityError,
    InvalidReturnStateError,
    InvalidTotalsError,
    OriginalTransactionNotFoundError,
    ValidationError,
)
from ..extensions import db
from ..models import (
    Account,
    Company,
    EntityType,
    InventoryUnit,
    LedgerAccount,
    LedgerEntry,
    Payment,
    PaymentStatus,
    ReferenceType,
    RefundMethod,
    ReturnLine,
    ReturnTransaction,
    SaleLine,
    SaleTransaction,
    TransactionType,
    UnitStatus,
)
from . import account_service, audit_service, catalog_service, document_service, inventory_service, receipt_service
from .concurrency import lock_for_update, run_in_unit_of_work
from .ledger_service import LedgerFact, post_double_entry
from .sales_service import SaleState, SaleWorkflow
from ..validation import int_field, str_field, str_list_field


@dataclass
class ReturnLineRequest:
    product_id: int
    batch_id: int
    quantity: int
    serial_numbers: list[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict) -> "ReturnLineRequest":
        return cls(
            product_id=int_field(data, "product_id", required=True),
            batch_id=int_field(data, "batch_id", required=True),
            quantity=int_field(data, "quantity", required=True),
            serial_numbers=str_list_field(data, "serial_numbers"),
        )


@dataclass
class ReturnRequest:
    company_id: int
    original_transaction_id: int
    lines: list[ReturnLineRequest]
    refund_method: str = RefundMethod.CASH.value
    reason: Optional[str] = None
    total_refund_cents: Optional[int] = None
    created_by: Optional[int] = None

    @classmethod
    def from_dict(cls, data: dict) -> "ReturnRequest":
        lines = data.get("lines")
        if not isinstance(lines, list) or not lines:
            raise ValidationError("lines must be a non-empty list", details={"field": "lines"})
        return cls(
            company_id=int_field(data, "company_id", required=True),
            original_transaction_id=int_field(data, "original_transaction_id", required=True),
            lines=[ReturnLineRequest.from_dict(line or {}) for line in lines],
            refund_method=str_field(data, "refund_method") or RefundMethod.CASH.value,
            reason=str_field(data, "reason"),
            total_refund_cents=int_field(data, "total_refund_cents"),
            created_by=int_field(data, "created_by"),
        )


@dataclass
class ReturnResult:
    return_transaction: ReturnTransaction
    entries: list[LedgerEntry]
    payment: Optional[Payment]
    account: Optional[Account]
    workflow: SaleWorkflow
    receipt_path: Optional[str] = None

    @property
    def state(self) -> SaleState:
        return self.workflow.state

    def to_dict(self) -> dict:
        return {
            "return": self.return_transaction.to_dict(include_lines=True),
            "ledger_entries": [e.to_dict() for e in self.entries],
            "payment": self.payment.to_dict() if self.payment is not None else None,
            "account_id": self.account.id if self.account is not None else None,
            "state": self.state.value,
            "receipt_path": self.receipt_path,
        }


# =============================================================================
# VALIDATION (no mutation)
# =============================================================================

def _sold_lines_by_key(sale: SaleTransaction) -> dict[tuple[int, int], list[SaleLine]]:
    """(product_id, batch_id) -> the sale's lines on that batch, oldest first."""
    sold: dict[tuple[int, int], list[SaleLine]] = {}
    lines = db.session.query(SaleLine).filter(SaleLine.sale_id == sale.id).order_by(SaleLine.id.asc()).all()
    for line in lines:
        sold.setdefault((line.product_id, line.batch_id), []).append(line)
    return sold


def _returned_by_key(sale_id: int) -> dict[tuple[int, int], int]:
    rows = (
        db.session.query(ReturnLine.product_id, ReturnLine.batch_id, func.sum(ReturnLine.quantity))
        .join(ReturnTransaction, ReturnTransaction.id == ReturnLine.return_id)
        .filter(ReturnTransaction.original_transaction_id == sale_id)
        .group_by(ReturnLine.product_id, ReturnLine.batch_id)
        .all()
    )
    return {(product_id, batch_id): int(qty or 0) for product_id, batch_id, qty in rows}


def _check_serial_returnable(serial: str, sale_id: int) -> None:
    unit = db.session.query(InventoryUnit).filter(InventoryUnit.serial_number == serial).first()
    if unit is None:
        raise InvalidReturnStateError(serial, None)
    db.session.refresh(unit)
    if unit.status != UnitStatus.SOLD.value or unit.sale_id != sale_id:
        raise InvalidReturnStateError(serial, unit.status)


def _slices_by_quantity(sale_lines: list[SaleLine], offset: int, quantity: int) -> list[dict]:
    """
    Price a plain (non-serialized) return against the original lines.

    Returned units consume the sale's lines on the batch oldest first; offset
    is how many units earlier returns (and earlier lines of this request)
    already took. Each slice carries its own line's unit price.
    """
    slices = []
    remaining = quantity
    for sale_line in sale_lines:
        available = sale_line.quantity
        skipped = min(offset, available)
        offset -= skipped
        available -= skipped
        if available <= 0:
            continue
        take = min(available, remaining)
        slices.append({"quantity": take, "unit_price_cents": sale_line.unit_price_cents, "serials": []})
        remaining -= take
        if remaining == 0:
            break
    return slices


def _slices_by_serial(sale_lines: list[SaleLine], serials: list[str]) -> list[dict]:
    """Price each returned unit at the unit price of the line that sold it."""
    slices: dict[int, dict] = {}
    for serial in serials:
        sale_line = next((sl for sl in sale_lines if serial in (sl.serial_numbers or [])), None)
        if sale_line is None:
            raise InvalidReturnStateError(serial, UnitStatus.SOLD.value)
        item = slices.setdefault(
            sale_line.id, {"quantity": 0, "unit_price_cents": sale_line.unit_price_cents, "serials": []}
        )
        item["quantity"] += 1
        item["serials"].append(serial)
    return list(slices.values())


def _validate_return(request: ReturnRequest, sale: SaleTransaction) -> tuple[list[dict], int]:
    """Returns (planned lines, total refund). Raises before anything is mutated."""
    try:
        RefundMethod(request.refund_method)
    except ValueError as exc:
        raise ValidationError(
            f"Invalid refund method: {request.refund_method!r}",
            details={"refund_method": request.refund_method},
        ) from exc
    if not request.lines:
        raise ValidationError("Return must have at least one line")

    sold = _sold_lines_by_key(sale)
    returned = _returned_by_key(sale.id)

    requested: dict[tuple[int, int], int] = {}
    for line in request.lines:
        if line.quantity <= 0:
            raise ValidationError("quantity must be positive", details={"quantity": line.quantity})
        key = (line.product_id, line.batch_id)
        requested[key] = requested.get(key, 0) + line.quantity

    for key, qty in requested.items():
        sold_qty = sum(sl.quantity for sl in sold.get(key, []))
        returnable = sold_qty - returned.get(key, 0)
        if qty > returnable:
            raise InvalidReturnQuantityError(
                product_id=key[0], batch_id=key[1], requested=qty, returnable=max(0, returnable)
            )

    planned = []
    seen_serials = set()
    consumed = dict(returned)
    max_refund = 0
    for line in request.lines:
        key = (line.product_id, line.batch_id)
        product = catalog_service.get_product(request.company_id, line.product_id)
        serials = inventory_service.validate_serials(product, line.quantity, line.serial_numbers)
        for serial in serials:
            if serial in seen_serials:
                raise DuplicateSerialError(serial)
            seen_serials.add(serial)
            _check_serial_returnable(serial, sale.id)

        if serials:
            slices = _slices_by_serial(sold[key], serials)
        else:
            slices = _slices_by_quantity(sold[key], consumed.get(key, 0), line.quantity)
        consumed[key] = consumed.get(key, 0) + line.quantity

        for item in slices:
            item["line_refund_cents"] = item["quantity"] * item["unit_price_cents"]
        line_refund = sum(item["line_refund_cents"] for item in slices)
        max_refund += line_refund
        planned.append({"request": line, "serials": serials, "slices": slices, "line_refund_cents": line_refund})

    total_refund = max_refund if request.total_refund_cents is None else request.total_refund_cents
    if total_refund < 0:
        raise ValidationError("total_refund_cents must be >= 0", details={"field": "total_refund_cents"})
    if total_refund > max_refund:
        raise InvalidTotalsError(field="total_refund_cents", expected=max_refund, given=total_refund)
    return planned, total_refund


# =============================================================================
# EXECUTE
# =============================================================================

def execute_return(request: ReturnRequest) -> ReturnResult:
    """
    Run one return as a single unit of work.

    Raises (nothing persisted in every case): OriginalTransactionNotFoundError,
    InvalidReturnQuantityError, InvalidReturnStateError, DuplicateSerialError,
    SerialCountMismatchError, InvalidTotalsError, ValidationError, RetryableError.
    """
    attempt = {}

    def _op() -> ReturnResult:
        workflow = attempt["workflow"] = SaleWorkflow()
        company_id = request.company_id

        sale = lock_for_update(
            db.session.query(SaleTransaction).filter(
                SaleTransaction.id == request.original_transaction_id,
                SaleTransaction.company_id == company_id,
            )
        ).first()
        if sale is None:
            raise OriginalTransactionNotFoundError(request.original_transaction_id)

        planned, total_refund = _validate_return(request, sale)

        # Inventory
        for item in planned:
            line = item["request"]
            inventory_service.restore(company_id, line.product_id, line.batch_id, line.quantity)
            if item["serials"]:
                inventory_service.return_units(company_id, line.product_id, line.batch_id, item["serials"], sale.id)
        workflow.advance(SaleState.INVENTORY_RESERVED)

        number, counter = document_service.next_document_number(
            company_id=company_id, document_type=document_service.RETURN
        )
        account = None
        if sale.linked_entity_id is not None:
            account = account_service.find_or_create_account(
                sale.linked_entity_id, company_id, role=EntityType.CUSTOMER, created_by=request.created_by
            )

        rtn = ReturnTransaction(
            company_id=company_id,
            return_number=number,
            counter_number=counter,
            original_transaction_id=sale.id,
            total_refund_cents=total_refund,
            refund_method=request.refund_method,
            reason=request.reason,
            linked_entity_id=sale.linked_entity_id,
            account_id=account.id if account is not None else None,
            created_by=request.created_by,
        )
        db.session.add(rtn)
        db.session.flush()
        # One return line per original price the returned units were sold at
        for item in planned:
            line = item["request"]
            for piece in item["slices"]:
                db.session.add(
                    ReturnLine(
                        return_id=rtn.id,
                        product_id=line.product_id,
                        batch_id=line.batch_id,
                        quantity=piece["quantity"],
                        unit_price_cents=piece["unit_price_cents"],
                        line_refund_cents=piece["line_refund_cents"],
                        serial_numbers=piece["serials"] or None,
                    )
                )
        db.session.flush()

        # Ledger
        is_cash = request.refund_method == RefundMethod.CASH.value
        entries = list(
            post_double_entry(
                LedgerFact(
                    transaction_id=number,
                    company_id=company_id,
                    transaction_type=TransactionType.RETURN,
                    debit_account=LedgerAccount.SALES_RETURN,
                    debit_amount=total_refund,
                    credit_account=LedgerAccount.CASH_BANK if is_cash else LedgerAccount.ACCOUNTS_PAYABLE,
                    credit_amount=total_refund,
                    description=f"Return {number} against sale {sale.transaction_number}",
                    reference_type=ReferenceType.RETURNS,
                    linked_entity_id=sale.linked_entity_id,
                    account_id=account.id if account is not None else None,
                    created_by=request.created_by,
                )
            )
        )
        workflow.advance(SaleState.LEDGER_POSTED)

        payment = None
        if is_cash:
            payment = Payment(
                company_id=company_id,
                sale_id=sale.id,
                return_id=rtn.id,
                payment_method=RefundMethod.CASH.value,
                amount_cents=-total_refund,
                change_cents=0,
                status=PaymentStatus.REFUNDED.value,
                entry_group_id=entries[0].entry_group_id,
                paid_by=sale.linked_entity_id,
                created_by=request.created_by,
            )
            db.session.add(payment)
            db.session.flush()
        # Credit notes carry no payment; the state still closes the same way
        workflow.advance(SaleState.PAYMENT_RECORDED)

        return ReturnResult(return_transaction=rtn, entries=entries, payment=payment, account=account, workflow=workflow)

    try:
        result = run_in_unit_of_work(_op, label="return")
    except Exception as exc:
        workflow = attempt.get("workflow")
        state = workflow.state.value if workflow else SaleState.VALIDATING.value
        if workflow:
            workflow.abort(exc)
        current_app.logger.warning(
            "Return against sale %s aborted at %s: %s %s",
            request.original_transaction_id, state, type(exc).__name__, getattr(exc, "details", None),
        )
        raise

    result.workflow.advance(SaleState.COMMITTED)
    rtn = result.return_transaction
    current_app.logger.info(
        "Return %s committed: sale=%s refund=%s method=%s",
        rtn.return_number, rtn.original_transaction_id, rtn.total_refund_cents, rtn.refund_method,
    )

    result.receipt_path = receipt_service.request_receipt(
        "return_receipt", lambda: return_receipt_data(rtn), document_number=rtn.return_number
    )
    audit_service.notify(
        rtn.company_id, "Create", "ReturnTransaction", rtn.id,
        actor_id=rtn.created_by,
        payload={"return_number": rtn.return_number, "total_refund_cents": rtn.total_refund_cents},
    )
    return result


def return_receipt_data(rtn: ReturnTransaction) -> dict:
    company = db.session.get(Company, rtn.company_id)
    lines = []
    for line in rtn.lines:
        product = catalog_service.get_product(rtn.company_id, line.product_id)
        data = line.to_dict()
        data["name"] = product.name
        data["sku"] = product.sku
        lines.append(data)
    data = rtn.to_dict()
    data.update(
        {
            "document_number": rtn.return_number,
            "company_name": company.name if company else "",
            "original_transaction_number": rtn.original_transaction.transaction_number,
            "lines": lines,
        }
    )
    return data


# =============================================================================
# QUERIES
# =============================================================================

def get_return(return_id: int, company_id: int | None = None) -> ReturnTransaction | None:
    rtn = db.session.get(ReturnTransaction, return_id)
    if rtn is None or (company_id is not None and rtn.company_id != company_id):
        return None
    return rtn


def list_returns(company_id: int, original_transaction_id: int | None = None) -> list[ReturnTransaction]:
    query = db.session.query(ReturnTransaction).filter(ReturnTransaction.company_id == company_id)
    if original_transaction_id is not None:
        query = query.filter(ReturnTransaction.original_transaction_id == original_transaction_id)
    return query.order_by(ReturnTransaction.id.desc()).all()
