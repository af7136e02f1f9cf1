# Overview: Batch-level inventory store; atomic decrement/restore, serialized unit transitions, receiving.

from __future__ import annotations

from datetime import datetime
from typing import Iterable, Optional

from flask import current_app
from sqlalchemy import func, update
from sqlalchemy.exc import IntegrityError

from ..errors import (
    BatchNotFoundError,
    DuplicateSerialError,
    InsufficientStockError,
    InvalidReturnStateError,
    SerialCountMismatchError,
    ValidationError,
)
from ..extensions import db
from ..models import (
    EntityType,
    InventoryBatch,
    InventoryRecord,
    InventoryUnit,
    LedgerAccount,
    Product,
    ReferenceType,
    TransactionType,
    UnitStatus,
)
from ..time_utils import coerce_datetime, utcnow
from . import account_service, audit_service, catalog_service, document_service
from .concurrency import run_in_unit_of_work
from .ledger_service import LedgerFact, post_double_entry
"""
Inventory Invariants (authoritative)

- batch.quantity >= 0 always (CHECK constraint plus conditional UPDATE).
- record.total_quantity == SUM(batch.quantity). Both are changed by the same
  pair of UPDATE statements inside one transaction; nothing else writes them.
- Decrement is a single "UPDATE ... WHERE quantity >= n"; there is no
  read-then-write window for a concurrent sale to slip through.
- Batches are appended, never deleted, even at zero quantity.
- Serialized units move In Stock -> Sold on sale and Sold -> In Stock on return,
  each via a conditional UPDATE on the current status.
- Nothing here commits except receive_batch, which owns its unit of work.
"""


def _require_positive(quantity) -> int:
    if not isinstance(quantity, int) or isinstance(quantity, bool) or quantity <= 0:
        raise ValidationError("quantity must be a positive integer", details={"quantity": quantity})
    return quantity


def _expire_loaded(model, pk) -> None:
    """Bulk UPDATEs bypass the identity map; drop any cached copy so the next read hits the DB."""
    obj = db.session.identity_map.get(db.session.identity_key(model, pk))
    if obj is not None:
        db.session.expire(obj)


def _batch_state(company_id: int, product_id: int, batch_id: int):
    """(record_id, quantity) straight from the DB, or BatchNotFoundError."""
    row = (
        db.session.query(InventoryBatch.record_id, InventoryBatch.quantity)
        .filter(
            InventoryBatch.id == batch_id,
            InventoryBatch.company_id == company_id,
            InventoryBatch.product_id == product_id,
        )
        .first()
    )
    if row is None:
        raise BatchNotFoundError(product_id=product_id, batch_id=batch_id)
    return row.record_id, row.quantity


def _shift_record_total(record_id: int, delta: int) -> None:
    db.session.execute(
        update(InventoryRecord)
        .where(InventoryRecord.id == record_id)
        .values(total_quantity=InventoryRecord.total_quantity + delta)
        .execution_options(synchronize_session=False)
    )
    _expire_loaded(InventoryRecord, record_id)


def reserve_and_decrement(company_id: int, product_id: int, batch_id: int, quantity: int) -> int:
    """
    Atomically take quantity units out of one batch.

    Returns the batch's remaining quantity. Raises InsufficientStockError
    (batch untouched) when the batch holds fewer than quantity units, and
    BatchNotFoundError when the batch does not belong to (company, product).
    """
    _require_positive(quantity)

    result = db.session.execute(
        update(InventoryBatch)
        .where(
            InventoryBatch.id == batch_id,
            InventoryBatch.company_id == company_id,
            InventoryBatch.product_id == product_id,
            InventoryBatch.quantity >= quantity,
        )
        .values(quantity=InventoryBatch.quantity - quantity)
        .execution_options(synchronize_session=False)
    )
    record_id, remaining = _batch_state(company_id, product_id, batch_id)
    if result.rowcount != 1:
        raise InsufficientStockError(
            product_id=product_id,
            batch_id=batch_id,
            requested=quantity,
            available=remaining,
        )

    _expire_loaded(InventoryBatch, batch_id)
    _shift_record_total(record_id, -quantity)
    return remaining


def restore(company_id: int, product_id: int, batch_id: int, quantity: int) -> int:
    """Symmetric increment used by returns. Returns the batch's new quantity."""
    _require_positive(quantity)

    result = db.session.execute(
        update(InventoryBatch)
        .where(
            InventoryBatch.id == batch_id,
            InventoryBatch.company_id == company_id,
            InventoryBatch.product_id == product_id,
        )
        .values(quantity=InventoryBatch.quantity + quantity)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise BatchNotFoundError(product_id=product_id, batch_id=batch_id)

    record_id, new_quantity = _batch_state(company_id, product_id, batch_id)
    _expire_loaded(InventoryBatch, batch_id)
    _shift_record_total(record_id, quantity)
    return new_quantity


def find_available(company_id: int, *, include_batches: bool = False) -> list[dict]:
    """
    Per-product stock on hand for a company.

    With include_batches, each product carries its live batches oldest-added
    first (FIFO consumption order); zero-quantity batches are left out.
    Products with nothing on hand are omitted.
    """
    totals = (
        db.session.query(
            Product,
            func.coalesce(func.sum(InventoryRecord.total_quantity), 0).label("total_quantity"),
        )
        .join(InventoryRecord, InventoryRecord.product_id == Product.id)
        .filter(
            Product.company_id == company_id,
            InventoryRecord.company_id == company_id,
            InventoryRecord.is_deleted.is_(False),
        )
        .group_by(Product.id)
        .order_by(Product.name.asc(), Product.id.asc())
        .all()
    )

    rows = []
    for product, total in totals:
        if not total:
            continue
        row = {
            "product_id": product.id,
            "sku": product.sku,
            "name": product.name,
            "is_serialized": product.is_serialized,
            "total_quantity": int(total),
        }
        if include_batches:
            batches = (
                db.session.query(InventoryBatch)
                .join(InventoryRecord, InventoryRecord.id == InventoryBatch.record_id)
                .filter(
                    InventoryBatch.company_id == company_id,
                    InventoryBatch.product_id == product.id,
                    InventoryBatch.quantity > 0,
                    InventoryRecord.is_deleted.is_(False),
                )
                .order_by(InventoryBatch.added_at.asc(), InventoryBatch.id.asc())
                .all()
            )
            row["batches"] = [b.to_dict() for b in batches]
        rows.append(row)
    return rows


# =============================================================================
# SERIALIZED UNITS
# =============================================================================

def validate_serials(product: Product, quantity: int, serial_numbers: Optional[Iterable[str]]) -> list[str]:
    """
    Check the serial detail of one line before anything is mutated.

    Serialized products need exactly `quantity` distinct, non-blank serials;
    non-serialized products must not carry any.
    """
    serials = [str(s).strip() for s in (serial_numbers or [])]
    if not product.is_serialized:
        if serials:
            raise ValidationError(
                f"Product {product.id} is not serialized; serial numbers not allowed",
                details={"product_id": product.id},
            )
        return []

    if len(serials) != quantity:
        raise SerialCountMismatchError(product_id=product.id, expected=quantity, given=len(serials))
    seen = set()
    for serial in serials:
        if not serial:
            raise ValidationError("Serial numbers must not be blank", details={"product_id": product.id})
        if serial in seen:
            raise DuplicateSerialError(serial)
        seen.add(serial)
    return serials


def _in_stock_unit_count(batch_id: int) -> int:
    return int(
        db.session.query(func.count(InventoryUnit.id))
        .filter(InventoryUnit.batch_id == batch_id, InventoryUnit.status == UnitStatus.IN_STOCK.value)
        .scalar()
        or 0
    )


def mark_units_sold(
    company_id: int,
    product_id: int,
    batch_id: int,
    serial_numbers: list[str],
    sale_id: int,
) -> list[InventoryUnit]:
    """
    In Stock -> Sold for each serial, one conditional UPDATE per unit.

    A serial that was never registered is recorded as a new Sold unit. A
    serial registered in any other state (already sold, faulty, or in another
    batch) is a DuplicateSerialError.
    """
    now = utcnow()
    units = []
    for serial in serial_numbers:
        result = db.session.execute(
            update(InventoryUnit)
            .where(
                InventoryUnit.serial_number == serial,
                InventoryUnit.company_id == company_id,
                InventoryUnit.product_id == product_id,
                InventoryUnit.batch_id == batch_id,
                InventoryUnit.status == UnitStatus.IN_STOCK.value,
            )
            .values(status=UnitStatus.SOLD.value, sale_id=sale_id, sold_at=now, returned_at=None)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 1:
            unit = db.session.query(InventoryUnit).filter(InventoryUnit.serial_number == serial).one()
            db.session.refresh(unit)
            units.append(unit)
            continue

        existing = db.session.query(InventoryUnit).filter(InventoryUnit.serial_number == serial).first()
        if existing is not None:
            db.session.refresh(existing)
            if existing.status == UnitStatus.IN_STOCK.value:
                raise DuplicateSerialError(serial, reason="belongs to another batch")
            raise DuplicateSerialError(serial, reason=f"already registered with status {existing.status}")

        unit = InventoryUnit(
            company_id=company_id,
            product_id=product_id,
            batch_id=batch_id,
            serial_number=serial,
            status=UnitStatus.SOLD.value,
            sale_id=sale_id,
            sold_at=now,
        )
        try:
            with db.session.begin_nested():
                db.session.add(unit)
        except IntegrityError as exc:
            raise DuplicateSerialError(serial, reason="already registered") from exc
        units.append(unit)

    # In-stock units of a batch may never outnumber its quantity
    _, remaining = _batch_state(company_id, product_id, batch_id)
    in_stock = _in_stock_unit_count(batch_id)
    if in_stock > remaining:
        raise ValidationError(
            "Sold serial numbers must come from the batch's registered units",
            details={"batch_id": batch_id, "in_stock_units": in_stock, "batch_quantity": remaining},
        )
    return units


def return_units(
    company_id: int,
    product_id: int,
    batch_id: int,
    serial_numbers: list[str],
    sale_id: int,
) -> list[InventoryUnit]:
    """
    Sold -> In Stock for each serial sold on sale_id.

    Any serial not currently Sold on that sale raises InvalidReturnStateError;
    the caller's unit of work rolls back every transition made so far.
    """
    now = utcnow()
    units = []
    for serial in serial_numbers:
        result = db.session.execute(
            update(InventoryUnit)
            .where(
                InventoryUnit.serial_number == serial,
                InventoryUnit.company_id == company_id,
                InventoryUnit.product_id == product_id,
                InventoryUnit.batch_id == batch_id,
                InventoryUnit.sale_id == sale_id,
                InventoryUnit.status == UnitStatus.SOLD.value,
            )
            .values(status=UnitStatus.IN_STOCK.value, returned_at=now, sale_id=None)
            .execution_options(synchronize_session=False)
        )
        unit = db.session.query(InventoryUnit).filter(InventoryUnit.serial_number == serial).first()
        if result.rowcount != 1:
            if unit is not None:
                db.session.refresh(unit)
            raise InvalidReturnStateError(serial, unit.status if unit is not None else None)
        db.session.refresh(unit)
        units.append(unit)
    return units


# =============================================================================
# RECEIVING
# =============================================================================

def _get_or_create_record(company_id: int, product_id: int, vendor_id: int | None, created_by: int | None) -> InventoryRecord:
    query = db.session.query(InventoryRecord).filter(
        InventoryRecord.company_id == company_id,
        InventoryRecord.product_id == product_id,
        InventoryRecord.vendor_id.is_(None) if vendor_id is None else InventoryRecord.vendor_id == vendor_id,
    )
    record = query.first()
    if record is not None:
        if record.is_deleted:
            record.is_deleted = False
        return record
    try:
        with db.session.begin_nested():
            record = InventoryRecord(
                company_id=company_id,
                product_id=product_id,
                vendor_id=vendor_id,
                total_quantity=0,
                created_by=created_by,
            )
            db.session.add(record)
        return record
    except IntegrityError:
        record = query.first()
        if record is None:
            raise
        return record


def receive_batch(
    company_id: int,
    product_id: int,
    vendor_id: int | None,
    batch_code: str,
    quantity: int,
    purchase_price_cents: int,
    selling_price_cents: int,
    expires_at: Optional[datetime] = None,
    serial_numbers: Optional[list[str]] = None,
    created_by: int | None = None,
    post_purchase: bool = True,
) -> InventoryBatch:
    """
    Receive stock from a vendor as a new batch, in its own unit of work.

    - Creates the (company, product, vendor) record on first receipt.
    - Appends the batch; an existing batch_code on the record is rejected.
    - Serialized products register one In Stock unit per serial.
    - With post_purchase, posts Purchase: debit Inventory / credit Vendor
      Payable for quantity x purchase price, attributed to the vendor account.
    """
    _require_positive(quantity)
    batch_code = (batch_code or "").strip()
    if not batch_code:
        raise ValidationError("batch_code is required")
    if purchase_price_cents < 0 or selling_price_cents < 0:
        raise ValidationError("prices must be >= 0")
    expires_at = coerce_datetime(expires_at)

    def _op() -> InventoryBatch:
        product = catalog_service.get_product(company_id, product_id)
        serials = validate_serials(product, quantity, serial_numbers)
        if serials:
            taken = (
                db.session.query(InventoryUnit.serial_number)
                .filter(InventoryUnit.serial_number.in_(serials))
                .first()
            )
            if taken is not None:
                raise DuplicateSerialError(taken.serial_number, reason="already registered")

        account = None
        if vendor_id is not None:
            account = account_service.find_or_create_account(
                vendor_id, company_id, role=EntityType.VENDOR, created_by=created_by
            )

        record = _get_or_create_record(company_id, product_id, vendor_id, created_by)
        duplicate = (
            db.session.query(InventoryBatch.id)
            .filter(InventoryBatch.record_id == record.id, InventoryBatch.batch_code == batch_code)
            .first()
        )
        if duplicate is not None:
            raise ValidationError(
                f"Batch {batch_code} already exists for this product/vendor",
                details={"batch_code": batch_code, "record_id": record.id},
            )

        batch = InventoryBatch(
            record_id=record.id,
            company_id=company_id,
            product_id=product_id,
            batch_code=batch_code,
            quantity=quantity,
            purchase_price_cents=purchase_price_cents,
            selling_price_cents=selling_price_cents,
            expires_at=expires_at,
        )
        db.session.add(batch)
        db.session.flush()
        _shift_record_total(record.id, quantity)

        for serial in serials:
            db.session.add(
                InventoryUnit(
                    company_id=company_id,
                    product_id=product_id,
                    batch_id=batch.id,
                    serial_number=serial,
                    status=UnitStatus.IN_STOCK.value,
                )
            )
        db.session.flush()

        amount = quantity * purchase_price_cents
        if post_purchase and amount > 0:
            number, _ = document_service.next_document_number(
                company_id=company_id, document_type=document_service.RECEIVE
            )
            post_double_entry(
                LedgerFact(
                    transaction_id=number,
                    company_id=company_id,
                    transaction_type=TransactionType.PURCHASE,
                    debit_account=LedgerAccount.INVENTORY,
                    debit_amount=amount,
                    credit_account=LedgerAccount.VENDOR_PAYABLE,
                    credit_amount=amount,
                    description=f"Purchase of {quantity} x {product.sku} (batch {batch_code})",
                    reference_type=ReferenceType.INVENTORY,
                    linked_entity_id=vendor_id,
                    account_id=account.id if account is not None else None,
                    created_by=created_by,
                )
            )
        return batch

    batch = run_in_unit_of_work(_op, label="receive batch")
    current_app.logger.info(
        "Received batch %s: product=%s qty=%s company=%s", batch.id, product_id, quantity, company_id
    )
    audit_service.notify(
        company_id, "Create", "InventoryBatch", batch.id,
        actor_id=created_by,
        payload={"product_id": product_id, "quantity": quantity, "batch_code": batch_code},
    )
    return batch


# =============================================================================
# QUERIES / AUDIT
# =============================================================================

def get_inventory_record(company_id: int, product_id: int, vendor_id: int | None = None) -> InventoryRecord | None:
    return (
        db.session.query(InventoryRecord)
        .filter(
            InventoryRecord.company_id == company_id,
            InventoryRecord.product_id == product_id,
            InventoryRecord.vendor_id.is_(None) if vendor_id is None else InventoryRecord.vendor_id == vendor_id,
        )
        .first()
    )


def get_batch(company_id: int, batch_id: int) -> InventoryBatch | None:
    return (
        db.session.query(InventoryBatch)
        .filter(InventoryBatch.id == batch_id, InventoryBatch.company_id == company_id)
        .first()
    )


def verify_inventory_record(record_id: int) -> dict:
    """Compare the stored total against the batch sum without changing anything."""
    total = db.session.query(InventoryRecord.total_quantity).filter(InventoryRecord.id == record_id).scalar()
    if total is None:
        raise ValidationError(f"Inventory record {record_id} not found", details={"record_id": record_id})
    batch_sum = int(
        db.session.query(func.coalesce(func.sum(InventoryBatch.quantity), 0))
        .filter(InventoryBatch.record_id == record_id)
        .scalar()
    )
    return {
        "record_id": record_id,
        "total_quantity": int(total),
        "batch_sum": batch_sum,
        "consistent": int(total) == batch_sum,
    }


def recompute_total_quantity(record_id: int) -> InventoryRecord:
    """Repair tool: reset total_quantity to SUM(batch.quantity) and commit."""
    check = verify_inventory_record(record_id)
    record = db.session.get(InventoryRecord, record_id)
    if not check["consistent"]:
        current_app.logger.warning(
            "Inventory record %s drifted: total=%s batch_sum=%s",
            record_id, check["total_quantity"], check["batch_sum"],
        )
        record.total_quantity = check["batch_sum"]
        db.session.commit()
    return record


def inventory_value_cents(company_id: int) -> int:
    """Stock value at purchase price over live batches."""
    value = (
        db.session.query(
            func.coalesce(func.sum(InventoryBatch.quantity * InventoryBatch.purchase_price_cents), 0)
        )
        .join(InventoryRecord, InventoryRecord.id == InventoryBatch.record_id)
        .filter(InventoryBatch.company_id == company_id, InventoryRecord.is_deleted.is_(False))
        .scalar()
    )
    return int(value or 0)
