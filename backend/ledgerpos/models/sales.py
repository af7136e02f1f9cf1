from __future__ import annotations

import enum

from ..extensions import db
from ledgerpos.time_utils import to_utc_z


class PaymentMethod(str, enum.Enum):
    CASH = "Cash"
    CREDIT_CARD = "Credit Card"
    BANK_TRANSFER = "Bank Transfer"


class PaymentStatus(str, enum.Enum):
    COMPLETED = "Completed"
    PENDING = "Pending"
    FAILED = "Failed"
    REFUNDED = "Refunded"


class SaleTransaction(db.Model):
    """
    POS sale.

    Created once inside the sale unit of work and immutable after commit.
    Returns reference it by id. Totals are stored as given by the caller
    after reconciliation: total_payable = subtotal - discount + tax.
    """
    __tablename__ = "sale_transactions"
    __table_args__ = (
        db.UniqueConstraint("company_id", "transaction_number", name="uq_sales_company_number"),
        db.Index("ix_sales_company_created", "company_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    company_id = db.Column(db.Integer, db.ForeignKey("companies.id"), nullable=False, index=True)

    # Human-readable number (e.g., "POS-001-0001")
    transaction_number = db.Column(db.String(64), nullable=False)

    # All amounts in cents
    subtotal_cents = db.Column(db.Integer, nullable=False)
    discount_cents = db.Column(db.Integer, nullable=False, default=0)
    tax_cents = db.Column(db.Integer, nullable=False, default=0)
    total_payable_cents = db.Column(db.Integer, nullable=False)
    paid_amount_cents = db.Column(db.Integer, nullable=False, default=0)
    change_given_cents = db.Column(db.Integer, nullable=False, default=0)

    payment_method = db.Column(db.String(32), nullable=False)
    payment_reference = db.Column(db.String(128), nullable=True)

    linked_entity_id = db.Column(db.Integer, db.ForeignKey("entities.id"), nullable=True, index=True)
    account_id = db.Column(db.Integer, db.ForeignKey("accounts.id"), nullable=True, index=True)

    created_by = db.Column(db.Integer, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    lines = db.relationship("SaleLine", backref="sale", lazy=True, order_by="SaleLine.id")

    @property
    def is_credit_sale(self) -> bool:
        return self.paid_amount_cents < self.total_payable_cents

    def to_dict(self, include_lines: bool = False) -> dict:
        data = {
            "id": self.id,
            "company_id": self.company_id,
            "transaction_number": self.transaction_number,
            "subtotal_cents": self.subtotal_cents,
            "discount_cents": self.discount_cents,
            "tax_cents": self.tax_cents,
            "total_payable_cents": self.total_payable_cents,
            "paid_amount_cents": self.paid_amount_cents,
            "change_given_cents": self.change_given_cents,
            "payment_method": self.payment_method,
            "payment_reference": self.payment_reference,
            "linked_entity_id": self.linked_entity_id,
            "account_id": self.account_id,
            "created_by": self.created_by,
            "created_at": to_utc_z(self.created_at),
        }
        if include_lines:
            data["lines"] = [line.to_dict() for line in self.lines]
        return data


class SaleLine(db.Model):
    """Individual line items on a sale."""
    __tablename__ = "sale_lines"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sale_transactions.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False)
    batch_id = db.Column(db.Integer, db.ForeignKey("inventory_batches.id"), nullable=False)

    quantity = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    line_total_cents = db.Column(db.Integer, nullable=False)

    # Serial numbers sold on this line (serialized products only)
    serial_numbers = db.Column(db.JSON, nullable=True)

    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "product_id": self.product_id,
            "batch_id": self.batch_id,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "line_total_cents": self.line_total_cents,
            "serial_numbers": self.serial_numbers or [],
        }


class Payment(db.Model):
    """
    Payment record for sales, receivable settlements and refunds.

    STATUS:
    - Completed: sale paid in full (or a settlement received)
    - Pending: credit / partial sale, balance still receivable
    - Refunded: cash refund issued by a return (amount_cents is negative)
    """
    __tablename__ = "payments"
    __table_args__ = (
        db.Index("ix_payments_company_created", "company_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    company_id = db.Column(db.Integer, db.ForeignKey("companies.id"), nullable=False, index=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sale_transactions.id"), nullable=False, index=True)
    return_id = db.Column(db.Integer, db.ForeignKey("return_transactions.id"), nullable=True, index=True)

    payment_method = db.Column(db.String(32), nullable=False, index=True)

    # Amount tendered (negative for refunds)
    amount_cents = db.Column(db.Integer, nullable=False)
    change_cents = db.Column(db.Integer, nullable=False, default=0)

    status = db.Column(db.String(16), nullable=False, default=PaymentStatus.PENDING.value, index=True)
    payment_reference = db.Column(db.String(128), nullable=True)

    # Ledger posting this payment belongs to (None for a zero-amount pending record)
    entry_group_id = db.Column(db.String(32), nullable=True)

    paid_by = db.Column(db.Integer, db.ForeignKey("entities.id"), nullable=True)
    created_by = db.Column(db.Integer, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    sale = db.relationship("SaleTransaction", backref=db.backref("payments", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "company_id": self.company_id,
            "sale_id": self.sale_id,
            "return_id": self.return_id,
            "payment_method": self.payment_method,
            "amount_cents": self.amount_cents,
            "change_cents": self.change_cents,
            "status": self.status,
            "payment_reference": self.payment_reference,
            "entry_group_id": self.entry_group_id,
            "paid_by": self.paid_by,
            "created_by": self.created_by,
            "created_at": to_utc_z(self.created_at),
        }
