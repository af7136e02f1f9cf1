from __future__ import annotations

import enum

from ..extensions import db
from ledgerpos.time_utils import to_utc_z


class RefundMethod(str, enum.Enum):
    CASH = "Cash"
    CREDIT_NOTE = "Credit Note"


class ReturnTransaction(db.Model):
    """
    Product return against a committed sale.

    Mirrors a subset of the original sale's lines; created only after the
    originating sale has been verified to exist. Immutable after commit.
    """
    __tablename__ = "return_transactions"
    __table_args__ = (
        db.UniqueConstraint("company_id", "return_number", name="uq_returns_company_number"),
        db.Index("ix_returns_company_created", "company_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    company_id = db.Column(db.Integer, db.ForeignKey("companies.id"), nullable=False, index=True)

    # Human-readable number (e.g., "RTN-001-0001") plus the raw sequence value
    return_number = db.Column(db.String(64), nullable=False)
    counter_number = db.Column(db.Integer, nullable=False)

    original_transaction_id = db.Column(
        db.Integer, db.ForeignKey("sale_transactions.id"), nullable=False, index=True
    )

    total_refund_cents = db.Column(db.Integer, nullable=False)
    refund_method = db.Column(db.String(16), nullable=False)
    reason = db.Column(db.Text, nullable=True)

    linked_entity_id = db.Column(db.Integer, db.ForeignKey("entities.id"), nullable=True, index=True)
    account_id = db.Column(db.Integer, db.ForeignKey("accounts.id"), nullable=True, index=True)

    created_by = db.Column(db.Integer, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    original_transaction = db.relationship(
        "SaleTransaction", backref=db.backref("returns", lazy=True)
    )
    lines = db.relationship("ReturnLine", backref="return_transaction", lazy=True, order_by="ReturnLine.id")

    def to_dict(self, include_lines: bool = False) -> dict:
        data = {
            "id": self.id,
            "company_id": self.company_id,
            "return_number": self.return_number,
            "counter_number": self.counter_number,
            "original_transaction_id": self.original_transaction_id,
            "total_refund_cents": self.total_refund_cents,
            "refund_method": self.refund_method,
            "reason": self.reason,
            "linked_entity_id": self.linked_entity_id,
            "account_id": self.account_id,
            "created_by": self.created_by,
            "created_at": to_utc_z(self.created_at),
        }
        if include_lines:
            data["lines"] = [line.to_dict() for line in self.lines]
        return data


class ReturnLine(db.Model):
    """Returned quantity of one (product, batch) line of the original sale."""
    __tablename__ = "return_lines"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    return_id = db.Column(db.Integer, db.ForeignKey("return_transactions.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False)
    batch_id = db.Column(db.Integer, db.ForeignKey("inventory_batches.id"), nullable=False)

    quantity = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    line_refund_cents = db.Column(db.Integer, nullable=False)
    serial_numbers = db.Column(db.JSON, nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "return_id": self.return_id,
            "product_id": self.product_id,
            "batch_id": self.batch_id,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "line_refund_cents": self.line_refund_cents,
            "serial_numbers": self.serial_numbers or [],
        }


class DocumentSequence(db.Model):
    """
    Per-company document counters (sales, returns, expenses, payments).

    next_number is bumped by a single UPDATE inside the caller's unit of
    work, so an aborted transaction gives its number back.
    """
    __tablename__ = "document_sequences"
    __table_args__ = (
        db.UniqueConstraint("company_id", "document_type", name="uq_doc_sequences_company_type"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    company_id = db.Column(db.Integer, db.ForeignKey("companies.id"), nullable=False, index=True)
    document_type = db.Column(db.String(32), nullable=False)
    next_number = db.Column(db.Integer, nullable=False, default=1)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "company_id": self.company_id,
            "document_type": self.document_type,
            "next_number": self.next_number,
            "updated_at": to_utc_z(self.updated_at),
        }


class AuditEvent(db.Model):
    """Create/Update/Delete notifications written by audit_service after commit."""
    __tablename__ = "audit_events"
    __table_args__ = (
        db.Index("ix_audit_company_occurred", "company_id", "occurred_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    company_id = db.Column(db.Integer, db.ForeignKey("companies.id"), nullable=False, index=True)

    action_type = db.Column(db.String(16), nullable=False, index=True)  # Create / Update / Delete
    entity_type = db.Column(db.String(64), nullable=False, index=True)  # e.g., SaleTransaction
    entity_id = db.Column(db.Integer, nullable=False)

    actor_id = db.Column(db.Integer, nullable=True)
    payload = db.Column(db.JSON, nullable=True)

    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "company_id": self.company_id,
            "action_type": self.action_type,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "actor_id": self.actor_id,
            "payload": self.payload,
            "occurred_at": to_utc_z(self.occurred_at),
        }
