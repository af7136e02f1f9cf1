from __future__ import annotations

import enum

from ..extensions import db
from ledgerpos.time_utils import to_utc_z, utcnow


class LedgerAccount(str, enum.Enum):
    """Chart of accounts used by the double-entry poster (closed set)."""

    CASH_BANK = "Cash/Bank"
    ACCOUNTS_RECEIVABLE = "Accounts Receivable"
    ACCOUNTS_PAYABLE = "Accounts Payable"
    VENDOR_PAYABLE = "Vendor Payable"
    SALES_REVENUE = "Sales Revenue"
    SALES_RETURN = "Sales Return"
    TAX_PAYABLE = "Tax Payable"
    DISCOUNT_EXPENSE = "Discount Expense"
    INVENTORY = "Inventory"
    OPERATING_EXPENSE = "Operating Expense"


class EntryType(str, enum.Enum):
    DEBIT = "debit"
    CREDIT = "credit"


class TransactionType(str, enum.Enum):
    SALE = "Sale"
    PURCHASE = "Purchase"
    RETURN = "Return"
    REFUND = "Refund"
    PAYMENT = "Payment"
    DISCOUNT = "Discount"
    TAX = "Tax"
    EXPENSE = "Expense"


class ReferenceType(str, enum.Enum):
    POS_TRANSACTIONS = "POS Transactions"
    RETURNS = "Returns"
    PAYMENTS = "Payments"
    INVENTORY = "Inventory"
    EXPENSES = "Expenses"


class LedgerEntry(db.Model):
    """
    One side of a double-entry posting.

    INVARIANTS:
    - Append-only: rows are never updated or deleted; corrections are new reversing entries.
    - Written only by ledger_service.post_double_entry, two rows per entry_group_id,
      one debit and one credit of equal amount.
    - amount_cents >= 0.
    """
    __tablename__ = "ledger_entries"
    __table_args__ = (
        db.CheckConstraint("amount_cents >= 0", name="amount_non_negative"),
        db.CheckConstraint("entry_type IN ('debit', 'credit')", name="entry_type_valid"),
        db.UniqueConstraint("entry_group_id", "entry_type", name="uq_ledger_group_side"),
        db.Index("ix_ledger_company_date", "company_id", "entry_date"),
        db.Index("ix_ledger_company_account", "company_id", "account"),
        db.Index("ix_ledger_transaction", "transaction_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # Business transaction (sale/return/payment/expense number) and posting group
    transaction_id = db.Column(db.String(64), nullable=False)
    entry_group_id = db.Column(db.String(32), nullable=False, index=True)

    company_id = db.Column(db.Integer, db.ForeignKey("companies.id"), nullable=False, index=True)

    account = db.Column(db.String(32), nullable=False)  # LedgerAccount value
    entry_type = db.Column(db.String(8), nullable=False)  # debit / credit
    amount_cents = db.Column(db.Integer, nullable=False)

    transaction_type = db.Column(db.String(16), nullable=False, index=True)
    reference_type = db.Column(db.String(32), nullable=True)
    description = db.Column(db.String(255), nullable=True)

    linked_entity_id = db.Column(db.Integer, db.ForeignKey("entities.id"), nullable=True, index=True)
    account_id = db.Column(db.Integer, db.ForeignKey("accounts.id"), nullable=True, index=True)

    # Business time vs system time
    entry_date = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    created_by = db.Column(db.Integer, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def __repr__(self) -> str:
        return (
            f"<LedgerEntry id={self.id} group={self.entry_group_id} "
            f"{self.entry_type} {self.account!r} {self.amount_cents}>"
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "transaction_id": self.transaction_id,
            "entry_group_id": self.entry_group_id,
            "company_id": self.company_id,
            "account": self.account,
            "entry_type": self.entry_type,
            "amount_cents": self.amount_cents,
            "transaction_type": self.transaction_type,
            "reference_type": self.reference_type,
            "description": self.description,
            "linked_entity_id": self.linked_entity_id,
            "account_id": self.account_id,
            "entry_date": to_utc_z(self.entry_date),
            "created_by": self.created_by,
            "created_at": to_utc_z(self.created_at),
        }
