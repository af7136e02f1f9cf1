# Overview: Read-side balance derivation; every balance is a fold over ledger entries.

from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Iterable, Optional

from ..extensions import db
from ..models import EntryType, LedgerAccount, LedgerEntry, TransactionType
from . import account_service, inventory_service
"""
No stored balance is trusted: amounts here are recomputed from the
append-only ledger on every call, so they cannot drift from it.
"""


@dataclass(frozen=True)
class AccountBalance:
    amount_due: int = 0
    amount_received: int = 0
    discount_given: int = 0
    tax_charged: int = 0

    @property
    def balance(self) -> int:
        return self.amount_due - self.amount_received

    def to_dict(self) -> dict:
        data = asdict(self)
        data["balance"] = self.balance
        return data


def _field(entry, name):
    if isinstance(entry, dict):
        return entry.get(name)
    return getattr(entry, name)


def derive_account_balance(entries: Iterable) -> AccountBalance:
    """
    Pure fold over ledger entries (models or their to_dict() form).

    - amount_due: debits to Accounts Receivable
    - amount_received: debits to Cash/Bank plus debits to Vendor Payable
    - discount_given: debits to Discount Expense
    - tax_charged: credits to Tax Payable
    - balance = amount_due - amount_received
    """
    due = received = discount = tax = 0
    for entry in entries:
        account = _field(entry, "account")
        entry_type = _field(entry, "entry_type")
        amount = int(_field(entry, "amount_cents") or 0)

        if entry_type == EntryType.DEBIT.value:
            if account == LedgerAccount.ACCOUNTS_RECEIVABLE.value:
                due += amount
            elif account in (LedgerAccount.CASH_BANK.value, LedgerAccount.VENDOR_PAYABLE.value):
                received += amount
            elif account == LedgerAccount.DISCOUNT_EXPENSE.value:
                discount += amount
        elif entry_type == EntryType.CREDIT.value:
            if account == LedgerAccount.TAX_PAYABLE.value:
                tax += amount

    return AccountBalance(amount_due=due, amount_received=received, discount_given=discount, tax_charged=tax)


def get_account_balance(account_id: int) -> dict:
    account = account_service.get_account(account_id)
    entries = (
        db.session.query(LedgerEntry)
        .filter(LedgerEntry.company_id == account.company_id, LedgerEntry.account_id == account_id)
        .order_by(LedgerEntry.id.asc())
        .all()
    )
    data = derive_account_balance(entries).to_dict()
    data.update(
        {
            "account_id": account.id,
            "entity_id": account.entity_id,
            "company_id": account.company_id,
            "entry_count": len(entries),
        }
    )
    return data


def receivable_outstanding_cents(company_id: int, transaction_id: str) -> int:
    """Accounts Receivable still open for one sale: AR debits minus AR credits."""
    entries = (
        db.session.query(LedgerEntry)
        .filter(
            LedgerEntry.company_id == company_id,
            LedgerEntry.transaction_id == transaction_id,
            LedgerEntry.account == LedgerAccount.ACCOUNTS_RECEIVABLE.value,
        )
        .all()
    )
    outstanding = 0
    for entry in entries:
        if entry.entry_type == EntryType.DEBIT.value:
            outstanding += entry.amount_cents
        else:
            outstanding -= entry.amount_cents
    return outstanding


def get_company_summary(company_id: int, start: Optional[datetime] = None, end: Optional[datetime] = None) -> dict:
    """Headline figures for a company over an inclusive date range, folded from entries."""
    query = db.session.query(LedgerEntry).filter(LedgerEntry.company_id == company_id)
    if start is not None:
        query = query.filter(LedgerEntry.entry_date >= start)
    if end is not None:
        query = query.filter(LedgerEntry.entry_date <= end)

    totals = {
        "total_sales_cents": 0,
        "total_returns_cents": 0,
        "total_discounts_cents": 0,
        "total_tax_cents": 0,
        "total_received_cents": 0,
        "total_expenses_cents": 0,
        "total_purchases_cents": 0,
        "cash_in_bank_cents": 0,
        "receivables_cents": 0,
    }
    entry_count = 0
    for entry in query.all():
        entry_count += 1
        debit = entry.entry_type == EntryType.DEBIT.value
        amount = entry.amount_cents
        account = entry.account

        if account == LedgerAccount.SALES_REVENUE.value and not debit:
            totals["total_sales_cents"] += amount
        elif account == LedgerAccount.SALES_RETURN.value and debit:
            totals["total_returns_cents"] += amount
        elif account == LedgerAccount.DISCOUNT_EXPENSE.value and debit:
            totals["total_discounts_cents"] += amount
        elif account == LedgerAccount.TAX_PAYABLE.value and not debit:
            totals["total_tax_cents"] += amount
        elif account == LedgerAccount.OPERATING_EXPENSE.value and debit:
            totals["total_expenses_cents"] += amount
        elif account == LedgerAccount.INVENTORY.value and debit and entry.transaction_type == TransactionType.PURCHASE.value:
            totals["total_purchases_cents"] += amount

        if account == LedgerAccount.CASH_BANK.value:
            totals["cash_in_bank_cents"] += amount if debit else -amount
            if debit:
                totals["total_received_cents"] += amount
        elif account == LedgerAccount.ACCOUNTS_RECEIVABLE.value:
            totals["receivables_cents"] += amount if debit else -amount

    totals["net_sales_cents"] = totals["total_sales_cents"] - totals["total_returns_cents"]
    totals["inventory_value_cents"] = inventory_service.inventory_value_cents(company_id)
    totals["entry_count"] = entry_count
    totals["company_id"] = company_id
    return totals
