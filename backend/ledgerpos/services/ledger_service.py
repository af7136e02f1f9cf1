# Overview: Double-entry poster and ledger read queries.

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy import case, func

from ..errors import InvalidEntryError, UnbalancedEntryError
from ..extensions import db
from ..models import EntryType, LedgerAccount, LedgerEntry, ReferenceType, TransactionType
from ..time_utils import coerce_datetime
"""
Ledger Invariants (authoritative)

- post_double_entry is the ONLY write path into ledger_entries.
- Every call writes exactly two rows sharing a fresh entry_group_id:
  one debit, one credit, equal amounts. A group can therefore never be unbalanced.
- Rows are append-only. Corrections are new reversing facts.
- Posting never commits: it runs inside the caller's unit of work and is
  rolled back with it.
"""


@dataclass
class LedgerFact:
    """One balanced financial fact: debit one chart account, credit another."""

    transaction_id: str
    company_id: int
    transaction_type: TransactionType
    debit_account: LedgerAccount
    debit_amount: int
    credit_account: LedgerAccount
    credit_amount: int
    description: Optional[str] = None
    reference_type: Optional[ReferenceType] = None
    linked_entity_id: Optional[int] = None
    account_id: Optional[int] = None
    created_by: Optional[int] = None
    entry_date: Optional[datetime] = None


def _as_account(value) -> LedgerAccount:
    try:
        return LedgerAccount(value)
    except ValueError as exc:
        raise InvalidEntryError(
            f"Unknown ledger account: {value!r}",
            details={"account": str(value)},
        ) from exc


def _validate(fact: LedgerFact) -> tuple[LedgerAccount, LedgerAccount, TransactionType]:
    if not fact.transaction_id:
        raise InvalidEntryError("transaction_id is required")
    if not fact.company_id:
        raise InvalidEntryError("company_id is required")

    for name in ("debit_amount", "credit_amount"):
        amount = getattr(fact, name)
        if not isinstance(amount, int) or isinstance(amount, bool):
            raise InvalidEntryError(f"{name} must be an integer number of cents", details={name: amount})
        if amount < 0:
            raise InvalidEntryError(f"{name} must be >= 0", details={name: amount})

    if fact.debit_amount != fact.credit_amount:
        raise UnbalancedEntryError(debit_amount=fact.debit_amount, credit_amount=fact.credit_amount)

    debit_account = _as_account(fact.debit_account)
    credit_account = _as_account(fact.credit_account)
    if debit_account == credit_account:
        raise InvalidEntryError(
            "Debit and credit accounts must differ",
            details={"account": debit_account.value},
        )

    try:
        transaction_type = TransactionType(fact.transaction_type)
    except ValueError as exc:
        raise InvalidEntryError(
            f"Unknown transaction type: {fact.transaction_type!r}",
            details={"transaction_type": str(fact.transaction_type)},
        ) from exc

    return debit_account, credit_account, transaction_type


def post_double_entry(fact: LedgerFact) -> tuple[LedgerEntry, LedgerEntry]:
    """
    Validate a fact and write its debit and credit rows.

    Raises UnbalancedEntryError / InvalidEntryError before writing anything.
    Flushes (so ids exist) but never commits.
    """
    debit_account, credit_account, transaction_type = _validate(fact)

    entry_group_id = uuid.uuid4().hex
    entry_date = coerce_datetime(fact.entry_date, default_now=True)
    reference_type = ReferenceType(fact.reference_type).value if fact.reference_type else None

    common = dict(
        transaction_id=fact.transaction_id,
        entry_group_id=entry_group_id,
        company_id=fact.company_id,
        transaction_type=transaction_type.value,
        reference_type=reference_type,
        description=fact.description,
        linked_entity_id=fact.linked_entity_id,
        account_id=fact.account_id,
        entry_date=entry_date,
        created_by=fact.created_by,
    )
    debit = LedgerEntry(
        account=debit_account.value,
        entry_type=EntryType.DEBIT.value,
        amount_cents=fact.debit_amount,
        **common,
    )
    credit = LedgerEntry(
        account=credit_account.value,
        entry_type=EntryType.CREDIT.value,
        amount_cents=fact.credit_amount,
        **common,
    )
    db.session.add(debit)
    db.session.add(credit)
    db.session.flush()
    return debit, credit


# =============================================================================
# READ SIDE
# =============================================================================

def _entries_query(
    company_id: int | None,
    *,
    account=None,
    entry_type=None,
    transaction_type=None,
    account_id: int | None = None,
    linked_entity_id: int | None = None,
    transaction_id: str | None = None,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
):
    query = db.session.query(LedgerEntry)
    if company_id is not None:
        query = query.filter(LedgerEntry.company_id == company_id)
    if account is not None:
        query = query.filter(LedgerEntry.account == _as_account(account).value)
    if entry_type is not None:
        query = query.filter(LedgerEntry.entry_type == EntryType(entry_type).value)
    if transaction_type is not None:
        query = query.filter(LedgerEntry.transaction_type == TransactionType(transaction_type).value)
    if account_id is not None:
        query = query.filter(LedgerEntry.account_id == account_id)
    if linked_entity_id is not None:
        query = query.filter(LedgerEntry.linked_entity_id == linked_entity_id)
    if transaction_id is not None:
        query = query.filter(LedgerEntry.transaction_id == transaction_id)
    # Date range is inclusive on both ends
    if start is not None:
        query = query.filter(LedgerEntry.entry_date >= start)
    if end is not None:
        query = query.filter(LedgerEntry.entry_date <= end)
    return query


def list_entries(
    company_id: int,
    *,
    account=None,
    entry_type=None,
    transaction_type=None,
    account_id: int | None = None,
    linked_entity_id: int | None = None,
    transaction_id: str | None = None,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    limit: int | None = None,
) -> list[LedgerEntry]:
    """Entries in posting order (entry_date, id)."""
    query = _entries_query(
        company_id,
        account=account,
        entry_type=entry_type,
        transaction_type=transaction_type,
        account_id=account_id,
        linked_entity_id=linked_entity_id,
        transaction_id=transaction_id,
        start=start,
        end=end,
    ).order_by(LedgerEntry.entry_date.asc(), LedgerEntry.id.asc())
    if limit:
        query = query.limit(limit)
    return query.all()


def _debit_credit_columns():
    debit = func.coalesce(
        func.sum(case((LedgerEntry.entry_type == EntryType.DEBIT.value, LedgerEntry.amount_cents), else_=0)), 0
    )
    credit = func.coalesce(
        func.sum(case((LedgerEntry.entry_type == EntryType.CREDIT.value, LedgerEntry.amount_cents), else_=0)), 0
    )
    return debit, credit


def sum_by_account(company_id: int, start: Optional[datetime] = None, end: Optional[datetime] = None) -> dict:
    """{account: {"debit": cents, "credit": cents}} over the date range."""
    debit, credit = _debit_credit_columns()
    rows = (
        _entries_query(company_id, start=start, end=end)
        .with_entities(LedgerEntry.account, debit, credit)
        .group_by(LedgerEntry.account)
        .all()
    )
    return {account: {"debit": int(d), "credit": int(c)} for account, d, c in rows}


def sum_by_transaction_type(company_id: int, start: Optional[datetime] = None, end: Optional[datetime] = None) -> dict:
    """{transaction_type: {"debit": cents, "credit": cents}} over the date range."""
    debit, credit = _debit_credit_columns()
    rows = (
        _entries_query(company_id, start=start, end=end)
        .with_entities(LedgerEntry.transaction_type, debit, credit)
        .group_by(LedgerEntry.transaction_type)
        .all()
    )
    return {tx_type: {"debit": int(d), "credit": int(c)} for tx_type, d, c in rows}


def find_unbalanced_groups(company_id: int | None = None) -> list[dict]:
    """
    Audit query for the balance invariant.

    Returns every entry group whose debits and credits differ, or which does
    not have exactly one row per side. Empty list when the ledger is healthy.
    """
    debit, credit = _debit_credit_columns()
    debit_rows = func.sum(case((LedgerEntry.entry_type == EntryType.DEBIT.value, 1), else_=0))
    credit_rows = func.sum(case((LedgerEntry.entry_type == EntryType.CREDIT.value, 1), else_=0))
    rows = (
        _entries_query(company_id)
        .with_entities(LedgerEntry.entry_group_id, debit, credit, debit_rows, credit_rows)
        .group_by(LedgerEntry.entry_group_id)
        .having((debit != credit) | (debit_rows != 1) | (credit_rows != 1))
        .all()
    )
    return [
        {
            "entry_group_id": group_id,
            "debit": int(d),
            "credit": int(c),
            "debit_rows": int(dr),
            "credit_rows": int(cr),
        }
        for group_id, d, c, dr, cr in rows
    ]
