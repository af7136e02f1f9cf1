# Overview: Operating expenses recorded as single balanced ledger facts.

from __future__ import annotations

from datetime import datetime
from typing import Optional

from flask import current_app

from ..errors import ValidationError
from ..models import EntityType, LedgerAccount, LedgerEntry, ReferenceType, TransactionType
from . import account_service, audit_service, document_service, ledger_service
from .concurrency import run_in_unit_of_work
from .ledger_service import LedgerFact, post_double_entry


def record_expense(
    company_id: int,
    description: str,
    amount_cents: int,
    debit_account=LedgerAccount.OPERATING_EXPENSE,
    credit_account=LedgerAccount.CASH_BANK,
    linked_entity_id: int | None = None,
    created_by: int | None = None,
    entry_date: Optional[datetime] = None,
) -> tuple[LedgerEntry, LedgerEntry]:
    """Post one Expense fact (default: debit Operating Expense / credit Cash/Bank)."""
    description = (description or "").strip()
    if not description:
        raise ValidationError("description is required")
    if amount_cents is None or amount_cents <= 0:
        raise ValidationError("amount_cents must be positive", details={"amount_cents": amount_cents})

    def _op():
        account = None
        if linked_entity_id is not None:
            account = account_service.find_or_create_account(
                linked_entity_id, company_id, role=EntityType.VENDOR, created_by=created_by
            )
        number, _ = document_service.next_document_number(
            company_id=company_id, document_type=document_service.EXPENSE
        )
        return post_double_entry(
            LedgerFact(
                transaction_id=number,
                company_id=company_id,
                transaction_type=TransactionType.EXPENSE,
                debit_account=debit_account,
                debit_amount=amount_cents,
                credit_account=credit_account,
                credit_amount=amount_cents,
                description=description,
                reference_type=ReferenceType.EXPENSES,
                linked_entity_id=linked_entity_id,
                account_id=account.id if account is not None else None,
                created_by=created_by,
                entry_date=entry_date,
            )
        )

    debit, credit = run_in_unit_of_work(_op, label="expense")
    current_app.logger.info("Expense %s recorded: company=%s amount=%s", debit.transaction_id, company_id, amount_cents)
    audit_service.notify(
        company_id, "Create", "Expense", debit.id,
        actor_id=created_by,
        payload={"transaction_id": debit.transaction_id, "amount_cents": amount_cents},
    )
    return debit, credit


def expense_to_dict(debit: LedgerEntry, credit: LedgerEntry) -> dict:
    return {
        "expense_number": debit.transaction_id,
        "entry_group_id": debit.entry_group_id,
        "description": debit.description,
        "amount_cents": debit.amount_cents,
        "debit_account": debit.account,
        "credit_account": credit.account,
        "linked_entity_id": debit.linked_entity_id,
        "account_id": debit.account_id,
        "entry_date": debit.to_dict()["entry_date"],
    }


def list_expenses(company_id: int, start: Optional[datetime] = None, end: Optional[datetime] = None) -> list[dict]:
    entries = ledger_service.list_entries(
        company_id, transaction_type=TransactionType.EXPENSE, start=start, end=end
    )
    groups: dict[str, dict] = {}
    for entry in entries:
        groups.setdefault(entry.entry_group_id, {})[entry.entry_type] = entry
    return [expense_to_dict(pair["debit"], pair["credit"]) for pair in groups.values() if len(pair) == 2]
