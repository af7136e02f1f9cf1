# Overview: Per-company document numbering for sales, returns and other ledger documents.

from __future__ import annotations

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import DocumentSequence

# document_type -> number prefix
SALE = "SALE"
RETURN = "RETURN"
EXPENSE = "EXPENSE"
PAYMENT = "PAYMENT"
RECEIVE = "RECEIVE"

PREFIXES = {
    SALE: "POS",
    RETURN: "RTN",
    EXPENSE: "EXP",
    PAYMENT: "PAY",
    RECEIVE: "RCV",
}


class DocumentSequenceError(Exception):
    """Raised when document sequence operations fail."""
    pass


def _bump(company_id: int, document_type: str) -> int | None:
    stmt = (
        update(DocumentSequence)
        .where(
            DocumentSequence.company_id == company_id,
            DocumentSequence.document_type == document_type,
        )
        .values(next_number=DocumentSequence.next_number + 1)
        .execution_options(synchronize_session=False)
    )
    result = db.session.execute(stmt)
    if not result.rowcount:
        return None
    current = (
        db.session.query(DocumentSequence.next_number)
        .filter_by(company_id=company_id, document_type=document_type)
        .scalar()
    )
    return current - 1


def next_sequence_value(*, company_id: int, document_type: str) -> int:
    """
    Atomically allocate the next counter value for a company/type.

    Runs inside the caller's transaction (no commit): if the caller rolls
    back, the number is released again. The first allocation inserts the
    sequence row in a SAVEPOINT so a concurrent first insert falls back to
    the UPDATE path instead of failing the whole unit of work.
    """
    if not company_id:
        raise DocumentSequenceError("company_id is required")
    if not document_type:
        raise DocumentSequenceError("document_type is required")

    value = _bump(company_id, document_type)
    if value is not None:
        return value

    try:
        with db.session.begin_nested():
            db.session.add(DocumentSequence(company_id=company_id, document_type=document_type, next_number=2))
        return 1
    except IntegrityError:
        value = _bump(company_id, document_type)
        if value is None:
            raise
        return value


def format_document_number(prefix: str, company_id: int, value: int, pad: int = 4) -> str:
    return f"{prefix}-{company_id:03d}-{value:0{pad}d}"


def next_document_number(*, company_id: int, document_type: str, pad: int = 4) -> tuple[str, int]:
    """Return (formatted number, raw counter), e.g. ("POS-001-0007", 7)."""
    prefix = PREFIXES.get(document_type)
    if prefix is None:
        raise DocumentSequenceError(f"Unknown document type: {document_type}")
    value = next_sequence_value(company_id=company_id, document_type=document_type)
    return format_document_number(prefix, company_id, value, pad), value
