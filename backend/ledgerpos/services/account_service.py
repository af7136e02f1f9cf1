# Overview: Entity/Account directory; lazy, race-safe account provisioning and delete guards.

from __future__ import annotations

from sqlalchemy.exc import IntegrityError

from ..errors import (
    AccountNotFoundError,
    EntityNotFoundError,
    ReferentialIntegrityError,
    ValidationError,
)
from ..extensions import db
from ..models import Account, AccountStatus, Entity, EntityType, LedgerEntry
from ..time_utils import utcnow


def _as_entity_type(value) -> EntityType:
    try:
        return EntityType(value)
    except ValueError as exc:
        raise ValidationError(f"Invalid entity type: {value!r}", details={"entity_type": str(value)}) from exc


# =============================================================================
# ENTITIES
# =============================================================================

def create_entity(
    *,
    company_id: int,
    name: str,
    entity_type=EntityType.CUSTOMER,
    email: str | None = None,
    phone: str | None = None,
) -> Entity:
    name = (name or "").strip()
    if not name:
        raise ValidationError("Entity name is required")
    entity = Entity(
        company_id=company_id,
        name=name,
        entity_type=_as_entity_type(entity_type).value,
        email=email,
        phone=phone,
    )
    db.session.add(entity)
    db.session.commit()
    return entity


def get_entity(entity_id: int, company_id: int) -> Entity:
    entity = (
        db.session.query(Entity)
        .filter(Entity.id == entity_id, Entity.company_id == company_id, Entity.is_deleted.is_(False))
        .first()
    )
    if entity is None:
        raise EntityNotFoundError(entity_id)
    return entity


def has_ledger_history(entity_id: int, company_id: int) -> bool:
    account_ids = [
        row.id
        for row in db.session.query(Account.id).filter(
            Account.entity_id == entity_id, Account.company_id == company_id
        )
    ]
    query = db.session.query(LedgerEntry.id).filter(LedgerEntry.company_id == company_id)
    if account_ids:
        query = query.filter(
            (LedgerEntry.linked_entity_id == entity_id) | (LedgerEntry.account_id.in_(account_ids))
        )
    else:
        query = query.filter(LedgerEntry.linked_entity_id == entity_id)
    return query.first() is not None


def ensure_entity_deletable(entity_id: int, company_id: int) -> None:
    """
    Referential-integrity check performed before any entity delete.

    An entity with ledger history can never be removed; its ledger rows must
    stay attributable.
    """
    if has_ledger_history(entity_id, company_id):
        raise ReferentialIntegrityError(
            "Entity has ledger history and cannot be deleted",
            details={"entity_id": entity_id, "company_id": company_id},
        )


def soft_delete_entity(entity_id: int, company_id: int, *, deleted_by: int | None = None) -> Entity:
    entity = get_entity(entity_id, company_id)
    ensure_entity_deletable(entity_id, company_id)
    entity.is_deleted = True
    entity.deleted_at = utcnow()
    entity.deleted_by = deleted_by
    db.session.commit()
    return entity


# =============================================================================
# ACCOUNTS
# =============================================================================

def _find_account(entity_id: int, company_id: int) -> Account | None:
    return (
        db.session.query(Account)
        .filter(Account.entity_id == entity_id, Account.company_id == company_id)
        .first()
    )


def _widen(account: Account, role: EntityType, updated_by: int | None) -> Account:
    if account.entity_type != role.value and account.entity_type != EntityType.BOTH.value:
        account.entity_type = EntityType.BOTH.value
        account.updated_by = updated_by
        db.session.flush()
    return account


def find_or_create_account(
    entity_id: int,
    company_id: int,
    *,
    role=EntityType.CUSTOMER,
    created_by: int | None = None,
) -> Account:
    """
    Idempotent lazy provisioning of the (entity, company) account.

    - Existing account: returned as-is, its relationship widened to Both
      when the entity now acts in a different role.
    - Missing: inserted as Active inside a SAVEPOINT. If a concurrent caller
      wins the unique (entity_id, company_id) race, the savepoint is rolled
      back and the winner's row is returned instead.

    Runs inside the caller's unit of work; never commits.
    """
    role = _as_entity_type(role)
    get_entity(entity_id, company_id)

    account = _find_account(entity_id, company_id)
    if account is not None:
        return _widen(account, role, created_by)

    try:
        with db.session.begin_nested():
            account = Account(
                entity_id=entity_id,
                company_id=company_id,
                entity_type=role.value,
                status=AccountStatus.ACTIVE.value,
                created_by=created_by,
            )
            db.session.add(account)
        return account
    except IntegrityError:
        account = _find_account(entity_id, company_id)
        if account is None:
            raise
        return _widen(account, role, created_by)


def get_account(account_id: int) -> Account:
    account = db.session.get(Account, account_id)
    if account is None:
        raise AccountNotFoundError(account_id)
    return account


def set_account_status(account_id: int, status, *, updated_by: int | None = None) -> Account:
    try:
        status = AccountStatus(status)
    except ValueError as exc:
        raise ValidationError(f"Invalid account status: {status!r}", details={"status": str(status)}) from exc

    account = get_account(account_id)
    account.status = status.value
    account.updated_by = updated_by
    db.session.commit()
    return account


def soft_delete_account(account_id: int, *, updated_by: int | None = None) -> Account:
    """Accounts are never hard-deleted; flag it and mark it Inactive."""
    account = get_account(account_id)
    account.is_deleted = True
    account.status = AccountStatus.INACTIVE.value
    account.updated_by = updated_by
    db.session.commit()
    return account
