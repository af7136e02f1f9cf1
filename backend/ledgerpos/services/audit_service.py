# Overview: Audit sink; post-commit Create/Update/Delete notifications.

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import AuditEvent
from .concurrency import run_with_retry

AUDIT_ACTIONS = {"Create", "Update", "Delete"}


def notify(
    company_id: int,
    action_type: str,
    entity_type: str,
    entity_id: int,
    actor_id: int | None = None,
    payload: dict | None = None,
) -> AuditEvent | None:
    """
    Fire-and-forget audit record.

    Called only after the business transaction has committed. Writes the
    event in its own short transaction; any failure is logged and swallowed
    so it can never affect the financial result it describes.
    """
    if not current_app.config.get("AUDIT_ENABLED", True):
        return None
    if action_type not in AUDIT_ACTIONS:
        current_app.logger.warning("Ignoring audit event with unknown action %r", action_type)
        return None

    event = AuditEvent(
        company_id=company_id,
        action_type=action_type,
        entity_type=entity_type,
        entity_id=entity_id,
        actor_id=actor_id,
        payload=payload,
    )

    # A failed commit rolls back and expunges the pending event, so each
    # attempt has to add it again.
    def _op():
        db.session.add(event)
        db.session.commit()

    try:
        run_with_retry(_op)
        return event
    except Exception:
        db.session.rollback()
        current_app.logger.exception(
            "Audit notification failed: %s %s %s (company %s)",
            action_type, entity_type, entity_id, company_id,
        )
        return None


def list_events(company_id: int, *, entity_type: str | None = None, limit: int = 100) -> list[AuditEvent]:
    query = db.session.query(AuditEvent).filter(AuditEvent.company_id == company_id)
    if entity_type:
        query = query.filter(AuditEvent.entity_type == entity_type)
    return query.order_by(AuditEvent.id.desc()).limit(limit).all()
