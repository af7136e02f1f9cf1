# Overview: Pytest coverage for the post-commit audit sink.

import pytest
from sqlalchemy.exc import OperationalError

from ledgerpos.extensions import db
from ledgerpos.models import AuditEvent
from ledgerpos.services import audit_service


@pytest.fixture
def locked_commits(db_session, monkeypatch):
    """Make the next N commits fail with a lock error, then commit normally."""
    real_commit = db.session.commit
    state = {"remaining": 0, "calls": 0}

    def flaky_commit():
        state["calls"] += 1
        if state["remaining"] > 0:
            state["remaining"] -= 1
            raise OperationalError("COMMIT", {}, Exception("database is locked"))
        return real_commit()

    monkeypatch.setattr(db.session, "commit", flaky_commit)
    return state


class TestNotify:

    def test_event_persisted(self, db_session, company):
        event = audit_service.notify(company.id, "Create", "Product", 7, payload={"sku": "W-1"})

        assert event.id is not None
        stored = audit_service.list_events(company.id)
        assert [(e.entity_type, e.entity_id, e.payload) for e in stored] == [("Product", 7, {"sku": "W-1"})]

    def test_event_survives_one_locked_commit(self, db_session, company, locked_commits):
        locked_commits["remaining"] = 1

        event = audit_service.notify(company.id, "Update", "Sale", 42)

        assert locked_commits["calls"] == 2
        assert event is not None
        assert event.id is not None
        assert db_session.query(AuditEvent).filter_by(company_id=company.id, entity_id=42).count() == 1

    def test_persistent_lock_logged_and_swallowed(self, db_session, company, locked_commits, caplog):
        locked_commits["remaining"] = 3

        assert audit_service.notify(company.id, "Delete", "Expense", 5) is None
        assert locked_commits["calls"] == 3
        assert "Audit notification failed" in caplog.text
        assert db_session.query(AuditEvent).count() == 0

    def test_unknown_action_ignored(self, db_session, company, caplog):
        assert audit_service.notify(company.id, "Archive", "Sale", 1) is None
        assert "unknown action" in caplog.text
        assert db_session.query(AuditEvent).count() == 0

    def test_disabled_by_config(self, app, db_session, company, monkeypatch):
        monkeypatch.setitem(app.config, "AUDIT_ENABLED", False)
        assert audit_service.notify(company.id, "Create", "Sale", 1) is None
        assert db_session.query(AuditEvent).count() == 0


class TestListEvents:

    def test_newest_first_filtered_by_entity_type(self, db_session, company, other_company):
        audit_service.notify(company.id, "Create", "Sale", 1)
        audit_service.notify(company.id, "Create", "Return", 1)
        audit_service.notify(company.id, "Update", "Sale", 1)
        audit_service.notify(other_company.id, "Create", "Sale", 9)

        events = audit_service.list_events(company.id, entity_type="Sale")

        assert [e.action_type for e in events] == ["Update", "Create"]
        assert len(audit_service.list_events(company.id, limit=1)) == 1
