# Overview: Pytest coverage for the account directory and catalog guards.

import pytest

from ledgerpos.errors import (
    AccountNotFoundError,
    EntityNotFoundError,
    ProductNotFoundError,
    ReferentialIntegrityError,
    ValidationError,
)
from ledgerpos.models import Account, EntityType
from ledgerpos.services import account_service, catalog_service


class TestFindOrCreateAccount:

    def test_creates_active_account(self, db_session, company, customer):
        account = account_service.find_or_create_account(customer.id, company.id, role=EntityType.CUSTOMER)
        db_session.commit()

        assert account.id is not None
        assert account.status == "Active"
        assert account.entity_type == "Customer"

    def test_idempotent(self, db_session, company, customer):
        first = account_service.find_or_create_account(customer.id, company.id)
        second = account_service.find_or_create_account(customer.id, company.id)
        db_session.commit()

        assert first.id == second.id
        assert db_session.query(Account).count() == 1

    def test_role_widened_to_both(self, db_session, company, customer):
        account_service.find_or_create_account(customer.id, company.id, role="Customer")
        account = account_service.find_or_create_account(customer.id, company.id, role="Vendor")
        db_session.commit()

        assert account.entity_type == "Both"

    def test_unique_race_falls_back_to_existing_row(self, db_session, company, customer, monkeypatch):
        existing = account_service.find_or_create_account(customer.id, company.id)
        db_session.commit()

        # Simulate losing the race: the lookup misses, the insert hits the unique constraint
        calls = {"n": 0}
        real_find = account_service._find_account

        def racing_find(entity_id, company_id):
            calls["n"] += 1
            if calls["n"] == 1:
                return None
            return real_find(entity_id, company_id)

        monkeypatch.setattr(account_service, "_find_account", racing_find)

        account = account_service.find_or_create_account(customer.id, company.id)

        assert account.id == existing.id
        assert calls["n"] == 2

    def test_unknown_entity(self, db_session, company):
        with pytest.raises(EntityNotFoundError):
            account_service.find_or_create_account(99999, company.id)

    def test_entity_of_other_company(self, db_session, other_company, customer):
        with pytest.raises(EntityNotFoundError):
            account_service.find_or_create_account(customer.id, other_company.id)


class TestAccountStatus:

    def test_set_status(self, db_session, company, customer):
        account = account_service.find_or_create_account(customer.id, company.id)
        db_session.commit()

        assert account_service.set_account_status(account.id, "Suspended").status == "Suspended"

    def test_invalid_status(self, db_session, company, customer):
        account = account_service.find_or_create_account(customer.id, company.id)
        db_session.commit()

        with pytest.raises(ValidationError):
            account_service.set_account_status(account.id, "Frozen")

    def test_soft_delete_account(self, db_session, company, customer):
        account = account_service.find_or_create_account(customer.id, company.id)
        db_session.commit()

        deleted = account_service.soft_delete_account(account.id)

        assert deleted.is_deleted is True
        assert deleted.status == "Inactive"
        assert db_session.query(Account).count() == 1

    def test_missing_account(self, db_session):
        with pytest.raises(AccountNotFoundError):
            account_service.get_account(99999)


class TestEntityDeletion:

    def test_entity_without_history_can_be_deleted(self, db_session, company, customer):
        entity = account_service.soft_delete_entity(customer.id, company.id)
        assert entity.is_deleted is True
        with pytest.raises(EntityNotFoundError):
            account_service.get_entity(customer.id, company.id)

    def test_entity_with_ledger_history_is_protected(self, db_session, company, batch, customer, sell):
        sell(company, batch, 1, 800, 0, linked_entity_id=customer.id)

        with pytest.raises(ReferentialIntegrityError):
            account_service.soft_delete_entity(customer.id, company.id)
        assert account_service.get_entity(customer.id, company.id).is_deleted is False

    def test_create_entity_requires_name(self, db_session, company):
        with pytest.raises(ValidationError):
            account_service.create_entity(company_id=company.id, name="  ")


class TestCatalog:

    def test_get_product_scoped_by_company(self, db_session, other_company, product):
        with pytest.raises(ProductNotFoundError):
            catalog_service.get_product(other_company.id, product.id)

    def test_duplicate_sku_rejected(self, db_session, company, product):
        with pytest.raises(ValidationError):
            catalog_service.create_product(company_id=company.id, sku="WID-001", name="Another")

    def test_same_sku_in_other_company_allowed(self, db_session, other_company, product):
        other = catalog_service.create_product(company_id=other_company.id, sku="WID-001", name="Widget")
        assert other.id != product.id

    def test_price_basis_frozen_once_stocked(self, db_session, company, product, batch):
        with pytest.raises(ReferentialIntegrityError):
            catalog_service.update_product(company.id, product.id, {"unit_purchase_price_cents": 1})

        updated = catalog_service.update_product(company.id, product.id, {"name": "Widget Pro"})
        assert updated.name == "Widget Pro"
        assert updated.unit_purchase_price_cents == 500

    def test_unreferenced_product_fully_editable(self, db_session, company, product):
        updated = catalog_service.update_product(company.id, product.id, {"is_serialized": True})
        assert updated.is_serialized is True
