# Overview: Pytest coverage for the batch inventory store.

"""
Inventory Store Tests

Covers the conditional decrement, restore, FIFO availability listing,
receiving (with and without purchase posting), serialized unit
registration, and the total_quantity == SUM(batch.quantity) audit helpers.
"""

import pytest
from sqlalchemy import update

from ledgerpos.errors import (
    BatchNotFoundError,
    DuplicateSerialError,
    InsufficientStockError,
    SerialCountMismatchError,
    ValidationError,
)
from ledgerpos.models import (
    Account,
    InventoryBatch,
    InventoryRecord,
    InventoryUnit,
    LedgerEntry,
    UnitStatus,
)
from ledgerpos.services import inventory_service


def _batch_qty(db_session, batch_id):
    return db_session.query(InventoryBatch.quantity).filter(InventoryBatch.id == batch_id).scalar()


def _record_total(db_session, record_id):
    return db_session.query(InventoryRecord.total_quantity).filter(InventoryRecord.id == record_id).scalar()


class TestReserveAndDecrement:

    def test_decrements_batch_and_record_total(self, db_session, company, product, batch):
        remaining = inventory_service.reserve_and_decrement(company.id, product.id, batch.id, 4)
        db_session.commit()

        assert remaining == 6
        assert _batch_qty(db_session, batch.id) == 6
        assert _record_total(db_session, batch.record_id) == 6

    def test_exact_quantity_empties_batch(self, db_session, company, product, batch):
        remaining = inventory_service.reserve_and_decrement(company.id, product.id, batch.id, 10)
        assert remaining == 0
        assert _batch_qty(db_session, batch.id) == 0

    def test_insufficient_stock_leaves_batch_untouched(self, db_session, company, product, batch):
        with pytest.raises(InsufficientStockError) as exc_info:
            inventory_service.reserve_and_decrement(company.id, product.id, batch.id, 15)

        err = exc_info.value
        assert err.requested == 15
        assert err.available == 10
        assert err.details["shortfall"] == 5
        assert err.details["batch_id"] == batch.id
        assert _batch_qty(db_session, batch.id) == 10
        assert _record_total(db_session, batch.record_id) == 10

    def test_batch_of_other_product_not_found(self, db_session, company, serialized_product, batch):
        with pytest.raises(BatchNotFoundError):
            inventory_service.reserve_and_decrement(company.id, serialized_product.id, batch.id, 1)

    def test_batch_of_other_company_not_found(self, db_session, other_company, product, batch):
        with pytest.raises(BatchNotFoundError):
            inventory_service.reserve_and_decrement(other_company.id, product.id, batch.id, 1)

    @pytest.mark.parametrize("quantity", [0, -3])
    def test_non_positive_quantity_rejected(self, db_session, company, product, batch, quantity):
        with pytest.raises(ValidationError):
            inventory_service.reserve_and_decrement(company.id, product.id, batch.id, quantity)


class TestRestore:

    def test_restore_increments_batch_and_record(self, db_session, company, product, batch):
        inventory_service.reserve_and_decrement(company.id, product.id, batch.id, 4)
        new_quantity = inventory_service.restore(company.id, product.id, batch.id, 3)
        db_session.commit()

        assert new_quantity == 9
        assert _batch_qty(db_session, batch.id) == 9
        assert _record_total(db_session, batch.record_id) == 9

    def test_restore_unknown_batch(self, db_session, company, product):
        with pytest.raises(BatchNotFoundError):
            inventory_service.restore(company.id, product.id, 99999, 1)

    def test_restore_requires_positive_quantity(self, db_session, company, product, batch):
        with pytest.raises(ValidationError):
            inventory_service.restore(company.id, product.id, batch.id, 0)


class TestFindAvailable:

    def test_aggregates_per_product_without_batches(self, db_session, company, product, batch):
        items = inventory_service.find_available(company.id)

        assert len(items) == 1
        assert items[0]["product_id"] == product.id
        assert items[0]["total_quantity"] == 10
        assert "batches" not in items[0]

    def test_batches_fifo_and_zero_quantity_excluded(self, db_session, company, product, batch):
        second = inventory_service.receive_batch(company.id, product.id, None, "B-002", 5, 550, 850, post_purchase=False)
        third = inventory_service.receive_batch(company.id, product.id, None, "B-003", 2, 560, 860, post_purchase=False)
        inventory_service.reserve_and_decrement(company.id, product.id, second.id, 5)
        db_session.commit()

        items = inventory_service.find_available(company.id, include_batches=True)

        assert items[0]["total_quantity"] == 12
        codes = [b["batch_code"] for b in items[0]["batches"]]
        assert codes == ["B-001", "B-003"]
        assert items[0]["batches"][1]["id"] == third.id

    def test_other_company_sees_nothing(self, db_session, other_company, batch):
        assert inventory_service.find_available(other_company.id, include_batches=True) == []

    def test_empty_product_omitted(self, db_session, company, product, batch):
        inventory_service.reserve_and_decrement(company.id, product.id, batch.id, 10)
        db_session.commit()
        assert inventory_service.find_available(company.id) == []


class TestReceiveBatch:

    def test_purchase_posted_against_vendor_account(self, db_session, company, product, vendor):
        batch = inventory_service.receive_batch(company.id, product.id, vendor.id, "V-001", 4, 500, 800)

        entries = db_session.query(LedgerEntry).filter(LedgerEntry.company_id == company.id).all()
        assert len(entries) == 2
        debit = next(e for e in entries if e.entry_type == "debit")
        credit = next(e for e in entries if e.entry_type == "credit")
        assert debit.account == "Inventory"
        assert credit.account == "Vendor Payable"
        assert debit.amount_cents == credit.amount_cents == 2000
        assert debit.transaction_type == "Purchase"
        assert debit.transaction_id.startswith("RCV-")

        account = db_session.query(Account).filter_by(entity_id=vendor.id, company_id=company.id).one()
        assert account.entity_type == "Vendor"
        assert debit.account_id == account.id
        assert batch.quantity == 4

    def test_second_batch_appends_to_same_record(self, db_session, company, product, batch):
        second = inventory_service.receive_batch(company.id, product.id, None, "B-002", 5, 500, 800, post_purchase=False)

        assert second.record_id == batch.record_id
        assert _record_total(db_session, batch.record_id) == 15
        assert db_session.query(InventoryBatch).filter_by(record_id=batch.record_id).count() == 2

    def test_duplicate_batch_code_rejected(self, db_session, company, product, batch):
        with pytest.raises(ValidationError):
            inventory_service.receive_batch(company.id, product.id, None, "B-001", 5, 500, 800, post_purchase=False)
        assert _record_total(db_session, batch.record_id) == 10

    def test_serialized_registers_in_stock_units(self, db_session, serialized_batch):
        units = db_session.query(InventoryUnit).filter_by(batch_id=serialized_batch.id).all()

        assert sorted(u.serial_number for u in units) == ["SN-1", "SN-2", "SN-3"]
        assert all(u.status == UnitStatus.IN_STOCK.value for u in units)

    def test_serialized_requires_matching_serial_count(self, db_session, company, serialized_product):
        with pytest.raises(SerialCountMismatchError):
            inventory_service.receive_batch(
                company.id, serialized_product.id, None, "PB-X", 2, 100, 200,
                serial_numbers=["SN-9"], post_purchase=False,
            )

    def test_already_registered_serial_rejected(self, db_session, company, serialized_product, serialized_batch):
        with pytest.raises(DuplicateSerialError):
            inventory_service.receive_batch(
                company.id, serialized_product.id, None, "PB-002", 1, 100, 200,
                serial_numbers=["SN-2"], post_purchase=False,
            )
        assert db_session.query(InventoryBatch).filter_by(batch_code="PB-002").count() == 0

    def test_serials_on_plain_product_rejected(self, db_session, company, product):
        with pytest.raises(ValidationError):
            inventory_service.receive_batch(
                company.id, product.id, None, "B-X", 1, 100, 200, serial_numbers=["X"], post_purchase=False
            )


class TestInventoryAudit:

    def test_get_inventory_record_by_vendor(self, db_session, company, other_company, product, vendor, batch):
        record = inventory_service.get_inventory_record(company.id, product.id)
        assert record.id == batch.record_id

        assert inventory_service.get_inventory_record(company.id, product.id, vendor.id) is None
        assert inventory_service.get_inventory_record(other_company.id, product.id) is None

    def test_verify_consistent_record(self, db_session, batch):
        check = inventory_service.verify_inventory_record(batch.record_id)
        assert check["consistent"] is True
        assert check["total_quantity"] == check["batch_sum"] == 10

    def test_recompute_repairs_drift(self, db_session, batch):
        db_session.execute(
            update(InventoryRecord).where(InventoryRecord.id == batch.record_id).values(total_quantity=99)
        )
        db_session.commit()
        assert inventory_service.verify_inventory_record(batch.record_id)["consistent"] is False

        record = inventory_service.recompute_total_quantity(batch.record_id)

        assert record.total_quantity == 10
        assert inventory_service.verify_inventory_record(batch.record_id)["consistent"] is True

    def test_inventory_value_at_purchase_price(self, db_session, company, product, batch):
        inventory_service.receive_batch(company.id, product.id, None, "B-002", 2, 600, 900, post_purchase=False)
        assert inventory_service.inventory_value_cents(company.id) == 10 * 500 + 2 * 600
