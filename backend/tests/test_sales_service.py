# Overview: Pytest coverage for the sale orchestrator.

"""
Sale Orchestrator Tests

Amounts are in cents: a unit price of 8.00 is 800.

Covers:
- Cash sale, credit/partial sale, insufficient stock
- All-or-nothing: a failure after inventory moved leaves no trace
- Totals reconciliation, tax and discount facts, discount credit policy
- Lazy account provisioning, document numbering, receipts and audit
- Serialized sales
"""

import os

import pytest

from ledgerpos.errors import (
    DuplicateSerialError,
    InsufficientStockError,
    InvalidTotalsError,
    ProductNotFoundError,
    SerialCountMismatchError,
    UnbalancedEntryError,
    ValidationError,
)
from ledgerpos.models import (
    Account,
    AuditEvent,
    DocumentSequence,
    InventoryBatch,
    InventoryRecord,
    InventoryUnit,
    LedgerEntry,
    Payment,
    SaleLine,
    SaleTransaction,
    TransactionType,
)
from ledgerpos.services import ledger_service, receipt_service, sales_service
from ledgerpos.services.sales_service import SaleLineRequest, SaleRequest, SaleState


def _pairs(entries):
    """[(debit account, credit account, amount)] in posting order."""
    groups = {}
    for entry in entries:
        groups.setdefault(entry.entry_group_id, {})[entry.entry_type] = entry
    ordered = sorted(groups.values(), key=lambda g: g["debit"].id)
    return [(g["debit"].account, g["credit"].account, g["debit"].amount_cents) for g in ordered]


def _entries_for(db_session, transaction_id):
    return (
        db_session.query(LedgerEntry)
        .filter(LedgerEntry.transaction_id == transaction_id)
        .order_by(LedgerEntry.id.asc())
        .all()
    )


def _batch_qty(db_session, batch_id):
    return db_session.query(InventoryBatch.quantity).filter(InventoryBatch.id == batch_id).scalar()


class TestSaleScenarios:

    def test_cash_sale_full_payment(self, db_session, company, batch, sell):
        """4 @ 8.00 paid 32.00 in cash."""
        result = sell(company, batch, 4, 800, 3200)

        assert result.state == SaleState.COMMITTED
        assert _batch_qty(db_session, batch.id) == 6

        sale = result.sale
        assert sale.subtotal_cents == 3200
        assert sale.total_payable_cents == 3200
        assert sale.change_given_cents == 0
        assert db_session.query(SaleTransaction).count() == 1

        entries = _entries_for(db_session, sale.transaction_number)
        assert _pairs(entries) == [("Cash/Bank", "Sales Revenue", 3200)]

        payment = result.payment
        assert payment.status == "Completed"
        assert payment.amount_cents == 3200
        assert payment.entry_group_id == entries[0].entry_group_id

    def test_partial_payment_is_credit_sale(self, db_session, company, batch, sell):
        """4 @ 8.00, paid 10.00: the rest stays receivable."""
        result = sell(company, batch, 4, 800, 1000)

        entries = _entries_for(db_session, result.sale.transaction_number)
        assert len(entries) == 4
        assert _pairs(entries) == [
            ("Accounts Receivable", "Sales Revenue", 3200),
            ("Cash/Bank", "Accounts Receivable", 1000),
        ]
        assert entries[2].transaction_type == TransactionType.PAYMENT.value

        payment = result.payment
        assert payment.status == "Pending"
        assert payment.amount_cents == 1000
        assert payment.entry_group_id == entries[2].entry_group_id

    def test_insufficient_stock_creates_nothing(self, db_session, company, batch, sell):
        """15 requested from a batch of 10."""
        with pytest.raises(InsufficientStockError) as exc_info:
            sell(company, batch, 15, 800, 12000)

        assert exc_info.value.available == 10
        assert _batch_qty(db_session, batch.id) == 10
        assert db_session.query(SaleTransaction).count() == 0
        assert db_session.query(LedgerEntry).count() == 0
        assert db_session.query(Payment).count() == 0

    def test_credit_sale_without_payment(self, db_session, company, batch, sell):
        result = sell(company, batch, 2, 800, 0)

        assert _pairs(result.entries) == [("Accounts Receivable", "Sales Revenue", 1600)]
        assert result.payment.status == "Pending"
        assert result.payment.entry_group_id is None

    def test_overpayment_records_change(self, db_session, company, batch, sell):
        result = sell(company, batch, 4, 800, 5000)

        assert result.sale.change_given_cents == 1800
        assert result.payment.amount_cents == 5000
        assert result.payment.change_cents == 1800
        assert result.payment.status == "Completed"
        assert _pairs(result.entries) == [("Cash/Bank", "Sales Revenue", 3200)]


class TestAtomicity:

    def test_failure_after_decrement_rolls_everything_back(self, db_session, company, batch, sell, monkeypatch, caplog):
        real_post = sales_service.post_double_entry

        def failing_post(fact):
            if fact.transaction_type == TransactionType.TAX:
                raise UnbalancedEntryError(debit_amount=fact.debit_amount, credit_amount=fact.credit_amount + 1)
            return real_post(fact)

        monkeypatch.setattr(sales_service, "post_double_entry", failing_post)

        with pytest.raises(UnbalancedEntryError):
            sell(company, batch, 4, 800, 3300, tax_cents=100)

        assert _batch_qty(db_session, batch.id) == 10
        record_total = (
            db_session.query(InventoryRecord.total_quantity)
            .filter(InventoryRecord.id == batch.record_id)
            .scalar()
        )
        assert record_total == 10
        assert db_session.query(SaleTransaction).count() == 0
        assert db_session.query(SaleLine).count() == 0
        assert db_session.query(LedgerEntry).count() == 0
        assert db_session.query(Payment).count() == 0
        assert db_session.query(DocumentSequence).count() == 0
        assert "Sale aborted at INVENTORY_RESERVED" in caplog.text

    def test_aborted_sale_does_not_burn_a_number(self, db_session, company, batch, sell):
        with pytest.raises(InsufficientStockError):
            sell(company, batch, 50, 800, 40000)

        result = sell(company, batch, 1, 800, 800)
        assert result.sale.transaction_number == f"POS-{company.id:03d}-0001"

    def test_second_line_shortfall_keeps_first_line_stock(self, db_session, company, product, batch):
        from ledgerpos.services import inventory_service

        small = inventory_service.receive_batch(company.id, product.id, None, "B-SMALL", 1, 500, 800, post_purchase=False)
        request = SaleRequest(
            company_id=company.id,
            lines=[
                SaleLineRequest(product_id=product.id, batch_id=batch.id, quantity=4, unit_price_cents=800),
                SaleLineRequest(product_id=product.id, batch_id=small.id, quantity=2, unit_price_cents=800),
            ],
            paid_amount_cents=4800,
        )

        with pytest.raises(InsufficientStockError):
            sales_service.execute_sale(request)

        assert _batch_qty(db_session, batch.id) == 10
        assert _batch_qty(db_session, small.id) == 1
        assert ledger_service.find_unbalanced_groups(company.id) == []


class TestTotals:

    def test_mismatched_total_rejected_before_mutation(self, db_session, company, batch, sell):
        with pytest.raises(InvalidTotalsError) as exc_info:
            sell(company, batch, 4, 800, 3200, total_payable_cents=3000)

        assert exc_info.value.expected == 3200
        assert exc_info.value.given == 3000
        assert _batch_qty(db_session, batch.id) == 10

    def test_mismatched_subtotal_rejected(self, db_session, company, batch, sell):
        with pytest.raises(InvalidTotalsError):
            sell(company, batch, 4, 800, 3200, subtotal_cents=3100)

    def test_discount_larger_than_sale_rejected(self, db_session, company, batch, sell):
        with pytest.raises(InvalidTotalsError):
            sell(company, batch, 1, 800, 0, discount_cents=900)

    def test_negative_tax_rejected(self, db_session, company, batch, sell):
        with pytest.raises(ValidationError):
            sell(company, batch, 1, 800, 800, tax_cents=-1)

    def test_unknown_payment_method_rejected(self, db_session, company, batch, sell):
        with pytest.raises(ValidationError):
            sell(company, batch, 1, 800, 800, payment_method="Barter")

    def test_tax_and_discount_facts_in_order(self, db_session, company, batch, sell):
        # subtotal 32.00 - discount 2.00 + tax 1.00 = 31.00
        result = sell(company, batch, 4, 800, 3100, discount_cents=200, tax_cents=100, total_payable_cents=3100)

        assert _pairs(result.entries) == [
            ("Cash/Bank", "Sales Revenue", 3200),
            ("Cash/Bank", "Tax Payable", 100),
            ("Discount Expense", "Cash/Bank", 200),
        ]
        assert [e.transaction_type for e in result.entries[::2]] == ["Sale", "Tax", "Discount"]

    def test_discount_on_credit_sale_credits_receivable(self, db_session, company, batch, sell):
        result = sell(company, batch, 4, 800, 1000, discount_cents=200)

        assert _pairs(result.entries) == [
            ("Accounts Receivable", "Sales Revenue", 3200),
            ("Discount Expense", "Accounts Receivable", 200),
            ("Cash/Bank", "Accounts Receivable", 1000),
        ]

    def test_revenue_discount_policy(self, app, db_session, company, batch, sell, monkeypatch):
        monkeypatch.setitem(app.config, "DISCOUNT_CREDIT_POLICY", "revenue")

        result = sell(company, batch, 4, 800, 3000, discount_cents=200)

        assert ("Discount Expense", "Sales Revenue", 200) in _pairs(result.entries)

    def test_unknown_discount_policy_rejected(self, app, db_session, company, batch, sell, monkeypatch):
        monkeypatch.setitem(app.config, "DISCOUNT_CREDIT_POLICY", "whatever")

        with pytest.raises(ValidationError):
            sell(company, batch, 1, 800, 800)
        assert _batch_qty(db_session, batch.id) == 10


class TestCatalogAndAccounts:

    def test_unknown_product(self, db_session, company, batch):
        request = SaleRequest(
            company_id=company.id,
            lines=[SaleLineRequest(product_id=99999, batch_id=batch.id, quantity=1, unit_price_cents=800)],
            paid_amount_cents=800,
        )
        with pytest.raises(ProductNotFoundError):
            sales_service.execute_sale(request)

    def test_product_of_other_company(self, db_session, other_company, batch, sell):
        with pytest.raises(ProductNotFoundError):
            sell(other_company, batch, 1, 800, 800)
        assert _batch_qty(db_session, batch.id) == 10

    def test_linked_customer_gets_account_once(self, db_session, company, batch, customer, sell):
        first = sell(company, batch, 1, 800, 0, linked_entity_id=customer.id)
        second = sell(company, batch, 1, 800, 800, linked_entity_id=customer.id)

        accounts = db_session.query(Account).filter_by(entity_id=customer.id, company_id=company.id).all()
        assert len(accounts) == 1
        assert accounts[0].status == "Active"
        assert first.sale.account_id == second.sale.account_id == accounts[0].id
        assert all(e.account_id == accounts[0].id for e in first.entries + second.entries)

    def test_document_numbers_sequential_per_company(self, db_session, company, batch, sell):
        numbers = [sell(company, batch, 1, 800, 800).sale.transaction_number for _ in range(3)]
        assert numbers == [f"POS-{company.id:03d}-{n:04d}" for n in (1, 2, 3)]


class TestPostCommitEffects:

    def test_receipt_written(self, db_session, company, batch, sell):
        result = sell(company, batch, 2, 800, 2000)

        assert result.receipt_path is not None
        assert os.path.exists(result.receipt_path)
        with open(result.receipt_path, encoding="utf-8") as fh:
            body = fh.read()
        assert result.sale.transaction_number in body
        assert "Widget (WID-001)" in body
        assert "Change:     4.00" in body

    def test_receipt_failure_keeps_sale(self, db_session, company, batch, sell, monkeypatch, caplog):
        def broken_render(template, data):
            raise OSError("printer on fire")

        monkeypatch.setattr(receipt_service, "render", broken_render)

        result = sell(company, batch, 2, 800, 1600)

        assert result.state == SaleState.COMMITTED
        assert result.receipt_path is None
        assert db_session.query(SaleTransaction).count() == 1
        assert _batch_qty(db_session, batch.id) == 8
        assert "Receipt rendering failed" in caplog.text

    def test_receipts_disabled(self, app, db_session, company, batch, sell, monkeypatch):
        monkeypatch.setitem(app.config, "RECEIPTS_ENABLED", False)
        assert sell(company, batch, 1, 800, 800).receipt_path is None

    def test_audit_event_recorded(self, db_session, company, batch, sell):
        result = sell(company, batch, 1, 800, 800, created_by=7)

        event = db_session.query(AuditEvent).filter_by(entity_type="SaleTransaction").one()
        assert event.action_type == "Create"
        assert event.entity_id == result.sale.id
        assert event.actor_id == 7
        assert event.payload["transaction_number"] == result.sale.transaction_number

    def test_workflow_history(self, db_session, company, batch, sell):
        result = sell(company, batch, 1, 800, 800)
        assert result.workflow.history == [
            SaleState.VALIDATING,
            SaleState.INVENTORY_RESERVED,
            SaleState.LEDGER_POSTED,
            SaleState.PAYMENT_RECORDED,
            SaleState.COMMITTED,
        ]


class TestSerializedSales:

    def test_units_marked_sold(self, db_session, company, serialized_batch, sell):
        result = sell(company, serialized_batch, 2, 30000, 60000, serial_numbers=["SN-1", "SN-3"])

        units = {u.serial_number: u for u in db_session.query(InventoryUnit).all()}
        assert units["SN-1"].status == "Sold" and units["SN-1"].sale_id == result.sale.id
        assert units["SN-3"].status == "Sold"
        assert units["SN-2"].status == "In Stock"
        assert result.sale.lines[0].serial_numbers == ["SN-1", "SN-3"]
        assert _batch_qty(db_session, serialized_batch.id) == 1

    def test_serial_count_must_match_quantity(self, db_session, company, serialized_batch, sell):
        with pytest.raises(SerialCountMismatchError):
            sell(company, serialized_batch, 2, 30000, 60000, serial_numbers=["SN-1"])
        assert _batch_qty(db_session, serialized_batch.id) == 3

    def test_duplicate_serial_in_request(self, db_session, company, serialized_batch, sell):
        with pytest.raises(DuplicateSerialError):
            sell(company, serialized_batch, 2, 30000, 60000, serial_numbers=["SN-1", "SN-1"])
        assert _batch_qty(db_session, serialized_batch.id) == 3

    def test_already_sold_serial_rolls_back(self, db_session, company, serialized_batch, sell):
        sell(company, serialized_batch, 1, 30000, 30000, serial_numbers=["SN-2"])

        with pytest.raises(DuplicateSerialError):
            sell(company, serialized_batch, 1, 30000, 30000, serial_numbers=["SN-2"])

        assert _batch_qty(db_session, serialized_batch.id) == 2
        assert db_session.query(SaleTransaction).count() == 1

    def test_unregistered_serial_rejected_when_batch_fully_registered(self, db_session, company, serialized_batch, sell):
        with pytest.raises(ValidationError):
            sell(company, serialized_batch, 1, 30000, 30000, serial_numbers=["SN-404"])

        assert _batch_qty(db_session, serialized_batch.id) == 3
        assert db_session.query(InventoryUnit).filter_by(serial_number="SN-404").count() == 0

    def test_serials_on_plain_product_rejected(self, db_session, company, batch, sell):
        with pytest.raises(ValidationError):
            sell(company, batch, 1, 800, 800, serial_numbers=["X-1"])
