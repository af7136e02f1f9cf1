# Overview: HTTP-level tests for the JSON API.

from ledgerpos.models import InventoryBatch


def _sale_body(company, batch, quantity=4, unit_price=800, paid=3200, **extra):
    body = {
        "company_id": company.id,
        "lines": [
            {
                "product_id": batch.product_id,
                "batch_id": batch.id,
                "quantity": quantity,
                "unit_price_cents": unit_price,
            }
        ],
        "paid_amount_cents": paid,
        "payment_method": "Cash",
    }
    body.update(extra)
    return body


class TestHealth:

    def test_health_ok(self, client, db_session):
        response = client.get("/health")

        assert response.status_code == 200
        data = response.get_json()
        assert data["status"] == "ok"
        assert data["checks"]["database"]["status"] == "healthy"
        assert data["timestamp"].endswith("Z")


class TestSalesApi:

    def test_create_sale(self, client, db_session, company, batch):
        response = client.post("/api/sales", json=_sale_body(company, batch))

        assert response.status_code == 201
        data = response.get_json()
        assert data["state"] == "COMMITTED"
        assert data["sale"]["transaction_number"] == f"POS-{company.id:03d}-0001"
        assert data["sale"]["total_payable_cents"] == 3200
        assert len(data["ledger_entries"]) == 2
        assert data["payment"]["status"] == "Completed"

        db_session.expire_all()
        assert db_session.get(InventoryBatch, batch.id).quantity == 6

    def test_insufficient_stock(self, client, db_session, company, batch):
        response = client.post("/api/sales", json=_sale_body(company, batch, quantity=11, paid=8800))

        assert response.status_code == 400
        data = response.get_json()
        assert data["type"] == "InsufficientStockError"
        assert data["details"]["shortfall"] == 1

    def test_decimal_amount_rejected(self, client, db_session, company, batch):
        response = client.post("/api/sales", json=_sale_body(company, batch, paid="12.5"))

        assert response.status_code == 400
        assert response.get_json()["details"]["field"] == "paid_amount_cents"

    def test_missing_lines(self, client, db_session, company):
        response = client.post("/api/sales", json={"company_id": company.id, "paid_amount_cents": 0})
        assert response.status_code == 400

    def test_unknown_product_is_404(self, client, db_session, company, batch):
        body = _sale_body(company, batch)
        body["lines"][0]["product_id"] = 99999
        response = client.post("/api/sales", json=body)
        assert response.status_code == 404

    def test_get_sale(self, client, db_session, company, batch):
        sale_id = client.post("/api/sales", json=_sale_body(company, batch)).get_json()["sale"]["id"]

        response = client.get(f"/api/sales/{sale_id}?company_id={company.id}")

        assert response.status_code == 200
        sale = response.get_json()["sale"]
        assert sale["lines"][0]["quantity"] == 4
        assert len(sale["payments"]) == 1

    def test_get_sale_other_company(self, client, db_session, company, other_company, batch):
        sale_id = client.post("/api/sales", json=_sale_body(company, batch)).get_json()["sale"]["id"]
        response = client.get(f"/api/sales/{sale_id}?company_id={other_company.id}")
        assert response.status_code == 404

    def test_unknown_sale(self, client, db_session):
        response = client.get("/api/sales/99999")
        assert response.status_code == 404
        assert response.get_json()["error"] == "Sale not found"

    def test_list_sales(self, client, db_session, company, batch):
        client.post("/api/sales", json=_sale_body(company, batch, quantity=1, paid=800))
        client.post("/api/sales", json=_sale_body(company, batch, quantity=1, paid=800))

        data = client.get(f"/api/sales?company_id={company.id}").get_json()

        assert data["count"] == 2

    def test_list_sales_requires_company(self, client, db_session):
        assert client.get("/api/sales").status_code == 400


class TestReturnsApi:

    def test_return_round_trip(self, client, db_session, company, batch):
        sale_id = client.post("/api/sales", json=_sale_body(company, batch)).get_json()["sale"]["id"]

        response = client.post(
            "/api/returns",
            json={
                "company_id": company.id,
                "original_transaction_id": sale_id,
                "lines": [{"product_id": batch.product_id, "batch_id": batch.id, "quantity": 3}],
                "refund_method": "Cash",
            },
        )

        assert response.status_code == 201
        created = response.get_json()
        assert created["return"]["total_refund_cents"] == 2400
        assert created["payment"]["amount_cents"] == -2400

        fetched = client.get(f"/api/returns/{created['return']['id']}?company_id={company.id}")
        assert fetched.status_code == 200
        assert fetched.get_json()["return"]["original_transaction_id"] == sale_id

        listed = client.get(f"/api/returns?company_id={company.id}&original_transaction_id={sale_id}")
        assert listed.get_json()["count"] == 1

    def test_over_return_rejected(self, client, db_session, company, batch):
        sale_id = client.post("/api/sales", json=_sale_body(company, batch)).get_json()["sale"]["id"]

        response = client.post(
            "/api/returns",
            json={
                "company_id": company.id,
                "original_transaction_id": sale_id,
                "lines": [{"product_id": batch.product_id, "batch_id": batch.id, "quantity": 5}],
            },
        )

        assert response.status_code == 400
        assert response.get_json()["type"] == "InvalidReturnQuantityError"

    def test_unknown_return(self, client, db_session):
        assert client.get("/api/returns/99999").status_code == 404


class TestInventoryApi:

    def test_receive_and_list(self, client, db_session, company, product, vendor):
        response = client.post(
            "/api/inventory/batches",
            json={
                "company_id": company.id,
                "product_id": product.id,
                "vendor_id": vendor.id,
                "batch_code": "API-1",
                "quantity": 7,
                "purchase_price_cents": 450,
                "selling_price_cents": 900,
            },
        )

        assert response.status_code == 201
        assert response.get_json()["batch"]["quantity"] == 7

        data = client.get(f"/api/inventory/available?company_id={company.id}&include_batches=true").get_json()
        assert data["count"] == 1
        assert data["items"][0]["total_quantity"] == 7
        assert data["items"][0]["batches"][0]["batch_code"] == "API-1"

    def test_receive_requires_batch_code(self, client, db_session, company, product):
        response = client.post(
            "/api/inventory/batches",
            json={
                "company_id": company.id,
                "product_id": product.id,
                "quantity": 1,
                "purchase_price_cents": 1,
                "selling_price_cents": 1,
            },
        )
        assert response.status_code == 400


class TestLedgerApi:

    def test_entries_balance_and_summary(self, client, db_session, company, batch, customer):
        sale = client.post(
            "/api/sales",
            json=_sale_body(company, batch, paid=1000, linked_entity_id=customer.id),
        ).get_json()

        entries = client.get(f"/api/ledger/entries?company_id={company.id}&account=Cash/Bank").get_json()
        assert entries["count"] == 1
        assert entries["entries"][0]["amount_cents"] == 1000

        balance = client.get(f"/api/ledger/accounts/{sale['account_id']}/balance").get_json()["balance"]
        assert balance["balance"] == 2200

        summary = client.get(f"/api/ledger/summary?company_id={company.id}").get_json()["summary"]
        assert summary["total_sales_cents"] == 3200
        assert summary["receivables_cents"] == 2200
        assert summary["by_account"]["Sales Revenue"]["credit"] == 3200

    def test_unknown_filter_value(self, client, db_session, company):
        response = client.get(f"/api/ledger/entries?company_id={company.id}&entry_type=sideways")
        assert response.status_code == 400

    def test_unknown_account_balance(self, client, db_session):
        assert client.get("/api/ledger/accounts/99999/balance").status_code == 404


class TestExpensesAndPaymentsApi:

    def test_expense(self, client, db_session, company):
        response = client.post(
            "/api/expenses",
            json={"company_id": company.id, "description": "Shop rent", "amount_cents": 45000},
        )

        assert response.status_code == 201
        assert response.get_json()["expense"]["expense_number"] == f"EXP-{company.id:03d}-0001"

        listed = client.get(f"/api/expenses?company_id={company.id}").get_json()
        assert listed["count"] == 1

    def test_expense_unknown_account(self, client, db_session, company):
        response = client.post(
            "/api/expenses",
            json={
                "company_id": company.id,
                "description": "Shop rent",
                "amount_cents": 100,
                "debit_account": "Petty Cash",
            },
        )
        assert response.status_code == 400

    def test_payment(self, client, db_session, company, batch):
        sale_id = client.post("/api/sales", json=_sale_body(company, batch, paid=1000)).get_json()["sale"]["id"]

        response = client.post(
            "/api/payments",
            json={"company_id": company.id, "sale_id": sale_id, "amount_cents": 2200},
        )

        assert response.status_code == 201
        assert response.get_json()["payment"]["status"] == "Completed"

        overpay = client.post(
            "/api/payments",
            json={"company_id": company.id, "sale_id": sale_id, "amount_cents": 1},
        )
        assert overpay.status_code == 400

        listed = client.get(f"/api/payments?company_id={company.id}&sale_id={sale_id}").get_json()
        assert listed["count"] == 2
