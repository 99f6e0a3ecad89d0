"""
HTTP-level tests: status codes, response envelopes and error mapping.
"""

import pytest

from bizledger.services import export_service


class TestHealth:

    def test_health_ok(self, client):
        response = client.get("/api/health")
        assert response.status_code == 200
        data = response.get_json()
        assert data["status"] == "ok"
        assert data["database"]["details"]["expenses"] == 0
        assert data["checked_at"].endswith("Z")

    def test_cors_for_allowed_origin(self, client):
        response = client.get("/api/health", headers={"Origin": "http://localhost:5173"})
        assert response.headers["Access-Control-Allow-Origin"] == "http://localhost:5173"

    def test_no_cors_for_other_origin(self, client):
        response = client.get("/api/health", headers={"Origin": "http://evil.example"})
        assert "Access-Control-Allow-Origin" not in response.headers


class TestExpenseRoutes:

    def test_create_pay_and_delete(self, client, categories, expense_payload):
        response = client.post("/api/expenses", json=expense_payload())
        assert response.status_code == 201
        expense = response.get_json()["expense"]
        assert expense["expense_number"] == "EXP-2024-001"
        assert expense["total_amount"] == 100.0

        response = client.post(f"/api/expenses/{expense['id']}/payments",
                               json={"amount": 60, "reference_number": "TRX-1"})
        assert response.status_code == 201
        body = response.get_json()
        assert body["expense"]["status"] == "Partial"
        assert body["expense"]["remaining_amount"] == 40.0

        response = client.delete(f"/api/expenses/payments/{body['payment']['id']}")
        assert response.status_code == 200
        assert response.get_json()["expense"]["paid_amount"] == 0.0

    def test_validation_error_is_400(self, client, categories):
        response = client.post("/api/expenses", json={"description": "No amount"})
        assert response.status_code == 400
        assert "Missing required fields" in response.get_json()["error"]

    def test_missing_body_is_400(self, client, categories):
        response = client.post("/api/expenses", data="not json", content_type="text/plain")
        assert response.status_code == 400

    def test_not_found_is_404(self, client, db_session):
        assert client.get("/api/expenses/999").status_code == 404
        assert client.post("/api/expenses/999/payments", json={"amount": 1, "reference_number": "R"}).status_code == 404

    def test_overpayment_is_400(self, client, categories, expense_payload):
        expense = client.post("/api/expenses", json=expense_payload()).get_json()["expense"]
        response = client.post(f"/api/expenses/{expense['id']}/payments",
                               json={"amount": 500, "reference_number": "R"})
        assert response.status_code == 400

    def test_payment_on_rejected_is_409(self, client, categories, expense_payload):
        expense = client.post("/api/expenses", json=expense_payload()).get_json()["expense"]
        assert client.post(f"/api/expenses/{expense['id']}/reject").status_code == 200

        response = client.post(f"/api/expenses/{expense['id']}/payments",
                               json={"amount": 5, "reference_number": "R"})
        assert response.status_code == 409

    def test_list_filters_by_status(self, client, categories, expense_payload):
        first = client.post("/api/expenses", json=expense_payload()).get_json()["expense"]
        client.post("/api/expenses", json=expense_payload())
        client.post(f"/api/expenses/{first['id']}/approve")

        response = client.get("/api/expenses?status=Approved")
        assert [e["id"] for e in response.get_json()["expenses"]] == [first["id"]]

    def test_summary_bad_date(self, client, db_session):
        response = client.get("/api/expenses/summary?as_of=yesterday")
        assert response.status_code == 400

    def test_categories(self, client, categories):
        response = client.get("/api/expenses/categories")
        assert len(response.get_json()["categories"]) == len(categories)

        response = client.post("/api/expenses/categories", json={"name": "Travel"})
        assert response.status_code == 201
        assert response.get_json()["category"]["name"] == "Travel"

    def test_export_download(self, client, categories, expense_payload):
        client.post("/api/expenses", json=expense_payload())
        response = client.get("/api/expenses/export")

        assert response.status_code == 200
        assert response.mimetype == export_service.XLSX_MIMETYPE
        assert "attachment" in response.headers["Content-Disposition"]
        assert response.data[:2] == b"PK"


class TestInvoiceRoutes:

    def test_create_and_pay(self, client, invoice_payload):
        response = client.post("/api/invoices", json=invoice_payload())
        assert response.status_code == 201
        invoice = response.get_json()["invoice"]
        assert invoice["total_amount"] == 207.0
        assert invoice["lines"][0]["line_vat"] == 27.0

        response = client.post(f"/api/invoices/{invoice['id']}/payments",
                               json={"amount": 207, "payment_method": "Cash"})
        assert response.status_code == 201
        assert response.get_json()["invoice"]["payment_status"] == "Paid"

    def test_summary(self, client, invoice_payload):
        client.post("/api/invoices", json=invoice_payload())
        response = client.get("/api/invoices/summary?as_of=2024-04-01")

        data = response.get_json()
        assert response.status_code == 200
        assert data["overdue_count"] == 1
        assert data["as_of"] == "2024-04-01"


class TestManufacturingRoutes:

    def test_order_flow(self, client, materials):
        flour, sugar = materials
        response = client.post("/api/manufacturing/recipes", json={
            "sku": "BREAD", "name_en": "Bread", "output_quantity": 10,
            "lines": [{"material_id": flour.id, "quantity": 2}],
        })
        assert response.status_code == 201
        recipe = response.get_json()["recipe"]

        order = client.post("/api/manufacturing/orders",
                            json={"recipe_id": recipe["id"], "batch_size": 5}).get_json()["order"]

        response = client.post(f"/api/manufacturing/orders/{order['id']}/runs", json={"quantity": 5})
        assert response.status_code == 201
        assert response.get_json()["order"]["status"] == "completed"

        response = client.post(f"/api/manufacturing/orders/{order['id']}/status", json={"status": "cancelled"})
        assert response.status_code == 409

    def test_low_stock(self, client, materials):
        response = client.get("/api/manufacturing/raw-materials/low-stock")
        assert [m["sku"] for m in response.get_json()["raw_materials"]] == ["RM-SUGAR"]


class TestHrRoutes:

    def test_leave_approval(self, client, employee):
        response = client.post("/api/hr/leaves", json={
            "employee_id": employee.id, "leave_type": "sick",
            "start_date": "2024-02-01", "end_date": "2024-02-02",
        })
        assert response.status_code == 201
        leave = response.get_json()["leave"]

        response = client.post(f"/api/hr/leaves/{leave['id']}/approve", json={"approved_by": "Ops Lead"})
        assert response.status_code == 200
        assert response.get_json()["leave"]["approved_by"] == "Ops Lead"

        response = client.post(f"/api/hr/leaves/{leave['id']}/reject")
        assert response.status_code == 409

    @pytest.mark.parametrize("path", ["/api/hr/leaves/export", "/api/hr/requests/export"])
    def test_exports(self, client, db_session, path):
        response = client.get(path)
        assert response.status_code == 200
        assert response.mimetype == export_service.XLSX_MIMETYPE
