"""HTTP surface: auth, error mapping and a round trip through the services."""

from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from gstledger.core.database import get_db
from gstledger.core.security import create_access_token
from gstledger.main import app


@pytest.fixture
def client(db):
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers(company):
    token = create_access_token({"sub": str(company.user_id), "company_id": company.id})
    return {"Authorization": f"Bearer {token}"}


def _sale(customer):
    return {
        "invoice_type": "sales",
        "entity_type": "customer",
        "entity_id": customer.id,
        "invoice_date": "2025-01-15",
        "items": [{"description": "Widget", "quantity": "2", "unit_price": "1000", "gst_rate": "18"}],
    }


class TestAuth:

    def test_health_is_public(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_missing_token(self, client):
        assert client.get("/api/v1/invoices").status_code == 401

    def test_garbage_token(self, client):
        response = client.get("/api/v1/invoices", headers={"Authorization": "Bearer not-a-jwt"})
        assert response.status_code == 401

    def test_token_without_company(self, client):
        token = create_access_token({"sub": "1"})
        response = client.get("/api/v1/invoices", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 403


class TestInvoices:

    def test_create_and_fetch(self, client, auth_headers, customer, widget):
        response = client.post("/api/v1/invoices", json=_sale(customer), headers=auth_headers)

        assert response.status_code == 201
        body = response.json()
        invoice = body["invoice"]
        assert Decimal(invoice["total_amount"]) == Decimal("2360.00")
        assert invoice["payment_status"] == "due"
        assert body["warnings"] == []

        fetched = client.get(f"/api/v1/invoices/{invoice['id']}", headers=auth_headers)
        assert fetched.status_code == 200
        assert len(fetched.json()["items"]) == 1

    def test_validation_error_maps_to_422(self, client, auth_headers, customer):
        payload = _sale(customer)
        payload["items"] = [{"description": "", "quantity": "1", "unit_price": "10", "gst_rate": "0"}]

        response = client.post("/api/v1/invoices", json=payload, headers=auth_headers)
        assert response.status_code == 422
        assert response.json()["error"] == "ValidationError"

    def test_paid_invoice_cannot_regress(self, client, auth_headers, customer, widget):
        invoice_id = client.post("/api/v1/invoices", json=_sale(customer), headers=auth_headers).json()["invoice"]["id"]

        paid = client.patch(
            f"/api/v1/invoices/{invoice_id}/payment-status",
            json={"payment_status": "paid", "paid_date": "2025-01-20"},
            headers=auth_headers,
        )
        assert paid.status_code == 200
        assert paid.json()["payment_status"] == "paid"

        response = client.patch(
            f"/api/v1/invoices/{invoice_id}/payment-status",
            json={"payment_status": "due"},
            headers=auth_headers,
        )
        assert response.status_code == 409
        assert response.json()["error"] == "InvariantViolation"

    def test_other_tenant_gets_404(self, client, auth_headers, other_tenant, customer, widget):
        invoice_id = client.post("/api/v1/invoices", json=_sale(customer), headers=auth_headers).json()["invoice"]["id"]
        token = create_access_token({"sub": str(other_tenant.user_id), "company_id": other_tenant.company_id})

        response = client.get(f"/api/v1/invoices/{invoice_id}", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 404


class TestReports:

    def test_sales_report(self, client, auth_headers, customer, widget):
        client.post("/api/v1/invoices", json=_sale(customer), headers=auth_headers)

        response = client.get(
            "/api/v1/reports/sales_report",
            params={"date_from": "2025-01-01", "date_to": "2025-01-31"},
            headers=auth_headers,
        )
        assert response.status_code == 200
        summary = response.json()["summary"]
        assert Decimal(summary["total_sales"]) == Decimal("2000.00")
        assert Decimal(summary["net_profit"]) == Decimal("2360.00")

    def test_inverted_range(self, client, auth_headers):
        response = client.get(
            "/api/v1/reports/profit_loss",
            params={"date_from": "2025-02-01", "date_to": "2025-01-01"},
            headers=auth_headers,
        )
        assert response.status_code == 422

    def test_unknown_report_type(self, client, auth_headers):
        assert client.get("/api/v1/reports/balance_sheet", headers=auth_headers).status_code == 422
