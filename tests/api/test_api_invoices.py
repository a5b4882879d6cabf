"""Tests for the invoice endpoints."""

import base64
from datetime import datetime, timedelta

import pytest  # type: ignore[import-not-found]
from fastapi.testclient import TestClient  # type: ignore[import-untyped]

from kimai.core.models import Timesheet
from kimai.core.storage import StorageManager

TEMPLATE = {"name": "Default", "title": "Invoice", "company": "Kimai Inc.", "renderer": "default.md", "vat": 19.0}


@pytest.fixture  # type: ignore[misc]
def billable(storage: StorageManager, records) -> list[Timesheet]:  # type: ignore[no-untyped-def]
    result = []
    for i, (hours, rate) in enumerate([(2, 200.0), (1.5, 150.0)]):
        begin = datetime(2024, 5, 6 + i, 8)
        result.append(
            storage.save_timesheet(
                Timesheet(
                    user_id=records.user.id,
                    project_id=records.project.id,
                    activity_id=records.activity.id,
                    begin=begin,
                    end=begin + timedelta(hours=hours),
                    duration=int(hours * 3600),
                    rate=rate,
                    description=f"Work day {i}",
                )
            )
        )
    return result


@pytest.fixture  # type: ignore[misc]
def template_id(client: TestClient, admin_headers: dict[str, str]) -> int:
    response = client.post("/api/invoices/templates", json=TEMPLATE, headers=admin_headers)
    assert response.status_code == 201
    template: int = response.json()["id"]
    return template


class TestTemplates:
    """Test /api/invoices/templates."""

    def test_requires_admin(self, client: TestClient, teamlead_headers: dict[str, str]) -> None:
        assert client.get("/api/invoices/templates", headers=teamlead_headers).status_code == 403
        assert client.post("/api/invoices/templates", json=TEMPLATE, headers=teamlead_headers).status_code == 403

    def test_crud(self, client: TestClient, template_id: int, admin_headers: dict[str, str]) -> None:
        updated = client.patch(
            f"/api/invoices/templates/{template_id}", json={"title": "Rechnung"}, headers=admin_headers
        )
        assert updated.json()["title"] == "Rechnung"

        copy = client.post(f"/api/invoices/templates/{template_id}/copy", headers=admin_headers)
        assert copy.status_code == 201
        assert copy.json()["name"] == "Default (1)"

        names = [t["name"] for t in client.get("/api/invoices/templates", headers=admin_headers).json()]
        assert names == ["Default", "Default (1)"]

        assert client.delete(f"/api/invoices/templates/{template_id}", headers=admin_headers).status_code == 204
        assert client.patch(f"/api/invoices/templates/{template_id}", json={}, headers=admin_headers).status_code == 404

    def test_unknown_renderer(self, client: TestClient, admin_headers: dict[str, str]) -> None:
        response = client.post(
            "/api/invoices/templates", json={**TEMPLATE, "renderer": "missing.md"}, headers=admin_headers
        )

        assert response.status_code == 400
        assert response.json()["field"] == "renderer"


class TestDocuments:
    """Test /api/invoices/documents."""

    def test_upload_list_delete(self, client: TestClient, admin_headers: dict[str, str]) -> None:
        content = base64.b64encode(b"# ${invoice.number}\n").decode()

        uploaded = client.post(
            "/api/invoices/documents", json={"filename": "My Invoice.md", "content": content}, headers=admin_headers
        )
        assert uploaded.status_code == 201
        assert uploaded.json() == {"name": "my_invoice.md", "built_in": False}

        documents = {d["name"]: d for d in client.get("/api/invoices/documents", headers=admin_headers).json()}
        assert documents["default.md"]["built_in"] is True
        assert documents["my_invoice.md"]["used"] is False

        assert client.delete("/api/invoices/documents/my_invoice.md", headers=admin_headers).status_code == 204
        assert client.delete("/api/invoices/documents/my_invoice.md", headers=admin_headers).status_code == 404

    def test_builtin_cannot_be_deleted(self, client: TestClient, admin_headers: dict[str, str]) -> None:
        response = client.delete("/api/invoices/documents/default.md", headers=admin_headers)
        assert response.status_code == 400

    def test_unsupported_type(self, client: TestClient, admin_headers: dict[str, str]) -> None:
        content = base64.b64encode(b"%PDF").decode()

        response = client.post(
            "/api/invoices/documents", json={"filename": "invoice.pdf", "content": content}, headers=admin_headers
        )

        assert response.status_code == 400


class TestInvoices:
    """Test preview, creation and the invoice archive."""

    def test_preview(self, client: TestClient, billable, template_id: int, records, teamlead_headers: dict[str, str]) -> None:  # type: ignore[no-untyped-def]
        response = client.post(
            f"/api/invoices/preview/{records.customer.id}", json={"template": template_id}, headers=teamlead_headers
        )

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/markdown")
        assert response.headers["content-disposition"].startswith("inline")
        assert "€416.50" in response.text

    def test_preview_without_data(self, client: TestClient, template_id: int, records, teamlead_headers: dict[str, str]) -> None:  # type: ignore[no-untyped-def]
        response = client.post(
            f"/api/invoices/preview/{records.customer.id}", json={"template": template_id}, headers=teamlead_headers
        )
        assert response.status_code == 404

    def test_user_cannot_invoice(self, client: TestClient, template_id: int, user_headers: dict[str, str]) -> None:
        assert client.post("/api/invoices/", json={"template": template_id}, headers=user_headers).status_code == 403

    def test_create_and_manage(self, client: TestClient, storage: StorageManager, billable, template_id: int, records, teamlead_headers: dict[str, str], admin_headers: dict[str, str]) -> None:  # type: ignore[no-untyped-def]
        response = client.post(
            "/api/invoices/", json={"template": template_id, "mark_as_exported": True}, headers=teamlead_headers
        )

        assert response.status_code == 201
        invoices = response.json()
        assert len(invoices) == 1
        invoice = invoices[0]
        assert invoice["total"] == 416.5
        assert invoice["status"] == "new"
        assert all(t.exported for t in storage.load_timesheets())

        # exported records are not invoiced twice
        again = client.post("/api/invoices/", json={"template": template_id}, headers=teamlead_headers)
        assert again.status_code == 404

        listed = client.get(f"/api/invoices/?customer={records.customer.id}", headers=teamlead_headers).json()
        assert [i["id"] for i in listed] == [invoice["id"]]
        assert client.get("/api/invoices/?status=paid", headers=teamlead_headers).json() == []

        download = client.get(f"/api/invoices/{invoice['id']}/download", headers=teamlead_headers)
        assert download.status_code == 200
        assert download.headers["content-disposition"].startswith("attachment")
        assert invoice["invoice_number"] in download.text

        paid = client.patch(
            f"/api/invoices/{invoice['id']}/status",
            json={"status": "paid", "payment_date": "2024-06-01T10:00:00"},
            headers=admin_headers,
        )
        assert paid.json()["status"] == "paid"
        assert paid.json()["payment_date"] == "2024-06-01T10:00:00"

        invalid = client.patch(f"/api/invoices/{invoice['id']}/status", json={"status": "lost"}, headers=admin_headers)
        assert invalid.status_code == 422

        assert client.delete(f"/api/invoices/{invoice['id']}", headers=admin_headers).status_code == 204
        assert client.get(f"/api/invoices/{invoice['id']}", headers=admin_headers).status_code == 404
