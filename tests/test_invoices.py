import pytest

from app.exceptions import AuthorizationError, ConflictError, DependencyError, ValidationError
from app.models.client import Client
from app.models.invoice import PaymentStatus
from app.models.task import Task
from app.schemas.invoice import InvoiceCreate, InvoiceUpdate
from app.schemas.task import TaskCreate
from app.services import invoice_service, pdf_service, storage_service, task_service

API = "/api/v1/invoices"


@pytest.fixture
def completed_task(db, admin_actor, worker, worker_actor, task_payload):
    def _completed(**overrides):
        task = task_service.create_task(db, TaskCreate(**task_payload(**overrides)), admin_actor)
        task_service.assign_task(db, task.id, worker.id, admin_actor)
        return task_service.complete_task(db, task.id, None, None, worker_actor)

    return _completed


@pytest.fixture
def invoice(db, completed_task, admin_actor):
    task = completed_task()
    return invoice_service.create_invoice(db, InvoiceCreate(task_id=task.id), admin_actor)


class TestCreate:
    def test_totals_and_lines(self, db, invoice, customer):
        assert invoice.subtotal == 250
        assert invoice.tax_rate == 15
        assert invoice.tax_amount == 37.5
        assert invoice.total == 287.5
        assert invoice.balance_due == 287.5
        assert invoice.client_id == customer.id
        assert invoice.payment_status == PaymentStatus.PENDING
        assert [line.total for line in invoice.items] == [200, 50]
        assert db.get(Task, invoice.task_id).invoice_id == invoice.id

    def test_pdf_is_stored(self, invoice):
        assert invoice.pdf_url.startswith("/uploads/invoices/")
        pdf = storage_service.path_for(invoice.pdf_storage_id)
        assert pdf.read_bytes().startswith(b"%PDF")

    def test_numbering(self, db, invoice, completed_task, admin_actor):
        second = invoice_service.create_invoice(db, InvoiceCreate(task_id=completed_task(title="Hedge").id), admin_actor)
        assert invoice.invoice_number.startswith("INV-")
        assert invoice.invoice_number.endswith("-00001")
        assert second.invoice_number.endswith("-00002")
        assert second.invoice_number[:11] == invoice.invoice_number[:11]

    def test_discount(self, db, completed_task, admin_actor):
        task = completed_task()
        inv = invoice_service.create_invoice(db, InvoiceCreate(task_id=task.id, discount=37.5), admin_actor)
        assert inv.total == 250

    def test_task_must_be_completed(self, db, admin_actor, task_payload):
        task = task_service.create_task(db, TaskCreate(**task_payload()), admin_actor)
        with pytest.raises(ConflictError):
            invoice_service.create_invoice(db, InvoiceCreate(task_id=task.id), admin_actor)

    def test_one_invoice_per_task(self, db, invoice, admin_actor):
        with pytest.raises(ConflictError):
            invoice_service.create_invoice(db, InvoiceCreate(task_id=invoice.task_id), admin_actor)

    def test_foreign_images_rejected(self, db, completed_task, admin_actor):
        task = completed_task()
        with pytest.raises(ValidationError):
            invoice_service.create_invoice(
                db, InvoiceCreate(task_id=task.id, selected_image_ids=["not-an-image"]), admin_actor
            )

    def test_pdf_failure_keeps_invoice(self, db, completed_task, admin_actor, monkeypatch):
        def broken(*args, **kwargs):
            raise DependencyError("PDF generation failed")

        monkeypatch.setattr(pdf_service, "render_invoice", broken)
        inv = invoice_service.create_invoice(db, InvoiceCreate(task_id=completed_task().id), admin_actor)
        assert inv.id
        assert inv.pdf_url == ""

    def test_admin_only(self, db, completed_task, worker_actor):
        with pytest.raises(AuthorizationError):
            invoice_service.create_invoice(db, InvoiceCreate(task_id=completed_task().id), worker_actor)


class TestPayments:
    def test_partial_then_full(self, db, invoice, admin_actor, customer):
        inv = invoice_service.record_payment(db, invoice.id, 100, "cash", admin_actor)
        assert inv.payment_status == PaymentStatus.PARTIALLY_PAID
        assert inv.balance_due == 187.5

        inv = invoice_service.record_payment(db, invoice.id, 187.5, "card", admin_actor)
        assert inv.payment_status == PaymentStatus.PAID
        assert inv.paid_at is not None
        assert inv.balance_due == 0

        db.expire_all()
        assert db.get(Client, customer.id).total_spent == 287.5

        with pytest.raises(ConflictError):
            invoice_service.record_payment(db, invoice.id, 1, "cash", admin_actor)

    def test_overpayment(self, db, invoice, admin_actor):
        with pytest.raises(ValidationError):
            invoice_service.record_payment(db, invoice.id, 300, "cash", admin_actor)

    def test_paid_invoice_is_frozen(self, db, invoice, admin_actor):
        invoice_service.record_payment(db, invoice.id, 287.5, "cash", admin_actor)
        with pytest.raises(ConflictError):
            invoice_service.update_invoice(db, invoice.id, InvoiceUpdate(discount=10), admin_actor)
        with pytest.raises(ConflictError):
            invoice_service.cancel_invoice(db, invoice.id, admin_actor)
        with pytest.raises(ConflictError):
            invoice_service.delete_invoice(db, invoice.id, admin_actor)


class TestLifecycle:
    def test_update_recalculates(self, db, invoice, admin_actor):
        inv = invoice_service.update_invoice(db, invoice.id, InvoiceUpdate(discount=87.5, notes="Loyalty"), admin_actor)
        assert inv.total == 200
        assert inv.notes == "Loyalty"

    def test_cancel(self, db, invoice, admin_actor):
        inv = invoice_service.cancel_invoice(db, invoice.id, admin_actor)
        assert inv.payment_status == PaymentStatus.CANCELLED
        with pytest.raises(ConflictError):
            invoice_service.record_payment(db, invoice.id, 10, "cash", admin_actor)

    def test_delete_frees_task(self, db, invoice, admin_actor):
        task_id, pdf_storage_id = invoice.task_id, invoice.pdf_storage_id
        invoice_service.delete_invoice(db, invoice.id, admin_actor)
        db.expire_all()
        assert db.get(Task, task_id).invoice_id is None
        assert not storage_service.path_for(pdf_storage_id).exists()

    def test_reminder_reaches_client_inbox(self, client, invoice, admin_headers, client_headers):
        resp = client.post(f"{API}/{invoice.id}/remind", headers=admin_headers)
        assert resp.status_code == 200
        assert resp.json()["data"]["in_app"] is True

        types = [n["type"] for n in client.get("/api/v1/notifications", headers=client_headers).json()["data"]["items"]]
        assert "payment_reminder" in types
        assert "invoice" in types


class TestApi:
    def test_create_via_api(self, client, completed_task, admin_headers):
        task = completed_task()
        resp = client.post(API, json={"task_id": task.id}, headers=admin_headers)
        assert resp.status_code == 201
        data = resp.json()["data"]
        assert data["total"] == 287.5
        assert data["balance_due"] == 287.5
        assert len(data["items"]) == 2

        resp = client.post(API, json={"task_id": task.id}, headers=admin_headers)
        assert resp.status_code == 409

    def test_client_sees_own_invoices(self, client, invoice, client_headers, worker_headers):
        body = client.get(API, headers=client_headers).json()["data"]
        assert body["total"] == 1

        resp = client.get(f"{API}/{invoice.id}/pdf", headers=client_headers)
        assert resp.status_code == 200
        assert resp.headers["content-type"] == "application/pdf"

        assert client.get(f"{API}/{invoice.id}", headers=worker_headers).status_code == 403

    def test_payment_validation(self, client, invoice, admin_headers):
        resp = client.post(f"{API}/{invoice.id}/payment", json={"amount": 10, "method": "cheque"}, headers=admin_headers)
        assert resp.status_code == 400
        assert resp.json()["errors"][0]["field"] == "method"

        resp = client.post(f"{API}/{invoice.id}/payment", json={"amount": 10, "method": "cash"}, headers=admin_headers)
        assert resp.status_code == 200
        assert resp.json()["data"]["payment_status"] == "partially-paid"
