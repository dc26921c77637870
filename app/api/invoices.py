from fastapi import APIRouter, Depends, Query
from fastapi.responses import FileResponse
from sqlalchemy.orm import Session

from app.actors import Actor, AdminActor
from app.api.auth import get_current_actor, require_admin
from app.database import get_db
from app.exceptions import NotFoundError
from app.models.invoice import PaymentStatus
from app.schemas.common import ok, page_of
from app.schemas.invoice import InvoiceCreate, InvoiceOut, InvoiceUpdate, PaymentRequest
from app.services import invoice_service, storage_service

router = APIRouter(prefix="/invoices", tags=["Invoices"])


@router.get("")
def list_invoices(
    client_id: str | None = None,
    payment_status: PaymentStatus | None = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=200),
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    invoices, total = invoice_service.list_invoices(
        db, actor, client_id=client_id, payment_status=payment_status, page=page, limit=limit
    )
    return ok(page_of([InvoiceOut.model_validate(i) for i in invoices], total, page, limit))


@router.post("", status_code=201)
def create_invoice(data: InvoiceCreate, admin: AdminActor = Depends(require_admin), db: Session = Depends(get_db)):
    invoice = invoice_service.create_invoice(db, data, admin)
    return ok(InvoiceOut.model_validate(invoice), message="Invoice created")


@router.get("/{invoice_id}")
def get_invoice(invoice_id: str, actor: Actor = Depends(get_current_actor), db: Session = Depends(get_db)):
    return ok(InvoiceOut.model_validate(invoice_service.get_invoice(db, invoice_id, actor)))


@router.get("/{invoice_id}/pdf")
def download_pdf(invoice_id: str, actor: Actor = Depends(get_current_actor), db: Session = Depends(get_db)):
    invoice = invoice_service.get_invoice(db, invoice_id, actor)
    if not invoice.pdf_storage_id:
        raise NotFoundError("Invoice PDF has not been generated")
    path = storage_service.path_for(invoice.pdf_storage_id)
    if not path.exists():
        raise NotFoundError("Invoice PDF file is missing")
    return FileResponse(path, media_type="application/pdf", filename=f"{invoice.invoice_number}.pdf")


@router.put("/{invoice_id}")
def update_invoice(
    invoice_id: str,
    data: InvoiceUpdate,
    admin: AdminActor = Depends(require_admin),
    db: Session = Depends(get_db),
):
    invoice = invoice_service.update_invoice(db, invoice_id, data, admin)
    return ok(InvoiceOut.model_validate(invoice), message="Invoice updated")


@router.post("/{invoice_id}/payment")
def record_payment(
    invoice_id: str,
    data: PaymentRequest,
    admin: AdminActor = Depends(require_admin),
    db: Session = Depends(get_db),
):
    invoice = invoice_service.record_payment(db, invoice_id, data.amount, data.method, admin)
    return ok(InvoiceOut.model_validate(invoice), message="Payment recorded")


@router.post("/{invoice_id}/remind")
def send_reminder(invoice_id: str, admin: AdminActor = Depends(require_admin), db: Session = Depends(get_db)):
    result = invoice_service.send_reminder(db, invoice_id, admin)
    return ok({"in_app": result.in_app, "email": result.email, "whatsapp": result.whatsapp}, message="Reminder sent")


@router.post("/{invoice_id}/cancel")
def cancel_invoice(invoice_id: str, admin: AdminActor = Depends(require_admin), db: Session = Depends(get_db)):
    invoice = invoice_service.cancel_invoice(db, invoice_id, admin)
    return ok(InvoiceOut.model_validate(invoice), message="Invoice cancelled")


@router.delete("/{invoice_id}")
def delete_invoice(invoice_id: str, admin: AdminActor = Depends(require_admin), db: Session = Depends(get_db)):
    invoice_service.delete_invoice(db, invoice_id, admin)
    return ok(message="Invoice deleted")
