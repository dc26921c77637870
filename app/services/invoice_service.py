"""Invoices for completed tasks.

One invoice per task. Totals come from the task's cost breakdown; the PDF is
rendered after the rows are committed, so a rendering failure leaves a valid
invoice with an empty ``pdf_url``.
"""

import json
import logging
from datetime import timedelta

from sqlalchemy import update
from sqlalchemy.orm import Session

from app.actors import Actor, AdminActor, ClientActor
from app.config import settings
from app.database import utcnow
from app.exceptions import AuthorizationError, ConflictError, DependencyError, NotFoundError, ValidationError
from app.models.client import Client
from app.models.invoice import Invoice, InvoiceItem, PaymentStatus
from app.models.task import Task, TaskImage, TaskStatus
from app.schemas.invoice import InvoiceCreate, InvoiceUpdate
from app.services import notification_service, pdf_service, storage_service

logger = logging.getLogger(__name__)


def _require_admin(actor: Actor) -> None:
    if not isinstance(actor, AdminActor):
        raise AuthorizationError("Admin only")


def next_invoice_number(db: Session) -> str:
    """INV-YYYYMM-00001, restarting the sequence every month."""
    prefix = f"INV-{utcnow():%Y%m}-"
    last = (
        db.query(Invoice)
        .filter(Invoice.invoice_number.like(f"{prefix}%"))
        .order_by(Invoice.invoice_number.desc())
        .first()
    )
    seq = 1
    if last:
        try:
            seq = int(last.invoice_number.rsplit("-", 1)[1]) + 1
        except (IndexError, ValueError):
            pass
    return f"{prefix}{seq:05d}"


def _line_items(task: Task) -> list[InvoiceItem]:
    items = [InvoiceItem(
        position=0,
        description=f"Labor: {task.title}",
        quantity=1,
        unit="service",
        unit_price=task.cost_labor,
        total=task.cost_labor,
    )]
    if task.cost_materials:
        names = ", ".join(m.name for m in task.materials if m.name)
        items.append(InvoiceItem(
            position=1,
            description=f"Materials: {names}" if names else "Materials",
            quantity=1,
            unit="lot",
            unit_price=task.cost_materials,
            total=task.cost_materials,
        ))
    return items


def _selected_images(db: Session, task: Task, image_ids: list[str]) -> list[TaskImage]:
    if not image_ids:
        return []
    images = db.query(TaskImage).filter(TaskImage.task_id == task.id, TaskImage.id.in_(image_ids)).all()
    if len(images) != len(set(image_ids)):
        raise ValidationError.for_field("selected_image_ids", "Some images do not belong to this task")
    return images


def _render_pdf(db: Session, invoice: Invoice) -> bool:
    """Render and store the PDF, replacing any previous one. Returns False on failure."""
    task = db.get(Task, invoice.task_id)
    client = db.get(Client, invoice.client_id)
    image_ids = json.loads(invoice.selected_images or "[]")
    images = db.query(TaskImage).filter(TaskImage.id.in_(image_ids)).all() if image_ids else []
    try:
        content = pdf_service.render_invoice(invoice, client, task, images)
        stored = storage_service.save_file(content, f"{invoice.invoice_number}.pdf", folder="invoices")
    except DependencyError as e:
        logger.error("Invoice %s saved without PDF: %s", invoice.invoice_number, e)
        return False

    previous = invoice.pdf_storage_id
    invoice.pdf_url = stored.url
    invoice.pdf_storage_id = stored.storage_id
    db.commit()
    if previous:
        try:
            storage_service.delete_file(previous)
        except DependencyError:
            logger.warning("Old PDF %s for invoice %s was not removed", previous, invoice.invoice_number)
    return True


def _notify(db: Session, invoice: Invoice) -> None:
    client = db.get(Client, invoice.client_id)
    pdf_path = storage_service.path_for(invoice.pdf_storage_id) if invoice.pdf_storage_id else None
    result = notification_service.notify_invoice(db, client, invoice, pdf_path=pdf_path)
    if result.email or result.whatsapp:
        invoice.email_sent = invoice.email_sent or result.email
        invoice.whatsapp_sent = invoice.whatsapp_sent or result.whatsapp
        db.commit()


def create_invoice(db: Session, data: InvoiceCreate, actor: Actor) -> Invoice:
    _require_admin(actor)
    task = db.get(Task, data.task_id)
    if not task:
        raise NotFoundError.of("Task")
    if task.status != TaskStatus.COMPLETED:
        raise ConflictError("Only completed tasks can be invoiced")
    if task.invoice_id:
        raise ConflictError("Task has already been invoiced")
    images = _selected_images(db, task, data.selected_image_ids)

    invoice = Invoice(
        invoice_number=next_invoice_number(db),
        task_id=task.id,
        client_id=task.client_id,
        branch_id=task.branch_id,
        tax_rate=settings.TAX_RATE,
        discount=data.discount,
        currency=settings.CURRENCY,
        payment_status=PaymentStatus.PENDING,
        due_date=data.due_date or utcnow() + timedelta(days=settings.INVOICE_DUE_DAYS),
        selected_images=json.dumps([img.id for img in images]),
        notes=data.notes,
    )
    invoice.items = _line_items(task)
    invoice.recalculate()
    db.add(invoice)
    db.flush()

    # Claim the task so a concurrent request cannot invoice it twice
    claimed = db.execute(
        update(Task)
        .where(Task.id == task.id, Task.invoice_id.is_(None))
        .values(invoice_id=invoice.id)
        .execution_options(synchronize_session=False)
    )
    if claimed.rowcount == 0:
        db.rollback()
        raise ConflictError("Task has already been invoiced")
    db.commit()
    db.refresh(invoice)
    logger.info("Created invoice %s for task %s (total %.2f)", invoice.invoice_number, task.id, invoice.total)

    _render_pdf(db, invoice)
    _notify(db, invoice)
    db.refresh(invoice)
    return invoice


def get_invoice(db: Session, invoice_id: str, actor: Actor) -> Invoice:
    invoice = db.get(Invoice, invoice_id)
    if not invoice:
        raise NotFoundError.of("Invoice")
    if isinstance(actor, ClientActor):
        if invoice.client_id != actor.client_id:
            raise AuthorizationError("Not authorized to access this invoice")
    elif not isinstance(actor, AdminActor):
        raise AuthorizationError("Not authorized to access invoices")
    return invoice


def list_invoices(
    db: Session,
    actor: Actor,
    client_id: str | None = None,
    payment_status: PaymentStatus | None = None,
    page: int = 1,
    limit: int = 20,
) -> tuple[list[Invoice], int]:
    q = db.query(Invoice)
    if isinstance(actor, ClientActor):
        q = q.filter(Invoice.client_id == actor.client_id)
    elif not isinstance(actor, AdminActor):
        raise AuthorizationError("Not authorized to access invoices")
    elif client_id:
        q = q.filter(Invoice.client_id == client_id)
    if payment_status:
        q = q.filter(Invoice.payment_status == payment_status)
    total = q.count()
    invoices = q.order_by(Invoice.created_at.desc()).offset((page - 1) * limit).limit(limit).all()
    return invoices, total


def update_invoice(db: Session, invoice_id: str, data: InvoiceUpdate, actor: Actor) -> Invoice:
    _require_admin(actor)
    invoice = get_invoice(db, invoice_id, actor)
    if invoice.payment_status in (PaymentStatus.PAID, PaymentStatus.CANCELLED):
        raise ConflictError(f"Cannot edit a {invoice.payment_status.value} invoice")

    if data.discount is not None:
        invoice.discount = data.discount
    if data.due_date is not None:
        invoice.due_date = data.due_date
    if data.notes is not None:
        invoice.notes = data.notes
    if data.selected_image_ids is not None:
        task = db.get(Task, invoice.task_id)
        images = _selected_images(db, task, data.selected_image_ids)
        invoice.selected_images = json.dumps([img.id for img in images])
    invoice.recalculate()
    if invoice.paid_amount > invoice.total:
        db.rollback()
        raise ValidationError.for_field("discount", "Discount would bring the total below the amount already paid")
    db.commit()
    db.refresh(invoice)

    if data.regenerate_pdf:
        _render_pdf(db, invoice)
        db.refresh(invoice)
    return invoice


def record_payment(db: Session, invoice_id: str, amount: float, method: str, actor: Actor) -> Invoice:
    _require_admin(actor)
    invoice = get_invoice(db, invoice_id, actor)
    if invoice.payment_status == PaymentStatus.CANCELLED:
        raise ConflictError("Invoice is cancelled")
    if invoice.payment_status == PaymentStatus.PAID:
        raise ConflictError("Invoice is already paid")
    if amount <= 0:
        raise ValidationError.for_field("amount", "Amount must be greater than zero")
    if amount > invoice.balance_due + 0.005:
        raise ValidationError.for_field("amount", f"Amount exceeds balance due ({invoice.balance_due:.2f})")

    now = utcnow()
    invoice.paid_amount = round(invoice.paid_amount + amount, 2)
    invoice.payment_method = method
    if invoice.balance_due <= 0:
        invoice.payment_status = PaymentStatus.PAID
        invoice.paid_at = now
    else:
        invoice.payment_status = PaymentStatus.PARTIALLY_PAID
    db.execute(
        update(Client)
        .where(Client.id == invoice.client_id)
        .values(total_spent=Client.total_spent + amount)
    )
    db.commit()
    db.refresh(invoice)
    logger.info("Payment of %.2f recorded on %s (%s)", amount, invoice.invoice_number, invoice.payment_status.value)
    return invoice


def send_reminder(db: Session, invoice_id: str, actor: Actor) -> notification_service.DispatchResult:
    _require_admin(actor)
    invoice = get_invoice(db, invoice_id, actor)
    if invoice.payment_status in (PaymentStatus.PAID, PaymentStatus.CANCELLED):
        raise ConflictError(f"No reminder for a {invoice.payment_status.value} invoice")
    if invoice.due_date and invoice.due_date < utcnow() and invoice.payment_status == PaymentStatus.PENDING:
        invoice.payment_status = PaymentStatus.OVERDUE
        db.commit()
    client = db.get(Client, invoice.client_id)
    return notification_service.notify_payment_reminder(db, client, invoice)


def cancel_invoice(db: Session, invoice_id: str, actor: Actor) -> Invoice:
    _require_admin(actor)
    invoice = get_invoice(db, invoice_id, actor)
    if invoice.paid_amount > 0:
        raise ConflictError("Invoice has payments and cannot be cancelled")
    invoice.payment_status = PaymentStatus.CANCELLED
    db.commit()
    db.refresh(invoice)
    return invoice


def delete_invoice(db: Session, invoice_id: str, actor: Actor) -> None:
    _require_admin(actor)
    invoice = get_invoice(db, invoice_id, actor)
    if invoice.paid_amount > 0:
        raise ConflictError("Invoice has payments and cannot be deleted")
    pdf_storage_id = invoice.pdf_storage_id
    db.execute(update(Task).where(Task.id == invoice.task_id).values(invoice_id=None))
    db.delete(invoice)
    db.commit()
    try:
        storage_service.delete_file(pdf_storage_id)
    except DependencyError:
        logger.warning("PDF %s of deleted invoice was not removed", pdf_storage_id)
    logger.info("Deleted invoice %s", invoice_id)
