"""Notification dispatcher.

Every event fans out to the in-app inbox, email and WhatsApp. Channels are
independent and best-effort: a failing channel is logged and reported as False
in the ``DispatchResult``, never raised to the caller.
"""

import logging
import pathlib
from dataclasses import dataclass, field

from sqlalchemy import update
from sqlalchemy.orm import Session

from app.actors import Actor, ClientActor
from app.config import settings
from app.database import utcnow
from app.exceptions import NotFoundError
from app.models.client import Client
from app.models.inventory import InventoryItem
from app.models.invoice import Invoice
from app.models.notification import Notification, NotificationType
from app.models.task import Task
from app.models.user import User
from app.services import email_service, whatsapp_service

logger = logging.getLogger(__name__)

IN_APP = "in_app"
EMAIL = "email"
WHATSAPP = "whatsapp"
ALL_CHANNELS = (IN_APP, EMAIL, WHATSAPP)


@dataclass
class Recipient:
    kind: str  # user, client
    id: str
    name: str
    email: str = ""
    phone: str = ""

    @classmethod
    def from_user(cls, user: User) -> "Recipient":
        return cls(kind="user", id=user.id, name=user.name, email=user.email, phone=user.phone)

    @classmethod
    def from_client(cls, client: Client) -> "Recipient":
        return cls(kind="client", id=client.id, name=client.name, email=client.email, phone=client.whatsapp or client.phone)


@dataclass
class NotificationEvent:
    type: NotificationType
    recipient: Recipient
    title: str
    message: str
    email_html: str = ""
    whatsapp_text: str = ""
    priority: str = "medium"
    task_id: str | None = None
    invoice_id: str | None = None
    attachments: list[pathlib.Path] = field(default_factory=list)


@dataclass
class DispatchResult:
    in_app: bool = False
    email: bool = False
    whatsapp: bool = False


def dispatch(db: Session, event: NotificationEvent, channels: tuple[str, ...] = ALL_CHANNELS) -> DispatchResult:
    result = DispatchResult()
    record = None

    if IN_APP in channels:
        try:
            record = Notification(
                recipient_type=event.recipient.kind,
                recipient_id=event.recipient.id,
                type=event.type,
                title=event.title,
                message=event.message,
                priority=event.priority,
                task_id=event.task_id,
                invoice_id=event.invoice_id,
            )
            db.add(record)
            db.commit()
            result.in_app = True
        except Exception:
            db.rollback()
            record = None
            logger.exception("In-app notification for %s failed", event.recipient.id)

    if EMAIL in channels:
        try:
            result.email = email_service.send_email(
                event.recipient.email,
                event.title,
                event.email_html or f"<p>{event.message}</p>",
                attachments=event.attachments,
            )
        except Exception:
            logger.exception("Email channel failed for %s event", event.type.value)

    if WHATSAPP in channels:
        try:
            result.whatsapp = whatsapp_service.send_whatsapp(event.recipient.phone, event.whatsapp_text or event.message)
        except Exception:
            logger.exception("WhatsApp channel failed for %s event", event.type.value)

    if record is not None and (result.email or result.whatsapp):
        try:
            record.email_sent = result.email
            record.whatsapp_sent = result.whatsapp
            db.commit()
        except Exception:
            db.rollback()
            logger.exception("Could not record delivery status for notification %s", record.id)

    logger.info(
        "Dispatched %s to %s %s (in_app=%s email=%s whatsapp=%s)",
        event.type.value, event.recipient.kind, event.recipient.id,
        result.in_app, result.email, result.whatsapp,
    )
    return result


# ---------------------------------------------------------------------------
# Lifecycle events
# ---------------------------------------------------------------------------


def _when(task: Task) -> str:
    return task.scheduled_date.strftime("%Y-%m-%d %H:%M") if task.scheduled_date else ""


def notify_task_assignment(db: Session, worker: User, task: Task, client: Client) -> DispatchResult:
    return dispatch(db, NotificationEvent(
        type=NotificationType.ASSIGNMENT,
        recipient=Recipient.from_user(worker),
        title="New Task Assigned",
        message=f"You have been assigned a new task: {task.title}",
        email_html=(
            f"<h2>New Task Assigned</h2><p>Hello {worker.name},</p>"
            f"<p>You have been assigned <strong>{task.title}</strong> for {client.name}.</p>"
            f"<p>Scheduled: {_when(task)}<br>Priority: {task.priority}</p>"
        ),
        whatsapp_text=(
            f"New task assigned\n\nHello {worker.name},\nTask: {task.title}\n"
            f"Client: {client.name}\nScheduled: {_when(task)}\nPriority: {task.priority}"
        ),
        priority=task.priority,
        task_id=task.id,
    ))


def notify_task_completion(db: Session, client: Client, task: Task, worker: User | None) -> DispatchResult:
    worker_name = worker.name if worker else ""
    return dispatch(db, NotificationEvent(
        type=NotificationType.COMPLETION,
        recipient=Recipient.from_client(client),
        title="Task Completed",
        message=f'Your task "{task.title}" has been completed',
        email_html=(
            f"<h2>Task Completed</h2><p>Dear {client.name},</p>"
            f"<p><strong>{task.title}</strong> was completed by {worker_name}.</p>"
        ),
        whatsapp_text=f"Task completed\n\nDear {client.name},\n{task.title} was completed by {worker_name}.",
        task_id=task.id,
    ))


def notify_low_stock(db: Session, admin: User, item: InventoryItem) -> DispatchResult:
    remaining = f"{item.quantity_current:g} {item.unit}"
    return dispatch(db, NotificationEvent(
        type=NotificationType.LOW_STOCK,
        recipient=Recipient.from_user(admin),
        title="Low Stock Alert",
        message=f"{item.name} is running low ({remaining} remaining)",
        email_html=(
            f"<h2>Low Stock Alert</h2><p><strong>{item.name}</strong> ({item.sku}) "
            f"has {remaining} left. Minimum is {item.quantity_minimum:g}.</p>"
        ),
        whatsapp_text=f"Low stock: {item.name} ({item.sku}) has {remaining} left.",
        priority="high",
    ))


def notify_invoice(db: Session, client: Client, invoice: Invoice, pdf_path: pathlib.Path | None = None) -> DispatchResult:
    amount = f"{invoice.total:.2f} {invoice.currency}"
    link = f"{settings.BASE_URL.rstrip('/')}{invoice.pdf_url}" if invoice.pdf_url else ""
    return dispatch(db, NotificationEvent(
        type=NotificationType.INVOICE,
        recipient=Recipient.from_client(client),
        title=f"Invoice {invoice.invoice_number}",
        message=f"Invoice {invoice.invoice_number} has been generated ({amount})",
        email_html=(
            f"<h2>Invoice {invoice.invoice_number}</h2><p>Dear {client.name},</p>"
            f"<p>Amount due: <strong>{amount}</strong></p>"
        ),
        whatsapp_text=f"Invoice {invoice.invoice_number}\nAmount: {amount}\n{link}".strip(),
        task_id=invoice.task_id,
        invoice_id=invoice.id,
        attachments=[pdf_path] if pdf_path else [],
    ))


def notify_client_credentials(db: Session, client: Client, username: str, temporary_password: str) -> DispatchResult:
    # Credentials never go to the in-app inbox
    return dispatch(db, NotificationEvent(
        type=NotificationType.CREDENTIALS,
        recipient=Recipient.from_client(client),
        title="Your client portal account",
        message=f"Username: {username}",
        email_html=(
            f"<h2>Welcome, {client.name}</h2><p>Username: <strong>{username}</strong><br>"
            f"Temporary password: <strong>{temporary_password}</strong></p>"
            f"<p>Please change your password after the first login.</p>"
        ),
        whatsapp_text=f"Welcome {client.name}\nUsername: {username}\nTemporary password: {temporary_password}",
    ), channels=(EMAIL, WHATSAPP))


def notify_payment_reminder(db: Session, client: Client, invoice: Invoice) -> DispatchResult:
    return dispatch(db, NotificationEvent(
        type=NotificationType.PAYMENT_REMINDER,
        recipient=Recipient.from_client(client),
        title="Payment Reminder",
        message=f"Payment for invoice {invoice.invoice_number} is due ({invoice.balance_due:.2f} {invoice.currency})",
        priority="high",
        invoice_id=invoice.id,
    ), channels=(IN_APP, EMAIL))


# ---------------------------------------------------------------------------
# Inbox
# ---------------------------------------------------------------------------


def _recipient_filter(actor: Actor):
    kind = "client" if isinstance(actor, ClientActor) else "user"
    return (Notification.recipient_type == kind, Notification.recipient_id == actor.subject_id)


def list_notifications(
    db: Session, actor: Actor, unread_only: bool = False, page: int = 1, limit: int = 20
) -> tuple[list[Notification], int, int]:
    q = db.query(Notification).filter(*_recipient_filter(actor))
    unread = q.filter(Notification.read == False).count()  # noqa: E712
    if unread_only:
        q = q.filter(Notification.read == False)  # noqa: E712
    total = q.count()
    items = q.order_by(Notification.created_at.desc()).offset((page - 1) * limit).limit(limit).all()
    return items, total, unread


def _own_notification(db: Session, actor: Actor, notification_id: str) -> Notification:
    n = db.query(Notification).filter(Notification.id == notification_id, *_recipient_filter(actor)).first()
    if not n:
        raise NotFoundError.of("Notification")
    return n


def mark_read(db: Session, actor: Actor, notification_id: str) -> Notification:
    n = _own_notification(db, actor, notification_id)
    if not n.read:
        n.read = True
        n.read_at = utcnow()
        db.commit()
        db.refresh(n)
    return n


def mark_all_read(db: Session, actor: Actor) -> int:
    result = db.execute(
        update(Notification)
        .where(*_recipient_filter(actor), Notification.read == False)  # noqa: E712
        .values(read=True, read_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    db.commit()
    return result.rowcount


def delete_notification(db: Session, actor: Actor, notification_id: str) -> None:
    n = _own_notification(db, actor, notification_id)
    db.delete(n)
    db.commit()
