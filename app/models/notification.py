import uuid
from datetime import datetime
from enum import Enum as PyEnum

from sqlalchemy import DateTime, Enum, ForeignKey, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base


class NotificationType(str, PyEnum):
    ASSIGNMENT = "assignment"
    COMPLETION = "completion"
    LOW_STOCK = "low_stock"
    INVOICE = "invoice"
    CREDENTIALS = "credentials"
    PAYMENT_REMINDER = "payment_reminder"


class Notification(Base):
    """In-app inbox entry. One row per dispatched event."""

    __tablename__ = "notifications"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    recipient_type: Mapped[str] = mapped_column(String, nullable=False)  # user, client
    recipient_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
    type: Mapped[str] = mapped_column(
        Enum(NotificationType, values_callable=lambda x: [e.value for e in x]),
        nullable=False,
        index=True,
    )
    title: Mapped[str] = mapped_column(String, nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    priority: Mapped[str] = mapped_column(String, default="medium")  # low, medium, high, urgent
    task_id: Mapped[str | None] = mapped_column(String, ForeignKey("tasks.id"), nullable=True)
    invoice_id: Mapped[str | None] = mapped_column(String, ForeignKey("invoices.id"), nullable=True)

    email_sent: Mapped[bool] = mapped_column(default=False)
    whatsapp_sent: Mapped[bool] = mapped_column(default=False)

    read: Mapped[bool] = mapped_column(default=False)
    read_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now(), index=True)
