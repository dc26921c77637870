import uuid
from datetime import datetime
from enum import Enum as PyEnum

from sqlalchemy import DateTime, Enum, Float, ForeignKey, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base


class PaymentStatus(str, PyEnum):
    PENDING = "pending"
    PAID = "paid"
    PARTIALLY_PAID = "partially-paid"
    OVERDUE = "overdue"
    CANCELLED = "cancelled"


class Invoice(Base):
    __tablename__ = "invoices"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    invoice_number: Mapped[str] = mapped_column(String, unique=True, index=True)
    task_id: Mapped[str] = mapped_column(String, ForeignKey("tasks.id"), nullable=False, unique=True)
    client_id: Mapped[str] = mapped_column(String, ForeignKey("clients.id"), nullable=False, index=True)
    branch_id: Mapped[str] = mapped_column(String, ForeignKey("branches.id"), nullable=False)

    subtotal: Mapped[float] = mapped_column(Float, default=0.0)
    tax_rate: Mapped[float] = mapped_column(Float, default=15.0)
    tax_amount: Mapped[float] = mapped_column(Float, default=0.0)
    discount: Mapped[float] = mapped_column(Float, default=0.0)
    total: Mapped[float] = mapped_column(Float, default=0.0)
    currency: Mapped[str] = mapped_column(String, default="SAR")

    payment_status: Mapped[str] = mapped_column(
        Enum(PaymentStatus, values_callable=lambda x: [e.value for e in x]),
        default=PaymentStatus.PENDING,
        index=True,
    )
    payment_method: Mapped[str | None] = mapped_column(String, nullable=True)  # cash, card, bank-transfer, online, other
    paid_amount: Mapped[float] = mapped_column(Float, default=0.0)
    paid_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    due_date: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    pdf_url: Mapped[str] = mapped_column(String, default="")
    pdf_storage_id: Mapped[str] = mapped_column(String, default="")
    # JSON list of task image ids rendered into the PDF
    selected_images: Mapped[str] = mapped_column(Text, default="[]")

    email_sent: Mapped[bool] = mapped_column(default=False)
    whatsapp_sent: Mapped[bool] = mapped_column(default=False)

    notes: Mapped[str] = mapped_column(Text, default="")
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now(), onupdate=func.now())

    items: Mapped[list["InvoiceItem"]] = relationship(
        "InvoiceItem", back_populates="invoice", cascade="all, delete-orphan", order_by="InvoiceItem.position"
    )

    def recalculate(self) -> None:
        self.subtotal = round(sum(i.total for i in self.items), 2)
        self.tax_amount = round(self.subtotal * self.tax_rate / 100, 2)
        self.total = round(max(0.0, self.subtotal + self.tax_amount - (self.discount or 0.0)), 2)

    @property
    def balance_due(self) -> float:
        return round(max(0.0, self.total - self.paid_amount), 2)


class InvoiceItem(Base):
    __tablename__ = "invoice_items"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    invoice_id: Mapped[str] = mapped_column(String, ForeignKey("invoices.id"), nullable=False, index=True)
    position: Mapped[int] = mapped_column(Integer, default=0)
    description: Mapped[str] = mapped_column(String, nullable=False)
    quantity: Mapped[float] = mapped_column(Float, default=1.0)
    unit: Mapped[str] = mapped_column(String, default="")
    unit_price: Mapped[float] = mapped_column(Float, default=0.0)
    total: Mapped[float] = mapped_column(Float, default=0.0)

    invoice: Mapped["Invoice"] = relationship("Invoice", back_populates="items")
