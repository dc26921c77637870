import uuid
from datetime import datetime
from enum import Enum as PyEnum

from sqlalchemy import DateTime, Float, ForeignKey, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base


class StockStatus(str, PyEnum):
    OUT_OF_STOCK = "out-of-stock"
    LOW_STOCK = "low-stock"
    IN_STOCK = "in-stock"
    OVERSTOCKED = "overstocked"


def stock_status(current: float, minimum: float, maximum: float) -> StockStatus:
    if current <= 0:
        return StockStatus.OUT_OF_STOCK
    if current <= minimum:
        return StockStatus.LOW_STOCK
    if current >= maximum:
        return StockStatus.OVERSTOCKED
    return StockStatus.IN_STOCK


class InventoryItem(Base):
    __tablename__ = "inventory_items"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    sku: Mapped[str] = mapped_column(String, unique=True, index=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    description: Mapped[str] = mapped_column(Text, default="")
    category: Mapped[str] = mapped_column(String, default="other")  # fertilizer, pesticide, seeds, tools, equipment, other
    unit: Mapped[str] = mapped_column(String, default="piece")  # kg, liter, piece, bag, box, meter
    branch_id: Mapped[str | None] = mapped_column(String, ForeignKey("branches.id"), nullable=True, index=True)

    # Only the stock ledger writes quantity_current
    quantity_current: Mapped[float] = mapped_column(Float, default=0.0)
    quantity_minimum: Mapped[float] = mapped_column(Float, default=10.0)
    quantity_maximum: Mapped[float] = mapped_column(Float, default=1000.0)

    cost_price: Mapped[float] = mapped_column(Float, default=0.0)
    selling_price: Mapped[float] = mapped_column(Float, default=0.0)

    supplier_name: Mapped[str] = mapped_column(String, default="")
    supplier_contact: Mapped[str] = mapped_column(String, default="")

    last_restocked: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    expiry_date: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    active: Mapped[bool] = mapped_column(default=True)

    low_stock_alert_enabled: Mapped[bool] = mapped_column(default=True)
    last_alert_sent_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now(), onupdate=func.now())

    @property
    def stock_status(self) -> StockStatus:
        return stock_status(self.quantity_current, self.quantity_minimum, self.quantity_maximum)
