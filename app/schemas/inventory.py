from datetime import datetime

from pydantic import BaseModel, Field, field_validator

CATEGORIES = {"fertilizer", "pesticide", "seeds", "tools", "equipment", "other"}
UNITS = {"kg", "liter", "piece", "bag", "box", "meter"}


class InventoryItemCreate(BaseModel):
    sku: str = Field(min_length=1)
    name: str = Field(min_length=1)
    description: str = Field(default="", max_length=500)
    category: str = "other"
    unit: str = "piece"
    branch_id: str | None = None
    quantity_current: float = Field(default=0.0, ge=0)
    quantity_minimum: float = Field(default=10.0, ge=0)
    quantity_maximum: float = Field(default=1000.0, ge=0)
    cost_price: float = Field(default=0.0, ge=0)
    selling_price: float = Field(default=0.0, ge=0)
    supplier_name: str = ""
    supplier_contact: str = ""
    expiry_date: datetime | None = None
    low_stock_alert_enabled: bool = True

    @field_validator("sku")
    @classmethod
    def normalise_sku(cls, v: str) -> str:
        return v.strip().upper()

    @field_validator("category")
    @classmethod
    def check_category(cls, v: str) -> str:
        if v not in CATEGORIES:
            raise ValueError(f"category must be one of {sorted(CATEGORIES)}")
        return v

    @field_validator("unit")
    @classmethod
    def check_unit(cls, v: str) -> str:
        if v not in UNITS:
            raise ValueError(f"unit must be one of {sorted(UNITS)}")
        return v


class InventoryItemUpdate(BaseModel):
    name: str | None = None
    description: str | None = None
    category: str | None = None
    unit: str | None = None
    branch_id: str | None = None
    quantity_minimum: float | None = Field(default=None, ge=0)
    quantity_maximum: float | None = Field(default=None, ge=0)
    cost_price: float | None = Field(default=None, ge=0)
    selling_price: float | None = Field(default=None, ge=0)
    supplier_name: str | None = None
    supplier_contact: str | None = None
    expiry_date: datetime | None = None
    active: bool | None = None
    low_stock_alert_enabled: bool | None = None

    @field_validator("category")
    @classmethod
    def check_category(cls, v: str | None) -> str | None:
        if v is not None and v not in CATEGORIES:
            raise ValueError(f"category must be one of {sorted(CATEGORIES)}")
        return v

    @field_validator("unit")
    @classmethod
    def check_unit(cls, v: str | None) -> str | None:
        if v is not None and v not in UNITS:
            raise ValueError(f"unit must be one of {sorted(UNITS)}")
        return v


class InventoryItemOut(BaseModel):
    id: str
    sku: str
    name: str
    description: str
    category: str
    unit: str
    branch_id: str | None
    quantity_current: float
    quantity_minimum: float
    quantity_maximum: float
    stock_status: str
    cost_price: float
    selling_price: float
    supplier_name: str
    supplier_contact: str
    last_restocked: datetime | None
    expiry_date: datetime | None
    active: bool
    low_stock_alert_enabled: bool
    last_alert_sent_at: datetime | None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


# Quantity is validated by the ledger itself so the error carries its own type.
class WithdrawRequest(BaseModel):
    quantity: float
    task_id: str | None = None
    notes: str = Field(default="", max_length=500)


class RestockRequest(BaseModel):
    quantity: float
    notes: str = Field(default="", max_length=500)


class ReturnRequest(BaseModel):
    quantity: float
    task_id: str | None = None
    notes: str = Field(default="", max_length=500)


class AdjustRequest(BaseModel):
    new_quantity: float = Field(ge=0)
    notes: str = Field(default="", max_length=500)


class InventoryTransactionOut(BaseModel):
    id: str
    item_id: str
    task_id: str | None
    worker_id: str
    type: str
    quantity: float
    unit: str
    previous_quantity: float
    new_quantity: float
    notes: str
    confirmed_by: str
    created_at: datetime

    model_config = {"from_attributes": True}
