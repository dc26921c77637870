from datetime import datetime

from pydantic import BaseModel, Field, field_validator

PAYMENT_METHODS = {"cash", "card", "bank-transfer", "online", "other"}


class InvoiceCreate(BaseModel):
    task_id: str
    selected_image_ids: list[str] = []
    discount: float = Field(default=0.0, ge=0)
    due_date: datetime | None = None  # None = INVOICE_DUE_DAYS from today
    notes: str = ""


class InvoiceUpdate(BaseModel):
    discount: float | None = Field(default=None, ge=0)
    due_date: datetime | None = None
    notes: str | None = None
    selected_image_ids: list[str] | None = None
    regenerate_pdf: bool = False


class PaymentRequest(BaseModel):
    amount: float = Field(gt=0)
    method: str = "cash"

    @field_validator("method")
    @classmethod
    def check_method(cls, v: str) -> str:
        if v not in PAYMENT_METHODS:
            raise ValueError(f"method must be one of {sorted(PAYMENT_METHODS)}")
        return v


class InvoiceItemOut(BaseModel):
    description: str
    quantity: float
    unit: str
    unit_price: float
    total: float

    model_config = {"from_attributes": True}


class InvoiceOut(BaseModel):
    id: str
    invoice_number: str
    task_id: str
    client_id: str
    branch_id: str
    subtotal: float
    tax_rate: float
    tax_amount: float
    discount: float
    total: float
    currency: str
    payment_status: str
    payment_method: str | None
    paid_amount: float
    balance_due: float
    paid_at: datetime | None
    due_date: datetime | None
    pdf_url: str
    email_sent: bool
    whatsapp_sent: bool
    notes: str
    items: list[InvoiceItemOut] = []
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}
