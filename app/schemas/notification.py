from datetime import datetime

from pydantic import BaseModel


class NotificationOut(BaseModel):
    id: str
    type: str
    title: str
    message: str
    priority: str
    task_id: str | None
    invoice_id: str | None
    email_sent: bool
    whatsapp_sent: bool
    read: bool
    read_at: datetime | None
    created_at: datetime

    model_config = {"from_attributes": True}
