from datetime import datetime

from pydantic import BaseModel, EmailStr, Field

LANGUAGES = ("en", "ar", "bn")


class ClientCreate(BaseModel):
    name: str = Field(min_length=1)
    email: EmailStr
    phone: str = Field(min_length=1)
    whatsapp: str = ""
    address: str = ""
    language: str = Field(default="en", pattern="^(en|ar|bn)$")
    branch_id: str | None = None
    notes: str = ""
    send_credentials: bool = False


class ClientUpdate(BaseModel):
    name: str | None = None
    email: EmailStr | None = None
    phone: str | None = None
    whatsapp: str | None = None
    address: str | None = None
    language: str | None = Field(default=None, pattern="^(en|ar|bn)$")
    branch_id: str | None = None
    notes: str | None = None
    active: bool | None = None


class ClientOut(BaseModel):
    id: str
    name: str
    email: str
    phone: str
    whatsapp: str
    address: str
    language: str
    branch_id: str | None
    username: str | None
    active: bool
    total_tasks: int
    completed_tasks: int
    total_spent: float
    notes: str
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class CredentialsOut(BaseModel):
    username: str
    temporary_password: str
    email_sent: bool
    whatsapp_sent: bool
