from datetime import datetime

from pydantic import BaseModel, EmailStr, Field


class LoginRequest(BaseModel):
    email: str
    password: str


class ClientLoginRequest(BaseModel):
    username: str
    password: str


class UserOut(BaseModel):
    id: str
    name: str
    email: str
    phone: str
    role: str
    active: bool
    language: str
    branch_id: str | None
    specialization: str
    completed_tasks: int
    created_at: datetime | None = None

    model_config = {"from_attributes": True}


class CreateUserRequest(BaseModel):
    name: str = Field(min_length=1)
    email: EmailStr
    password: str = Field(min_length=6)
    role: str = "worker"
    phone: str = ""
    language: str = Field(default="en", pattern="^(en|ar|bn)$")
    branch_id: str | None = None
    specialization: str = ""


class UpdateUserRequest(BaseModel):
    name: str | None = None
    phone: str | None = None
    role: str | None = None
    language: str | None = Field(default=None, pattern="^(en|ar|bn)$")
    branch_id: str | None = None
    specialization: str | None = None


class ChangePasswordRequest(BaseModel):
    current_password: str = ""
    password: str = Field(min_length=6)


class ResetPasswordRequest(BaseModel):
    password: str = Field(min_length=6)
