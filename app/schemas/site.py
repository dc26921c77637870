from datetime import datetime

from pydantic import BaseModel, Field

SITE_TYPES = "^(residential|commercial|industrial|public|agricultural)$"
SECTION_STATUSES = "^(pending|in-progress|completed|maintenance)$"


class SectionIn(BaseModel):
    name: str = Field(min_length=1)
    description: str = ""
    area: float = Field(default=0.0, ge=0)
    status: str = Field(default="pending", pattern=SECTION_STATUSES)
    notes: str = ""


class SectionUpdate(BaseModel):
    name: str | None = None
    description: str | None = None
    area: float | None = Field(default=None, ge=0)
    status: str | None = Field(default=None, pattern=SECTION_STATUSES)
    notes: str | None = None


class SectionImageOut(BaseModel):
    id: str
    url: str
    thumbnail_url: str
    description: str
    uploaded_at: datetime | None

    model_config = {"from_attributes": True}


class SectionOut(BaseModel):
    id: str
    name: str
    description: str
    area: float
    status: str
    notes: str
    reference_images: list[SectionImageOut] = []

    model_config = {"from_attributes": True}


class SiteCreate(BaseModel):
    name: str = Field(min_length=1)
    description: str = ""
    client_id: str
    address: str = ""
    site_type: str = Field(default="residential", pattern=SITE_TYPES)
    total_area: float = Field(default=0.0, ge=0)
    sections: list[SectionIn] = []


class SiteUpdate(BaseModel):
    name: str | None = None
    description: str | None = None
    address: str | None = None
    site_type: str | None = Field(default=None, pattern=SITE_TYPES)
    total_area: float | None = Field(default=None, ge=0)
    active: bool | None = None


class SiteOut(BaseModel):
    id: str
    name: str
    description: str
    client_id: str
    address: str
    site_type: str
    total_area: float
    cover_image_url: str
    active: bool
    total_tasks: int
    completed_tasks: int
    completion_rate: float
    last_visit: datetime | None
    sections: list[SectionOut] = []
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}
