from datetime import datetime

from pydantic import BaseModel, Field, field_validator

from app.schemas.common import Coordinates
from app.schemas.plant import TaskPlantIn, TaskPlantOut

TASK_CATEGORIES = {"lawn-mowing", "tree-trimming", "landscaping", "irrigation", "pest-control", "other"}
PRIORITIES = {"low", "medium", "high", "urgent"}


class MaterialIn(BaseModel):
    item_id: str | None = None
    name: str = ""
    quantity: float = Field(gt=0)
    unit: str = ""


class MaterialOut(BaseModel):
    id: str
    item_id: str | None
    name: str
    quantity: float
    unit: str
    confirmed: bool
    confirmed_at: datetime | None
    confirmed_by: str | None

    model_config = {"from_attributes": True}


class _TaskFields(BaseModel):
    @field_validator("category", check_fields=False)
    @classmethod
    def check_category(cls, v):
        if v is not None and v not in TASK_CATEGORIES:
            raise ValueError(f"category must be one of {sorted(TASK_CATEGORIES)}")
        return v

    @field_validator("priority", check_fields=False)
    @classmethod
    def check_priority(cls, v):
        if v is not None and v not in PRIORITIES:
            raise ValueError(f"priority must be one of {sorted(PRIORITIES)}")
        return v


class TaskCreate(_TaskFields):
    title: str = Field(min_length=1)
    description: str = Field(min_length=1, max_length=2000)
    category: str = "other"
    priority: str = "medium"
    site_id: str
    section_id: str
    client_id: str | None = None  # defaults to the site's client
    branch_id: str
    scheduled_date: datetime
    estimated_duration: float = Field(default=2.0, ge=0)
    address: str = ""
    cost_labor: float = Field(default=0.0, ge=0)
    cost_materials: float = Field(default=0.0, ge=0)
    materials: list[MaterialIn] = []
    plants: list[TaskPlantIn] = []
    notes: str = Field(default="", max_length=1000)


class TaskUpdate(_TaskFields):
    title: str | None = None
    description: str | None = Field(default=None, max_length=2000)
    category: str | None = None
    priority: str | None = None
    section_id: str | None = None
    scheduled_date: datetime | None = None
    estimated_duration: float | None = Field(default=None, ge=0)
    address: str | None = None
    cost_labor: float | None = Field(default=None, ge=0)
    cost_materials: float | None = Field(default=None, ge=0)
    materials: list[MaterialIn] | None = None
    plants: list[TaskPlantIn] | None = None
    notes: str | None = Field(default=None, max_length=1000)
    # Routed to the assignment transition
    worker_id: str | None = None


class AssignRequest(BaseModel):
    worker_id: str


class LocationRequest(Coordinates):
    pass


class ReviewRequest(BaseModel):
    decision: str
    comments: str = ""

    @field_validator("decision")
    @classmethod
    def check_decision(cls, v: str) -> str:
        if v not in ("approved", "rejected"):
            raise ValueError("decision must be 'approved' or 'rejected'")
        return v


class FeedbackRequest(BaseModel):
    rating: int = Field(ge=1, le=5)
    comment: str = ""


class TaskImageOut(BaseModel):
    id: str
    image_type: str
    url: str
    thumbnail_url: str
    uploaded_by: str
    visible_to_client: bool
    uploaded_at: datetime

    model_config = {"from_attributes": True}


class ReferenceImageOut(BaseModel):
    id: str
    url: str
    thumbnail_url: str
    description: str

    model_config = {"from_attributes": True}


class TaskOut(BaseModel):
    id: str
    title: str
    description: str
    category: str
    priority: str
    client_id: str
    site_id: str
    section_id: str | None
    worker_id: str | None
    branch_id: str
    status: str
    scheduled_date: datetime
    estimated_duration: float
    actual_duration: float
    address: str
    start_latitude: float | None
    start_longitude: float | None
    start_location_at: datetime | None
    end_latitude: float | None
    end_longitude: float | None
    end_location_at: datetime | None
    started_at: datetime | None
    completed_at: datetime | None
    cost_labor: float
    cost_materials: float
    cost_total: float
    materials_reserved: bool
    review_status: str | None
    review_comments: str
    reviewed_by: str | None
    reviewed_at: datetime | None
    feedback_rating: int | None
    feedback_comment: str
    feedback_at: datetime | None
    invoice_id: str | None
    notes: str
    materials: list[MaterialOut] = []
    plants: list[TaskPlantOut] = []
    images: list[TaskImageOut] = []
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class TaskDetailOut(TaskOut):
    reference_images: list[ReferenceImageOut] = []
