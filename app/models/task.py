import uuid
from datetime import datetime
from enum import Enum as PyEnum

from sqlalchemy import DateTime, Enum, Float, ForeignKey, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base


class TaskStatus(str, PyEnum):
    PENDING = "pending"
    ASSIGNED = "assigned"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    REVIEW = "review"  # kept for filtering legacy records; no transition enters it
    REJECTED = "rejected"


class ReviewStatus(str, PyEnum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class ImageType(str, PyEnum):
    BEFORE = "before"
    AFTER = "after"


def duration_hours(started_at: datetime | None, completed_at: datetime | None) -> float:
    if not started_at or not completed_at:
        return 0.0
    return round((completed_at - started_at).total_seconds() / 3600, 2)


class Task(Base):
    __tablename__ = "tasks"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    title: Mapped[str] = mapped_column(String, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    category: Mapped[str] = mapped_column(String, default="other")  # lawn-mowing, tree-trimming, landscaping, irrigation, pest-control, other
    priority: Mapped[str] = mapped_column(String, default="medium")  # low, medium, high, urgent

    client_id: Mapped[str] = mapped_column(String, ForeignKey("clients.id"), nullable=False, index=True)
    site_id: Mapped[str] = mapped_column(String, ForeignKey("sites.id"), nullable=False, index=True)
    section_id: Mapped[str | None] = mapped_column(String, ForeignKey("sections.id"), nullable=True)
    worker_id: Mapped[str | None] = mapped_column(String, ForeignKey("users.id"), nullable=True, index=True)
    branch_id: Mapped[str] = mapped_column(String, ForeignKey("branches.id"), nullable=False)

    status: Mapped[str] = mapped_column(
        Enum(TaskStatus, values_callable=lambda x: [e.value for e in x]),
        default=TaskStatus.PENDING,
        index=True,
    )

    scheduled_date: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)
    estimated_duration: Mapped[float] = mapped_column(Float, default=2.0)  # hours
    actual_duration: Mapped[float] = mapped_column(Float, default=0.0)  # hours, derived

    address: Mapped[str] = mapped_column(String, default="")

    # GPS check-in / check-out
    start_latitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    start_longitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    start_location_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    end_latitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    end_longitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    end_location_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    started_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    # Cost
    cost_labor: Mapped[float] = mapped_column(Float, default=0.0)
    cost_materials: Mapped[float] = mapped_column(Float, default=0.0)
    cost_total: Mapped[float] = mapped_column(Float, default=0.0)

    # Set once the material lines have been withdrawn from stock
    materials_reserved: Mapped[bool] = mapped_column(default=False)

    # Admin review (authoritative for the review outcome)
    review_status: Mapped[str | None] = mapped_column(
        Enum(ReviewStatus, values_callable=lambda x: [e.value for e in x]),
        nullable=True,
    )
    review_comments: Mapped[str] = mapped_column(Text, default="")
    reviewed_by: Mapped[str | None] = mapped_column(String, ForeignKey("users.id"), nullable=True)
    reviewed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    # Client feedback
    feedback_rating: Mapped[int | None] = mapped_column(Integer, nullable=True)
    feedback_comment: Mapped[str] = mapped_column(Text, default="")
    feedback_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    invoice_id: Mapped[str | None] = mapped_column(String, nullable=True)
    notes: Mapped[str] = mapped_column(Text, default="")

    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now(), onupdate=func.now())

    materials: Mapped[list["TaskMaterial"]] = relationship(
        "TaskMaterial", back_populates="task", cascade="all, delete-orphan", order_by="TaskMaterial.position"
    )
    images: Mapped[list["TaskImage"]] = relationship(
        "TaskImage", back_populates="task", cascade="all, delete-orphan", order_by="TaskImage.uploaded_at"
    )
    plants: Mapped[list["TaskPlant"]] = relationship(
        "TaskPlant", back_populates="task", cascade="all, delete-orphan", order_by="TaskPlant.position"
    )

    def recalculate(self) -> None:
        """Refresh the derived fields: cost total and actual duration."""
        self.cost_total = round((self.cost_labor or 0.0) + (self.cost_materials or 0.0), 2)
        self.actual_duration = duration_hours(self.started_at, self.completed_at)

    def images_of(self, image_type: ImageType) -> list["TaskImage"]:
        return [img for img in self.images if img.image_type == image_type.value]


class TaskMaterial(Base):
    __tablename__ = "task_materials"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    task_id: Mapped[str] = mapped_column(String, ForeignKey("tasks.id"), nullable=False, index=True)
    position: Mapped[int] = mapped_column(Integer, default=0)
    item_id: Mapped[str | None] = mapped_column(String, ForeignKey("inventory_items.id"), nullable=True)
    name: Mapped[str] = mapped_column(String, default="")
    quantity: Mapped[float] = mapped_column(Float, default=0.0)
    unit: Mapped[str] = mapped_column(String, default="")
    confirmed: Mapped[bool] = mapped_column(default=False)
    confirmed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    confirmed_by: Mapped[str | None] = mapped_column(String, nullable=True)

    task: Mapped["Task"] = relationship("Task", back_populates="materials")


class TaskImage(Base):
    __tablename__ = "task_images"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    task_id: Mapped[str] = mapped_column(String, ForeignKey("tasks.id"), nullable=False, index=True)
    image_type: Mapped[str] = mapped_column(String, nullable=False)  # before, after
    url: Mapped[str] = mapped_column(String, nullable=False)
    thumbnail_url: Mapped[str] = mapped_column(String, default="")
    storage_id: Mapped[str] = mapped_column(String, default="")
    uploaded_by: Mapped[str] = mapped_column(String, nullable=False)
    visible_to_client: Mapped[bool] = mapped_column(default=False)
    uploaded_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    task: Mapped["Task"] = relationship("Task", back_populates="images")


class TaskPlant(Base):
    __tablename__ = "task_plants"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    task_id: Mapped[str] = mapped_column(String, ForeignKey("tasks.id"), nullable=False, index=True)
    plant_id: Mapped[str] = mapped_column(String, ForeignKey("plants.id"), nullable=False, index=True)
    position: Mapped[int] = mapped_column(Integer, default=0)
    quantity: Mapped[float] = mapped_column(Float, default=1.0)
    notes: Mapped[str] = mapped_column(Text, default="")

    task: Mapped["Task"] = relationship("Task", back_populates="plants")
