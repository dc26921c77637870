import uuid
from datetime import datetime

from sqlalchemy import DateTime, Float, ForeignKey, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base


class Site(Base):
    """A client property that receives maintenance visits."""

    __tablename__ = "sites"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    name: Mapped[str] = mapped_column(String, nullable=False)
    description: Mapped[str] = mapped_column(Text, default="")
    client_id: Mapped[str] = mapped_column(String, ForeignKey("clients.id"), nullable=False, index=True)
    address: Mapped[str] = mapped_column(String, default="")
    site_type: Mapped[str] = mapped_column(String, default="residential")  # residential, commercial, industrial, public, agricultural
    total_area: Mapped[float] = mapped_column(Float, default=0.0)  # square metres
    cover_image_url: Mapped[str] = mapped_column(String, default="")
    active: Mapped[bool] = mapped_column(default=True)

    total_tasks: Mapped[int] = mapped_column(Integer, default=0)
    completed_tasks: Mapped[int] = mapped_column(Integer, default=0)
    last_visit: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now(), onupdate=func.now())

    client: Mapped["Client"] = relationship("Client", back_populates="sites")
    sections: Mapped[list["Section"]] = relationship(
        "Section", back_populates="site", cascade="all, delete-orphan", order_by="Section.created_at"
    )

    @property
    def completion_rate(self) -> float:
        if not self.total_tasks:
            return 0.0
        return round(self.completed_tasks / self.total_tasks * 100, 2)


class Section(Base):
    __tablename__ = "sections"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    site_id: Mapped[str] = mapped_column(String, ForeignKey("sites.id"), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    description: Mapped[str] = mapped_column(Text, default="")
    area: Mapped[float] = mapped_column(Float, default=0.0)
    status: Mapped[str] = mapped_column(String, default="pending")  # pending, in-progress, completed, maintenance
    notes: Mapped[str] = mapped_column(Text, default="")
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())

    site: Mapped["Site"] = relationship("Site", back_populates="sections")
    reference_images: Mapped[list["SectionImage"]] = relationship(
        "SectionImage", back_populates="section", cascade="all, delete-orphan"
    )


class SectionImage(Base):
    __tablename__ = "section_images"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    section_id: Mapped[str] = mapped_column(String, ForeignKey("sections.id"), nullable=False, index=True)
    url: Mapped[str] = mapped_column(String, nullable=False)
    thumbnail_url: Mapped[str] = mapped_column(String, default="")
    storage_id: Mapped[str] = mapped_column(String, default="")
    description: Mapped[str] = mapped_column(String, default="")
    uploaded_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())

    section: Mapped["Section"] = relationship("Section", back_populates="reference_images")


# Avoid circular import: Client is in app.models.client
from app.models.client import Client  # noqa: E402, F401
