import uuid
from datetime import datetime

from sqlalchemy import DateTime, Float, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base


class Plant(Base):
    __tablename__ = "plants"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    name_en: Mapped[str] = mapped_column(String, nullable=False, index=True)
    name_ar: Mapped[str] = mapped_column(String, nullable=False)
    name_bn: Mapped[str] = mapped_column(String, default="")
    scientific_name: Mapped[str] = mapped_column(String, default="")
    category: Mapped[str] = mapped_column(String, default="other", index=True)  # flower, tree, shrub, grass, succulent, herb, vegetable, fruit, other

    description_en: Mapped[str] = mapped_column(Text, default="")
    description_ar: Mapped[str] = mapped_column(Text, default="")
    description_bn: Mapped[str] = mapped_column(Text, default="")

    image_url: Mapped[str] = mapped_column(String, default="")
    image_storage_id: Mapped[str] = mapped_column(String, default="")

    # Care instructions
    care_watering: Mapped[str] = mapped_column(String, default="")
    care_sunlight: Mapped[str] = mapped_column(String, default="")
    care_soil: Mapped[str] = mapped_column(String, default="")
    care_temperature: Mapped[str] = mapped_column(String, default="")

    growth_rate: Mapped[str] = mapped_column(String, default="moderate")  # slow, moderate, fast
    seasonality: Mapped[str] = mapped_column(Text, default='["year-round"]')  # JSON list of seasons
    tags: Mapped[str] = mapped_column(Text, default="[]")  # JSON list

    price: Mapped[float] = mapped_column(Float, default=0.0)
    stock_quantity: Mapped[float] = mapped_column(Float, default=0.0)
    unit: Mapped[str] = mapped_column(String, default="piece")  # piece, pot, kg, bundle, meter
    active: Mapped[bool] = mapped_column(default=True, index=True)

    times_used: Mapped[int] = mapped_column(Integer, default=0)
    last_used_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now(), onupdate=func.now())

    def localized_name(self, language: str = "en") -> str:
        return getattr(self, f"name_{language}", "") or self.name_en or self.name_ar

    def localized_description(self, language: str = "en") -> str:
        return getattr(self, f"description_{language}", "") or self.description_en or self.description_ar or ""
