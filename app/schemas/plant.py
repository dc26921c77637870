import json
from datetime import datetime

from pydantic import BaseModel, Field, field_validator

CATEGORIES = {"flower", "tree", "shrub", "grass", "succulent", "herb", "vegetable", "fruit", "other"}
GROWTH_RATES = {"slow", "moderate", "fast"}
SEASONS = {"spring", "summer", "fall", "winter", "year-round"}
UNITS = {"piece", "pot", "kg", "bundle", "meter"}


def _one_of(value, allowed: set[str], name: str):
    if value is not None and value not in allowed:
        raise ValueError(f"{name} must be one of {sorted(allowed)}")
    return value


class _PlantFields(BaseModel):
    @field_validator("category", check_fields=False)
    @classmethod
    def check_category(cls, v):
        return _one_of(v, CATEGORIES, "category")

    @field_validator("growth_rate", check_fields=False)
    @classmethod
    def check_growth_rate(cls, v):
        return _one_of(v, GROWTH_RATES, "growth_rate")

    @field_validator("unit", check_fields=False)
    @classmethod
    def check_unit(cls, v):
        return _one_of(v, UNITS, "unit")

    @field_validator("seasonality", check_fields=False)
    @classmethod
    def check_seasons(cls, v):
        for season in v or []:
            _one_of(season, SEASONS, "seasonality")
        return v


class PlantCreate(_PlantFields):
    name_en: str = Field(min_length=1)
    name_ar: str = Field(min_length=1)
    name_bn: str = ""
    scientific_name: str = ""
    category: str = "other"
    description_en: str = Field(default="", max_length=2000)
    description_ar: str = Field(default="", max_length=2000)
    description_bn: str = Field(default="", max_length=2000)
    care_watering: str = ""
    care_sunlight: str = ""
    care_soil: str = ""
    care_temperature: str = ""
    growth_rate: str = "moderate"
    seasonality: list[str] = ["year-round"]
    tags: list[str] = []
    price: float = Field(default=0.0, ge=0)
    stock_quantity: float = Field(default=0.0, ge=0)
    unit: str = "piece"
    active: bool = True


class PlantUpdate(_PlantFields):
    name_en: str | None = Field(default=None, min_length=1)
    name_ar: str | None = Field(default=None, min_length=1)
    name_bn: str | None = None
    scientific_name: str | None = None
    category: str | None = None
    description_en: str | None = Field(default=None, max_length=2000)
    description_ar: str | None = Field(default=None, max_length=2000)
    description_bn: str | None = Field(default=None, max_length=2000)
    care_watering: str | None = None
    care_sunlight: str | None = None
    care_soil: str | None = None
    care_temperature: str | None = None
    growth_rate: str | None = None
    seasonality: list[str] | None = None
    tags: list[str] | None = None
    price: float | None = Field(default=None, ge=0)
    stock_quantity: float | None = Field(default=None, ge=0)
    unit: str | None = None
    active: bool | None = None


class PlantOut(BaseModel):
    id: str
    name_en: str
    name_ar: str
    name_bn: str
    scientific_name: str
    category: str
    description_en: str
    description_ar: str
    description_bn: str
    image_url: str
    care_watering: str
    care_sunlight: str
    care_soil: str
    care_temperature: str
    growth_rate: str
    seasonality: list[str]
    tags: list[str]
    price: float
    stock_quantity: float
    unit: str
    active: bool
    times_used: int
    last_used_at: datetime | None
    created_at: datetime
    updated_at: datetime
    # Filled from name_<lang> / description_<lang> when a language is requested
    name: str = ""
    description: str = ""

    model_config = {"from_attributes": True}

    @field_validator("seasonality", "tags", mode="before")
    @classmethod
    def decode_json_list(cls, v):
        return json.loads(v or "[]") if isinstance(v, str) else v


class TaskPlantIn(BaseModel):
    plant_id: str
    quantity: float = Field(default=1.0, gt=0)
    notes: str = ""


class TaskPlantOut(BaseModel):
    id: str
    plant_id: str
    quantity: float
    notes: str

    model_config = {"from_attributes": True}
