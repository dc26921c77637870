"""Plant catalogue: the multilingual reference list tasks pick plants from."""

import json
import logging

from sqlalchemy import or_, update
from sqlalchemy.orm import Session

from app.actors import Actor, AdminActor
from app.database import utcnow
from app.exceptions import AuthorizationError, ConflictError, DependencyError, NotFoundError, ValidationError
from app.models.plant import Plant
from app.models.task import TaskPlant
from app.schemas.plant import PlantCreate, PlantUpdate, TaskPlantIn
from app.services import storage_service

logger = logging.getLogger(__name__)

JSON_LIST_FIELDS = ("seasonality", "tags")


def _require_admin(actor: Actor) -> None:
    if not isinstance(actor, AdminActor):
        raise AuthorizationError("Admin only")


def _encode(fields: dict) -> dict:
    for name in JSON_LIST_FIELDS:
        if fields.get(name) is not None:
            fields[name] = json.dumps(fields[name])
    return fields


def get_plant(db: Session, plant_id: str) -> Plant:
    plant = db.get(Plant, plant_id)
    if not plant:
        raise NotFoundError.of("Plant")
    return plant


def list_plants(
    db: Session,
    category: str | None = None,
    active: bool | None = None,
    search: str | None = None,
    page: int = 1,
    limit: int = 20,
) -> tuple[list[Plant], int]:
    q = db.query(Plant)
    if category:
        q = q.filter(Plant.category == category)
    if active is not None:
        q = q.filter(Plant.active == active)
    if search:
        pattern = f"%{search}%"
        q = q.filter(or_(
            Plant.name_en.ilike(pattern),
            Plant.name_ar.ilike(pattern),
            Plant.name_bn.ilike(pattern),
            Plant.scientific_name.ilike(pattern),
        ))
    total = q.count()
    plants = q.order_by(Plant.created_at.desc()).offset((page - 1) * limit).limit(limit).all()
    return plants, total


def list_categories(db: Session) -> list[str]:
    """Categories actually in use, not the full allowed set."""
    rows = db.query(Plant.category).distinct().order_by(Plant.category).all()
    return [r[0] for r in rows]


def create_plant(db: Session, data: PlantCreate, actor: Actor) -> Plant:
    _require_admin(actor)
    plant = Plant(**_encode(data.model_dump()))
    db.add(plant)
    db.commit()
    db.refresh(plant)
    logger.info("Created plant %s (%s)", plant.name_en, plant.id)
    return plant


def update_plant(db: Session, plant_id: str, data: PlantUpdate, actor: Actor) -> Plant:
    _require_admin(actor)
    plant = get_plant(db, plant_id)
    for field, value in _encode(data.model_dump(exclude_unset=True)).items():
        if value is not None:
            setattr(plant, field, value)
    db.commit()
    db.refresh(plant)
    return plant


def _drop_image(storage_id: str) -> None:
    try:
        storage_service.delete_file(storage_id)
    except DependencyError:
        logger.warning("Plant image %s was not removed", storage_id)


def delete_plant(db: Session, plant_id: str, actor: Actor) -> None:
    _require_admin(actor)
    plant = get_plant(db, plant_id)
    if db.query(TaskPlant).filter(TaskPlant.plant_id == plant.id).first():
        raise ConflictError("Plant is used by tasks and cannot be deleted; deactivate it instead")
    storage_id = plant.image_storage_id
    db.delete(plant)
    db.commit()
    _drop_image(storage_id)


def set_image(db: Session, plant_id: str, upload: storage_service.Upload, actor: Actor) -> Plant:
    """Store a new picture and drop the one it replaces."""
    _require_admin(actor)
    plant = get_plant(db, plant_id)
    stored = storage_service.save_image(upload.content, upload.filename, folder="plants")
    previous = plant.image_storage_id
    plant.image_url = stored.url
    plant.image_storage_id = stored.storage_id
    db.commit()
    db.refresh(plant)
    if previous:
        _drop_image(previous)
    return plant


def remove_image(db: Session, plant_id: str, actor: Actor) -> Plant:
    _require_admin(actor)
    plant = get_plant(db, plant_id)
    previous = plant.image_storage_id
    plant.image_url = ""
    plant.image_storage_id = ""
    db.commit()
    db.refresh(plant)
    _drop_image(previous)
    return plant


# ---------------------------------------------------------------------------
# Task links
# ---------------------------------------------------------------------------


def build_task_plants(db: Session, lines: list[TaskPlantIn]) -> list[TaskPlant]:
    """Validate plant lines for a task. The caller owns the commit."""
    plants = []
    for position, line in enumerate(lines):
        plant = db.get(Plant, line.plant_id)
        if not plant or not plant.active:
            raise ValidationError.for_field(f"plants[{position}].plant_id", f"Plant {line.plant_id} not found")
        plants.append(TaskPlant(position=position, plant_id=plant.id, quantity=line.quantity, notes=line.notes))
    return plants


def record_usage(db: Session, plant_ids: list[str]) -> None:
    if not plant_ids:
        return
    db.execute(
        update(Plant)
        .where(Plant.id.in_(set(plant_ids)))
        .values(times_used=Plant.times_used + 1, last_used_at=utcnow())
        .execution_options(synchronize_session=False)
    )
