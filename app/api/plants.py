from fastapi import APIRouter, Depends, File, Query, UploadFile
from sqlalchemy.orm import Session

from app.actors import AdminActor
from app.api.auth import require_admin
from app.database import get_db
from app.models.plant import Plant
from app.schemas.common import ok, page_of
from app.schemas.plant import PlantCreate, PlantOut, PlantUpdate
from app.services import plant_service, storage_service
from app.services.translation_service import SUPPORTED_LANGUAGES

router = APIRouter(prefix="/plants", tags=["Plants"])

LANG_PATTERN = "^(" + "|".join(SUPPORTED_LANGUAGES) + ")$"


def _plant_out(plant: Plant, lang: str) -> PlantOut:
    out = PlantOut.model_validate(plant)
    out.name = plant.localized_name(lang)
    out.description = plant.localized_description(lang)
    return out


# The catalogue is public; only admins change it.


@router.get("")
def list_plants(
    category: str | None = None,
    active: bool | None = None,
    search: str | None = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=200),
    lang: str = Query("en", pattern=LANG_PATTERN),
    db: Session = Depends(get_db),
):
    plants, total = plant_service.list_plants(db, category=category, active=active, search=search, page=page, limit=limit)
    return ok(page_of([_plant_out(p, lang) for p in plants], total, page, limit))


@router.get("/categories")
def list_categories(db: Session = Depends(get_db)):
    return ok(plant_service.list_categories(db))


@router.post("", status_code=201)
def create_plant(data: PlantCreate, admin: AdminActor = Depends(require_admin), db: Session = Depends(get_db)):
    plant = plant_service.create_plant(db, data, admin)
    return ok(_plant_out(plant, "en"), message="Plant created")


@router.get("/{plant_id}")
def get_plant(plant_id: str, lang: str = Query("en", pattern=LANG_PATTERN), db: Session = Depends(get_db)):
    return ok(_plant_out(plant_service.get_plant(db, plant_id), lang))


@router.put("/{plant_id}")
def update_plant(plant_id: str, data: PlantUpdate, admin: AdminActor = Depends(require_admin), db: Session = Depends(get_db)):
    plant = plant_service.update_plant(db, plant_id, data, admin)
    return ok(_plant_out(plant, "en"), message="Plant updated")


@router.delete("/{plant_id}")
def delete_plant(plant_id: str, admin: AdminActor = Depends(require_admin), db: Session = Depends(get_db)):
    plant_service.delete_plant(db, plant_id, admin)
    return ok(message="Plant deleted")


@router.put("/{plant_id}/image")
def upload_image(
    plant_id: str,
    image: UploadFile = File(...),
    admin: AdminActor = Depends(require_admin),
    db: Session = Depends(get_db),
):
    upload = storage_service.Upload(filename=image.filename or "", content=image.file.read())
    plant = plant_service.set_image(db, plant_id, upload, admin)
    return ok(_plant_out(plant, "en"), message="Plant image uploaded")


@router.delete("/{plant_id}/image")
def delete_image(plant_id: str, admin: AdminActor = Depends(require_admin), db: Session = Depends(get_db)):
    plant = plant_service.remove_image(db, plant_id, admin)
    return ok(_plant_out(plant, "en"), message="Plant image removed")
