from fastapi import APIRouter, Depends, File, Form, Query, UploadFile
from sqlalchemy.orm import Session

from app.actors import Actor, AdminActor
from app.api.auth import get_current_actor, require_admin
from app.database import get_db
from app.schemas.common import ok, page_of
from app.schemas.site import SectionImageOut, SectionIn, SectionOut, SectionUpdate, SiteCreate, SiteOut, SiteUpdate
from app.services import site_service, storage_service

router = APIRouter(prefix="/sites", tags=["Sites"])


@router.get("")
def list_sites(
    client_id: str | None = None,
    active: bool | None = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=200),
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    sites, total = site_service.list_sites(db, actor, client_id=client_id, active=active, page=page, limit=limit)
    return ok(page_of([SiteOut.model_validate(s) for s in sites], total, page, limit))


@router.post("", status_code=201)
def create_site(data: SiteCreate, admin: AdminActor = Depends(require_admin), db: Session = Depends(get_db)):
    return ok(SiteOut.model_validate(site_service.create_site(db, data, admin)), message="Site created")


@router.get("/{site_id}")
def get_site(site_id: str, actor: Actor = Depends(get_current_actor), db: Session = Depends(get_db)):
    return ok(SiteOut.model_validate(site_service.get_site(db, site_id, actor)))


@router.put("/{site_id}")
def update_site(site_id: str, data: SiteUpdate, admin: AdminActor = Depends(require_admin), db: Session = Depends(get_db)):
    return ok(SiteOut.model_validate(site_service.update_site(db, site_id, data, admin)), message="Site updated")


@router.delete("/{site_id}")
def delete_site(site_id: str, admin: AdminActor = Depends(require_admin), db: Session = Depends(get_db)):
    site_service.delete_site(db, site_id, admin)
    return ok(message="Site deleted")


@router.post("/{site_id}/sections", status_code=201)
def add_section(site_id: str, data: SectionIn, admin: AdminActor = Depends(require_admin), db: Session = Depends(get_db)):
    section = site_service.add_section(db, site_id, data, admin)
    return ok(SectionOut.model_validate(section), message="Section added")


@router.put("/{site_id}/sections/{section_id}")
def update_section(
    site_id: str,
    section_id: str,
    data: SectionUpdate,
    admin: AdminActor = Depends(require_admin),
    db: Session = Depends(get_db),
):
    section = site_service.update_section(db, site_id, section_id, data, admin)
    return ok(SectionOut.model_validate(section), message="Section updated")


@router.delete("/{site_id}/sections/{section_id}")
def delete_section(site_id: str, section_id: str, admin: AdminActor = Depends(require_admin), db: Session = Depends(get_db)):
    site_service.delete_section(db, site_id, section_id, admin)
    return ok(message="Section deleted")


@router.post("/{site_id}/sections/{section_id}/images", status_code=201)
def upload_reference_images(
    site_id: str,
    section_id: str,
    description: str = Form(""),
    images: list[UploadFile] = File(...),
    admin: AdminActor = Depends(require_admin),
    db: Session = Depends(get_db),
):
    files = [storage_service.Upload(filename=f.filename or "", content=f.file.read()) for f in images]
    added = site_service.add_reference_images(db, site_id, section_id, files, description, admin)
    return ok([SectionImageOut.model_validate(i) for i in added], message=f"{len(added)} reference image(s) uploaded")


@router.delete("/{site_id}/sections/{section_id}/images/{image_id}")
def delete_reference_image(
    site_id: str,
    section_id: str,
    image_id: str,
    admin: AdminActor = Depends(require_admin),
    db: Session = Depends(get_db),
):
    site_service.delete_reference_image(db, site_id, section_id, image_id, admin)
    return ok(message="Reference image deleted")
