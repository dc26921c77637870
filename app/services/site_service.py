import logging

from sqlalchemy.orm import Session

from app.actors import Actor, AdminActor, ClientActor
from app.config import settings
from app.exceptions import AuthorizationError, ConflictError, DependencyError, NotFoundError, ValidationError
from app.models.client import Client
from app.models.site import Section, SectionImage, Site
from app.models.task import Task
from app.schemas.site import SectionIn, SectionUpdate, SiteCreate, SiteUpdate
from app.services import storage_service

logger = logging.getLogger(__name__)


def _require_admin(actor: Actor) -> None:
    if not isinstance(actor, AdminActor):
        raise AuthorizationError("Admin only")


def get_site(db: Session, site_id: str, actor: Actor) -> Site:
    site = db.get(Site, site_id)
    if not site:
        raise NotFoundError.of("Site")
    if isinstance(actor, ClientActor) and site.client_id != actor.client_id:
        raise AuthorizationError("Not authorized to access this site")
    return site


def list_sites(
    db: Session,
    actor: Actor,
    client_id: str | None = None,
    active: bool | None = None,
    page: int = 1,
    limit: int = 20,
) -> tuple[list[Site], int]:
    q = db.query(Site)
    if isinstance(actor, ClientActor):
        q = q.filter(Site.client_id == actor.client_id)
    elif client_id:
        q = q.filter(Site.client_id == client_id)
    if active is not None:
        q = q.filter(Site.active == active)
    total = q.count()
    sites = q.order_by(Site.created_at.desc()).offset((page - 1) * limit).limit(limit).all()
    return sites, total


def create_site(db: Session, data: SiteCreate, actor: Actor) -> Site:
    _require_admin(actor)
    if not db.get(Client, data.client_id):
        raise NotFoundError.of("Client")
    site = Site(**data.model_dump(exclude={"sections"}))
    site.sections = [Section(**s.model_dump()) for s in data.sections]
    db.add(site)
    db.commit()
    db.refresh(site)
    logger.info("Created site %s for client %s", site.id, site.client_id)
    return site


def update_site(db: Session, site_id: str, data: SiteUpdate, actor: Actor) -> Site:
    _require_admin(actor)
    site = get_site(db, site_id, actor)
    for field, value in data.model_dump(exclude_unset=True).items():
        setattr(site, field, value)
    db.commit()
    db.refresh(site)
    return site


def _storage_ids(site: Site) -> list[str]:
    return [img.storage_id for section in site.sections for img in section.reference_images]


def delete_site(db: Session, site_id: str, actor: Actor) -> None:
    _require_admin(actor)
    site = get_site(db, site_id, actor)
    if db.query(Task).filter(Task.site_id == site.id).first():
        raise ConflictError("Site has tasks and cannot be deleted; deactivate it instead")
    storage_ids = _storage_ids(site)
    db.delete(site)
    db.commit()
    for storage_id in storage_ids:
        try:
            storage_service.delete_file(storage_id)
        except DependencyError:
            logger.warning("Reference image %s of deleted site was not removed", storage_id)


# Sections


def get_section(db: Session, site: Site, section_id: str) -> Section:
    section = db.query(Section).filter(Section.id == section_id, Section.site_id == site.id).first()
    if not section:
        raise NotFoundError("Section not found in this site")
    return section


def add_section(db: Session, site_id: str, data: SectionIn, actor: Actor) -> Section:
    _require_admin(actor)
    site = get_site(db, site_id, actor)
    section = Section(site_id=site.id, **data.model_dump())
    db.add(section)
    db.commit()
    db.refresh(section)
    return section


def update_section(db: Session, site_id: str, section_id: str, data: SectionUpdate, actor: Actor) -> Section:
    _require_admin(actor)
    section = get_section(db, get_site(db, site_id, actor), section_id)
    for field, value in data.model_dump(exclude_unset=True).items():
        setattr(section, field, value)
    db.commit()
    db.refresh(section)
    return section


def delete_section(db: Session, site_id: str, section_id: str, actor: Actor) -> None:
    _require_admin(actor)
    section = get_section(db, get_site(db, site_id, actor), section_id)
    if db.query(Task).filter(Task.section_id == section.id).first():
        raise ConflictError("Section has tasks and cannot be deleted")
    storage_ids = [img.storage_id for img in section.reference_images]
    db.delete(section)
    db.commit()
    for storage_id in storage_ids:
        try:
            storage_service.delete_file(storage_id)
        except DependencyError:
            logger.warning("Reference image %s was not removed", storage_id)


def add_reference_images(
    db: Session, site_id: str, section_id: str, files: list[storage_service.Upload], description: str, actor: Actor
) -> list[SectionImage]:
    """Attach "what it should look like" photos to a section."""
    _require_admin(actor)
    section = get_section(db, get_site(db, site_id, actor), section_id)
    if not files:
        raise ValidationError.for_field("images", "No images uploaded")
    if len(files) > settings.MAX_IMAGES_PER_UPLOAD:
        raise ValidationError.for_field("images", f"At most {settings.MAX_IMAGES_PER_UPLOAD} images per upload")

    added = []
    for f in files:
        stored = storage_service.save_image(f.content, f.filename, folder=f"sites/{site_id}/{section.id}")
        img = SectionImage(
            section_id=section.id,
            url=stored.url,
            thumbnail_url=stored.thumbnail_url,
            storage_id=stored.storage_id,
            description=description,
        )
        db.add(img)
        added.append(img)
    db.commit()
    for img in added:
        db.refresh(img)
    return added


def delete_reference_image(db: Session, site_id: str, section_id: str, image_id: str, actor: Actor) -> None:
    _require_admin(actor)
    section = get_section(db, get_site(db, site_id, actor), section_id)
    img = db.query(SectionImage).filter(SectionImage.id == image_id, SectionImage.section_id == section.id).first()
    if not img:
        raise NotFoundError.of("Image")
    storage_id = img.storage_id
    db.delete(img)
    db.commit()
    try:
        storage_service.delete_file(storage_id)
    except DependencyError:
        logger.warning("Reference image file %s was not removed", storage_id)
