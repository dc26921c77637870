"""Task lifecycle.

pending -> assigned -> in-progress -> completed, plus the admin review
recorded on completed tasks. Every entry point checks the actor against the
task before touching anything, and assignment is the only place that takes
materials out of stock.
"""

import logging

from sqlalchemy import update
from sqlalchemy.orm import Session

from app.actors import Actor, AdminActor, ClientActor, WorkerActor
from app.config import settings
from app.database import utcnow
from app.exceptions import (
    AuthorizationError,
    ConflictError,
    DependencyError,
    NotFoundError,
    ValidationError,
    WorkerNotFound,
)
from app.models.branch import Branch
from app.models.client import Client
from app.models.inventory import InventoryItem
from app.models.inventory_transaction import InventoryTransaction
from app.models.notification import Notification
from app.models.site import Section, SectionImage, Site
from app.models.task import ImageType, ReviewStatus, Task, TaskImage, TaskMaterial, TaskStatus, duration_hours
from app.models.user import User
from app.schemas.plant import TaskPlantIn
from app.schemas.task import MaterialIn, TaskCreate, TaskUpdate
from app.services import inventory_service, notification_service, plant_service, storage_service

logger = logging.getLogger(__name__)

STARTABLE = (TaskStatus.PENDING, TaskStatus.ASSIGNED)
COMPLETABLE = (TaskStatus.ASSIGNED, TaskStatus.IN_PROGRESS)
REVIEWABLE = (TaskStatus.COMPLETED, TaskStatus.REVIEW, TaskStatus.REJECTED)

# Fields a worker may patch on their own task
WORKER_EDITABLE = {"notes"}


# ---------------------------------------------------------------------------
# Access
# ---------------------------------------------------------------------------


def ensure_can_access(task: Task, actor: Actor) -> None:
    if isinstance(actor, AdminActor):
        return
    if isinstance(actor, WorkerActor):
        if task.worker_id != actor.user_id:
            raise AuthorizationError("Not authorized to access this task")
        return
    if isinstance(actor, ClientActor):
        if task.client_id != actor.client_id:
            raise AuthorizationError("Not authorized to access this task")
        return
    raise AuthorizationError()


def _require_admin(actor: Actor) -> None:
    if not isinstance(actor, AdminActor):
        raise AuthorizationError("Admin only")


def _require_assigned_worker(task: Task, actor: Actor) -> WorkerActor:
    if not isinstance(actor, WorkerActor) or task.worker_id != actor.user_id:
        raise AuthorizationError("Only the assigned worker can do this")
    return actor


def _status_value(task: Task) -> str:
    return task.status.value if hasattr(task.status, "value") else str(task.status)


def get_task(db: Session, task_id: str) -> Task:
    task = db.get(Task, task_id)
    if not task:
        raise NotFoundError.of("Task")
    return task


def get_task_for(db: Session, task_id: str, actor: Actor) -> Task:
    task = get_task(db, task_id)
    ensure_can_access(task, actor)
    return task


def reference_images(db: Session, task: Task) -> list[SectionImage]:
    if not task.section_id:
        return []
    return db.query(SectionImage).filter(SectionImage.section_id == task.section_id).all()


def list_tasks(
    db: Session,
    actor: Actor,
    status: TaskStatus | None = None,
    worker_id: str | None = None,
    client_id: str | None = None,
    site_id: str | None = None,
    section_id: str | None = None,
    branch_id: str | None = None,
    priority: str | None = None,
    category: str | None = None,
    page: int = 1,
    limit: int = 50,
) -> tuple[list[Task], int]:
    q = db.query(Task)
    if isinstance(actor, WorkerActor):
        q = q.filter(Task.worker_id == actor.user_id)
    elif isinstance(actor, ClientActor):
        q = q.filter(Task.client_id == actor.client_id)

    if status:
        q = q.filter(Task.status == status)
    if worker_id:
        q = q.filter(Task.worker_id == worker_id)
    if client_id:
        q = q.filter(Task.client_id == client_id)
    if site_id:
        q = q.filter(Task.site_id == site_id)
    if section_id:
        q = q.filter(Task.section_id == section_id)
    if branch_id:
        q = q.filter(Task.branch_id == branch_id)
    if priority:
        q = q.filter(Task.priority == priority)
    if category:
        q = q.filter(Task.category == category)

    total = q.count()
    tasks = q.order_by(Task.created_at.desc()).offset((page - 1) * limit).limit(limit).all()
    return tasks, total


# ---------------------------------------------------------------------------
# Create / update / delete
# ---------------------------------------------------------------------------


def _build_materials(db: Session, lines: list[MaterialIn]) -> list[TaskMaterial]:
    materials = []
    for position, line in enumerate(lines):
        name, unit = line.name, line.unit
        if line.item_id:
            item = db.get(InventoryItem, line.item_id)
            if not item:
                raise ValidationError.for_field(f"materials[{position}].item_id", f"Inventory item {line.item_id} not found")
            name = name or item.name
            unit = unit or item.unit
        materials.append(TaskMaterial(position=position, item_id=line.item_id, name=name, quantity=line.quantity, unit=unit))
    return materials


def _find_section(db: Session, site: Site, section_id: str) -> Section:
    section = db.query(Section).filter(Section.id == section_id, Section.site_id == site.id).first()
    if not section:
        raise NotFoundError("Section not found in this site")
    return section


def create_task(db: Session, data: TaskCreate, actor: Actor) -> Task:
    _require_admin(actor)
    site = db.get(Site, data.site_id)
    if not site:
        raise NotFoundError.of("Site")
    _find_section(db, site, data.section_id)

    client_id = data.client_id or site.client_id
    if client_id != site.client_id:
        raise ValidationError.for_field("client_id", "Client does not own this site")
    if not db.get(Branch, data.branch_id):
        raise NotFoundError.of("Branch")

    task = Task(
        title=data.title,
        description=data.description,
        category=data.category,
        priority=data.priority,
        client_id=client_id,
        site_id=site.id,
        section_id=data.section_id,
        branch_id=data.branch_id,
        status=TaskStatus.PENDING,
        scheduled_date=data.scheduled_date,
        estimated_duration=data.estimated_duration,
        address=data.address or site.address,
        cost_labor=data.cost_labor,
        cost_materials=data.cost_materials,
        notes=data.notes,
    )
    task.materials = _build_materials(db, data.materials)
    task.plants = plant_service.build_task_plants(db, data.plants)
    task.recalculate()
    db.add(task)
    db.flush()
    plant_service.record_usage(db, [line.plant_id for line in task.plants])

    db.execute(update(Client).where(Client.id == client_id).values(total_tasks=Client.total_tasks + 1))
    db.execute(update(Site).where(Site.id == site.id).values(total_tasks=Site.total_tasks + 1))
    db.commit()
    db.refresh(task)
    logger.info("Created task %s for client %s", task.id, client_id)
    return task


def update_task(db: Session, task_id: str, data: TaskUpdate, actor: Actor) -> Task:
    task = get_task_for(db, task_id, actor)
    patch = data.model_dump(exclude_unset=True)
    worker_id = patch.pop("worker_id", None)

    if isinstance(actor, ClientActor):
        raise AuthorizationError("Clients cannot update tasks")
    if isinstance(actor, WorkerActor):
        if worker_id is not None or set(patch) - WORKER_EDITABLE:
            raise AuthorizationError("Workers may only update task notes")
    if worker_id is not None and task.worker_id is not None and worker_id != task.worker_id:
        raise ConflictError("Task is already assigned")
    # Same path as the assign endpoint, so materials come out of stock once.
    worker = _active_worker(db, worker_id) if worker_id is not None and task.worker_id is None else None

    if patch.get("section_id"):
        _find_section(db, db.get(Site, task.site_id), patch["section_id"])

    materials = plants = None
    if "materials" in patch:
        lines = patch.pop("materials")
        if task.materials_reserved:
            raise ConflictError("Materials were already withdrawn for this task and cannot be changed")
        materials = _build_materials(db, [MaterialIn(**line) for line in lines or []])
    if "plants" in patch:
        plants = plant_service.build_task_plants(db, [TaskPlantIn(**line) for line in patch.pop("plants") or []])

    new_plant_ids = []
    if materials is not None:
        task.materials = materials
    if plants is not None:
        previous = {line.plant_id for line in task.plants}
        new_plant_ids = [line.plant_id for line in plants if line.plant_id not in previous]
        task.plants = plants

    for field, value in patch.items():
        if value is not None:
            setattr(task, field, value)
    task.recalculate()

    touched = []
    try:
        if worker is not None:
            touched = _claim(db, task, worker, actor.user_id)
        plant_service.record_usage(db, new_plant_ids)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(task)

    if worker is not None:
        _after_assign(db, task, worker, touched)
    return task


def delete_task(db: Session, task_id: str, actor: Actor) -> None:
    _require_admin(actor)
    task = get_task(db, task_id)
    if task.invoice_id:
        raise ConflictError("Task has an invoice and cannot be deleted")
    if db.query(InventoryTransaction).filter(InventoryTransaction.task_id == task.id).count():
        raise ConflictError("Stock was booked against this task, so it cannot be deleted")

    storage_ids = [image.storage_id for image in task.images]
    try:
        db.execute(
            update(Notification)
            .where(Notification.task_id == task.id)
            .values(task_id=None)
            .execution_options(synchronize_session=False)
        )
        db.execute(update(Client).where(Client.id == task.client_id).values(total_tasks=Client.total_tasks - 1))
        db.execute(update(Site).where(Site.id == task.site_id).values(total_tasks=Site.total_tasks - 1))
        if task.completed_at is not None:
            db.execute(update(Client).where(Client.id == task.client_id).values(completed_tasks=Client.completed_tasks - 1))
            db.execute(update(Site).where(Site.id == task.site_id).values(completed_tasks=Site.completed_tasks - 1))
            db.execute(update(User).where(User.id == task.worker_id).values(completed_tasks=User.completed_tasks - 1))
        db.delete(task)
        db.commit()
    except Exception:
        db.rollback()
        raise
    logger.info("Deleted task %s", task_id)

    for storage_id in storage_ids:
        try:
            storage_service.delete_file(storage_id)
        except DependencyError as e:
            logger.error("Could not remove image %s of task %s: %s", storage_id, task_id, e)


# ---------------------------------------------------------------------------
# Transitions
# ---------------------------------------------------------------------------


def _reserve_materials(db: Session, task: Task, worker_id: str, confirmed_by: str, now) -> list[InventoryItem]:
    """Withdraw every stock-linked material line. Runs once per task."""
    if task.materials_reserved:
        return []
    touched = []
    for material in task.materials:
        if not material.item_id:
            continue
        item = inventory_service.apply_withdrawal(
            db,
            material.item_id,
            material.quantity,
            worker_id=worker_id,
            confirmed_by=confirmed_by,
            task_id=task.id,
            notes=f"Reserved for task: {task.title}",
            now=now,
        )
        material.confirmed = True
        material.confirmed_at = now
        material.confirmed_by = confirmed_by
        touched.append(item)
    task.materials_reserved = True
    return touched


def _active_worker(db: Session, worker_id: str) -> User:
    worker = db.get(User, worker_id)
    if not worker or worker.role != "worker" or not worker.active:
        raise WorkerNotFound()
    return worker


def _claim(db: Session, task: Task, worker: User, confirmed_by: str) -> list[InventoryItem]:
    """Claim an unassigned task and withdraw its materials. The caller commits."""
    now = utcnow()
    claimed = db.execute(
        update(Task)
        .where(Task.id == task.id, Task.worker_id.is_(None))
        .values(worker_id=worker.id, status=TaskStatus.ASSIGNED, updated_at=now)
        .execution_options(synchronize_session=False)
    )
    if claimed.rowcount == 0:
        raise ConflictError("Task is already assigned")
    return _reserve_materials(db, task, worker.id, confirmed_by, now)


def _after_assign(db: Session, task: Task, worker: User, touched: list[InventoryItem]) -> None:
    logger.info("Assigned task %s to worker %s", task.id, worker.id)
    for item in touched:
        inventory_service.check_low_stock_alert(db, item)
    client = db.get(Client, task.client_id)
    notification_service.notify_task_assignment(db, worker, task, client)


def assign_task(db: Session, task_id: str, worker_id: str, actor: Actor) -> Task:
    _require_admin(actor)
    task = get_task(db, task_id)
    worker = _active_worker(db, worker_id)
    if task.worker_id is not None:
        raise ConflictError("Task is already assigned")

    try:
        touched = _claim(db, task, worker, actor.user_id)
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(task)
    _after_assign(db, task, worker, touched)
    return task


def _transition(db: Session, task: Task, allowed: tuple[TaskStatus, ...], action: str, **values) -> None:
    result = db.execute(
        update(Task)
        .where(Task.id == task.id, Task.status.in_(allowed))
        .values(updated_at=utcnow(), **values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        db.rollback()
        raise ConflictError(f"Cannot {action} a task in '{_status_value(task)}' status")


def start_task(db: Session, task_id: str, latitude: float | None, longitude: float | None, actor: Actor) -> Task:
    task = get_task(db, task_id)
    _require_assigned_worker(task, actor)
    now = utcnow()
    _transition(
        db, task, STARTABLE, "start",
        status=TaskStatus.IN_PROGRESS,
        started_at=now,
        start_latitude=latitude,
        start_longitude=longitude,
        start_location_at=now,
    )
    db.commit()
    db.refresh(task)
    logger.info("Task %s started by worker %s", task.id, actor.user_id)
    return task


def complete_task(db: Session, task_id: str, latitude: float | None, longitude: float | None, actor: Actor) -> Task:
    task = get_task(db, task_id)
    worker_actor = _require_assigned_worker(task, actor)
    if task.status == TaskStatus.COMPLETED:
        raise ConflictError("Task is already completed")

    now = utcnow()
    try:
        _transition(
            db, task, COMPLETABLE, "complete",
            status=TaskStatus.COMPLETED,
            completed_at=now,
            end_latitude=latitude,
            end_longitude=longitude,
            end_location_at=now,
            actual_duration=duration_hours(task.started_at, now),
            review_status=ReviewStatus.PENDING,
        )
        db.execute(update(Client).where(Client.id == task.client_id).values(completed_tasks=Client.completed_tasks + 1))
        db.execute(update(User).where(User.id == worker_actor.user_id).values(completed_tasks=User.completed_tasks + 1))
        db.execute(
            update(Site)
            .where(Site.id == task.site_id)
            .values(completed_tasks=Site.completed_tasks + 1, last_visit=now)
        )
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(task)
    logger.info("Task %s completed by worker %s", task.id, worker_actor.user_id)

    client = db.get(Client, task.client_id)
    worker = db.get(User, worker_actor.user_id)
    notification_service.notify_task_completion(db, client, task, worker)
    return task


def review_task(db: Session, task_id: str, decision: str, comments: str, actor: Actor) -> Task:
    """Record the admin review. A rejection also moves the task to 'rejected'."""
    _require_admin(actor)
    task = get_task(db, task_id)
    if task.status not in REVIEWABLE:
        raise ConflictError(f"Cannot review a task in '{_status_value(task)}' status")

    review = ReviewStatus(decision)
    task.review_status = review
    task.review_comments = comments
    task.reviewed_by = actor.user_id
    task.reviewed_at = utcnow()
    task.status = TaskStatus.REJECTED if review == ReviewStatus.REJECTED else TaskStatus.COMPLETED
    db.commit()
    db.refresh(task)
    logger.info("Task %s reviewed: %s", task.id, review.value)
    return task


def submit_feedback(db: Session, task_id: str, rating: int, comment: str, actor: Actor) -> Task:
    if not isinstance(actor, ClientActor):
        raise AuthorizationError("Only the client can leave feedback")
    task = get_task_for(db, task_id, actor)
    if task.status != TaskStatus.COMPLETED:
        raise ConflictError("Feedback can only be left on completed tasks")
    if task.feedback_at is not None:
        raise ConflictError("Feedback was already submitted for this task")
    task.feedback_rating = rating
    task.feedback_comment = comment
    task.feedback_at = utcnow()
    db.commit()
    db.refresh(task)
    return task


# ---------------------------------------------------------------------------
# Images
# ---------------------------------------------------------------------------


def _parse_image_type(value: str) -> ImageType:
    try:
        return ImageType(value)
    except ValueError:
        raise ValidationError.for_field("image_type", "Invalid image type. Must be: before or after") from None


def add_images(
    db: Session,
    task_id: str,
    image_type: str,
    files: list[storage_service.Upload],
    visible_to_client: bool,
    actor: Actor,
) -> list[TaskImage]:
    task = get_task_for(db, task_id, actor)
    if isinstance(actor, ClientActor):
        raise AuthorizationError("Clients cannot upload task images")
    kind = _parse_image_type(image_type)
    if not files:
        raise ValidationError.for_field("images", "No images uploaded")
    if len(files) > settings.MAX_IMAGES_PER_UPLOAD:
        raise ValidationError.for_field("images", f"At most {settings.MAX_IMAGES_PER_UPLOAD} images per upload")

    now = utcnow()
    stored_ids = []
    try:
        for f in files:
            stored = storage_service.save_image(f.content, f.filename, folder=f"tasks/{task.id}")
            stored_ids.append(stored.storage_id)
            task.images.append(TaskImage(
                image_type=kind.value,
                url=stored.url,
                thumbnail_url=stored.thumbnail_url,
                storage_id=stored.storage_id,
                uploaded_by=actor.user_id,
                visible_to_client=visible_to_client,
                uploaded_at=now,
            ))
        db.commit()
    except Exception:
        db.rollback()
        for storage_id in stored_ids:
            try:
                storage_service.delete_file(storage_id)
            except DependencyError:
                logger.error("Could not clean up %s after failed upload", storage_id)
        raise

    db.refresh(task)
    logger.info("%d %s image(s) uploaded to task %s", len(files), kind.value, task.id)
    return task.images_of(kind)


def delete_image(db: Session, task_id: str, image_id: str, actor: Actor) -> None:
    task = get_task_for(db, task_id, actor)
    if isinstance(actor, ClientActor):
        raise AuthorizationError("Clients cannot delete task images")
    image = next((img for img in task.images if img.id == image_id), None)
    if not image:
        raise NotFoundError.of("Image")
    storage_id = image.storage_id
    task.images.remove(image)
    db.commit()
    try:
        storage_service.delete_file(storage_id)
    except DependencyError as e:
        logger.error("Image %s removed from task but file deletion failed: %s", image_id, e)


def visible_images(task: Task, actor: Actor) -> list[TaskImage]:
    if isinstance(actor, ClientActor):
        return [img for img in task.images if img.visible_to_client]
    return list(task.images)
