from fastapi import APIRouter, Depends, File, Form, Query, UploadFile
from sqlalchemy.orm import Session

from app.actors import Actor, AdminActor
from app.api.auth import get_current_actor, require_admin
from app.database import get_db
from app.models.task import Task, TaskStatus
from app.schemas.common import ok, page_of
from app.schemas.task import (
    AssignRequest,
    FeedbackRequest,
    LocationRequest,
    ReferenceImageOut,
    ReviewRequest,
    TaskCreate,
    TaskDetailOut,
    TaskImageOut,
    TaskOut,
    TaskUpdate,
)
from app.services import storage_service, task_service

router = APIRouter(prefix="/tasks", tags=["Tasks"])


def _task_out(task: Task, actor: Actor) -> TaskOut:
    out = TaskOut.model_validate(task)
    out.images = [TaskImageOut.model_validate(i) for i in task_service.visible_images(task, actor)]
    return out


def _task_detail(db: Session, task: Task, actor: Actor) -> TaskDetailOut:
    out = TaskDetailOut.model_validate(task)
    out.images = [TaskImageOut.model_validate(i) for i in task_service.visible_images(task, actor)]
    out.reference_images = [ReferenceImageOut.model_validate(i) for i in task_service.reference_images(db, task)]
    return out


@router.get("")
def list_tasks(
    status: TaskStatus | None = None,
    worker_id: str | None = None,
    client_id: str | None = None,
    site_id: str | None = None,
    section_id: str | None = None,
    branch_id: str | None = None,
    priority: str | None = None,
    category: str | None = None,
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    tasks, total = task_service.list_tasks(
        db, actor,
        status=status, worker_id=worker_id, client_id=client_id, site_id=site_id,
        section_id=section_id, branch_id=branch_id, priority=priority, category=category,
        page=page, limit=limit,
    )
    return ok(page_of([_task_out(t, actor) for t in tasks], total, page, limit))


@router.post("", status_code=201)
def create_task(data: TaskCreate, admin: AdminActor = Depends(require_admin), db: Session = Depends(get_db)):
    task = task_service.create_task(db, data, admin)
    return ok(_task_out(task, admin), message="Task created")


@router.get("/{task_id}")
def get_task(task_id: str, actor: Actor = Depends(get_current_actor), db: Session = Depends(get_db)):
    task = task_service.get_task_for(db, task_id, actor)
    return ok(_task_detail(db, task, actor))


@router.put("/{task_id}")
def update_task(task_id: str, data: TaskUpdate, actor: Actor = Depends(get_current_actor), db: Session = Depends(get_db)):
    task = task_service.update_task(db, task_id, data, actor)
    return ok(_task_out(task, actor), message="Task updated")


@router.delete("/{task_id}")
def delete_task(task_id: str, admin: AdminActor = Depends(require_admin), db: Session = Depends(get_db)):
    task_service.delete_task(db, task_id, admin)
    return ok(message="Task deleted")


@router.post("/{task_id}/assign")
def assign_task(task_id: str, data: AssignRequest, admin: AdminActor = Depends(require_admin), db: Session = Depends(get_db)):
    task = task_service.assign_task(db, task_id, data.worker_id, admin)
    return ok(_task_out(task, admin), message="Task assigned")


@router.post("/{task_id}/start")
def start_task(
    task_id: str,
    data: LocationRequest | None = None,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    data = data or LocationRequest()
    task = task_service.start_task(db, task_id, data.latitude, data.longitude, actor)
    return ok(_task_out(task, actor), message="Task started")


@router.post("/{task_id}/complete")
def complete_task(
    task_id: str,
    data: LocationRequest | None = None,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    data = data or LocationRequest()
    task = task_service.complete_task(db, task_id, data.latitude, data.longitude, actor)
    return ok(_task_out(task, actor), message="Task completed")


@router.post("/{task_id}/review")
def review_task(task_id: str, data: ReviewRequest, admin: AdminActor = Depends(require_admin), db: Session = Depends(get_db)):
    task = task_service.review_task(db, task_id, data.decision, data.comments, admin)
    return ok(_task_out(task, admin), message="Review recorded")


@router.post("/{task_id}/feedback")
def submit_feedback(
    task_id: str,
    data: FeedbackRequest,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    task = task_service.submit_feedback(db, task_id, data.rating, data.comment, actor)
    return ok(_task_out(task, actor), message="Thank you for your feedback")


@router.post("/{task_id}/images")
def upload_images(
    task_id: str,
    image_type: str = Form(...),
    visible_to_client: bool = Form(True),
    images: list[UploadFile] = File(...),
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    files = [storage_service.Upload(filename=f.filename or "", content=f.file.read()) for f in images]
    added = task_service.add_images(db, task_id, image_type, files, visible_to_client, actor)
    return ok([TaskImageOut.model_validate(i) for i in added], message=f"{len(files)} image(s) uploaded")


@router.delete("/{task_id}/images/{image_id}")
def delete_image(task_id: str, image_id: str, actor: Actor = Depends(get_current_actor), db: Session = Depends(get_db)):
    task_service.delete_image(db, task_id, image_id, actor)
    return ok(message="Image deleted")

