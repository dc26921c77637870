import logging
import re

from sqlalchemy import or_
from sqlalchemy.orm import Session

from app.actors import Actor, AdminActor, ClientActor
from app.exceptions import AuthorizationError, ConflictError, NotFoundError
from app.models.branch import Branch
from app.models.client import Client
from app.models.task import Task
from app.schemas.client import ClientCreate, ClientUpdate
from app.services import auth_service, notification_service

logger = logging.getLogger(__name__)


def _require_admin(actor: Actor) -> None:
    if not isinstance(actor, AdminActor):
        raise AuthorizationError("Admin only")


def get_client(db: Session, client_id: str, actor: Actor) -> Client:
    if isinstance(actor, ClientActor):
        if actor.client_id != client_id:
            raise AuthorizationError("Not authorized to access this client")
    else:
        _require_admin(actor)
    client = db.get(Client, client_id)
    if not client:
        raise NotFoundError.of("Client")
    return client


def list_clients(
    db: Session,
    search: str | None = None,
    branch_id: str | None = None,
    active: bool | None = None,
    page: int = 1,
    limit: int = 20,
) -> tuple[list[Client], int]:
    q = db.query(Client)
    if search:
        pattern = f"%{search}%"
        q = q.filter(or_(Client.name.ilike(pattern), Client.email.ilike(pattern), Client.phone.ilike(pattern)))
    if branch_id:
        q = q.filter(Client.branch_id == branch_id)
    if active is not None:
        q = q.filter(Client.active == active)
    total = q.count()
    clients = q.order_by(Client.created_at.desc()).offset((page - 1) * limit).limit(limit).all()
    return clients, total


def _unique_username(db: Session, email: str) -> str:
    base = re.sub(r"[^a-z0-9._-]", "", email.split("@", 1)[0].lower()) or "client"
    username, n = base, 1
    while db.query(Client).filter(Client.username == username).first():
        n += 1
        username = f"{base}{n}"
    return username


def issue_credentials(db: Session, client: Client) -> tuple[str, str, notification_service.DispatchResult]:
    """Give the client a portal login with a fresh temporary password and send it to them."""
    username = client.username or _unique_username(db, client.email)
    password = auth_service.generate_password()
    client.username = username
    client.password_hash = auth_service.hash_password(password)
    client.password_temporary = True
    db.commit()
    db.refresh(client)
    result = notification_service.notify_client_credentials(db, client, username, password)
    logger.info("Issued portal credentials for client %s", client.id)
    return username, password, result


def create_client(db: Session, data: ClientCreate, actor: Actor) -> tuple[Client, tuple | None]:
    _require_admin(actor)
    email = data.email.lower()
    if db.query(Client).filter(Client.email == email).first():
        raise ConflictError(f"Client with email '{email}' already exists")
    if data.branch_id and not db.get(Branch, data.branch_id):
        raise NotFoundError.of("Branch")

    client = Client(**data.model_dump(exclude={"send_credentials", "email"}), email=email)
    db.add(client)
    db.commit()
    db.refresh(client)
    logger.info("Created client %s", client.id)

    credentials = issue_credentials(db, client) if data.send_credentials else None
    return client, credentials


def update_client(db: Session, client_id: str, data: ClientUpdate, actor: Actor) -> Client:
    _require_admin(actor)
    client = get_client(db, client_id, actor)
    changes = data.model_dump(exclude_unset=True)
    if changes.get("email"):
        changes["email"] = changes["email"].lower()
        clash = db.query(Client).filter(Client.email == changes["email"], Client.id != client.id).first()
        if clash:
            raise ConflictError(f"Client with email '{changes['email']}' already exists")
    if changes.get("branch_id") and not db.get(Branch, changes["branch_id"]):
        raise NotFoundError.of("Branch")
    for field, value in changes.items():
        setattr(client, field, value)
    db.commit()
    db.refresh(client)
    return client


def delete_client(db: Session, client_id: str, actor: Actor) -> None:
    _require_admin(actor)
    client = get_client(db, client_id, actor)
    if db.query(Task).filter(Task.client_id == client.id).first():
        raise ConflictError("Client has tasks and cannot be deleted; deactivate it instead")
    for site in list(client.sites):
        db.delete(site)
    db.delete(client)
    db.commit()
    logger.info("Deleted client %s", client_id)
