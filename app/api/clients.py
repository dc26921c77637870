from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.actors import Actor, AdminActor
from app.api.auth import get_current_actor, require_admin
from app.database import get_db
from app.schemas.client import ClientCreate, ClientOut, ClientUpdate, CredentialsOut
from app.schemas.common import ok, page_of
from app.services import client_service

router = APIRouter(prefix="/clients", tags=["Clients"])


def _credentials_out(credentials) -> CredentialsOut:
    username, password, result = credentials
    return CredentialsOut(
        username=username,
        temporary_password=password,
        email_sent=result.email,
        whatsapp_sent=result.whatsapp,
    )


@router.get("")
def list_clients(
    search: str | None = None,
    branch_id: str | None = None,
    active: bool | None = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=200),
    _: AdminActor = Depends(require_admin),
    db: Session = Depends(get_db),
):
    clients, total = client_service.list_clients(
        db, search=search, branch_id=branch_id, active=active, page=page, limit=limit
    )
    return ok(page_of([ClientOut.model_validate(c) for c in clients], total, page, limit))


@router.post("", status_code=201)
def create_client(data: ClientCreate, admin: AdminActor = Depends(require_admin), db: Session = Depends(get_db)):
    client, credentials = client_service.create_client(db, data, admin)
    body = {"client": ClientOut.model_validate(client)}
    if credentials:
        body["credentials"] = _credentials_out(credentials)
    return ok(body, message="Client created")


@router.get("/{client_id}")
def get_client(client_id: str, actor: Actor = Depends(get_current_actor), db: Session = Depends(get_db)):
    return ok(ClientOut.model_validate(client_service.get_client(db, client_id, actor)))


@router.put("/{client_id}")
def update_client(
    client_id: str,
    data: ClientUpdate,
    admin: AdminActor = Depends(require_admin),
    db: Session = Depends(get_db),
):
    client = client_service.update_client(db, client_id, data, admin)
    return ok(ClientOut.model_validate(client), message="Client updated")


@router.delete("/{client_id}")
def delete_client(client_id: str, admin: AdminActor = Depends(require_admin), db: Session = Depends(get_db)):
    client_service.delete_client(db, client_id, admin)
    return ok(message="Client deleted")


@router.post("/{client_id}/credentials")
def send_credentials(client_id: str, admin: AdminActor = Depends(require_admin), db: Session = Depends(get_db)):
    client = client_service.get_client(db, client_id, admin)
    credentials = client_service.issue_credentials(db, client)
    return ok(_credentials_out(credentials), message="Credentials issued")
