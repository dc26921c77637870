from fastapi import APIRouter, Cookie, Depends, Header, Response
from sqlalchemy.orm import Session

from app.actors import Actor, AdminActor, ClientActor, WorkerActor
from app.config import settings
from app.database import get_db
from app.exceptions import AuthenticationError, AuthorizationError
from app.models.client import Client
from app.models.user import User
from app.schemas.client import ClientOut
from app.schemas.common import ok
from app.schemas.user import (
    ChangePasswordRequest,
    ClientLoginRequest,
    CreateUserRequest,
    LoginRequest,
    ResetPasswordRequest,
    UpdateUserRequest,
    UserOut,
)
from app.services import auth_service

router = APIRouter(prefix="/auth", tags=["Auth"])
users_router = APIRouter(prefix="/users", tags=["Users"])

COOKIE_MAX_AGE = 3600 * settings.ACCESS_TOKEN_EXPIRE_HOURS


def get_current_actor(
    authorization: str | None = Header(default=None),
    token: str | None = Cookie(default=None, alias="token"),
    db: Session = Depends(get_db),
) -> Actor:
    """Dependency: resolve the caller from a Bearer header or the token cookie."""
    raw = None
    if authorization and authorization.lower().startswith("bearer "):
        raw = authorization[7:].strip()
    elif token:
        raw = token
    if not raw:
        raise AuthenticationError("Not authenticated")
    return auth_service.actor_from_token(db, raw)


def require_admin(actor: Actor = Depends(get_current_actor)) -> AdminActor:
    if not isinstance(actor, AdminActor):
        raise AuthorizationError("Admin only")
    return actor


def require_staff(actor: Actor = Depends(get_current_actor)) -> AdminActor | WorkerActor:
    if not isinstance(actor, (AdminActor, WorkerActor)):
        raise AuthorizationError("Staff only")
    return actor


def _login_response(response: Response, token: str, role: str, profile) -> dict:
    response.set_cookie("token", token, httponly=True, samesite="lax", max_age=COOKIE_MAX_AGE)
    return ok({"token": token, "role": role, "profile": profile}, message="Login successful")


@router.post("/login")
def login(data: LoginRequest, response: Response, db: Session = Depends(get_db)):
    user = auth_service.authenticate_user(db, data.email, data.password)
    if not user:
        raise AuthenticationError("Invalid email or password")
    token = auth_service.create_access_token(user.id, user.role)
    return _login_response(response, token, user.role, UserOut.model_validate(user))


@router.post("/client-login")
def client_login(data: ClientLoginRequest, response: Response, db: Session = Depends(get_db)):
    client = auth_service.authenticate_client(db, data.username, data.password)
    if not client:
        raise AuthenticationError("Invalid username or password")
    token = auth_service.create_access_token(client.id, "client")
    body = _login_response(response, token, "client", ClientOut.model_validate(client))
    body["data"]["password_temporary"] = client.password_temporary
    return body


@router.post("/logout")
def logout(response: Response):
    response.delete_cookie("token")
    return ok(message="Logged out")


@router.get("/me")
def me(actor: Actor = Depends(get_current_actor), db: Session = Depends(get_db)):
    if isinstance(actor, ClientActor):
        return ok({"role": "client", "profile": ClientOut.model_validate(db.get(Client, actor.client_id))})
    user = db.get(User, actor.user_id)
    return ok({"role": user.role, "profile": UserOut.model_validate(user)})


@router.post("/change-password")
def change_own_password(
    data: ChangePasswordRequest,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    if isinstance(actor, ClientActor):
        auth_service.change_client_password(db, db.get(Client, actor.client_id), data.current_password, data.password)
    else:
        user = db.get(User, actor.user_id)
        if not auth_service.verify_password(data.current_password, user.password_hash):
            raise AuthenticationError("Current password is incorrect")
        auth_service.set_password(db, user, data.password)
    return ok(message="Password changed")


# User management (admin)


@users_router.get("")
def list_users(
    role: str | None = None,
    active: bool | None = None,
    _: AdminActor = Depends(require_admin),
    db: Session = Depends(get_db),
):
    users = auth_service.list_users(db, role=role, active=active)
    return ok([UserOut.model_validate(u) for u in users])


@users_router.get("/workers")
def list_workers(_: AdminActor = Depends(require_admin), db: Session = Depends(get_db)):
    workers = auth_service.list_users(db, role="worker", active=True)
    return ok([UserOut.model_validate(u) for u in workers])


@users_router.post("", status_code=201)
def create_user(data: CreateUserRequest, _: AdminActor = Depends(require_admin), db: Session = Depends(get_db)):
    user = auth_service.create_user(db, **data.model_dump())
    return ok(UserOut.model_validate(user), message="User created")


@users_router.get("/{user_id}")
def get_user(user_id: str, _: AdminActor = Depends(require_admin), db: Session = Depends(get_db)):
    return ok(UserOut.model_validate(auth_service.get_user_by_id(db, user_id)))


@users_router.patch("/{user_id}")
def update_user(
    user_id: str,
    data: UpdateUserRequest,
    _: AdminActor = Depends(require_admin),
    db: Session = Depends(get_db),
):
    user = auth_service.update_user(db, user_id, data.model_dump(exclude_unset=True))
    return ok(UserOut.model_validate(user), message="User updated")


@users_router.patch("/{user_id}/active")
def toggle_user_active(user_id: str, admin: AdminActor = Depends(require_admin), db: Session = Depends(get_db)):
    target = auth_service.get_user_by_id(db, user_id)
    user = auth_service.set_user_active(db, user_id, not target.active, admin.user_id)
    return ok({"id": user.id, "active": user.active})


@users_router.post("/{user_id}/reset-password")
def reset_password(
    user_id: str,
    data: ResetPasswordRequest,
    _: AdminActor = Depends(require_admin),
    db: Session = Depends(get_db),
):
    auth_service.set_password(db, auth_service.get_user_by_id(db, user_id), data.password)
    return ok(message="Password reset")
