import logging
import secrets
from datetime import datetime, timedelta, timezone

import bcrypt
import jwt
from sqlalchemy.orm import Session

from app.actors import Actor, AdminActor, ClientActor, Role, WorkerActor
from app.config import settings
from app.exceptions import AuthenticationError, ConflictError, NotFoundError, ValidationError
from app.models.branch import Branch
from app.models.client import Client
from app.models.user import User

logger = logging.getLogger(__name__)

STAFF_ROLES = {Role.ADMIN.value, Role.WORKER.value}


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode(), bcrypt.gensalt()).decode()


def verify_password(password: str, hashed: str | None) -> bool:
    if not hashed:
        return False
    return bcrypt.checkpw(password.encode(), hashed.encode())


def generate_password(length: int = 10) -> str:
    return secrets.token_urlsafe(length)[:length]


def create_access_token(subject_id: str, role: str) -> str:
    payload = {
        "sub": subject_id,
        "role": role,
        "exp": datetime.now(timezone.utc) + timedelta(hours=settings.ACCESS_TOKEN_EXPIRE_HOURS),
    }
    return jwt.encode(payload, settings.SECRET_KEY, algorithm="HS256")


def decode_token(token: str) -> dict | None:
    try:
        return jwt.decode(token, settings.SECRET_KEY, algorithms=["HS256"])
    except (jwt.ExpiredSignatureError, jwt.InvalidTokenError):
        return None


def authenticate_user(db: Session, email: str, password: str) -> User | None:
    user = db.query(User).filter(User.email == email.strip().lower(), User.active == True).first()  # noqa: E712
    if not user or not verify_password(password, user.password_hash):
        return None
    return user


def authenticate_client(db: Session, username: str, password: str) -> Client | None:
    client = db.query(Client).filter(Client.username == username.strip().lower(), Client.active == True).first()  # noqa: E712
    if not client or not verify_password(password, client.password_hash):
        return None
    return client


def actor_from_token(db: Session, token: str) -> Actor:
    """Resolve a bearer token to the account it was issued for."""
    payload = decode_token(token)
    if not payload or "sub" not in payload:
        raise AuthenticationError("Invalid or expired token")

    role = payload.get("role")
    if role == Role.CLIENT.value:
        client = db.get(Client, payload["sub"])
        if not client or not client.active:
            raise AuthenticationError("Client not found or disabled")
        return ClientActor(client_id=client.id, name=client.name)

    user = db.get(User, payload["sub"])
    if not user or not user.active:
        raise AuthenticationError("User not found or disabled")
    if user.role == Role.ADMIN.value:
        return AdminActor(user_id=user.id, name=user.name)
    return WorkerActor(user_id=user.id, name=user.name)


# User management


def get_user_by_id(db: Session, user_id: str) -> User:
    user = db.get(User, user_id)
    if not user:
        raise NotFoundError.of("User")
    return user


def create_user(
    db: Session,
    name: str,
    email: str,
    password: str,
    role: str = "worker",
    phone: str = "",
    language: str = "en",
    branch_id: str | None = None,
    specialization: str = "",
) -> User:
    if role not in STAFF_ROLES:
        raise ValidationError.for_field("role", "role must be admin or worker")
    email = email.strip().lower()
    if db.query(User).filter(User.email == email).first():
        raise ConflictError(f"User with email '{email}' already exists")
    if branch_id and not db.get(Branch, branch_id):
        raise NotFoundError.of("Branch")
    user = User(
        name=name,
        email=email,
        password_hash=hash_password(password),
        role=role,
        phone=phone,
        language=language,
        branch_id=branch_id,
        specialization=specialization,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info("Created %s account %s", role, email)
    return user


def list_users(db: Session, role: str | None = None, active: bool | None = None) -> list[User]:
    q = db.query(User)
    if role:
        q = q.filter(User.role == role)
    if active is not None:
        q = q.filter(User.active == active)
    return q.order_by(User.created_at.desc()).all()


def update_user(db: Session, user_id: str, changes: dict) -> User:
    user = get_user_by_id(db, user_id)
    if "role" in changes and changes["role"] not in STAFF_ROLES:
        raise ValidationError.for_field("role", "role must be admin or worker")
    for field, value in changes.items():
        setattr(user, field, value)
    db.commit()
    db.refresh(user)
    return user


def set_user_active(db: Session, user_id: str, active: bool, acting_user_id: str) -> User:
    user = get_user_by_id(db, user_id)
    if user.id == acting_user_id and not active:
        raise ConflictError("Cannot disable yourself")
    user.active = active
    db.commit()
    db.refresh(user)
    return user


def set_password(db: Session, user: User, password: str) -> None:
    user.password_hash = hash_password(password)
    db.commit()


def change_client_password(db: Session, client: Client, current: str, new: str) -> None:
    if not verify_password(current, client.password_hash):
        raise AuthenticationError("Current password is incorrect")
    client.password_hash = hash_password(new)
    client.password_temporary = False
    db.commit()


def ensure_default_admin(db: Session) -> None:
    """Create default admin user if no users exist."""
    if db.query(User).count() == 0:
        create_user(
            db,
            name="Admin",
            email=settings.DEFAULT_ADMIN_EMAIL,
            password=settings.DEFAULT_ADMIN_PASSWORD,
            role="admin",
        )
        logger.warning("Seeded default admin %s; change its password", settings.DEFAULT_ADMIN_EMAIL)
