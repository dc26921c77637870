import io
import os
import tempfile
from datetime import datetime, timedelta

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("UPLOAD_DIR", tempfile.mkdtemp(prefix="garden-uploads-"))

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from PIL import Image  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from app.actors import AdminActor, ClientActor, WorkerActor  # noqa: E402
from app.config import settings  # noqa: E402
from app.database import get_db, init_db  # noqa: E402
from app.main import app  # noqa: E402
from app.models.branch import Branch  # noqa: E402
from app.models.client import Client  # noqa: E402
from app.models.inventory import InventoryItem  # noqa: E402
from app.models.site import Section, Site  # noqa: E402
from app.models.user import User  # noqa: E402
from app.services import auth_service  # noqa: E402
from app.services.translation_service import TranslationService  # noqa: E402

PASSWORD = "secret123"
# bcrypt is slow on purpose; hash once for every seeded account
PASSWORD_HASH = auth_service.hash_password(PASSWORD)


@pytest.fixture
def engine():
    engine = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
    init_db(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture(autouse=True)
def upload_dir(tmp_path, monkeypatch):
    path = tmp_path / "uploads"
    monkeypatch.setattr(settings, "UPLOAD_DIR", str(path))
    return path


@pytest.fixture
def client(session_factory):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.state.translator = TranslationService(cache_size=100, enabled=False)
    yield TestClient(app)
    app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# Seed data
# ---------------------------------------------------------------------------


@pytest.fixture
def branch(db):
    b = Branch(name="Riyadh North", code="RUH-N")
    db.add(b)
    db.commit()
    return b


def _user(db, name, email, role, branch):
    u = User(name=name, email=email, password_hash=PASSWORD_HASH, role=role, phone="+966500000000", branch_id=branch.id)
    db.add(u)
    db.commit()
    return u


@pytest.fixture
def admin(db, branch):
    return _user(db, "Admin", "admin@gardenco.com", "admin", branch)


@pytest.fixture
def worker(db, branch):
    return _user(db, "Khalid", "khalid@gardenco.com", "worker", branch)


@pytest.fixture
def other_worker(db, branch):
    return _user(db, "Rahim", "rahim@gardenco.com", "worker", branch)


@pytest.fixture
def customer(db, branch):
    c = Client(
        name="Villa Owner",
        email="owner@villa.com",
        phone="+966511111111",
        address="12 Palm Street",
        branch_id=branch.id,
        username="owner",
        password_hash=PASSWORD_HASH,
    )
    db.add(c)
    db.commit()
    return c


@pytest.fixture
def site(db, customer):
    s = Site(name="Villa Garden", client_id=customer.id, address="12 Palm Street")
    s.sections = [Section(name="Front lawn"), Section(name="Back yard")]
    db.add(s)
    db.commit()
    return s


@pytest.fixture
def section(site):
    return next(s for s in site.sections if s.name == "Front lawn")


@pytest.fixture
def make_item(db, branch):
    def _make(sku="FERT-001", current=30.0, minimum=10.0, maximum=1000.0, **kwargs):
        item = InventoryItem(
            sku=sku,
            name=kwargs.pop("name", f"Item {sku}"),
            unit=kwargs.pop("unit", "kg"),
            category=kwargs.pop("category", "fertilizer"),
            branch_id=branch.id,
            quantity_current=current,
            quantity_minimum=minimum,
            quantity_maximum=maximum,
            **kwargs,
        )
        db.add(item)
        db.commit()
        return item

    return _make


@pytest.fixture
def scheduled():
    return datetime(2026, 5, 1, 8, 0)


@pytest.fixture
def task_payload(site, section, branch, scheduled):
    def _payload(**overrides):
        body = {
            "title": "Lawn mowing",
            "description": "Mow and edge the front lawn",
            "category": "lawn-mowing",
            "site_id": site.id,
            "section_id": section.id,
            "branch_id": branch.id,
            "scheduled_date": scheduled.isoformat(),
            "cost_labor": 200.0,
            "cost_materials": 50.0,
        }
        body.update(overrides)
        return body

    return _payload


# ---------------------------------------------------------------------------
# Actors and auth
# ---------------------------------------------------------------------------


@pytest.fixture
def admin_actor(admin):
    return AdminActor(user_id=admin.id, name=admin.name)


@pytest.fixture
def worker_actor(worker):
    return WorkerActor(user_id=worker.id, name=worker.name)


@pytest.fixture
def client_actor(customer):
    return ClientActor(client_id=customer.id, name=customer.name)


def _headers(subject_id, role):
    return {"Authorization": f"Bearer {auth_service.create_access_token(subject_id, role)}"}


@pytest.fixture
def admin_headers(admin):
    return _headers(admin.id, "admin")


@pytest.fixture
def worker_headers(worker):
    return _headers(worker.id, "worker")


@pytest.fixture
def other_worker_headers(other_worker):
    return _headers(other_worker.id, "worker")


@pytest.fixture
def client_headers(customer):
    return _headers(customer.id, "client")


# ---------------------------------------------------------------------------
# Misc
# ---------------------------------------------------------------------------


@pytest.fixture
def png():
    def _png(color="green", size=(640, 480)) -> bytes:
        buf = io.BytesIO()
        Image.new("RGB", size, color).save(buf, "PNG")
        return buf.getvalue()

    return _png


@pytest.fixture
def clock(monkeypatch):
    """Controllable utcnow for the ledger's alert cooldown."""
    from app.services import inventory_service

    state = {"now": datetime(2026, 5, 1, 9, 0)}

    def fake_now():
        return state["now"]

    def advance(**kwargs):
        state["now"] += timedelta(**kwargs)

    monkeypatch.setattr(inventory_service, "utcnow", fake_now)
    return advance
