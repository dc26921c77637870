from datetime import datetime, timezone

from sqlalchemy import create_engine
from sqlalchemy.orm import DeclarativeBase, sessionmaker

from app.config import settings

connect_args = {}
if settings.DATABASE_URL.startswith("sqlite"):
    connect_args["check_same_thread"] = False

engine = create_engine(settings.DATABASE_URL, connect_args=connect_args)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


class Base(DeclarativeBase):
    pass


def utcnow() -> datetime:
    """Naive UTC timestamp, matching what DateTime columns hand back on SQLite."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def import_models():
    # Import all models so Base.metadata knows about them
    import app.models.branch  # noqa: F401
    import app.models.client  # noqa: F401
    import app.models.inventory  # noqa: F401
    import app.models.inventory_transaction  # noqa: F401
    import app.models.invoice  # noqa: F401
    import app.models.notification  # noqa: F401
    import app.models.plant  # noqa: F401
    import app.models.site  # noqa: F401
    import app.models.task  # noqa: F401
    import app.models.user  # noqa: F401


def init_db(bind=None):
    import_models()
    Base.metadata.create_all(bind=bind or engine)
