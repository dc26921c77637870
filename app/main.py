import logging
import pathlib
import traceback
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.api import auth, branches, clients, inventory, invoices, notifications, plants, reports, sites, tasks, translate
from app.config import settings
from app.database import SessionLocal, init_db
from app.exceptions import AppError
from app.services.auth_service import ensure_default_admin
from app.services.translation_service import TranslationService

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    db = SessionLocal()
    try:
        ensure_default_admin(db)
    finally:
        db.close()
    app.state.translator = TranslationService()
    yield


app = FastAPI(
    title="Garden Manager API",
    description="Clients, sites, field tasks, inventory, invoicing and notifications for garden maintenance",
    version="1.0.0",
    lifespan=lifespan,
)


def _error(status_code: int, message: str, errors: list[dict] | None = None) -> JSONResponse:
    body = {"success": False, "message": message}
    if errors:
        body["errors"] = errors
    return JSONResponse(status_code=status_code, content=jsonable_encoder(body))


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return _error(exc.status_code, exc.message, getattr(exc, "errors", None))


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = [
        {
            "field": ".".join(str(p) for p in err["loc"] if p not in ("body", "query", "path")),
            "message": err["msg"],
        }
        for err in exc.errors()
    ]
    return _error(400, "Validation failed", errors)


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return _error(exc.status_code, str(exc.detail))


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Return the envelope for unhandled exceptions without leaking internals."""
    logger.error("Unhandled error: %s\n%s", exc, traceback.format_exc())
    return _error(500, "Internal server error")


app.include_router(auth.router, prefix="/api/v1")
app.include_router(auth.users_router, prefix="/api/v1")
app.include_router(branches.router, prefix="/api/v1")
app.include_router(clients.router, prefix="/api/v1")
app.include_router(sites.router, prefix="/api/v1")
app.include_router(inventory.router, prefix="/api/v1")
app.include_router(plants.router, prefix="/api/v1")
app.include_router(tasks.router, prefix="/api/v1")
app.include_router(invoices.router, prefix="/api/v1")
app.include_router(notifications.router, prefix="/api/v1")
app.include_router(reports.router, prefix="/api/v1")
app.include_router(translate.router, prefix="/api/v1")


# Uploaded task photos, reference images and invoice PDFs
_upload_dir = pathlib.Path(settings.UPLOAD_DIR)
_upload_dir.mkdir(parents=True, exist_ok=True)
app.mount("/uploads", StaticFiles(directory=_upload_dir), name="uploads")


@app.get("/health")
def health():
    return {"status": "ok"}
