import logging
import os
from datetime import datetime
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import OperationalError

from app import db as app_db
from app import models as _models  # noqa: F401 - register SQLAlchemy models before create_all
from app.bootstrap import ensure_catalog_loaded
from app.config import get_settings
from app.routers import evidence, pci, risks, templates
from control_assurance import get_runtime_version
from control_assurance.errors import (
    AssuranceError,
    ConflictError,
    DomainError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)

logger = logging.getLogger(__name__)

ERROR_STATUS: tuple[tuple[type[AssuranceError], int], ...] = (
    (ValidationError, 422),
    (DomainError, 422),
    (NotFoundError, 404),
    (ConflictError, 409),
    (PersistenceError, 503),
)


def _status_for(exc: AssuranceError) -> int:
    for cls, status in ERROR_STATUS:
        if isinstance(exc, cls):
            return status
    return 400


def _sqlite_path_from_url(database_url: str) -> Path | None:
    url = (database_url or "").strip()
    if not url.startswith("sqlite:///"):
        return None
    return Path(url[len("sqlite:///") :])


def _backup_sqlite_journal(db_path: Path) -> bool:
    journal = Path(str(db_path) + "-journal")
    if not journal.exists():
        return False
    ts = datetime.utcnow().strftime("%Y%m%d_%H%M%S")
    backup_dir = get_settings().runtime_dir / "db_recovery"
    backup_dir.mkdir(parents=True, exist_ok=True)
    os.replace(str(journal), str(backup_dir / f"{journal.name}.journal_recovery.{ts}"))
    return True


def _init_db(database_url: str) -> None:
    app_db.configure_database(database_url)
    try:
        app_db.init_schema()
    except OperationalError as e:
        db_path = _sqlite_path_from_url(database_url)
        # A stale journal left by a crashed process shows up as a disk I/O error.
        if "disk i/o error" not in str(e).lower() or db_path is None or not _backup_sqlite_journal(db_path):
            raise
        logger.warning("SQLite disk I/O error detected; moved stale journal aside and retrying: %s", db_path)
        app_db.configure_database(database_url)
        app_db.init_schema()


def create_app() -> FastAPI:
    # Respect runtime env overrides (tests, packaged launcher, temporary runs).
    get_settings.cache_clear()
    settings = get_settings()

    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    app = FastAPI(title=settings.app_name)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allowed_origins or ["http://127.0.0.1", "http://localhost"],
        allow_origin_regex=settings.cors_allow_origin_regex,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(AssuranceError)
    async def assurance_error_handler(request: Request, exc: AssuranceError):
        status = _status_for(exc)
        if status >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        return JSONResponse(status_code=status, content=exc.to_payload())

    ensure_catalog_loaded()
    _init_db(settings.database_url)

    app.include_router(templates.router)
    app.include_router(risks.router)
    app.include_router(pci.router)
    app.include_router(evidence.router)

    @app.get("/healthz")
    def healthz():
        return {"status": "ok"}

    @app.get("/api/health")
    def api_health():
        return {"status": "ok", "version": get_runtime_version()}

    return app


app = create_app()
