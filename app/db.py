from pathlib import Path
from urllib.parse import unquote

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker

from app.config import get_settings

Base = declarative_base()
SessionLocal = sessionmaker(autoflush=False, autocommit=False, future=True)
engine: Engine | None = None


def _ensure_sqlite_parent(database_url: str) -> None:
    if not database_url.startswith("sqlite:///"):
        return
    raw = unquote(database_url[len("sqlite:///") :])
    try:
        Path(raw).parent.mkdir(parents=True, exist_ok=True)
    except OSError:
        # SQLite reports a clearer error when it cannot open the file.
        pass


def configure_database(database_url: str) -> Engine:
    """(Re)bind the module engine and session factory to ``database_url``."""
    global engine
    if engine is not None:
        engine.dispose()
    _ensure_sqlite_parent(database_url)
    connect_args = {"check_same_thread": False} if database_url.startswith("sqlite") else {}
    engine = create_engine(database_url, connect_args=connect_args, future=True)
    SessionLocal.configure(bind=engine)
    return engine


def init_schema() -> None:
    if engine is None:
        configure_database(get_settings().database_url)
    Base.metadata.create_all(bind=engine)


def get_db():
    if engine is None:
        configure_database(get_settings().database_url)
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
