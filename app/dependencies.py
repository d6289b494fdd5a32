from fastapi import Header

from app.db import get_db

ANONYMOUS_ACTOR = "anonymous"


def get_actor(x_actor: str | None = Header(default=None)) -> str:
    """Caller identity as resolved upstream; the service only records it."""
    value = (x_actor or "").strip()
    return value or ANONYMOUS_ACTOR


__all__ = ["get_actor", "get_db"]
