from __future__ import annotations

from typing import Any


class AssuranceError(Exception):
    """Base class for every failure the assurance engine reports to its callers."""

    code = "assurance_error"

    def __init__(self, message: str, *, code: str | None = None, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        if code:
            self.code = code
        self.details: dict[str, Any] = dict(details or {})

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"error": self.code, "message": self.message}
        if self.details:
            payload["details"] = self.details
        return payload


class ValidationError(AssuranceError):
    code = "validation_error"


class DomainError(AssuranceError):
    code = "domain_error"


class NotFoundError(AssuranceError):
    code = "not_found"


class PersistenceError(AssuranceError):
    code = "persistence_error"


class ConflictError(AssuranceError):
    code = "conflict"


__all__ = [
    "AssuranceError",
    "ConflictError",
    "DomainError",
    "NotFoundError",
    "PersistenceError",
    "ValidationError",
]
