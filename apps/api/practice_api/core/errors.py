"""Typed service errors.

Services raise these; the exception handler in ``main`` maps each one to its
HTTP status so callers can tell "not allowed" from "doesn't exist" from
"bad input".
"""

import logging
from contextlib import contextmanager

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)


class PracticeError(Exception):
    """Base exception for service errors."""

    status_code = 500
    code = "error"

    def __init__(self, detail: str = "", **context):
        super().__init__(detail)
        self.detail = detail or self.__class__.__doc__ or self.code
        self.context = context

    def to_dict(self) -> dict:
        payload = {"detail": self.detail, "code": self.code}
        payload.update(self.context)
        return payload


class ValidationError(PracticeError):
    """Malformed input."""

    status_code = 422
    code = "validation_error"


class NotFoundError(PracticeError):
    """Referenced record does not exist in this practice."""

    status_code = 404
    code = "not_found"


class ForbiddenError(PracticeError):
    """Actor lacks the permission or assignment for this action."""

    status_code = 403
    code = "forbidden"


class UnauthorizedError(PracticeError):
    """No authenticated actor."""

    status_code = 401
    code = "unauthorized"


class ConflictError(PracticeError):
    """Duplicate record or double booking."""

    status_code = 409
    code = "conflict"


class StorageError(PracticeError):
    """Database call failed."""

    status_code = 503
    code = "storage_error"


def storage_error_from(exc: SQLAlchemyError, action: str) -> PracticeError:
    """Translate a database exception into the service taxonomy."""
    if isinstance(exc, IntegrityError):
        return StorageError(f"Failed to {action}: constraint violation")
    return StorageError(f"Failed to {action}")


@contextmanager
def storage_transaction(db: Session, action: str, log_context: dict | None = None):
    """
    Run a unit of writes and commit it.

    Any SQLAlchemyError rolls the whole unit back and surfaces as the
    StorageError for ``action``.
    """
    try:
        yield
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("storage_write_failed action=%s", action, extra=log_context or {})
        raise storage_error_from(exc, action) from exc
