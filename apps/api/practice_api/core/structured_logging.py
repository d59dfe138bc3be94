"""Structured logging helpers (PHI-safe)."""

from typing import Any
from uuid import UUID


def build_log_context(
    *,
    user_id: UUID | str | None = None,
    practice_id: UUID | str | None = None,
    practitioner_id: UUID | str | None = None,
    request_id: str | None = None,
    route: str | None = None,
    method: str | None = None,
) -> dict[str, Any]:
    """Return a PHI-safe log context dict (identifiers only, never client data)."""
    context: dict[str, Any] = {}
    if user_id:
        context["user_id"] = str(user_id)
    if practice_id:
        context["practice_id"] = str(practice_id)
    if practitioner_id:
        context["practitioner_id"] = str(practitioner_id)
    if request_id:
        context["request_id"] = request_id
    if route:
        context["route"] = route
    if method:
        context["method"] = method
    return context
