"""Practitioner assignment schemas."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field


class AssignmentCreate(BaseModel):
    assistant_id: UUID
    practitioner_id: UUID


class AssignmentReplace(BaseModel):
    """Full replacement set for one assistant. Empty list unassigns everyone."""
    practitioner_ids: list[UUID] = Field(default_factory=list)


class AssignmentRead(BaseModel):
    id: UUID
    assistant_id: UUID
    practitioner_id: UUID
    practice_id: UUID
    practitioner_name: str | None = None
    created_by: UUID | None
    created_at: datetime

    model_config = {"from_attributes": True}


class AssignedPractitioner(BaseModel):
    """Practitioner the current assistant may book for."""
    practitioner_id: UUID
    display_name: str
    email: str
