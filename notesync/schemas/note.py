"""
Note Schemas.

Pydantic schemas for the remote note service's request and response bodies.
"""

import re
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from notesync.core.utils import to_naive_utc

# "2025-07-07 21:31:44.003364+00" carries a bare hour offset
_BARE_HOUR_OFFSET = re.compile(r"([+-]\d{2})$")


class NoteRequest(BaseModel):
    """Body sent when creating or updating a note."""

    title: str = Field(description="Note title")
    description: str = Field(description="Note body")


class RemoteNote(BaseModel):
    """A note as represented by the remote service."""

    id: int = Field(gt=0, description="Server-assigned note id")
    title: str
    description: str
    created_at: datetime
    updated_at: datetime
    creator_name: str = ""
    creator_username: str = ""

    model_config = ConfigDict(extra="ignore")

    @field_validator("created_at", "updated_at", mode="before")
    @classmethod
    def _parse_timestamp(cls, value: Any) -> Any:
        if isinstance(value, str):
            text = _BARE_HOUR_OFFSET.sub(r"\1:00", value.strip())
            return datetime.fromisoformat(text)
        return value

    @field_validator("created_at", "updated_at")
    @classmethod
    def _as_naive_utc(cls, value: datetime) -> datetime:
        return to_naive_utc(value)

    def to_fields(self) -> dict[str, Any]:
        """Column values for the replica row."""
        return self.model_dump()


class NotePage(BaseModel):
    """One page of the remote note listing."""

    count: int = 0
    next: str | None = None
    previous: str | None = None
    results: list[RemoteNote] = Field(default_factory=list)

    model_config = ConfigDict(extra="ignore")
