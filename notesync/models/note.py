"""
Note Model.

Replica model for notes. Each row carries the sync marker that drives
the push phase of a reconciliation cycle.
"""

import enum

from sqlalchemy import Enum, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from notesync.models.base import Base, TimestampMixin


class SyncStatus(str, enum.Enum):
    """Per-record sync marker."""

    SYNCED = "SYNCED"  # matches the server
    NEW = "NEW"  # created locally, not yet on the server
    UPDATED = "UPDATED"  # edited locally since the last sync
    DELETED = "DELETED"  # tombstone, awaiting remote deletion


class Note(TimestampMixin, Base):
    """
    Note replica model.

    Positive ids are server-assigned. Negative ids are temporary ids for
    records created locally that have not been pushed yet.
    """

    __tablename__ = "notes"

    id: Mapped[int] = mapped_column(
        Integer,
        primary_key=True,
        autoincrement=False,
    )
    title: Mapped[str] = mapped_column(Text, nullable=False, default="")
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    creator_name: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    creator_username: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    sync_status: Mapped[SyncStatus] = mapped_column(
        Enum(SyncStatus, native_enum=False, length=16),
        nullable=False,
        default=SyncStatus.NEW,
        index=True,
    )

    @property
    def is_temporary(self) -> bool:
        """True while the note only has a local placeholder id."""
        return self.id < 0

    def __repr__(self) -> str:
        return f"<Note(id={self.id}, title={self.title!r}, sync_status={self.sync_status.value})>"
