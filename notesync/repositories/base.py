"""
Base Repository.

Base class for all repositories with common CRUD operations.
"""

from typing import Any, Generic, TypeVar

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from notesync.core.exceptions import NotFoundError
from notesync.core.logging import get_logger
from notesync.models.base import Base

logger = get_logger(__name__)

ModelType = TypeVar("ModelType", bound=Base)


class BaseRepository(Generic[ModelType]):
    """
    Base repository with common CRUD operations.

    Subclasses should set the model class:

        class NoteRepository(BaseRepository[Note]):
            model = Note
    """

    model: type[ModelType]

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get_by_id(self, id: int) -> ModelType:
        """
        Get a single record by ID.

        Raises:
            NotFoundError: If record not found
        """
        instance = await self.get_by_id_or_none(id)

        if instance is None:
            raise NotFoundError(f"{self.model.__name__} not found")

        return instance

    async def get_by_id_or_none(self, id: int) -> ModelType | None:
        """Get a single record by ID, returning None if not found."""
        result = await self.session.execute(
            select(self.model).where(self.model.id == id)
        )
        return result.scalar_one_or_none()

    async def upsert(self, **fields: Any) -> ModelType:
        """Insert a record or overwrite the one with the same primary key."""
        instance = await self.session.merge(self.model(**fields))
        await self.session.flush()
        return instance

    async def upsert_many(self, rows: list[dict[str, Any]]) -> int:
        """Upsert several records in the current transaction."""
        for fields in rows:
            await self.session.merge(self.model(**fields))
        await self.session.flush()
        return len(rows)

    async def delete_by_id(self, id: int) -> bool:
        """Delete a record by ID. Returns False when nothing was deleted."""
        result = await self.session.execute(
            delete(self.model).where(self.model.id == id)
        )
        return result.rowcount > 0

    async def delete_many(self, ids: list[int]) -> int:
        """Delete all records whose ID is in ids."""
        if not ids:
            return 0
        result = await self.session.execute(
            delete(self.model).where(self.model.id.in_(ids))
        )
        return result.rowcount

    async def exists(self, id: int) -> bool:
        """Check if a record exists by ID."""
        result = await self.session.execute(
            select(self.model.id).where(self.model.id == id)
        )
        return result.scalar_one_or_none() is not None

    async def clear_all(self) -> int:
        """Delete every record of this model."""
        result = await self.session.execute(delete(self.model))
        return result.rowcount
