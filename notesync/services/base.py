"""
Base Service.

Base class for all services providing common patterns for business logic.
Services orchestrate repositories, own their transactions, and implement
business rules.

Usage:
    from notesync.services.base import BaseService

    class NoteService(BaseService):
        async def get_note(self, note_id: int) -> Note | None:
            async def _get() -> Note | None:
                async with self.transaction() as session:
                    return await NoteRepository(session).get_visible(note_id)

            return await self._execute_db_operation("get_note", _get())
"""

from collections.abc import AsyncGenerator, Coroutine
from contextlib import asynccontextmanager
from typing import Any, TypeVar

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from notesync.core.database import session_scope
from notesync.core.exceptions import ConflictError, DatabaseError
from notesync.core.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


class BaseService:
    """
    Base class for all services.

    Provides:
    - Transaction scopes over the replica
    - Logging context
    - Error wrapping for database operations

    Subclasses should:
    - Call super().__init__(session_factory) in their __init__
    - Open one transaction per operation via self.transaction()
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        """
        Initialize the service with a session factory.

        Args:
            session_factory: Factory for replica sessions
        """
        self._session_factory = session_factory
        self._logger = get_logger(self.__class__.__module__)

    @property
    def session_factory(self) -> async_sessionmaker[AsyncSession]:
        """Get the session factory."""
        return self._session_factory

    @asynccontextmanager
    async def transaction(self) -> AsyncGenerator[AsyncSession, None]:
        """Open a session that commits on success and rolls back on error."""
        async with session_scope(self._session_factory) as session:
            yield session

    async def _execute_db_operation(
        self,
        operation: str,
        coro: Coroutine[Any, Any, T],
    ) -> T:
        """
        Execute a database operation with error handling.

        Wraps database operations to convert SQLAlchemy exceptions
        to application-specific exceptions.

        Args:
            operation: Description of the operation for logging
            coro: Coroutine to execute

        Returns:
            Result of the coroutine

        Raises:
            ConflictError: For unique constraint violations
            DatabaseError: For other database errors
        """
        try:
            return await coro
        except IntegrityError as e:
            self._logger.warning(
                "Database integrity error",
                extra={"operation": operation, "error": str(e)},
            )
            error_str = str(e).lower()
            if "unique" in error_str or "duplicate" in error_str:
                raise ConflictError("Resource already exists") from e
            raise DatabaseError(f"Database constraint violation: {operation}") from e
        except SQLAlchemyError as e:
            self._logger.error(
                "Database error",
                extra={"operation": operation, "error": str(e)},
            )
            raise DatabaseError(f"Database operation failed: {operation}") from e

    def _log_operation(
        self,
        operation: str,
        **context: Any,
    ) -> None:
        """
        Log a service operation with context.

        Args:
            operation: Description of the operation
            **context: Additional context to include in log
        """
        self._logger.info(
            operation,
            extra={"service": self.__class__.__name__, **context},
        )

    def _log_debug(
        self,
        message: str,
        **context: Any,
    ) -> None:
        """
        Log debug information.

        Args:
            message: Debug message
            **context: Additional context to include in log
        """
        self._logger.debug(
            message,
            extra={"service": self.__class__.__name__, **context},
        )
