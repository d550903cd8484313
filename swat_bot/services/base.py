"""
Base service class for the SWAT bot.

Provides async database session management for all service layer operations.
Driver errors are converted to PersistenceError so callers see one error
type carrying the failed operation and member.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from swat_bot.utils.exceptions import PersistenceError

logger = logging.getLogger(__name__)

class BaseService:
    """Base class for all services with async database session management."""

    def __init__(self, session_factory):
        """
        Initialize base service with session factory.

        Args:
            session_factory: Async session factory from Database class
        """
        self.session_factory = session_factory

    @asynccontextmanager
    async def get_session(
        self,
        operation: str = 'database operation',
        member_id: Optional[int] = None
    ) -> AsyncGenerator[AsyncSession, None]:
        """
        Provide a transactional scope for async database operations.

        Commits on success. Any failure rolls back everything done in the
        scope; SQLAlchemy errors are re-raised as PersistenceError.
        """
        session = self.session_factory()
        try:
            yield session
            await session.commit()
        except SQLAlchemyError as e:
            await session.rollback()
            logger.error(f"Database error during {operation} (member={member_id}): {e}")
            raise PersistenceError(operation, str(e), member_id=member_id) from e
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()
