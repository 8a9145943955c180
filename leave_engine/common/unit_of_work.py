"""Async unit of work: one session and one transaction per engine call.

Everything an engine operation writes (status transition, ledger mutation,
approval record) goes through ``uow.session``. Leaving the block without an
exception commits; any exception rolls the whole transaction back. Driver
errors are re-raised as ``PersistenceError`` so callers only ever see
``AppException`` subclasses.

Usage::

    async with UnitOfWork(session_factory) as uow:
        leave = await LeaveRepository(uow.session).get_request(leave_id)
        ...
"""

from __future__ import annotations

import logging
from types import TracebackType
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from leave_engine.common.exceptions import PersistenceError

logger = logging.getLogger(__name__)


class UnitOfWork:
    """Transaction boundary around a single ``AsyncSession``."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory
        self._session: Optional[AsyncSession] = None

    @property
    def session(self) -> AsyncSession:
        if self._session is None:
            raise RuntimeError("UnitOfWork used outside of its context")
        return self._session

    async def __aenter__(self) -> "UnitOfWork":
        if self._session is not None:
            raise RuntimeError("UnitOfWork context already entered")
        self._session = self._session_factory()
        return self

    async def __aexit__(
        self,
        exc_type: Optional[type[BaseException]],
        exc: Optional[BaseException],
        tb: Optional[TracebackType],
    ) -> bool:
        session = self.session
        try:
            if exc_type is None:
                try:
                    await session.commit()
                except SQLAlchemyError as commit_error:
                    await session.rollback()
                    logger.error("Commit failed, transaction rolled back: %s", commit_error)
                    raise PersistenceError() from commit_error
                return False

            await session.rollback()
            if isinstance(exc, SQLAlchemyError):
                logger.error("Storage error, transaction rolled back: %s", exc)
                raise PersistenceError() from exc
            logger.debug("Unit of work rolled back after %s", exc_type.__name__)
            return False
        finally:
            await session.close()
            self._session = None
