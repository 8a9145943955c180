"""User lookups: by id and by reporting line."""

from __future__ import annotations

import uuid
from typing import Optional

import sqlalchemy as sa
from sqlalchemy.ext.asyncio import AsyncSession

from leave_engine.common.exceptions import NotFoundException
from leave_engine.users.models import User


class UserDirectory:
    """Access to users within the caller's session."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def find(self, user_id: uuid.UUID) -> Optional[User]:
        return await self._session.get(User, user_id)

    async def get_active(self, user_id: uuid.UUID, *, for_update: bool = False) -> User:
        """Active user by id, else ``NotFoundException``.

        With ``for_update`` the user row stays locked until the caller's
        transaction ends, which serializes per-user submissions.
        """
        if for_update:
            result = await self._session.execute(
                sa.select(User)
                .where(User.id == user_id)
                .with_for_update()
                .execution_options(populate_existing=True)
            )
            user = result.scalars().first()
        else:
            user = await self.find(user_id)
        if user is None or not user.is_active:
            raise NotFoundException("User", user_id)
        return user

    async def direct_reports(self, manager_id: uuid.UUID) -> list[User]:
        """Active users whose ``manager_id`` is ``manager_id``, by name."""
        result = await self._session.execute(
            sa.select(User)
            .where(User.manager_id == manager_id, User.is_active.is_(True))
            .order_by(User.name)
        )
        return list(result.scalars().all())
