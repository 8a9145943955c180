"""Balance ledger over (user, leave type, year).

``used_days`` is only ever changed here, and only through single UPDATE
statements evaluated by the database, so concurrent debits and credits on the
same key are all reflected. ``available_days`` is derived on read.
"""

from __future__ import annotations

import logging
import uuid
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

import sqlalchemy as sa
from sqlalchemy.ext.asyncio import AsyncSession

from leave_engine.common.constants import DAYS_QUANTUM
from leave_engine.common.exceptions import (
    DataIntegrityError,
    NotFoundException,
    ValidationException,
)
from leave_engine.database import utcnow
from leave_engine.leave.models import LeaveBalance

logger = logging.getLogger(__name__)


def quantize_days(amount) -> Decimal:
    """Two-decimal fixed precision for every ledger amount."""
    return Decimal(str(amount)).quantize(DAYS_QUANTUM, rounding=ROUND_HALF_UP)


class BalanceLedger:
    """Reads and atomic mutations of ``LeaveBalance.used_days``."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    @staticmethod
    def _key(user_id: uuid.UUID, leave_type_id: uuid.UUID, year: int):
        return sa.and_(
            LeaveBalance.user_id == user_id,
            LeaveBalance.leave_type_id == leave_type_id,
            LeaveBalance.year == year,
        )

    @staticmethod
    def _positive(amount) -> Decimal:
        value = quantize_days(amount)
        if value <= 0:
            raise ValidationException(
                {"amount": ["Ledger amounts must be greater than zero."]}
            )
        return value

    # ── Reads ───────────────────────────────────────────────────────

    async def find(
        self,
        user_id: uuid.UUID,
        leave_type_id: uuid.UUID,
        year: int,
    ) -> Optional[LeaveBalance]:
        result = await self._session.execute(
            sa.select(LeaveBalance)
            .where(self._key(user_id, leave_type_id, year))
            .execution_options(populate_existing=True)
        )
        return result.scalars().first()

    async def get(
        self,
        user_id: uuid.UUID,
        leave_type_id: uuid.UUID,
        year: int,
    ) -> LeaveBalance:
        balance = await self.find(user_id, leave_type_id, year)
        if balance is None:
            raise NotFoundException("LeaveBalance", f"{user_id}/{leave_type_id}/{year}")
        return balance

    async def available_days(
        self,
        user_id: uuid.UUID,
        leave_type_id: uuid.UUID,
        year: int,
    ) -> Decimal:
        balance = await self.get(user_id, leave_type_id, year)
        return balance.available_days

    async def list_for_user(self, user_id: uuid.UUID, year: int) -> list[LeaveBalance]:
        result = await self._session.execute(
            sa.select(LeaveBalance)
            .where(LeaveBalance.user_id == user_id, LeaveBalance.year == year)
            .execution_options(populate_existing=True)
        )
        balances = list(result.scalars().all())
        balances.sort(key=lambda b: b.leave_type.name)
        return balances

    # ── Mutations ───────────────────────────────────────────────────

    async def debit(
        self,
        user_id: uuid.UUID,
        leave_type_id: uuid.UUID,
        year: int,
        amount,
    ) -> Decimal:
        """Add ``amount`` to used days. Returns the amount applied."""
        value = self._positive(amount)
        result = await self._session.execute(
            sa.update(LeaveBalance)
            .where(self._key(user_id, leave_type_id, year))
            .values(used_days=LeaveBalance.used_days + value, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            logger.error(
                "Debit of %s days failed: no balance for user=%s type=%s year=%s",
                value, user_id, leave_type_id, year,
            )
            raise DataIntegrityError(
                f"No leave balance exists for user {user_id}, "
                f"leave type {leave_type_id}, year {year}."
            )
        logger.debug("Debited %s days: user=%s type=%s year=%s", value, user_id, leave_type_id, year)
        return value

    async def credit(
        self,
        user_id: uuid.UUID,
        leave_type_id: uuid.UUID,
        year: int,
        amount,
    ) -> Decimal:
        """Subtract ``amount`` from used days, floored at zero.

        Returns the amount actually credited, which is smaller than requested
        when the floor applied.
        """
        value = self._positive(amount)

        # Lock the row so the clamp we report matches the one we apply
        locked = await self._session.execute(
            sa.select(LeaveBalance.used_days)
            .where(self._key(user_id, leave_type_id, year))
            .with_for_update()
        )
        used_before = locked.scalar_one_or_none()
        if used_before is None:
            logger.error(
                "Credit of %s days failed: no balance for user=%s type=%s year=%s",
                value, user_id, leave_type_id, year,
            )
            raise DataIntegrityError(
                f"No leave balance exists for user {user_id}, "
                f"leave type {leave_type_id}, year {year}."
            )

        new_used = sa.case(
            (LeaveBalance.used_days >= value, LeaveBalance.used_days - value),
            else_=sa.literal(Decimal("0"), sa.Numeric(9, 2)),
        )
        await self._session.execute(
            sa.update(LeaveBalance)
            .where(self._key(user_id, leave_type_id, year))
            .values(used_days=new_used, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )

        used_before = quantize_days(used_before)
        if used_before < value:
            logger.warning(
                "Credit clamped at zero for user=%s type=%s year=%s: "
                "requested %s, applied %s, discrepancy %s",
                user_id, leave_type_id, year, value, used_before, value - used_before,
            )
            return used_before
        return value
