"""Leave persistence: lookups, inserts and conditional status transitions."""

from __future__ import annotations

import logging
import uuid
from typing import Any, Iterable, Optional, Sequence

import sqlalchemy as sa
from sqlalchemy.ext.asyncio import AsyncSession

from leave_engine.common.constants import ACTIVE_STATUSES, LeaveStatus, Role
from leave_engine.common.exceptions import NotFoundException, StateError
from leave_engine.leave.models import ApprovalRecord, LeaveRequest, LeaveType
from leave_engine.users.models import User

logger = logging.getLogger(__name__)


class LeaveRepository:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    # ── Leave types ─────────────────────────────────────────────────

    async def get_leave_type(self, leave_type_id: uuid.UUID) -> LeaveType:
        """Active leave type by id, else ``NotFoundException``."""
        leave_type = await self._session.get(LeaveType, leave_type_id)
        if leave_type is None or not leave_type.is_active:
            raise NotFoundException("LeaveType", leave_type_id)
        return leave_type

    async def list_leave_types(self, names: Iterable[str]) -> Sequence[LeaveType]:
        wanted = list(names)
        if not wanted:
            return []
        result = await self._session.execute(
            sa.select(LeaveType)
            .where(LeaveType.is_active.is_(True), LeaveType.name.in_(wanted))
            .order_by(LeaveType.name)
        )
        return result.scalars().all()

    # ── Leave requests ──────────────────────────────────────────────

    async def get_request(
        self,
        leave_id: uuid.UUID,
        *,
        for_update: bool = False,
    ) -> LeaveRequest:
        stmt = (
            sa.select(LeaveRequest)
            .where(LeaveRequest.id == leave_id)
            .execution_options(populate_existing=True)
        )
        if for_update:
            stmt = stmt.with_for_update(of=LeaveRequest)
        result = await self._session.execute(stmt)
        leave = result.scalars().first()
        if leave is None:
            raise NotFoundException("LeaveRequest", leave_id)
        return leave

    async def active_requests_for(self, user_id: uuid.UUID) -> Sequence[LeaveRequest]:
        result = await self._session.execute(
            sa.select(LeaveRequest)
            .where(
                LeaveRequest.user_id == user_id,
                LeaveRequest.status.in_(ACTIVE_STATUSES),
            )
            .order_by(LeaveRequest.start_date)
        )
        return result.scalars().all()

    async def add(self, leave: LeaveRequest) -> LeaveRequest:
        self._session.add(leave)
        await self._session.flush()
        return leave

    async def transition(
        self,
        leave: LeaveRequest,
        expected: LeaveStatus,
        new_status: LeaveStatus,
        **values: Any,
    ) -> LeaveRequest:
        """Move ``leave`` from ``expected`` to ``new_status`` in one conditional UPDATE.

        If another transaction changed the status first, no row matches and
        ``StateError`` is raised; the caller's unit of work then rolls back.
        """
        result = await self._session.execute(
            sa.update(LeaveRequest)
            .where(LeaveRequest.id == leave.id, LeaveRequest.status == expected)
            .values(status=new_status, **values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            logger.warning(
                "Lost transition %s -> %s on leave request %s",
                expected.value, new_status.value, leave.id,
            )
            raise StateError("This leave request has already been processed.")
        await self._session.refresh(leave)
        return leave

    async def list_for_user(self, user_id: uuid.UUID) -> Sequence[LeaveRequest]:
        result = await self._session.execute(
            sa.select(LeaveRequest)
            .where(LeaveRequest.user_id == user_id)
            .order_by(LeaveRequest.created_at.desc(), LeaveRequest.start_date.desc())
        )
        return result.scalars().all()

    async def pending_for_manager(self, manager_id: uuid.UUID) -> Sequence[LeaveRequest]:
        result = await self._session.execute(
            sa.select(LeaveRequest)
            .join(User, User.id == LeaveRequest.user_id)
            .where(
                User.manager_id == manager_id,
                LeaveRequest.status == LeaveStatus.pending,
            )
            .order_by(LeaveRequest.created_at.asc())
        )
        return result.scalars().all()

    async def pending_for_admin(self) -> Sequence[LeaveRequest]:
        """Escalated requests plus pending requests submitted by managers."""
        result = await self._session.execute(
            sa.select(LeaveRequest)
            .join(User, User.id == LeaveRequest.user_id)
            .where(
                sa.or_(
                    LeaveRequest.status == LeaveStatus.awaiting_admin_approval,
                    sa.and_(
                        LeaveRequest.status == LeaveStatus.pending,
                        User.role == Role.manager,
                    ),
                )
            )
            .order_by(LeaveRequest.created_at.asc())
        )
        return result.scalars().all()

    # ── Approval records ────────────────────────────────────────────

    async def approval_history(
        self,
        approver_id: Optional[uuid.UUID] = None,
    ) -> Sequence[ApprovalRecord]:
        stmt = sa.select(ApprovalRecord).order_by(ApprovalRecord.created_at.desc())
        if approver_id is not None:
            stmt = stmt.where(ApprovalRecord.approver_id == approver_id)
        result = await self._session.execute(stmt)
        return result.scalars().all()
