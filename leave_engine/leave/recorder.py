"""Append-only approval records."""

from __future__ import annotations

import uuid
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from leave_engine.common.constants import ApprovalAction
from leave_engine.leave.models import ApprovalRecord


class ApprovalRecorder:
    """Inserts approval records in the caller's transaction.

    A failed insert propagates, so the decision it belongs to rolls back too.
    """

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def append(
        self,
        leave_id: uuid.UUID,
        approver_id: uuid.UUID,
        action: ApprovalAction,
        comments: Optional[str] = None,
    ) -> ApprovalRecord:
        record = ApprovalRecord(
            leave_request_id=leave_id,
            approver_id=approver_id,
            action=action,
            comments=comments,
        )
        self._session.add(record)
        await self._session.flush()
        return record
