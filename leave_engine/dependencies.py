"""Shared FastAPI dependencies."""

import uuid
from typing import Optional

from fastapi import Header, HTTPException, Request, status

from leave_engine.common.constants import Role
from leave_engine.common.identity import Principal
from leave_engine.leave.lifecycle import LeaveLifecycle


async def get_principal(
    x_user_id: Optional[str] = Header(None),
    x_user_role: Optional[str] = Header(None),
) -> Principal:
    """Build the acting principal from headers set by the upstream gateway.

    Credentials are verified upstream; here we only parse what was forwarded.
    """
    if not x_user_id or not x_user_role:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing identity headers.",
        )
    try:
        return Principal(user_id=uuid.UUID(x_user_id), role=Role.parse(x_user_role))
    except (ValueError, KeyError):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Malformed identity headers.",
        ) from None


def get_lifecycle(request: Request) -> LeaveLifecycle:
    return request.app.state.lifecycle
