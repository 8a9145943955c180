"""Leave router — apply, decide, cancel, balances, approval queues.

Identity comes from the gateway headers; role checks live in the lifecycle.
"""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from leave_engine.common.identity import Principal
from leave_engine.dependencies import get_lifecycle, get_principal
from leave_engine.leave.lifecycle import LeaveLifecycle
from leave_engine.leave.schemas import (
    ApprovalRecordOut,
    LeaveBalanceOut,
    LeaveDecisionRequest,
    LeaveRequestCreate,
    LeaveRequestOut,
    LeaveSubmitOut,
    LeaveTransitionOut,
    LeaveTypeOut,
    TeamMemberBalancesOut,
)

router = APIRouter(prefix="", tags=["leave"])


# ── POST /requests ──────────────────────────────────────────────────

@router.post(
    "/requests",
    response_model=LeaveSubmitOut,
    status_code=status.HTTP_201_CREATED,
)
async def apply_leave(
    body: LeaveRequestCreate,
    principal: Principal = Depends(get_principal),
    lifecycle: LeaveLifecycle = Depends(get_lifecycle),
):
    """Apply for leave. Validates dates, overlap, eligibility and balance."""
    return await lifecycle.submit(
        principal,
        body.leave_type_id,
        body.start_date,
        body.end_date,
        body.reason,
    )


# ── PUT /requests/{id}/decision ─────────────────────────────────────

@router.put("/requests/{leave_id}/decision", response_model=LeaveTransitionOut)
async def decide_leave(
    leave_id: uuid.UUID,
    body: LeaveDecisionRequest,
    principal: Principal = Depends(get_principal),
    lifecycle: LeaveLifecycle = Depends(get_lifecycle),
):
    """Approve or reject a leave request (manager of the submitter, or admin)."""
    return await lifecycle.decide(leave_id, principal, body.action, body.comments)


# ── PUT /requests/{id}/cancel ───────────────────────────────────────

@router.put("/requests/{leave_id}/cancel", response_model=LeaveTransitionOut)
async def cancel_leave(
    leave_id: uuid.UUID,
    principal: Principal = Depends(get_principal),
    lifecycle: LeaveLifecycle = Depends(get_lifecycle),
):
    """Cancel own leave. Approved leave only before it starts."""
    return await lifecycle.cancel(leave_id, principal)


# ── GET /types ──────────────────────────────────────────────────────

@router.get("/types", response_model=list[LeaveTypeOut])
async def list_leave_types(
    principal: Principal = Depends(get_principal),
    lifecycle: LeaveLifecycle = Depends(get_lifecycle),
):
    return await lifecycle.list_applicable_leave_types(principal)


# ── GET /balances ───────────────────────────────────────────────────

@router.get("/balances", response_model=list[LeaveBalanceOut])
async def my_balances(
    year: Optional[int] = Query(None, ge=2000, le=2100),
    principal: Principal = Depends(get_principal),
    lifecycle: LeaveLifecycle = Depends(get_lifecycle),
):
    """Balances for the given year (default: current year)."""
    return await lifecycle.get_balances(principal.user_id, year)


# ── GET /team/balances ──────────────────────────────────────────────

@router.get("/team/balances", response_model=list[TeamMemberBalancesOut])
async def team_balances(
    year: Optional[int] = Query(None, ge=2000, le=2100),
    principal: Principal = Depends(get_principal),
    lifecycle: LeaveLifecycle = Depends(get_lifecycle),
):
    """Direct reports' balances (managers only)."""
    return await lifecycle.list_team_balances(principal, year)


# ── GET /my-leaves ──────────────────────────────────────────────────

@router.get("/my-leaves", response_model=list[LeaveRequestOut])
async def my_leaves(
    principal: Principal = Depends(get_principal),
    lifecycle: LeaveLifecycle = Depends(get_lifecycle),
):
    return await lifecycle.list_my_requests(principal.user_id)


# ── GET /approvals/pending ──────────────────────────────────────────

@router.get("/approvals/pending", response_model=list[LeaveRequestOut])
async def pending_approvals(
    principal: Principal = Depends(get_principal),
    lifecycle: LeaveLifecycle = Depends(get_lifecycle),
):
    """Requests waiting on the caller: direct reports for managers, escalations for admins."""
    return await lifecycle.list_pending_approvals(principal)


# ── GET /approvals/history ──────────────────────────────────────────

@router.get("/approvals/history", response_model=list[ApprovalRecordOut])
async def approval_history(
    principal: Principal = Depends(get_principal),
    lifecycle: LeaveLifecycle = Depends(get_lifecycle),
):
    return await lifecycle.list_approval_history(principal)
