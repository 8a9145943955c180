"""Leave Pydantic v2 schemas — request / response validation.

Naming conventions:
  - *Create / *Request  → request bodies (write)
  - *Out                → response bodies (read)
  - *Brief              → compact embedded representations
"""

from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from leave_engine.common.constants import ApprovalAction, DecisionAction, LeaveStatus


# ═════════════════════════════════════════════════════════════════════
# Leave Type
# ═════════════════════════════════════════════════════════════════════


class LeaveTypeBrief(BaseModel):
    """Minimal leave type info embedded in other responses."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str


class LeaveTypeOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    description: Optional[str] = None
    requires_approval: bool = True
    is_balance_based: bool = True
    debit_on_auto_approve: bool = False


# ═════════════════════════════════════════════════════════════════════
# Leave Balance
# ═════════════════════════════════════════════════════════════════════


class LeaveBalanceOut(BaseModel):
    """Balance for a single leave type; ``available_days`` is derived."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    user_id: uuid.UUID
    leave_type_id: uuid.UUID
    year: int
    total_days: Decimal
    used_days: Decimal
    available_days: Decimal

    leave_type: Optional[LeaveTypeBrief] = None


class TeamMemberBalancesOut(BaseModel):
    """One direct report and their balances for the requested year."""

    user_id: uuid.UUID
    name: str
    email: str
    role: str
    balances: list[LeaveBalanceOut] = Field(default_factory=list)


# ═════════════════════════════════════════════════════════════════════
# Leave Request — Create / Decide
# ═════════════════════════════════════════════════════════════════════


class LeaveRequestCreate(BaseModel):
    """Payload for applying a leave request."""

    leave_type_id: uuid.UUID
    start_date: date = Field(..., description="Leave start date (inclusive)")
    end_date: date = Field(..., description="Leave end date (inclusive)")
    reason: str = Field(..., max_length=1000, description="Reason for leave")


class LeaveDecisionRequest(BaseModel):
    """Payload for approving or rejecting a leave request."""

    action: DecisionAction
    comments: Optional[str] = Field(None, max_length=1000)

    @field_validator("comments")
    @classmethod
    def blank_comments_to_none(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not v.strip():
            return None
        return v


# ═════════════════════════════════════════════════════════════════════
# Leave Request — Response
# ═════════════════════════════════════════════════════════════════════


class LeaveSubmitOut(BaseModel):
    leave_id: uuid.UUID
    status: LeaveStatus
    required_approvals: int


class LeaveTransitionOut(BaseModel):
    leave_id: uuid.UUID
    new_status: LeaveStatus


class LeaveRequestOut(BaseModel):
    """Full leave request response."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    user_id: uuid.UUID
    leave_type_id: uuid.UUID
    start_date: date
    end_date: date
    reason: str
    status: LeaveStatus
    required_approvals: int
    working_days: int
    debited_days: Decimal
    processed_by: Optional[uuid.UUID] = None
    processed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    leave_type: Optional[LeaveTypeBrief] = None


# ═════════════════════════════════════════════════════════════════════
# Approval history
# ═════════════════════════════════════════════════════════════════════


class ApprovalRecordOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    leave_request_id: uuid.UUID
    approver_id: uuid.UUID
    action: ApprovalAction
    comments: Optional[str] = None
    created_at: datetime
