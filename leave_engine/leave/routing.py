"""Approval routing: eligibility, balance gate, initial status and decisions.

Everything here is pure apart from ``check_balance``, which reads the ledger.
Nothing here writes.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Optional

from leave_engine.common.constants import (
    ApprovalAction,
    DecisionAction,
    LeaveStatus,
    Role,
)
from leave_engine.common.exceptions import (
    ForbiddenException,
    StateError,
    ValidationException,
)
from leave_engine.common.identity import Principal
from leave_engine.leave.ledger import BalanceLedger
from leave_engine.leave.models import LeaveRequest, LeaveType
from leave_engine.leave.policy import LeavePolicy


@dataclass(frozen=True)
class InitialRoute:
    status: LeaveStatus
    required_approvals: int
    debit_now: bool = False


@dataclass(frozen=True)
class DecisionOutcome:
    new_status: LeaveStatus
    record_action: ApprovalAction
    debit: bool = False


# Statuses each approver role may act on
_ACTIONABLE: dict[Role, frozenset[LeaveStatus]] = {
    Role.manager: frozenset({LeaveStatus.pending}),
    Role.admin: frozenset({LeaveStatus.pending, LeaveStatus.awaiting_admin_approval}),
}


class ApprovalRouter:
    def __init__(self, policy: LeavePolicy) -> None:
        self.policy = policy

    # ── Submission ──────────────────────────────────────────────────

    def ensure_eligible(self, role: Role, leave_type: LeaveType) -> None:
        if not self.policy.may_apply(role, leave_type.name):
            raise ForbiddenException(
                f"Your role ({role.name}) is not eligible for {leave_type.name}."
            )

    async def check_balance(
        self,
        ledger: BalanceLedger,
        user_id: uuid.UUID,
        role: Role,
        leave_type: LeaveType,
        start: date,
        calendar_days: int,
    ) -> None:
        """Balance gate for balance-based types, compared in calendar days."""
        if not leave_type.is_balance_based:
            return
        if role is Role.intern:
            raise ForbiddenException(
                f"Interns cannot apply for balance-based leave ({leave_type.name})."
            )

        balance = await ledger.find(user_id, leave_type.id, start.year)
        if balance is None:
            raise ValidationException(
                {"leave_type_id": [
                    f"No {leave_type.name} balance found for {start.year}. "
                    "Please contact HR."
                ]}
            )

        available = balance.available_days
        if Decimal(calendar_days) > available:
            raise ValidationException(
                {"balance": [
                    f"Insufficient {leave_type.name} balance. "
                    f"Available: {available}, Requested: {calendar_days}."
                ]}
            )

    def initial_route(
        self,
        role: Role,
        leave_type: LeaveType,
        working_days: int,
    ) -> InitialRoute:
        if not leave_type.requires_approval:
            return InitialRoute(
                status=LeaveStatus.approved,
                required_approvals=0,
                debit_now=bool(leave_type.debit_on_auto_approve),
            )
        rule = self.policy.rule_for(role)
        return InitialRoute(
            status=LeaveStatus.pending,
            required_approvals=rule.required_approvals(working_days),
        )

    # ── Decision ────────────────────────────────────────────────────

    def route_decision(
        self,
        actor: Principal,
        leave: LeaveRequest,
        submitter_role: Role,
        submitter_manager_id: Optional[uuid.UUID],
        action: DecisionAction,
    ) -> DecisionOutcome:
        actionable = _ACTIONABLE.get(actor.role)
        if actionable is None:
            raise ForbiddenException("Only managers and admins can decide leave requests.")

        if leave.status not in actionable:
            raise StateError(
                "This leave request has already been processed.",
                current_status=leave.status.value,
            )

        if actor.role is Role.manager and submitter_manager_id != actor.user_id:
            raise ForbiddenException(
                "You can only decide leave requests of your direct reports."
            )

        if action is DecisionAction.reject:
            return DecisionOutcome(
                new_status=LeaveStatus.rejected,
                record_action=ApprovalAction.rejected,
            )

        if actor.role is Role.manager:
            rule = self.policy.rule_for(submitter_role)
            if rule.escalates(leave.working_days):
                return DecisionOutcome(
                    new_status=LeaveStatus.awaiting_admin_approval,
                    record_action=ApprovalAction.approved,
                )

        return DecisionOutcome(
            new_status=LeaveStatus.approved,
            record_action=ApprovalAction.approved,
            debit=self.policy.debits_on_decision(leave.leave_type),
        )
