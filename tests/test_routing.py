"""Policy tables and approval routing — pure logic with stand-in objects."""

from __future__ import annotations

import uuid
from decimal import Decimal
from types import SimpleNamespace
from typing import Optional

import pytest

from leave_engine.common.constants import (
    ApprovalAction,
    DebitGate,
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
from leave_engine.config import Settings
from leave_engine.leave.policy import EscalationRule, LeavePolicy
from leave_engine.leave.routing import ApprovalRouter
from tests.conftest import TODAY


def _leave_type(
    name: str = "Casual Leave",
    *,
    requires_approval: bool = True,
    is_balance_based: bool = True,
    debit_on_auto_approve: bool = False,
):
    return SimpleNamespace(
        id=uuid.uuid4(),
        name=name,
        requires_approval=requires_approval,
        is_balance_based=is_balance_based,
        debit_on_auto_approve=debit_on_auto_approve,
    )


def _leave(
    status: LeaveStatus = LeaveStatus.pending,
    working_days: int = 3,
    leave_type=None,
):
    return SimpleNamespace(
        status=status,
        working_days=working_days,
        leave_type=leave_type or _leave_type(),
    )


class _FakeLedger:
    def __init__(self, available: Optional[Decimal]):
        self.available = available
        self.calls: list[tuple] = []

    async def find(self, user_id, leave_type_id, year):
        self.calls.append((user_id, leave_type_id, year))
        if self.available is None:
            return None
        return SimpleNamespace(available_days=self.available)


MANAGER = Principal(user_id=uuid.uuid4(), role=Role.manager)
ADMIN = Principal(user_id=uuid.uuid4(), role=Role.admin)


# ═════════════════════════════════════════════════════════════════════
# POLICY
# ═════════════════════════════════════════════════════════════════════


class TestLeavePolicy:

    def test_allow_list_follows_initial_balances(self):
        policy = LeavePolicy()
        assert policy.may_apply(Role.employee, "Casual Leave")
        assert policy.may_apply(Role.manager, "Sick Leave")
        assert policy.may_apply(Role.intern, "Loss of Pay")
        assert not policy.may_apply(Role.intern, "Casual Leave")
        assert not policy.may_apply(Role.employee, "Loss of Pay")

    def test_admin_has_no_applicable_types(self):
        assert LeavePolicy().allowed_leave_types[Role.admin] == frozenset()

    def test_escalation_rule_defaults(self):
        rule = EscalationRule()
        assert rule.required_approvals(5) == 1
        assert rule.required_approvals(6) == 2
        assert not rule.escalates(5)
        assert rule.escalates(6)

    def test_managers_do_not_escalate(self):
        rule = LeavePolicy().rule_for(Role.manager)
        assert rule.required_approvals(10) == 2
        assert not rule.escalates(10)

    def test_from_settings(self):
        policy = LeavePolicy.from_settings(
            Settings(ESCALATION_THRESHOLD_DAYS=3, DECISION_DEBIT_GATE="is_balance_based")
        )
        assert policy.decision_debit_gate is DebitGate.is_balance_based
        assert policy.rule_for(Role.employee).escalates(4)
        assert not policy.rule_for(Role.employee).escalates(3)

    def test_debit_gate_requires_approval(self):
        policy = LeavePolicy()
        assert policy.debits_on_decision(_leave_type(is_balance_based=False))
        assert not policy.debits_on_decision(
            _leave_type(requires_approval=False, is_balance_based=True)
        )

    def test_debit_gate_is_balance_based(self):
        policy = LeavePolicy(decision_debit_gate=DebitGate.is_balance_based)
        assert not policy.debits_on_decision(_leave_type(is_balance_based=False))
        assert policy.debits_on_decision(
            _leave_type(requires_approval=False, is_balance_based=True)
        )


# ═════════════════════════════════════════════════════════════════════
# SUBMISSION ROUTING
# ═════════════════════════════════════════════════════════════════════


class TestSubmissionRouting:

    def setup_method(self):
        self.router = ApprovalRouter(LeavePolicy())

    def test_role_not_on_allow_list_forbidden(self):
        with pytest.raises(ForbiddenException):
            self.router.ensure_eligible(Role.intern, _leave_type("Casual Leave"))

    def test_admin_cannot_apply(self):
        with pytest.raises(ForbiddenException):
            self.router.ensure_eligible(Role.admin, _leave_type("Casual Leave"))

    def test_eligible_role_passes(self):
        self.router.ensure_eligible(Role.employee, _leave_type("Sick Leave"))

    async def test_balance_equal_to_request_passes(self):
        ledger = _FakeLedger(Decimal("5"))
        await self.router.check_balance(
            ledger, uuid.uuid4(), Role.employee, _leave_type(), TODAY, 5
        )
        assert ledger.calls[0][2] == TODAY.year

    async def test_balance_short_by_one_rejected(self):
        with pytest.raises(ValidationException) as exc_info:
            await self.router.check_balance(
                _FakeLedger(Decimal("4")), uuid.uuid4(), Role.employee, _leave_type(), TODAY, 5
            )
        assert "balance" in exc_info.value.errors

    async def test_missing_balance_asks_to_contact_hr(self):
        with pytest.raises(ValidationException) as exc_info:
            await self.router.check_balance(
                _FakeLedger(None), uuid.uuid4(), Role.employee, _leave_type(), TODAY, 1
            )
        assert "contact HR" in exc_info.value.errors["leave_type_id"][0]

    async def test_intern_barred_from_balance_based_types(self):
        ledger = _FakeLedger(Decimal("100"))
        with pytest.raises(ForbiddenException):
            await self.router.check_balance(
                ledger, uuid.uuid4(), Role.intern, _leave_type(), TODAY, 1
            )
        assert ledger.calls == []

    async def test_non_balance_types_skip_the_ledger(self):
        ledger = _FakeLedger(None)
        await self.router.check_balance(
            ledger, uuid.uuid4(), Role.intern, _leave_type(is_balance_based=False), TODAY, 30
        )
        assert ledger.calls == []

    def test_auto_approval_route(self):
        route = self.router.initial_route(
            Role.employee, _leave_type(requires_approval=False), 3
        )
        assert route.status is LeaveStatus.approved
        assert route.required_approvals == 0
        assert route.debit_now is False

    def test_auto_approval_with_debit_flag(self):
        route = self.router.initial_route(
            Role.employee,
            _leave_type(requires_approval=False, debit_on_auto_approve=True),
            3,
        )
        assert route.debit_now is True

    @pytest.mark.parametrize("working_days, expected", [(1, 1), (5, 1), (6, 2), (12, 2)])
    def test_required_approvals_by_duration(self, working_days, expected):
        route = self.router.initial_route(Role.employee, _leave_type(), working_days)
        assert route.status is LeaveStatus.pending
        assert route.required_approvals == expected


# ═════════════════════════════════════════════════════════════════════
# DECISION ROUTING
# ═════════════════════════════════════════════════════════════════════


class TestDecisionRouting:

    def setup_method(self):
        self.router = ApprovalRouter(LeavePolicy())

    def test_manager_reject(self):
        outcome = self.router.route_decision(
            MANAGER, _leave(), Role.employee, MANAGER.user_id, DecisionAction.reject
        )
        assert outcome.new_status is LeaveStatus.rejected
        assert outcome.record_action is ApprovalAction.rejected
        assert outcome.debit is False

    def test_manager_approve_short_request(self):
        outcome = self.router.route_decision(
            MANAGER, _leave(working_days=5), Role.employee, MANAGER.user_id, DecisionAction.approve
        )
        assert outcome.new_status is LeaveStatus.approved
        assert outcome.record_action is ApprovalAction.approved
        assert outcome.debit is True

    @pytest.mark.parametrize("submitter_role", [Role.employee, Role.intern])
    def test_manager_approve_long_request_escalates(self, submitter_role):
        outcome = self.router.route_decision(
            MANAGER, _leave(working_days=6), submitter_role, MANAGER.user_id, DecisionAction.approve
        )
        assert outcome.new_status is LeaveStatus.awaiting_admin_approval
        assert outcome.record_action is ApprovalAction.approved
        assert outcome.debit is False

    def test_manager_not_the_submitters_manager(self):
        with pytest.raises(ForbiddenException):
            self.router.route_decision(
                MANAGER, _leave(), Role.employee, uuid.uuid4(), DecisionAction.approve
            )

    def test_manager_cannot_act_on_escalated_request(self):
        with pytest.raises(StateError):
            self.router.route_decision(
                MANAGER,
                _leave(status=LeaveStatus.awaiting_admin_approval),
                Role.employee,
                MANAGER.user_id,
                DecisionAction.approve,
            )

    @pytest.mark.parametrize("status", [LeaveStatus.pending, LeaveStatus.awaiting_admin_approval])
    def test_admin_approves_without_manager_link(self, status):
        outcome = self.router.route_decision(
            ADMIN, _leave(status=status, working_days=9), Role.employee, None, DecisionAction.approve
        )
        assert outcome.new_status is LeaveStatus.approved
        assert outcome.debit is True

    def test_admin_reject(self):
        outcome = self.router.route_decision(
            ADMIN, _leave(), Role.manager, None, DecisionAction.reject
        )
        assert outcome.new_status is LeaveStatus.rejected

    @pytest.mark.parametrize(
        "status",
        [LeaveStatus.approved, LeaveStatus.rejected, LeaveStatus.cancelled],
    )
    def test_processed_requests_are_not_actionable(self, status):
        with pytest.raises(StateError) as exc_info:
            self.router.route_decision(
                ADMIN, _leave(status=status), Role.employee, None, DecisionAction.approve
            )
        assert "already been processed" in exc_info.value.detail

    @pytest.mark.parametrize("role", [Role.employee, Role.intern])
    def test_non_approver_roles_forbidden(self, role):
        actor = Principal(user_id=uuid.uuid4(), role=role)
        with pytest.raises(ForbiddenException):
            self.router.route_decision(
                actor, _leave(), Role.employee, actor.user_id, DecisionAction.approve
            )

    def test_approval_of_auto_type_respects_debit_gate(self):
        leave = _leave(leave_type=_leave_type(requires_approval=True, is_balance_based=False))
        outcome = ApprovalRouter(
            LeavePolicy(decision_debit_gate=DebitGate.is_balance_based)
        ).route_decision(ADMIN, leave, Role.employee, None, DecisionAction.approve)
        assert outcome.debit is False
