"""Leave lifecycle — submit, decide, cancel, and the read views around them.

State machine:

    pending ──approve──▶ approved ──cancel (owner, before start)──▶ cancelled
       │  └─approve (long, escalating role)─▶ awaiting_admin_approval
       │                                        ├─approve (admin)─▶ approved
       │                                        └─reject (admin)──▶ rejected
       ├─reject──▶ rejected
       └─cancel (owner)──▶ cancelled

Every public mutation runs in one ``UnitOfWork``: the status write, the
ledger mutation and the approval record commit together or not at all.
Status writes are conditional on the status that was read, so a competing
decision that commits first turns the later one into a ``StateError``.
"""

from __future__ import annotations

import logging
import uuid
from datetime import date
from decimal import Decimal
from typing import Callable, Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from leave_engine.common.constants import DecisionAction, LeaveStatus, Role
from leave_engine.common.exceptions import (
    ForbiddenException,
    NotFoundException,
    StateError,
    ValidationException,
)
from leave_engine.common.identity import Principal
from leave_engine.common.unit_of_work import UnitOfWork
from leave_engine.database import utcnow
from leave_engine.leave.calendar import count_calendar_days, count_working_days
from leave_engine.leave.ledger import BalanceLedger, quantize_days
from leave_engine.leave.models import LeaveRequest
from leave_engine.leave.overlap import ensure_no_conflict
from leave_engine.leave.policy import LeavePolicy
from leave_engine.leave.recorder import ApprovalRecorder
from leave_engine.leave.repository import LeaveRepository
from leave_engine.leave.routing import ApprovalRouter
from leave_engine.leave.schemas import (
    ApprovalRecordOut,
    LeaveBalanceOut,
    LeaveRequestOut,
    LeaveSubmitOut,
    LeaveTransitionOut,
    LeaveTypeOut,
    TeamMemberBalancesOut,
)
from leave_engine.users.directory import UserDirectory

logger = logging.getLogger(__name__)

ZERO_DAYS = Decimal("0")


class LeaveLifecycle:
    """Orchestrates leave requests through their states."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        policy: Optional[LeavePolicy] = None,
        clock: Optional[Callable[[], date]] = None,
    ) -> None:
        self._session_factory = session_factory
        self.policy = policy or LeavePolicy()
        self.router = ApprovalRouter(self.policy)
        self._today = clock or date.today

    def _unit_of_work(self) -> UnitOfWork:
        return UnitOfWork(self._session_factory)

    # ─────────────────────────────────────────────────────────────────
    # Submit
    # ─────────────────────────────────────────────────────────────────

    def _validate_submission(self, start_date: date, end_date: date, reason: str) -> None:
        today = self._today()
        errors: dict[str, list[str]] = {}

        if not reason or not reason.strip():
            errors.setdefault("reason", []).append("Reason is required.")
        if start_date < today:
            errors.setdefault("start_date", []).append("Start date cannot be in the past.")
        if start_date.year < today.year:
            errors.setdefault("start_date", []).append(
                "Start date must be in the current year or later."
            )
        if start_date > end_date:
            errors.setdefault("end_date", []).append(
                "End date must be on or after the start date."
            )
        if end_date.year > start_date.year + 1:
            errors.setdefault("end_date", []).append(
                "End date cannot be more than one year after the start year."
            )

        if errors:
            raise ValidationException(errors)

    async def submit(
        self,
        principal: Principal,
        leave_type_id: uuid.UUID,
        start_date: date,
        end_date: date,
        reason: str,
    ) -> LeaveSubmitOut:
        """Apply for leave. Returns the new request id, status and approvals needed."""

        self._validate_submission(start_date, end_date, reason)
        working_days = count_working_days(start_date, end_date)
        if working_days == 0:
            raise ValidationException(
                {"end_date": ["The selected range contains no working days."]}
            )
        calendar_days = count_calendar_days(start_date, end_date)

        async with self._unit_of_work() as uow:
            repo = LeaveRepository(uow.session)
            ledger = BalanceLedger(uow.session)

            # ── Load submitter (locked) and leave type ──────────────
            # The lock orders concurrent submissions by one user, so each
            # overlap read below sees the others once they commit.
            await UserDirectory(uow.session).get_active(principal.user_id, for_update=True)
            leave_type = await repo.get_leave_type(leave_type_id)

            # ── Overlap ─────────────────────────────────────────────
            active = await repo.active_requests_for(principal.user_id)
            ensure_no_conflict(start_date, end_date, active)

            # ── Eligibility and balance ─────────────────────────────
            self.router.ensure_eligible(principal.role, leave_type)
            await self.router.check_balance(
                ledger,
                principal.user_id,
                principal.role,
                leave_type,
                start_date,
                calendar_days,
            )

            # ── Route and persist ───────────────────────────────────
            route = self.router.initial_route(principal.role, leave_type, working_days)
            leave = LeaveRequest(
                user_id=principal.user_id,
                leave_type_id=leave_type.id,
                start_date=start_date,
                end_date=end_date,
                reason=reason.strip(),
                status=route.status,
                required_approvals=route.required_approvals,
                working_days=working_days,
                debited_days=ZERO_DAYS,
                processed_at=utcnow() if route.status is LeaveStatus.approved else None,
            )
            if route.debit_now:
                leave.debited_days = await ledger.debit(
                    principal.user_id, leave_type.id, start_date.year, working_days
                )
            await repo.add(leave)

            logger.info(
                "Leave %s submitted by %s: %s, %s working days, %s approval(s)",
                leave.id, principal.user_id, route.status.value,
                working_days, route.required_approvals,
            )
            return LeaveSubmitOut(
                leave_id=leave.id,
                status=leave.status,
                required_approvals=leave.required_approvals,
            )

    # ─────────────────────────────────────────────────────────────────
    # Decide
    # ─────────────────────────────────────────────────────────────────

    async def decide(
        self,
        leave_id: uuid.UUID,
        principal: Principal,
        action: DecisionAction,
        comments: Optional[str] = None,
    ) -> LeaveTransitionOut:
        """Approve or reject a request as a manager or admin.

        The approver must be an active user; an unknown or inactive one raises
        ``NotFoundException`` before the request is touched.
        """

        async with self._unit_of_work() as uow:
            directory = UserDirectory(uow.session)
            await directory.get_active(principal.user_id)

            repo = LeaveRepository(uow.session)
            leave = await repo.get_request(leave_id, for_update=True)
            submitter = await directory.find(leave.user_id)
            if submitter is None:
                raise NotFoundException("User", leave.user_id)

            try:
                outcome = self.router.route_decision(
                    principal, leave, submitter.role, submitter.manager_id, action
                )
            except (ForbiddenException, StateError) as exc:
                logger.warning(
                    "Decision on leave %s by %s refused: %s",
                    leave.id, principal.user_id, exc.detail,
                )
                raise

            previous = leave.status
            debit_amount = ZERO_DAYS
            if outcome.debit and leave.working_days > 0:
                debit_amount = quantize_days(leave.working_days)

            await repo.transition(
                leave,
                previous,
                outcome.new_status,
                processed_by=principal.user_id,
                processed_at=utcnow(),
                debited_days=LeaveRequest.debited_days + debit_amount,
            )
            if debit_amount > 0:
                await BalanceLedger(uow.session).debit(
                    leave.user_id, leave.leave_type_id, leave.start_date.year, debit_amount
                )
            await ApprovalRecorder(uow.session).append(
                leave.id, principal.user_id, outcome.record_action, comments
            )

            logger.info(
                "Leave %s %s -> %s by %s (%s), debited %s",
                leave.id, previous.value, outcome.new_status.value,
                principal.user_id, principal.role.name, debit_amount,
            )
            return LeaveTransitionOut(leave_id=leave.id, new_status=leave.status)

    # ─────────────────────────────────────────────────────────────────
    # Cancel
    # ─────────────────────────────────────────────────────────────────

    async def cancel(self, leave_id: uuid.UUID, principal: Principal) -> LeaveTransitionOut:
        """Cancel own request; credits back whatever the request had debited."""

        async with self._unit_of_work() as uow:
            repo = LeaveRepository(uow.session)
            leave = await repo.get_request(leave_id, for_update=True)

            if leave.user_id != principal.user_id:
                logger.warning(
                    "User %s tried to cancel leave %s owned by %s",
                    principal.user_id, leave.id, leave.user_id,
                )
                raise ForbiddenException("You can only cancel your own leave requests.")

            previous = leave.status
            before_start = self._today() < leave.start_date
            if not (
                previous is LeaveStatus.pending
                or (previous is LeaveStatus.approved and before_start)
            ):
                if previous is LeaveStatus.approved:
                    detail = "Approved leave can only be cancelled before its start date."
                else:
                    detail = f"Cannot cancel a leave request with status '{previous.value}'."
                raise StateError(detail, current_status=previous.value)

            credit_amount = quantize_days(leave.debited_days)
            await repo.transition(
                leave,
                previous,
                LeaveStatus.cancelled,
                cancelled_at=utcnow(),
                debited_days=ZERO_DAYS,
            )
            if credit_amount > 0:
                await BalanceLedger(uow.session).credit(
                    leave.user_id, leave.leave_type_id, leave.start_date.year, credit_amount
                )

            logger.info(
                "Leave %s cancelled by owner (was %s), credited %s",
                leave.id, previous.value, credit_amount,
            )
            return LeaveTransitionOut(leave_id=leave.id, new_status=leave.status)

    # ─────────────────────────────────────────────────────────────────
    # Read views
    # ─────────────────────────────────────────────────────────────────

    async def list_applicable_leave_types(self, principal: Principal) -> list[LeaveTypeOut]:
        names = self.policy.allowed_leave_types.get(principal.role, frozenset())
        async with self._unit_of_work() as uow:
            types = await LeaveRepository(uow.session).list_leave_types(names)
            return [LeaveTypeOut.model_validate(t) for t in types]

    async def get_balances(
        self,
        user_id: uuid.UUID,
        year: Optional[int] = None,
    ) -> list[LeaveBalanceOut]:
        target_year = year if year is not None else self._today().year
        async with self._unit_of_work() as uow:
            balances = await BalanceLedger(uow.session).list_for_user(user_id, target_year)
            return [LeaveBalanceOut.model_validate(b) for b in balances]

    async def list_team_balances(
        self,
        principal: Principal,
        year: Optional[int] = None,
    ) -> list[TeamMemberBalancesOut]:
        """Balances of a manager's direct reports for one year."""
        if principal.role is not Role.manager:
            raise ForbiddenException("Only managers can view team balances.")
        target_year = year if year is not None else self._today().year
        async with self._unit_of_work() as uow:
            ledger = BalanceLedger(uow.session)
            reports = await UserDirectory(uow.session).direct_reports(principal.user_id)
            team = []
            for member in reports:
                balances = await ledger.list_for_user(member.id, target_year)
                team.append(
                    TeamMemberBalancesOut(
                        user_id=member.id,
                        name=member.name,
                        email=member.email,
                        role=member.role.name,
                        balances=[LeaveBalanceOut.model_validate(b) for b in balances],
                    )
                )
            return team

    async def list_my_requests(self, user_id: uuid.UUID) -> list[LeaveRequestOut]:
        async with self._unit_of_work() as uow:
            requests = await LeaveRepository(uow.session).list_for_user(user_id)
            return [LeaveRequestOut.model_validate(r) for r in requests]

    async def list_pending_approvals(self, principal: Principal) -> list[LeaveRequestOut]:
        """Manager: pending requests of direct reports. Admin: escalations and managers' requests."""
        async with self._unit_of_work() as uow:
            repo = LeaveRepository(uow.session)
            if principal.role is Role.admin:
                requests = await repo.pending_for_admin()
            elif principal.role is Role.manager:
                requests = await repo.pending_for_manager(principal.user_id)
            else:
                raise ForbiddenException("Only managers and admins have approval queues.")
            return [LeaveRequestOut.model_validate(r) for r in requests]

    async def list_approval_history(self, principal: Principal) -> list[ApprovalRecordOut]:
        async with self._unit_of_work() as uow:
            repo = LeaveRepository(uow.session)
            if principal.role is Role.admin:
                records = await repo.approval_history()
            elif principal.role is Role.manager:
                records = await repo.approval_history(approver_id=principal.user_id)
            else:
                raise ForbiddenException("Only managers and admins have an approval history.")
            return [ApprovalRecordOut.model_validate(r) for r in records]
