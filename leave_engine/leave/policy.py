"""Leave policy tables: who may apply for what, and how requests escalate."""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Mapping, Optional

from leave_engine.common.constants import (
    DEFAULT_ESCALATION_THRESHOLD_DAYS,
    ROLE_INITIAL_BALANCES,
    DebitGate,
    Role,
)
from leave_engine.config import Settings


@dataclass(frozen=True)
class EscalationRule:
    """Routing for one submitter role.

    Requests longer than ``threshold_days`` working days need
    ``required_over`` approvals (else ``required_within``). When
    ``escalates_over`` is set, a manager approval on such a request hands it to
    an admin instead of approving it.
    """

    threshold_days: int = DEFAULT_ESCALATION_THRESHOLD_DAYS
    required_over: int = 2
    required_within: int = 1
    escalates_over: bool = True

    def is_long(self, working_days: int) -> bool:
        return working_days > self.threshold_days

    def required_approvals(self, working_days: int) -> int:
        return self.required_over if self.is_long(working_days) else self.required_within

    def escalates(self, working_days: int) -> bool:
        return self.escalates_over and self.is_long(working_days)


def allowed_types_from_balances(
    table: Mapping[Role, list[tuple[str, Decimal]]],
) -> dict[Role, frozenset[str]]:
    """Role allow-list derived from the initial balance table."""
    allowed = {role: frozenset() for role in Role}
    for role, entries in table.items():
        allowed[role] = frozenset(name for name, _ in entries)
    return allowed


def default_escalation_rules(threshold_days: int) -> dict[Role, EscalationRule]:
    return {
        Role.employee: EscalationRule(threshold_days=threshold_days, escalates_over=True),
        Role.intern: EscalationRule(threshold_days=threshold_days, escalates_over=True),
        Role.manager: EscalationRule(threshold_days=threshold_days, escalates_over=False),
        Role.admin: EscalationRule(threshold_days=threshold_days, escalates_over=False),
    }


@dataclass(frozen=True)
class LeavePolicy:
    allowed_leave_types: Mapping[Role, frozenset[str]] = field(
        default_factory=lambda: allowed_types_from_balances(ROLE_INITIAL_BALANCES)
    )
    escalation: Mapping[Role, EscalationRule] = field(
        default_factory=lambda: default_escalation_rules(DEFAULT_ESCALATION_THRESHOLD_DAYS)
    )
    decision_debit_gate: DebitGate = DebitGate.requires_approval

    @classmethod
    def from_settings(cls, settings: Settings) -> "LeavePolicy":
        return cls(
            escalation=default_escalation_rules(settings.ESCALATION_THRESHOLD_DAYS),
            decision_debit_gate=DebitGate(settings.DECISION_DEBIT_GATE),
        )

    def may_apply(self, role: Role, leave_type_name: str) -> bool:
        return leave_type_name in self.allowed_leave_types.get(role, frozenset())

    def rule_for(self, role: Role) -> EscalationRule:
        rule: Optional[EscalationRule] = self.escalation.get(role)
        return rule if rule is not None else EscalationRule()

    def debits_on_decision(self, leave_type) -> bool:
        """Whether approving a request of ``leave_type`` debits the ledger."""
        if self.decision_debit_gate is DebitGate.is_balance_based:
            return bool(leave_type.is_balance_based)
        return bool(leave_type.requires_approval)
