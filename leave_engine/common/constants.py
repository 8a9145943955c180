"""Enums and constants for the leave engine — matching the database ENUM types."""

from __future__ import annotations

import enum
from decimal import Decimal


# ── Roles ───────────────────────────────────────────────────────────

class Role(enum.IntEnum):
    """User roles. Numeric values are the role ids used by upstream identity."""

    admin = 1
    employee = 2
    manager = 3
    intern = 4

    @classmethod
    def parse(cls, raw: str) -> "Role":
        """Accept either the numeric id (``"3"``) or the name (``"manager"``)."""
        value = raw.strip().lower()
        if value.isdigit():
            return cls(int(value))
        return cls[value]


# ── Leave ───────────────────────────────────────────────────────────

class LeaveStatus(str, enum.Enum):
    pending = "pending"
    awaiting_admin_approval = "awaiting_admin_approval"
    approved = "approved"
    rejected = "rejected"
    cancelled = "cancelled"


class ApprovalAction(str, enum.Enum):
    approved = "approved"
    rejected = "rejected"
    reviewed = "reviewed"


class DecisionAction(str, enum.Enum):
    """What an approver asks for on a leave request."""

    approve = "approve"
    reject = "reject"


class DebitGate(str, enum.Enum):
    """Leave-type flag consulted when an approval decides whether to debit."""

    requires_approval = "requires_approval"
    is_balance_based = "is_balance_based"


# Requests that block an overlapping submission.
ACTIVE_STATUSES: frozenset[LeaveStatus] = frozenset({
    LeaveStatus.pending,
    LeaveStatus.awaiting_admin_approval,
    LeaveStatus.approved,
})


# ── Role → initial balance allocation ───────────────────────────────
# Consumed by user provisioning (opening balances) and, by default, as the
# allow-list of leave types each role may apply for.

ROLE_INITIAL_BALANCES: dict[Role, list[tuple[str, Decimal]]] = {
    Role.employee: [
        ("Casual Leave", Decimal("15")),
        ("Sick Leave", Decimal("15")),
    ],
    Role.manager: [
        ("Casual Leave", Decimal("15")),
        ("Sick Leave", Decimal("15")),
    ],
    Role.intern: [
        ("Loss of Pay", Decimal("999999")),
    ],
}

# ── Misc constants ──────────────────────────────────────────────────

DAYS_QUANTUM = Decimal("0.01")
DEFAULT_ESCALATION_THRESHOLD_DAYS = 5
