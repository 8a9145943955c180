"""Common module — shared utilities for the leave engine."""

from leave_engine.common.constants import (
    ACTIVE_STATUSES,
    ROLE_INITIAL_BALANCES,
    ApprovalAction,
    DebitGate,
    DecisionAction,
    LeaveStatus,
    Role,
)
from leave_engine.common.exceptions import (
    AppException,
    ConflictError,
    DataIntegrityError,
    ForbiddenException,
    NotFoundException,
    PersistenceError,
    StateError,
    ValidationException,
    register_exception_handlers,
)
from leave_engine.common.identity import Principal
from leave_engine.common.unit_of_work import UnitOfWork

__all__ = [
    # Constants / Enums
    "ACTIVE_STATUSES",
    "ROLE_INITIAL_BALANCES",
    "ApprovalAction",
    "DebitGate",
    "DecisionAction",
    "LeaveStatus",
    "Role",
    # Exceptions
    "AppException",
    "ConflictError",
    "DataIntegrityError",
    "ForbiddenException",
    "NotFoundException",
    "PersistenceError",
    "StateError",
    "ValidationException",
    "register_exception_handlers",
    # Identity
    "Principal",
    # Transactions
    "UnitOfWork",
]
