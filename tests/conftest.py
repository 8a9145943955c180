"""Shared test fixtures — per-test SQLite database, lifecycle, client, seed helpers.

Each test gets its own SQLite file so separate sessions see each other's
commits, which the concurrency and rollback tests depend on.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import AsyncGenerator, Optional

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from leave_engine.common.constants import Role
from leave_engine.common.identity import Principal
from leave_engine.config import Settings
from leave_engine.database import create_schema, create_session_factory
from leave_engine.leave.lifecycle import LeaveLifecycle
from leave_engine.leave.models import ApprovalRecord, LeaveBalance, LeaveRequest, LeaveType
from leave_engine.leave.policy import LeavePolicy
from leave_engine.main import create_app
from leave_engine.users.models import User

# Engine clock for tests: Monday 2 March 2026
TODAY = date(2026, 3, 2)
YEAR = TODAY.year


def fixed_clock() -> date:
    return TODAY


# ── Database ────────────────────────────────────────────────────────

@pytest.fixture
async def engine(tmp_path):
    test_engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'leave.db'}",
        echo=False,
        poolclass=NullPool,
    )
    await create_schema(test_engine)
    yield test_engine
    await test_engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker[AsyncSession]:
    return create_session_factory(engine)


@pytest.fixture
async def db(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Session for seeding and inspection; seed helpers commit explicitly."""
    async with session_factory() as session:
        yield session
        await session.commit()


@pytest.fixture
def lifecycle(session_factory) -> LeaveLifecycle:
    return LeaveLifecycle(session_factory, LeavePolicy(), clock=fixed_clock)


# ── FastAPI test client ─────────────────────────────────────────────

@pytest.fixture
async def app(session_factory):
    application = create_app(
        session_factory=session_factory,
        settings=Settings(ENVIRONMENT="test", LOG_LEVEL="warning"),
    )
    application.state.lifecycle = LeaveLifecycle(
        session_factory, LeavePolicy(), clock=fixed_clock
    )
    yield application


@pytest.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client wired to the test app."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


def identity_headers(user: User) -> dict[str, str]:
    return {"X-User-Id": str(user.id), "X-User-Role": user.role.name}


# ── Seed helpers ────────────────────────────────────────────────────

async def _seed_user(
    db: AsyncSession,
    *,
    role: Role = Role.employee,
    manager_id: Optional[uuid.UUID] = None,
    name: Optional[str] = None,
    is_active: bool = True,
) -> User:
    user_id = uuid.uuid4()
    user = User(
        id=user_id,
        name=name or f"{role.name.title()} {user_id.hex[:4]}",
        email=f"{role.name}.{user_id.hex[:8]}@example.com",
        role=role,
        manager_id=manager_id,
        is_active=is_active,
    )
    db.add(user)
    await db.flush()
    return user


async def _seed_leave_type(
    db: AsyncSession,
    *,
    name: str = "Casual Leave",
    requires_approval: bool = True,
    is_balance_based: bool = True,
    debit_on_auto_approve: bool = False,
    is_active: bool = True,
) -> LeaveType:
    lt = LeaveType(
        id=uuid.uuid4(),
        name=name,
        requires_approval=requires_approval,
        is_balance_based=is_balance_based,
        debit_on_auto_approve=debit_on_auto_approve,
        is_active=is_active,
    )
    db.add(lt)
    await db.flush()
    return lt


async def _seed_balance(
    db: AsyncSession,
    user_id: uuid.UUID,
    leave_type_id: uuid.UUID,
    *,
    year: int = YEAR,
    total_days: Decimal = Decimal("15"),
    used_days: Decimal = Decimal("0"),
) -> LeaveBalance:
    bal = LeaveBalance(
        id=uuid.uuid4(),
        user_id=user_id,
        leave_type_id=leave_type_id,
        year=year,
        total_days=total_days,
        used_days=used_days,
    )
    db.add(bal)
    await db.flush()
    return bal


async def _read_balance(
    session_factory: async_sessionmaker[AsyncSession],
    user_id: uuid.UUID,
    leave_type_id: uuid.UUID,
    year: int = YEAR,
) -> LeaveBalance:
    """Fresh read of a balance row, outside any engine transaction."""
    async with session_factory() as session:
        result = await session.execute(
            select(LeaveBalance).where(
                LeaveBalance.user_id == user_id,
                LeaveBalance.leave_type_id == leave_type_id,
                LeaveBalance.year == year,
            )
        )
        return result.scalars().one()


async def _read_request(
    session_factory: async_sessionmaker[AsyncSession],
    leave_id: uuid.UUID,
) -> LeaveRequest:
    async with session_factory() as session:
        return await session.get(LeaveRequest, leave_id)


async def _read_approvals(
    session_factory: async_sessionmaker[AsyncSession],
    leave_id: uuid.UUID,
) -> list[ApprovalRecord]:
    async with session_factory() as session:
        result = await session.execute(
            select(ApprovalRecord)
            .where(ApprovalRecord.leave_request_id == leave_id)
            .order_by(ApprovalRecord.created_at)
        )
        return list(result.scalars().all())


# ── Standard organisation ───────────────────────────────────────────

@dataclass
class Team:
    admin: User
    manager: User
    other_manager: User
    employee: User
    intern: User
    casual: LeaveType
    sick: LeaveType
    loss_of_pay: LeaveType

    @staticmethod
    def principal(user: User) -> Principal:
        return Principal(user_id=user.id, role=user.role)


@pytest.fixture
async def team(db) -> Team:
    """Admin, two managers, an employee and an intern reporting to ``manager``.

    Balances: employee has 15 casual and 15 sick days, the manager has 15
    casual days, the intern has the open-ended loss-of-pay allocation.
    """
    admin = await _seed_user(db, role=Role.admin, name="Ada Admin")
    manager = await _seed_user(db, role=Role.manager, name="Max Manager")
    other_manager = await _seed_user(db, role=Role.manager, name="Olive Other")
    employee = await _seed_user(db, role=Role.employee, manager_id=manager.id, name="Eve Employee")
    intern = await _seed_user(db, role=Role.intern, manager_id=manager.id, name="Ian Intern")

    casual = await _seed_leave_type(db, name="Casual Leave")
    sick = await _seed_leave_type(db, name="Sick Leave")
    loss_of_pay = await _seed_leave_type(db, name="Loss of Pay", is_balance_based=False)

    await _seed_balance(db, employee.id, casual.id)
    await _seed_balance(db, employee.id, sick.id)
    await _seed_balance(db, manager.id, casual.id)
    await _seed_balance(db, intern.id, loss_of_pay.id, total_days=Decimal("999999"))

    await db.commit()
    return Team(
        admin=admin,
        manager=manager,
        other_manager=other_manager,
        employee=employee,
        intern=intern,
        casual=casual,
        sick=sick,
        loss_of_pay=loss_of_pay,
    )
