"""Pytest fixtures for timesheet engine tests."""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Any, AsyncGenerator
from uuid import UUID

import pytest
import pytest_asyncio
from sqlalchemy import event, select
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from timesheet_engine.models import (
    Base,
    ManagerEmployee,
    Organisation,
    Project,
    ProjectEmployee,
    ProjectManager,
    TimeEntry,
    Timesheet,
    User,
    UserRole,
    UserStatus,
)
from timesheet_engine.services.scope import Actor
from timesheet_engine.services.totals import entry_total, timesheet_totals
from timesheet_engine.utils.dates import utcnow, week_end

# Use in-memory SQLite for tests (with async support)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


def enable_sqlite_savepoints(engine: AsyncEngine, begin: str = "BEGIN") -> None:
    """Let SQLAlchemy, not the driver, emit BEGIN so SAVEPOINT works on SQLite."""

    @event.listens_for(engine.sync_engine, "connect")
    def _connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _begin(conn):
        conn.exec_driver_sql(begin)


@pytest_asyncio.fixture
async def engine() -> AsyncGenerator[AsyncEngine, None]:
    """Fresh in-memory database per test."""
    engine = create_async_engine(TEST_DATABASE_URL, echo=False, poolclass=StaticPool)
    enable_sqlite_savepoints(engine)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def session(engine: AsyncEngine) -> AsyncGenerator[AsyncSession, None]:
    """Create a database session for each test."""
    session_factory = async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )

    async with session_factory() as session:
        yield session
        await session.rollback()


@dataclass
class World:
    """A small organisation plus a foreign one for tenant-isolation checks.

    manager manages alice and bob; carol has no manager. alice and bob are
    assigned to ``web``; nobody is assigned to ``internal``.
    """

    org: Organisation
    admin: User
    manager: User
    alice: User
    bob: User
    carol: User
    web: Project
    internal: Project
    leave: Project
    other_org: Organisation
    outsider: User
    other_project: Project

    def actor(self, user: User) -> Actor:
        return Actor(user_id=user.id, org_id=user.organisation_id, role=UserRole(user.role))


def _user(org: Organisation, name: str, role: UserRole) -> User:
    return User(
        organisation_id=org.id,
        name=name.title(),
        email=f"{name}@{org.name.lower()}.test",
        role=role.value,
        status=UserStatus.ACTIVE.value,
    )


@pytest_asyncio.fixture
async def world(session: AsyncSession) -> World:
    org = Organisation(name="Acme")
    other_org = Organisation(name="Globex")
    session.add_all([org, other_org])
    await session.flush()

    admin = _user(org, "admin", UserRole.ADMIN)
    manager = _user(org, "manager", UserRole.MANAGER)
    alice = _user(org, "alice", UserRole.EMPLOYEE)
    bob = _user(org, "bob", UserRole.EMPLOYEE)
    carol = _user(org, "carol", UserRole.EMPLOYEE)
    outsider = _user(other_org, "outsider", UserRole.MANAGER)
    session.add_all([admin, manager, alice, bob, carol, outsider])

    web = Project(
        organisation_id=org.id, code="WEB", name="Website", budget_hours=Decimal("100")
    )
    internal = Project(organisation_id=org.id, code="INT", name="Internal Tools")
    leave = Project(organisation_id=org.id, code="LEAVE", name="Annual Leave")
    other_project = Project(organisation_id=other_org.id, code="WEB", name="Globex Web")
    session.add_all([web, internal, leave, other_project])
    await session.flush()

    session.add_all(
        [
            ManagerEmployee(organisation_id=org.id, manager_id=manager.id, employee_id=alice.id),
            ManagerEmployee(organisation_id=org.id, manager_id=manager.id, employee_id=bob.id),
            ProjectManager(organisation_id=org.id, project_id=web.id, manager_id=manager.id),
            ProjectEmployee(organisation_id=org.id, project_id=web.id, employee_id=alice.id),
            ProjectEmployee(organisation_id=org.id, project_id=web.id, employee_id=bob.id),
            ProjectEmployee(organisation_id=org.id, project_id=leave.id, employee_id=alice.id),
        ]
    )
    await session.flush()

    return World(
        org=org,
        admin=admin,
        manager=manager,
        alice=alice,
        bob=bob,
        carol=carol,
        web=web,
        internal=internal,
        leave=leave,
        other_org=other_org,
        outsider=outsider,
        other_project=other_project,
    )


MakeTimesheet = Callable[..., Awaitable[Timesheet]]


@pytest.fixture
def make_timesheet(session: AsyncSession) -> MakeTimesheet:
    """Insert a timesheet in any status, bypassing workflow guards.

    ``entries`` is an iterable of ``(project, day_values)`` or
    ``(project, day_values, billable)`` tuples.
    """

    async def _make(
        owner: User,
        week_start: date,
        status: str = "DRAFT",
        entries: Iterable[tuple[Any, ...]] = (),
    ) -> Timesheet:
        timesheet = Timesheet(
            organisation_id=owner.organisation_id,
            user_id=owner.id,
            week_start_date=week_start,
            week_end_date=week_end(week_start),
            status=status,
            submitted_at=utcnow() if status != "DRAFT" else None,
        )
        session.add(timesheet)
        await session.flush()

        rows = []
        for spec in entries:
            project, values = spec[0], spec[1]
            billable = spec[2] if len(spec) > 2 else True
            rows.append(
                TimeEntry(
                    timesheet_id=timesheet.id,
                    project_id=project.id,
                    billable=billable,
                    total_hours=entry_total(values),
                    **values,
                )
            )
        session.add_all(rows)
        timesheet.total_hours, timesheet.billable_hours = timesheet_totals(rows)
        await session.flush()
        return timesheet

    return _make


async def entries_of(session: AsyncSession, timesheet_id: UUID) -> list[TimeEntry]:
    result = await session.execute(
        select(TimeEntry)
        .where(TimeEntry.timesheet_id == timesheet_id)
        .order_by(TimeEntry.created_at)
    )
    return list(result.scalars().all())


@pytest.fixture
def load_entries(session: AsyncSession) -> Callable[[UUID], Awaitable[list[TimeEntry]]]:
    async def _load(timesheet_id: UUID) -> list[TimeEntry]:
        return await entries_of(session, timesheet_id)

    return _load

