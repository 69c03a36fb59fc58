from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import date
from typing import TYPE_CHECKING, Any

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from leaveflow.db import get_session
from leaveflow.main import app
from leaveflow.models import LeaveBalance, LeaveType, SQLModel, UserRole
from leaveflow.services import directory, documents, notifications
from leaveflow.services.directory import InMemoryUserDirectory, UserInfo
from leaveflow.services.documents import InMemoryDocumentPipeline
from leaveflow.services.ledger import BalanceKey
from leaveflow.services.notifications import InMemoryNotificationSink

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Iterator

    from sqlalchemy.ext.asyncio import AsyncEngine


@pytest.fixture
async def engine() -> AsyncIterator[AsyncEngine]:
    """In-memory SQLite database, created fresh for every test."""
    _engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    # Let SQLAlchemy, not the driver, emit BEGIN so SAVEPOINTs behave.
    @event.listens_for(_engine.sync_engine, "connect")
    def _on_connect(dbapi_connection: Any, _record: Any) -> None:
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(_engine.sync_engine, "begin")
    def _on_begin(conn: Any) -> None:
        conn.exec_driver_sql("BEGIN")

    async with _engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield _engine
    await _engine.dispose()


@pytest.fixture
async def db_session(engine: AsyncEngine) -> AsyncIterator[AsyncSession]:
    factory = async_sessionmaker(engine, expire_on_commit=False)
    async with factory() as session:
        yield session


@pytest.fixture
async def async_client(db_session: AsyncSession) -> AsyncIterator[AsyncClient]:
    """Async HTTP client sharing the test's session; failed requests roll back."""

    async def _override_get_session() -> AsyncIterator[AsyncSession]:
        try:
            yield db_session
        except Exception:
            await db_session.rollback()
            raise

    app.dependency_overrides[get_session] = _override_get_session
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# Collaborator stubs
# ---------------------------------------------------------------------------


@dataclass
class Stubs:
    directory: InMemoryUserDirectory = field(default_factory=InMemoryUserDirectory)
    notifications: InMemoryNotificationSink = field(default_factory=InMemoryNotificationSink)
    documents: InMemoryDocumentPipeline = field(default_factory=InMemoryDocumentPipeline)


@pytest.fixture(autouse=True)
def stubs() -> Iterator[Stubs]:
    """Fresh in-memory directory, notification sink and document pipeline per test."""
    previous = (
        directory.get_user_directory(),
        notifications.get_notification_sink(),
        documents.get_document_pipeline(),
    )
    fresh = Stubs()
    directory.set_user_directory(fresh.directory)
    notifications.set_notification_sink(fresh.notifications)
    documents.set_document_pipeline(fresh.documents)
    yield fresh
    directory.set_user_directory(previous[0])
    notifications.set_notification_sink(previous[1])
    documents.set_document_pipeline(previous[2])


# ---------------------------------------------------------------------------
# Organisation
# ---------------------------------------------------------------------------


@dataclass
class Org:
    """A small company: one reporting line plus executives, HR and an admin."""

    company_id: uuid.UUID
    employee: UserInfo
    manager: UserInfo
    director: UserInfo
    executive: UserInfo
    peer_executive: UserInfo
    hr: UserInfo
    admin: UserInfo

    def headers(self, user: UserInfo) -> dict[str, str]:
        return {
            "X-Company-Id": str(self.company_id),
            "X-User-Id": str(user.id),
            "X-Role": user.role.value,
        }

    def url(self, path: str) -> str:
        return f"/companies/{self.company_id}{path}"


def _user(company_id: uuid.UUID, name: str, role: UserRole, **kwargs: Any) -> UserInfo:
    return UserInfo(
        id=uuid.uuid4(),
        company_id=company_id,
        name=name,
        email=f"{name.lower().replace(' ', '.')}@example.com",
        role=role,
        department=kwargs.pop("department", "Engineering"),
        **kwargs,
    )


@pytest.fixture
def org(stubs: Stubs) -> Org:
    company_id = uuid.uuid4()
    executive = _user(company_id, "Erin Exec", UserRole.EXECUTIVE, department="Board")
    peer_executive = _user(company_id, "Pat Peer", UserRole.EXECUTIVE, department="Board")
    director = _user(company_id, "Dana Director", UserRole.DEPARTMENT_DIRECTOR)
    manager = _user(company_id, "Morgan Manager", UserRole.MANAGER, director_id=director.id)
    employee = _user(company_id, "Eli Employee", UserRole.EMPLOYEE, manager_id=manager.id, director_id=director.id)
    hr = _user(company_id, "Harper HR", UserRole.HR, department="People", manager_id=director.id)
    admin = _user(company_id, "Ada Admin", UserRole.ADMIN, department="IT")

    for user in (executive, peer_executive, director, manager, employee, hr, admin):
        stubs.directory.seed(user)

    return Org(
        company_id=company_id,
        employee=employee,
        manager=manager,
        director=director,
        executive=executive,
        peer_executive=peer_executive,
        hr=hr,
        admin=admin,
    )


@pytest.fixture
async def annual_leave(db_session: AsyncSession, org: Org) -> uuid.UUID:
    """Annual leave type (30 days, up to 5 carried forward); returns its id."""
    leave_type = LeaveType(
        company_id=org.company_id,
        code="AL",
        name="Annual Leave",
        default_days=30,
        allow_carry_forward=True,
        max_carry_forward=5,
    )
    db_session.add(leave_type)
    await db_session.commit()
    return leave_type.id


async def seed_balance(
    session: AsyncSession,
    company_id: uuid.UUID,
    employee_id: uuid.UUID,
    leave_type_id: uuid.UUID,
    *,
    entitled: int = 30,
    year: int | None = None,
) -> uuid.UUID:
    balance = LeaveBalance(
        company_id=company_id,
        employee_id=employee_id,
        leave_type_id=leave_type_id,
        year=year or date.today().year,
        entitled=entitled,
        available=entitled,
    )
    session.add(balance)
    await session.commit()
    return balance.id


@pytest.fixture
def balance_seeder(db_session: AsyncSession, org: Org) -> Any:
    """Seed a balance for the current year (or ``year=``) in the org's company."""

    async def _seed(employee_id: uuid.UUID, leave_type_id: uuid.UUID, **kwargs: Any) -> uuid.UUID:
        return await seed_balance(db_session, org.company_id, employee_id, leave_type_id, **kwargs)

    return _seed


@pytest.fixture
async def employee_balance(org: Org, annual_leave: uuid.UUID, balance_seeder: Any) -> BalanceKey:
    """30-day annual leave balance of ``org.employee`` for the current year; returns its key."""
    await balance_seeder(org.employee.id, annual_leave)
    return BalanceKey(
        company_id=org.company_id,
        employee_id=org.employee.id,
        leave_type_id=annual_leave,
        year=date.today().year,
    )
