"""
Pytest fixtures for test database, client, users and capability fakes.

Each test gets a fresh schema. By default that is a SQLite file under the
test's tmp_path (through aiosqlite), which still enforces the partial
unique index and serialises concurrent writers. Point TEST_DATABASE_URL at
a PostgreSQL database to run the same suite against asyncpg.
"""

import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./ticketpro_app_unused.db")
os.environ.setdefault("REDIS_ENABLED", "false")
os.environ.setdefault("SCHEDULER_ENABLED", "false")
os.environ.setdefault("ENVIRONMENT", "test")

from datetime import timedelta
from decimal import Decimal
from typing import Any, AsyncGenerator, Mapping, Optional

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker

from ticketpro.main import app
from ticketpro.core.errors import ExportError, MailerError
from ticketpro.core.permissions import Actor
from ticketpro.core.security import create_access_token, hash_password
from ticketpro.db.base import Base, utcnow
from ticketpro.db.session import get_db
from ticketpro.models.ticket import Ticket
from ticketpro.models.user import User
from ticketpro.services.booking_draft import BookingDraft
from ticketpro.services.interfaces.exporter import Exporter
from ticketpro.services.interfaces.mailer import Mailer
from ticketpro.services.strategy_factory import get_exporter, get_mailer


class FakeMailer(Mailer):
    """Records every message; fails the first `fail_times` sends."""

    def __init__(self, fail_times: int = 0):
        self.fail_times = fail_times
        self.sent: list[tuple[str, str, dict]] = []
        self.attempts = 0

    async def send(self, template: str, recipient: str, data: Mapping[str, Any]) -> Optional[str]:
        self.attempts += 1
        if self.attempts <= self.fail_times:
            raise MailerError("provider rejected the message")
        self.sent.append((template, recipient, dict(data)))
        return f"msg-{len(self.sent)}"


class FakeExporter(Exporter):
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.uploads: list[tuple[str, bytes]] = []

    async def upload(self, blob: bytes, name: str) -> str:
        if self.fail:
            raise ExportError("storage offline")
        self.uploads.append((name, blob))
        return f"file-{len(self.uploads)}"


@pytest_asyncio.fixture(scope="function")
async def engine(tmp_path):
    url = os.environ.get("TEST_DATABASE_URL") or f"sqlite+aiosqlite:///{tmp_path / 'ticketpro_test.db'}"
    test_engine = create_async_engine(url, echo=False)
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield test_engine

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    """Independent sessions, e.g. one per simulated agent."""
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture(scope="function")
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def mailer() -> FakeMailer:
    return FakeMailer()


@pytest.fixture
def exporter() -> FakeExporter:
    return FakeExporter()


@pytest_asyncio.fixture(scope="function")
async def client(session_factory, mailer, exporter) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client with a fresh session per request, like production."""

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_mailer] = lambda: mailer
    app.dependency_overrides[get_exporter] = lambda: exporter

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


async def _create_user(db: AsyncSession, email: str, full_name: str, role: str, rate: str = "5") -> User:
    user = User(
        email=email,
        full_name=full_name,
        hashed_password=hash_password("testpassword123"),
        role=role,
        commission_rate=Decimal(rate),
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)
    return user


@pytest_asyncio.fixture
async def agent_user(db_session: AsyncSession) -> User:
    return await _create_user(db_session, "agent@example.com", "Karim Agent", "agent")


@pytest_asyncio.fixture
async def other_agent(db_session: AsyncSession) -> User:
    return await _create_user(db_session, "agent2@example.com", "Nadia Agent", "agent", rate="7.5")


@pytest_asyncio.fixture
async def manager_user(db_session: AsyncSession) -> User:
    return await _create_user(db_session, "manager@example.com", "Mina Manager", "manager")


@pytest_asyncio.fixture
async def admin_user(db_session: AsyncSession) -> User:
    return await _create_user(db_session, "admin@example.com", "Arif Admin", "admin")


@pytest.fixture
def agent(agent_user: User) -> Actor:
    return Actor.from_user(agent_user)


def _headers(user: User) -> dict:
    return {"Authorization": f"Bearer {create_access_token(data={'sub': str(user.id)})}"}


@pytest.fixture
def agent_headers(agent_user: User) -> dict:
    return _headers(agent_user)


@pytest.fixture
def other_agent_headers(other_agent: User) -> dict:
    return _headers(other_agent)


@pytest.fixture
def manager_headers(manager_user: User) -> dict:
    return _headers(manager_user)


@pytest.fixture
def admin_headers(admin_user: User) -> dict:
    return _headers(admin_user)


@pytest.fixture
def ticket_factory(db_session: AsyncSession):
    async def make(
        selling_price: str = "85000",
        buying_price: str = "78000",
        airline: str = "Biman Bangladesh",
        country: str = "Saudi Arabia",
        flight_number: str = "BG135",
    ) -> Ticket:
        ticket = Ticket(
            airline=airline,
            flight_number=flight_number,
            country=country,
            departure_city="Dhaka",
            arrival_city="Jeddah",
            departure_at=utcnow() + timedelta(days=30),
            selling_price=Decimal(selling_price),
            buying_price=Decimal(buying_price),
        )
        db_session.add(ticket)
        await db_session.commit()
        await db_session.refresh(ticket)
        return ticket

    return make


@pytest_asyncio.fixture
async def ticket(ticket_factory) -> Ticket:
    return await ticket_factory()


def passenger(
    name: str = "Rahim Uddin",
    passport: str = "BX1234567",
    mobile: str = "01712345678",
    email: Optional[str] = None,
) -> dict:
    return {"name": name, "passport": passport, "mobile": mobile, "email": email}


@pytest.fixture
def draft_factory():
    """Completed-wizard drafts for service-level tests."""

    def make(
        ticket: Ticket,
        passengers: Optional[list] = None,
        discount_percent: str = "0",
        paid_amount: str = "0",
        payment_method: str = "cash",
        selling_price: Optional[str] = None,
    ) -> BookingDraft:
        return (
            BookingDraft.start(ticket.id, ticket.selling_price)
            .with_passengers(passengers or [passenger()])
            .with_pricing(selling_price=selling_price, discount_percent=discount_percent)
            .with_payment(payment_method=payment_method, paid_amount=paid_amount)
        )

    return make


@pytest.fixture
def booking_payload():
    """JSON body for POST /bookings/."""

    def make(ticket_id: int, passengers: Optional[list] = None, **overrides) -> dict:
        body = {
            "ticket_id": ticket_id,
            "passengers": passengers or [passenger()],
            "discount_percent": "0",
            "payment": {"payment_method": "cash", "paid_amount": "0"},
        }
        body.update(overrides)
        return body

    return make


@pytest.fixture
def make_passenger():
    return passenger


@pytest.fixture
def mailer_factory():
    return FakeMailer


@pytest.fixture
def exporter_factory():
    return FakeExporter
