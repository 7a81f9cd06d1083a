import asyncio
import os
import sys
from datetime import date
from pathlib import Path

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

sys.path.append(str(Path(__file__).parents[1] / "src"))

ENV_TEST_PATH = Path(__file__).parents[1] / ".env.test"


def _load_env_file(path: Path) -> None:
    if not path.exists():
        return
    for line in path.read_text().splitlines():
        line = line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        os.environ.setdefault(key, value)


_load_env_file(ENV_TEST_PATH)
os.environ.setdefault("CREDENTIALS_SECRET", "test-credentials-secret")
os.environ.setdefault("JWT_SECRET", "test-jwt-secret")
os.environ.setdefault("CRON_SECRET", "test-cron-secret")

from finsync.api.deps import get_provider_registry  # noqa: E402
from finsync.core.vault import encrypt_credentials, encrypt_token  # noqa: E402
from finsync.db.session import get_db  # noqa: E402
from finsync.main import app  # noqa: E402
from finsync.models.base import BaseModel  # noqa: E402
from finsync.providers.base import (  # noqa: E402
    BankProvider,
    ProviderAdapter,
    ScrapedAccount,
    ScrapedTransaction,
    ScrapeResult,
)
from finsync.providers.isracard import IsracardCredentials  # noqa: E402
from finsync.providers.registry import ProviderRegistry  # noqa: E402

TEST_DATABASE_URL = os.getenv("TEST_DATABASE_URL", "sqlite+aiosqlite:///:memory:")


def _create_test_engine(url: str):
    if not url.startswith("sqlite"):
        return create_async_engine(url, echo=False)

    engine = create_async_engine(url, echo=False, poolclass=StaticPool)

    # pysqlite's own transaction handling breaks SAVEPOINT; let SQLAlchemy
    # emit BEGIN itself.
    @event.listens_for(engine.sync_engine, "connect")
    def _sqlite_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _sqlite_begin(conn):
        conn.exec_driver_sql("BEGIN")

    return engine


test_engine = _create_test_engine(TEST_DATABASE_URL)
TestSessionLocal = async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


class ScriptedAdapter(ProviderAdapter):
    """Adapter whose scrape outcome is chosen by the credentials' ``id`` field.

    An outcome is a ``ScrapeResult`` to return or an exception to raise.
    ``delays`` holds seconds to wait before answering, per ``id``.
    """

    provider = BankProvider.ISRACARD
    display_name = "Scripted"
    requires_two_factor = False
    credentials_model = IsracardCredentials

    def __init__(self):
        self.outcomes: dict[str, object] = {}
        self.calls: list[str] = []
        self.delays: dict[str, float] = {}

    async def scrape(self, start_date, credentials, long_term_token=None):
        key = credentials["id"]
        self.calls.append(key)
        if key in self.delays:
            await asyncio.sleep(self.delays[key])
        outcome = self.outcomes.get(key, ScrapeResult(success=True))
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


def make_raw_transaction(
    identifier: str | None,
    amount: float = -42.5,
    description: str = "Shufersal Deal - Tel Aviv",
    category: str | None = None,
    status: str = "completed",
    txn_date: date = date(2026, 9, 1),
) -> ScrapedTransaction:
    return ScrapedTransaction(
        identifier=identifier,
        date=txn_date,
        original_amount=amount,
        charged_amount=amount,
        description=description,
        category=category,
        status=status,
    )


def make_scrape_result(account_number: str, identifiers: list[str], **kwargs) -> ScrapeResult:
    return ScrapeResult(
        success=True,
        accounts=[
            ScrapedAccount(
                account_number=account_number,
                txns=[make_raw_transaction(i, **kwargs) for i in identifiers],
            )
        ],
    )


def isracard_credentials(national_id: str = "123456782") -> dict:
    return {"id": national_id, "card6_digits": "123456", "password": "secret"}


@pytest.fixture(scope="function")
async def setup_database():
    """Create tables for tests that need the database, and drop them after.

    Not autouse, so pure unit tests run without a database.
    """
    async with test_engine.begin() as conn:
        await conn.run_sync(BaseModel.metadata.create_all)

    yield

    async with test_engine.begin() as conn:
        await conn.run_sync(BaseModel.metadata.drop_all)


@pytest.fixture
async def db_session(setup_database):
    """Provide test database session with fresh connection per test."""
    async with TestSessionLocal() as session:
        yield session
        await session.rollback()


@pytest.fixture
async def household(db_session: AsyncSession):
    from finsync.models.household import Household

    household = Household(name="Test Household")
    db_session.add(household)
    await db_session.commit()
    await db_session.refresh(household)
    return household


@pytest.fixture
async def other_household(db_session: AsyncSession):
    from finsync.models.household import Household

    household = Household(name="Other Household")
    db_session.add(household)
    await db_session.commit()
    await db_session.refresh(household)
    return household


@pytest.fixture
async def auth_headers(household):
    """Provide authentication headers with a household-scoped JWT."""
    from finsync.core.security import create_access_token

    token = create_access_token(household_id=household.id)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def scripted_adapter() -> ScriptedAdapter:
    return ScriptedAdapter()


@pytest.fixture
def scripted_registry(scripted_adapter: ScriptedAdapter) -> ProviderRegistry:
    return ProviderRegistry([scripted_adapter])


@pytest.fixture
def make_connection(db_session: AsyncSession):
    """Factory creating an active connection with encrypted credentials."""
    from finsync.models.connection import BankConnection

    async def _make(
        household,
        national_id: str = "123456782",
        display_name: str | None = None,
        provider: str = "isracard",
        token: str | None = None,
        is_active: bool = True,
        account_mappings: dict | None = None,
        last_sync_at=None,
    ) -> BankConnection:
        connection = BankConnection(
            household_id=household.id,
            provider=provider,
            display_name=display_name or f"Card {national_id[-3:]}",
            encrypted_credentials=encrypt_credentials(isracard_credentials(national_id)),
            encrypted_token=encrypt_token(token) if token else None,
            is_active=is_active,
            account_mappings=account_mappings or {},
            last_sync_at=last_sync_at,
        )
        db_session.add(connection)
        await db_session.commit()
        await db_session.refresh(connection)
        return connection

    return _make


@pytest.fixture
async def client(db_session: AsyncSession, scripted_registry: ProviderRegistry):
    """Provide test client with database and provider overrides."""

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_provider_registry] = lambda: scripted_registry

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
