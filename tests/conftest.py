"""
Accounting Engine - Test Configuration

Pytest fixtures and configuration.
"""

import os

# Settings are read at import time
os.environ.setdefault("DATABASE_URL_ASYNC", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("APP_ENV", "testing")
os.environ.setdefault("OPENAI_API_KEY", "")

from datetime import date
from decimal import Decimal
from typing import AsyncGenerator, List

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

import accounting_engine.models  # noqa: F401
from accounting_engine.database import Base, get_async_session
from accounting_engine.models.accounting import FiscalPeriod, Jurisdiction, JournalEntry
from accounting_engine.models.bank_reconciliation import MatchField, MatchType, ReconciliationRule
from accounting_engine.models.partner import Partner
from accounting_engine.schemas.accounting import FiscalConfigUpdate
from accounting_engine.schemas.bank_reconciliation import ReconciliationRuleCreate
from accounting_engine.schemas.partner import PartnerCreate
from accounting_engine.services.chart_of_accounts_service import ChartOfAccountsService
from accounting_engine.services.fiscal_period_service import FiscalPeriodService
from accounting_engine.services.journal_service import JournalService
from accounting_engine.services.partner_service import PartnerService
from accounting_engine.services.reconciliation_service import ReconciliationService
from main import app
from tests.fixtures.entries import entry_data


TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

# Create test engine
test_engine = create_async_engine(
    TEST_DATABASE_URL,
    echo=False,
    poolclass=StaticPool,
    connect_args={"check_same_thread": False},
)

# Create test session factory
TestSessionLocal = async_sessionmaker(
    test_engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


@pytest_asyncio.fixture(scope="function")
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Create a fresh database session for each test."""
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with TestSessionLocal() as session:
        yield session
        await session.rollback()

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest_asyncio.fixture(scope="function")
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Create a test client with database session override."""

    async def override_get_session():
        yield db_session

    app.dependency_overrides[get_async_session] = override_get_session

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


# ===========================================
# DATA FIXTURES
# ===========================================

@pytest_asyncio.fixture
async def chart(db_session: AsyncSession):
    """Default chart of accounts."""
    accounts = await ChartOfAccountsService(db_session).seed_default_chart()
    await db_session.commit()
    return {account.account_code: account for account in accounts}


@pytest_asyncio.fixture
async def fiscal_config(db_session: AsyncSession):
    config = await FiscalPeriodService(db_session).set_fiscal_config(
        FiscalConfigUpdate(
            company_name="Test Company SL",
            tax_id="B12345678",
            jurisdiction=Jurisdiction.SPAIN,
            fiscal_year=2026,
        )
    )
    await db_session.commit()
    return config


@pytest_asyncio.fixture
async def fiscal_year(db_session: AsyncSession, chart, fiscal_config) -> List[FiscalPeriod]:
    """Twelve monthly periods for 2026, all open."""
    periods = await FiscalPeriodService(db_session).create_fiscal_year(2026)
    await db_session.commit()
    return periods


@pytest_asyncio.fixture
async def partners(db_session: AsyncSession, fiscal_year) -> List[Partner]:
    """Two partners, 60/40, the first one administrator."""
    service = PartnerService(db_session)
    ana = await service.create_partner(PartnerCreate(
        partner_name="Ana Garcia",
        tax_id="12345678A",
        ownership_percentage=Decimal("60"),
        is_administrator=True,
    ))
    luis = await service.create_partner(PartnerCreate(
        partner_name="Luis Perez",
        tax_id="87654321B",
        ownership_percentage=Decimal("40"),
    ))
    await db_session.commit()
    return [ana, luis]


@pytest_asyncio.fixture
async def rules(db_session: AsyncSession) -> List[ReconciliationRule]:
    service = ReconciliationService(db_session)
    created = [
        await service.create_rule(ReconciliationRuleCreate(
            rule_name="Electricity",
            priority=10,
            match_field=MatchField.DESCRIPTION,
            match_type=MatchType.CONTAINS,
            match_value="IBERDROLA",
            target_category="628",
        )),
        await service.create_rule(ReconciliationRuleCreate(
            rule_name="Bank fees",
            priority=20,
            match_field=MatchField.DESCRIPTION,
            match_type=MatchType.REGEX,
            match_value=r"^comision\s+\w+",
            target_category="626",
        )),
        await service.create_rule(ReconciliationRuleCreate(
            rule_name="Rent",
            priority=30,
            match_field=MatchField.COUNTERPARTY,
            match_type=MatchType.EXACT,
            match_value="Inmobiliaria Sol SL",
            target_category="621",
        )),
    ]
    await db_session.commit()
    return created


@pytest.fixture
def make_entry(db_session: AsyncSession):
    """Factory creating (and by default posting) a journal entry."""

    async def _make_entry(
        entry_date: date,
        lines: List[tuple],
        description: str = "Test entry",
        post: bool = True,
    ) -> JournalEntry:
        entry = await JournalService(db_session).create_entry(
            entry_data(entry_date, lines, description, auto_post=post)
        )
        await db_session.commit()
        return entry

    return _make_entry
