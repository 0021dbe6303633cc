"""
Accounting Engine - Fiscal Period Tests

Fiscal year creation and the open -> closed -> locked lifecycle.
"""

import uuid
from datetime import date
from decimal import Decimal

import pytest

from accounting_engine.config import settings
from accounting_engine.models.accounting import FiscalPeriodStatus, FiscalPeriodType
from accounting_engine.services.fiscal_period_service import FiscalPeriodService
from accounting_engine.services.journal_service import JournalService
from accounting_engine.utils.error_handling import (
    ConflictException,
    DraftEntriesRemainException,
    InvalidPeriodTransitionException,
    NotFoundException,
    OpenPeriodsRemainException,
    PeriodClosedException,
    PeriodLockedException,
)
from tests.fixtures.entries import entry_data


SALE_LINES = [("572", "242.00", "0"), ("705", "0", "200.00"), ("477", "0", "42.00")]
EXPENSE_LINES = [("621", "80.00", "0"), ("572", "0", "80.00")]


async def close_all(db_session, periods):
    service = FiscalPeriodService(db_session)
    for period in periods:
        await service.close_period(period.id)
    await db_session.commit()


class TestFiscalYearCreation:

    @pytest.mark.asyncio
    async def test_monthly_periods_are_contiguous(self, db_session, fiscal_year):
        assert len(fiscal_year) == 12
        assert fiscal_year[0].period_name == "January 2026"
        assert fiscal_year[0].start_date == date(2026, 1, 1)
        assert fiscal_year[1].start_date == date(2026, 2, 1)
        assert fiscal_year[1].end_date == date(2026, 2, 28)
        assert fiscal_year[-1].end_date == date(2026, 12, 31)
        assert all(p.status == FiscalPeriodStatus.OPEN for p in fiscal_year)

    @pytest.mark.asyncio
    async def test_quarterly_periods(self, db_session, chart):
        periods = await FiscalPeriodService(db_session).create_fiscal_year(
            2027, period_type=FiscalPeriodType.QUARTER,
        )

        assert [p.period_name for p in periods] == ["Q1 2027", "Q2 2027", "Q3 2027", "Q4 2027"]
        assert periods[1].start_date == date(2027, 4, 1)
        assert periods[1].end_date == date(2027, 6, 30)

    @pytest.mark.asyncio
    async def test_fiscal_year_not_starting_in_january(self, db_session, chart):
        periods = await FiscalPeriodService(db_session).create_fiscal_year(2030, start_month=7)

        assert periods[0].start_date == date(2030, 7, 1)
        assert periods[-1].end_date == date(2031, 6, 30)

    @pytest.mark.asyncio
    async def test_duplicate_year_rejected(self, db_session, fiscal_year):
        with pytest.raises(ConflictException):
            await FiscalPeriodService(db_session).create_fiscal_year(2026)

    @pytest.mark.asyncio
    async def test_overlapping_year_rejected(self, db_session, fiscal_year):
        with pytest.raises(ConflictException):
            await FiscalPeriodService(db_session).create_fiscal_year(2025, start_month=6)

    @pytest.mark.asyncio
    async def test_period_lookup_by_date(self, db_session, fiscal_year):
        service = FiscalPeriodService(db_session)

        period = await service.get_current_period(date(2026, 5, 17))

        assert period.period_name == "May 2026"
        assert await service.get_current_period(date(2028, 1, 1)) is None


class TestPeriodClose:

    @pytest.mark.asyncio
    async def test_close_fails_with_draft_entries(self, db_session, fiscal_year, make_entry):
        await make_entry(date(2026, 1, 10), SALE_LINES, post=False)

        with pytest.raises(DraftEntriesRemainException) as exc_info:
            await FiscalPeriodService(db_session).close_period(fiscal_year[0].id)

        assert exc_info.value.details["draft_count"] == 1

    @pytest.mark.asyncio
    async def test_close_succeeds_once_drafts_are_posted(self, db_session, fiscal_year, make_entry):
        entry = await make_entry(date(2026, 1, 10), SALE_LINES, post=False)
        await JournalService(db_session).post_entry(entry.id)

        result = await FiscalPeriodService(db_session).close_period(fiscal_year[0].id)

        assert result.period.status == FiscalPeriodStatus.CLOSED
        assert result.period.closed_at is not None

    @pytest.mark.asyncio
    async def test_close_twice_is_invalid_transition(self, db_session, fiscal_year):
        service = FiscalPeriodService(db_session)
        await service.close_period(fiscal_year[0].id)

        with pytest.raises(InvalidPeriodTransitionException):
            await service.close_period(fiscal_year[0].id)

    @pytest.mark.asyncio
    async def test_closed_period_accepts_entries_by_default(self, db_session, fiscal_year):
        await FiscalPeriodService(db_session).close_period(fiscal_year[0].id)

        entry = await JournalService(db_session).create_entry(
            entry_data(date(2026, 1, 20), SALE_LINES, auto_post=True)
        )

        assert entry.fiscal_period_id == fiscal_year[0].id

    @pytest.mark.asyncio
    async def test_closed_period_blocks_entries_when_configured(self, db_session, fiscal_year, monkeypatch):
        monkeypatch.setattr(settings, "block_entries_in_closed_periods", True)
        await FiscalPeriodService(db_session).close_period(fiscal_year[0].id)

        with pytest.raises(PeriodClosedException):
            await JournalService(db_session).create_entry(entry_data(date(2026, 1, 20), SALE_LINES))

    @pytest.mark.asyncio
    async def test_unknown_period(self, db_session, fiscal_year):
        with pytest.raises(NotFoundException):
            await FiscalPeriodService(db_session).close_period(uuid.uuid4())


class TestYearLock:

    @pytest.mark.asyncio
    async def test_lock_requires_every_period_closed(self, db_session, fiscal_year):
        await close_all(db_session, fiscal_year[:11])

        with pytest.raises(OpenPeriodsRemainException) as exc_info:
            await FiscalPeriodService(db_session).lock_year(2026)

        assert exc_info.value.details["open_count"] == 1

    @pytest.mark.asyncio
    async def test_lock_year_reports_result(self, db_session, fiscal_year, make_entry):
        await make_entry(date(2026, 3, 1), SALE_LINES)
        await make_entry(date(2026, 3, 5), EXPENSE_LINES)
        await close_all(db_session, fiscal_year)

        result = await FiscalPeriodService(db_session).lock_year(2026)

        assert result.periods_locked == 12
        assert result.total_income == Decimal("200.00")
        assert result.total_expenses == Decimal("80.00")
        assert result.net_profit == Decimal("120.00")
        assert all(p.status == FiscalPeriodStatus.LOCKED for p in fiscal_year)
        assert all(p.locked_at is not None for p in fiscal_year)

    @pytest.mark.asyncio
    async def test_lock_fails_with_drafts_in_closed_periods(self, db_session, fiscal_year):
        await close_all(db_session, fiscal_year)
        await JournalService(db_session).create_entry(entry_data(date(2026, 6, 1), SALE_LINES))

        with pytest.raises(DraftEntriesRemainException):
            await FiscalPeriodService(db_session).lock_year(2026)

    @pytest.mark.asyncio
    async def test_locked_period_rejects_writes(self, db_session, fiscal_year, make_entry):
        entry = await make_entry(date(2026, 3, 1), SALE_LINES)
        await close_all(db_session, fiscal_year)
        await FiscalPeriodService(db_session).lock_year(2026)
        journal = JournalService(db_session)

        with pytest.raises(PeriodLockedException):
            await journal.create_entry(entry_data(date(2026, 4, 1), SALE_LINES))

        with pytest.raises(PeriodLockedException):
            await journal.reverse_entry(entry.id, date(2026, 12, 31))

    @pytest.mark.asyncio
    async def test_lock_twice_is_invalid_transition(self, db_session, fiscal_year):
        await close_all(db_session, fiscal_year)
        service = FiscalPeriodService(db_session)
        await service.lock_year(2026)

        with pytest.raises(InvalidPeriodTransitionException):
            await service.lock_year(2026)

    @pytest.mark.asyncio
    async def test_lock_unknown_year(self, db_session, fiscal_year):
        with pytest.raises(NotFoundException):
            await FiscalPeriodService(db_session).lock_year(1999)
