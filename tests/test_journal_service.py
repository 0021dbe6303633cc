"""
Accounting Engine - Journal Entry Tests

Entry creation, posting, reversal, deletion and automatic entries.
"""

from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import select, func

from accounting_engine.models.accounting import JournalEntry, JournalEntryStatus
from accounting_engine.services.journal_service import JournalService
from accounting_engine.services.ledger_service import LedgerService
from accounting_engine.utils.error_handling import (
    ErrorCode,
    ImbalancedEntryException,
    NoFiscalPeriodException,
    NotDraftException,
    NotFoundException,
    NotPostableException,
    NotPostedException,
    UnknownAccountException,
    ValidationException,
)
from tests.fixtures.entries import entry_data


SALE_LINES = [("430", "121.00", "0"), ("700", "0", "100.00"), ("477", "0", "21.00")]


class TestCreateEntry:
    """Tests for draft creation and the balance invariant."""

    @pytest.mark.asyncio
    async def test_create_balanced_entry_is_draft(self, db_session, fiscal_year):
        service = JournalService(db_session)
        entry = await service.create_entry(entry_data(date(2026, 1, 15), SALE_LINES))

        assert entry.status == JournalEntryStatus.DRAFT
        assert entry.total_debit == Decimal("121.00")
        assert entry.total_credit == Decimal("121.00")
        assert entry.fiscal_period_id == fiscal_year[0].id
        assert [line.line_number for line in entry.lines] == [1, 2, 3]
        assert entry.lines[0].account.account_code == "430"

    @pytest.mark.asyncio
    async def test_imbalanced_entry_rejected_before_persistence(self, db_session, fiscal_year):
        service = JournalService(db_session)

        with pytest.raises(ImbalancedEntryException) as exc_info:
            await service.create_entry(entry_data(
                date(2026, 1, 15),
                [("572", "100.00", "0"), ("700", "0", "90.00")],
            ))

        assert exc_info.value.code == ErrorCode.IMBALANCED_ENTRY
        assert exc_info.value.details["difference"] == "10.00"
        count = await db_session.execute(select(func.count(JournalEntry.id)))
        assert count.scalar() == 0

    @pytest.mark.asyncio
    async def test_difference_within_tolerance_is_accepted(self, db_session, fiscal_year):
        service = JournalService(db_session)
        entry = await service.create_entry(entry_data(
            date(2026, 1, 15),
            [("572", "100.00", "0"), ("700", "0", "99.99")],
        ))

        assert entry.status == JournalEntryStatus.DRAFT

    @pytest.mark.asyncio
    async def test_unknown_account_rejected(self, db_session, fiscal_year):
        service = JournalService(db_session)

        with pytest.raises(UnknownAccountException):
            await service.create_entry(entry_data(
                date(2026, 1, 15),
                [("999", "50", "0"), ("700", "0", "50")],
            ))

    @pytest.mark.asyncio
    async def test_summary_account_not_postable(self, db_session, fiscal_year):
        service = JournalService(db_session)

        with pytest.raises(NotPostableException):
            await service.create_entry(entry_data(
                date(2026, 1, 15),
                [("572", "50", "0"), ("7", "0", "50")],
            ))

    @pytest.mark.asyncio
    async def test_date_outside_any_period(self, db_session, fiscal_year):
        service = JournalService(db_session)

        with pytest.raises(NoFiscalPeriodException):
            await service.create_entry(entry_data(date(2025, 6, 1), SALE_LINES))

    @pytest.mark.asyncio
    async def test_entry_numbers_do_not_reuse_deleted_drafts(self, db_session, fiscal_year):
        service = JournalService(db_session)
        first = await service.create_entry(entry_data(date(2026, 1, 10), SALE_LINES))
        second = await service.create_entry(entry_data(date(2026, 1, 11), SALE_LINES))
        assert first.entry_number == "JE-2026-00001"
        assert second.entry_number == "JE-2026-00002"

        await service.delete_draft(first.id)
        third = await service.create_entry(entry_data(date(2026, 1, 12), SALE_LINES))

        assert third.entry_number == "JE-2026-00003"


class TestPostAndReverse:
    """Tests for the draft -> posted -> reversed lifecycle."""

    @pytest.mark.asyncio
    async def test_post_draft(self, db_session, fiscal_year, make_entry):
        entry = await make_entry(date(2026, 2, 3), SALE_LINES, post=False)

        posted = await JournalService(db_session).post_entry(entry.id)

        assert posted.status == JournalEntryStatus.POSTED
        assert posted.posted_at is not None

    @pytest.mark.asyncio
    async def test_post_twice_fails(self, db_session, fiscal_year, make_entry):
        entry = await make_entry(date(2026, 2, 3), SALE_LINES)

        with pytest.raises(NotDraftException):
            await JournalService(db_session).post_entry(entry.id)

    @pytest.mark.asyncio
    async def test_reversal_mirrors_original(self, db_session, fiscal_year, make_entry):
        original = await make_entry(date(2026, 2, 3), SALE_LINES, description="Invoice 7")
        service = JournalService(db_session)

        reversal = await service.reverse_entry(original.id, date(2026, 2, 10), "Wrong customer")

        assert reversal.status == JournalEntryStatus.POSTED
        assert reversal.is_reversing is True
        assert reversal.reversed_entry_id == original.id
        assert reversal.total_debit == original.total_credit
        assert reversal.total_credit == original.total_debit
        assert reversal.description == "Reversal: Invoice 7. Wrong customer"
        for mirror, line in zip(reversal.lines, original.lines):
            assert mirror.account_id == line.account_id
            assert mirror.debit_amount == line.credit_amount
            assert mirror.credit_amount == line.debit_amount

        refreshed = await service.get_entry(original.id)
        assert refreshed.status == JournalEntryStatus.REVERSED
        assert refreshed.reversal_reason == "Wrong customer"

    @pytest.mark.asyncio
    async def test_reversal_nets_ledger_to_zero(self, db_session, fiscal_year, make_entry):
        original = await make_entry(date(2026, 2, 3), SALE_LINES)
        await JournalService(db_session).reverse_entry(original.id, date(2026, 2, 10))

        ledger = LedgerService(db_session)
        assert await ledger.balance(code_prefix="430") == Decimal("0.00")
        assert await ledger.balance(code_prefix="700") == Decimal("0.00")

    @pytest.mark.asyncio
    async def test_reverse_draft_fails(self, db_session, fiscal_year, make_entry):
        entry = await make_entry(date(2026, 2, 3), SALE_LINES, post=False)

        with pytest.raises(NotPostedException):
            await JournalService(db_session).reverse_entry(entry.id, date(2026, 2, 10))

    @pytest.mark.asyncio
    async def test_reverse_twice_fails(self, db_session, fiscal_year, make_entry):
        entry = await make_entry(date(2026, 2, 3), SALE_LINES)
        service = JournalService(db_session)
        await service.reverse_entry(entry.id, date(2026, 2, 10))

        with pytest.raises(NotPostedException):
            await service.reverse_entry(entry.id, date(2026, 2, 11))


class TestDeleteAndLookup:

    @pytest.mark.asyncio
    async def test_delete_draft(self, db_session, fiscal_year, make_entry):
        entry = await make_entry(date(2026, 3, 1), SALE_LINES, post=False)
        service = JournalService(db_session)

        await service.delete_draft(entry.id)

        with pytest.raises(NotFoundException):
            await service.get_entry(entry.id)

    @pytest.mark.asyncio
    async def test_delete_posted_fails(self, db_session, fiscal_year, make_entry):
        entry = await make_entry(date(2026, 3, 1), SALE_LINES)

        with pytest.raises(NotDraftException):
            await JournalService(db_session).delete_draft(entry.id)

    @pytest.mark.asyncio
    async def test_list_entries_filters_by_status(self, db_session, fiscal_year, make_entry):
        await make_entry(date(2026, 3, 1), SALE_LINES)
        await make_entry(date(2026, 3, 2), SALE_LINES, post=False)

        drafts = await JournalService(db_session).list_entries(status=JournalEntryStatus.DRAFT)

        assert len(drafts) == 1
        assert drafts[0].entry_date == date(2026, 3, 2)

    @pytest.mark.asyncio
    async def test_validate_balance_sweep(self, db_session, fiscal_year, make_entry):
        await make_entry(date(2026, 3, 1), SALE_LINES)
        await make_entry(date(2026, 3, 2), [("572", "121", "0"), ("430", "0", "121")])

        result = await JournalService(db_session).validate_balance()

        assert result["total_entries"] == 2
        assert result["unbalanced_count"] == 0


class TestAutomaticEntries:
    """Tests for template-driven entries."""

    @pytest.mark.asyncio
    async def test_invoice_issued_template(self, db_session, fiscal_year):
        entry = await JournalService(db_session).generate_auto_entry(
            "invoice_issued",
            {"total": "121.00", "base": "100.00", "tax": "21.00", "description": "F-2026-001"},
            date(2026, 4, 5),
        )

        assert entry.status == JournalEntryStatus.POSTED
        assert entry.is_automatic is True
        assert entry.description == "Sales invoice: F-2026-001"
        codes = [(line.account.account_code, line.debit_amount, line.credit_amount) for line in entry.lines]
        assert codes == [
            ("430", Decimal("121.00"), Decimal("0.00")),
            ("700", Decimal("0.00"), Decimal("100.00")),
            ("477", Decimal("0.00"), Decimal("21.00")),
        ]

    @pytest.mark.asyncio
    async def test_zero_amount_lines_are_skipped(self, db_session, fiscal_year):
        entry = await JournalService(db_session).generate_auto_entry(
            "invoice_issued",
            {"total": "100.00", "base": "100.00", "tax": "0"},
            date(2026, 4, 5),
        )

        assert len(entry.lines) == 2

    @pytest.mark.asyncio
    async def test_unknown_event_type(self, db_session, fiscal_year):
        with pytest.raises(ValidationException) as exc_info:
            await JournalService(db_session).generate_auto_entry("payroll_run", {}, date(2026, 4, 5))

        assert exc_info.value.code == ErrorCode.UNSUPPORTED_ENTRY_TEMPLATE

    @pytest.mark.asyncio
    async def test_negative_amount_rejected(self, db_session, fiscal_year):
        with pytest.raises(ValidationException):
            await JournalService(db_session).generate_auto_entry(
                "invoice_collected", {"amount": "-10"}, date(2026, 4, 5),
            )
