"""
Accounting Engine - Year-End Closing Entries

Builds the regularization entry that moves the year's income (group 7)
and expense (group 6) balances into the result account.
"""

import logging

from sqlalchemy import select, func, and_
from sqlalchemy.ext.asyncio import AsyncSession

from accounting_engine.config import settings
from accounting_engine.models.accounting import JournalEntry, JournalEntryStatus
from accounting_engine.schemas.accounting import (
    ClosingEntriesResponse,
    JournalEntryCreate,
    JournalEntryLineCreate,
    JournalEntryResponse,
)
from accounting_engine.services.fiscal_period_service import FiscalPeriodService
from accounting_engine.services.journal_service import JournalService
from accounting_engine.services.ledger_service import ZERO, LedgerService
from accounting_engine.utils.error_handling import (
    BusinessRuleException,
    ConflictException,
    ErrorCode,
    NotFoundException,
)

logger = logging.getLogger(__name__)

CLOSING_REFERENCE_TYPE = "year_close"


class ClosingService:
    """Service for year-end closing entries."""
    
    def __init__(self, db: AsyncSession):
        self.db = db
        self.ledger = LedgerService(db)
        self.periods = FiscalPeriodService(db)
        self.journal = JournalService(db)
    
    async def generate_closing_entries(self, fiscal_year: int) -> ClosingEntriesResponse:
        """
        Create the draft closing entry for a fiscal year.
        
        Income accounts are debited and expense accounts credited by their
        year balance; the difference goes to the result account (credit for
        a profit, debit for a loss). The entry is dated on the last day of
        the year and left as a draft for review.
        """
        periods = await self.periods.list_periods(fiscal_year)
        if not periods:
            raise NotFoundException(
                "FiscalPeriod",
                message=f"No fiscal periods exist for fiscal year {fiscal_year}",
                code=ErrorCode.PERIOD_NOT_FOUND,
            )
        
        existing = await self.db.execute(
            select(func.count(JournalEntry.id)).where(
                and_(
                    JournalEntry.is_closing_entry == True,
                    JournalEntry.reference_type == CLOSING_REFERENCE_TYPE,
                    JournalEntry.reference_id == str(fiscal_year),
                    JournalEntry.status.in_([JournalEntryStatus.DRAFT, JournalEntryStatus.POSTED]),
                )
            )
        )
        if existing.scalar() or 0:
            raise ConflictException(
                f"Closing entries for fiscal year {fiscal_year} already exist",
                resource_type="JournalEntry",
                code=ErrorCode.DUPLICATE_ENTRY,
            )
        
        start_date = periods[0].start_date
        end_date = periods[-1].end_date
        
        lines = []
        total_income = ZERO
        total_expenses = ZERO
        
        income_rows = await self.ledger.account_totals(
            start_date=start_date, end_date=end_date, account_group=7, exclude_closing=True,
        )
        for row in income_rows:
            amount = row.total_credit - row.total_debit
            if amount == 0:
                continue
            total_income += amount
            lines.append(JournalEntryLineCreate(
                account_code=row.account.account_code,
                debit_amount=amount if amount > 0 else ZERO,
                credit_amount=-amount if amount < 0 else ZERO,
                description=f"Regularization {row.account.account_name}",
            ))
        
        expense_rows = await self.ledger.account_totals(
            start_date=start_date, end_date=end_date, account_group=6, exclude_closing=True,
        )
        for row in expense_rows:
            amount = row.total_debit - row.total_credit
            if amount == 0:
                continue
            total_expenses += amount
            lines.append(JournalEntryLineCreate(
                account_code=row.account.account_code,
                debit_amount=-amount if amount < 0 else ZERO,
                credit_amount=amount if amount > 0 else ZERO,
                description=f"Regularization {row.account.account_name}",
            ))
        
        if not lines:
            raise BusinessRuleException(
                f"Fiscal year {fiscal_year} has no income or expense balances to close",
                rule="PROFIT_AND_LOSS_ACTIVITY",
            )
        
        net_profit = total_income - total_expenses
        if net_profit != 0:
            lines.append(JournalEntryLineCreate(
                account_code=settings.result_account_code,
                debit_amount=-net_profit if net_profit < 0 else ZERO,
                credit_amount=net_profit if net_profit > 0 else ZERO,
                description=f"Result for fiscal year {fiscal_year}",
            ))
        
        entry = await self.journal.create_entry(
            JournalEntryCreate(
                entry_date=end_date,
                description=f"Closing entry, fiscal year {fiscal_year}",
                lines=lines,
                reference_type=CLOSING_REFERENCE_TYPE,
                reference_id=str(fiscal_year),
            ),
            is_automatic=True,
            is_closing_entry=True,
        )
        logger.info(f"Generated closing entry {entry.entry_number} for {fiscal_year} (result {net_profit})")
        
        return ClosingEntriesResponse(
            entry=JournalEntryResponse.model_validate(entry),
            total_income=total_income,
            total_expenses=total_expenses,
            net_profit=net_profit,
            message=f"Closing entry generated for fiscal year {fiscal_year}",
        )
