"""
Accounting Engine - Fiscal Period Service

Fiscal configuration, fiscal-year/period creation and the
open -> closed -> locked period state machine.

Period transitions are serialized per target: the row is read FOR UPDATE
and the status change is an UPDATE guarded by the expected status, so a
concurrent transition surfaces as ConcurrentModificationException instead
of a lost update. Entry writers read the covering period FOR SHARE.
"""

import logging
import uuid
from datetime import date
from typing import List, Optional

from dateutil.relativedelta import relativedelta
from sqlalchemy import select, func, and_, update
from sqlalchemy.ext.asyncio import AsyncSession

from accounting_engine.config import settings
from accounting_engine.models.base import utcnow
from accounting_engine.models.accounting import (
    FiscalConfig,
    FiscalPeriod,
    FiscalPeriodStatus,
    FiscalPeriodType,
    JournalEntry,
    JournalEntryStatus,
)
from accounting_engine.schemas.accounting import (
    FiscalConfigUpdate,
    FiscalPeriodResponse,
    PeriodCloseResponse,
    YearLockResponse,
)
from accounting_engine.services.ledger_service import LedgerService
from accounting_engine.utils.error_handling import (
    ConcurrentModificationException,
    ConflictException,
    DraftEntriesRemainException,
    ErrorCode,
    InvalidPeriodTransitionException,
    NoFiscalPeriodException,
    NotFoundException,
    OpenPeriodsRemainException,
    PeriodClosedException,
    PeriodLockedException,
)

logger = logging.getLogger(__name__)


class FiscalPeriodService:
    """Service for fiscal configuration and period lifecycle."""
    
    def __init__(self, db: AsyncSession):
        self.db = db
    
    # =========================================================================
    # FISCAL CONFIGURATION
    # =========================================================================
    
    async def get_fiscal_config(self) -> Optional[FiscalConfig]:
        result = await self.db.execute(
            select(FiscalConfig)
            .where(FiscalConfig.is_active == True)
            .order_by(FiscalConfig.created_at.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()
    
    async def set_fiscal_config(self, data: FiscalConfigUpdate) -> FiscalConfig:
        """Create or update the active fiscal configuration."""
        config = await self.get_fiscal_config()
        if config is None:
            config = FiscalConfig(is_active=True)
            self.db.add(config)
        
        for field, value in data.model_dump().items():
            setattr(config, field, value)
        
        await self.db.flush()
        logger.info(f"Fiscal configuration set for {config.company_name} ({config.jurisdiction.value})")
        return config
    
    # =========================================================================
    # FISCAL YEARS & PERIODS
    # =========================================================================
    
    async def create_fiscal_year(
        self,
        fiscal_year: int,
        start_month: int = 1,
        period_type: FiscalPeriodType = FiscalPeriodType.MONTH,
    ) -> List[FiscalPeriod]:
        """Create the contiguous monthly or quarterly periods of a fiscal year."""
        year_start = date(fiscal_year, start_month, 1)
        year_end = year_start + relativedelta(years=1) - relativedelta(days=1)
        
        existing = await self.db.execute(
            select(func.count(FiscalPeriod.id)).where(
                (FiscalPeriod.fiscal_year == fiscal_year)
                | and_(
                    FiscalPeriod.start_date <= year_end,
                    FiscalPeriod.end_date >= year_start,
                )
            )
        )
        if existing.scalar() or 0:
            raise ConflictException(
                f"Fiscal year {fiscal_year} overlaps existing fiscal periods",
                resource_type="FiscalPeriod",
                details={"fiscal_year": fiscal_year},
            )
        
        months_per_period = 3 if period_type == FiscalPeriodType.QUARTER else 1
        periods = []
        current_date = year_start
        period_num = 1
        
        while current_date <= year_end:
            period_end = current_date + relativedelta(months=months_per_period) - relativedelta(days=1)
            
            if period_type == FiscalPeriodType.QUARTER:
                period_name = f"Q{period_num} {fiscal_year}"
            else:
                period_name = current_date.strftime("%B %Y")
            
            period = FiscalPeriod(
                fiscal_year=fiscal_year,
                period_number=period_num,
                period_name=period_name,
                period_type=period_type,
                start_date=current_date,
                end_date=period_end,
                status=FiscalPeriodStatus.OPEN,
            )
            self.db.add(period)
            periods.append(period)
            
            current_date = period_end + relativedelta(days=1)
            period_num += 1
        
        await self.db.flush()
        logger.info(f"Created {len(periods)} {period_type.value} periods for fiscal year {fiscal_year}")
        return periods
    
    async def list_periods(self, fiscal_year: Optional[int] = None) -> List[FiscalPeriod]:
        query = select(FiscalPeriod)
        if fiscal_year is not None:
            query = query.where(FiscalPeriod.fiscal_year == fiscal_year)
        query = query.order_by(FiscalPeriod.start_date)
        
        result = await self.db.execute(query)
        return list(result.scalars().all())
    
    async def get_period(self, period_id: uuid.UUID, for_update: bool = False) -> FiscalPeriod:
        query = select(FiscalPeriod).where(FiscalPeriod.id == period_id)
        if for_update:
            query = query.with_for_update()
        
        result = await self.db.execute(query)
        period = result.scalar_one_or_none()
        if period is None:
            raise NotFoundException("FiscalPeriod", period_id, code=ErrorCode.PERIOD_NOT_FOUND)
        return period
    
    async def get_period_for_date(
        self,
        on_date: date,
        for_share: bool = False,
    ) -> Optional[FiscalPeriod]:
        """Get the fiscal period containing a specific date."""
        query = select(FiscalPeriod).where(
            and_(
                FiscalPeriod.start_date <= on_date,
                FiscalPeriod.end_date >= on_date,
            )
        )
        if for_share:
            query = query.with_for_update(read=True)
        
        result = await self.db.execute(query)
        return result.scalar_one_or_none()
    
    async def get_current_period(self, today: Optional[date] = None) -> Optional[FiscalPeriod]:
        return await self.get_period_for_date(today or date.today())
    
    async def resolve_writable_period(
        self,
        on_date: date,
        operation: str = "create entries",
    ) -> FiscalPeriod:
        """
        Resolve the period that will hold an entry dated `on_date`.
        
        Locked periods always refuse writes. Closed periods refuse them
        only when BLOCK_ENTRIES_IN_CLOSED_PERIODS is enabled.
        """
        period = await self.get_period_for_date(on_date, for_share=True)
        if period is None:
            raise NoFiscalPeriodException(on_date)
        
        if period.status == FiscalPeriodStatus.LOCKED:
            raise PeriodLockedException(period.period_name, operation)
        
        if period.status == FiscalPeriodStatus.CLOSED and settings.block_entries_in_closed_periods:
            raise PeriodClosedException(period.period_name, operation)
        
        return period
    
    # =========================================================================
    # PERIOD CLOSE & YEAR LOCK
    # =========================================================================
    
    async def close_period(self, period_id: uuid.UUID) -> PeriodCloseResponse:
        """Close an open fiscal period that has no draft entries."""
        period = await self.get_period(period_id, for_update=True)
        
        if period.status != FiscalPeriodStatus.OPEN:
            raise InvalidPeriodTransitionException(period.id, period.status.value, "close")
        
        draft_result = await self.db.execute(
            select(func.count(JournalEntry.id)).where(
                and_(
                    JournalEntry.fiscal_period_id == period.id,
                    JournalEntry.status == JournalEntryStatus.DRAFT,
                )
            )
        )
        draft_count = draft_result.scalar() or 0
        if draft_count:
            raise DraftEntriesRemainException(period.period_name, draft_count)
        
        result = await self.db.execute(
            update(FiscalPeriod)
            .where(
                and_(
                    FiscalPeriod.id == period.id,
                    FiscalPeriod.status == FiscalPeriodStatus.OPEN,
                )
            )
            .values(status=FiscalPeriodStatus.CLOSED, closed_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise ConcurrentModificationException("FiscalPeriod", period.id)
        
        await self.db.refresh(period)
        logger.info(f"Closed fiscal period {period.period_name}")
        
        return PeriodCloseResponse(
            period=FiscalPeriodResponse.model_validate(period),
            message="Period closed successfully",
        )
    
    async def lock_year(self, fiscal_year: int) -> YearLockResponse:
        """
        Lock every period of a fiscal year.
        
        All periods must already be closed. Locking is permanent: there is
        no unlock operation.
        """
        result = await self.db.execute(
            select(FiscalPeriod)
            .where(FiscalPeriod.fiscal_year == fiscal_year)
            .order_by(FiscalPeriod.start_date)
            .with_for_update()
        )
        periods = list(result.scalars().all())
        if not periods:
            raise NotFoundException(
                "FiscalPeriod",
                message=f"No fiscal periods exist for fiscal year {fiscal_year}",
                code=ErrorCode.PERIOD_NOT_FOUND,
            )
        
        for period in periods:
            if period.status == FiscalPeriodStatus.LOCKED:
                raise InvalidPeriodTransitionException(period.id, period.status.value, "lock")
        
        not_closed = [p for p in periods if p.status != FiscalPeriodStatus.CLOSED]
        if not_closed:
            raise OpenPeriodsRemainException(fiscal_year, len(not_closed))

        # Closed periods may still have received drafts
        draft_result = await self.db.execute(
            select(func.count(JournalEntry.id)).where(
                and_(
                    JournalEntry.fiscal_period_id.in_([p.id for p in periods]),
                    JournalEntry.status == JournalEntryStatus.DRAFT,
                )
            )
        )
        draft_count = draft_result.scalar() or 0
        if draft_count:
            raise DraftEntriesRemainException(f"fiscal year {fiscal_year}", draft_count)

        ledger = LedgerService(self.db)
        total_income, total_expenses = await ledger.income_and_expenses(
            periods[0].start_date,
            periods[-1].end_date,
        )
        
        update_result = await self.db.execute(
            update(FiscalPeriod)
            .where(
                and_(
                    FiscalPeriod.fiscal_year == fiscal_year,
                    FiscalPeriod.status == FiscalPeriodStatus.CLOSED,
                )
            )
            .values(status=FiscalPeriodStatus.LOCKED, locked_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        if update_result.rowcount != len(periods):
            raise ConcurrentModificationException("FiscalYear", fiscal_year)
        
        for period in periods:
            await self.db.refresh(period)
        
        net_profit = total_income - total_expenses
        logger.info(f"Locked fiscal year {fiscal_year} ({len(periods)} periods, net result {net_profit})")
        
        return YearLockResponse(
            fiscal_year=fiscal_year,
            periods_locked=len(periods),
            total_income=total_income,
            total_expenses=total_expenses,
            net_profit=net_profit,
            message=f"Fiscal year {fiscal_year} locked",
        )
