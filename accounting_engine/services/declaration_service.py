"""
Accounting Engine - Fiscal Declaration Service

Generates, files and lists periodic tax declarations, and builds the
filing calendar of a fiscal year.
"""

import logging
import uuid
from collections import defaultdict
from datetime import date, datetime, timezone
from typing import Dict, List, Optional

from sqlalchemy import select, and_
from sqlalchemy.ext.asyncio import AsyncSession

from accounting_engine.config import settings
from accounting_engine.models.accounting import FiscalPeriodType, Jurisdiction
from accounting_engine.models.tax import DeclarationStatus, FiscalDeclaration
from accounting_engine.schemas.tax import (
    DeclarationsOverview,
    DeclarationsSummary,
    FiscalDeclarationResponse,
    TaxCalendar,
    TaxCalendarItem,
)
from accounting_engine.services.fiscal_period_service import FiscalPeriodService
from accounting_engine.services.tax_calculators import (
    CALCULATORS,
    DeclarationContext,
    get_calculator,
    twentieth_of_next_month,
)
from accounting_engine.utils.error_handling import ErrorCode, NotFoundException

logger = logging.getLogger(__name__)


DECLARATION_FAMILIES = ("iva", "irpf", "corporate", "igi", "other")


def declaration_family(declaration_type: str) -> str:
    calculator = CALCULATORS.get(declaration_type)
    return calculator.family if calculator else "other"


def calendar_status(
    due_date: date,
    declaration: Optional[FiscalDeclaration],
    today: date,
) -> str:
    """completed / overdue / upcoming / pending."""
    if declaration is not None and declaration.status == DeclarationStatus.FILED:
        return "completed"
    if due_date < today:
        return "overdue"
    if (due_date - today).days <= settings.declaration_due_soon_days:
        return "upcoming"
    return "pending"


class DeclarationService:
    """Service for fiscal declarations."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.periods = FiscalPeriodService(db)

    async def _find(
        self,
        period_id: uuid.UUID,
        declaration_type: str,
    ) -> Optional[FiscalDeclaration]:
        result = await self.db.execute(
            select(FiscalDeclaration).where(
                and_(
                    FiscalDeclaration.fiscal_period_id == period_id,
                    FiscalDeclaration.declaration_type == declaration_type,
                )
            )
        )
        return result.scalar_one_or_none()

    async def get_declaration(self, declaration_id: uuid.UUID) -> FiscalDeclaration:
        result = await self.db.execute(
            select(FiscalDeclaration).where(FiscalDeclaration.id == declaration_id)
        )
        declaration = result.scalar_one_or_none()
        if declaration is None:
            raise NotFoundException(
                "FiscalDeclaration", declaration_id, code=ErrorCode.DECLARATION_NOT_FOUND,
            )
        return declaration

    # =========================================================================
    # GENERATE & SUBMIT
    # =========================================================================

    async def generate(self, declaration_type: str, period_id: uuid.UUID) -> FiscalDeclaration:
        """
        Calculate a declaration for a fiscal period and upsert it.

        Regenerating overwrites the figures of the existing row for the same
        (period, type), including a filed one, which goes back to calculated.
        """
        calculator = get_calculator(declaration_type)
        period = await self.periods.get_period(period_id)
        config = await self.periods.get_fiscal_config()

        figures = await calculator.calculate(DeclarationContext(self.db, period, config))

        declaration = await self._find(period.id, declaration_type)
        if declaration is None:
            declaration = FiscalDeclaration(
                declaration_type=declaration_type,
                fiscal_period_id=period.id,
                fiscal_year=period.fiscal_year,
            )
            self.db.add(declaration)

        declaration.declaration_period = figures.declaration_period
        declaration.due_date = figures.due_date
        declaration.calculated_data = figures.calculated_data
        declaration.total_amount = figures.total_amount
        declaration.status = DeclarationStatus.CALCULATED

        await self.db.flush()
        logger.info(
            f"Declaration {declaration_type} for {period.period_name} calculated: {figures.total_amount}"
        )
        return declaration

    async def submit_declaration(
        self,
        declaration_id: uuid.UUID,
        submission_reference: Optional[str] = None,
        submission_date: Optional[datetime] = None,
    ) -> FiscalDeclaration:
        declaration = await self.get_declaration(declaration_id)

        declaration.status = DeclarationStatus.FILED
        declaration.filed_at = submission_date or datetime.now(timezone.utc)
        declaration.submission_reference = submission_reference

        await self.db.flush()
        logger.info(f"Declaration {declaration.declaration_type} {declaration.declaration_period} filed")
        return declaration

    # =========================================================================
    # LISTING
    # =========================================================================

    async def list_declarations(
        self,
        fiscal_year: Optional[int] = None,
        status: Optional[DeclarationStatus] = None,
    ) -> List[FiscalDeclaration]:
        query = select(FiscalDeclaration)
        if fiscal_year is not None:
            query = query.where(FiscalDeclaration.fiscal_year == fiscal_year)
        if status is not None:
            query = query.where(FiscalDeclaration.status == status)
        query = query.order_by(FiscalDeclaration.due_date, FiscalDeclaration.declaration_type)

        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def get_tax_declarations(
        self,
        fiscal_year: Optional[int] = None,
        status: Optional[DeclarationStatus] = None,
        today: Optional[date] = None,
    ) -> DeclarationsOverview:
        """Declarations grouped by family with status counts."""
        today = today or date.today()
        declarations = await self.list_declarations(fiscal_year, status)
        responses = [FiscalDeclarationResponse.model_validate(d) for d in declarations]

        by_type: Dict[str, List[FiscalDeclarationResponse]] = {family: [] for family in DECLARATION_FAMILIES}
        for response in responses:
            by_type[declaration_family(response.declaration_type)].append(response)

        counts = defaultdict(int)
        for declaration in declarations:
            counts[declaration.status] += 1
        overdue = sum(
            1 for d in declarations
            if d.status != DeclarationStatus.FILED and d.due_date < today
        )

        return DeclarationsOverview(
            declarations=responses,
            by_type=by_type,
            summary=DeclarationsSummary(
                total=len(declarations),
                pending=counts[DeclarationStatus.PENDING],
                calculated=counts[DeclarationStatus.CALCULATED],
                filed=counts[DeclarationStatus.FILED],
                overdue=overdue,
            ),
        )

    # =========================================================================
    # CALENDAR
    # =========================================================================

    async def get_tax_calendar(
        self,
        fiscal_year: Optional[int] = None,
        today: Optional[date] = None,
    ) -> TaxCalendar:
        """
        Filing obligations of a fiscal year: VAT (IGI in Andorra) for every
        period, withholdings for quarterly periods and one corporate tax return.
        """
        today = today or date.today()
        config = await self.periods.get_fiscal_config()
        if fiscal_year is None:
            fiscal_year = config.fiscal_year if config else today.year

        periods = await self.periods.list_periods(fiscal_year)
        existing = {
            (d.fiscal_period_id, d.declaration_type): d
            for d in await self.list_declarations(fiscal_year)
        }

        items = []

        def add_item(declaration_type: str, period, due_date: date, period_name: str) -> None:
            declaration = existing.get((period.id, declaration_type))
            items.append(TaxCalendarItem(
                declaration_type=declaration_type,
                name=get_calculator(declaration_type).name,
                period_id=period.id,
                period_name=period_name,
                due_date=due_date,
                status=calendar_status(due_date, declaration, today),
                declaration_id=declaration.id if declaration else None,
            ))

        andorra = config is not None and config.jurisdiction == Jurisdiction.ANDORRA
        indirect_type = "igi_andorra" if andorra else "modelo_303"

        for period in periods:
            due_date = twentieth_of_next_month(period.end_date)
            add_item(indirect_type, period, due_date, period.period_name)
            if period.period_type == FiscalPeriodType.QUARTER:
                add_item("modelo_111", period, due_date, period.period_name)

        if periods:
            corporate_type = "is_andorra" if andorra else "modelo_200"
            calculator = get_calculator(corporate_type)
            add_item(
                corporate_type,
                periods[-1],
                calculator.due_date(fiscal_year),
                f"Fiscal year {fiscal_year}",
            )

        items.sort(key=lambda item: (item.due_date, item.declaration_type))
        return TaxCalendar(fiscal_year=fiscal_year, items=items)
