"""
Accounting Engine - Dashboard Service

One-call overview of the books:
1. Fiscal configuration and current period
2. KPIs for the current fiscal year
3. Cash, receivables and pending VAT balances
4. Recent entries, unreconciled bank lines, open declarations, partners
5. Alerts (overdue / due soon declarations, reconciliation backlog)
"""

from datetime import date
from typing import Any, Dict, List, Optional

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from accounting_engine.config import settings
from accounting_engine.models.accounting import FiscalPeriod
from accounting_engine.models.bank_reconciliation import BankTransaction
from accounting_engine.models.tax import DeclarationStatus, FiscalDeclaration
from accounting_engine.schemas.accounting import (
    FiscalConfigResponse,
    FiscalPeriodResponse,
    JournalEntrySummary,
)
from accounting_engine.schemas.bank_reconciliation import BankTransactionResponse
from accounting_engine.schemas.partner import PartnerResponse
from accounting_engine.schemas.tax import FiscalDeclarationResponse
from accounting_engine.services.fiscal_period_service import FiscalPeriodService
from accounting_engine.services.journal_service import JournalService
from accounting_engine.services.ledger_service import LedgerService, ZERO
from accounting_engine.services.partner_service import PartnerService
from accounting_engine.services.reconciliation_service import ReconciliationService


RECENT_ENTRIES_LIMIT = 10
UNRECONCILED_LIMIT = 20


class DashboardService:
    """Aggregates the dashboard payload."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.ledger = LedgerService(db)
        self.periods = FiscalPeriodService(db)

    async def get_dashboard(self, today: Optional[date] = None) -> Dict[str, Any]:
        today = today or date.today()

        config = await self.periods.get_fiscal_config()
        current_period = await self.periods.get_current_period(today)
        fiscal_year = config.fiscal_year if config else today.year

        unreconciled_count = await self._count_unreconciled()
        pending_declarations = await self._get_pending_declarations()

        return {
            "config": FiscalConfigResponse.model_validate(config) if config else None,
            "current_period": FiscalPeriodResponse.model_validate(current_period) if current_period else None,
            "kpis": await self._get_kpis(fiscal_year, unreconciled_count, len(pending_declarations)),
            "cash_balance": await self.ledger.balance(code_prefix=settings.cash_account_prefix),
            "pending_receivables": await self.ledger.balance(code_prefix=settings.receivables_account_code),
            "pending_vat": await self._get_pending_vat(),
            "recent_entries": await self._get_recent_entries(),
            "unreconciled_transactions": await self._get_unreconciled(),
            "pending_declarations": [FiscalDeclarationResponse.model_validate(d) for d in pending_declarations],
            "partners": await self._get_partners(),
            "alerts": self._build_alerts(pending_declarations, unreconciled_count, today),
        }

    # ===========================================
    # HELPERS
    # ===========================================

    async def _get_kpis(
        self,
        fiscal_year: int,
        unreconciled_count: int,
        pending_declarations_count: int,
    ) -> Dict[str, Any]:
        result = await self.db.execute(
            select(func.min(FiscalPeriod.start_date), func.max(FiscalPeriod.end_date))
            .where(FiscalPeriod.fiscal_year == fiscal_year)
        )
        year_start, year_end = result.one()

        income = expenses = ZERO
        if year_start is not None:
            income, expenses = await self.ledger.income_and_expenses(year_start, year_end)

        return {
            "fiscal_year": fiscal_year,
            "total_income": income,
            "total_expenses": expenses,
            "net_result": income - expenses,
            "unreconciled_count": unreconciled_count,
            "pending_declarations": pending_declarations_count,
        }

    async def _get_pending_vat(self):
        """Output VAT (477) minus input VAT (472), both in their normal orientation."""
        output_debit, output_credit = await self.ledger.totals(code_prefix=settings.output_vat_account_code)
        input_debit, input_credit = await self.ledger.totals(code_prefix=settings.input_vat_account_code)
        return (output_credit - output_debit) - (input_debit - input_credit)

    async def _count_unreconciled(self) -> int:
        result = await self.db.execute(
            select(func.count(BankTransaction.id)).where(BankTransaction.is_reconciled == False)
        )
        return result.scalar() or 0

    async def _get_recent_entries(self) -> List[JournalEntrySummary]:
        entries = await JournalService(self.db).list_entries(limit=RECENT_ENTRIES_LIMIT)
        return [JournalEntrySummary.model_validate(e) for e in entries]

    async def _get_unreconciled(self) -> List[BankTransactionResponse]:
        transactions = await ReconciliationService(self.db).get_unreconciled(limit=UNRECONCILED_LIMIT)
        return [BankTransactionResponse.model_validate(t) for t in transactions]

    async def _get_pending_declarations(self) -> List[FiscalDeclaration]:
        result = await self.db.execute(
            select(FiscalDeclaration)
            .where(FiscalDeclaration.status != DeclarationStatus.FILED)
            .order_by(FiscalDeclaration.due_date)
        )
        return list(result.scalars().all())

    async def _get_partners(self) -> List[PartnerResponse]:
        partners = await PartnerService(self.db).list_partners(active_only=True)
        return [PartnerResponse.model_validate(p) for p in partners]

    def _build_alerts(
        self,
        pending_declarations: List[FiscalDeclaration],
        unreconciled_count: int,
        today: date,
    ) -> List[Dict[str, Any]]:
        alerts = []

        for declaration in pending_declarations:
            days_left = (declaration.due_date - today).days
            if days_left < 0:
                alerts.append({
                    "type": "declaration_overdue",
                    "severity": "error",
                    "message": f"{declaration.declaration_type} {declaration.declaration_period} is overdue",
                    "due_date": declaration.due_date,
                    "declaration_id": declaration.id,
                })
            elif days_left <= settings.declaration_due_soon_days:
                alerts.append({
                    "type": "declaration_due_soon",
                    "severity": "warning",
                    "message": f"{declaration.declaration_type} {declaration.declaration_period} is due in {days_left} days",
                    "due_date": declaration.due_date,
                    "declaration_id": declaration.id,
                })

        if unreconciled_count > settings.unreconciled_alert_threshold:
            alerts.append({
                "type": "unreconciled_transactions",
                "severity": "info",
                "message": f"{unreconciled_count} bank transactions are pending reconciliation",
                "count": unreconciled_count,
            })

        return alerts
