"""
Accounting Engine - Services Package

Business logic services.
"""

from accounting_engine.services.chart_of_accounts_service import ChartOfAccountsService
from accounting_engine.services.fiscal_period_service import FiscalPeriodService
from accounting_engine.services.ledger_service import LedgerService
from accounting_engine.services.journal_service import JournalService
from accounting_engine.services.statements_service import StatementsService
from accounting_engine.services.closing_service import ClosingService
from accounting_engine.services.reconciliation_service import ReconciliationService
from accounting_engine.services.ai_categorization import AICategorizationService
from accounting_engine.services.partner_service import PartnerService
from accounting_engine.services.declaration_service import DeclarationService
from accounting_engine.services.dashboard_service import DashboardService
from accounting_engine.services.engine import AccountingEngine

__all__ = [
    "ChartOfAccountsService",
    "FiscalPeriodService",
    "LedgerService",
    "JournalService",
    "StatementsService",
    "ClosingService",
    "ReconciliationService",
    "AICategorizationService",
    "PartnerService",
    "DeclarationService",
    "DashboardService",
    "AccountingEngine",
]
