"""
Accounting Engine - Action Dispatcher

Single entry point behind `POST /accounting/engine`. A request names an
action and carries its params; the params are validated with the
action's schema, the matching service call runs inside one database
transaction and its result is returned in the success envelope.

Commit on success, rollback on any error. Errors propagate to the
FastAPI exception handlers, which render the error envelope.
"""

import logging
from datetime import date, datetime, timezone
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple, Type

from fastapi.encoders import jsonable_encoder
from pydantic import BaseModel, ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from accounting_engine.schemas.accounting import (
    AccountCreate,
    AccountResponse,
    AutoEntryRequest,
    BalanceSheetRequest,
    BalanceValidationRequest,
    ChartOfAccountsQuery,
    ClosingEntriesRequest,
    DateRangeRequest,
    EntryIdRequest,
    FiscalConfigResponse,
    FiscalConfigUpdate,
    FiscalPeriodResponse,
    FiscalPeriodsQuery,
    FiscalYearCreate,
    JournalEntriesQuery,
    JournalEntryCreate,
    JournalEntryResponse,
    JournalEntryReverse,
    JournalEntrySummary,
    LedgerRequest,
    PeriodCloseRequest,
    TrialBalanceRequest,
    YearLockRequest,
)
from accounting_engine.schemas.bank_reconciliation import (
    AICategorizeRequest,
    AutoReconcileRequest,
    BankTransactionImport,
    BankTransactionResponse,
    ReconciliationRuleCreate,
    ReconciliationRuleResponse,
    UnreconciledQuery,
)
from accounting_engine.schemas.partner import (
    DistributionRequest,
    PartnerCreate,
    PartnerDividendRequest,
    PartnerLoanRequest,
    PartnerResponse,
    PartnerSalaryRequest,
    PartnersQuery,
    PartnerTransactionCreate,
    PartnerTransactionResponse,
)
from accounting_engine.schemas.tax import (
    DeclarationGenerateRequest,
    DeclarationSubmitRequest,
    DeclarationsQuery,
    FiscalDeclarationResponse,
    TaxCalendarQuery,
)
from accounting_engine.services.ai_categorization import AICategorizationService
from accounting_engine.services.chart_of_accounts_service import ChartOfAccountsService
from accounting_engine.services.closing_service import ClosingService
from accounting_engine.services.dashboard_service import DashboardService
from accounting_engine.services.declaration_service import DeclarationService
from accounting_engine.services.fiscal_period_service import FiscalPeriodService
from accounting_engine.services.journal_service import JournalService
from accounting_engine.services.ledger_service import LedgerService
from accounting_engine.services.partner_service import PartnerService
from accounting_engine.services.reconciliation_service import ReconciliationService
from accounting_engine.services.statements_service import StatementsService
from accounting_engine.utils.error_handling import ErrorCode, ValidationException

logger = logging.getLogger(__name__)


class NoParams(BaseModel):
    pass


class AccountingEngine:
    """Dispatches `{action, params}` requests to the accounting services."""

    def __init__(self, db: AsyncSession, ai_client: Any = None):
        self.db = db
        self.ai_client = ai_client

        # action -> (params schema, handler)
        self.actions: Dict[str, Tuple[Type[BaseModel], Callable[[Any], Awaitable[Any]]]] = {
            # Dashboard
            "get_dashboard": (NoParams, self._get_dashboard),
            # Chart of accounts
            "seed_chart_of_accounts": (NoParams, self._seed_chart_of_accounts),
            "get_chart_of_accounts": (ChartOfAccountsQuery, self._get_chart_of_accounts),
            "create_account": (AccountCreate, self._create_account),
            # Fiscal configuration & periods
            "set_fiscal_config": (FiscalConfigUpdate, self._set_fiscal_config),
            "create_fiscal_year": (FiscalYearCreate, self._create_fiscal_year),
            "get_fiscal_periods": (FiscalPeriodsQuery, self._get_fiscal_periods),
            "close_fiscal_period": (PeriodCloseRequest, self._close_fiscal_period),
            "close_fiscal_year": (YearLockRequest, self._close_fiscal_year),
            "generate_closing_entries": (ClosingEntriesRequest, self._generate_closing_entries),
            # Journal
            "create_entry": (JournalEntryCreate, self._create_entry),
            "post_entry": (EntryIdRequest, self._post_entry),
            "reverse_entry": (JournalEntryReverse, self._reverse_entry),
            "delete_entry": (EntryIdRequest, self._delete_entry),
            "get_entry": (EntryIdRequest, self._get_entry),
            "get_entries": (JournalEntriesQuery, self._get_entries),
            "validate_balance": (BalanceValidationRequest, self._validate_balance),
            "generate_auto_entry": (AutoEntryRequest, self._generate_auto_entry),
            # Ledger & statements
            "get_ledger": (LedgerRequest, self._get_ledger),
            "get_trial_balance": (TrialBalanceRequest, self._get_trial_balance),
            "get_balance_sheet": (BalanceSheetRequest, self._get_balance_sheet),
            "get_income_statement": (DateRangeRequest, self._get_income_statement),
            "get_cash_flow": (DateRangeRequest, self._get_cash_flow),
            # Bank reconciliation
            "create_reconciliation_rule": (ReconciliationRuleCreate, self._create_reconciliation_rule),
            "import_bank_transactions": (BankTransactionImport, self._import_bank_transactions),
            "get_unreconciled_transactions": (UnreconciledQuery, self._get_unreconciled_transactions),
            "auto_reconcile": (AutoReconcileRequest, self._auto_reconcile),
            "ai_categorize": (AICategorizeRequest, self._ai_categorize),
            # Partners
            "create_partner": (PartnerCreate, self._create_partner),
            "get_partners": (PartnersQuery, self._get_partners),
            "partner_transaction": (PartnerTransactionCreate, self._partner_transaction),
            "partner_dividend": (PartnerDividendRequest, self._partner_dividend),
            "partner_salary": (PartnerSalaryRequest, self._partner_salary),
            "partner_loan": (PartnerLoanRequest, self._partner_loan),
            "partner_distribution": (DistributionRequest, self._partner_distribution),
            # Fiscal declarations
            "generate_fiscal_declaration": (DeclarationGenerateRequest, self._generate_fiscal_declaration),
            "submit_declaration": (DeclarationSubmitRequest, self._submit_declaration),
            "get_tax_declarations": (DeclarationsQuery, self._get_tax_declarations),
            "get_tax_calendar": (TaxCalendarQuery, self._get_tax_calendar),
        }

    # =========================================================================
    # DISPATCH
    # =========================================================================

    def parse_params(self, action: str, params: Optional[Dict[str, Any]]) -> Tuple[BaseModel, Callable]:
        if action not in self.actions:
            raise ValidationException(
                f"Unknown action: {action}",
                field="action",
                code=ErrorCode.UNKNOWN_ACTION,
            )

        schema, handler = self.actions[action]
        try:
            parsed = schema.model_validate(params or {})
        except ValidationError as e:
            errors = [
                {
                    "field": ".".join(str(loc) for loc in error["loc"]),
                    "message": error["msg"],
                    "type": error["type"],
                }
                for error in e.errors()
            ]
            raise ValidationException(
                f"Invalid params for action {action}",
                details={"errors": errors},
            )
        return parsed, handler

    async def execute(self, action: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Run one action in its own transaction and return the success envelope."""
        parsed, handler = self.parse_params(action, params)

        try:
            data = await handler(parsed)
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.debug(f"Action {action} completed")
        return {
            "success": True,
            "action": action,
            "data": jsonable_encoder(data),
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    # =========================================================================
    # DASHBOARD & CHART OF ACCOUNTS
    # =========================================================================

    async def _get_dashboard(self, params: NoParams):
        return await DashboardService(self.db).get_dashboard()

    async def _seed_chart_of_accounts(self, params: NoParams):
        created = await ChartOfAccountsService(self.db).seed_default_chart()
        return {
            "created": len(created),
            "accounts": [AccountResponse.model_validate(a) for a in created],
        }

    async def _get_chart_of_accounts(self, params: ChartOfAccountsQuery):
        accounts = await ChartOfAccountsService(self.db).get_accounts(
            account_group=params.account_group,
            is_detail=params.is_detail,
            active_only=not params.include_inactive,
        )
        return [AccountResponse.model_validate(a) for a in accounts]

    async def _create_account(self, params: AccountCreate):
        account = await ChartOfAccountsService(self.db).create_account(params)
        return AccountResponse.model_validate(account)

    # =========================================================================
    # FISCAL PERIODS
    # =========================================================================

    async def _set_fiscal_config(self, params: FiscalConfigUpdate):
        config = await FiscalPeriodService(self.db).set_fiscal_config(params)
        return FiscalConfigResponse.model_validate(config)

    async def _create_fiscal_year(self, params: FiscalYearCreate):
        periods = await FiscalPeriodService(self.db).create_fiscal_year(
            params.fiscal_year,
            start_month=params.start_month,
            period_type=params.period_type,
        )
        return [FiscalPeriodResponse.model_validate(p) for p in periods]

    async def _get_fiscal_periods(self, params: FiscalPeriodsQuery):
        periods = await FiscalPeriodService(self.db).list_periods(params.fiscal_year)
        return [FiscalPeriodResponse.model_validate(p) for p in periods]

    async def _close_fiscal_period(self, params: PeriodCloseRequest):
        return await FiscalPeriodService(self.db).close_period(params.period_id)

    async def _close_fiscal_year(self, params: YearLockRequest):
        return await FiscalPeriodService(self.db).lock_year(params.fiscal_year)

    async def _generate_closing_entries(self, params: ClosingEntriesRequest):
        return await ClosingService(self.db).generate_closing_entries(params.fiscal_year)

    # =========================================================================
    # JOURNAL
    # =========================================================================

    async def _create_entry(self, params: JournalEntryCreate):
        entry = await JournalService(self.db).create_entry(params)
        return JournalEntryResponse.model_validate(entry)

    async def _post_entry(self, params: EntryIdRequest):
        entry = await JournalService(self.db).post_entry(params.entry_id)
        return JournalEntryResponse.model_validate(entry)

    async def _reverse_entry(self, params: JournalEntryReverse):
        reversal = await JournalService(self.db).reverse_entry(
            params.entry_id,
            params.reversal_date or date.today(),
            params.reason,
        )
        return JournalEntryResponse.model_validate(reversal)

    async def _delete_entry(self, params: EntryIdRequest):
        deleted_id = await JournalService(self.db).delete_draft(params.entry_id)
        return {"deleted": True, "entry_id": deleted_id}

    async def _get_entry(self, params: EntryIdRequest):
        entry = await JournalService(self.db).get_entry(params.entry_id)
        return JournalEntryResponse.model_validate(entry)

    async def _get_entries(self, params: JournalEntriesQuery):
        entries = await JournalService(self.db).list_entries(
            status=params.status,
            fiscal_period_id=params.fiscal_period_id,
            start_date=params.start_date,
            end_date=params.end_date,
            limit=params.limit,
        )
        return [JournalEntrySummary.model_validate(e) for e in entries]

    async def _validate_balance(self, params: BalanceValidationRequest):
        return await JournalService(self.db).validate_balance(params.entry_id)

    async def _generate_auto_entry(self, params: AutoEntryRequest):
        entry = await JournalService(self.db).generate_auto_entry(
            params.event_type,
            params.event_data,
            params.entry_date,
        )
        return JournalEntryResponse.model_validate(entry)

    # =========================================================================
    # LEDGER & STATEMENTS
    # =========================================================================

    async def _get_ledger(self, params: LedgerRequest):
        return await LedgerService(self.db).get_ledger(
            params.account_code,
            start_date=params.start_date,
            end_date=params.end_date,
            include_opening=params.include_opening,
        )

    async def _get_trial_balance(self, params: TrialBalanceRequest):
        return await StatementsService(self.db).get_trial_balance(
            period_id=params.period_id,
            start_date=params.start_date,
            end_date=params.end_date,
        )

    async def _get_balance_sheet(self, params: BalanceSheetRequest):
        return await StatementsService(self.db).get_balance_sheet(params.as_of_date)

    async def _get_income_statement(self, params: DateRangeRequest):
        return await StatementsService(self.db).get_income_statement(params.start_date, params.end_date)

    async def _get_cash_flow(self, params: DateRangeRequest):
        return await StatementsService(self.db).get_cash_flow(params.start_date, params.end_date)

    # =========================================================================
    # BANK RECONCILIATION
    # =========================================================================

    async def _create_reconciliation_rule(self, params: ReconciliationRuleCreate):
        rule = await ReconciliationService(self.db).create_rule(params)
        return ReconciliationRuleResponse.model_validate(rule)

    async def _import_bank_transactions(self, params: BankTransactionImport):
        transactions = await ReconciliationService(self.db).import_transactions(
            params.bank_account_id,
            params.transactions,
        )
        return {
            "imported": len(transactions),
            "transactions": [BankTransactionResponse.model_validate(t) for t in transactions],
        }

    async def _get_unreconciled_transactions(self, params: UnreconciledQuery):
        transactions = await ReconciliationService(self.db).get_unreconciled(
            params.bank_account_id,
            limit=params.limit,
        )
        return [BankTransactionResponse.model_validate(t) for t in transactions]

    async def _auto_reconcile(self, params: AutoReconcileRequest):
        return await ReconciliationService(self.db).auto_reconcile(params.bank_account_id)

    async def _ai_categorize(self, params: AICategorizeRequest):
        service = AICategorizationService(self.db, client=self.ai_client)
        return await service.categorize(params.description, params.amount, params.counterparty)

    # =========================================================================
    # PARTNERS
    # =========================================================================

    async def _create_partner(self, params: PartnerCreate):
        partner = await PartnerService(self.db).create_partner(params)
        return PartnerResponse.model_validate(partner)

    async def _get_partners(self, params: PartnersQuery):
        partners = await PartnerService(self.db).list_partners(params.active_only)
        return [PartnerResponse.model_validate(p) for p in partners]

    async def _partner_transaction(self, params: PartnerTransactionCreate):
        transaction = await PartnerService(self.db).record_transaction(params)
        return PartnerTransactionResponse.model_validate(transaction)

    async def _partner_dividend(self, params: PartnerDividendRequest):
        return await PartnerService(self.db).partner_dividend(params)

    async def _partner_salary(self, params: PartnerSalaryRequest):
        return await PartnerService(self.db).partner_salary(params)

    async def _partner_loan(self, params: PartnerLoanRequest):
        return await PartnerService(self.db).partner_loan(params)

    async def _partner_distribution(self, params: DistributionRequest):
        return await PartnerService(self.db).partner_distribution(params)

    # =========================================================================
    # FISCAL DECLARATIONS
    # =========================================================================

    async def _generate_fiscal_declaration(self, params: DeclarationGenerateRequest):
        declaration = await DeclarationService(self.db).generate(params.declaration_type, params.period_id)
        return FiscalDeclarationResponse.model_validate(declaration)

    async def _submit_declaration(self, params: DeclarationSubmitRequest):
        declaration = await DeclarationService(self.db).submit_declaration(
            params.declaration_id,
            submission_reference=params.submission_reference,
            submission_date=params.submission_date,
        )
        return FiscalDeclarationResponse.model_validate(declaration)

    async def _get_tax_declarations(self, params: DeclarationsQuery):
        return await DeclarationService(self.db).get_tax_declarations(params.fiscal_year, params.status)

    async def _get_tax_calendar(self, params: TaxCalendarQuery):
        return await DeclarationService(self.db).get_tax_calendar(params.fiscal_year)
