"""
Accounting Engine - Accounting Schemas

Pydantic schemas for the chart of accounts, fiscal periods, journal
entries, ledger projection and financial statements.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, Field, ConfigDict, model_validator

from accounting_engine.models.accounting import (
    AccountType,
    NormalBalance,
    Jurisdiction,
    FiscalPeriodStatus,
    FiscalPeriodType,
    JournalEntryStatus,
)


# =============================================================================
# CHART OF ACCOUNTS
# =============================================================================

class AccountCreate(BaseModel):
    """Schema for creating an account."""
    account_code: str = Field(..., min_length=1, max_length=20, pattern=r"^[1-9][0-9]*$")
    account_name: str = Field(..., min_length=1, max_length=200)
    account_type: AccountType
    normal_balance: Optional[NormalBalance] = None
    is_detail: bool = True
    description: Optional[str] = None


class AccountResponse(BaseModel):
    """Schema for account response."""
    model_config = ConfigDict(from_attributes=True)
    
    id: UUID
    account_code: str
    account_name: str
    account_type: AccountType
    account_group: int
    normal_balance: NormalBalance
    is_detail: bool
    is_active: bool
    description: Optional[str] = None


class ChartOfAccountsQuery(BaseModel):
    account_group: Optional[int] = Field(None, ge=1, le=9)
    is_detail: Optional[bool] = None
    include_inactive: bool = False


# =============================================================================
# FISCAL CONFIGURATION & PERIODS
# =============================================================================

class FiscalConfigUpdate(BaseModel):
    """Schema for setting the active fiscal configuration."""
    company_name: str = Field(..., min_length=1, max_length=200)
    tax_id: Optional[str] = None
    jurisdiction: Jurisdiction = Jurisdiction.SPAIN
    fiscal_year: int = Field(..., ge=1900, le=2999)
    corporate_tax_rate: Optional[Decimal] = Field(None, ge=0, le=100)
    currency: str = Field("EUR", min_length=3, max_length=3)


class FiscalConfigResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    
    id: UUID
    company_name: str
    tax_id: Optional[str] = None
    jurisdiction: Jurisdiction
    fiscal_year: int
    corporate_tax_rate: Optional[Decimal] = None
    currency: str
    is_active: bool


class FiscalYearCreate(BaseModel):
    """Schema for creating the periods of a fiscal year."""
    fiscal_year: int = Field(..., ge=1900, le=2999)
    start_month: int = Field(1, ge=1, le=12)
    period_type: FiscalPeriodType = FiscalPeriodType.MONTH


class FiscalPeriodResponse(BaseModel):
    """Schema for fiscal period response."""
    model_config = ConfigDict(from_attributes=True)
    
    id: UUID
    fiscal_year: int
    period_number: int
    period_name: str
    period_type: FiscalPeriodType
    start_date: date
    end_date: date
    status: FiscalPeriodStatus
    closed_at: Optional[datetime] = None
    locked_at: Optional[datetime] = None


class FiscalPeriodsQuery(BaseModel):
    fiscal_year: Optional[int] = None


class PeriodCloseRequest(BaseModel):
    period_id: UUID


class PeriodCloseResponse(BaseModel):
    period: FiscalPeriodResponse
    message: str


class YearLockRequest(BaseModel):
    fiscal_year: int


class YearLockResponse(BaseModel):
    """Result of locking a fiscal year."""
    fiscal_year: int
    periods_locked: int
    total_income: Decimal
    total_expenses: Decimal
    net_profit: Decimal
    message: str


# =============================================================================
# JOURNAL ENTRIES
# =============================================================================

class JournalEntryLineCreate(BaseModel):
    """Schema for creating a journal entry line."""
    account_code: str = Field(..., min_length=1, max_length=20)
    debit_amount: Decimal = Field(Decimal("0.00"), ge=0, decimal_places=2)
    credit_amount: Decimal = Field(Decimal("0.00"), ge=0, decimal_places=2)
    description: Optional[str] = Field(None, max_length=500)
    tax_code: Optional[str] = Field(None, max_length=20)
    
    @model_validator(mode="after")
    def one_sided(self):
        if (self.debit_amount > 0) == (self.credit_amount > 0):
            raise ValueError("Each line must carry either a debit or a credit amount, not both or neither")
        return self


class JournalEntryCreate(BaseModel):
    """Schema for creating a journal entry (balance is checked by the service)."""
    entry_date: date
    description: str = Field(..., min_length=1, max_length=500)
    lines: List[JournalEntryLineCreate] = Field(..., min_length=2)
    reference_type: Optional[str] = Field(None, max_length=50)
    reference_id: Optional[str] = Field(None, max_length=100)
    source_document: Optional[str] = Field(None, max_length=200)
    auto_post: bool = False


class JournalEntryLineResponse(BaseModel):
    """Schema for journal entry line response."""
    model_config = ConfigDict(from_attributes=True)
    
    id: UUID
    line_number: int
    account_id: UUID
    account_code: str
    account_name: str
    debit_amount: Decimal
    credit_amount: Decimal
    description: Optional[str] = None
    tax_code: Optional[str] = None


class JournalEntrySummary(BaseModel):
    """Journal entry without its lines."""
    model_config = ConfigDict(from_attributes=True)
    
    id: UUID
    entry_number: str
    entry_date: date
    description: str
    fiscal_period_id: UUID
    status: JournalEntryStatus
    total_debit: Decimal
    total_credit: Decimal
    reference_type: Optional[str] = None
    reference_id: Optional[str] = None
    source_document: Optional[str] = None
    is_reversing: bool
    reversed_entry_id: Optional[UUID] = None
    is_automatic: bool
    is_closing_entry: bool
    posted_at: Optional[datetime] = None
    created_at: datetime


class JournalEntryResponse(JournalEntrySummary):
    """Journal entry with lines."""
    lines: List[JournalEntryLineResponse] = []


class EntryIdRequest(BaseModel):
    entry_id: UUID


class JournalEntryReverse(BaseModel):
    entry_id: UUID
    reversal_date: Optional[date] = None
    reason: Optional[str] = Field(None, max_length=500)


class JournalEntriesQuery(BaseModel):
    status: Optional[JournalEntryStatus] = None
    fiscal_period_id: Optional[UUID] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    limit: int = Field(50, ge=1, le=500)


class BalanceValidationRequest(BaseModel):
    entry_id: Optional[UUID] = None


class AutoEntryRequest(BaseModel):
    """Schema for generating an entry from a template."""
    event_type: str
    entry_date: date
    event_data: Dict[str, Any] = Field(default_factory=dict)


# =============================================================================
# LEDGER PROJECTION
# =============================================================================

class LedgerMovement(BaseModel):
    """One posted line folded into a running balance."""
    entry_id: UUID
    entry_number: str
    entry_date: date
    line_number: int
    account_code: str
    description: Optional[str] = None
    debit_amount: Decimal
    credit_amount: Decimal
    balance: Decimal


class LedgerRequest(BaseModel):
    account_code: str
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    include_opening: bool = False


class AccountLedgerReport(BaseModel):
    """Account statement over a date window."""
    account: AccountResponse
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    opening_balance: Decimal
    total_debit: Decimal
    total_credit: Decimal
    closing_balance: Decimal
    movements: List[LedgerMovement]


# =============================================================================
# FINANCIAL STATEMENTS
# =============================================================================

class TrialBalanceRequest(BaseModel):
    period_id: Optional[UUID] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    
    @model_validator(mode="after")
    def period_or_range(self):
        if self.period_id is None and (self.start_date is None or self.end_date is None):
            raise ValueError("Provide period_id or both start_date and end_date")
        return self


class TrialBalanceItem(BaseModel):
    """Item in trial balance report."""
    account_id: UUID
    account_code: str
    account_name: str
    account_type: AccountType
    total_debit: Decimal
    total_credit: Decimal
    balance_debit: Decimal
    balance_credit: Decimal


class TrialBalanceReport(BaseModel):
    """Trial balance report."""
    period_id: Optional[UUID] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    items: List[TrialBalanceItem]
    total_debit: Decimal
    total_credit: Decimal
    balance_debit_total: Decimal
    balance_credit_total: Decimal
    balanced: bool


class BalanceSheetRequest(BaseModel):
    as_of_date: date


class BalanceSheetItem(BaseModel):
    """Item in balance sheet."""
    account_id: Optional[UUID] = None
    account_code: Optional[str] = None
    account_name: str
    balance: Decimal


class BalanceSheetReport(BaseModel):
    """Balance sheet report."""
    as_of_date: date
    assets: List[BalanceSheetItem]
    liabilities: List[BalanceSheetItem]
    equity: List[BalanceSheetItem]
    total_assets: Decimal
    total_liabilities: Decimal
    total_equity: Decimal
    total_liabilities_and_equity: Decimal
    balanced: bool


class DateRangeRequest(BaseModel):
    start_date: date
    end_date: date


class IncomeStatementItem(BaseModel):
    """Item in income statement."""
    account_id: UUID
    account_code: str
    account_name: str
    amount: Decimal


class IncomeStatementReport(BaseModel):
    """Income statement (P&L) report."""
    start_date: date
    end_date: date
    income: List[IncomeStatementItem]
    expenses: List[IncomeStatementItem]
    total_income: Decimal
    total_expenses: Decimal
    gross_profit: Decimal
    net_profit: Decimal


class CashFlowAccountItem(BaseModel):
    account_code: str
    account_name: str
    opening_balance: Decimal
    inflows: Decimal
    outflows: Decimal
    closing_balance: Decimal


class CashFlowReport(BaseModel):
    """Cash flow report over the cash accounts."""
    start_date: date
    end_date: date
    opening_balance: Decimal
    inflows: Decimal
    outflows: Decimal
    net_cash_flow: Decimal
    closing_balance: Decimal
    accounts: List[CashFlowAccountItem]


# =============================================================================
# CLOSING
# =============================================================================

class ClosingEntriesRequest(BaseModel):
    fiscal_year: int


class ClosingEntriesResponse(BaseModel):
    entry: JournalEntryResponse
    total_income: Decimal
    total_expenses: Decimal
    net_profit: Decimal
    message: str
