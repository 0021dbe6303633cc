"""
Accounting Engine - Chart of Accounts & General Ledger Models

Double-entry accounting core with:
- Chart of Accounts (PGC groups 1-7, detail vs summary accounts)
- Fiscal configuration and fiscal periods (open -> closed -> locked)
- Journal entries with ordered, balanced lines

Balances are never stored: every report replays posted lines.
"""

import uuid
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import List, Optional

from sqlalchemy import (
    Boolean, Date, DateTime, ForeignKey, Integer, Numeric, String, Text, Uuid,
    Enum as SQLEnum, UniqueConstraint, Index, CheckConstraint
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from accounting_engine.models.base import BaseModel


# =============================================================================
# ENUMS
# =============================================================================

class AccountType(str, Enum):
    """Main account types."""
    ASSET = "asset"
    LIABILITY = "liability"
    EQUITY = "equity"
    INCOME = "income"
    EXPENSE = "expense"


class NormalBalance(str, Enum):
    """Side on which an account's balance normally sits."""
    DEBIT = "debit"
    CREDIT = "credit"


class Jurisdiction(str, Enum):
    """Tax jurisdiction of the bookkeeping entity."""
    SPAIN = "spain"
    ANDORRA = "andorra"


class FiscalPeriodStatus(str, Enum):
    """Period state machine. Only advances OPEN -> CLOSED -> LOCKED."""
    OPEN = "open"
    CLOSED = "closed"
    LOCKED = "locked"


class FiscalPeriodType(str, Enum):
    MONTH = "month"
    QUARTER = "quarter"


class JournalEntryStatus(str, Enum):
    """Journal entry lifecycle."""
    DRAFT = "draft"
    POSTED = "posted"
    REVERSED = "reversed"


# Entries whose lines contribute to ledger reads. A reversed entry keeps its
# history; the reversal adds the offsetting lines.
LEDGER_VISIBLE_STATUSES = (JournalEntryStatus.POSTED, JournalEntryStatus.REVERSED)


# =============================================================================
# CHART OF ACCOUNTS
# =============================================================================

class Account(BaseModel):
    """
    Chart of Accounts entry.
    
    The account group is the leading digit of the code (1-7 in the PGC).
    Summary accounts aggregate their children and are never posted to.
    """
    
    __tablename__ = "chart_of_accounts"
    
    account_code: Mapped[str] = mapped_column(
        String(20), nullable=False, unique=True,
        comment="Hierarchical account code (e.g., 57, 572, 4751)",
    )
    account_name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    
    # Classification
    account_type: Mapped[AccountType] = mapped_column(
        SQLEnum(AccountType), nullable=False,
    )
    account_group: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    normal_balance: Mapped[NormalBalance] = mapped_column(
        SQLEnum(NormalBalance), nullable=False,
    )
    
    # Flags
    is_detail: Mapped[bool] = mapped_column(
        Boolean, default=True, nullable=False,
        comment="Leaf account that can receive journal lines",
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    
    __table_args__ = (
        CheckConstraint('account_group BETWEEN 1 AND 9', name='ck_account_group_range'),
    )
    
    def __repr__(self) -> str:
        return f"<Account({self.account_code} - {self.account_name})>"


# =============================================================================
# FISCAL CONFIGURATION & PERIODS
# =============================================================================

class FiscalConfig(BaseModel):
    """Company-level fiscal settings (jurisdiction drives tax rates)."""
    
    __tablename__ = "fiscal_config"
    
    company_name: Mapped[str] = mapped_column(String(200), nullable=False)
    tax_id: Mapped[Optional[str]] = mapped_column(String(30), nullable=True)
    jurisdiction: Mapped[Jurisdiction] = mapped_column(
        SQLEnum(Jurisdiction), default=Jurisdiction.SPAIN, nullable=False,
    )
    fiscal_year: Mapped[int] = mapped_column(Integer, nullable=False)
    corporate_tax_rate: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(precision=5, scale=2), nullable=True,
        comment="Percentage; strategy default applies when empty",
    )
    currency: Mapped[str] = mapped_column(String(3), default="EUR", nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)


class FiscalPeriod(BaseModel):
    """
    Accounting period within a fiscal year.
    
    Periods of one year are contiguous and never overlap. Every journal
    entry date falls in exactly one period.
    """
    
    __tablename__ = "fiscal_periods"
    
    fiscal_year: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    period_number: Mapped[int] = mapped_column(Integer, nullable=False)
    period_name: Mapped[str] = mapped_column(String(50), nullable=False)
    period_type: Mapped[FiscalPeriodType] = mapped_column(
        SQLEnum(FiscalPeriodType), default=FiscalPeriodType.MONTH, nullable=False,
    )
    
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    
    status: Mapped[FiscalPeriodStatus] = mapped_column(
        SQLEnum(FiscalPeriodStatus),
        default=FiscalPeriodStatus.OPEN,
        nullable=False,
    )
    closed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    locked_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    
    __table_args__ = (
        UniqueConstraint('fiscal_year', 'period_number', name='uq_fiscal_period_number'),
        Index('ix_fiscal_periods_dates', 'start_date', 'end_date'),
        CheckConstraint('end_date >= start_date', name='ck_period_dates'),
    )
    
    def contains(self, on_date: date) -> bool:
        return self.start_date <= on_date <= self.end_date


# =============================================================================
# JOURNAL ENTRIES
# =============================================================================

class JournalEntry(BaseModel):
    """
    Journal Entry - an atomic, dated group of balanced debit/credit lines.
    
    Created as DRAFT, POSTED once (visible to the ledger from then on) and
    REVERSED only when a mirror entry referencing it has been posted.
    """
    
    __tablename__ = "journal_entries"
    
    fiscal_period_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("fiscal_periods.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    
    entry_number: Mapped[str] = mapped_column(
        String(50), nullable=False, unique=True,
        comment="Auto-generated journal entry number (e.g., JE-2026-00001)",
    )
    entry_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    description: Mapped[str] = mapped_column(String(500), nullable=False)
    
    # Originating document
    reference_type: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    reference_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    source_document: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    
    # Totals (must always balance)
    total_debit: Mapped[Decimal] = mapped_column(
        Numeric(precision=18, scale=2),
        default=Decimal("0.00"),
        nullable=False,
    )
    total_credit: Mapped[Decimal] = mapped_column(
        Numeric(precision=18, scale=2),
        default=Decimal("0.00"),
        nullable=False,
    )
    
    status: Mapped[JournalEntryStatus] = mapped_column(
        SQLEnum(JournalEntryStatus),
        default=JournalEntryStatus.DRAFT,
        nullable=False,
        index=True,
    )
    posted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    
    # Reversal tracking
    is_reversing: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    reversed_entry_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("journal_entries.id", ondelete="SET NULL"),
        nullable=True,
        comment="Entry cancelled by this one (set on reversing entries)",
    )
    reversal_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    
    # Origin flags
    is_automatic: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_closing_entry: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    
    # Relationships
    lines: Mapped[List["JournalEntryLine"]] = relationship(
        "JournalEntryLine",
        back_populates="journal_entry",
        order_by="JournalEntryLine.line_number",
        cascade="all, delete-orphan",
    )
    
    __table_args__ = (
        CheckConstraint('abs(total_debit - total_credit) <= 0.01', name='ck_balanced_entry'),
        Index('ix_journal_entries_period_status', 'fiscal_period_id', 'status'),
    )


class JournalEntryLine(BaseModel):
    """
    Individual line of a journal entry.
    Exactly one of debit_amount / credit_amount is non-zero.
    """
    
    __tablename__ = "journal_entry_lines"
    
    journal_entry_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("journal_entries.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    account_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("chart_of_accounts.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    
    line_number: Mapped[int] = mapped_column(Integer, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    
    debit_amount: Mapped[Decimal] = mapped_column(
        Numeric(precision=18, scale=2),
        default=Decimal("0.00"),
        nullable=False,
    )
    credit_amount: Mapped[Decimal] = mapped_column(
        Numeric(precision=18, scale=2),
        default=Decimal("0.00"),
        nullable=False,
    )
    tax_code: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    
    # Relationships
    journal_entry: Mapped["JournalEntry"] = relationship(
        "JournalEntry", back_populates="lines",
    )
    account: Mapped["Account"] = relationship("Account", lazy="joined")
    
    __table_args__ = (
        UniqueConstraint('journal_entry_id', 'line_number', name='uq_journal_line_number'),
        CheckConstraint('debit_amount >= 0 AND credit_amount >= 0', name='ck_line_non_negative'),
    )
    
    @property
    def account_code(self) -> str:
        return self.account.account_code
    
    @property
    def account_name(self) -> str:
        return self.account.account_name
