"""
Accounting Engine - SQLAlchemy Models Package

This package contains all database models for the application.
"""

from accounting_engine.models.base import BaseModel, TimestampMixin
from accounting_engine.models.accounting import (
    Account,
    AccountType,
    NormalBalance,
    Jurisdiction,
    FiscalConfig,
    FiscalPeriod,
    FiscalPeriodStatus,
    FiscalPeriodType,
    JournalEntry,
    JournalEntryLine,
    JournalEntryStatus,
    LEDGER_VISIBLE_STATUSES,
)
from accounting_engine.models.bank_reconciliation import (
    BankTransaction,
    MatchField,
    MatchType,
    ReconciliationRule,
)
from accounting_engine.models.partner import (
    Partner,
    PartnerStatus,
    PartnerTransaction,
    PartnerTransactionStatus,
    PartnerTransactionType,
    balance_sign,
)
from accounting_engine.models.tax import DeclarationStatus, FiscalDeclaration

__all__ = [
    "BaseModel",
    "TimestampMixin",
    "Account",
    "AccountType",
    "NormalBalance",
    "Jurisdiction",
    "FiscalConfig",
    "FiscalPeriod",
    "FiscalPeriodStatus",
    "FiscalPeriodType",
    "JournalEntry",
    "JournalEntryLine",
    "JournalEntryStatus",
    "LEDGER_VISIBLE_STATUSES",
    "BankTransaction",
    "MatchField",
    "MatchType",
    "ReconciliationRule",
    "Partner",
    "PartnerStatus",
    "PartnerTransaction",
    "PartnerTransactionStatus",
    "PartnerTransactionType",
    "balance_sign",
    "DeclarationStatus",
    "FiscalDeclaration",
]
