"""
Accounting Engine - Bank Reconciliation Models

Bank transactions imported from statements and the prioritized rules
that auto-categorize them.
"""

import uuid
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from sqlalchemy import (
    Boolean, Date, DateTime, ForeignKey, Integer, Numeric, String, Text, Uuid,
    Enum as SQLEnum, Index
)
from sqlalchemy.orm import Mapped, mapped_column

from accounting_engine.models.base import BaseModel


class MatchType(str, Enum):
    """How a rule's match_value is compared with the transaction field."""
    EXACT = "exact"
    CONTAINS = "contains"
    REGEX = "regex"


class MatchField(str, Enum):
    """Bank transaction attribute a rule inspects."""
    DESCRIPTION = "description"
    COUNTERPARTY = "counterparty"
    REFERENCE = "reference"
    AMOUNT = "amount"


class ReconciliationRule(BaseModel):
    """
    Auto-reconciliation rule.
    
    Rules are evaluated by ascending priority, then by `sequence` (the
    creation order); the first rule that matches a transaction wins.
    """
    
    __tablename__ = "reconciliation_rules"
    
    rule_name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    
    priority: Mapped[int] = mapped_column(
        Integer, default=100, nullable=False,
        comment="Lower numbers are evaluated first",
    )
    sequence: Mapped[int] = mapped_column(
        Integer, default=0, nullable=False,
        comment="Creation order, increasing per rule",
    )
    match_field: Mapped[MatchField] = mapped_column(
        SQLEnum(MatchField), default=MatchField.DESCRIPTION, nullable=False,
    )
    match_type: Mapped[MatchType] = mapped_column(
        SQLEnum(MatchType), default=MatchType.CONTAINS, nullable=False,
    )
    match_value: Mapped[str] = mapped_column(String(500), nullable=False)
    target_category: Mapped[str] = mapped_column(String(100), nullable=False)
    
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    
    # Statistics
    matches_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    last_matched_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    
    __table_args__ = (
        Index('ix_reconciliation_rules_active_priority', 'is_active', 'priority'),
    )


class BankTransaction(BaseModel):
    """
    A movement from a bank statement.
    Moves from unreconciled to reconciled exactly once.
    """
    
    __tablename__ = "bank_transactions"
    
    bank_account_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), nullable=False)
    transaction_date: Mapped[date] = mapped_column(Date, nullable=False)
    description: Mapped[str] = mapped_column(String(500), nullable=False)
    counterparty: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    reference: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    amount: Mapped[Decimal] = mapped_column(
        Numeric(precision=18, scale=2), nullable=False,
        comment="Signed: positive = money in, negative = money out",
    )
    
    # Reconciliation
    is_reconciled: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    category: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    reconciled_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    matched_rule_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("reconciliation_rules.id", ondelete="SET NULL"),
        nullable=True,
    )
    
    __table_args__ = (
        Index('ix_bank_transactions_account_reconciled', 'bank_account_id', 'is_reconciled'),
    )
