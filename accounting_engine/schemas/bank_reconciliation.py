"""
Accounting Engine - Bank Reconciliation Schemas
"""

from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field, ConfigDict

from accounting_engine.models.bank_reconciliation import MatchField, MatchType


# =============================================================================
# RECONCILIATION RULES
# =============================================================================

class ReconciliationRuleCreate(BaseModel):
    """Schema for creating an auto-reconciliation rule."""
    rule_name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None
    priority: int = Field(100, ge=0)
    match_field: MatchField = MatchField.DESCRIPTION
    match_type: MatchType = MatchType.CONTAINS
    match_value: str = Field(..., min_length=1, max_length=500)
    target_category: str = Field(..., min_length=1, max_length=100)
    is_active: bool = True


class ReconciliationRuleResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    
    id: UUID
    rule_name: str
    description: Optional[str] = None
    priority: int
    sequence: int
    match_field: MatchField
    match_type: MatchType
    match_value: str
    target_category: str
    is_active: bool
    matches_count: int
    last_matched_at: Optional[datetime] = None
    created_at: datetime


# =============================================================================
# BANK TRANSACTIONS
# =============================================================================

class BankTransactionCreate(BaseModel):
    """One statement row (amount is signed: positive = money in)."""
    transaction_date: date
    description: str = Field(..., min_length=1, max_length=500)
    amount: Decimal
    counterparty: Optional[str] = Field(None, max_length=200)
    reference: Optional[str] = Field(None, max_length=100)


class BankTransactionImport(BaseModel):
    bank_account_id: UUID
    transactions: List[BankTransactionCreate] = Field(..., min_length=1)


class BankTransactionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    
    id: UUID
    bank_account_id: UUID
    transaction_date: date
    description: str
    counterparty: Optional[str] = None
    reference: Optional[str] = None
    amount: Decimal
    is_reconciled: bool
    category: Optional[str] = None
    reconciled_at: Optional[datetime] = None
    matched_rule_id: Optional[UUID] = None


class UnreconciledQuery(BaseModel):
    bank_account_id: Optional[UUID] = None
    limit: int = Field(100, ge=1, le=1000)


class AutoReconcileRequest(BaseModel):
    bank_account_id: UUID


class AutoReconcileResult(BaseModel):
    """Outcome of one auto-reconciliation run."""
    bank_account_id: UUID
    total_processed: int
    reconciled_count: int
    unmatched_count: int
    reconciled: List[BankTransactionResponse]
    unmatched: List[BankTransactionResponse]


# =============================================================================
# AI CATEGORIZATION
# =============================================================================

class AICategorizeRequest(BaseModel):
    description: str = Field(..., min_length=1, max_length=500)
    amount: Decimal
    counterparty: Optional[str] = None
