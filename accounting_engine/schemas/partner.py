"""
Accounting Engine - Partner Schemas

Partners, current-account movements and the dividend / remuneration /
loan operations that also book journal entries.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field, ConfigDict, model_validator

from accounting_engine.models.partner import (
    PartnerStatus,
    PartnerTransactionStatus,
    PartnerTransactionType,
)


class LoanDirection(str, Enum):
    TO_COMPANY = "to_company"
    FROM_COMPANY = "from_company"


# =============================================================================
# PARTNERS
# =============================================================================

class PartnerCreate(BaseModel):
    partner_name: str = Field(..., min_length=1, max_length=200)
    tax_id: Optional[str] = Field(None, max_length=30)
    ownership_percentage: Decimal = Field(Decimal("0.00"), ge=0, le=100)
    is_administrator: bool = False


class PartnerResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    
    id: UUID
    partner_name: str
    tax_id: Optional[str] = None
    ownership_percentage: Decimal
    is_administrator: bool
    status: PartnerStatus
    current_account_balance: Decimal


class PartnersQuery(BaseModel):
    active_only: bool = True


# =============================================================================
# CURRENT-ACCOUNT MOVEMENTS
# =============================================================================

class PartnerTransactionCreate(BaseModel):
    """Schema for recording a partner current-account movement."""
    partner_id: UUID
    transaction_type: PartnerTransactionType
    amount: Decimal = Field(..., gt=0)
    transaction_date: date
    description: Optional[str] = None


class PartnerTransactionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    
    id: UUID
    partner_id: UUID
    transaction_type: PartnerTransactionType
    transaction_date: date
    amount: Decimal
    tax_withholding: Decimal
    net_amount: Optional[Decimal] = None
    description: Optional[str] = None
    status: PartnerTransactionStatus
    journal_entry_id: Optional[UUID] = None
    interest_rate: Optional[Decimal] = None
    loan_end_date: Optional[date] = None
    outstanding_balance: Optional[Decimal] = None
    created_at: datetime


class PartnerDividendRequest(BaseModel):
    partner_id: UUID
    gross_amount: Decimal = Field(..., gt=0)
    fiscal_year: int
    distribution_date: date


class PartnerSalaryRequest(BaseModel):
    partner_id: UUID
    gross_amount: Decimal = Field(..., gt=0)
    irpf_rate: Decimal = Field(Decimal("15"), ge=0, le=100)
    payment_date: date
    concept: Optional[str] = None


class PartnerLoanRequest(BaseModel):
    partner_id: UUID
    amount: Decimal = Field(..., gt=0)
    loan_type: LoanDirection
    start_date: date
    end_date: Optional[date] = None
    interest_rate: Optional[Decimal] = Field(None, ge=0, le=100)

    @model_validator(mode="after")
    def end_after_start(self):
        if self.end_date is not None and self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self


class PartnerOperationResponse(BaseModel):
    """Partner movement together with the journal entry it booked."""
    transaction: PartnerTransactionResponse
    journal_entry_id: UUID
    partner_balance: Decimal


# =============================================================================
# DISTRIBUTION CALCULATOR
# =============================================================================

class DistributionRequest(BaseModel):
    amount: Decimal = Field(..., gt=0)
    distribution_type: str = "dividend"
    fiscal_year: int


class DistributionShare(BaseModel):
    partner_id: UUID
    partner_name: str
    ownership_percentage: Decimal
    gross_amount: Decimal
    withholding: Decimal
    net_amount: Decimal


class DistributionResult(BaseModel):
    distribution_type: str
    fiscal_year: int
    total_amount: Decimal
    withholding_rate: Decimal
    shares: List[DistributionShare]
    total_gross: Decimal
    total_withholding: Decimal
    total_net: Decimal
