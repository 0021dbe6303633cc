"""
Accounting Engine - Fiscal Declaration Schemas
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, Field, ConfigDict

from accounting_engine.models.tax import DeclarationStatus


class DeclarationGenerateRequest(BaseModel):
    declaration_type: str = Field(..., min_length=1, max_length=50)
    period_id: UUID


class DeclarationSubmitRequest(BaseModel):
    declaration_id: UUID
    submission_reference: Optional[str] = Field(None, max_length=100)
    submission_date: Optional[datetime] = None


class DeclarationsQuery(BaseModel):
    fiscal_year: Optional[int] = None
    status: Optional[DeclarationStatus] = None


class TaxCalendarQuery(BaseModel):
    fiscal_year: Optional[int] = None


class FiscalDeclarationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    
    id: UUID
    declaration_type: str
    fiscal_period_id: UUID
    fiscal_year: int
    declaration_period: str
    due_date: date
    status: DeclarationStatus
    calculated_data: Dict[str, Any]
    total_amount: Decimal
    filed_at: Optional[datetime] = None
    submission_reference: Optional[str] = None


class DeclarationsSummary(BaseModel):
    total: int
    pending: int
    calculated: int
    filed: int
    overdue: int


class DeclarationsOverview(BaseModel):
    declarations: List[FiscalDeclarationResponse]
    by_type: Dict[str, List[FiscalDeclarationResponse]]
    summary: DeclarationsSummary


class TaxCalendarItem(BaseModel):
    declaration_type: str
    name: str
    period_id: Optional[UUID] = None
    period_name: str
    due_date: date
    status: str
    declaration_id: Optional[UUID] = None


class TaxCalendar(BaseModel):
    fiscal_year: int
    items: List[TaxCalendarItem]
