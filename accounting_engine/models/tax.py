"""
Accounting Engine - Fiscal Declaration Model
"""

import uuid
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Optional

from sqlalchemy import (
    Date, DateTime, ForeignKey, Integer, JSON, Numeric, String, Uuid,
    Enum as SQLEnum, UniqueConstraint
)
from sqlalchemy.orm import Mapped, mapped_column

from accounting_engine.models.base import BaseModel


class DeclarationStatus(str, Enum):
    PENDING = "pending"
    CALCULATED = "calculated"
    FILED = "filed"


class FiscalDeclaration(BaseModel):
    """
    Periodic tax filing computed from ledger balances.
    One row per (fiscal period, declaration type); regenerating overwrites it.
    """
    
    __tablename__ = "fiscal_declarations"
    
    declaration_type: Mapped[str] = mapped_column(
        String(50), nullable=False,
        comment="Strategy key, e.g. modelo_303",
    )
    fiscal_period_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("fiscal_periods.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    fiscal_year: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    declaration_period: Mapped[str] = mapped_column(String(50), nullable=False)
    due_date: Mapped[date] = mapped_column(Date, nullable=False)
    
    status: Mapped[DeclarationStatus] = mapped_column(
        SQLEnum(DeclarationStatus),
        default=DeclarationStatus.PENDING,
        nullable=False,
    )
    calculated_data: Mapped[Dict[str, Any]] = mapped_column(JSON, default=dict, nullable=False)
    total_amount: Mapped[Decimal] = mapped_column(
        Numeric(precision=18, scale=2), default=Decimal("0.00"), nullable=False,
    )
    
    filed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    submission_reference: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    
    __table_args__ = (
        UniqueConstraint('fiscal_period_id', 'declaration_type', name='uq_declaration_period_type'),
    )
