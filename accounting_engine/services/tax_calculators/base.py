"""
Accounting Engine - Declaration Calculator Base

A declaration type is a strategy: `calculate(context)` turns the ledger
of one fiscal period into the figures stored on the declaration.
"""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Any, Dict, Optional

from dateutil.relativedelta import relativedelta
from sqlalchemy.ext.asyncio import AsyncSession

from accounting_engine.models.accounting import FiscalConfig, FiscalPeriod, Jurisdiction
from accounting_engine.services.ledger_service import LedgerService


@dataclass
class DeclarationContext:
    """What a calculator may read: the target period and fiscal settings."""
    db: AsyncSession
    period: FiscalPeriod
    config: Optional[FiscalConfig] = None
    
    @property
    def ledger(self) -> LedgerService:
        return LedgerService(self.db)
    
    @property
    def jurisdiction(self) -> Jurisdiction:
        return self.config.jurisdiction if self.config else Jurisdiction.SPAIN


@dataclass
class DeclarationFigures:
    """Result of a calculation, persisted on the FiscalDeclaration row."""
    total_amount: Decimal
    due_date: date
    declaration_period: str
    calculated_data: Dict[str, Any] = field(default_factory=dict)


def twentieth_of_next_month(period_end: date) -> date:
    """Periodic filings are due on the 20th of the month after the period."""
    return (period_end + relativedelta(months=1)).replace(day=20)


def as_float(data: Dict[str, Decimal]) -> Dict[str, float]:
    """JSON-safe copy of a figures dict."""
    return {key: float(value) for key, value in data.items()}


class DeclarationCalculator:
    """Base class for declaration strategies."""
    
    declaration_type: str = ""
    name: str = ""
    family: str = "other"
    
    async def calculate(self, context: DeclarationContext) -> DeclarationFigures:
        raise NotImplementedError
