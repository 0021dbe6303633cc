"""
Accounting Engine - Corporate Income Tax

Spain (Modelo 200, 25%) and Andorra (IS, 10%). Both work on the full
fiscal year of the target period: taxable base = max(0, income - expenses).
A configured corporate_tax_rate overrides the default rate.
"""

from datetime import date
from decimal import Decimal

from sqlalchemy import select, func

from accounting_engine.models.accounting import FiscalPeriod, Jurisdiction
from accounting_engine.services.ledger_service import ZERO, to_money
from accounting_engine.services.tax_calculators.base import (
    DeclarationCalculator,
    DeclarationContext,
    DeclarationFigures,
    as_float,
)


SPAIN_CIT_RATE = Decimal("25")
ANDORRA_CIT_RATE = Decimal("10")


class CorporateTaxCalculator(DeclarationCalculator):
    declaration_type = "modelo_200"
    name = "Corporate income tax (Modelo 200)"
    family = "corporate"
    
    def default_rate(self, context: DeclarationContext) -> Decimal:
        if context.jurisdiction == Jurisdiction.ANDORRA:
            return ANDORRA_CIT_RATE
        return SPAIN_CIT_RATE
    
    def due_date(self, fiscal_year: int) -> date:
        return date(fiscal_year + 1, 7, 25)
    
    async def calculate(self, context: DeclarationContext) -> DeclarationFigures:
        fiscal_year = context.period.fiscal_year
        
        result = await context.db.execute(
            select(func.min(FiscalPeriod.start_date), func.max(FiscalPeriod.end_date))
            .where(FiscalPeriod.fiscal_year == fiscal_year)
        )
        year_start, year_end = result.one()
        
        income, expenses = await context.ledger.income_and_expenses(year_start, year_end)
        resultado_contable = income - expenses
        base_imponible = max(ZERO, resultado_contable)
        
        rate = self.default_rate(context)
        if context.config is not None and context.config.corporate_tax_rate is not None:
            rate = context.config.corporate_tax_rate
        cuota = to_money(base_imponible * rate / Decimal("100"))
        
        calculated_data = as_float({
            "ingresos": income,
            "gastos": expenses,
            "resultado_contable": resultado_contable,
            "base_imponible": base_imponible,
            "tipo_gravamen": rate,
            "cuota_integra": cuota,
            "cuota_liquida": cuota,
        })
        
        return DeclarationFigures(
            total_amount=cuota,
            due_date=self.due_date(fiscal_year),
            declaration_period=f"Fiscal year {fiscal_year}",
            calculated_data=calculated_data,
        )


class AndorraCorporateTaxCalculator(CorporateTaxCalculator):
    declaration_type = "is_andorra"
    name = "Andorra corporate tax (IS)"
    
    def default_rate(self, context: DeclarationContext) -> Decimal:
        return ANDORRA_CIT_RATE
    
    def due_date(self, fiscal_year: int) -> date:
        return date(fiscal_year + 1, 9, 30)
