"""
Accounting Engine - Andorran General Indirect Tax (IGI)

IGI is worked out from turnover rather than from VAT accounts: the
standard rate is applied to sales (group 7) and to purchases (group 6)
of the period. Only a positive result is payable.
"""

from decimal import Decimal

from accounting_engine.config import settings
from accounting_engine.services.ledger_service import ZERO, to_money
from accounting_engine.services.tax_calculators.base import (
    DeclarationCalculator,
    DeclarationContext,
    DeclarationFigures,
    as_float,
    twentieth_of_next_month,
)


class AndorraIGICalculator(DeclarationCalculator):
    declaration_type = "igi_andorra"
    name = "Andorra general indirect tax (IGI)"
    family = "igi"
    
    async def calculate(self, context: DeclarationContext) -> DeclarationFigures:
        period = context.period
        ventas, compras = await context.ledger.income_and_expenses(period.start_date, period.end_date)
        
        rate = settings.igi_rate
        igi_devengado = to_money(ventas * rate / Decimal("100"))
        igi_soportado = to_money(compras * rate / Decimal("100"))
        resultado = igi_devengado - igi_soportado
        
        return DeclarationFigures(
            total_amount=max(ZERO, resultado),
            due_date=twentieth_of_next_month(period.end_date),
            declaration_period=period.period_name,
            calculated_data=as_float({
                "ventas": ventas,
                "igi_devengado": igi_devengado,
                "compras": compras,
                "igi_soportado": igi_soportado,
                "resultado": resultado,
                "tipo_igi": rate,
            }),
        )
