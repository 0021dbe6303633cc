"""
Accounting Engine - VAT Return (Modelo 303)

Output VAT (477) credited against input VAT (472) debited within the
period's posted entries. A positive result is payable, a negative one
is carried forward.
"""

from decimal import Decimal

from accounting_engine.config import settings
from accounting_engine.services.ledger_service import ZERO
from accounting_engine.services.tax_calculators.base import (
    DeclarationCalculator,
    DeclarationContext,
    DeclarationFigures,
    as_float,
    twentieth_of_next_month,
)


class VATReturnCalculator(DeclarationCalculator):
    declaration_type = "modelo_303"
    name = "VAT return (Modelo 303)"
    family = "iva"
    
    async def calculate(self, context: DeclarationContext) -> DeclarationFigures:
        ledger = context.ledger
        period = context.period
        
        _, output_vat = await ledger.totals(
            period_id=period.id,
            code_prefix=settings.output_vat_account_code,
        )
        input_vat, _ = await ledger.totals(
            period_id=period.id,
            code_prefix=settings.input_vat_account_code,
        )
        
        resultado = output_vat - input_vat
        
        return DeclarationFigures(
            total_amount=resultado,
            due_date=twentieth_of_next_month(period.end_date),
            declaration_period=period.period_name,
            calculated_data=as_float({
                "iva_repercutido": output_vat,
                "iva_soportado": input_vat,
                "resultado": resultado,
                "a_ingresar": max(ZERO, resultado),
                "a_compensar": max(ZERO, -resultado),
            }),
        )
