"""
Accounting Engine - Withholding Return (Modelo 111)

Withholdings on work income: net credit on the withholding account
(4751) in the period, plus the administrator remunerations paid in it.
"""

from sqlalchemy import select, and_

from accounting_engine.config import settings
from accounting_engine.models.partner import PartnerTransaction, PartnerTransactionType
from accounting_engine.services.ledger_service import ZERO, to_money
from accounting_engine.services.tax_calculators.base import (
    DeclarationCalculator,
    DeclarationContext,
    DeclarationFigures,
    as_float,
    twentieth_of_next_month,
)


class WithholdingReturnCalculator(DeclarationCalculator):
    declaration_type = "modelo_111"
    name = "Withholding return (Modelo 111)"
    family = "irpf"
    
    async def calculate(self, context: DeclarationContext) -> DeclarationFigures:
        period = context.period
        
        debit, credit = await context.ledger.totals(
            period_id=period.id,
            code_prefix=settings.withholding_account_code,
        )
        retenciones = credit - debit
        
        result = await context.db.execute(
            select(PartnerTransaction).where(
                and_(
                    PartnerTransaction.transaction_type == PartnerTransactionType.ADMIN_REMUNERATION,
                    PartnerTransaction.transaction_date >= period.start_date,
                    PartnerTransaction.transaction_date <= period.end_date,
                )
            )
        )
        remunerations = list(result.scalars().all())
        rendimientos = sum((to_money(t.amount) for t in remunerations), ZERO)
        
        calculated_data = as_float({
            "rendimientos_trabajo": rendimientos,
            "retenciones_trabajo": retenciones,
        })
        calculated_data["num_perceptores"] = len({t.partner_id for t in remunerations})
        
        return DeclarationFigures(
            total_amount=retenciones,
            due_date=twentieth_of_next_month(period.end_date),
            declaration_period=period.period_name,
            calculated_data=calculated_data,
        )
