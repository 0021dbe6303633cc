"""
Accounting Engine - Tax Calculators Package

Declaration strategies, looked up by declaration type.

Modules:
- vat_service: VAT return (modelo_303)
- wht_service: withholding on work income (modelo_111)
- cit_service: corporate income tax (modelo_200, is_andorra)
- igi_service: Andorran general indirect tax (igi_andorra)
"""

from typing import Dict, List

from accounting_engine.services.tax_calculators.base import (
    DeclarationCalculator,
    DeclarationContext,
    DeclarationFigures,
    twentieth_of_next_month,
)
from accounting_engine.services.tax_calculators.vat_service import VATReturnCalculator
from accounting_engine.services.tax_calculators.wht_service import WithholdingReturnCalculator
from accounting_engine.services.tax_calculators.cit_service import (
    AndorraCorporateTaxCalculator,
    CorporateTaxCalculator,
)
from accounting_engine.services.tax_calculators.igi_service import AndorraIGICalculator
from accounting_engine.utils.error_handling import ErrorCode, ValidationException


# ===========================================
# REGISTRY
# ===========================================

CALCULATORS: Dict[str, DeclarationCalculator] = {}


def register_calculator(calculator: DeclarationCalculator) -> DeclarationCalculator:
    CALCULATORS[calculator.declaration_type] = calculator
    return calculator


def get_calculator(declaration_type: str) -> DeclarationCalculator:
    """Strategy for a declaration type; unknown types are a validation error."""
    calculator = CALCULATORS.get(declaration_type)
    if calculator is None:
        raise ValidationException(
            f"Unsupported declaration type: {declaration_type}",
            field="declaration_type",
            code=ErrorCode.UNSUPPORTED_DECLARATION_TYPE,
            details={"supported": supported_declaration_types()},
        )
    return calculator


def supported_declaration_types() -> List[str]:
    return sorted(CALCULATORS)


register_calculator(VATReturnCalculator())
register_calculator(WithholdingReturnCalculator())
register_calculator(CorporateTaxCalculator())
register_calculator(AndorraCorporateTaxCalculator())
register_calculator(AndorraIGICalculator())


__all__ = [
    "DeclarationCalculator",
    "DeclarationContext",
    "DeclarationFigures",
    "VATReturnCalculator",
    "WithholdingReturnCalculator",
    "CorporateTaxCalculator",
    "AndorraCorporateTaxCalculator",
    "AndorraIGICalculator",
    "CALCULATORS",
    "register_calculator",
    "get_calculator",
    "supported_declaration_types",
    "twentieth_of_next_month",
]
