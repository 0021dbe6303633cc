"""
Journal entry builders shared by the test modules.
"""

from datetime import date
from decimal import Decimal
from typing import List

from accounting_engine.schemas.accounting import JournalEntryCreate, JournalEntryLineCreate


def entry_data(
    entry_date: date,
    lines: List[tuple],
    description: str = "Test entry",
    auto_post: bool = False,
) -> JournalEntryCreate:
    """Build a JournalEntryCreate from (account_code, debit, credit) tuples."""
    return JournalEntryCreate(
        entry_date=entry_date,
        description=description,
        lines=[
            JournalEntryLineCreate(
                account_code=code,
                debit_amount=Decimal(str(debit)),
                credit_amount=Decimal(str(credit)),
            )
            for code, debit, credit in lines
        ],
        auto_post=auto_post,
    )


def entry_params(entry_date: date, lines: List[tuple], description: str = "Test entry", **extra) -> dict:
    """Same as entry_data, as JSON params for the engine endpoint."""
    return {
        "entry_date": entry_date.isoformat(),
        "description": description,
        "lines": [
            {"account_code": code, "debit_amount": str(debit), "credit_amount": str(credit)}
            for code, debit, credit in lines
        ],
        **extra,
    }
