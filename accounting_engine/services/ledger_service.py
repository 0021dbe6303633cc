"""
Accounting Engine - Ledger Projection

Read-side replay of journal lines. Nothing here is stored: balances are
always a pure function of the lines of posted (and later reversed)
entries up to the query boundary.

Sign convention for the fold: contribution = debit_amount - credit_amount.
The normal balance of an account only matters for presentation.
"""

import uuid
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Dict, List, Optional, Sequence, Tuple

from sqlalchemy import select, func, and_
from sqlalchemy.ext.asyncio import AsyncSession

from accounting_engine.models.accounting import (
    Account,
    JournalEntry,
    JournalEntryLine,
    LEDGER_VISIBLE_STATUSES,
    NormalBalance,
)
from accounting_engine.schemas.accounting import (
    AccountLedgerReport,
    AccountResponse,
    LedgerMovement,
)
from accounting_engine.utils.error_handling import (
    InvalidDateRangeException,
    NotFoundException,
)


CENT = Decimal("0.01")
ZERO = Decimal("0.00")


def to_money(value) -> Decimal:
    """Normalize a DB aggregate (Decimal, float or None) to a 2-dp Decimal."""
    if value is None:
        return ZERO
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENT)


def check_date_range(start_date: Optional[date], end_date: Optional[date]) -> None:
    if start_date and end_date and start_date > end_date:
        raise InvalidDateRangeException(start_date, end_date)


@dataclass
class AccountTotals:
    """Debit/credit sums of one account over a window."""
    account: Account
    total_debit: Decimal
    total_credit: Decimal
    
    @property
    def balance(self) -> Decimal:
        """debit - credit"""
        return self.total_debit - self.total_credit
    
    @property
    def normal_balance_amount(self) -> Decimal:
        """Balance oriented by the account's normal side."""
        if self.account.normal_balance == NormalBalance.DEBIT:
            return self.total_debit - self.total_credit
        return self.total_credit - self.total_debit


class LedgerService:
    """Projection of posted journal lines into totals and running balances."""
    
    def __init__(self, db: AsyncSession):
        self.db = db
    
    @staticmethod
    def _entry_filters(
        period_id: Optional[uuid.UUID] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        before_date: Optional[date] = None,
        exclude_closing: bool = False,
    ) -> list:
        conditions = [JournalEntry.status.in_(LEDGER_VISIBLE_STATUSES)]
        if period_id is not None:
            conditions.append(JournalEntry.fiscal_period_id == period_id)
        if start_date is not None:
            conditions.append(JournalEntry.entry_date >= start_date)
        if end_date is not None:
            conditions.append(JournalEntry.entry_date <= end_date)
        if before_date is not None:
            conditions.append(JournalEntry.entry_date < before_date)
        if exclude_closing:
            conditions.append(JournalEntry.is_closing_entry == False)
        return conditions
    
    # =========================================================================
    # TOTALS
    # =========================================================================
    
    async def account_totals(
        self,
        period_id: Optional[uuid.UUID] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        before_date: Optional[date] = None,
        account_ids: Optional[Sequence[uuid.UUID]] = None,
        code_prefix: Optional[str] = None,
        account_group: Optional[int] = None,
        detail_only: bool = True,
        exclude_closing: bool = False,
    ) -> List[AccountTotals]:
        """
        Σdebit / Σcredit per account over the visible lines of the window,
        ordered by account code. Accounts without lines are omitted.
        """
        conditions = self._entry_filters(
            period_id=period_id,
            start_date=start_date,
            end_date=end_date,
            before_date=before_date,
            exclude_closing=exclude_closing,
        )
        if account_ids is not None:
            conditions.append(JournalEntryLine.account_id.in_(list(account_ids)))
        if code_prefix:
            conditions.append(Account.account_code.like(f"{code_prefix}%"))
        if account_group is not None:
            conditions.append(Account.account_group == account_group)
        if detail_only:
            conditions.append(Account.is_detail == True)
        
        query = (
            select(
                Account,
                func.sum(JournalEntryLine.debit_amount),
                func.sum(JournalEntryLine.credit_amount),
            )
            .join(JournalEntryLine, JournalEntryLine.account_id == Account.id)
            .join(JournalEntry, JournalEntryLine.journal_entry_id == JournalEntry.id)
            .where(and_(*conditions))
            .group_by(Account.id)
            .order_by(Account.account_code)
        )
        
        result = await self.db.execute(query)
        return [
            AccountTotals(account, to_money(debit), to_money(credit))
            for account, debit, credit in result.all()
        ]
    
    async def totals(self, **filters) -> Tuple[Decimal, Decimal]:
        """Aggregate (Σdebit, Σcredit) across every account matching the filters."""
        rows = await self.account_totals(**filters)
        total_debit = sum((row.total_debit for row in rows), ZERO)
        total_credit = sum((row.total_credit for row in rows), ZERO)
        return total_debit, total_credit
    
    async def balance(self, **filters) -> Decimal:
        """Net debit - credit across every account matching the filters."""
        total_debit, total_credit = await self.totals(**filters)
        return total_debit - total_credit
    
    async def income_and_expenses(
        self,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> Tuple[Decimal, Decimal]:
        """
        (Σ income credit-debit, Σ expense debit-credit) over the window.
        Closing entries are left out so a closed year still shows its result.
        """
        income_debit, income_credit = await self.totals(
            start_date=start_date, end_date=end_date, account_group=7, exclude_closing=True,
        )
        expense_debit, expense_credit = await self.totals(
            start_date=start_date, end_date=end_date, account_group=6, exclude_closing=True,
        )
        return income_credit - income_debit, expense_debit - expense_credit
    
    # =========================================================================
    # PROJECTION
    # =========================================================================
    
    async def project(
        self,
        account_ids: Sequence[uuid.UUID],
        period_id: Optional[uuid.UUID] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        opening_balances: Optional[Dict[uuid.UUID, Decimal]] = None,
    ) -> List[LedgerMovement]:
        """
        Ordered movements with a running balance per account.
        
        Ordering: entry_date, line_number, then entry creation order. The
        fold starts at zero unless the caller seeds it via opening_balances.
        """
        check_date_range(start_date, end_date)
        
        conditions = self._entry_filters(
            period_id=period_id,
            start_date=start_date,
            end_date=end_date,
        )
        conditions.append(JournalEntryLine.account_id.in_(list(account_ids)))
        
        query = (
            select(JournalEntryLine, JournalEntry)
            .join(JournalEntry, JournalEntryLine.journal_entry_id == JournalEntry.id)
            .where(and_(*conditions))
            .order_by(
                JournalEntry.entry_date,
                JournalEntryLine.line_number,
                JournalEntry.created_at,
                JournalEntry.entry_number,
            )
        )
        result = await self.db.execute(query)
        
        running: Dict[uuid.UUID, Decimal] = dict(opening_balances or {})
        movements = []
        for line, entry in result.all():
            balance = running.get(line.account_id, ZERO) + line.debit_amount - line.credit_amount
            running[line.account_id] = balance
            movements.append(LedgerMovement(
                entry_id=entry.id,
                entry_number=entry.entry_number,
                entry_date=entry.entry_date,
                line_number=line.line_number,
                account_code=line.account_code,
                description=line.description or entry.description,
                debit_amount=to_money(line.debit_amount),
                credit_amount=to_money(line.credit_amount),
                balance=to_money(balance),
            ))
        
        return movements
    
    async def get_ledger(
        self,
        account_code: str,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        include_opening: bool = False,
    ) -> AccountLedgerReport:
        """Account statement, optionally seeded with the balance before start_date."""
        check_date_range(start_date, end_date)
        
        result = await self.db.execute(
            select(Account).where(Account.account_code == account_code)
        )
        account = result.scalar_one_or_none()
        if account is None:
            raise NotFoundException("Account", account_code)
        
        opening_balance = ZERO
        if include_opening and start_date is not None:
            opening_balance = await self.balance(
                before_date=start_date, account_ids=[account.id], detail_only=False,
            )
        
        movements = await self.project(
            [account.id],
            start_date=start_date,
            end_date=end_date,
            opening_balances={account.id: opening_balance},
        )
        
        total_debit = sum((m.debit_amount for m in movements), ZERO)
        total_credit = sum((m.credit_amount for m in movements), ZERO)
        
        return AccountLedgerReport(
            account=AccountResponse.model_validate(account),
            start_date=start_date,
            end_date=end_date,
            opening_balance=opening_balance,
            total_debit=total_debit,
            total_credit=total_credit,
            closing_balance=opening_balance + total_debit - total_credit,
            movements=movements,
        )
