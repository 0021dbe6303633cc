"""
Accounting Engine - Financial Statements

Trial balance, balance sheet, income statement and cash flow, all built
on the ledger projection. Every statement is read-only and returns zero
totals when there is no data.
"""

import uuid
from datetime import date
from decimal import Decimal
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from accounting_engine.config import settings
from accounting_engine.models.accounting import AccountType
from accounting_engine.schemas.accounting import (
    BalanceSheetItem,
    BalanceSheetReport,
    CashFlowAccountItem,
    CashFlowReport,
    IncomeStatementItem,
    IncomeStatementReport,
    TrialBalanceItem,
    TrialBalanceReport,
)
from accounting_engine.services.fiscal_period_service import FiscalPeriodService
from accounting_engine.services.ledger_service import (
    ZERO,
    LedgerService,
    check_date_range,
)


class StatementsService:
    """Service for financial statement generation."""
    
    def __init__(self, db: AsyncSession):
        self.db = db
        self.ledger = LedgerService(db)
    
    async def get_trial_balance(
        self,
        period_id: Optional[uuid.UUID] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> TrialBalanceReport:
        """Generate trial balance report for a period or a date range."""
        check_date_range(start_date, end_date)
        if period_id is not None:
            # Raises NotFoundException for an unknown period
            await FiscalPeriodService(self.db).get_period(period_id)
            rows = await self.ledger.account_totals(period_id=period_id)
        else:
            rows = await self.ledger.account_totals(start_date=start_date, end_date=end_date)
        
        items = []
        total_debit = ZERO
        total_credit = ZERO
        balance_debit_total = ZERO
        balance_credit_total = ZERO
        
        for row in rows:
            if row.total_debit == 0 and row.total_credit == 0:
                continue
            
            balance = row.balance
            balance_debit = balance if balance > 0 else ZERO
            balance_credit = -balance if balance < 0 else ZERO
            
            items.append(TrialBalanceItem(
                account_id=row.account.id,
                account_code=row.account.account_code,
                account_name=row.account.account_name,
                account_type=row.account.account_type,
                total_debit=row.total_debit,
                total_credit=row.total_credit,
                balance_debit=balance_debit,
                balance_credit=balance_credit,
            ))
            total_debit += row.total_debit
            total_credit += row.total_credit
            balance_debit_total += balance_debit
            balance_credit_total += balance_credit
        
        return TrialBalanceReport(
            period_id=period_id,
            start_date=start_date,
            end_date=end_date,
            items=items,
            total_debit=total_debit,
            total_credit=total_credit,
            balance_debit_total=balance_debit_total,
            balance_credit_total=balance_credit_total,
            balanced=abs(balance_debit_total - balance_credit_total) <= settings.balance_tolerance,
        )
    
    async def get_balance_sheet(self, as_of_date: date) -> BalanceSheetReport:
        """
        Generate balance sheet as of a date.
        
        Income and expense accounts that have not been closed into the
        result account yet are shown as one equity row.
        """
        rows = await self.ledger.account_totals(end_date=as_of_date)
        
        sections = {
            AccountType.ASSET: [],
            AccountType.LIABILITY: [],
            AccountType.EQUITY: [],
        }
        totals = {account_type: ZERO for account_type in sections}
        unclosed_result = ZERO
        
        for row in rows:
            account_type = row.account.account_type
            if account_type in (AccountType.INCOME, AccountType.EXPENSE):
                unclosed_result += row.total_credit - row.total_debit
                continue
            
            balance = row.normal_balance_amount
            if balance == 0:
                continue
            
            sections[account_type].append(BalanceSheetItem(
                account_id=row.account.id,
                account_code=row.account.account_code,
                account_name=row.account.account_name,
                balance=balance,
            ))
            totals[account_type] += balance
        
        if unclosed_result != 0:
            sections[AccountType.EQUITY].append(BalanceSheetItem(
                account_name="Current period result",
                balance=unclosed_result,
            ))
            totals[AccountType.EQUITY] += unclosed_result
        
        total_assets = totals[AccountType.ASSET]
        total_liabilities = totals[AccountType.LIABILITY]
        total_equity = totals[AccountType.EQUITY]
        liabilities_and_equity = total_liabilities + total_equity
        
        return BalanceSheetReport(
            as_of_date=as_of_date,
            assets=sections[AccountType.ASSET],
            liabilities=sections[AccountType.LIABILITY],
            equity=sections[AccountType.EQUITY],
            total_assets=total_assets,
            total_liabilities=total_liabilities,
            total_equity=total_equity,
            total_liabilities_and_equity=liabilities_and_equity,
            balanced=abs(total_assets - liabilities_and_equity) <= settings.balance_tolerance,
        )
    
    async def get_income_statement(self, start_date: date, end_date: date) -> IncomeStatementReport:
        """Generate income statement (P&L) report."""
        check_date_range(start_date, end_date)
        
        income = []
        expenses = []
        total_income = ZERO
        total_expenses = ZERO
        
        income_rows = await self.ledger.account_totals(
            start_date=start_date, end_date=end_date, account_group=7, exclude_closing=True,
        )
        for row in income_rows:
            amount = row.total_credit - row.total_debit
            if amount == 0:
                continue
            income.append(IncomeStatementItem(
                account_id=row.account.id,
                account_code=row.account.account_code,
                account_name=row.account.account_name,
                amount=amount,
            ))
            total_income += amount
        
        expense_rows = await self.ledger.account_totals(
            start_date=start_date, end_date=end_date, account_group=6, exclude_closing=True,
        )
        for row in expense_rows:
            amount = row.total_debit - row.total_credit
            if amount == 0:
                continue
            expenses.append(IncomeStatementItem(
                account_id=row.account.id,
                account_code=row.account.account_code,
                account_name=row.account.account_name,
                amount=amount,
            ))
            total_expenses += amount
        
        return IncomeStatementReport(
            start_date=start_date,
            end_date=end_date,
            income=income,
            expenses=expenses,
            total_income=total_income,
            total_expenses=total_expenses,
            gross_profit=total_income - total_expenses,
            net_profit=total_income - total_expenses,
        )
    
    async def get_cash_flow(self, start_date: date, end_date: date) -> CashFlowReport:
        """Cash movements on the cash accounts (configured code prefix)."""
        check_date_range(start_date, end_date)
        prefix = settings.cash_account_prefix
        
        opening_rows = await self.ledger.account_totals(before_date=start_date, code_prefix=prefix)
        window_rows = await self.ledger.account_totals(
            start_date=start_date, end_date=end_date, code_prefix=prefix,
        )
        
        breakdown = {}
        for row in opening_rows:
            breakdown[row.account.account_code] = {
                "account": row.account,
                "opening": row.balance,
                "inflows": ZERO,
                "outflows": ZERO,
            }
        for row in window_rows:
            item = breakdown.setdefault(row.account.account_code, {
                "account": row.account,
                "opening": ZERO,
                "inflows": ZERO,
                "outflows": ZERO,
            })
            item["inflows"] = row.total_debit
            item["outflows"] = row.total_credit
        
        accounts = []
        opening_balance = ZERO
        inflows = ZERO
        outflows = ZERO
        for code in sorted(breakdown):
            item = breakdown[code]
            accounts.append(CashFlowAccountItem(
                account_code=code,
                account_name=item["account"].account_name,
                opening_balance=item["opening"],
                inflows=item["inflows"],
                outflows=item["outflows"],
                closing_balance=item["opening"] + item["inflows"] - item["outflows"],
            ))
            opening_balance += item["opening"]
            inflows += item["inflows"]
            outflows += item["outflows"]
        
        net_cash_flow = inflows - outflows
        
        return CashFlowReport(
            start_date=start_date,
            end_date=end_date,
            opening_balance=opening_balance,
            inflows=inflows,
            outflows=outflows,
            net_cash_flow=net_cash_flow,
            closing_balance=opening_balance + net_cash_flow,
            accounts=accounts,
        )
    
    async def get_net_result(self, start_date: date, end_date: date) -> Decimal:
        income, expenses = await self.ledger.income_and_expenses(start_date, end_date)
        return income - expenses
