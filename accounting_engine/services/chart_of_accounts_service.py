"""
Accounting Engine - Chart of Accounts Service

Account lookup, creation and the default Spanish PGC-style chart.
"""

import logging
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from accounting_engine.models.accounting import Account, AccountType, NormalBalance
from accounting_engine.schemas.accounting import AccountCreate
from accounting_engine.utils.error_handling import (
    ConflictException,
    ErrorCode,
    NotPostableException,
    UnknownAccountException,
)

logger = logging.getLogger(__name__)


DEBIT_NORMAL_TYPES = (AccountType.ASSET, AccountType.EXPENSE)


def default_normal_balance(account_type: AccountType) -> NormalBalance:
    if account_type in DEBIT_NORMAL_TYPES:
        return NormalBalance.DEBIT
    return NormalBalance.CREDIT


# Group headers are summary accounts; everything else receives postings.
DEFAULT_CHART = [
    # GROUP 1 - BASIC FINANCING
    {"code": "1", "name": "Basic financing", "type": AccountType.EQUITY, "is_detail": False},
    {"code": "100", "name": "Share capital", "type": AccountType.EQUITY},
    {"code": "129", "name": "Profit and loss for the year", "type": AccountType.EQUITY},
    {"code": "170", "name": "Long-term loans from partners", "type": AccountType.LIABILITY},
    
    # GROUP 2 - NON-CURRENT ASSETS
    {"code": "2", "name": "Non-current assets", "type": AccountType.ASSET, "is_detail": False},
    
    # GROUP 3 - INVENTORIES
    {"code": "3", "name": "Inventories", "type": AccountType.ASSET, "is_detail": False},
    
    # GROUP 4 - CREDITORS AND DEBTORS
    {"code": "4", "name": "Creditors and debtors", "type": AccountType.LIABILITY, "is_detail": False},
    {"code": "400", "name": "Suppliers", "type": AccountType.LIABILITY},
    {"code": "430", "name": "Customers", "type": AccountType.ASSET},
    {"code": "465", "name": "Remuneration payable", "type": AccountType.LIABILITY},
    {"code": "472", "name": "Input VAT", "type": AccountType.ASSET},
    {"code": "4751", "name": "Tax authority, withholdings payable", "type": AccountType.LIABILITY},
    {"code": "477", "name": "Output VAT", "type": AccountType.LIABILITY},
    
    # GROUP 5 - FINANCIAL ACCOUNTS
    {"code": "5", "name": "Financial accounts", "type": AccountType.ASSET, "is_detail": False},
    {"code": "526", "name": "Dividends payable", "type": AccountType.LIABILITY},
    {"code": "551", "name": "Partner current account", "type": AccountType.ASSET},
    {"code": "570", "name": "Cash", "type": AccountType.ASSET},
    {"code": "572", "name": "Banks", "type": AccountType.ASSET},
    
    # GROUP 6 - PURCHASES AND EXPENSES
    {"code": "6", "name": "Purchases and expenses", "type": AccountType.EXPENSE, "is_detail": False},
    {"code": "600", "name": "Purchases of goods", "type": AccountType.EXPENSE},
    {"code": "621", "name": "Rent and leases", "type": AccountType.EXPENSE},
    {"code": "626", "name": "Bank services", "type": AccountType.EXPENSE},
    {"code": "628", "name": "Utilities", "type": AccountType.EXPENSE},
    {"code": "629", "name": "Other services", "type": AccountType.EXPENSE},
    {"code": "640", "name": "Salaries and wages", "type": AccountType.EXPENSE},
    
    # GROUP 7 - SALES AND INCOME
    {"code": "7", "name": "Sales and income", "type": AccountType.INCOME, "is_detail": False},
    {"code": "700", "name": "Sales of goods", "type": AccountType.INCOME},
    {"code": "705", "name": "Services rendered", "type": AccountType.INCOME},
    {"code": "769", "name": "Other financial income", "type": AccountType.INCOME},
]


class ChartOfAccountsService:
    """Service for chart of accounts operations."""
    
    def __init__(self, db: AsyncSession):
        self.db = db
    
    async def get_accounts(
        self,
        account_group: Optional[int] = None,
        is_detail: Optional[bool] = None,
        active_only: bool = True,
    ) -> List[Account]:
        """Get accounts ordered by code."""
        query = select(Account)
        
        if account_group is not None:
            query = query.where(Account.account_group == account_group)
        if is_detail is not None:
            query = query.where(Account.is_detail == is_detail)
        if active_only:
            query = query.where(Account.is_active == True)
        
        result = await self.db.execute(query.order_by(Account.account_code))
        return list(result.scalars().all())
    
    async def get_account_by_code(self, account_code: str) -> Optional[Account]:
        result = await self.db.execute(
            select(Account).where(Account.account_code == account_code)
        )
        return result.scalar_one_or_none()
    
    async def resolve_postable_account(self, account_code: str) -> Account:
        """
        Resolve a line's account code to an account that can receive postings.
        
        Raises:
            UnknownAccountException: no active account with that code
            NotPostableException: the account is a summary account
        """
        account = await self.get_account_by_code(account_code)
        if account is None or not account.is_active:
            raise UnknownAccountException(account_code)
        if not account.is_detail:
            raise NotPostableException(account_code)
        return account
    
    async def create_account(self, data: AccountCreate) -> Account:
        """Create a new account in the chart of accounts."""
        existing = await self.get_account_by_code(data.account_code)
        if existing:
            raise ConflictException(
                f"Account code {data.account_code} already exists",
                resource_type="Account",
                code=ErrorCode.DUPLICATE_ENTRY,
            )
        
        account = Account(
            account_code=data.account_code,
            account_name=data.account_name,
            description=data.description,
            account_type=data.account_type,
            account_group=int(data.account_code[0]),
            normal_balance=data.normal_balance or default_normal_balance(data.account_type),
            is_detail=data.is_detail,
            is_active=True,
        )
        
        self.db.add(account)
        await self.db.flush()
        logger.info(f"Created account {account.account_code} - {account.account_name}")
        return account
    
    async def seed_default_chart(self) -> List[Account]:
        """Insert the default chart. Codes that already exist are left untouched."""
        result = await self.db.execute(select(Account.account_code))
        existing_codes = set(result.scalars().all())
        
        created_accounts = []
        for acc_data in DEFAULT_CHART:
            if acc_data["code"] in existing_codes:
                continue
            
            account = Account(
                account_code=acc_data["code"],
                account_name=acc_data["name"],
                account_type=acc_data["type"],
                account_group=int(acc_data["code"][0]),
                normal_balance=default_normal_balance(acc_data["type"]),
                is_detail=acc_data.get("is_detail", True),
                is_active=True,
            )
            self.db.add(account)
            created_accounts.append(account)
        
        await self.db.flush()
        logger.info(f"Seeded {len(created_accounts)} accounts into the chart")
        return created_accounts
