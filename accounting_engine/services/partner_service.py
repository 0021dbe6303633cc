"""
Accounting Engine - Partner Current-Account Service

Partners, their current-account movements and the partner operations that
also book a journal entry (dividends, administrator remuneration, loans).

A partner's current_account_balance changes in the same database
transaction as the movement that causes it, with the partner row read
FOR UPDATE.
"""

import logging
import uuid
from datetime import date
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from accounting_engine.config import settings
from accounting_engine.models.accounting import Jurisdiction
from accounting_engine.models.partner import (
    Partner,
    PartnerStatus,
    PartnerTransaction,
    PartnerTransactionStatus,
    PartnerTransactionType,
    balance_sign,
)
from accounting_engine.schemas.partner import (
    DistributionRequest,
    DistributionResult,
    DistributionShare,
    LoanDirection,
    PartnerCreate,
    PartnerDividendRequest,
    PartnerLoanRequest,
    PartnerOperationResponse,
    PartnerSalaryRequest,
    PartnerTransactionCreate,
    PartnerTransactionResponse,
)
from accounting_engine.services.fiscal_period_service import FiscalPeriodService
from accounting_engine.services.journal_service import JournalService
from accounting_engine.services.ledger_service import ZERO, to_money
from accounting_engine.utils.error_handling import (
    BusinessRuleException,
    ErrorCode,
    NotFoundException,
)

logger = logging.getLogger(__name__)


class PartnerService:
    """Service for partner current accounts."""
    
    def __init__(self, db: AsyncSession):
        self.db = db
        self.journal = JournalService(db)
    
    # ===========================================
    # PARTNERS
    # ===========================================
    
    async def create_partner(self, data: PartnerCreate) -> Partner:
        partner = Partner(
            **data.model_dump(),
            status=PartnerStatus.ACTIVE,
            current_account_balance=ZERO,
        )
        self.db.add(partner)
        await self.db.flush()
        logger.info(f"Created partner {partner.partner_name} ({partner.ownership_percentage}%)")
        return partner
    
    async def list_partners(self, active_only: bool = True) -> List[Partner]:
        query = select(Partner)
        if active_only:
            query = query.where(Partner.status == PartnerStatus.ACTIVE)
        result = await self.db.execute(query.order_by(Partner.partner_name))
        return list(result.scalars().all())
    
    async def get_partner(self, partner_id: uuid.UUID, for_update: bool = False) -> Partner:
        query = select(Partner).where(Partner.id == partner_id)
        if for_update:
            query = query.with_for_update()
        result = await self.db.execute(query)
        partner = result.scalar_one_or_none()
        if partner is None:
            raise NotFoundException("Partner", partner_id, code=ErrorCode.PARTNER_NOT_FOUND)
        return partner
    
    async def _jurisdiction(self) -> Jurisdiction:
        config = await FiscalPeriodService(self.db).get_fiscal_config()
        if config is not None:
            return config.jurisdiction
        return Jurisdiction(settings.default_jurisdiction)
    
    async def dividend_withholding_rate(self) -> Decimal:
        """19% withholding on dividends in Spain, none in Andorra."""
        if await self._jurisdiction() == Jurisdiction.ANDORRA:
            return ZERO
        return settings.dividend_withholding_rate
    
    # ===========================================
    # CURRENT-ACCOUNT MOVEMENTS
    # ===========================================
    
    async def _record(
        self,
        partner: Partner,
        transaction_type: PartnerTransactionType,
        amount: Decimal,
        transaction_date: date,
        description: Optional[str] = None,
        tax_withholding: Decimal = ZERO,
        status: PartnerTransactionStatus = PartnerTransactionStatus.PENDING,
        affects_balance: bool = True,
    ) -> PartnerTransaction:
        transaction = PartnerTransaction(
            partner_id=partner.id,
            transaction_type=transaction_type,
            transaction_date=transaction_date,
            amount=amount,
            tax_withholding=tax_withholding,
            net_amount=amount - tax_withholding,
            description=description,
            status=status,
        )
        self.db.add(transaction)
        
        if affects_balance:
            partner.current_account_balance = (
                (partner.current_account_balance or ZERO) + amount * balance_sign(transaction_type)
            )
        
        await self.db.flush()
        return transaction
    
    async def record_transaction(self, data: PartnerTransactionCreate) -> PartnerTransaction:
        """
        Record a current-account movement (status pending).
        
        balance += amount for capital contributions and loans to the
        company, balance -= amount for every other type.
        """
        partner = await self.get_partner(data.partner_id, for_update=True)
        transaction = await self._record(
            partner,
            data.transaction_type,
            data.amount,
            data.transaction_date,
            description=data.description,
        )
        logger.info(
            f"Partner {partner.partner_name}: {data.transaction_type.value} {data.amount}, "
            f"balance {partner.current_account_balance}"
        )
        return transaction
    
    async def _book(
        self,
        partner: Partner,
        transaction: PartnerTransaction,
        event_type: str,
        event_data: dict,
        entry_date: date,
    ) -> PartnerOperationResponse:
        entry = await self.journal.generate_auto_entry(
            event_type,
            {
                **event_data,
                "reference_type": "partner_transaction",
                "reference_id": str(transaction.id),
            },
            entry_date,
        )
        transaction.journal_entry_id = entry.id
        await self.db.flush()
        
        return PartnerOperationResponse(
            transaction=PartnerTransactionResponse.model_validate(transaction),
            journal_entry_id=entry.id,
            partner_balance=partner.current_account_balance,
        )
    
    async def partner_dividend(self, data: PartnerDividendRequest) -> PartnerOperationResponse:
        """Dividend with withholding, booked 129 / 4751 / 526."""
        partner = await self.get_partner(data.partner_id, for_update=True)
        
        gross = to_money(data.gross_amount)
        withholding = to_money(gross * await self.dividend_withholding_rate())
        net = gross - withholding
        
        transaction = await self._record(
            partner,
            PartnerTransactionType.DIVIDEND,
            gross,
            data.distribution_date,
            description=f"Dividend fiscal year {data.fiscal_year}",
            tax_withholding=withholding,
            status=PartnerTransactionStatus.APPROVED,
        )
        
        return await self._book(
            partner,
            transaction,
            "partner_dividend",
            {"gross": gross, "irpf": withholding, "net": net, "description": f"Dividend {partner.partner_name}"},
            data.distribution_date,
        )
    
    async def partner_salary(self, data: PartnerSalaryRequest) -> PartnerOperationResponse:
        """Administrator remuneration, booked 640 / 4751 / 465. The current account is unchanged."""
        partner = await self.get_partner(data.partner_id, for_update=True)
        if not partner.is_administrator:
            raise BusinessRuleException(
                f"Partner {partner.partner_name} is not an administrator",
                rule="ADMINISTRATOR_ONLY",
            )
        
        gross = to_money(data.gross_amount)
        withholding = to_money(gross * data.irpf_rate / Decimal("100"))
        net = gross - withholding
        
        transaction = await self._record(
            partner,
            PartnerTransactionType.ADMIN_REMUNERATION,
            gross,
            data.payment_date,
            description=data.concept or "Administrator remuneration",
            tax_withholding=withholding,
            status=PartnerTransactionStatus.APPROVED,
            affects_balance=False,
        )
        
        return await self._book(
            partner,
            transaction,
            "partner_salary",
            {"gross": gross, "irpf": withholding, "net": net, "description": f"Remuneration {partner.partner_name}"},
            data.payment_date,
        )
    
    async def partner_loan(self, data: PartnerLoanRequest) -> PartnerOperationResponse:
        """
        Loan from the partner (572 / 170) or to the partner (551 / 572).
        
        The interest rate and end date are stored on the movement; the
        whole principal starts out as outstanding.
        """
        partner = await self.get_partner(data.partner_id, for_update=True)
        amount = to_money(data.amount)
        
        if data.loan_type == LoanDirection.TO_COMPANY:
            transaction_type = PartnerTransactionType.LOAN_TO_COMPANY
            event_type = "partner_loan_in"
            description = "Loan from partner"
        else:
            transaction_type = PartnerTransactionType.LOAN_FROM_COMPANY
            event_type = "partner_loan_out"
            description = "Loan to partner"
        
        transaction = await self._record(
            partner,
            transaction_type,
            amount,
            data.start_date,
            description=description,
            status=PartnerTransactionStatus.APPROVED,
        )
        transaction.interest_rate = data.interest_rate
        transaction.loan_end_date = data.end_date
        transaction.outstanding_balance = amount
        
        return await self._book(
            partner,
            transaction,
            event_type,
            {"amount": amount, "description": f"{description} {partner.partner_name}"},
            data.start_date,
        )
    
    # ===========================================
    # DISTRIBUTION CALCULATOR
    # ===========================================
    
    async def partner_distribution(self, data: DistributionRequest) -> DistributionResult:
        """Split an amount across active partners by ownership. Nothing is written."""
        partners = await self.list_partners(active_only=True)
        if not partners:
            raise BusinessRuleException("There are no active partners", rule="ACTIVE_PARTNERS")
        
        rate = await self.dividend_withholding_rate()
        
        shares = []
        for partner in partners:
            gross = to_money(data.amount * partner.ownership_percentage / Decimal("100"))
            withholding = to_money(gross * rate)
            shares.append(DistributionShare(
                partner_id=partner.id,
                partner_name=partner.partner_name,
                ownership_percentage=partner.ownership_percentage,
                gross_amount=gross,
                withholding=withholding,
                net_amount=gross - withholding,
            ))
        
        return DistributionResult(
            distribution_type=data.distribution_type,
            fiscal_year=data.fiscal_year,
            total_amount=data.amount,
            withholding_rate=rate * 100,
            shares=shares,
            total_gross=sum((s.gross_amount for s in shares), ZERO),
            total_withholding=sum((s.withholding for s in shares), ZERO),
            total_net=sum((s.net_amount for s in shares), ZERO),
        )
