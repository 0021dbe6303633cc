"""
Accounting Engine - Partner Models

Partners (shareholders) and the movements on their current accounts.
"""

import uuid
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Optional

from sqlalchemy import (
    Boolean, Date, ForeignKey, Numeric, String, Text, Uuid,
    Enum as SQLEnum, Index
)
from sqlalchemy.orm import Mapped, mapped_column

from accounting_engine.models.base import BaseModel


class PartnerStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class PartnerTransactionType(str, Enum):
    """Partner current-account movements."""
    CAPITAL_CONTRIBUTION = "capital_contribution"
    LOAN_TO_COMPANY = "loan_to_company"
    WITHDRAWAL = "withdrawal"
    LOAN_REPAYMENT = "loan_repayment"
    LOAN_FROM_COMPANY = "loan_from_company"
    DIVIDEND = "dividend"
    DISTRIBUTION = "distribution"
    ADMIN_REMUNERATION = "admin_remuneration"


# Movements that increase what the company owes the partner
CREDITING_TRANSACTION_TYPES = frozenset({
    PartnerTransactionType.CAPITAL_CONTRIBUTION,
    PartnerTransactionType.LOAN_TO_COMPANY,
})


def balance_sign(transaction_type: PartnerTransactionType) -> int:
    """+1 for contributions and loans to the company, -1 for everything else."""
    return 1 if transaction_type in CREDITING_TRANSACTION_TYPES else -1


class PartnerTransactionStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"


class Partner(BaseModel):
    """Shareholder with a running current-account balance."""
    
    __tablename__ = "partners"
    
    partner_name: Mapped[str] = mapped_column(String(200), nullable=False)
    tax_id: Mapped[Optional[str]] = mapped_column(String(30), nullable=True)
    ownership_percentage: Mapped[Decimal] = mapped_column(
        Numeric(precision=5, scale=2), default=Decimal("0.00"), nullable=False,
    )
    is_administrator: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    status: Mapped[PartnerStatus] = mapped_column(
        SQLEnum(PartnerStatus), default=PartnerStatus.ACTIVE, nullable=False,
    )
    current_account_balance: Mapped[Decimal] = mapped_column(
        Numeric(precision=18, scale=2),
        default=Decimal("0.00"),
        nullable=False,
        comment="Maintained in the same transaction as each partner movement",
    )


class PartnerTransaction(BaseModel):
    """A single movement on a partner's current account."""
    
    __tablename__ = "partner_transactions"
    
    partner_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("partners.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    transaction_type: Mapped[PartnerTransactionType] = mapped_column(
        SQLEnum(PartnerTransactionType), nullable=False,
    )
    transaction_date: Mapped[date] = mapped_column(Date, nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(precision=18, scale=2), nullable=False)
    tax_withholding: Mapped[Decimal] = mapped_column(
        Numeric(precision=18, scale=2), default=Decimal("0.00"), nullable=False,
    )
    net_amount: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(precision=18, scale=2), nullable=True,
    )
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    status: Mapped[PartnerTransactionStatus] = mapped_column(
        SQLEnum(PartnerTransactionStatus),
        default=PartnerTransactionStatus.PENDING,
        nullable=False,
    )
    journal_entry_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("journal_entries.id", ondelete="SET NULL"),
        nullable=True,
    )
    
    # Loan terms (loan types only)
    interest_rate: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(precision=5, scale=2), nullable=True,
    )
    loan_end_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    outstanding_balance: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(precision=18, scale=2), nullable=True,
    )
    
    __table_args__ = (
        Index('ix_partner_transactions_type_date', 'transaction_type', 'transaction_date'),
    )
