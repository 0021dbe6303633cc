"""
Accounting Engine - Journal Entry Service

Journal entry creation, posting, reversal and template-driven
automatic entries.

Lifecycle: DRAFT -> POSTED -> REVERSED. Every check runs before the first
write, so a rejected operation leaves nothing behind.
"""

import logging
import uuid
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import select, func, desc
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from accounting_engine.config import settings
from accounting_engine.models.base import utcnow
from accounting_engine.models.accounting import (
    Account,
    JournalEntry,
    JournalEntryLine,
    JournalEntryStatus,
)
from accounting_engine.schemas.accounting import (
    JournalEntryCreate,
    JournalEntryLineCreate,
)
from accounting_engine.services.chart_of_accounts_service import ChartOfAccountsService
from accounting_engine.services.fiscal_period_service import FiscalPeriodService
from accounting_engine.services.ledger_service import ZERO, to_money
from accounting_engine.utils.error_handling import (
    ErrorCode,
    ImbalancedEntryException,
    NotDraftException,
    NotFoundException,
    NotPostedException,
    ValidationException,
)

logger = logging.getLogger(__name__)


# =============================================================================
# AUTOMATIC ENTRY TEMPLATES
# =============================================================================
# Each line takes its amount from event_data[source]; zero amounts are skipped.

ENTRY_TEMPLATES: Dict[str, Dict[str, Any]] = {
    "invoice_issued": {
        "description": "Sales invoice",
        "lines": [
            {"account": "430", "side": "debit", "source": "total"},
            {"account": "700", "side": "credit", "source": "base"},
            {"account": "477", "side": "credit", "source": "tax"},
        ],
    },
    "invoice_collected": {
        "description": "Invoice collection",
        "lines": [
            {"account": "572", "side": "debit", "source": "amount"},
            {"account": "430", "side": "credit", "source": "amount"},
        ],
    },
    "supplier_invoice": {
        "description": "Supplier invoice",
        "lines": [
            {"account": "600", "side": "debit", "source": "base"},
            {"account": "472", "side": "debit", "source": "tax"},
            {"account": "400", "side": "credit", "source": "total"},
        ],
    },
    "supplier_paid": {
        "description": "Supplier payment",
        "lines": [
            {"account": "400", "side": "debit", "source": "amount"},
            {"account": "572", "side": "credit", "source": "amount"},
        ],
    },
    "partner_salary": {
        "description": "Administrator remuneration",
        "lines": [
            {"account": "640", "side": "debit", "source": "gross"},
            {"account": "4751", "side": "credit", "source": "irpf"},
            {"account": "465", "side": "credit", "source": "net"},
        ],
    },
    "partner_dividend": {
        "description": "Dividend distribution",
        "lines": [
            {"account": "129", "side": "debit", "source": "gross"},
            {"account": "4751", "side": "credit", "source": "irpf"},
            {"account": "526", "side": "credit", "source": "net"},
        ],
    },
    "partner_capital": {
        "description": "Capital contribution",
        "lines": [
            {"account": "572", "side": "debit", "source": "amount"},
            {"account": "100", "side": "credit", "source": "amount"},
        ],
    },
    "partner_loan_in": {
        "description": "Loan from partner",
        "lines": [
            {"account": "572", "side": "debit", "source": "amount"},
            {"account": "170", "side": "credit", "source": "amount"},
        ],
    },
    "partner_loan_out": {
        "description": "Loan to partner",
        "lines": [
            {"account": "551", "side": "debit", "source": "amount"},
            {"account": "572", "side": "credit", "source": "amount"},
        ],
    },
}


def _template_amount(event_data: Dict[str, Any], source: str) -> Decimal:
    raw = event_data.get(source)
    if raw is None:
        return ZERO
    try:
        amount = Decimal(str(raw))
    except InvalidOperation:
        raise ValidationException(f"Amount '{source}' is not a number", field=source)
    if amount < 0:
        raise ValidationException(f"Amount '{source}' cannot be negative", field=source)
    return to_money(amount)


class JournalService:
    """Service for journal entry lifecycle operations."""
    
    def __init__(self, db: AsyncSession):
        self.db = db
        self.accounts = ChartOfAccountsService(db)
        self.periods = FiscalPeriodService(db)
    
    # =========================================================================
    # QUERIES
    # =========================================================================
    
    async def get_entry(self, entry_id: uuid.UUID) -> JournalEntry:
        """Get journal entry by ID with lines."""
        result = await self.db.execute(
            select(JournalEntry)
            .options(selectinload(JournalEntry.lines))
            .where(JournalEntry.id == entry_id)
        )
        entry = result.scalar_one_or_none()
        if entry is None:
            raise NotFoundException("JournalEntry", entry_id, code=ErrorCode.ENTRY_NOT_FOUND)
        return entry
    
    async def list_entries(
        self,
        status: Optional[JournalEntryStatus] = None,
        fiscal_period_id: Optional[uuid.UUID] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        limit: int = 50,
    ) -> List[JournalEntry]:
        """Get journal entries with filtering, newest first."""
        query = select(JournalEntry)
        
        if status:
            query = query.where(JournalEntry.status == status)
        if fiscal_period_id:
            query = query.where(JournalEntry.fiscal_period_id == fiscal_period_id)
        if start_date:
            query = query.where(JournalEntry.entry_date >= start_date)
        if end_date:
            query = query.where(JournalEntry.entry_date <= end_date)
        
        query = query.options(selectinload(JournalEntry.lines))
        query = query.order_by(desc(JournalEntry.entry_date), desc(JournalEntry.entry_number))
        query = query.limit(limit)
        
        result = await self.db.execute(query)
        return list(result.scalars().all())
    
    async def _generate_entry_number(self, entry_date: date) -> str:
        """Generate unique journal entry number."""
        year = entry_date.year
        
        result = await self.db.execute(
            select(func.max(JournalEntry.entry_number)).where(
                JournalEntry.entry_number.like(f"JE-{year}-%")
            )
        )
        last_number = result.scalar()
        sequence = int(last_number.rsplit("-", 1)[1]) if last_number else 0
        
        return f"JE-{year}-{str(sequence + 1).zfill(5)}"
    
    # =========================================================================
    # LIFECYCLE
    # =========================================================================
    
    async def create_entry(
        self,
        data: JournalEntryCreate,
        is_automatic: bool = False,
        is_closing_entry: bool = False,
    ) -> JournalEntry:
        """
        Create a draft journal entry.
        
        Raises:
            ImbalancedEntryException: |Σdebit - Σcredit| above the tolerance
            NoFiscalPeriodException / PeriodLockedException: no writable period
            UnknownAccountException / NotPostableException: bad line account
        """
        total_debit = sum((line.debit_amount for line in data.lines), ZERO)
        total_credit = sum((line.credit_amount for line in data.lines), ZERO)
        
        if abs(total_debit - total_credit) > settings.balance_tolerance:
            raise ImbalancedEntryException(total_debit, total_credit)
        
        period = await self.periods.resolve_writable_period(data.entry_date, "create entries")
        
        resolved: Dict[str, Account] = {}
        for line_data in data.lines:
            if line_data.account_code not in resolved:
                resolved[line_data.account_code] = await self.accounts.resolve_postable_account(
                    line_data.account_code
                )
        
        lines = [
            JournalEntryLine(
                account=resolved[line_data.account_code],
                line_number=idx,
                description=line_data.description,
                debit_amount=line_data.debit_amount,
                credit_amount=line_data.credit_amount,
                tax_code=line_data.tax_code,
            )
            for idx, line_data in enumerate(data.lines, 1)
        ]
        
        entry = JournalEntry(
            fiscal_period_id=period.id,
            entry_number=await self._generate_entry_number(data.entry_date),
            entry_date=data.entry_date,
            description=data.description,
            reference_type=data.reference_type,
            reference_id=data.reference_id,
            source_document=data.source_document,
            total_debit=total_debit,
            total_credit=total_credit,
            status=JournalEntryStatus.DRAFT,
            is_automatic=is_automatic,
            is_closing_entry=is_closing_entry,
        )
        entry.lines = lines
        
        self.db.add(entry)
        await self.db.flush()
        logger.info(f"Created draft entry {entry.entry_number} ({total_debit} / {total_credit})")
        
        if data.auto_post:
            entry = await self.post_entry(entry.id)
        
        return entry
    
    async def post_entry(self, entry_id: uuid.UUID) -> JournalEntry:
        """Post a draft entry, making its lines visible to the ledger."""
        entry = await self.get_entry(entry_id)
        
        if entry.status != JournalEntryStatus.DRAFT:
            raise NotDraftException(entry.id, entry.status.value)
        
        await self.periods.resolve_writable_period(entry.entry_date, "post entries")
        
        entry.status = JournalEntryStatus.POSTED
        entry.posted_at = utcnow()
        
        await self.db.flush()
        logger.info(f"Posted entry {entry.entry_number}")
        return entry
    
    async def reverse_entry(
        self,
        entry_id: uuid.UUID,
        reversal_date: date,
        reason: Optional[str] = None,
    ) -> JournalEntry:
        """
        Reverse a posted entry with a posted mirror entry.
        
        The mirror keeps line numbers and accounts and swaps debit/credit.
        The original becomes REVERSED; its lines stay in the ledger.
        """
        original = await self.get_entry(entry_id)
        
        if original.status != JournalEntryStatus.POSTED:
            raise NotPostedException(original.id, original.status.value)
        
        period = await self.periods.resolve_writable_period(reversal_date, "reverse entries")
        
        description = f"Reversal: {original.description}"
        if reason:
            description = f"{description}. {reason}"
        
        mirror_lines = [
            JournalEntryLine(
                account=line.account,
                line_number=line.line_number,
                description=f"Reversal: {line.description or ''}".strip(),
                debit_amount=line.credit_amount,
                credit_amount=line.debit_amount,
                tax_code=line.tax_code,
            )
            for line in original.lines
        ]
        
        reversal = JournalEntry(
            fiscal_period_id=period.id,
            entry_number=await self._generate_entry_number(reversal_date),
            entry_date=reversal_date,
            description=description[:500],
            reference_type="adjustment",
            reference_id=str(original.id),
            source_document=original.source_document,
            total_debit=original.total_credit,
            total_credit=original.total_debit,
            status=JournalEntryStatus.POSTED,
            posted_at=utcnow(),
            is_reversing=True,
            reversed_entry_id=original.id,
            reversal_reason=reason,
            is_closing_entry=original.is_closing_entry,
        )
        reversal.lines = mirror_lines
        self.db.add(reversal)
        
        original.status = JournalEntryStatus.REVERSED
        original.reversal_reason = reason
        
        await self.db.flush()
        logger.info(f"Reversed entry {original.entry_number} with {reversal.entry_number}")
        return reversal
    
    async def delete_draft(self, entry_id: uuid.UUID) -> uuid.UUID:
        """Delete a draft entry together with its lines."""
        entry = await self.get_entry(entry_id)
        
        if entry.status != JournalEntryStatus.DRAFT:
            raise NotDraftException(entry.id, entry.status.value, attempted="delete")
        
        entry_number = entry.entry_number
        await self.db.delete(entry)
        await self.db.flush()
        logger.info(f"Deleted draft entry {entry_number}")
        return entry_id
    
    # =========================================================================
    # VALIDATION & AUTOMATIC ENTRIES
    # =========================================================================
    
    async def validate_balance(self, entry_id: Optional[uuid.UUID] = None) -> Dict[str, Any]:
        """Balance check for one entry, or a sweep over every posted entry."""
        tolerance = settings.balance_tolerance
        
        if entry_id:
            entry = await self.get_entry(entry_id)
            difference = entry.total_debit - entry.total_credit
            return {
                "entry_id": str(entry.id),
                "balanced": abs(difference) <= tolerance,
                "debit": entry.total_debit,
                "credit": entry.total_credit,
                "difference": difference,
            }
        
        result = await self.db.execute(
            select(JournalEntry).where(JournalEntry.status == JournalEntryStatus.POSTED)
        )
        entries = list(result.scalars().all())
        unbalanced = [
            {
                "entry_id": str(e.id),
                "entry_number": e.entry_number,
                "total_debit": e.total_debit,
                "total_credit": e.total_credit,
            }
            for e in entries
            if abs(e.total_debit - e.total_credit) > tolerance
        ]
        
        return {
            "total_entries": len(entries),
            "balanced_count": len(entries) - len(unbalanced),
            "unbalanced_count": len(unbalanced),
            "unbalanced_entries": unbalanced,
        }
    
    def build_template_lines(
        self,
        event_type: str,
        event_data: Dict[str, Any],
    ) -> Tuple[Dict[str, Any], List[JournalEntryLineCreate]]:
        template = ENTRY_TEMPLATES.get(event_type)
        if template is None:
            raise ValidationException(
                f"Unsupported event type: {event_type}",
                field="event_type",
                code=ErrorCode.UNSUPPORTED_ENTRY_TEMPLATE,
                details={"supported": sorted(ENTRY_TEMPLATES)},
            )
        
        lines = []
        for line_template in template["lines"]:
            amount = _template_amount(event_data, line_template["source"])
            if amount == 0:
                continue
            is_debit = line_template["side"] == "debit"
            lines.append(JournalEntryLineCreate(
                account_code=line_template["account"],
                debit_amount=amount if is_debit else ZERO,
                credit_amount=ZERO if is_debit else amount,
                description=event_data.get("description"),
            ))
        
        if len(lines) < 2:
            raise ValidationException(
                f"Event data for '{event_type}' produces fewer than two non-zero lines",
                field="event_data",
            )
        return template, lines
    
    async def generate_auto_entry(
        self,
        event_type: str,
        event_data: Dict[str, Any],
        entry_date: date,
    ) -> JournalEntry:
        """Create and post an entry from a registered template."""
        template, lines = self.build_template_lines(event_type, event_data)
        
        description = template["description"]
        if event_data.get("description"):
            description = f"{description}: {event_data['description']}"
        
        reference_id = event_data.get("reference_id")
        data = JournalEntryCreate(
            entry_date=entry_date,
            description=description[:500],
            lines=lines,
            reference_type=event_data.get("reference_type"),
            reference_id=str(reference_id) if reference_id is not None else None,
            auto_post=True,
        )
        entry = await self.create_entry(data, is_automatic=True)
        logger.info(f"Generated automatic {event_type} entry {entry.entry_number}")
        return entry
