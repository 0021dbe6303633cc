"""
Accounting Engine - Bank Reconciliation Rule Engine

Matches unreconciled bank transactions against active rules.
Features:
- Rule and statement-row intake
- First-match-wins evaluation by ascending priority
  (ties broken by creation order)
- Case-insensitive exact / contains / regex matching
"""

import logging
import re
import uuid
from typing import List, Optional

from sqlalchemy import select, and_, func
from sqlalchemy.ext.asyncio import AsyncSession

from accounting_engine.models.base import utcnow
from accounting_engine.models.bank_reconciliation import (
    BankTransaction,
    MatchType,
    ReconciliationRule,
)
from accounting_engine.schemas.bank_reconciliation import (
    AutoReconcileResult,
    BankTransactionCreate,
    BankTransactionResponse,
    ReconciliationRuleCreate,
)
from accounting_engine.utils.error_handling import RuleEvaluationSkipped

logger = logging.getLogger(__name__)


def field_value(transaction: BankTransaction, rule: ReconciliationRule) -> str:
    """Lower-cased string form of the transaction field a rule inspects."""
    value = getattr(transaction, rule.match_field.value, None)
    if value is None:
        return ""
    return str(value).lower()


def rule_matches(rule: ReconciliationRule, transaction: BankTransaction) -> bool:
    """
    Evaluate one rule against one transaction.
    
    Raises:
        RuleEvaluationSkipped: the rule's regex does not compile
    """
    value = field_value(transaction, rule)
    
    if rule.match_type == MatchType.EXACT:
        return value == rule.match_value.lower()
    
    if rule.match_type == MatchType.CONTAINS:
        return rule.match_value.lower() in value
    
    try:
        pattern = re.compile(rule.match_value, re.IGNORECASE)
    except re.error as e:
        raise RuleEvaluationSkipped(rule.id, rule.match_value, str(e))
    return pattern.search(value) is not None


class ReconciliationService:
    """Service for rule-based bank reconciliation."""
    
    def __init__(self, db: AsyncSession):
        self.db = db
    
    # ===========================================
    # RULES & TRANSACTIONS
    # ===========================================
    
    async def create_rule(self, data: ReconciliationRuleCreate) -> ReconciliationRule:
        result = await self.db.execute(
            select(func.coalesce(func.max(ReconciliationRule.sequence), 0))
        )
        sequence = result.scalar_one() + 1
        
        rule = ReconciliationRule(**data.model_dump(), sequence=sequence, matches_count=0)
        self.db.add(rule)
        await self.db.flush()
        logger.info(f"Created reconciliation rule '{rule.rule_name}' (priority {rule.priority})")
        return rule
    
    async def get_active_rules(self) -> List[ReconciliationRule]:
        """Active rules in evaluation order."""
        result = await self.db.execute(
            select(ReconciliationRule)
            .where(ReconciliationRule.is_active == True)
            .order_by(
                ReconciliationRule.priority,
                ReconciliationRule.sequence,
                ReconciliationRule.id,
            )
        )
        return list(result.scalars().all())
    
    async def import_transactions(
        self,
        bank_account_id: uuid.UUID,
        transactions: List[BankTransactionCreate],
    ) -> List[BankTransaction]:
        """Store statement rows as unreconciled bank transactions."""
        created = []
        for txn_data in transactions:
            txn = BankTransaction(
                bank_account_id=bank_account_id,
                transaction_date=txn_data.transaction_date,
                description=txn_data.description,
                counterparty=txn_data.counterparty,
                reference=txn_data.reference,
                amount=txn_data.amount,
                is_reconciled=False,
            )
            self.db.add(txn)
            created.append(txn)
        
        await self.db.flush()
        logger.info(f"Imported {len(created)} bank transactions for account {bank_account_id}")
        return created
    
    async def get_unreconciled(
        self,
        bank_account_id: Optional[uuid.UUID] = None,
        limit: int = 100,
    ) -> List[BankTransaction]:
        query = select(BankTransaction).where(BankTransaction.is_reconciled == False)
        if bank_account_id:
            query = query.where(BankTransaction.bank_account_id == bank_account_id)
        query = query.order_by(BankTransaction.transaction_date, BankTransaction.created_at).limit(limit)
        
        result = await self.db.execute(query)
        return list(result.scalars().all())
    
    # ===========================================
    # AUTO-RECONCILIATION
    # ===========================================
    
    def find_matching_rule(
        self,
        transaction: BankTransaction,
        rules: List[ReconciliationRule],
    ) -> Optional[ReconciliationRule]:
        """First rule (in the given order) that matches the transaction."""
        for rule in rules:
            try:
                if rule_matches(rule, transaction):
                    return rule
            except RuleEvaluationSkipped as e:
                logger.warning(e.message)
        return None
    
    async def auto_reconcile(self, bank_account_id: uuid.UUID) -> AutoReconcileResult:
        """
        Reconcile the account's open transactions against the active rules.
        
        Matched transactions are categorized and linked to their rule, and
        the rule's matches_count is incremented in the same transaction.
        Unmatched transactions are returned untouched.
        """
        result = await self.db.execute(
            select(BankTransaction)
            .where(
                and_(
                    BankTransaction.bank_account_id == bank_account_id,
                    BankTransaction.is_reconciled == False,
                )
            )
            .order_by(BankTransaction.transaction_date, BankTransaction.created_at)
            .with_for_update()
        )
        transactions = list(result.scalars().all())
        rules = await self.get_active_rules()
        
        reconciled = []
        unmatched = []
        for txn in transactions:
            rule = self.find_matching_rule(txn, rules)
            if rule is None:
                unmatched.append(txn)
                continue
            
            now = utcnow()
            txn.is_reconciled = True
            txn.category = rule.target_category
            txn.reconciled_at = now
            txn.matched_rule_id = rule.id
            
            rule.matches_count = (rule.matches_count or 0) + 1
            rule.last_matched_at = now
            reconciled.append(txn)
        
        await self.db.flush()
        logger.info(
            f"Auto-reconcile {bank_account_id}: {len(reconciled)} reconciled, "
            f"{len(unmatched)} unmatched"
        )
        
        return AutoReconcileResult(
            bank_account_id=bank_account_id,
            total_processed=len(transactions),
            reconciled_count=len(reconciled),
            unmatched_count=len(unmatched),
            reconciled=[BankTransactionResponse.model_validate(t) for t in reconciled],
            unmatched=[BankTransactionResponse.model_validate(t) for t in unmatched],
        )
