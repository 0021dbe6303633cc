"""
Accounting Engine - Bank Reconciliation Tests

Rule matching semantics and the auto-reconcile run.
"""

import uuid
from datetime import date
from decimal import Decimal

import pytest

from accounting_engine.models.bank_reconciliation import MatchField, MatchType
from accounting_engine.schemas.bank_reconciliation import (
    BankTransactionCreate,
    ReconciliationRuleCreate,
)
from accounting_engine.services.reconciliation_service import ReconciliationService


BANK_ACCOUNT = uuid.UUID("6f1c2b9e-1d4a-4c8e-9a57-3f2d8b1e0c11")


def statement_row(description, amount, counterparty=None, day=1):
    return BankTransactionCreate(
        transaction_date=date(2026, 3, day),
        description=description,
        amount=Decimal(amount),
        counterparty=counterparty,
    )


async def import_rows(db_session, rows):
    service = ReconciliationService(db_session)
    created = await service.import_transactions(BANK_ACCOUNT, rows)
    await db_session.commit()
    return created


class TestRuleMatching:

    @pytest.mark.asyncio
    async def test_contains_is_case_insensitive(self, db_session, rules):
        await import_rows(db_session, [statement_row("Recibo iberdrola clientes marzo", "-84.20")])

        result = await ReconciliationService(db_session).auto_reconcile(BANK_ACCOUNT)

        assert result.reconciled_count == 1
        assert result.reconciled[0].category == "628"
        assert result.reconciled[0].matched_rule_id == rules[0].id

    @pytest.mark.asyncio
    async def test_regex_rule(self, db_session, rules):
        await import_rows(db_session, [
            statement_row("COMISION mantenimiento", "-12.00"),
            statement_row("Pago comision", "-3.00", day=2),
        ])

        result = await ReconciliationService(db_session).auto_reconcile(BANK_ACCOUNT)

        assert result.reconciled_count == 1
        assert result.reconciled[0].description == "COMISION mantenimiento"
        assert result.unmatched[0].description == "Pago comision"

    @pytest.mark.asyncio
    async def test_exact_match_on_counterparty(self, db_session, rules):
        await import_rows(db_session, [
            statement_row("Transferencia alquiler", "-900.00", counterparty="inmobiliaria sol sl"),
            statement_row("Transferencia alquiler", "-900.00", counterparty="Inmobiliaria Sol SL Madrid", day=2),
        ])

        result = await ReconciliationService(db_session).auto_reconcile(BANK_ACCOUNT)

        assert [t.category for t in result.reconciled] == ["621"]
        assert result.unmatched_count == 1

    @pytest.mark.asyncio
    async def test_lowest_priority_number_wins(self, db_session, rules):
        await ReconciliationService(db_session).create_rule(ReconciliationRuleCreate(
            rule_name="Utilities catch-all",
            priority=50,
            match_value="recibo",
            target_category="629",
        ))
        await import_rows(db_session, [statement_row("RECIBO IBERDROLA", "-50.00")])

        result = await ReconciliationService(db_session).auto_reconcile(BANK_ACCOUNT)

        assert result.reconciled[0].category == "628"

    @pytest.mark.asyncio
    async def test_falls_through_to_lower_priority_rule(self, db_session):
        service = ReconciliationService(db_session)
        acronym = await service.create_rule(ReconciliationRuleCreate(
            rule_name="Cloud hosting (acronym)",
            priority=5,
            match_value="AWS",
            target_category="629",
        ))
        vendor = await service.create_rule(ReconciliationRuleCreate(
            rule_name="Amazon",
            priority=50,
            match_value="AMAZON",
            target_category="628",
        ))
        await import_rows(db_session, [statement_row("AMAZON WEB SERVICES", "-120.00")])

        result = await service.auto_reconcile(BANK_ACCOUNT)

        assert result.reconciled_count == 1
        assert result.reconciled[0].matched_rule_id == vendor.id
        assert result.reconciled[0].category == "628"
        assert vendor.matches_count == 1
        assert vendor.last_matched_at is not None
        assert acronym.matches_count == 0
        assert acronym.last_matched_at is None

    @pytest.mark.asyncio
    async def test_equal_priority_follows_creation_order(self, db_session):
        service = ReconciliationService(db_session)
        created = [
            await service.create_rule(ReconciliationRuleCreate(
                rule_name=f"Fees {n}",
                priority=10,
                match_value="cuota",
                target_category=category,
            ))
            for n, category in enumerate(["626", "629", "623"])
        ]
        await import_rows(db_session, [statement_row("Cuota mensual", "-9.00")])

        active = await service.get_active_rules()
        result = await service.auto_reconcile(BANK_ACCOUNT)

        assert [rule.sequence for rule in created] == [1, 2, 3]
        assert [rule.id for rule in active] == [rule.id for rule in created]
        assert result.reconciled[0].matched_rule_id == created[0].id
        assert result.reconciled[0].category == "626"

    @pytest.mark.asyncio
    async def test_inactive_rules_are_ignored(self, db_session):
        service = ReconciliationService(db_session)
        await service.create_rule(ReconciliationRuleCreate(
            rule_name="Disabled",
            match_value="iberdrola",
            target_category="628",
            is_active=False,
        ))
        await import_rows(db_session, [statement_row("IBERDROLA", "-50.00")])

        result = await service.auto_reconcile(BANK_ACCOUNT)

        assert result.reconciled_count == 0
        assert result.unmatched_count == 1

    @pytest.mark.asyncio
    async def test_invalid_regex_is_skipped(self, db_session, rules):
        service = ReconciliationService(db_session)
        await service.create_rule(ReconciliationRuleCreate(
            rule_name="Broken",
            priority=1,
            match_type=MatchType.REGEX,
            match_value="(unclosed",
            target_category="600",
        ))
        await import_rows(db_session, [statement_row("IBERDROLA", "-50.00")])

        result = await service.auto_reconcile(BANK_ACCOUNT)

        assert result.reconciled_count == 1
        assert result.reconciled[0].category == "628"

    @pytest.mark.asyncio
    async def test_amount_field(self, db_session):
        service = ReconciliationService(db_session)
        await service.create_rule(ReconciliationRuleCreate(
            rule_name="Monthly software fee",
            match_field=MatchField.AMOUNT,
            match_type=MatchType.EXACT,
            match_value="-29.99",
            target_category="629",
        ))
        await import_rows(db_session, [statement_row("Card payment", "-29.99")])

        result = await service.auto_reconcile(BANK_ACCOUNT)

        assert result.reconciled_count == 1


class TestAutoReconcile:

    @pytest.mark.asyncio
    async def test_run_updates_statistics(self, db_session, rules):
        await import_rows(db_session, [
            statement_row("IBERDROLA enero", "-60.00", day=1),
            statement_row("IBERDROLA febrero", "-65.00", day=2),
            statement_row("Ingreso cliente", "500.00", day=3),
        ])

        result = await ReconciliationService(db_session).auto_reconcile(BANK_ACCOUNT)

        assert result.total_processed == 3
        assert result.reconciled_count == 2
        assert result.unmatched_count == 1
        assert rules[0].matches_count == 2
        assert rules[0].last_matched_at is not None
        assert rules[1].matches_count == 0
        for txn in result.reconciled:
            assert txn.is_reconciled is True
            assert txn.reconciled_at is not None

    @pytest.mark.asyncio
    async def test_second_run_is_idempotent(self, db_session, rules):
        await import_rows(db_session, [
            statement_row("IBERDROLA enero", "-60.00"),
            statement_row("Ingreso cliente", "500.00", day=2),
        ])
        service = ReconciliationService(db_session)
        await service.auto_reconcile(BANK_ACCOUNT)

        second = await service.auto_reconcile(BANK_ACCOUNT)

        assert second.total_processed == 1
        assert second.reconciled_count == 0
        assert rules[0].matches_count == 1

    @pytest.mark.asyncio
    async def test_other_accounts_untouched(self, db_session, rules):
        other_account = uuid.uuid4()
        service = ReconciliationService(db_session)
        await service.import_transactions(other_account, [statement_row("IBERDROLA", "-10.00")])
        await import_rows(db_session, [statement_row("IBERDROLA", "-20.00")])

        await service.auto_reconcile(BANK_ACCOUNT)

        pending = await service.get_unreconciled(other_account)
        assert len(pending) == 1
        assert pending[0].amount == Decimal("-10.00")
