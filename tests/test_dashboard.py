"""
Accounting Engine - Dashboard Tests
"""

import uuid
from datetime import date
from decimal import Decimal

import pytest
import pytest_asyncio

from accounting_engine.schemas.bank_reconciliation import BankTransactionCreate
from accounting_engine.services.dashboard_service import DashboardService
from accounting_engine.services.declaration_service import DeclarationService
from accounting_engine.services.reconciliation_service import ReconciliationService


@pytest_asyncio.fixture
async def books(db_session, fiscal_year, make_entry):
    await make_entry(date(2026, 1, 5), [("572", "10000", "0"), ("100", "0", "10000")], "Capital")
    await make_entry(date(2026, 1, 10), [("430", "1210", "0"), ("705", "0", "1000"), ("477", "0", "210")], "Invoice 1")
    await make_entry(date(2026, 2, 2), [("600", "200", "0"), ("472", "42", "0"), ("572", "0", "242")], "Purchase")
    return fiscal_year


class TestDashboard:

    @pytest.mark.asyncio
    async def test_balances_and_kpis(self, db_session, books):
        dashboard = await DashboardService(db_session).get_dashboard(today=date(2026, 3, 10))

        assert dashboard["config"].company_name == "Test Company SL"
        assert dashboard["current_period"].period_name == "March 2026"
        assert dashboard["cash_balance"] == Decimal("9758.00")
        assert dashboard["pending_receivables"] == Decimal("1210.00")
        assert dashboard["pending_vat"] == Decimal("168.00")
        kpis = dashboard["kpis"]
        assert kpis["fiscal_year"] == 2026
        assert kpis["total_income"] == Decimal("1000.00")
        assert kpis["total_expenses"] == Decimal("200.00")
        assert kpis["net_result"] == Decimal("800.00")
        assert [e.description for e in dashboard["recent_entries"]] == ["Purchase", "Invoice 1", "Capital"]
        assert dashboard["alerts"] == []

    @pytest.mark.asyncio
    async def test_declaration_alerts(self, db_session, books):
        declarations = DeclarationService(db_session)
        await declarations.generate("modelo_303", books[0].id)
        await declarations.generate("modelo_303", books[1].id)
        march = await declarations.generate("modelo_303", books[2].id)
        await declarations.submit_declaration(march.id)

        dashboard = await DashboardService(db_session).get_dashboard(today=date(2026, 3, 15))

        assert len(dashboard["pending_declarations"]) == 2
        alerts = [(a["type"], a["severity"]) for a in dashboard["alerts"]]
        assert alerts == [
            ("declaration_overdue", "error"),
            ("declaration_due_soon", "warning"),
        ]
        assert dashboard["kpis"]["pending_declarations"] == 2

    @pytest.mark.asyncio
    async def test_reconciliation_backlog_alert(self, db_session, books):
        await ReconciliationService(db_session).import_transactions(uuid.uuid4(), [
            BankTransactionCreate(
                transaction_date=date(2026, 3, day),
                description=f"Movement {day}",
                amount=Decimal("-1.00"),
            )
            for day in range(1, 13)
        ])

        dashboard = await DashboardService(db_session).get_dashboard(today=date(2026, 3, 15))

        assert dashboard["kpis"]["unreconciled_count"] == 12
        assert len(dashboard["unreconciled_transactions"]) == 12
        assert dashboard["alerts"][-1]["type"] == "unreconciled_transactions"
        assert dashboard["alerts"][-1]["count"] == 12

    @pytest.mark.asyncio
    async def test_empty_books(self, db_session):
        dashboard = await DashboardService(db_session).get_dashboard(today=date(2026, 3, 15))

        assert dashboard["config"] is None
        assert dashboard["current_period"] is None
        assert dashboard["kpis"]["fiscal_year"] == 2026
        assert dashboard["kpis"]["net_result"] == Decimal("0")
        assert dashboard["cash_balance"] == Decimal("0")
        assert dashboard["recent_entries"] == []
