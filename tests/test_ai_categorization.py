"""
Accounting Engine - AI Categorization Tests

The OpenAI client is replaced by a mock; no network calls are made.
"""

from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest

from accounting_engine.services.ai_categorization import AICategorizationService, parse_suggestion
from accounting_engine.services.engine import AccountingEngine


def mock_client(content=None, error=None):
    client = MagicMock()
    if error is not None:
        client.chat.completions.create = AsyncMock(side_effect=error)
    else:
        message = MagicMock()
        message.message.content = content
        response = MagicMock()
        response.choices = [message]
        client.chat.completions.create = AsyncMock(return_value=response)
    return client


class TestParseSuggestion:

    def test_json_inside_prose(self):
        content = 'Sure. {"account_code": "628", "confidence": 0.9} Hope it helps.'

        assert parse_suggestion(content) == {"account_code": "628", "confidence": 0.9}

    def test_unparsable_replies(self):
        assert parse_suggestion(None) is None
        assert parse_suggestion("no json here") is None
        assert parse_suggestion("{not: valid}") is None


class TestCategorize:

    @pytest.mark.asyncio
    async def test_suggestion_for_known_account(self, db_session, chart):
        client = mock_client(
            '{"account_code": "628", "account_name": "Electricity", '
            '"confidence": 0.92, "reasoning": "Utility bill"}'
        )
        service = AICategorizationService(db_session, client=client)

        result = await service.categorize("IBERDROLA CLIENTES", Decimal("-84.20"))

        assert result["available"] is True
        suggestion = result["suggestion"]
        assert suggestion["account_code"] == "628"
        assert suggestion["account_name"] == "Utilities"
        assert suggestion["account_exists"] is True
        assert suggestion["confidence"] == 0.92
        prompt = client.chat.completions.create.call_args.kwargs["messages"][1]["content"]
        assert "628: Utilities" in prompt
        assert "430" not in prompt

    @pytest.mark.asyncio
    async def test_suggestion_for_account_outside_chart(self, db_session, chart):
        client = mock_client('{"account_code": "631", "account_name": "Other taxes"}')

        result = await AICategorizationService(db_session, client=client).categorize("IBI", Decimal("-300"))

        assert result["suggestion"]["account_exists"] is False
        assert result["suggestion"]["account_name"] == "Other taxes"
        assert result["suggestion"]["confidence"] == 0.0

    @pytest.mark.asyncio
    async def test_not_configured(self, db_session, chart, monkeypatch):
        service = AICategorizationService(db_session)
        monkeypatch.setattr(service, "openai_api_key", "")

        result = await service.categorize("IBERDROLA", Decimal("-10"))

        assert result["available"] is False
        assert result["suggestion"] is None

    @pytest.mark.asyncio
    async def test_transport_error_is_not_raised(self, db_session, chart):
        client = mock_client(error=TimeoutError("read timeout"))

        result = await AICategorizationService(db_session, client=client).categorize("X", Decimal("1"))

        assert result == {"available": False, "suggestion": None, "reason": "AI service unavailable"}

    @pytest.mark.asyncio
    async def test_garbled_reply(self, db_session, chart):
        client = mock_client("I think it is rent")

        result = await AICategorizationService(db_session, client=client).categorize("X", Decimal("1"))

        assert result["available"] is False
        assert result["reason"] == "Could not parse AI response"

    @pytest.mark.asyncio
    async def test_through_the_engine(self, db_session, chart):
        client = mock_client('{"account_code": "626", "confidence": 0.7}')
        engine = AccountingEngine(db_session, ai_client=client)

        result = await engine.execute("ai_categorize", {"description": "Comision mantenimiento", "amount": "-12"})

        assert result["data"]["available"] is True
        assert result["data"]["suggestion"]["account_name"] == "Bank services"
