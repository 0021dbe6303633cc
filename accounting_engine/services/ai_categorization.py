"""
Accounting Engine - AI Categorization Assist

Asks an OpenAI chat model which expense/income account a bank movement
belongs to. Suggestion only: any failure (no API key, transport error,
unparsable reply) yields an unavailable result and never blocks the caller.
"""

import json
import logging
import re
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from accounting_engine.config import settings
from accounting_engine.models.accounting import Account
from accounting_engine.services.chart_of_accounts_service import ChartOfAccountsService

logger = logging.getLogger(__name__)

JSON_OBJECT_PATTERN = re.compile(r"\{[\s\S]*\}")


def parse_suggestion(content: Optional[str]) -> Optional[Dict[str, Any]]:
    """Extract the first {...} block of a model reply as a dict."""
    if not content:
        return None
    match = JSON_OBJECT_PATTERN.search(content)
    if not match:
        return None
    try:
        data = json.loads(match.group(0))
    except json.JSONDecodeError:
        return None
    return data if isinstance(data, dict) else None


class AICategorizationService:
    """Optional OpenAI-backed account suggestion for bank movements."""
    
    def __init__(self, db: AsyncSession, client: Any = None):
        self.db = db
        self.openai_api_key = settings.openai_api_key
        self.openai_model = settings.openai_model
        self._client = client
    
    @property
    def ai_enabled(self) -> bool:
        return self._client is not None or bool(self.openai_api_key)
    
    def _get_client(self):
        if self._client is None:
            import openai
            
            self._client = openai.AsyncOpenAI(
                api_key=self.openai_api_key,
                timeout=settings.openai_timeout_seconds,
            )
        return self._client
    
    async def _candidate_accounts(self) -> List[Account]:
        accounts = ChartOfAccountsService(self.db)
        expense = await accounts.get_accounts(account_group=6, is_detail=True)
        income = await accounts.get_accounts(account_group=7, is_detail=True)
        return expense + income
    
    async def categorize(
        self,
        description: str,
        amount: Decimal,
        counterparty: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Suggest an account for a bank movement."""
        if not self.ai_enabled:
            logger.warning("AI categorization requested but OPENAI_API_KEY is not configured")
            return {"available": False, "suggestion": None, "reason": "AI categorization is not configured"}
        
        candidates = await self._candidate_accounts()
        by_code = {a.account_code: a for a in candidates}
        accounts_list = "\n".join(f"{a.account_code}: {a.account_name}" for a in candidates)
        
        prompt = f"""Classify this bank movement into one of these accounts:

{accounts_list}

Movement: {description}
Amount: {amount} EUR
{f'Counterparty: {counterparty}' if counterparty else ''}

Respond ONLY with JSON:
{{
    "account_code": "XXX",
    "account_name": "Name",
    "confidence": 0.0 to 1.0,
    "reasoning": "Brief explanation"
}}"""
        
        try:
            client = self._get_client()
            response = await client.chat.completions.create(
                model=self.openai_model,
                messages=[
                    {"role": "system", "content": "You are an accountant expert in the Spanish chart of accounts (PGC). Always respond with valid JSON."},
                    {"role": "user", "content": prompt},
                ],
                temperature=0.3,
                max_tokens=500,
            )
            content = response.choices[0].message.content
        except Exception as e:
            logger.warning(f"AI categorization failed: {e}")
            return {"available": False, "suggestion": None, "reason": "AI service unavailable"}
        
        result = parse_suggestion(content)
        if result is None or not result.get("account_code"):
            logger.warning("AI categorization returned an unparsable reply")
            return {"available": False, "suggestion": None, "reason": "Could not parse AI response"}
        
        account_code = str(result["account_code"])
        account = by_code.get(account_code)
        try:
            confidence = float(result.get("confidence", 0))
        except (TypeError, ValueError):
            confidence = 0.0
        
        return {
            "available": True,
            "suggestion": {
                "account_code": account_code,
                "account_name": account.account_name if account else result.get("account_name"),
                "confidence": confidence,
                "reasoning": result.get("reasoning", ""),
                "account_exists": account is not None,
            },
        }
