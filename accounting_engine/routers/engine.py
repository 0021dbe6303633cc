"""
Accounting Engine - Engine Router

Every accounting operation goes through one endpoint: the body names the
action and carries its params. Errors are rendered by the exception
handlers registered in `setup_exception_handlers`.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from accounting_engine.database import get_db
from accounting_engine.schemas.engine import EngineRequest, EngineResponse
from accounting_engine.services.engine import AccountingEngine


router = APIRouter(prefix="/accounting", tags=["Accounting Engine"])


@router.post("/engine", response_model=EngineResponse)
async def run_action(
    request: EngineRequest,
    db: AsyncSession = Depends(get_db),
):
    """Run one accounting action in its own transaction."""
    engine = AccountingEngine(db)
    return await engine.execute(request.action, request.params)
