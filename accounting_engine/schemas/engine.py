"""
Accounting Engine - Action Dispatch Schemas
"""

from typing import Any, Dict

from pydantic import BaseModel, Field


class EngineRequest(BaseModel):
    """`{action, params}` request body."""
    action: str = Field(..., min_length=1)
    params: Dict[str, Any] = Field(default_factory=dict)


class EngineResponse(BaseModel):
    success: bool = True
    action: str
    data: Any = None
    timestamp: str
