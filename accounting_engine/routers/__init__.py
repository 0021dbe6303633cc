"""
Accounting Engine - Routers Package

FastAPI route handlers.

Routers:
- engine: action dispatch endpoint (`POST /accounting/engine`)
"""

from accounting_engine.routers.engine import router as engine_router

__all__ = ["engine_router"]
