"""
Accounting Engine - Pydantic Schemas Package
"""
