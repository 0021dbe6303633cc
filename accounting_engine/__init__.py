"""
Accounting Engine

Double-entry accounting core: journal entries, fiscal periods, ledger
projection, financial statements, bank reconciliation, partner current
accounts and fiscal declarations.
"""

__version__ = "0.1.0"
