"""
QMX Kernel - student and cash ledger core

An in-memory, snapshot-persisted ledger for a training studio with:
- Student records, scores and membership windows
- Signed cash records with embedded installment plans
- Composable queries and derived statistics
- A single locked facade with rollback on failed saves
"""

__version__ = "0.1.0"
