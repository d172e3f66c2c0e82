"""
Stock Kernel - Venue stock ledger and reconciliation core

A transactional, append-only stock ledger with:
- Front/back split accounting per product
- Atomic mutations (state update + ledger append + task creation)
- Idempotent restock tasking
- Two-phase (OPEN -> CLOSED) physical inventory reconciliation
- Decimal-only money arithmetic
"""

__version__ = "0.1.0"
