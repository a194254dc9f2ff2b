"""
Personal Ledger - Source Package

Bookkeeping for a small trading business: trade transactions, peer loans,
savings-group contributions and bank accounts, persisted as four document
collections on a swappable key-value backend.

DESIGN PRINCIPLES:
1. Every record has a stable identifier, assigned once by the store
2. Fail early, fail visibly (a missing target is a result, not a success)
3. No silent data loss (unreadable values are quarantined, not dropped)
4. Every mutation is auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Personal Ledger Team"
