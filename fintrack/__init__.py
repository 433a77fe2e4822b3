"""
FinTrack - Source Package

Ledger synchronization and aggregation engine for a multi-tenant personal
finance tracker.

DESIGN PRINCIPLES:
1. The remote store is the source of truth; the cache follows it
2. Fail early, fail visibly: every failure comes back as a typed result
3. No silent corrections, no hidden rollbacks
4. Every write must be auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "FinTrack Team"
