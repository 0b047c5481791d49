"""
Finance Tracker - Source Package

Personal and group finance tracking: monthly budgets derived from
recorded expenses, savings goals and tontines, behind a hosted
identity provider with email one-time-code verification.

DESIGN PRINCIPLES:
1. Services return results, adapters raise
2. Budget totals follow their expenses, and can always be recomputed
3. No stale session: the last auth event wins
4. Every step must be auditable
5. Storage and identity providers are swappable
"""

__version__ = "1.0.0"
__author__ = "Finance Tracker Team"
