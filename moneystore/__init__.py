"""
moneystore - Local Data Layer for a Personal Finance Tracker

An embedded, schema-validated document store with five collections
(accounts, transactions, budgets, investments, goals) and the derived
views every screen reads: balances, budget progress, goal completion,
investment gains and monthly/category analytics.

DESIGN PRINCIPLES:
1. Nothing reaches storage without passing its schema
2. Fail early, fail visibly
3. Money is fixed-point, never float
4. Every write is auditable
5. Storage backend is swappable
"""

__version__ = "1.0.0"
__author__ = "moneystore maintainers"
