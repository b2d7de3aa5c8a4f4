"""
Expense Tracker - Source Package

A personal expense tracker: authenticated users record expenses, set a
monthly budget, browse, filter and sort their records, and export them.

DESIGN PRINCIPLES:
1. Only a verified session ever sees data
2. The store is the source of truth; the view follows its snapshots
3. Fail early, fail visibly
4. Every user action is auditable
5. Storage and identity providers are swappable
"""

__version__ = "1.0.0"
__author__ = "Expense Tracker Team"
