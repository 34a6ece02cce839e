"""
OpsDesk - Source Package

An operations tracker for a small business owner ("Patron") and the
managers ("Responsables") who report activity and spend against a budget.

DESIGN PRINCIPLES:
1. Every read goes through the visibility filter
2. Money is Decimal, never float
3. Expenses are admitted against the scope balance, never retroactively
4. Every mutation is auditable
5. Storage and AI are collaborators, not sources of truth
"""

__version__ = "1.0.0"
__author__ = "OpsDesk Team"
