"""
Expense Tracker - Source Package

A chat-driven expense logging assistant backed by a Google Sheets
spreadsheet with one ledger tab per calendar month.

DESIGN PRINCIPLES:
1. Parse strictly, reply clearly
2. The spreadsheet is the only source of truth (no local caching)
3. Summary cells hold live formulas, never cached numbers
4. Cosmetic failures never fail an operation
5. Storage backend is swappable
"""

__version__ = "1.0.0"
__author__ = "Expense Tracker Team"
