"""
Cashflow - Source Package

A personal cash-flow tracker that records income and expense
transactions and derives forward-looking signals from them.

DESIGN PRINCIPLES:
1. The forecasting engine is pure: snapshot in, view model out
2. Fail early, fail visibly on bad input
3. No silent corrections
4. Every write is auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Cashflow Team"
