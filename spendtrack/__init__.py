"""
Spendtrack - Source Package

A personal expense tracker built around an installment-plan
accounting engine.

DESIGN PRINCIPLES:
1. One credit purchase, one dated schedule of installments
2. Fail early, fail visibly
3. Cascades are written in one batch or not at all
4. Every mutation must be auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Spendtrack Team"
