"""
Budget Kernel

The budget & fund allocation engine of a household finance tracker:
- Recurring templates expanded into monthly obligations
- Confirmation lifecycle with optional fund financing
- Income distribution into savings funds (reversible)
- Credit-card reserves accumulated and applied on repayment
- Multi-currency planned-vs-actual aggregation in one base currency
"""

__version__ = "0.1.0"
