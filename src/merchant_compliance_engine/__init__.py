"""Merchant compliance engine.

Scores merchant privacy compliance, analyses regulatory gaps, models
third-party app risk and raises monitoring alerts.
"""

__version__ = "0.1.0"
