"""
Exchange rate API client.

Provides:
- Historical reference rate for (currency, date) into the base currency
- Retry/backoff for transient network failures
"""

from .client import RateLookupError, RatesClient

__all__ = [
    "RateLookupError",
    "RatesClient",
]
