"""
Historical exchange rate client (Frankfurter API).
"""

import logging
from decimal import Decimal, InvalidOperation
from typing import Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

logger = logging.getLogger(__name__)


class RateLookupError(Exception):
    """A rate could not be obtained (network, API error, or missing rate)."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


class RatesClient:
    """
    Client for the Frankfurter exchange rate API.

    GET {base_url}/{YYYY-MM-DD}?from=USD&to=GBP
    → {"amount": 1.0, "base": "USD", "date": "2023-04-05", "rates": {"GBP": 0.8034}}

    For weekends and holidays the API answers with the previous business
    day's reference rate.

    Features:
    - Automatic retry with backoff on transient failures
    - Every failure surfaces as RateLookupError
    """

    DEFAULT_TIMEOUT = 15

    def __init__(
        self,
        base_url: str = "https://api.frankfurter.app",
        timeout: int = DEFAULT_TIMEOUT,
        max_retries: int = 3,
        backoff_factor: float = 0.5,
    ):
        """
        Initialize rates client.

        Args:
            base_url: API root URL
            timeout: Request timeout in seconds
            max_retries: Maximum retry attempts for transient failures
            backoff_factor: Backoff factor for retries
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

        self.session = requests.Session()
        self.session.headers.update({"Accept": "application/json"})

        retry_strategy = Retry(
            total=max_retries,
            backoff_factor=backoff_factor,
            status_forcelist=[429, 500, 502, 503, 504],
            allowed_methods=["GET"],
        )
        adapter = HTTPAdapter(max_retries=retry_strategy)
        self.session.mount("http://", adapter)
        self.session.mount("https://", adapter)

    def get_rate(self, currency: str, iso_date: str, base_currency: str = "GBP") -> Decimal:
        """
        Get the rate converting one unit of currency into base_currency.

        Args:
            currency: Source ISO currency code
            iso_date: Date of the rate (YYYY-MM-DD)
            base_currency: Target ISO currency code

        Returns:
            Rate as Decimal (exact decimal text of the API value)

        Raises:
            RateLookupError: On any failure
        """
        currency = currency.upper()
        base_currency = base_currency.upper()
        if currency == base_currency:
            return Decimal("1")

        url = f"{self.base_url}/{iso_date}"
        params = {"from": currency, "to": base_currency}

        try:
            response = self.session.get(url, params=params, timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            raise RateLookupError(f"Rate request for {currency}->{base_currency} failed: {e}") from e

        if not response.ok:
            raise RateLookupError(
                f"Rate API error {response.status_code} for {currency} on {iso_date}: "
                f"{response.reason}",
                status_code=response.status_code,
            )

        try:
            data = response.json()
            value = data["rates"][base_currency]
        except (ValueError, KeyError, TypeError) as e:
            raise RateLookupError(
                f"No {base_currency} rate for {currency} on {iso_date} in response"
            ) from e

        try:
            rate = Decimal(str(value))
        except InvalidOperation as e:
            raise RateLookupError(f"Invalid rate value {value!r}") from e

        if not rate.is_finite() or rate <= 0:
            raise RateLookupError(f"Invalid rate value {value!r}")

        logger.debug("Rate %s->%s on %s: %s", currency, base_currency, iso_date, rate)
        return rate

    def close(self) -> None:
        """Close the underlying session."""
        self.session.close()
