"""Tests for the exchange rate client.

These tests use responses library to mock HTTP requests.
"""

from decimal import Decimal

import pytest
import requests
import responses

from invoice_vault.rates_client import RateLookupError, RatesClient

BASE_URL = "https://rates.test"


@pytest.fixture
def client():
    client = RatesClient(base_url=BASE_URL + "/", max_retries=0)
    yield client
    client.close()


class TestRatesClient:
    """Tests for RatesClient."""

    @responses.activate
    def test_get_rate(self, client):
        """Rate comes back as an exact Decimal."""
        responses.add(
            responses.GET,
            f"{BASE_URL}/2023-04-05",
            json={"amount": 1.0, "base": "EUR", "date": "2023-04-05", "rates": {"GBP": 0.8765}},
            status=200,
        )

        rate = client.get_rate("eur", "2023-04-05")

        assert rate == Decimal("0.8765")
        request = responses.calls[0].request
        assert "from=EUR" in request.url
        assert "to=GBP" in request.url

    def test_same_currency_needs_no_request(self, client):
        assert client.get_rate("GBP", "2023-04-05") == Decimal("1")

    @responses.activate
    def test_other_base_currency(self, client):
        responses.add(
            responses.GET,
            f"{BASE_URL}/2023-04-05",
            json={"rates": {"EUR": 1.14}},
            status=200,
        )

        assert client.get_rate("GBP", "2023-04-05", base_currency="EUR") == Decimal("1.14")

    @responses.activate
    def test_http_error(self, client):
        responses.add(responses.GET, f"{BASE_URL}/2023-04-05", json={}, status=404)

        with pytest.raises(RateLookupError) as exc_info:
            client.get_rate("XYZ", "2023-04-05")

        assert exc_info.value.status_code == 404

    @responses.activate
    def test_missing_rate(self, client):
        responses.add(
            responses.GET, f"{BASE_URL}/2023-04-05", json={"rates": {"USD": 1.2}}, status=200
        )

        with pytest.raises(RateLookupError):
            client.get_rate("EUR", "2023-04-05")

    @responses.activate
    def test_non_json_body(self, client):
        responses.add(responses.GET, f"{BASE_URL}/2023-04-05", body="<html>", status=200)

        with pytest.raises(RateLookupError):
            client.get_rate("EUR", "2023-04-05")

    @pytest.mark.parametrize("value", [0, -1.5, "abc"])
    @responses.activate
    def test_invalid_rate_value(self, client, value):
        responses.add(
            responses.GET, f"{BASE_URL}/2023-04-05", json={"rates": {"GBP": value}}, status=200
        )

        with pytest.raises(RateLookupError):
            client.get_rate("EUR", "2023-04-05")

    @responses.activate
    def test_connection_error(self, client):
        responses.add(
            responses.GET,
            f"{BASE_URL}/2023-04-05",
            body=requests.exceptions.ConnectionError("offline"),
        )

        with pytest.raises(RateLookupError):
            client.get_rate("EUR", "2023-04-05")
