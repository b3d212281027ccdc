# backend/tests/services/test_coingecko_provider.py
"""
Tests for the CoinGeckoPriceSource.

HTTP is served by an httpx.MockTransport, so no network access is needed.
"""

import json
from decimal import Decimal

import httpx
import pytest

from app.services.exceptions import ProviderUnavailableError, RateLimitError
from app.services.market_data.coingecko import CoinGeckoPriceSource


def make_source(handler) -> tuple[CoinGeckoPriceSource, list[httpx.Request]]:
    """Source wired to a mock transport; returns it with the list of seen requests."""
    requests: list[httpx.Request] = []

    def recording_handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return handler(request)

    client = httpx.Client(
        base_url="https://api.test/v3",
        transport=httpx.MockTransport(recording_handler),
    )
    source = CoinGeckoPriceSource(client=client)
    source.RETRY_MIN_WAIT = 0
    source.RETRY_MAX_WAIT = 0
    return source, requests


class TestFetchPrices:
    """Tests for successful responses."""

    def test_single_request_for_batch(self):
        source, requests = make_source(lambda request: httpx.Response(200, json={
            "bitcoin": {"usd": 43250.12, "usd_24h_change": 1.53},
            "ethereum": {"usd": 2250.5, "usd_24h_change": -0.4},
        }))

        prices = source.fetch_prices(["bitcoin", "ethereum"])

        assert len(requests) == 1
        assert requests[0].url.path == "/v3/simple/price"
        assert requests[0].url.params["ids"] == "bitcoin,ethereum"
        assert requests[0].url.params["vs_currencies"] == "usd"
        assert prices["bitcoin"].price_usd == Decimal("43250.12")
        assert prices["ethereum"].change_24h == Decimal("-0.4")

    def test_registry_ids_mapped_to_coingecko_ids(self):
        """"bnb" is requested as "binancecoin" and reported back as "bnb"."""
        source, requests = make_source(lambda request: httpx.Response(200, json={
            "binancecoin": {"usd": 310.0},
        }))

        prices = source.fetch_prices(["bnb"])

        assert requests[0].url.params["ids"] == "binancecoin"
        assert set(prices) == {"bnb"}
        assert prices["bnb"].change_24h == Decimal("0")

    @pytest.mark.parametrize("entry", [
        {"usd": 0},
        {"usd": -5},
        {"usd": None},
        {"usd": "not a number"},
        {},
    ])
    def test_unusable_prices_skipped(self, entry):
        source, _ = make_source(lambda request: httpx.Response(200, json={
            "bitcoin": entry,
            "ethereum": {"usd": 2000},
        }))

        prices = source.fetch_prices(["bitcoin", "ethereum"])

        assert set(prices) == {"ethereum"}

    @pytest.mark.parametrize("raw", [b"Infinity", b"-Infinity", b"NaN", b"1e400", b"1e300"])
    def test_non_finite_or_oversized_prices_skipped(self, raw):
        """Values json accepts but Decimal math cannot use are dropped."""
        body = b'{"bitcoin": {"usd": ' + raw + b'}, "ethereum": {"usd": 2000, "usd_24h_change": ' + raw + b'}}'
        source, _ = make_source(lambda request: httpx.Response(
            200, content=body, headers={"Content-Type": "application/json"},
        ))

        prices = source.fetch_prices(["bitcoin", "ethereum"])

        assert set(prices) == {"ethereum"}
        assert prices["ethereum"].change_24h == Decimal("0")

    def test_unknown_ids_not_requested(self):
        source, requests = make_source(lambda request: httpx.Response(200, json={}))

        assert source.fetch_prices(["dogecoin"]) == {}
        assert source.fetch_prices([]) == {}
        assert requests == []


class TestErrorHandling:
    """Tests for error mapping and retries."""

    def test_rate_limit(self):
        source, requests = make_source(
            lambda request: httpx.Response(429, headers={"Retry-After": "30"})
        )

        with pytest.raises(RateLimitError) as exc_info:
            source.fetch_prices(["bitcoin"])

        assert exc_info.value.retry_after == 30
        assert len(requests) == source.MAX_RETRY_ATTEMPTS

    @pytest.mark.parametrize("status", [500, 503, 404])
    def test_http_errors_are_unavailable(self, status):
        source, _ = make_source(lambda request: httpx.Response(status))

        with pytest.raises(ProviderUnavailableError) as exc_info:
            source.fetch_prices(["bitcoin"])

        assert f"HTTP {status}" in exc_info.value.reason

    def test_invalid_json(self):
        source, _ = make_source(lambda request: httpx.Response(200, content=b"<html>"))

        with pytest.raises(ProviderUnavailableError):
            source.fetch_prices(["bitcoin"])

    def test_unexpected_payload_shape(self):
        source, _ = make_source(
            lambda request: httpx.Response(200, content=json.dumps([1, 2]).encode())
        )

        with pytest.raises(ProviderUnavailableError):
            source.fetch_prices(["bitcoin"])

    def test_connection_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        source, _ = make_source(handler)

        with pytest.raises(ProviderUnavailableError):
            source.fetch_prices(["bitcoin"])

    def test_recovers_on_retry(self):
        """A transient 503 followed by success should return prices."""
        responses = iter([
            httpx.Response(503),
            httpx.Response(200, json={"bitcoin": {"usd": 40000}}),
        ])
        source, requests = make_source(lambda request: next(responses))

        prices = source.fetch_prices(["bitcoin"])

        assert prices["bitcoin"].price_usd == Decimal("40000")
        assert len(requests) == 2
