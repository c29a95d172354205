"""Unit tests for the aggregation gateway."""

import asyncio

import httpx
import pytest

from conftest import (
    AAPL_QUOTE,
    ALPHA_VANTAGE_HOST,
    COINGECKO_HOST,
    EXCHANGE_FREE_HOST,
    EXCHANGE_PAID_HOST,
    FREE_USD_RATES,
    make_config
)
from fingate.data.base import Capability
from fingate.data.cache import CacheStore
from fingate.data.errors import ConfigurationError, ErrorKind
from fingate.data.gateway import AggregationGateway, make_cache_key


class TestCacheKeys:

    def test_keys(self):
        """Keys are namespaced by capability and omit the amount."""
        assert make_cache_key(Capability.STOCK, {'symbol': 'AAPL'}) == "stock:AAPL"
        assert make_cache_key(Capability.CRYPTO, {'ids': ('bitcoin', 'ethereum')}) == "crypto:bitcoin,ethereum"
        assert make_cache_key(Capability.RATES, {'base': 'USD'}) == "rates:USD"
        assert make_cache_key(Capability.CONVERT, {'from': 'USD', 'to': 'EUR', 'amount': 5.0}) == "convert:USD:EUR"
        assert make_cache_key(Capability.ECONOMIC, {'indicator': 'GDP'}) == "economic:GDP"


class TestCaching:

    @pytest.mark.asyncio
    async def test_second_call_served_from_cache(self, upstream, gateway):
        """A repeated request is served from the cache."""
        upstream.on(ALPHA_VANTAGE_HOST, "/query", AAPL_QUOTE)

        first = await gateway.handle("stock", {"symbol": "AAPL"})
        second = await gateway.handle("stock", {"symbol": "AAPL"})

        assert first.success and not first.cached
        assert second.success and second.cached
        assert second.data == first.data
        assert upstream.calls() == 1

    @pytest.mark.asyncio
    async def test_symbol_case_shares_entry(self, upstream, gateway, cache):
        """Symbol case and whitespace do not split the cache."""
        upstream.on(ALPHA_VANTAGE_HOST, "/query", AAPL_QUOTE)

        await gateway.handle("stock", {"symbol": "aapl"})
        envelope = await gateway.handle("stock", {"symbol": " AAPL "})

        assert envelope.cached
        assert upstream.calls() == 1
        assert upstream.requests[0].url.params["symbol"] == "AAPL"
        assert "stock:AAPL" in cache

    @pytest.mark.asyncio
    async def test_entry_expires_after_ttl(self, upstream, gateway, clock):
        """Entries are refetched once the TTL elapses."""
        upstream.on(ALPHA_VANTAGE_HOST, "/query", AAPL_QUOTE)

        await gateway.stock_quote("AAPL")
        clock.advance(299)
        assert (await gateway.stock_quote("AAPL")).cached
        clock.advance(2)
        assert not (await gateway.stock_quote("AAPL")).cached
        assert upstream.calls() == 2

    @pytest.mark.asyncio
    async def test_capability_ttl_override(self, upstream, gateway_factory, clock):
        """A per-capability TTL shortens the entry lifetime."""
        upstream.on(ALPHA_VANTAGE_HOST, "/query", AAPL_QUOTE)
        gateway = gateway_factory(cache_ttl_overrides={"stock": 60})

        await gateway.stock_quote("AAPL")
        clock.advance(61)

        assert not (await gateway.stock_quote("AAPL")).cached

    @pytest.mark.asyncio
    async def test_crypto_id_order_and_case_share_entry(self, upstream, gateway):
        """Coin id order, case and duplicates share one entry."""
        upstream.on(COINGECKO_HOST, "/api/v3/simple/price", {
            "bitcoin": {"usd": 67000}, "ethereum": {"usd": 3100}
        })

        await gateway.crypto(["Ethereum", "bitcoin"])
        envelope = await gateway.handle("crypto", {"ids": "bitcoin,ethereum,bitcoin"})

        assert envelope.cached
        assert upstream.calls() == 1

    @pytest.mark.asyncio
    async def test_conversion_amounts_share_pair_entry(self, upstream, gateway):
        """Different amounts reuse one cached pair rate."""
        upstream.on(EXCHANGE_FREE_HOST, "/v4/latest/USD", FREE_USD_RATES)

        first = await gateway.convert("usd", "eur", 100)
        second = await gateway.convert("USD", "EUR", "250")

        assert first.data.result == 92.0
        assert second.cached
        assert second.data.amount == 250.0
        assert second.data.result == 230.0
        assert upstream.calls() == 1


class TestFailures:

    @pytest.mark.asyncio
    async def test_not_found_is_not_cached(self, upstream, gateway, cache):
        """Failures are never cached."""
        upstream.on(ALPHA_VANTAGE_HOST, "/query", {"Global Quote": {}})

        first = await gateway.handle("stock", {"symbol": "ZZZZ"})
        second = await gateway.handle("stock", {"symbol": "ZZZZ"})

        assert first.success is False
        assert first.error_kind is ErrorKind.NOT_FOUND
        assert first.http_status == 404
        assert "stock:ZZZZ" not in cache
        assert second.cached is False
        assert upstream.calls() == 2

    @pytest.mark.asyncio
    async def test_recovers_after_transient_outage(self, upstream, gateway):
        """A later request succeeds once the provider recovers."""
        upstream.on(ALPHA_VANTAGE_HOST, "/query", lambda request: httpx.Response(500))
        assert (await gateway.stock_quote("AAPL")).error_kind is ErrorKind.UPSTREAM_ERROR

        upstream.on(ALPHA_VANTAGE_HOST, "/query", AAPL_QUOTE)
        envelope = await gateway.stock_quote("AAPL")

        assert envelope.success and not envelope.cached

    @pytest.mark.asyncio
    async def test_timeout_envelope(self, upstream, gateway):
        """Upstream timeouts produce a 504 envelope."""
        def slow(request):
            raise httpx.ConnectTimeout("timed out", request=request)

        upstream.on(ALPHA_VANTAGE_HOST, "/query", slow)

        envelope = await gateway.economic("GDP")

        assert envelope.error_kind is ErrorKind.TIMEOUT
        assert envelope.http_status == 504

    @pytest.mark.asyncio
    async def test_rates_failure_carries_fallback_hint(self, upstream, gateway):
        """Rate table failures include the fallback hint."""
        upstream.on(EXCHANGE_FREE_HOST, "/v4/", lambda request: httpx.Response(502))

        envelope = await gateway.exchange_rates("USD")

        assert envelope.success is False
        assert envelope.to_dict()['fallback'] == "Exchange rate data temporarily unavailable"

    @pytest.mark.asyncio
    async def test_unknown_capability(self, upstream, gateway):
        """Unknown capabilities are rejected without upstream calls."""
        envelope = await gateway.handle("options", {"symbol": "AAPL"})

        assert envelope.success is False
        assert envelope.error_kind is ErrorKind.CONFIGURATION
        assert upstream.calls() == 0

    @pytest.mark.asyncio
    @pytest.mark.parametrize("params", [
        {"from": "USD", "to": "EUR", "amount": "lots"},
        {"from": "USD", "to": "EUR", "amount": "nan"},
        {"from": "USD", "to": "EURO", "amount": 1},
        {"from": "", "to": "EUR", "amount": 1},
    ])
    async def test_invalid_conversion_params(self, upstream, gateway, params):
        """Malformed conversion input is a 400 with no upstream call."""
        envelope = await gateway.handle("convert", params)

        assert envelope.error_kind is ErrorKind.INVALID_REQUEST
        assert envelope.http_status == 400
        assert upstream.calls() == 0

    @pytest.mark.asyncio
    async def test_unexpected_exception_never_escapes(self, gateway, monkeypatch):
        """Unexpected errors become an internal error envelope."""
        async def explode(params):
            raise RuntimeError("adapter bug")

        monkeypatch.setattr(gateway.routes[Capability.STOCK], "load", explode)

        envelope = await gateway.stock_quote("AAPL")

        assert envelope.success is False
        assert envelope.error_kind is ErrorKind.INTERNAL
        assert envelope.error == "Internal server error"

    def test_malformed_indicator_map_fails_at_startup(self, upstream, cache):
        """A blank indicator series stops the gateway from starting."""
        with pytest.raises(ConfigurationError):
            AggregationGateway(
                config=make_config(),
                cache=cache,
                client=upstream.client(),
                indicator_series={"GDP": ""}
            )


class TestSameCurrencyConversion:

    @pytest.mark.asyncio
    async def test_no_upstream_and_no_cache_slot(self, upstream, gateway, cache):
        """Same-currency conversion needs neither upstream nor cache."""
        envelope = await gateway.handle("convert", {"from": "USD", "to": "usd", "amount": 100})

        assert envelope.success
        assert envelope.cached is False
        assert envelope.data.rate == 1.0
        assert envelope.data.result == 100.0
        assert upstream.calls() == 0
        assert len(cache) == 0


class TestProviderFallback:

    @pytest.mark.asyncio
    async def test_free_provider_rates_table(self, upstream, gateway):
        """Without a key, rates come from the free provider."""
        upstream.on(EXCHANGE_FREE_HOST, "/v4/latest/USD", FREE_USD_RATES)

        envelope = await gateway.handle("rates", {"base": "usd"})

        assert envelope.success
        assert envelope.to_dict()['data']['base'] == "USD"
        assert envelope.to_dict()['data']['rates']['EUR'] == 0.92
        assert upstream.calls(EXCHANGE_PAID_HOST) == 0

    @pytest.mark.asyncio
    async def test_rates_default_base(self, upstream, gateway):
        """A missing base defaults to USD."""
        upstream.on(EXCHANGE_FREE_HOST, "/v4/latest/USD", FREE_USD_RATES)

        envelope = await gateway.handle("rates", {})

        assert envelope.success
        assert upstream.requests[0].url.path == "/v4/latest/USD"

    @pytest.mark.asyncio
    async def test_paid_provider_conversion(self, upstream, gateway_factory):
        """With a key, conversions use the paid pair endpoint."""
        upstream.on(EXCHANGE_PAID_HOST, "/v6/paid-key/pair/USD/EUR", {
            "result": "success", "base_code": "USD", "target_code": "EUR", "conversion_rate": 0.9205
        })
        gateway = gateway_factory(exchange_key="paid-key")

        envelope = await gateway.convert("USD", "EUR", 100)

        assert envelope.to_dict()['data'] == {
            'from': 'USD', 'to': 'EUR', 'amount': 100.0, 'rate': 0.9205, 'result': 92.05
        }
        assert upstream.calls(EXCHANGE_FREE_HOST) == 0

    @pytest.mark.asyncio
    async def test_free_provider_conversion_has_same_fields(self, upstream, gateway):
        """Free conversions have the same fields as paid ones."""
        upstream.on(EXCHANGE_FREE_HOST, "/v4/latest/USD", FREE_USD_RATES)

        envelope = await gateway.convert("USD", "EUR", 100)

        assert set(envelope.to_dict()['data']) == {'from', 'to', 'amount', 'rate', 'result'}


class TestLifecycle:

    def test_health(self, gateway_factory):
        """Health reports providers and cache stats."""
        health = gateway_factory(exchange_key="paid-key").health()

        assert health['status'] == "healthy"
        assert health['providers']['rates'] == "exchangerate_api_v6"
        assert health['providers']['stock'] == "alpha_vantage"
        assert health['cache']['total_entries'] == 0

    @pytest.mark.asyncio
    async def test_sweeper_reclaims_expired_entries(self, gateway, cache, clock):
        """The sweeper clears expired entries and stops on shutdown."""
        cache.set("stale", 1, ttl_seconds=1)
        clock.advance(5)

        gateway.start_cache_sweeper(0.01)
        await asyncio.sleep(0.05)
        await gateway.shutdown()

        assert len(cache) == 0
        assert gateway._sweeper is None

    @pytest.mark.asyncio
    async def test_context_manager_closes_owned_client(self, cache):
        """A gateway closes the client it created."""
        async with AggregationGateway(config=make_config(), cache=cache) as gateway:
            client = gateway.client

        assert client.is_closed


class TestInjectedCache:
    """The gateway works against whichever cache store it is given."""

    def test_empty_cache_is_still_used(self, upstream, cache):
        """An empty injected store is used rather than the shared one."""
        gateway = AggregationGateway(config=make_config(), cache=cache, client=upstream.client())

        assert len(cache) == 0
        assert gateway.cache is cache

    @pytest.mark.asyncio
    async def test_store_default_ttl_governs_expiry(self, upstream, clock):
        """Without a per-capability override the store's own default TTL applies."""
        upstream.on(ALPHA_VANTAGE_HOST, "/query", AAPL_QUOTE)
        store = CacheStore(default_ttl=60, clock=clock)
        gateway = AggregationGateway(config=make_config(), cache=store, client=upstream.client())

        await gateway.stock_quote("AAPL")
        clock.advance(59)
        assert (await gateway.stock_quote("AAPL")).cached
        clock.advance(2)

        assert not (await gateway.stock_quote("AAPL")).cached
        assert gateway.health()['cache']['default_ttl_seconds'] == 60
        assert upstream.calls() == 2


class TestCachedResultsAreReadOnly:
    """A caller cannot alter what later callers are served from the cache."""

    @pytest.mark.asyncio
    async def test_rate_table_cannot_be_mutated(self, upstream, gateway):
        """Rates are exposed as a read-only mapping."""
        upstream.on(EXCHANGE_FREE_HOST, "/v4/latest/USD", FREE_USD_RATES)
        first = await gateway.exchange_rates("USD")

        with pytest.raises(TypeError):
            first.data.rates['EUR'] = 999.0

        second = await gateway.exchange_rates("USD")
        assert second.cached
        assert second.data.rates['EUR'] == 0.92

    @pytest.mark.asyncio
    async def test_crypto_prices_cannot_be_mutated(self, upstream, gateway):
        """Coin prices are exposed as a read-only mapping."""
        upstream.on(COINGECKO_HOST, "/api/v3/simple/price", {"bitcoin": {"usd": 67000}})
        first = await gateway.crypto(["bitcoin"])

        with pytest.raises(TypeError):
            del first.data.prices['bitcoin']

        assert 'bitcoin' in (await gateway.crypto(["bitcoin"])).data.prices

    @pytest.mark.asyncio
    async def test_indicator_points_are_a_tuple(self, upstream, gateway):
        """Indicator observations cannot be appended to or reordered."""
        upstream.on(ALPHA_VANTAGE_HOST, "/query", {
            "name": "Inflation",
            "interval": "annual",
            "unit": "percent",
            "data": [{"date": "2023-01-01", "value": "4.1"}]
        })
        first = await gateway.economic("INFLATION")

        assert isinstance(first.data.data, tuple)
        assert first.to_dict()['data']['data'] == [{'date': "2023-01-01", 'value': 4.1}]


class TestRequestTimeout:
    """The configured timeout bounds the whole upstream lookup."""

    @pytest.mark.asyncio
    async def test_slow_upstream_becomes_timeout(self, upstream, gateway_factory, cache):
        """A response slower than the limit yields a timeout envelope."""
        async def trickle(request):
            await asyncio.sleep(1)
            return httpx.Response(200, json=AAPL_QUOTE)

        upstream.on(ALPHA_VANTAGE_HOST, "/query", trickle)
        gateway = gateway_factory(request_timeout_seconds=0.05)

        envelope = await gateway.stock_quote("AAPL")

        assert envelope.error_kind is ErrorKind.TIMEOUT
        assert envelope.http_status == 504
        assert "stock:AAPL" not in cache
