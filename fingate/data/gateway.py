"""
Aggregation gateway
Routes each capability through the shared cache to the right provider adapter
and wraps the outcome in a ResponseEnvelope
"""

import asyncio
import math
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, Iterable, Mapping, Optional, Union
import httpx

from ..config import Config, get_config
from ..utils import get_logger, log_async_performance
from .alpha_vantage import StockQuoteAdapter, EconomicIndicatorAdapter
from .base import Capability, PairRate, Conversion
from .cache import CacheStore, get_cache_store
from .coingecko import CryptoSnapshotAdapter, DEFAULT_COIN_IDS
from .envelope import ResponseEnvelope, success_envelope, error_envelope
from .errors import ErrorKind, ProviderError
from .exchange import RateTableAdapter, ConversionAdapter
from .selector import select_exchange_source

logger = get_logger(__name__)

_CURRENCY_CODE = re.compile(r'[A-Z]{3}')
_SYMBOL = re.compile(r'[A-Z0-9.^=\-]{1,20}')
_INDICATOR = re.compile(r'[A-Z0-9_]{1,64}')
_COIN_ID = re.compile(r'[a-z0-9\-]{1,64}')

RATES_FALLBACK_HINT = "Exchange rate data temporarily unavailable"

# Parameter normalization: case-fold codes so one logical query maps to one key

def _code(params: Mapping[str, Any], name: str, pattern: re.Pattern, default: Optional[str] = None) -> str:
    value = str(params.get(name) or default or '').strip().upper()
    if not pattern.fullmatch(value):
        raise ProviderError.invalid(f"Invalid {name}: {params.get(name)!r}")
    return value

def _normalize_stock(params: Mapping[str, Any]) -> Dict[str, Any]:
    return {'symbol': _code(params, 'symbol', _SYMBOL)}

def _normalize_crypto(params: Mapping[str, Any]) -> Dict[str, Any]:
    raw = params.get('ids')
    if isinstance(raw, str):
        raw = raw.split(',')
    ids = sorted({str(coin_id).strip().lower() for coin_id in (raw or ()) if str(coin_id).strip()})
    if not ids:
        ids = sorted(DEFAULT_COIN_IDS)
    for coin_id in ids:
        if not _COIN_ID.fullmatch(coin_id):
            raise ProviderError.invalid(f"Invalid cryptocurrency id: {coin_id!r}")
    return {'ids': tuple(ids)}

def _normalize_rates(params: Mapping[str, Any]) -> Dict[str, Any]:
    return {'base': _code(params, 'base', _CURRENCY_CODE, default='USD')}

def _normalize_convert(params: Mapping[str, Any]) -> Dict[str, Any]:
    try:
        amount = float(params.get('amount'))
    except (TypeError, ValueError):
        raise ProviderError.invalid(f"Invalid amount: {params.get('amount')!r}")
    if not math.isfinite(amount):
        raise ProviderError.invalid(f"Invalid amount: {params.get('amount')!r}")
    return {
        'from': _code(params, 'from', _CURRENCY_CODE),
        'to': _code(params, 'to', _CURRENCY_CODE),
        'amount': amount
    }

def _normalize_economic(params: Mapping[str, Any]) -> Dict[str, Any]:
    return {'indicator': _code(params, 'indicator', _INDICATOR)}

def make_cache_key(capability: Capability, params: Mapping[str, Any]) -> str:
    """Cache key from a capability and its normalized parameters"""
    if capability is Capability.STOCK:
        parts = [params['symbol']]
    elif capability is Capability.CRYPTO:
        parts = [','.join(params['ids'])]
    elif capability is Capability.RATES:
        parts = [params['base']]
    elif capability is Capability.CONVERT:
        # Amount is applied after the lookup, so it is not part of the key
        parts = [params['from'], params['to']]
    else:
        parts = [params['indicator']]
    return ':'.join([capability.value] + parts)

@dataclass
class CapabilityRoute:
    """How one capability is normalized, loaded and presented"""
    capability: Capability
    normalize: Callable[[Mapping[str, Any]], Dict[str, Any]]
    load: Callable[[Dict[str, Any]], Awaitable[Union[Any, ProviderError]]]
    present: Callable[[Any, Dict[str, Any]], Any] = lambda value, params: value
    short_circuit: Optional[Callable[[Dict[str, Any]], Optional[Any]]] = None
    fallback_hint: Optional[str] = None

def _same_currency(params: Dict[str, Any]) -> Optional[PairRate]:
    if params['from'] == params['to']:
        return PairRate(params['from'], params['to'], 1.0)
    return None

class AggregationGateway:
    """
    Single entry point for all financial data capabilities

    Cache lookups and writes are individually atomic, but nothing serializes
    a whole miss: concurrent misses for one key each call upstream once.
    """

    def __init__(
        self,
        config: Optional[Config] = None,
        cache: Optional[CacheStore] = None,
        client: Optional[httpx.AsyncClient] = None,
        indicator_series: Optional[Mapping[str, str]] = None
    ):
        self.config = config or get_config()
        self.cache = cache if cache is not None else get_cache_store()

        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(self.config.system.request_timeout_seconds)
        )
        self._sweeper: Optional[asyncio.Task] = None

        api = self.config.api
        self.exchange_source = select_exchange_source(api, self.client)

        self.stock_adapter = StockQuoteAdapter(self.client, api.alpha_vantage_key, api.alpha_vantage_url)
        self.economic_adapter = EconomicIndicatorAdapter(
            self.client, api.alpha_vantage_key, api.alpha_vantage_url, indicator_series
        )
        self.crypto_adapter = CryptoSnapshotAdapter(self.client, api.coingecko_url)
        self.rates_adapter = RateTableAdapter(self.exchange_source)
        self.conversion_adapter = ConversionAdapter(self.exchange_source)

        self.routes: Dict[Capability, CapabilityRoute] = {
            Capability.STOCK: CapabilityRoute(
                Capability.STOCK, _normalize_stock, self.stock_adapter.fetch
            ),
            Capability.CRYPTO: CapabilityRoute(
                Capability.CRYPTO, _normalize_crypto, self.crypto_adapter.fetch
            ),
            Capability.RATES: CapabilityRoute(
                Capability.RATES, _normalize_rates, self.rates_adapter.fetch,
                fallback_hint=RATES_FALLBACK_HINT
            ),
            Capability.CONVERT: CapabilityRoute(
                Capability.CONVERT,
                _normalize_convert,
                self.conversion_adapter.fetch,
                present=lambda pair, params: Conversion.at_rate(pair, params['amount']),
                short_circuit=_same_currency
            ),
            Capability.ECONOMIC: CapabilityRoute(
                Capability.ECONOMIC, _normalize_economic, self.economic_adapter.fetch
            ),
        }

        logger.info(
            f"Gateway ready (exchange provider: {self.exchange_source.provider.value}, "
            f"default TTL: {self.cache.default_ttl}s)"
        )

    async def __aenter__(self) -> 'AggregationGateway':
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.shutdown()

    async def shutdown(self):
        """Stop the sweeper and close the HTTP client if this gateway created it"""
        if self._sweeper:
            self._sweeper.cancel()
            try:
                await self._sweeper
            except asyncio.CancelledError:
                pass
            self._sweeper = None

        if self._owns_client:
            await self.client.aclose()

    def _resolve(self, capability: Union[Capability, str]) -> CapabilityRoute:
        try:
            return self.routes[Capability(capability)]
        except (ValueError, KeyError):
            raise ProviderError(ErrorKind.CONFIGURATION, f"Unknown capability: {capability!r}")

    @log_async_performance()
    async def handle(
        self,
        capability: Union[Capability, str],
        params: Optional[Mapping[str, Any]] = None
    ) -> ResponseEnvelope:
        """
        Serve one request

        Args:
            capability: Capability enum or its value ("stock", "convert", ...)
            params: Capability parameters (symbol, ids, base, from/to/amount, indicator)

        Returns:
            ResponseEnvelope; never raises
        """
        try:
            return await self._handle(capability, params or {})
        except ProviderError as e:
            logger.warning(f"Rejected {capability} request: {e.message}")
            return error_envelope(e)
        except Exception as e:
            logger.error(f"Unhandled error serving {capability}: {e}", exc_info=True)
            return error_envelope(ProviderError(ErrorKind.INTERNAL, "Internal server error"))

    async def _handle(self, capability: Union[Capability, str], params: Mapping[str, Any]) -> ResponseEnvelope:
        route = self._resolve(capability)
        normalized = route.normalize(params)

        # Degenerate requests never touch the cache or the upstream budget
        if route.short_circuit:
            value = route.short_circuit(normalized)
            if value is not None:
                return success_envelope(route.present(value, normalized), cached=False)

        key = make_cache_key(route.capability, normalized)
        cached = self.cache.get(key)
        if cached is not None:
            return success_envelope(route.present(cached, normalized), cached=True)

        # httpx timeouts apply per phase; this bounds the whole upstream lookup
        timeout = self.config.system.request_timeout_seconds
        try:
            result = await asyncio.wait_for(route.load(normalized), timeout)
        except asyncio.TimeoutError:
            result = ProviderError(ErrorKind.TIMEOUT, f"Upstream request timed out after {timeout}s")

        if isinstance(result, ProviderError):
            logger.warning(f"Lookup failed for {key} ({result.kind.value}), not caching")
            return error_envelope(result, fallback=route.fallback_hint)

        self.cache.set(key, result, self.config.system.ttl_for(route.capability.value))
        return success_envelope(route.present(result, normalized), cached=False)

    # Convenience wrappers for the outward layer

    async def stock_quote(self, symbol: str) -> ResponseEnvelope:
        return await self.handle(Capability.STOCK, {'symbol': symbol})

    async def crypto(self, ids: Optional[Iterable[str]] = None) -> ResponseEnvelope:
        return await self.handle(Capability.CRYPTO, {'ids': list(ids) if ids else None})

    async def exchange_rates(self, base: str = "USD") -> ResponseEnvelope:
        return await self.handle(Capability.RATES, {'base': base})

    async def convert(self, from_currency: str, to_currency: str, amount: Any) -> ResponseEnvelope:
        return await self.handle(
            Capability.CONVERT,
            {'from': from_currency, 'to': to_currency, 'amount': amount}
        )

    async def economic(self, indicator: str) -> ResponseEnvelope:
        return await self.handle(Capability.ECONOMIC, {'indicator': indicator})

    def health(self) -> Dict[str, Any]:
        """Liveness snapshot with provider selection and cache statistics"""
        return {
            'status': 'healthy',
            'timestamp': datetime.now(timezone.utc).isoformat().replace('+00:00', 'Z'),
            'providers': {
                Capability.STOCK.value: self.stock_adapter.provider.value,
                Capability.CRYPTO.value: self.crypto_adapter.provider.value,
                Capability.RATES.value: self.rates_adapter.provider.value,
                Capability.CONVERT.value: self.conversion_adapter.provider.value,
                Capability.ECONOMIC.value: self.economic_adapter.provider.value,
            },
            'cache': self.cache.get_stats()
        }

    def start_cache_sweeper(self, interval_seconds: Optional[float] = None):
        """Periodically reclaim expired cache entries; expiry itself stays lazy"""
        if self._sweeper and not self._sweeper.done():
            return
        interval = interval_seconds or self.config.system.cache_sweep_interval_seconds
        self._sweeper = asyncio.create_task(self._sweep_loop(interval))
        logger.info(f"Started cache sweeper (every {interval}s)")

    async def _sweep_loop(self, interval: float):
        while True:
            await asyncio.sleep(interval)
            self.cache.cleanup_expired()
