"""
Base classes for provider adapters and the normalized results they produce
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Awaitable, Dict, Mapping, Optional, Tuple, Union
from enum import Enum
import httpx

from ..utils import get_logger
from .errors import ErrorKind, ProviderError

logger = get_logger(__name__)

class Provider(Enum):
    """Upstream data providers"""
    ALPHA_VANTAGE = "alpha_vantage"
    COINGECKO = "coingecko"
    EXCHANGE_RATE_PAID = "exchangerate_api_v6"
    EXCHANGE_RATE_FREE = "exchangerate_api_v4"

class Capability(Enum):
    """Logical data categories served by the gateway"""
    STOCK = "stock"
    CRYPTO = "crypto"
    RATES = "rates"
    CONVERT = "convert"
    ECONOMIC = "economic"

@dataclass(frozen=True)
class StockQuote:
    """Latest equity quote"""
    symbol: str
    price: float
    change: float
    change_percent: float
    volume: int
    last_update: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            'symbol': self.symbol,
            'price': self.price,
            'change': self.change,
            'changePercent': self.change_percent,
            'volume': self.volume,
            'lastUpdate': self.last_update
        }

@dataclass(frozen=True)
class CryptoPrice:
    """USD price snapshot for one coin"""
    id: str
    price: float
    change_24h: float = 0.0
    market_cap: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'price': self.price,
            'change24h': self.change_24h,
            'marketCap': self.market_cap
        }

@dataclass(frozen=True)
class CryptoSnapshot:
    """Prices for a set of coin identifiers"""
    prices: Mapping[str, CryptoPrice]

    def __post_init__(self):
        # Results are shared through the cache, so containers are read-only views
        object.__setattr__(self, 'prices', MappingProxyType(dict(self.prices)))

    def to_dict(self) -> Dict[str, Any]:
        return {coin_id: price.to_dict() for coin_id, price in self.prices.items()}

@dataclass(frozen=True)
class RateTable:
    """All exchange rates for one base currency"""
    base: str
    rates: Mapping[str, float]
    last_update: Optional[str] = None

    def __post_init__(self):
        object.__setattr__(self, 'rates', MappingProxyType(dict(self.rates)))

    def to_dict(self) -> Dict[str, Any]:
        return {
            'base': self.base,
            'rates': dict(self.rates),
            'lastUpdate': self.last_update
        }

@dataclass(frozen=True)
class PairRate:
    """Single currency pair rate, the cached unit behind conversions"""
    from_currency: str
    to_currency: str
    rate: float

    def to_dict(self) -> Dict[str, Any]:
        return {'from': self.from_currency, 'to': self.to_currency, 'rate': self.rate}

@dataclass(frozen=True)
class Conversion:
    """Amount converted at a pair rate"""
    from_currency: str
    to_currency: str
    amount: float
    rate: float
    result: float

    @classmethod
    def at_rate(cls, pair: PairRate, amount: float) -> 'Conversion':
        return cls(
            from_currency=pair.from_currency,
            to_currency=pair.to_currency,
            amount=amount,
            rate=pair.rate,
            result=round(amount * pair.rate, 2)
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'from': self.from_currency,
            'to': self.to_currency,
            'amount': self.amount,
            'rate': self.rate,
            'result': self.result
        }

@dataclass(frozen=True)
class IndicatorPoint:
    date: str
    value: Optional[float]

    def to_dict(self) -> Dict[str, Any]:
        return {'date': self.date, 'value': self.value}

@dataclass(frozen=True)
class IndicatorSeries:
    """Most recent observations of an economic indicator"""
    indicator: str
    name: str
    interval: Optional[str]
    unit: Optional[str]
    data: Tuple[IndicatorPoint, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, 'data', tuple(self.data))

    def to_dict(self) -> Dict[str, Any]:
        return {
            'indicator': self.indicator,
            'name': self.name,
            'interval': self.interval,
            'unit': self.unit,
            'data': [point.to_dict() for point in self.data]
        }

NormalizedResult = Union[StockQuote, CryptoSnapshot, RateTable, PairRate, Conversion, IndicatorSeries]

def to_float(value: Any, field_name: str) -> float:
    """Parse a provider value to float or fail the whole payload"""
    try:
        return float(value)
    except (TypeError, ValueError):
        raise ProviderError.upstream(f"Unparseable {field_name} in provider response: {value!r}")

def error_message_from(response: httpx.Response) -> Optional[str]:
    """Best-effort human message from an upstream error body"""
    try:
        body = response.json()
    except ValueError:
        return None
    if isinstance(body, dict):
        for key in ('message', 'error', 'error-type', 'Error Message'):
            if isinstance(body.get(key), str):
                return body[key]
    return None

class ProviderAdapter(ABC):
    """Base class for all provider adapters"""

    def __init__(self, provider: Provider, client: httpx.AsyncClient):
        self.provider = provider
        self.client = client

    async def fetch(self, params: Mapping[str, Any]) -> Union[NormalizedResult, ProviderError]:
        """
        Serve one request for this adapter's capability

        Never raises for upstream problems: transport failures, bad statuses
        and unparseable payloads come back as a ProviderError value.
        """
        return await self._recover(self._fetch(params))

    async def _recover(self, operation: Awaitable[NormalizedResult]) -> Union[NormalizedResult, ProviderError]:
        """Await an upstream operation, turning any failure into a ProviderError value"""
        try:
            return await operation
        except ProviderError as e:
            logger.warning(f"{self.provider.value} request failed ({e.kind.value}): {e.message}")
            return e
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            logger.warning(f"Unparseable {self.provider.value} payload: {e!r}")
            return ProviderError.upstream(f"Unexpected response format from {self.provider.value}")

    @abstractmethod
    async def _fetch(self, params: Mapping[str, Any]) -> NormalizedResult:
        """Fetch and normalize, raising ProviderError on failure"""
        pass

    async def _get_json(self, url: str, params: Optional[Dict[str, Any]] = None) -> Any:
        return await get_json(self.client, self.provider, url, params)

async def get_json(
    client: httpx.AsyncClient,
    provider: Provider,
    url: str,
    params: Optional[Dict[str, Any]] = None
) -> Any:
    """GET a JSON document, mapping transport failures onto ProviderError"""
    try:
        response = await client.get(url, params=params)
        response.raise_for_status()
    except httpx.TimeoutException as e:
        raise ProviderError(
            ErrorKind.TIMEOUT,
            f"{provider.value} did not respond in time"
        ) from e
    except httpx.HTTPStatusError as e:
        status = e.response.status_code
        message = error_message_from(e.response) or f"{provider.value} returned HTTP {status}"
        if status == 404:
            raise ProviderError.not_found(message) from e
        raise ProviderError.upstream(message, status) from e
    except httpx.RequestError as e:
        raise ProviderError.upstream(
            f"{provider.value} request failed: {e.__class__.__name__}"
        ) from e

    try:
        return response.json()
    except ValueError as e:
        raise ProviderError.upstream(
            f"{provider.value} returned a malformed body",
            response.status_code
        ) from e
