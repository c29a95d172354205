"""
ExchangeRate-API sources and the adapters that serve rate tables and conversions
The paid (v6) and free (v4) endpoints differ in shape; both normalize to
RateTable and PairRate
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Mapping
import httpx

from .base import (
    ProviderAdapter,
    Provider,
    RateTable,
    PairRate,
    get_json,
    to_float
)
from .errors import ProviderError

class ExchangeRateSource(ABC):
    """One upstream variant able to answer rate table and pair lookups"""

    provider: Provider

    def __init__(self, client: httpx.AsyncClient, base_url: str):
        self.client = client
        self.base_url = base_url.rstrip('/')

    @abstractmethod
    async def latest(self, base: str) -> RateTable:
        """Full rate table for a base currency"""
        pass

    @abstractmethod
    async def pair(self, from_currency: str, to_currency: str) -> PairRate:
        """Single pair rate"""
        pass

    async def _get(self, path: str) -> Dict[str, Any]:
        payload = await get_json(self.client, self.provider, f"{self.base_url}/{path}")
        if not isinstance(payload, dict):
            raise ProviderError.upstream(f"Unexpected response format from {self.provider.value}")
        return payload

    @staticmethod
    def _parse_rates(rates: Mapping[str, Any]) -> Dict[str, float]:
        return {code: to_float(rate, f"rate for {code}") for code, rate in rates.items()}

class PaidExchangeRateSource(ExchangeRateSource):
    """ExchangeRate-API v6, keyed by credential in the URL path"""

    provider = Provider.EXCHANGE_RATE_PAID

    def __init__(self, client: httpx.AsyncClient, base_url: str, api_key: str):
        super().__init__(client, base_url)
        self.api_key = api_key

    async def _get(self, path: str) -> Dict[str, Any]:
        payload = await super()._get(f"{self.api_key}/{path}")
        if payload.get('result') == 'error':
            error_type = payload.get('error-type', 'unknown-error')
            if error_type == 'unsupported-code':
                raise ProviderError.not_found(f"Unsupported currency code ({error_type})")
            raise ProviderError.upstream(f"Exchange rate provider error: {error_type}")
        return payload

    async def latest(self, base: str) -> RateTable:
        payload = await self._get(f"latest/{base}")
        return RateTable(
            base=payload.get('base_code', base),
            rates=self._parse_rates(payload['conversion_rates']),
            last_update=payload.get('time_last_update_utc')
        )

    async def pair(self, from_currency: str, to_currency: str) -> PairRate:
        payload = await self._get(f"pair/{from_currency}/{to_currency}")
        rate = payload.get('conversion_rate')
        if rate is None:
            raise ProviderError.not_found(
                f"Conversion rate from {from_currency} to {to_currency} not available"
            )
        return PairRate(from_currency, to_currency, to_float(rate, 'conversion_rate'))

class FreeExchangeRateSource(ExchangeRateSource):
    """ExchangeRate-API v4, no credential; pairs are read from the base table"""

    provider = Provider.EXCHANGE_RATE_FREE

    async def latest(self, base: str) -> RateTable:
        payload = await self._get(f"latest/{base}")
        return RateTable(
            base=payload.get('base', base),
            rates=self._parse_rates(payload['rates']),
            last_update=payload.get('date')
        )

    async def pair(self, from_currency: str, to_currency: str) -> PairRate:
        payload = await self._get(f"latest/{from_currency}")
        rate = payload.get('rates', {}).get(to_currency)
        if rate is None:
            raise ProviderError.not_found(
                f"Conversion rate from {from_currency} to {to_currency} not available"
            )
        return PairRate(from_currency, to_currency, to_float(rate, f"rate for {to_currency}"))

class RateTableAdapter(ProviderAdapter):
    """Exchange rate table for a base currency"""

    def __init__(self, source: ExchangeRateSource):
        super().__init__(source.provider, source.client)
        self.source = source

    async def _fetch(self, params: Mapping[str, Any]) -> RateTable:
        return await self.source.latest(params['base'])

class ConversionAdapter(ProviderAdapter):
    """
    Pair rate lookup behind currency conversion

    The pair rate is the cacheable part; the caller applies the amount with
    Conversion.at_rate so every amount for one pair shares a cache entry.
    """

    def __init__(self, source: ExchangeRateSource):
        super().__init__(source.provider, source.client)
        self.source = source

    async def _fetch(self, params: Mapping[str, Any]) -> PairRate:
        return await self.source.pair(params['from'], params['to'])
