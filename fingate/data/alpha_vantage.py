"""
Alpha Vantage adapters for equity quotes and economic indicators
Free tier allows very few calls per minute, so every result is cached
"""

from typing import Any, Dict, Mapping, Optional
import httpx

from .base import (
    ProviderAdapter,
    Provider,
    StockQuote,
    IndicatorSeries,
    IndicatorPoint,
    to_float
)
from .errors import ProviderError, ConfigurationError

# Friendly indicator names -> Alpha Vantage function names
INDICATOR_SERIES = {
    'GDP': 'REAL_GDP',
    'INFLATION': 'INFLATION',
    'UNEMPLOYMENT': 'UNEMPLOYMENT',
    'INTEREST_RATE': 'FEDERAL_FUNDS_RATE'
}

MAX_INDICATOR_POINTS = 10

# Alpha Vantage publishes "." for observations that are not yet available
_MISSING_VALUE = {'.', '', None}

def _raise_for_notice(payload: Any):
    """Alpha Vantage answers HTTP 200 with a Note/Information body when throttled"""
    if not isinstance(payload, dict):
        raise ProviderError.upstream("Unexpected response format from alpha_vantage")
    notice = payload.get('Note') or payload.get('Information')
    if notice:
        raise ProviderError.upstream(notice, 429)

class AlphaVantageAdapter(ProviderAdapter):
    """Shared request plumbing for Alpha Vantage query endpoints"""

    def __init__(self, client: httpx.AsyncClient, api_key: str, base_url: str):
        super().__init__(Provider.ALPHA_VANTAGE, client)
        self.api_key = api_key
        self.base_url = base_url

    async def _query(self, function: str, **params) -> Dict[str, Any]:
        payload = await self._get_json(
            self.base_url,
            {'function': function, **params, 'apikey': self.api_key}
        )
        _raise_for_notice(payload)
        return payload

class StockQuoteAdapter(AlphaVantageAdapter):
    """GLOBAL_QUOTE for a single symbol"""

    async def _fetch(self, params: Mapping[str, Any]) -> StockQuote:
        symbol = params['symbol']
        payload = await self._query('GLOBAL_QUOTE', symbol=symbol)

        quote = payload.get('Global Quote')
        if not quote:
            # Unknown symbols come back as an empty quote object
            raise ProviderError.not_found(f"Stock symbol '{symbol}' not found or invalid")

        return StockQuote(
            symbol=quote.get('01. symbol', symbol),
            price=to_float(quote.get('05. price'), 'price'),
            change=to_float(quote.get('09. change'), 'change'),
            change_percent=to_float(str(quote.get('10. change percent', '')).rstrip('%'), 'change percent'),
            volume=int(to_float(quote.get('06. volume'), 'volume')),
            last_update=quote.get('07. latest trading day', '')
        )

class EconomicIndicatorAdapter(AlphaVantageAdapter):
    """
    Economic indicator series

    Friendly names are mapped to Alpha Vantage functions; anything else is
    passed through verbatim and left for the provider to reject.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        api_key: str,
        base_url: str,
        series_map: Optional[Mapping[str, str]] = None
    ):
        super().__init__(client, api_key, base_url)
        self.series_map = dict(INDICATOR_SERIES if series_map is None else series_map)

        for name, series in self.series_map.items():
            if not isinstance(series, str) or not series.strip():
                raise ConfigurationError(f"Indicator '{name}' has no series identifier")

    def series_for(self, indicator: str) -> str:
        return self.series_map.get(indicator, indicator)

    async def _fetch(self, params: Mapping[str, Any]) -> IndicatorSeries:
        indicator = params['indicator']
        series = self.series_for(indicator)
        payload = await self._query(series)

        observations = payload.get('data')
        if not observations:
            raise ProviderError.not_found(f"Economic indicator '{indicator}' not found or unavailable")

        latest = sorted(observations, key=lambda point: point['date'], reverse=True)[:MAX_INDICATOR_POINTS]
        points = [
            IndicatorPoint(
                date=point['date'],
                value=None if point.get('value') in _MISSING_VALUE else to_float(point.get('value'), 'value')
            )
            for point in latest
        ]

        return IndicatorSeries(
            indicator=indicator,
            name=payload.get('name', series),
            interval=payload.get('interval'),
            unit=payload.get('unit'),
            data=points
        )
