"""
CoinGecko adapter for cryptocurrency price snapshots
No API key required; prices are quoted in USD
"""

from typing import Any, Mapping, Sequence
import httpx

from .base import ProviderAdapter, Provider, CryptoPrice, CryptoSnapshot, to_float
from .errors import ProviderError

DEFAULT_COIN_IDS = ('bitcoin', 'ethereum', 'cardano', 'polkadot', 'chainlink')

class CryptoSnapshotAdapter(ProviderAdapter):
    """/simple/price for a set of coin identifiers"""

    def __init__(self, client: httpx.AsyncClient, base_url: str):
        super().__init__(Provider.COINGECKO, client)
        self.base_url = base_url

    async def _fetch(self, params: Mapping[str, Any]) -> CryptoSnapshot:
        ids: Sequence[str] = params.get('ids') or DEFAULT_COIN_IDS
        payload = await self._get_json(
            f"{self.base_url}/simple/price",
            {
                'ids': ','.join(ids),
                'vs_currencies': 'usd',
                'include_24hr_change': 'true',
                'include_market_cap': 'true'
            }
        )

        # Unknown ids are silently omitted by CoinGecko
        if not payload:
            raise ProviderError.not_found(f"No price data for cryptocurrency ids: {', '.join(ids)}")

        prices = {}
        for coin_id, quote in payload.items():
            prices[coin_id] = CryptoPrice(
                id=coin_id,
                price=to_float(quote.get('usd'), 'usd'),
                change_24h=to_float(quote.get('usd_24h_change') or 0, 'usd_24h_change'),
                market_cap=to_float(quote.get('usd_market_cap') or 0, 'usd_market_cap')
            )
        return CryptoSnapshot(prices=prices)
