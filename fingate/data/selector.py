"""
Fallback selection for capabilities served by more than one provider
Decided once from credential presence; never re-evaluated while running
"""

import httpx

from ..config import APIConfig
from ..utils import get_logger
from .exchange import ExchangeRateSource, PaidExchangeRateSource, FreeExchangeRateSource

logger = get_logger(__name__)

def select_exchange_source(api: APIConfig, client: httpx.AsyncClient) -> ExchangeRateSource:
    """
    Pick the exchange rate provider for this process

    Args:
        api: API configuration; a non-empty exchange_api_key selects the paid endpoints
        client: Shared HTTP client

    Returns:
        ExchangeRateSource for both rate tables and conversions
    """
    if api.has_exchange_key:
        logger.info("Using paid exchange rate provider (v6)")
        return PaidExchangeRateSource(client, api.exchange_paid_url, api.exchange_api_key)

    logger.info("EXCHANGE_API_KEY not configured, using free exchange rate provider (v4)")
    return FreeExchangeRateSource(client, api.exchange_free_url)
