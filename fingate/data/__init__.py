"""
Data acquisition layer
Provider adapters, the shared TTL cache and the aggregation gateway
"""

from .errors import ErrorKind, ProviderError, ConfigurationError
from .base import (
    Provider,
    Capability,
    ProviderAdapter,
    StockQuote,
    CryptoPrice,
    CryptoSnapshot,
    RateTable,
    PairRate,
    Conversion,
    IndicatorPoint,
    IndicatorSeries
)
from .cache import CacheEntry, CacheStore, get_cache_store
from .alpha_vantage import StockQuoteAdapter, EconomicIndicatorAdapter, INDICATOR_SERIES
from .coingecko import CryptoSnapshotAdapter, DEFAULT_COIN_IDS
from .exchange import (
    ExchangeRateSource,
    PaidExchangeRateSource,
    FreeExchangeRateSource,
    RateTableAdapter,
    ConversionAdapter
)
from .selector import select_exchange_source
from .envelope import ResponseEnvelope, success_envelope, error_envelope
from .gateway import AggregationGateway, make_cache_key

__all__ = [
    # Errors
    'ErrorKind',
    'ProviderError',
    'ConfigurationError',

    # Base classes and results
    'Provider',
    'Capability',
    'ProviderAdapter',
    'StockQuote',
    'CryptoPrice',
    'CryptoSnapshot',
    'RateTable',
    'PairRate',
    'Conversion',
    'IndicatorPoint',
    'IndicatorSeries',

    # Cache
    'CacheEntry',
    'CacheStore',
    'get_cache_store',

    # Adapters
    'StockQuoteAdapter',
    'EconomicIndicatorAdapter',
    'INDICATOR_SERIES',
    'CryptoSnapshotAdapter',
    'DEFAULT_COIN_IDS',
    'ExchangeRateSource',
    'PaidExchangeRateSource',
    'FreeExchangeRateSource',
    'RateTableAdapter',
    'ConversionAdapter',
    'select_exchange_source',

    # Main interfaces
    'ResponseEnvelope',
    'success_envelope',
    'error_envelope',
    'AggregationGateway',
    'make_cache_key'
]
