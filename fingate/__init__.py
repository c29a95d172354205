"""
Finance Gateway
Aggregates quote, crypto, exchange rate and economic data providers behind one cached API
"""

__version__ = "0.1.0"

from . import config, data, utils

__all__ = ["config", "data", "utils"]
