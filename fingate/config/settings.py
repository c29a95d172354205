"""
Configuration management for the finance gateway
Loads environment variables and provides centralized settings
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Optional
from dotenv import load_dotenv
import logging

# Load environment variables
env_path = Path(__file__).parent.parent.parent / '.env'
load_dotenv(dotenv_path=env_path)

@dataclass
class APIConfig:
    """API keys and upstream endpoints"""
    alpha_vantage_key: str
    exchange_api_key: str

    alpha_vantage_url: str = "https://www.alphavantage.co/query"
    coingecko_url: str = "https://api.coingecko.com/api/v3"
    exchange_paid_url: str = "https://v6.exchangerate-api.com/v6"
    exchange_free_url: str = "https://api.exchangerate-api.com/v4"

    @property
    def has_exchange_key(self) -> bool:
        return bool(self.exchange_api_key)

@dataclass
class SystemConfig:
    """System-level configuration"""
    log_level: str = "INFO"
    log_file: Optional[Path] = None
    cache_ttl_seconds: int = 300
    request_timeout_seconds: float = 10.0
    cache_sweep_interval_seconds: int = 60

    # Capability name -> TTL seconds, e.g. {"stock": 60}
    cache_ttl_overrides: Dict[str, int] = field(default_factory=dict)

    def ttl_for(self, capability: str) -> Optional[int]:
        """Per-capability TTL override; None leaves the cache store's default in charge"""
        return self.cache_ttl_overrides.get(capability)

@dataclass
class Config:
    """Main configuration container"""
    api: APIConfig
    system: SystemConfig

    # Runtime overrides
    _overrides: Dict[str, any] = field(default_factory=dict)

    def override(self, key: str, value: any):
        """Override a configuration value at runtime"""
        self._overrides[key] = value

    def get(self, key: str, default=None):
        """Get configuration value with override support"""
        if key in self._overrides:
            return self._overrides[key]

        # Navigate nested attributes
        parts = key.split('.')
        obj = self
        for part in parts:
            if hasattr(obj, part):
                obj = getattr(obj, part)
            else:
                return default
        return obj

def parse_ttl_overrides(raw: str) -> Dict[str, int]:
    """
    Parse "stock=60,economic=3600" into a capability -> seconds mapping

    Malformed pairs are skipped with a warning rather than failing startup.
    """
    overrides = {}
    for pair in raw.split(','):
        pair = pair.strip()
        if not pair:
            continue
        name, _, seconds = pair.partition('=')
        try:
            overrides[name.strip().lower()] = int(seconds)
        except ValueError:
            logging.warning(f"Ignoring malformed CACHE_TTL_OVERRIDES entry: {pair!r}")
    return overrides

# Singleton instance
_config_instance: Optional[Config] = None

def get_config() -> Config:
    """Get or create the configuration singleton"""
    global _config_instance

    if _config_instance is None:
        # Load from environment
        api_config = APIConfig(
            alpha_vantage_key=os.getenv("ALPHA_VANTAGE_API_KEY", "demo"),
            exchange_api_key=os.getenv("EXCHANGE_API_KEY", ""),
        )

        log_file = os.getenv("LOG_FILE")
        system_config = SystemConfig(
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_file=Path(log_file) if log_file else None,
            cache_ttl_seconds=int(os.getenv("CACHE_TTL_SECONDS", "300")),
            request_timeout_seconds=float(os.getenv("REQUEST_TIMEOUT_SECONDS", "10")),
            cache_sweep_interval_seconds=int(os.getenv("CACHE_SWEEP_INTERVAL_SECONDS", "60")),
            cache_ttl_overrides=parse_ttl_overrides(os.getenv("CACHE_TTL_OVERRIDES", "")),
        )

        _config_instance = Config(
            api=api_config,
            system=system_config
        )

        # Validate critical settings
        if api_config.alpha_vantage_key == "demo":
            logging.warning("ALPHA_VANTAGE_API_KEY not set - using the rate-limited 'demo' key")
        if not api_config.exchange_api_key:
            logging.warning("EXCHANGE_API_KEY not set - falling back to the free exchange rate provider")

    return _config_instance

def reset_config():
    """Reset the configuration singleton (mainly for testing)"""
    global _config_instance
    _config_instance = None
