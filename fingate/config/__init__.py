"""
Configuration module for the finance gateway
"""

from .settings import Config, APIConfig, SystemConfig, get_config, reset_config

__all__ = ["Config", "APIConfig", "SystemConfig", "get_config", "reset_config"]
