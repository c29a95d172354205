"""
Utility modules for the finance gateway
"""

from .logger import (
    setup_logger,
    get_logger,
    log_async_performance,
    CredentialFilter,
    redact
)

__all__ = [
    "setup_logger",
    "get_logger",
    "log_async_performance",
    "CredentialFilter",
    "redact"
]
