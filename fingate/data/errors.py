"""
Error taxonomy shared by adapters, the gateway and the envelope builder
"""

from enum import Enum
from typing import Optional

class ErrorKind(Enum):
    """Stable classification of a failed gateway invocation"""
    NOT_FOUND = "not_found"
    UPSTREAM_ERROR = "upstream_error"
    TIMEOUT = "timeout"
    CONFIGURATION = "configuration"
    INVALID_REQUEST = "invalid_request"
    INTERNAL = "internal"

class ProviderError(Exception):
    """
    Failure produced while serving a capability

    Raised inside adapters and returned as a value from
    ProviderAdapter.fetch so the gateway can build an error envelope.
    """

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        upstream_status: Optional[int] = None
    ):
        self.kind = kind
        self.message = message
        self.upstream_status = upstream_status
        super().__init__(message)

    def __repr__(self) -> str:
        return (
            f"ProviderError(kind={self.kind.name}, message={self.message!r}, "
            f"upstream_status={self.upstream_status})"
        )

    @classmethod
    def not_found(cls, message: str) -> 'ProviderError':
        return cls(ErrorKind.NOT_FOUND, message, 404)

    @classmethod
    def upstream(cls, message: str, status: Optional[int] = None) -> 'ProviderError':
        return cls(ErrorKind.UPSTREAM_ERROR, message, status)

    @classmethod
    def invalid(cls, message: str) -> 'ProviderError':
        return cls(ErrorKind.INVALID_REQUEST, message)

class ConfigurationError(Exception):
    """Raised at startup when a capability cannot be resolved"""
