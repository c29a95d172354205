"""
Response envelopes returned by every gateway invocation
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from .errors import ErrorKind, ProviderError

# Status classification surfaced to the outward layer, with its HTTP mapping
STATUS_OK = "ok"
_KIND_STATUS = {
    ErrorKind.NOT_FOUND: ("not_found", 404),
    ErrorKind.UPSTREAM_ERROR: ("upstream_error", 502),
    ErrorKind.TIMEOUT: ("timeout", 504),
    ErrorKind.INVALID_REQUEST: ("invalid_request", 400),
    ErrorKind.CONFIGURATION: ("internal", 500),
    ErrorKind.INTERNAL: ("internal", 500),
}

def _utc_now() -> datetime:
    return datetime.now(timezone.utc)

@dataclass
class ResponseEnvelope:
    """Uniform success/error wrapper"""
    success: bool
    data: Optional[Any] = None
    error: Optional[str] = None
    error_kind: Optional[ErrorKind] = None
    upstream_status: Optional[int] = None
    cached: bool = False
    fallback: Optional[str] = None
    timestamp: datetime = field(default_factory=_utc_now)

    @property
    def status(self) -> str:
        if self.success:
            return STATUS_OK
        return _KIND_STATUS[self.error_kind][0]

    @property
    def http_status(self) -> int:
        if self.success:
            return 200
        # Upstream error statuses pass through; anything else is a bad gateway
        if self.error_kind is ErrorKind.UPSTREAM_ERROR and self.upstream_status and self.upstream_status >= 400:
            return self.upstream_status
        return _KIND_STATUS[self.error_kind][1]

    def to_dict(self) -> Dict[str, Any]:
        """Outward JSON shape"""
        body: Dict[str, Any] = {'success': self.success}
        if self.success:
            body['data'] = self.data.to_dict() if hasattr(self.data, 'to_dict') else self.data
        else:
            body['error'] = self.error
            body['errorKind'] = self.error_kind.value
            body['status'] = self.status
            if self.fallback:
                body['fallback'] = self.fallback
        body['cached'] = self.cached
        body['timestamp'] = self.timestamp.isoformat().replace('+00:00', 'Z')
        return body

def success_envelope(data: Any, cached: bool) -> ResponseEnvelope:
    return ResponseEnvelope(success=True, data=data, cached=cached)

def error_envelope(error: ProviderError, fallback: Optional[str] = None) -> ResponseEnvelope:
    """Wrap a ProviderError; failures are never served from cache"""
    return ResponseEnvelope(
        success=False,
        error=error.message,
        error_kind=error.kind,
        upstream_status=error.upstream_status,
        cached=False,
        fallback=fallback
    )
