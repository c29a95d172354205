"""Unit tests for response envelopes and status classification."""

from datetime import datetime, timezone

import pytest

from fingate.data.base import StockQuote
from fingate.data.envelope import ResponseEnvelope, error_envelope, success_envelope
from fingate.data.errors import ErrorKind, ProviderError


class TestResponseEnvelope:

    def test_success_shape(self):
        """Success envelopes carry camelCase data and a UTC timestamp."""
        quote = StockQuote("AAPL", 189.98, 0.14, 0.0737, 48123456, "2024-05-17")
        envelope = success_envelope(quote, cached=True)
        envelope.timestamp = datetime(2024, 5, 17, 12, 0, tzinfo=timezone.utc)

        assert envelope.to_dict() == {
            'success': True,
            'data': {
                'symbol': 'AAPL',
                'price': 189.98,
                'change': 0.14,
                'changePercent': 0.0737,
                'volume': 48123456,
                'lastUpdate': '2024-05-17'
            },
            'cached': True,
            'timestamp': '2024-05-17T12:00:00Z'
        }
        assert envelope.status == "ok"
        assert envelope.http_status == 200

    def test_error_shape(self):
        """Error envelopes carry the message, kind and fallback hint."""
        envelope = error_envelope(
            ProviderError.upstream("quota-reached"),
            fallback="Exchange rate data temporarily unavailable"
        )
        body = envelope.to_dict()

        assert body['success'] is False
        assert body['error'] == "quota-reached"
        assert body['errorKind'] == "upstream_error"
        assert body['status'] == "upstream_error"
        assert body['fallback'] == "Exchange rate data temporarily unavailable"
        assert body['cached'] is False
        assert 'data' not in body

    @pytest.mark.parametrize("error, status, http_status", [
        (ProviderError.not_found("gone"), "not_found", 404),
        (ProviderError.upstream("bad gateway"), "upstream_error", 502),
        (ProviderError.upstream("throttled", 429), "upstream_error", 429),
        (ProviderError.upstream("odd", 302), "upstream_error", 502),
        (ProviderError(ErrorKind.TIMEOUT, "slow"), "timeout", 504),
        (ProviderError.invalid("bad amount"), "invalid_request", 400),
        (ProviderError(ErrorKind.CONFIGURATION, "unknown"), "internal", 500),
        (ProviderError(ErrorKind.INTERNAL, "boom"), "internal", 500),
    ])
    def test_status_classification(self, error, status, http_status):
        """Each error kind maps to a status and HTTP code."""
        envelope = error_envelope(error)

        assert envelope.status == status
        assert envelope.http_status == http_status

    def test_plain_data_passes_through(self):
        """Data without to_dict is emitted as is."""
        assert ResponseEnvelope(success=True, data=[1, 2]).to_dict()['data'] == [1, 2]
