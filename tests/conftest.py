"""Shared fixtures: faked upstream providers, controllable clock, isolated config."""

from typing import Any, Callable, Dict, List, Tuple, Union

import httpx
import pytest

from fingate.config.settings import APIConfig, Config, SystemConfig, reset_config
from fingate.data.cache import CacheStore
from fingate.data.gateway import AggregationGateway

ALPHA_VANTAGE_HOST = "www.alphavantage.co"
COINGECKO_HOST = "api.coingecko.com"
EXCHANGE_PAID_HOST = "v6.exchangerate-api.com"
EXCHANGE_FREE_HOST = "api.exchangerate-api.com"

Responder = Union[Dict[str, Any], Callable[[httpx.Request], Any]]


class FakeClock:
    """Monotonic clock that only moves when told to."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


class UpstreamStub:
    """Routes requests by host and path prefix to canned responses and records them."""

    def __init__(self):
        self.routes: List[Tuple[str, str, Responder]] = []
        self.requests: List[httpx.Request] = []

    def on(self, host: str, path_prefix: str, responder: Responder):
        # Later registrations take precedence
        self.routes.insert(0, (host, path_prefix, responder))

    def handler(self, request: httpx.Request):
        self.requests.append(request)
        for host, prefix, responder in self.routes:
            if request.url.host == host and request.url.path.startswith(prefix):
                if callable(responder):
                    return responder(request)
                return httpx.Response(200, json=responder)
        return httpx.Response(404, json={"message": "no stub registered"})

    def calls(self, host: str = None) -> int:
        return sum(1 for r in self.requests if host is None or r.url.host == host)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler))


def make_config(exchange_key: str = "", **system) -> Config:
    return Config(
        api=APIConfig(alpha_vantage_key="test-av-key", exchange_api_key=exchange_key),
        system=SystemConfig(**system)
    )


AAPL_QUOTE = {
    "Global Quote": {
        "01. symbol": "AAPL",
        "02. open": "189.5100",
        "05. price": "189.9800",
        "06. volume": "48123456",
        "07. latest trading day": "2024-05-17",
        "08. previous close": "189.8400",
        "09. change": "0.1400",
        "10. change percent": "0.0737%"
    }
}

FREE_USD_RATES = {
    "base": "USD",
    "date": "2024-05-17",
    "time_last_updated": 1715904001,
    "rates": {"USD": 1, "EUR": 0.92, "GBP": 0.79, "JPY": 155.6}
}


@pytest.fixture(autouse=True)
def isolated_config():
    """Never let one test's environment leak into the config singleton of another."""
    reset_config()
    yield
    reset_config()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def upstream():
    return UpstreamStub()


@pytest.fixture
def cache(clock):
    return CacheStore(default_ttl=300, clock=clock)


@pytest.fixture
def gateway_factory(upstream, cache):
    """Build gateways sharing one stubbed upstream and one cache."""

    def build(exchange_key: str = "", **system) -> AggregationGateway:
        return AggregationGateway(
            config=make_config(exchange_key, **system),
            cache=cache,
            client=upstream.client()
        )

    return build


@pytest.fixture
def gateway(gateway_factory):
    return gateway_factory()
