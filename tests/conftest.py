"""Shared test fixtures for gitportal.

FakeApi stands in for a Git hosting REST API behind an httpx.MockTransport;
FakeRadio and FakeDNS let the portals start without touching the network
stack.
"""

import json
from typing import Any, Dict, List, Optional, Tuple

import httpx
import pytest

from portal.access_point import AccessPoint, Radio
from utils.storage import ConfigStore

API_BASE = "https://api.test"


class FakeApi:
    """Route table keyed by (method, decoded path), recording every request"""

    def __init__(self):
        self.routes: Dict[Tuple[str, str], Tuple[int, Any, Dict[str, str]]] = {}
        self.requests: List[httpx.Request] = []
        self.raise_error: Optional[Exception] = None

    def add(self, method: str, path: str, status: int = 200, body: Any = None,
            headers: Optional[Dict[str, str]] = None) -> None:
        self.routes[(method, path)] = (status, body, headers or {})

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.raise_error is not None:
            raise self.raise_error
        route = self.routes.get((request.method, request.url.path))
        if route is None:
            return httpx.Response(404, json={"message": "Not Found"})
        status, body, headers = route
        if body is None:
            return httpx.Response(status, headers=headers)
        return httpx.Response(status, json=body, headers=headers)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def calls(self) -> List[Tuple[str, str]]:
        return [(r.method, r.url.path) for r in self.requests]

    def last(self) -> httpx.Request:
        return self.requests[-1]

    def last_json(self) -> Any:
        return json.loads(self.requests[-1].content)


class FakeRadio(Radio):
    def __init__(self, ok: bool = True):
        self.ok = ok
        self.started: List[str] = []
        self.stops = 0

    def start(self, ssid: str, address: str) -> bool:
        self.started.append(ssid)
        return self.ok

    def stop(self) -> None:
        self.stops += 1


class FakeDNS:
    def __init__(self, ok: bool = True):
        self.ok = ok
        self.running = False
        self.starts = 0
        self.stops = 0

    def start(self) -> bool:
        self.starts += 1
        self.running = self.ok
        return self.ok

    def stop(self) -> None:
        self.stops += 1
        self.running = False

    @property
    def is_running(self) -> bool:
        return self.running


@pytest.fixture
def api() -> FakeApi:
    return FakeApi()


@pytest.fixture
def config_store(tmp_path) -> ConfigStore:
    return ConfigStore(str(tmp_path / "gitportal" / "config.json"))


@pytest.fixture
def radio() -> FakeRadio:
    return FakeRadio()


@pytest.fixture
def dns() -> FakeDNS:
    return FakeDNS()


@pytest.fixture
def access_point(radio, dns) -> AccessPoint:
    return AccessPoint(radio=radio, dns=dns, address="192.168.4.1")


def authenticated(provider_class, api: FakeApi, user: Dict[str, Any], token: str = "test-token"):
    """Build a provider on the fake API and run its identity check"""
    api.add("GET", "/user", body=user)
    provider = provider_class(api_base_url=API_BASE, transport=api.transport)
    assert provider.begin(token)
    api.requests.clear()
    return provider
