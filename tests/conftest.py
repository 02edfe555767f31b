"""
Shared fixtures for the TLS check tests.

Provides a controllable clock, httpx clients backed by MockTransport,
and fake DNS resolvers / probes for the verification pipeline.
"""

import os
import sys
from typing import Dict, List, Optional

import httpx
import pytest

# Add project root to path so the flat modules import without installation
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from cloudflare_ranges import CloudflareRangeCache  # noqa: E402
from service_config import ServiceConfig  # noqa: E402
from verification import ResolutionError  # noqa: E402

CLOUDFLARE_BODY = "173.245.48.0/20\n104.16.0.0/13\n172.64.0.0/13\n"


class FakeClock:
    """Monotonic clock that only moves when told to."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeResolver:
    """Async resolver returning canned answers and recording lookups."""

    def __init__(self, answers: Optional[Dict[str, List[str]]] = None):
        self.answers = answers or {}
        self.calls: List[str] = []

    async def __call__(self, domain: str) -> List[str]:
        self.calls.append(domain)
        if domain not in self.answers:
            raise ResolutionError(f"NXDOMAIN: {domain}")
        return list(self.answers[domain])


class FakeProbe:
    def __init__(self, result: bool = True):
        self.result = result
        self.calls: List[str] = []

    async def __call__(self, domain: str) -> bool:
        self.calls.append(domain)
        return self.result


class StaticRangeCache:
    """Stands in for CloudflareRangeCache without network access."""

    def __init__(self, ranges: List[str]):
        self.ranges = ranges
        self.calls = 0

    async def get_ranges(self) -> List[str]:
        self.calls += 1
        return self.ranges

    def snapshot(self):
        return {"count": len(self.ranges), "age_seconds": 0.0, "fresh": True, "last_error": None}


def mock_client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def config():
    return ServiceConfig(
        port=5555,
        block_list=frozenset({"evil.example"}),
        ips=frozenset({"203.0.113.5"}),
        subdomain_amount=3,
    )


@pytest.fixture
def cloudflare_ranges():
    return StaticRangeCache(["104.16.0.0/13", "172.64.0.0/13"])


@pytest.fixture
def make_range_cache(clock):
    """Build a CloudflareRangeCache over a MockTransport handler."""

    def _make(handler, **kwargs) -> CloudflareRangeCache:
        client = mock_client(handler)
        return CloudflareRangeCache(client=client, clock=clock, **kwargs)

    return _make
