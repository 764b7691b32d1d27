#!/usr/bin/env python3
"""
Tests for the in-memory RDAP bootstrap cache.

Usage:
    pip install -e ".[test]"
    pytest test_rdap_bootstrap.py
"""

import asyncio
import json
import os
import sys
import time

import httpx
import pytest

sys.path.insert(0, os.path.join(os.path.dirname(os.path.abspath(__file__)), "src"))

from domain_availability_mcp.errors import BootstrapFailure
from domain_availability_mcp.rdap_bootstrap import (
    BootstrapCache,
    _parse_max_age,
    parse_bootstrap_services,
)
from local_http_server import Route, clear_proxy_env, serve

BOOTSTRAP = {
    "version": "1.0",
    "publication": "2026-10-01T18:00:02Z",
    "services": [
        [["com", "net"], ["https://rdap.verisign.com/com/v1/"]],
        [["io", "ai"], ["https://rdap.identitydigital.services/rdap/", "http://backup.example/rdap/"]],
        [["org"], ["https://rdap.publicinterestregistry.org/rdap/"]],
    ],
}


def run_sync(coro):
    """Helper to run async coroutines synchronously for tests."""
    return asyncio.run(coro)


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


def make_cache(handler, **kwargs) -> BootstrapCache:
    return BootstrapCache(transport=httpx.MockTransport(handler), **kwargs)


async def resolve(cache: BootstrapCache, *tlds: str) -> list[str | None]:
    return [await cache.resolve_base(tld) for tld in tlds]


def serve_bootstrap(calls: list, headers: dict | None = None):
    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(200, json=BOOTSTRAP, headers=headers or {})
    return handler


# =============================================================================
# Parsing
# =============================================================================

def test_parse_bootstrap_services():
    services = parse_bootstrap_services(BOOTSTRAP)
    assert services["com"] == ["https://rdap.verisign.com/com/v1/"]
    assert services["net"] == services["com"]
    assert services["ai"][0] == "https://rdap.identitydigital.services/rdap/"
    assert "xyz" not in services


def test_parse_skips_malformed_entries():
    data = {"services": [[["com"]], "junk", [["dev"], []], [["App"], ["https://rdap.app/"]]]}
    assert parse_bootstrap_services(data) == {"app": ["https://rdap.app/"]}


@pytest.mark.parametrize("header,expected", [
    ("max-age=3600", 3600),
    ("public, max-age=600, must-revalidate", 600),
    ("no-cache", None),
    ("max-age=abc", None),
    ("", None),
])
def test_parse_max_age(header, expected):
    assert _parse_max_age(header) == expected


# =============================================================================
# resolve_base
# =============================================================================

def test_resolve_base_strips_trailing_slash_and_uses_first_url():
    calls = []
    cache = make_cache(serve_bootstrap(calls))
    com, io = run_sync(resolve(cache, "com", "io"))

    assert com == "https://rdap.verisign.com/com/v1"
    assert io == "https://rdap.identitydigital.services/rdap"
    assert len(calls) == 1  # second lookup served from cache


def test_resolve_base_is_case_insensitive():
    cache = make_cache(serve_bootstrap([]))
    cache.store(parse_bootstrap_services(BOOTSTRAP))
    assert run_sync(resolve(cache, "COM")) == ["https://rdap.verisign.com/com/v1"]


def test_unknown_tld_returns_none():
    cache = make_cache(serve_bootstrap([]))
    assert run_sync(resolve(cache, "notarealtld12345")) == [None]


def test_fetch_timeout_returns_none_and_is_not_cached():
    calls = []

    def handler(request):
        calls.append(request)
        raise httpx.ConnectTimeout("timed out", request=request)

    cache = make_cache(handler)
    assert run_sync(resolve(cache, "com", "io")) == [None, None]
    assert cache.services is None
    assert len(calls) == 2  # failure is retried on the next call


@pytest.mark.parametrize("response", [
    httpx.Response(500, text="oops"),
    httpx.Response(200, text="not json"),
    httpx.Response(200, json={"services": []}),
    httpx.Response(200, json=["unexpected"]),
])
def test_bad_bootstrap_responses_return_none(response):
    cache = make_cache(lambda request: response)
    assert run_sync(resolve(cache, "com")) == [None]


def test_refresh_raises_bootstrap_failure():
    cache = make_cache(lambda request: httpx.Response(503))
    with pytest.raises(BootstrapFailure):
        run_sync(cache.refresh())


def test_malformed_url_is_bootstrap_failure():
    cache = BootstrapCache(url="http://127.0.0.1:abc/dns.json")
    with pytest.raises(BootstrapFailure):
        run_sync(cache.refresh())


def test_concurrent_callers_share_one_fetch():
    calls = []

    async def handler(request):
        calls.append(request)
        await asyncio.sleep(0.05)
        return httpx.Response(200, json=BOOTSTRAP)

    async def go(cache):
        return await asyncio.gather(*(cache.resolve_base(t) for t in ["com", "net", "io", "org", "zz"]))

    results = run_sync(go(make_cache(handler)))

    assert len(calls) == 1
    assert results[0] == results[1] == "https://rdap.verisign.com/com/v1"
    assert results[-1] is None


def test_cancelled_caller_does_not_abort_shared_fetch():
    calls = []

    async def handler(request):
        calls.append(request)
        await asyncio.sleep(0.2)
        return httpx.Response(200, json=BOOTSTRAP)

    async def go(cache):
        first = asyncio.ensure_future(cache.resolve_base("com"))
        await asyncio.sleep(0.05)
        second = asyncio.ensure_future(cache.resolve_base("io"))
        await asyncio.sleep(0.05)
        first.cancel()
        with pytest.raises(asyncio.CancelledError):
            await first
        return await second

    assert run_sync(go(make_cache(handler))) == "https://rdap.identitydigital.services/rdap"
    assert len(calls) == 1


# =============================================================================
# Deadline over a real socket
# =============================================================================

@pytest.fixture
def local_only(monkeypatch):
    clear_proxy_env(monkeypatch)


def test_slow_drip_body_hits_deadline(local_only):
    # every byte arrives well inside the read timeout, the body never finishes in time
    body = json.dumps(BOOTSTRAP).encode()
    routes = {"/dns.json": Route(body=body, pieces=20, delay=0.2)}

    async def go():
        async with serve(routes) as (url, hits):
            cache = BootstrapCache(url=f"{url}/dns.json", timeout=0.5)
            started = time.monotonic()
            with pytest.raises(BootstrapFailure, match="timed out"):
                await cache.refresh()
            return time.monotonic() - started, hits["/dns.json"]

    elapsed, hits = run_sync(go())
    assert elapsed < 2.0
    assert hits == 1


def test_slow_drip_leaves_directory_unloaded(local_only):
    body = json.dumps(BOOTSTRAP).encode()
    routes = {"/dns.json": Route(body=body, pieces=20, delay=0.2)}

    async def go():
        async with serve(routes) as (url, _):
            cache = BootstrapCache(url=f"{url}/dns.json", timeout=0.5)
            return await cache.resolve_base("com"), cache.services

    assert run_sync(go()) == (None, None)


def test_real_socket_fetch_loads_directory(local_only):
    routes = {"/dns.json": Route(body=json.dumps(BOOTSTRAP).encode(), pieces=3, delay=0.01)}

    async def go():
        async with serve(routes) as (url, _):
            cache = BootstrapCache(url=f"{url}/dns.json", timeout=2.0)
            return await cache.resolve_base("org")

    assert run_sync(go()) == "https://rdap.publicinterestregistry.org/rdap"


# =============================================================================
# Freshness window
# =============================================================================

def test_ttl_defaults_to_a_day():
    clock = FakeClock()
    cache = make_cache(serve_bootstrap([]), clock=clock)
    run_sync(resolve(cache, "com"))

    clock.now += 86399
    assert cache.is_fresh()
    clock.now += 2
    assert not cache.is_fresh()


def test_ttl_follows_cache_control():
    calls = []
    clock = FakeClock()
    cache = make_cache(serve_bootstrap(calls, {"Cache-Control": "max-age=60"}), clock=clock)

    run_sync(resolve(cache, "com"))
    clock.now += 30
    run_sync(resolve(cache, "com"))
    assert len(calls) == 1

    clock.now += 31
    run_sync(resolve(cache, "com"))
    assert len(calls) == 2


def test_expired_cache_revalidates_with_conditional_get():
    requests = []
    clock = FakeClock()

    def handler(request):
        requests.append(request)
        if len(requests) == 1:
            return httpx.Response(200, json=BOOTSTRAP, headers={
                "ETag": '"abc123"',
                "Last-Modified": "Wed, 01 Oct 2026 18:00:02 GMT",
                "Cache-Control": "max-age=10",
            })
        return httpx.Response(304, headers={"Cache-Control": "max-age=100"})

    cache = make_cache(handler, clock=clock)
    run_sync(resolve(cache, "com"))
    clock.now += 11
    assert run_sync(resolve(cache, "org")) == ["https://rdap.publicinterestregistry.org/rdap"]

    assert requests[1].headers["If-None-Match"] == '"abc123"'
    assert requests[1].headers["If-Modified-Since"] == "Wed, 01 Oct 2026 18:00:02 GMT"
    clock.now += 99
    assert cache.is_fresh()


def test_stale_directory_served_when_refresh_fails():
    clock = FakeClock()

    def handler(request):
        raise httpx.ConnectError("unreachable", request=request)

    cache = make_cache(handler, clock=clock)
    cache.store(parse_bootstrap_services(BOOTSTRAP), max_age=10)
    clock.now += 11

    assert run_sync(resolve(cache, "com")) == ["https://rdap.verisign.com/com/v1"]
    assert not cache.is_fresh()


if __name__ == "__main__":
    sys.exit(pytest.main([__file__, "-v"]))
