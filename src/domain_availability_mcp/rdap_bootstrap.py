"""
RDAP Bootstrap Cache Module

Fetches and caches the IANA RDAP bootstrap file, which maps TLDs to
their authoritative RDAP servers.

The cache lives in memory for the life of the process. Its freshness
window comes from the response's Cache-Control max-age (24 hours if
absent), and refreshes use conditional GET so an unchanged file is not
downloaded again.
"""

import asyncio
import logging
import time
from collections.abc import Callable

import httpx

from .errors import BootstrapFailure

logger = logging.getLogger(__name__)

# IANA bootstrap URL
IANA_BOOTSTRAP_URL = "https://data.iana.org/rdap/dns.json"

# Default cache expiry if no Cache-Control header (24 hours)
DEFAULT_CACHE_TTL = 86400

BOOTSTRAP_TIMEOUT = 8.0


def _parse_max_age(cache_control: str) -> int | None:
    """Parse max-age from Cache-Control header."""
    for directive in cache_control.split(","):
        directive = directive.strip().lower()
        if directive.startswith("max-age="):
            try:
                return int(directive[8:])
            except ValueError:
                pass
    return None


def parse_bootstrap_services(data: dict) -> dict[str, list[str]]:
    """
    Parse IANA bootstrap format into TLD -> server URLs mapping.

    Bootstrap format:
    {
        "services": [
            [["com", "net"], ["https://rdap.verisign.com/com/v1/"]],
            [["org"], ["https://rdap.publicinterestregistry.org/rdap/"]],
            ...
        ]
    }
    """
    services = {}
    for entry in data.get("services", []):
        if isinstance(entry, list) and len(entry) >= 2:
            tlds = entry[0]
            urls = [u for u in entry[1] if isinstance(u, str) and u]
            if not urls:
                continue
            for tld in tlds:
                if isinstance(tld, str):
                    services[tld.lower()] = urls
    return services


class BootstrapCache:
    """
    In-memory RDAP bootstrap directory with a freshness window.

    One instance is shared per process (see default_bootstrap_cache), but
    any instance can be injected into the resolver, e.g. a pre-seeded one
    in tests.

    The cache owns the HTTP client used for refreshes, so a caller that
    goes away mid-fetch never closes a connection other callers wait on.

    Usage:
        cache = BootstrapCache()
        base = await cache.resolve_base("com")
    """

    def __init__(
        self,
        url: str = IANA_BOOTSTRAP_URL,
        timeout: float = BOOTSTRAP_TIMEOUT,
        default_ttl: float = DEFAULT_CACHE_TTL,
        clock: Callable[[], float] = time.monotonic,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.url = url
        self.timeout = timeout
        self.default_ttl = default_ttl
        self._clock = clock
        self._transport = transport
        self._services: dict[str, list[str]] | None = None
        self._expires = 0.0
        self._etag = ""
        self._last_modified = ""
        self._inflight: asyncio.Future | None = None

    @property
    def services(self) -> dict[str, list[str]] | None:
        """The cached directory, fresh or stale; None if never loaded."""
        return self._services

    def is_fresh(self) -> bool:
        return self._services is not None and self._clock() < self._expires

    def store(self, services: dict[str, list[str]], max_age: float | None = None) -> None:
        """Replace the cached directory. Last writer wins."""
        self._services = services
        self._expires = self._clock() + (max_age if max_age is not None else self.default_ttl)

    async def refresh(self) -> bool:
        """
        Fetch/update the bootstrap directory from IANA.

        The whole fetch, body included, must finish within self.timeout.

        Returns:
            True if the directory was replaced, False if unchanged (304).

        Raises:
            BootstrapFailure: on network error, timeout, bad status, or invalid data.
        """
        headers = {"Accept": "application/json"}
        if self._services is not None:
            if self._last_modified:
                headers["If-Modified-Since"] = self._last_modified
            if self._etag:
                headers["If-None-Match"] = self._etag

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await asyncio.wait_for(client.get(self.url, headers=headers), self.timeout)
        except (httpx.TimeoutException, asyncio.TimeoutError) as e:
            raise BootstrapFailure("Bootstrap fetch timed out") from e
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise BootstrapFailure(f"Bootstrap fetch failed: {type(e).__name__}") from e

        max_age = _parse_max_age(response.headers.get("Cache-Control", ""))

        if response.status_code == 304 and self._services is not None:
            # Not modified - extend expiry
            self.store(self._services, max_age)
            return False

        if response.status_code != 200:
            raise BootstrapFailure(f"Bootstrap fetch returned HTTP {response.status_code}")

        try:
            data = response.json()
        except ValueError as e:
            raise BootstrapFailure("Bootstrap response is not valid JSON") from e

        services = parse_bootstrap_services(data) if isinstance(data, dict) else {}
        if not services:
            raise BootstrapFailure("Bootstrap response has no services")

        self._etag = response.headers.get("ETag", "")
        self._last_modified = response.headers.get("Last-Modified", "")
        self.store(services, max_age)
        logger.debug("RDAP bootstrap loaded: %d TLDs", len(services))
        return True

    async def get_services(self) -> dict[str, list[str]] | None:
        """
        Return the directory, refreshing it first if missing or expired.

        Concurrent callers share a single in-flight refresh. A failed
        refresh falls back to the stale directory when one is held,
        otherwise returns None.
        """
        if self.is_fresh():
            return self._services

        if self._inflight is None:
            self._inflight = asyncio.ensure_future(self._refresh_once())
        inflight = self._inflight

        # shield: one caller being cancelled must not abort the shared fetch
        return await asyncio.shield(inflight)

    async def _refresh_once(self) -> dict[str, list[str]] | None:
        try:
            await self.refresh()
        except BootstrapFailure as e:
            if self._services is not None:
                logger.warning("%s; using stale RDAP bootstrap", e)
            else:
                logger.warning("%s", e)
        finally:
            self._inflight = None
        return self._services

    async def resolve_base(self, tld: str) -> str | None:
        """
        Get the RDAP base URL for a TLD, without trailing slash.

        Args:
            tld: The top-level domain (without leading dot), e.g. "com", "io"

        Returns:
            The base URL (e.g. "https://rdap.verisign.com/com/v1"), or None
            if the TLD is not in the bootstrap or the bootstrap is unavailable.
        """
        services = await self.get_services()
        if not services:
            return None

        urls = services.get(tld.lower())
        if urls:
            return urls[0].rstrip("/")

        return None


# Process-wide cache shared by resolvers that are not given their own
default_bootstrap_cache = BootstrapCache()
