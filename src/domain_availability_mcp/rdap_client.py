"""
Async RDAP Client

Per-domain availability lookups against the registry RDAP server that the
IANA bootstrap names for the domain's TLD. Every lookup runs with its own
timeout, and every failure is reported as Unknown rather than raised.
"""

import asyncio
import logging

import httpx

from .errors import LookupUncertain
from .models import Availability, LookupResult
from .rdap_bootstrap import BootstrapCache, default_bootstrap_cache
from .sanitizer import split_domain

logger = logging.getLogger(__name__)

LOOKUP_TIMEOUT = 8.0


class AsyncRDAPClient:
    """
    Async RDAP client with connection pooling.

    Usage:
        async with AsyncRDAPClient() as client:
            results = await client.check_domains(["example.com", "test.net"])
    """

    def __init__(
        self,
        bootstrap: BootstrapCache | None = None,
        timeout: float = LOOKUP_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._bootstrap = bootstrap if bootstrap is not None else default_bootstrap_cache
        self._timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> "AsyncRDAPClient":
        self._client = httpx.AsyncClient(
            timeout=self._timeout,
            headers={"Accept": "application/rdap+json"},
            follow_redirects=False,
            transport=self._transport,
            limits=httpx.Limits(
                max_connections=100,
                max_keepalive_connections=20,
            ),
        )
        return self

    async def __aexit__(self, *args) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    async def _query(self, domain: str) -> Availability:
        """Run one lookup; raises LookupUncertain or httpx errors."""
        if self._client is None:
            raise RuntimeError("Client not initialized. Use 'async with' context.")

        _, tld = split_domain(domain)

        base = await self._bootstrap.resolve_base(tld)
        if not base:
            if self._bootstrap.services is None:
                raise LookupUncertain("bootstrap_unavailable", "RDAP bootstrap could not be loaded")
            raise LookupUncertain("tld_unsupported", f"TLD .{tld} not in RDAP bootstrap")

        # httpx timeouts apply per read; wait_for bounds the whole exchange
        response = await asyncio.wait_for(
            self._client.get(f"{base}/domain/{domain}"),
            self._timeout,
        )

        # No registration record means unregistered
        if response.status_code == 404:
            return Availability.AVAILABLE
        if response.status_code == 200:
            return Availability.TAKEN

        # 429, 5xx, unfollowed redirects...
        raise LookupUncertain("http_error", f"RDAP status {response.status_code}")

    async def check_domain(self, domain: str) -> LookupResult:
        """Check a single domain. Never raises; failures become UNKNOWN."""
        try:
            availability = await self._query(domain)
            return LookupResult(domain=domain, availability=availability)
        except LookupUncertain as e:
            error_type, message = e.error_type, e.message
        except (httpx.TimeoutException, asyncio.TimeoutError):
            error_type, message = "timeout", "Request timed out"
        except httpx.HTTPError as e:
            error_type, message = "network", str(e)[:100] or type(e).__name__
        except Exception as e:
            logger.exception("Unexpected error checking %s", domain)
            error_type, message = "internal", str(e)[:100] or type(e).__name__

        logger.debug("RDAP lookup for %s inconclusive: %s (%s)", domain, error_type, message)
        return LookupResult(
            domain=domain,
            availability=Availability.UNKNOWN,
            error_type=error_type,
            error_message=message,
        )

    async def lookup(self, domain: str) -> Availability:
        """Availability of a single domain."""
        return (await self.check_domain(domain)).availability

    async def check_domains(self, domains: list[str]) -> list[LookupResult]:
        """
        Check multiple domains in parallel.

        One slow or failing domain does not hold up or fail the others;
        this returns once every lookup has settled or timed out.
        """
        if not domains:
            return []

        tasks = [self.check_domain(domain) for domain in domains]
        # a failing task must not cancel its siblings
        settled = await asyncio.gather(*tasks, return_exceptions=True)

        results = []
        for domain, outcome in zip(domains, settled):
            if not isinstance(outcome, LookupResult):
                logger.error("RDAP lookup for %s did not settle: %r", domain, outcome)
                outcome = LookupResult(
                    domain=domain,
                    availability=Availability.UNKNOWN,
                    error_type="internal",
                    error_message=type(outcome).__name__,
                )
            results.append(outcome)
        return results

