"""
Domain availability resolution: Namecheap first, RDAP as fallback.

A batch is sanitized, then sent to Namecheap in one call when credentials
are configured. If that call fails in any way, or credentials are
missing, every domain is looked up via RDAP concurrently instead. The
response always has an entry for every sanitized domain.
"""

import logging

import httpx

from .config import get_client_ip_override, get_namecheap_credentials
from .errors import PrimaryFailure
from .models import Availability, LookupResult, ResolutionResponse, Source
from .namecheap_client import PRIMARY_TIMEOUT, NamecheapClient, PrimaryResult, derive_client_ip
from .rdap_bootstrap import BootstrapCache, default_bootstrap_cache
from .rdap_client import LOOKUP_TIMEOUT, AsyncRDAPClient
from .sanitizer import sanitize

logger = logging.getLogger(__name__)

_FROM_CONFIG = object()


class DomainResolver:
    """
    Resolves a batch of candidate domains to Available/Taken/Unknown.

    Args:
        credentials: Namecheap credentials; by default read from config.
            Pass None to force the RDAP path.
        bootstrap: RDAP bootstrap cache (default: the process-wide one)
        transport: httpx transport shared by both clients (for tests)
    """

    def __init__(
        self,
        credentials=_FROM_CONFIG,
        bootstrap: BootstrapCache | None = None,
        primary_timeout: float = PRIMARY_TIMEOUT,
        lookup_timeout: float = LOOKUP_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if credentials is _FROM_CONFIG:
            credentials = get_namecheap_credentials()
        self.credentials = credentials
        self.bootstrap = bootstrap if bootstrap is not None else default_bootstrap_cache
        self.primary_timeout = primary_timeout
        self.lookup_timeout = lookup_timeout
        self._transport = transport

    async def resolve(
        self,
        raw: list,
        client_ip: str | None = None,
        forwarded_for: str | None = None,
    ) -> ResolutionResponse:
        """
        Resolve a raw batch of candidate strings.

        client_ip and forwarded_for (an X-Forwarded-For value) identify the
        caller to Namecheap; see derive_client_ip.

        Raises:
            ValidationError: if no valid domain is left after sanitizing.
        """
        batch = sanitize(raw)

        if self.credentials is not None:
            try:
                primary = await self._query_primary(batch, derive_client_ip(forwarded_for, client_ip))
            except PrimaryFailure as e:
                logger.warning("Namecheap API failed, falling back to RDAP: %s", e)
            else:
                return self._from_primary(batch, primary)
        else:
            logger.debug("Namecheap credentials not configured, using RDAP")

        return await self._resolve_secondary(batch)

    async def _query_primary(self, batch: list[str], client_ip: str) -> PrimaryResult:
        client_ip = get_client_ip_override() or client_ip
        async with NamecheapClient(
            self.credentials,
            timeout=self.primary_timeout,
            transport=self._transport,
        ) as client:
            return await client.query_batch(batch, client_ip)

    def _from_primary(self, batch: list[str], primary: PrimaryResult) -> ResolutionResponse:
        found = primary.results
        prices = primary.premium_prices

        results = {}
        premium_prices = {}
        errors = {}
        for domain in dict.fromkeys(batch):
            if domain not in found:
                results[domain] = Availability.UNKNOWN
                errors[domain] = "not_in_response"
                continue
            results[domain] = Availability.AVAILABLE if found[domain] else Availability.TAKEN
            if domain in prices:
                premium_prices[domain] = prices[domain]

        return ResolutionResponse(
            results=results,
            source=Source.PRIMARY,
            premium_prices=premium_prices,
            errors=errors,
        )

    async def _resolve_secondary(self, batch: list[str]) -> ResolutionResponse:
        domains = list(dict.fromkeys(batch))

        async with AsyncRDAPClient(
            bootstrap=self.bootstrap,
            timeout=self.lookup_timeout,
            transport=self._transport,
        ) as client:
            settled = await client.check_domains(domains)

        results = {}
        errors = {}
        for outcome in settled:
            domain = outcome.domain
            results[domain] = outcome.availability
            if outcome.availability == Availability.UNKNOWN:
                errors[domain] = _describe_error(outcome)

        return ResolutionResponse(results=results, source=Source.SECONDARY, errors=errors)


def _describe_error(result: LookupResult) -> str:
    if result.error_type == "http_error" and result.error_message:
        # "RDAP status 503" -> "http_error: 503"
        return f"http_error: {result.error_message.rsplit(' ', 1)[-1]}"
    return result.error_type or "unknown"

