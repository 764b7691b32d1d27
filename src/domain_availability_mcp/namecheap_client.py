"""
Namecheap API client for batched availability and premium pricing.

One namecheap.domains.check call covers a whole batch. The XML reply is
decoded into DomainCheckRecord objects; any response that cannot be
trusted (transport error, error marker, unparsable body, zero records)
raises PrimaryFailure so the caller can fall back to RDAP.
"""

import asyncio
import logging
import math
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field

import httpx

from .config import DEFAULT_CLIENT_IP, NamecheapCredentials, get_namecheap_api_url
from .errors import PrimaryFailure

logger = logging.getLogger(__name__)

PRIMARY_TIMEOUT = 15.0
CHECK_COMMAND = "namecheap.domains.check"


@dataclass
class DomainCheckRecord:
    """One <DomainCheckResult> element."""
    domain: str
    available: bool
    is_premium: bool = False
    premium_price: float | None = None


@dataclass
class PrimaryResult:
    """Decoded registrar reply for a batch."""
    records: list[DomainCheckRecord] = field(default_factory=list)

    @property
    def results(self) -> dict[str, bool]:
        return {r.domain: r.available for r in self.records}

    @property
    def premium_prices(self) -> dict[str, float]:
        return {r.domain: r.premium_price for r in self.records if r.premium_price is not None}


def derive_client_ip(forwarded_for: str | None = None, remote_addr: str | None = None) -> str:
    """
    Pick the client IP to report to Namecheap.

    The API insists on a ClientIp parameter, so this always returns
    something: first X-Forwarded-For hop, else the socket address, else
    DEFAULT_CLIENT_IP.
    """
    if forwarded_for:
        first = forwarded_for.split(",")[0].strip()
        if first:
            return first
    if remote_addr and remote_addr.strip():
        return remote_addr.strip()
    return DEFAULT_CLIENT_IP


def _local_name(tag) -> str:
    """Strip any {namespace} prefix from an element tag."""
    if not isinstance(tag, str):
        return ""
    return tag.rsplit("}", 1)[-1].lower()


def _attrs(element: ET.Element) -> dict[str, str]:
    return {_local_name(k): v for k, v in element.attrib.items()}


def _parse_price(value: str | None) -> float | None:
    """Return a positive finite price, or None."""
    if not value:
        return None
    try:
        price = float(value.strip())
    except ValueError:
        return None
    if not math.isfinite(price) or price <= 0:
        return None
    return price


def _has_error_marker(root: ET.Element) -> bool:
    if _attrs(root).get("status", "").upper() == "ERROR":
        return True
    for element in root.iter():
        if _local_name(element.tag) == "errors":
            if any(_local_name(child.tag) == "error" for child in element):
                return True
    return False


def parse_check_response(xml_text: str) -> list[DomainCheckRecord]:
    """
    Decode a namecheap.domains.check XML reply.

    Expected shape:
        <ApiResponse Status="OK" xmlns="http://api.namecheap.com/xml.response">
          <Errors />
          <CommandResponse Type="namecheap.domains.check">
            <DomainCheckResult Domain="foo.io" Available="false"
                IsPremiumName="true" PremiumRegistrationPrice="250.00" />
          </CommandResponse>
        </ApiResponse>

    Element and attribute names are matched without regard to namespace
    or case, since both the namespaced and bare forms of the reply are
    seen in the wild. A premium price is kept only when IsPremiumName is
    true and the price is a positive number.

    Raises:
        PrimaryFailure: on unparsable XML or an explicit error marker.
    """
    try:
        root = ET.fromstring(xml_text)
    except ET.ParseError as e:
        raise PrimaryFailure(f"Unparsable Namecheap response: {e}") from e

    if _has_error_marker(root):
        messages = [
            (el.text or "").strip()
            for el in root.iter()
            if _local_name(el.tag) == "error"
        ]
        detail = "; ".join(m for m in messages if m) or "Status=ERROR"
        raise PrimaryFailure(f"Namecheap API error: {detail}")

    records = []
    for element in root.iter():
        if _local_name(element.tag) != "domaincheckresult":
            continue
        attrs = _attrs(element)
        domain = attrs.get("domain", "").strip().lower()
        if not domain:
            continue
        is_premium = attrs.get("ispremiumname", "").lower() == "true"
        records.append(DomainCheckRecord(
            domain=domain,
            available=attrs.get("available", "").lower() == "true",
            is_premium=is_premium,
            premium_price=_parse_price(attrs.get("premiumregistrationprice")) if is_premium else None,
        ))

    return records


class NamecheapClient:
    """
    Async client for the Namecheap XML API.

    Usage:
        async with NamecheapClient(credentials) as client:
            result = await client.query_batch(["example.com", "foo.io"])
    """

    def __init__(
        self,
        credentials: NamecheapCredentials,
        timeout: float = PRIMARY_TIMEOUT,
        api_url: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._credentials = credentials
        self._timeout = timeout
        self._api_url = api_url or get_namecheap_api_url()
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> "NamecheapClient":
        self._client = httpx.AsyncClient(timeout=self._timeout, transport=self._transport)
        return self

    async def __aexit__(self, *args) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    def _params(self, domains: list[str], client_ip: str) -> dict[str, str]:
        return {
            "ApiUser": self._credentials.api_user,
            "ApiKey": self._credentials.api_key,
            "UserName": self._credentials.api_user,
            "Command": CHECK_COMMAND,
            "ClientIp": client_ip,
            "DomainList": ",".join(domains),
        }

    async def query_batch(self, domains: list[str], client_ip: str | None = None) -> PrimaryResult:
        """
        Check a whole batch in one registrar call.

        Raises:
            PrimaryFailure: for any failure, including a reply with zero
                DomainCheckResult records.
        """
        if self._client is None:
            raise RuntimeError("Client not initialized. Use 'async with' context.")

        params = self._params(domains, client_ip or DEFAULT_CLIENT_IP)

        try:
            response = await asyncio.wait_for(
                self._client.get(self._api_url, params=params),
                self._timeout,
            )
            response.raise_for_status()
        except (httpx.TimeoutException, asyncio.TimeoutError) as e:
            raise PrimaryFailure("Namecheap request timed out") from e
        except httpx.HTTPStatusError as e:
            raise PrimaryFailure(f"Namecheap returned HTTP {e.response.status_code}") from e
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            # str(e) may include the request URL, which carries the API key
            raise PrimaryFailure(f"Namecheap request failed: {type(e).__name__}") from e

        records = parse_check_response(response.text)
        if not records:
            raise PrimaryFailure("No results parsed from Namecheap response")

        logger.debug("Namecheap returned %d records for %d domains", len(records), len(domains))
        return PrimaryResult(records=records)
