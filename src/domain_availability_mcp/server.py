"""
Domain Availability MCP Server

An MCP server for checking whether domain names are registered or
available (via Namecheap API, with RDAP as fallback).
"""

import json
import logging
import os

from mcp.server.fastmcp import FastMCP

from . import __version__
from .errors import ValidationError
from .resolver import DomainResolver

# Suppress httpx request logging by default (shows API keys in URLs)
# Set DOMAIN_AVAILABILITY_DEBUG=1 to enable verbose HTTP logging
if not os.environ.get("DOMAIN_AVAILABILITY_DEBUG"):
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)

# Initialize the MCP server
mcp = FastMCP("domain-availability")
mcp._mcp_server.version = __version__


@mcp.tool()
def version() -> str:
    """
    Get the version of the Domain Availability MCP server.

    Returns:
        Version string including server name and version number.
    """
    return f"Domain Availability MCP Server version {__version__}"


@mcp.tool()
async def check_domains(domains: list[str]) -> str:
    """
    Check whether domain names are available for registration.

    Args:
        domains: Full domain names, e.g. ["example.com", "foo.io"].
                 Invalid entries are skipped; at most 20 are checked.

    Returns:
        JSON with "results" (domain -> true if available, false if taken,
        null if unknown), "premiumPrices" (domain -> price, Namecheap only),
        "source" ("primary" for Namecheap, "secondary" for RDAP), and
        "errors" (reasons for unknown results, when any).
    """
    try:
        response = await DomainResolver().resolve(domains)
    except ValidationError as e:
        return json.dumps({"error": str(e)})

    return json.dumps(response.to_dict())
