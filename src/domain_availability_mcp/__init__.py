"""
Domain Availability MCP Server

An MCP server for checking whether domain names are registered or available.
"""

__version__ = "0.1.0"


def main():
    """Main entry point for the CLI."""
    import sys

    # Handle CLI arguments before importing heavy dependencies
    if "--help" in sys.argv or "-h" in sys.argv:
        print_help()
        sys.exit(0)

    if "--version" in sys.argv or "-V" in sys.argv:
        print(f"domain-availability-mcp {__version__}")
        sys.exit(0)

    if "--setup" in sys.argv:
        run_setup()
        sys.exit(0)

    if "--show-config" in sys.argv:
        show_config()
        sys.exit(0)

    configure_logging()

    # Default: run the MCP server
    from .server import mcp
    mcp.run()


def configure_logging():
    """Send logs to stderr; stdout carries the MCP stdio protocol."""
    import logging
    import os
    import sys

    level = logging.DEBUG if os.environ.get("DOMAIN_AVAILABILITY_DEBUG") else logging.INFO
    logging.basicConfig(
        level=level,
        stream=sys.stderr,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def print_help():
    """Print help message."""
    print(f"""domain-availability-mcp {__version__}

An MCP server for checking whether domain names are registered or available.

Usage:
    domain-availability-mcp               Run the MCP server
    domain-availability-mcp --setup       Configure Namecheap credentials interactively
    domain-availability-mcp --show-config Show current configuration
    domain-availability-mcp --version     Show version
    domain-availability-mcp --help        Show this help

Configuration:
    The server works out of the box using RDAP for domain lookups (no API key required).

    For Namecheap integration (includes premium pricing), set your credentials:
    1. Run: domain-availability-mcp --setup
    2. Or set environment variables:
         NAMECHEAP_API_USER=your-user
         NAMECHEAP_API_KEY=your-key
    Optional:
         NAMECHEAP_CLIENT_IP=1.2.3.4   Whitelisted IP reported to Namecheap
         NAMECHEAP_SANDBOX=1           Use the Namecheap sandbox API

    Enable the API at: https://ap.www.namecheap.com/settings/tools/apiaccess/
""")


def run_setup():
    """Interactive setup wizard."""
    import getpass
    from .config import get_config_file, get_namecheap_credentials, set_namecheap_credentials

    print("=" * 50)
    print("Domain Availability MCP - Setup")
    print("=" * 50)
    print()

    # Check current credential status
    current = get_namecheap_credentials()
    if current:
        print(f"Current Namecheap API user: {current.api_user}")
        print(f"Current Namecheap API key: {mask_key(current.api_key)}")
        print()
        response = input("Update credentials? [y/N]: ").strip().lower()
        if response != "y":
            print("\nSetup complete. Your current configuration is preserved.")
            return

    print()
    print("Namecheap API credentials (optional - enables premium pricing)")
    print("Press Enter to skip (RDAP will be used for domain lookups)")
    print()

    api_user = input("API User: ").strip()
    api_key = getpass.getpass("API Key: ").strip() if api_user else ""

    if api_user and api_key:
        if set_namecheap_credentials(api_user, api_key):
            print(f"\n✓ Credentials saved (config file: {get_config_file()})")
            verify_credentials(api_user, api_key)
        else:
            print("\n✗ Failed to save credentials")
    else:
        print("\n✓ Skipped. RDAP will be used for domain lookups (no pricing info).")

    print()
    print("Setup complete!")


def show_config():
    """Show current configuration."""
    from .config import get_config_file, get_key_source, get_namecheap_api_url, get_namecheap_credentials

    print("Configuration")
    print("=" * 50)
    print()

    config_file = get_config_file()
    print(f"Config file: {config_file}")
    print(f"  Exists: {config_file.exists()}")
    print()

    credentials = get_namecheap_credentials()
    if credentials:
        print(f"Namecheap API user: {credentials.api_user}")
        print(f"Namecheap API key: {mask_key(credentials.api_key)}")
        print(f"  Source: {get_key_source()}")
        print(f"  Endpoint: {get_namecheap_api_url()}")
    else:
        print("Namecheap credentials: Not configured")
        print("  Domain lookups will use RDAP (no pricing)")


def mask_key(key: str) -> str:
    """Mask an API key for display."""
    if len(key) > 8:
        return key[:4] + "*" * (len(key) - 8) + key[-4:]
    elif len(key) > 4:
        return key[:2] + "*" * (len(key) - 2)
    else:
        return "*" * len(key)


def verify_credentials(api_user: str, api_key: str):
    """Test Namecheap credentials with a single-domain check."""
    try:
        import httpx
        from .config import DEFAULT_CLIENT_IP, get_client_ip_override, get_namecheap_api_url
        from .errors import PrimaryFailure
        from .namecheap_client import CHECK_COMMAND, parse_check_response

        print("\nTesting Namecheap API...")

        response = httpx.get(
            get_namecheap_api_url(),
            params={
                "ApiUser": api_user,
                "ApiKey": api_key,
                "UserName": api_user,
                "Command": CHECK_COMMAND,
                "ClientIp": get_client_ip_override() or DEFAULT_CLIENT_IP,
                "DomainList": "test-domain-check-12345.com",
            },
            timeout=10
        )
        try:
            records = parse_check_response(response.text)
        except PrimaryFailure as e:
            print(f"✗ API error: {e}")
            return

        if records:
            print("✓ Credentials are valid")
        else:
            print("✗ API returned no results")

    except Exception as e:
        print(f"✗ Test failed: {type(e).__name__}")
