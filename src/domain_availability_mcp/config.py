"""
Configuration storage for Domain Availability MCP.

On macOS: Uses Keychain for secure credential storage.
On other platforms: Falls back to config file.

Namecheap credential lookup order (each value looked up independently):
1. macOS Keychain (if on macOS)
2. Environment variables (NAMECHEAP_API_USER, NAMECHEAP_API_KEY)
3. Config file (fallback)
"""

import json
import os
import subprocess
import sys
from dataclasses import dataclass
from pathlib import Path

# Keychain service name
KEYCHAIN_SERVICE = "domain-availability-mcp.namecheap"

# (keychain account, environment variable, config file key)
API_USER_SOURCES = ("api_user", "NAMECHEAP_API_USER", "namecheap_api_user")
API_KEY_SOURCES = ("api_key", "NAMECHEAP_API_KEY", "namecheap_api_key")

NAMECHEAP_API_URL = "https://api.namecheap.com/xml.response"
NAMECHEAP_SANDBOX_API_URL = "https://api.sandbox.namecheap.com/xml.response"

# Namecheap rejects calls without a ClientIp
DEFAULT_CLIENT_IP = "127.0.0.1"


@dataclass(frozen=True)
class NamecheapCredentials:
    api_user: str
    api_key: str


def _is_macos() -> bool:
    """Check if running on macOS."""
    return sys.platform == "darwin"


def _keychain_get(service: str, account: str) -> str | None:
    """Get a password from macOS Keychain."""
    try:
        result = subprocess.run(
            ["security", "find-generic-password", "-s", service, "-a", account, "-w"],
            capture_output=True,
            text=True
        )
        if result.returncode == 0 and result.stdout.strip():
            return result.stdout.strip()
    except (subprocess.SubprocessError, FileNotFoundError):
        pass
    return None


def _keychain_set(service: str, account: str, password: str) -> bool:
    """Store a password in macOS Keychain."""
    try:
        # Delete existing entry first (ignore errors)
        subprocess.run(
            ["security", "delete-generic-password", "-s", service, "-a", account],
            capture_output=True
        )
        result = subprocess.run(
            ["security", "add-generic-password", "-s", service, "-a", account, "-w", password, "-U"],
            capture_output=True
        )
        return result.returncode == 0
    except (subprocess.SubprocessError, FileNotFoundError):
        return False


def get_config_dir() -> Path:
    """Get the config directory for this app."""
    if os.name == 'nt':  # Windows
        base = Path(os.environ.get('APPDATA', Path.home()))
    else:  # macOS, Linux
        base = Path(os.environ.get('XDG_CONFIG_HOME', Path.home() / '.config'))

    return base / 'domain-availability-mcp'


def get_config_file() -> Path:
    """Get the path to the config file."""
    return get_config_dir() / 'config.json'


def load_config() -> dict:
    """Load the config file, returning {} if missing or unreadable."""
    try:
        config_file = get_config_file()
        if config_file.exists():
            config = json.loads(config_file.read_text())
            if isinstance(config, dict):
                return config
    except (json.JSONDecodeError, OSError):
        pass
    return {}


def _lookup(sources: tuple[str, str, str]) -> tuple[str | None, str | None]:
    """Return (value, source description) for one credential."""
    account, env_var, config_key = sources

    if _is_macos():
        if value := _keychain_get(KEYCHAIN_SERVICE, account):
            return value, "macOS Keychain"

    if value := os.environ.get(env_var):
        return value, "environment variable"

    if value := load_config().get(config_key):
        return str(value), "config file"

    return None, None


def get_namecheap_credentials() -> NamecheapCredentials | None:
    """Namecheap credentials, or None unless both user and key are set."""
    api_user, _ = _lookup(API_USER_SOURCES)
    api_key, _ = _lookup(API_KEY_SOURCES)
    if api_user and api_key:
        return NamecheapCredentials(api_user=api_user, api_key=api_key)
    return None


def get_key_source() -> str | None:
    """Determine where the API key is stored (for display purposes)."""
    return _lookup(API_KEY_SOURCES)[1]


def set_namecheap_credentials(api_user: str, api_key: str) -> bool:
    """
    Store Namecheap credentials.

    On macOS: Uses Keychain.
    On other platforms: Uses config file.
    """
    if _is_macos():
        return (
            _keychain_set(KEYCHAIN_SERVICE, API_USER_SOURCES[0], api_user)
            and _keychain_set(KEYCHAIN_SERVICE, API_KEY_SOURCES[0], api_key)
        )

    try:
        config_dir = get_config_dir()
        config_dir.mkdir(parents=True, exist_ok=True)

        config = load_config()
        config[API_USER_SOURCES[2]] = api_user
        config[API_KEY_SOURCES[2]] = api_key
        get_config_file().write_text(json.dumps(config, indent=2))
        return True
    except OSError:
        return False


def get_namecheap_api_url() -> str:
    """Production endpoint, or the sandbox when NAMECHEAP_SANDBOX is set."""
    if os.environ.get("NAMECHEAP_SANDBOX"):
        return NAMECHEAP_SANDBOX_API_URL
    return NAMECHEAP_API_URL


def get_client_ip_override() -> str | None:
    """Fixed ClientIp from NAMECHEAP_CLIENT_IP, if set."""
    return os.environ.get("NAMECHEAP_CLIENT_IP", "").strip() or None
