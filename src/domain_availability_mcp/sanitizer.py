"""
Input sanitizing for candidate domain names.

Raw strings are lower-cased and trimmed; anything that does not look like
a registrable domain (alphanumeric/hyphen labels, alphabetic suffix of at
least two letters) is dropped silently.
"""

import re
from collections.abc import Iterable

from .errors import ValidationError

# Hard ceiling per batch, matching what the registrar accepts in one call
MAX_BATCH_SIZE = 20

DOMAIN_PATTERN = re.compile(r"^[a-z0-9][a-z0-9\-]*(?:\.[a-z0-9][a-z0-9\-]*)*\.[a-z]{2,}$")


def normalize(raw) -> str:
    """Lower-case and trim a raw entry."""
    return str(raw).strip().lower()


def is_valid_domain(domain: str) -> bool:
    """Check a normalized string against the domain grammar."""
    return bool(DOMAIN_PATTERN.match(domain))


def split_domain(domain: str) -> tuple[str, str]:
    """
    Split a domain into (name, suffix), where suffix is the last label.

    "foo.io" -> ("foo", "io"), "a.b.co" -> ("a.b", "co")
    """
    name, _, suffix = domain.rpartition(".")
    return name, suffix


def sanitize(raw: Iterable) -> list[str]:
    """
    Normalize a raw batch into at most MAX_BATCH_SIZE valid domain names.

    Invalid entries are dropped, input order is kept, and the first
    MAX_BATCH_SIZE valid entries win.

    Raises:
        ValidationError: if the input is not a list of entries, or nothing
            valid is left after filtering.
    """
    if raw is None or isinstance(raw, (str, bytes)):
        raise ValidationError("Missing or invalid domains array")

    batch = []
    for entry in raw:
        if entry is None:
            continue
        domain = normalize(entry)
        if is_valid_domain(domain):
            batch.append(domain)
            if len(batch) == MAX_BATCH_SIZE:
                break

    if not batch:
        raise ValidationError("No valid domains provided")

    return batch
