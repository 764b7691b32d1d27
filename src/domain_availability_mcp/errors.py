"""
Error kinds raised while resolving domain availability.

Only ValidationError is meant to reach callers. The others are raised and
absorbed inside the resolver, ending up as Unknown results or as a fallback
to the secondary source.
"""


class ValidationError(ValueError):
    """No valid domain names were supplied."""


class PrimaryFailure(Exception):
    """The registrar batch query failed or returned nothing usable."""


class BootstrapFailure(Exception):
    """The RDAP bootstrap directory could not be fetched or decoded."""


class LookupUncertain(Exception):
    """An RDAP lookup did not produce conclusive evidence."""

    def __init__(self, error_type: str, message: str | None = None) -> None:
        super().__init__(message or error_type)
        self.error_type = error_type
        self.message = message
