"""
tzshare/errors.py

Exceptions raised by tzshare.
"""


class TzShareError(Exception):
    """Base exception for tzshare errors."""
    pass


class DecodeError(TzShareError, ValueError):
    """Share token is malformed, truncated or structurally invalid."""
    pass


class InvalidTimezoneError(TzShareError, ValueError):
    """Unknown or malformed IANA time zone id."""

    def __init__(self, zone_id: str, message: str = None):
        self.zone_id = zone_id
        self.message = message or f"Unknown time zone: {zone_id!r}"
        super().__init__(self.message)


class ValidationError(TzShareError):
    """Event input breaks a business rule (e.g. recurring without frequency)."""
    pass


class ConfigError(TzShareError):
    """Configuration invalid or unreadable."""
    pass
