"""Exceptions raised by the listing store.

Callers at the edges (HTTP API, CLI, actions) catch ``ListingError`` and
present the message; nothing here is fatal to the process.
"""


class ListingError(Exception):
    """Base class for every error the store raises on purpose."""


class ValidationError(ListingError):
    """A required field is missing or malformed (e.g. a non-numeric price)."""


class NotFoundError(ListingError):
    """An id or email does not match any stored record."""


class DuplicateError(ListingError):
    """Signup with an email that is already registered."""


class StorageUnavailableError(ListingError):
    """No persistence capability is available for a write or session call."""
