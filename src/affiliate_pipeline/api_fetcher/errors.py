from __future__ import annotations


class DaisyconError(RuntimeError):
    """Base error for everything raised by the Daisycon client."""


class DaisyconConfigError(DaisyconError):
    """Raised when required environment configuration is missing or invalid."""


class DaisyconAuthError(DaisyconError):
    """Raised when the authentication endpoint rejects us or cannot be reached."""


class DaisyconApiError(DaisyconError):
    """Raised when a data request fails (HTTP errors, timeouts, invalid JSON)."""


class DaisyconPaginationError(DaisyconApiError):
    """Raised when the server reports more records but returns an empty page."""
