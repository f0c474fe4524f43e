"""Content resolver exceptions for error handling.

"No results" is never an exception: resolver calls return an empty list
or None for that. These exceptions signal that the lookup itself failed.
"""


class ResolverError(Exception):
    """Base exception for content resolver operations."""

    pass


class QuotaExceededError(ResolverError):
    """Raised when the provider rejects a request for quota or rate limiting."""

    pass


class AuthenticationError(ResolverError):
    """Raised when credentials are rejected or a token cannot be obtained."""

    pass


class CredentialsExhaustedError(ResolverError):
    """Raised when no usable credential is left in the pool."""

    pass


class InvalidReferenceError(ResolverError):
    """Raised when a URL or playlist reference cannot be parsed."""

    pass


class ResolverUnavailableError(ResolverError):
    """Raised on network errors, timeouts, and provider-side failures."""

    pass
