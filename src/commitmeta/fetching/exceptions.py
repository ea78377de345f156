"""
Exceptions for the fetching package.

These exceptions describe why a single fetch attempt failed. The HTTP
client returns them inside a FetchResult instead of raising, so the
scheduler can decide between retrying, pausing the provider and dropping
the request.
"""


class FetchError(Exception):
    """
    Base class for failures of a single fetch attempt.

    Attributes:
        message: Explanation of the error
        provider: Display name of the provider involved (may be empty)
    """

    def __init__(self, message: str, provider: str = ''):
        super().__init__(message)
        self.message = message
        self.provider = provider

    def __str__(self):
        if self.provider:
            return f"[{self.provider}] {self.message}"
        return self.message


class TransportError(FetchError):
    """
    Raised when the request could not be completed on the network level.

    Covers connection failures, timeouts and errors while reading the
    response body after the status line was already received.
    """


class ParseError(FetchError):
    """Raised when a response body is not valid JSON or has an unexpected shape."""


class MisconfiguredError(FetchError):
    """
    Raised when a remote URL doesn't match the configured provider.

    This is a structural problem with the configuration, so requests
    failing this way are never queued or retried.
    """
