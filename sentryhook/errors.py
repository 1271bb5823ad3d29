"""errors.py - Exception types raised by SentryHook and its notifier client."""

from typing import Optional


class SentryHookError(Exception):
    """Base class for every error raised by this package."""


class InvalidDSN(SentryHookError, ValueError):
    """The connection string (DSN) is missing or malformed.

    Raised at construction time only. A hook is never returned half-built.
    """


class DeliveryError(SentryHookError):
    """The transport or the remote service rejected an event.

    Attributes:
        status: HTTP status code returned by the server, or None when the
            failure happened before a response was received.
    """

    def __init__(self, message: str, status: Optional[int] = None) -> None:
        super().__init__(message)
        self.status = status


class DeliveryTimeout(DeliveryError):
    """No delivery outcome arrived within the hook's configured timeout."""

    def __init__(self, timeout: float) -> None:
        super().__init__(f"no response from sentry server in {timeout}s")
        self.timeout = timeout
