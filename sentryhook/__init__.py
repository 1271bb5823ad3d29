"""sentryhook/__init__.py - Public API for the sentryhook package.

sentryhook forwards records from Python's standard logging package to a
Sentry server. Structured data passed through ``extra={...}`` becomes event
tags, user and request context, a fingerprint, or extra data. An exception
attached to the record becomes the event's exception and stack trace.

Quick start:
    import logging
    from sentryhook import SentryHook, StacktraceConfiguration

    # 1. Attach to the root logger (or any specific logger)
    hook = SentryHook.from_dsn(
        "https://public@sentry.example.com/42",
        stacktrace=StacktraceConfiguration(enabled=True, in_app_prefixes=("myapp",)),
    )
    logging.getLogger().addHandler(hook)

    # 2. Log as usual; ERROR and CRITICAL records are sent to Sentry
    logger = logging.getLogger("myapp.jobs")
    try:
        run_job()
    except Exception as exc:
        logger.error("job failed", extra={"error": exc, "tags": {"queue": "default"}})

    # 3. For asynchronous hooks, wait for pending deliveries before exiting
    async_hook = SentryHook.from_dsn("https://public@sentry.example.com/42", asynchronous=True)
    ...
    async_hook.flush()

Exported names:
    SentryHook:               The logging.Handler that builds and delivers events.
    StacktraceConfiguration:  Stack trace settings for a hook.
    Client, Notifier:         The HTTP delivery client and its abstract base.
    HTTPRequest, User:        Values for the ``http_request`` and ``user`` fields.
    Stacktrace:               Returned by ``get_stacktrace()`` on custom errors.
    verify:                   Check whether a DSN can be used to build a hook.
"""

from .client import Client, Notifier
from .config import StacktraceConfiguration
from .errors import DeliveryError, DeliveryTimeout, InvalidDSN, SentryHookError
from .handler import (
    SentryHook,
    new_async_hook,
    new_async_with_client_hook,
    new_async_with_tags_hook,
    new_hook,
    new_with_client_hook,
    new_with_tags_hook,
    verify,
)
from .packet import HTTPRequest, Packet, User
from .stacktrace import Stacktrace, StacktraceFrame

__all__ = [
    "SentryHook",
    "StacktraceConfiguration",
    "Client",
    "Notifier",
    "Packet",
    "HTTPRequest",
    "User",
    "Stacktrace",
    "StacktraceFrame",
    "SentryHookError",
    "InvalidDSN",
    "DeliveryError",
    "DeliveryTimeout",
    "new_hook",
    "new_with_tags_hook",
    "new_with_client_hook",
    "new_async_hook",
    "new_async_with_tags_hook",
    "new_async_with_client_hook",
    "verify",
]
__version__ = "0.1.0"
