"""handler.py - Core integration layer for sentryhook.

This module provides SentryHook, a logging.Handler subclass that turns log
records into Sentry events and hands them to a notifier client for delivery.

Design contract:
    - Developers add ONE line to their existing logging setup: addHandler().
    - Records at the hook's levels (default: ERROR and CRITICAL) are converted
      to packets by ``build_packet()`` and passed to the client.
    - In synchronous mode ``fire()`` waits up to ``timeout`` seconds for the
      delivery outcome. In asynchronous mode it returns at once and
      ``flush()`` waits for all outstanding deliveries.
    - A failed delivery never raises into application code: ``emit()`` routes
      it through ``handleError()``.

Typical usage:
    import logging
    from sentryhook import SentryHook

    hook = SentryHook.from_dsn("https://public@sentry.example.com/42")
    logging.getLogger().addHandler(hook)
    logger = logging.getLogger(__name__)

    logger.info("Starting job")                       # ignored by the hook
    logger.error("Job failed", extra={"job_id": 7})   # sent to Sentry
"""

import logging
import sys
from concurrent.futures import Future
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import Any, Callable, Dict, FrozenSet, Iterable, Optional

from .builder import build_packet
from .client import Client, Notifier
from .config import DEFAULT_LEVELS, DEFAULT_TIMEOUT, HookConfig, StacktraceConfiguration
from .errors import DeliveryTimeout, InvalidDSN
from .fields import DataField
from .sync import RWLock, WaitGroup


class SentryHook(logging.Handler):
    """A logging.Handler that delivers records to a Sentry server.

    Well-known fields are read from the record's ``extra`` data: ``error``,
    ``logger``, ``server_name``, ``event_id``, ``tags``, ``fingerprint``,
    ``http_request`` and ``user``. All other extra fields are sent as the
    event's extra data.

    Thread-safety:
        ``logging.Handler.handle()`` normally serialises every emit() behind
        the handler's I/O lock. SentryHook overrides handle() so concurrent
        records are built and dispatched in parallel. Instead, a
        readers/writer lock guards the configuration: ``fire()`` holds the
        shared side, while ``flush()`` and the setters hold the exclusive
        side. Asynchronous deliveries are therefore never registered while a
        flush is waiting for them to drain.

    Attributes:
        _client (Notifier): Delivers packets and reports outcomes.
        _config (HookConfig): Settings read by every fire() call.
        _levels (FrozenSet[int]): Record levels the hook fires for.
        _asynchronous (bool): Fixed at construction.
        _diagnostic_stream: Where asynchronous delivery failures are written.

    Example:
        >>> import logging
        >>> from sentryhook import SentryHook
        >>> hook = SentryHook.from_dsn("https://key@sentry.example.com/1", asynchronous=True)
        >>> logging.getLogger().addHandler(hook)
        >>> logging.getLogger("myapp").error("oh no")   # delivered in the background
        >>> hook.flush()                                  # wait for delivery
    """

    def __init__(
        self,
        client: Notifier,
        levels: Optional[Iterable[int]] = None,
        asynchronous: bool = False,
        timeout: float = DEFAULT_TIMEOUT,
        stacktrace: Optional[StacktraceConfiguration] = None,
        diagnostic_stream=None,
    ) -> None:
        """Initialise the hook around an already configured client.

        Args:
            client: Notifier that delivers packets.
            levels: Record levels to send. Defaults to ERROR and CRITICAL.
            asynchronous: Return from fire() without waiting for delivery.
            timeout: Seconds fire() waits for a delivery outcome in
                synchronous mode. 0 means do not wait at all. Ignored in
                asynchronous mode.
            stacktrace: Stack trace settings. Stack traces are disabled by
                default.
            diagnostic_stream: Writable stream for asynchronous delivery
                failures. Defaults to sys.stderr.
        """
        super().__init__()
        self._client = client
        self._owns_client = False
        self._levels: FrozenSet[int] = frozenset(
            DEFAULT_LEVELS if levels is None else levels
        )
        self._asynchronous = asynchronous
        self._config = HookConfig(
            timeout=timeout,
            stacktrace=stacktrace or StacktraceConfiguration(),
        )
        self._diagnostic_stream = diagnostic_stream or sys.stderr
        self._mu = RWLock()
        self._wg = WaitGroup()

    @classmethod
    def from_dsn(
        cls,
        dsn: str,
        levels: Optional[Iterable[int]] = None,
        tags: Optional[Dict[str, str]] = None,
        asynchronous: bool = False,
        **kwargs: Any,
    ) -> "SentryHook":
        """Create a hook with its own HTTP Client for ``dsn``.

        Args:
            dsn: Connection string of the Sentry project.
            levels: Record levels to send.
            tags: Tags added to every event by the client.
            asynchronous: Build an asynchronous hook.
            **kwargs: Passed on to SentryHook().

        Raises:
            InvalidDSN: If ``dsn`` cannot be parsed.
        """
        client = Client(dsn, tags=tags)
        hook = cls(client, levels=levels, asynchronous=asynchronous, **kwargs)
        hook._owns_client = True
        return hook

    # ---------------------------------------------------------------------- #
    # Properties
    # ---------------------------------------------------------------------- #

    @property
    def client(self) -> Notifier:
        return self._client

    @property
    def levels(self) -> FrozenSet[int]:
        return self._levels

    @property
    def asynchronous(self) -> bool:
        return self._asynchronous

    @property
    def timeout(self) -> float:
        with self._mu.read():
            return self._config.timeout

    @timeout.setter
    def timeout(self, value: float) -> None:
        with self._mu.write():
            self._config.timeout = value

    @property
    def stacktrace(self) -> StacktraceConfiguration:
        with self._mu.read():
            return self._config.stacktrace

    @stacktrace.setter
    def stacktrace(self, value: StacktraceConfiguration) -> None:
        with self._mu.write():
            self._config.stacktrace = value

    # ---------------------------------------------------------------------- #
    # Configuration setters
    # ---------------------------------------------------------------------- #

    def set_server_name(self, server_name: str) -> None:
        """Set the default server name; a record's ``server_name`` field wins."""
        with self._mu.write():
            self._config.server_name = server_name

    def set_release(self, release: str) -> None:
        with self._mu.write():
            self._config.release = release

    def set_environment(self, environment: str) -> None:
        with self._mu.write():
            self._config.environment = environment

    def add_ignore(self, name: str) -> None:
        """Never send the extra field ``name``."""
        with self._mu.write():
            self._config.ignore_fields.add(name)

    def add_extra_filter(self, name: str, fn: Callable[[Any], Any]) -> None:
        """Format the extra field ``name`` with ``fn`` instead of the default."""
        with self._mu.write():
            self._config.extra_filters[name] = fn

    # ---------------------------------------------------------------------- #
    # logging.Handler interface
    # ---------------------------------------------------------------------- #

    def handle(self, record: logging.LogRecord):
        """Filter and emit ``record`` without taking the handler's I/O lock."""
        rv = self.filter(record)
        if isinstance(rv, logging.LogRecord):
            record = rv
        if rv:
            self.emit(record)
        return rv

    def emit(self, record: logging.LogRecord) -> None:
        """Send ``record`` to Sentry if its level is one of the hook's levels."""
        if record.levelno not in self._levels:
            return
        try:
            self.fire(record)
        except Exception:
            self.handleError(record)

    def flush(self) -> None:
        """Wait for every outstanding asynchronous delivery to finish.

        Does nothing for synchronous hooks. While the flush waits, new
        fire() calls block until it returns.
        """
        if not self._asynchronous:
            return
        with self._mu.write():
            self._wg.wait()

    def close(self) -> None:
        """Flush, release a client created by from_dsn(), and close the handler."""
        try:
            self.flush()
            if self._owns_client:
                self._client.close()
        finally:
            super().close()

    # ---------------------------------------------------------------------- #
    # Delivery
    # ---------------------------------------------------------------------- #

    def fire(self, record: logging.LogRecord) -> None:
        """Build the packet for ``record`` and deliver it.

        Raises:
            DeliveryTimeout: Synchronous mode only, when no outcome arrives
                within ``timeout`` seconds.
            DeliveryError: Synchronous mode only, when the client reports a
                failed delivery.
        """
        with self._mu.read():
            packet = build_packet(record, self._config, DataField.from_record(record))
            future = self._client.capture(packet)

            if self._asynchronous:
                self._wg.add(1)
                future.add_done_callback(self._delivered)
                return

            timeout = self._config.timeout
            if timeout == 0:
                return
            try:
                future.result(timeout=timeout)
            except FutureTimeoutError:
                if future.done():
                    raise
                raise DeliveryTimeout(timeout) from None

    def _delivered(self, future: Future) -> None:
        """Done-callback for asynchronous deliveries."""
        try:
            if future.cancelled():
                print("sentryhook: delivery cancelled", file=self._diagnostic_stream)
            elif future.exception() is not None:
                print(
                    f"sentryhook: delivery failed: {future.exception()}",
                    file=self._diagnostic_stream,
                )
        finally:
            self._wg.done()

    def __repr__(self) -> str:
        mode = "async" if self._asynchronous else "sync"
        return f"<{type(self).__name__} ({mode})>"


# ---------------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------------


def new_hook(dsn: str, levels: Optional[Iterable[int]] = None) -> SentryHook:
    return SentryHook.from_dsn(dsn, levels=levels)


def new_with_tags_hook(
    dsn: str, tags: Dict[str, str], levels: Optional[Iterable[int]] = None
) -> SentryHook:
    return SentryHook.from_dsn(dsn, levels=levels, tags=tags)


def new_with_client_hook(
    client: Notifier, levels: Optional[Iterable[int]] = None
) -> SentryHook:
    return SentryHook(client, levels=levels)


def new_async_hook(dsn: str, levels: Optional[Iterable[int]] = None) -> SentryHook:
    return SentryHook.from_dsn(dsn, levels=levels, asynchronous=True)


def new_async_with_tags_hook(
    dsn: str, tags: Dict[str, str], levels: Optional[Iterable[int]] = None
) -> SentryHook:
    return SentryHook.from_dsn(dsn, levels=levels, tags=tags, asynchronous=True)


def new_async_with_client_hook(
    client: Notifier, levels: Optional[Iterable[int]] = None
) -> SentryHook:
    return SentryHook(client, levels=levels, asynchronous=True)


def verify(dsn: str) -> bool:
    """Report whether a hook can be built for ``dsn``.

    Only the connection string is checked; no event is sent.
    """
    try:
        hook = SentryHook.from_dsn(dsn)
    except InvalidDSN:
        return False
    hook.close()
    return True
