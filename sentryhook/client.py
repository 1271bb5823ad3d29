"""client.py - Notifier clients that deliver packets to a Sentry server.

SentryHook never talks to the network itself. It hands each packet to a
``Notifier`` and receives a ``concurrent.futures.Future`` that resolves once
with the delivery outcome: ``None`` on success, or an exception.

This module defines the Notifier protocol and provides one implementation:

    Client  Posts packets to the envelope endpoint named by a DSN, on a small
            background thread pool, using ``urllib.request``. DSN parsing,
            the endpoint URL, the auth header and the envelope framing come
            from ``sentry_sdk``.

Any object with a compatible ``capture()`` can be passed to SentryHook, which
is how the test suite substitutes a fake server.

Typical usage::

    from sentryhook import SentryHook
    from sentryhook.client import Client

    client = Client("https://public@sentry.example.com/42", tags={"service": "billing"})
    hook = SentryHook(client)
"""

import json
import os
import uuid
from abc import ABC, abstractmethod
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Dict, Optional
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen

from sentry_sdk.consts import EndpointType
from sentry_sdk.envelope import Envelope, Item
from sentry_sdk.utils import BadDsn, Dsn

from .errors import DeliveryError, InvalidDSN
from .packet import Packet

CLIENT_NAME = "sentryhook/0.1.0"


def parse_dsn(text: str) -> Dsn:
    """Parse a Sentry connection string.

    Raises:
        InvalidDSN: If ``text`` is empty or malformed.
    """
    if not text:
        raise InvalidDSN("empty DSN")
    try:
        return Dsn(text)
    except (BadDsn, ValueError) as exc:
        # ValueError covers a non-numeric port, which urlsplit rejects.
        raise InvalidDSN(f"invalid DSN {text!r}: {exc}") from exc


def _dumps(data: dict) -> bytes:
    return json.dumps(data, default=repr, ensure_ascii=False).encode("utf-8")



class Notifier(ABC):
    """Abstract base class for packet delivery.

    Example:
        >>> class MemoryNotifier(Notifier):
        ...     def __init__(self):
        ...         self.packets = []
        ...     def capture(self, packet):
        ...         self.packets.append(packet)
        ...         future = Future()
        ...         future.set_result(None)
        ...         return future
    """

    @abstractmethod
    def capture(self, packet: Packet) -> Future:
        """Start delivering ``packet`` and return a handle to the outcome.

        Must return promptly. The returned future resolves exactly once, with
        ``None`` when the server accepted the packet or with an exception
        describing the failure.

        Args:
            packet: The fully built event. Must not be modified afterwards.
        """

    def close(self) -> None:
        """Release resources held by the notifier. Defaults to a no-op."""


class Client(Notifier):
    """Deliver packets to a Sentry envelope endpoint over HTTP.

    Each ``capture()`` call submits one task to a thread pool and returns its
    future. The task encodes the packet and POSTs it, so an encoding failure
    resolves the future with ``DeliveryError`` like any other failed delivery.
    There is no retry and no queue beyond the pool's own.

    Attributes:
        dsn (sentry_sdk.utils.Dsn): Where packets are sent.
        url (str): The envelope endpoint derived from ``dsn``.
        tags (Dict[str, str]): Added to every packet; packet tags win.
        release (str): Default release for packets that carry none.
        environment (str): Default environment for packets that carry none.
    """

    def __init__(
        self,
        dsn: Optional[str] = None,
        tags: Optional[Dict[str, str]] = None,
        release: Optional[str] = None,
        environment: Optional[str] = None,
        timeout: float = 5.0,
        max_workers: int = 2,
    ) -> None:
        """Initialise the client.

        Args:
            dsn: Connection string. Falls back to ``$SENTRY_DSN`` when empty.
            tags: Default tags for every packet.
            release: Default release. Falls back to ``$SENTRY_RELEASE``.
            environment: Default environment. Falls back to
                ``$SENTRY_ENVIRONMENT``.
            timeout: HTTP request timeout in seconds.
            max_workers: Size of the delivery thread pool.

        Raises:
            InvalidDSN: If no DSN is available or it cannot be parsed.
        """
        self.dsn = parse_dsn(dsn or os.environ.get("SENTRY_DSN", ""))
        self._auth = self.dsn.to_auth(CLIENT_NAME)
        self.url = self._auth.get_api_url(EndpointType.ENVELOPE)
        self.tags = dict(tags or {})
        self.release = release or os.environ.get("SENTRY_RELEASE", "")
        self.environment = environment or os.environ.get("SENTRY_ENVIRONMENT", "")
        self._timeout = timeout
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="sentryhook"
        )

    @property
    def auth_header(self) -> str:
        """The ``X-Sentry-Auth`` value sent with every request."""
        return self._auth.to_header()

    def capture(self, packet: Packet) -> Future:
        return self._executor.submit(self._deliver, packet)

    def encode(self, packet: Packet) -> bytes:
        """Apply client defaults and serialise ``packet`` to a JSON event.

        Raises:
            TypeError, ValueError: If the packet holds non-string dict keys
                or a reference cycle.
        """
        return _dumps(self._event(packet))

    def close(self) -> None:
        self._executor.shutdown(wait=True)

    def _event(self, packet: Packet) -> dict:
        data = packet.to_dict()
        data.setdefault("event_id", uuid.uuid4().hex)
        if self.release:
            data.setdefault("release", self.release)
        if self.environment:
            data.setdefault("environment", self.environment)
        if self.tags:
            data["tags"] = {**self.tags, **data.get("tags", {})}
        return data

    def _deliver(self, packet: Packet) -> None:
        data = self._event(packet)
        try:
            event = _dumps(data)
        except (TypeError, ValueError) as exc:
            raise DeliveryError(f"could not encode event: {exc}") from exc
        envelope = Envelope(headers={"event_id": data["event_id"]})
        envelope.add_item(Item(payload=event, type="event"))
        self._send(envelope.serialize())

    def _send(self, body: bytes) -> None:
        req = Request(
            self.url,
            data=body,
            headers={
                "Content-Type": "application/x-sentry-envelope",
                "User-Agent": CLIENT_NAME,
                "X-Sentry-Auth": self.auth_header,
            },
            method="POST",
        )
        try:
            with urlopen(req, timeout=self._timeout) as resp:
                resp.read()
        except HTTPError as exc:
            reason = exc.headers.get("X-Sentry-Error") if exc.headers else None
            raise DeliveryError(
                f"sentry server returned HTTP {exc.code}: {reason or exc.reason}",
                status=exc.code,
            ) from exc
        except (URLError, OSError) as exc:
            raise DeliveryError(f"could not reach sentry server: {exc}") from exc
