"""packet.py - The event packet sent to Sentry and its interfaces.

A Packet is built once per log record by ``builder.build_packet`` and is not
modified after it is handed to the notifier client. Interfaces are attached
in order; ``Packet.to_dict()`` serialises each under its interface name, in
that same order.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from urllib.parse import urlsplit, urlunsplit

from .stacktrace import Stacktrace

DEBUG = "debug"
INFO = "info"
WARNING = "warning"
ERROR = "error"
FATAL = "fatal"

# logging.FATAL is an alias of logging.CRITICAL; both map to FATAL.
SEVERITY_MAP: Dict[int, str] = {
    logging.DEBUG: DEBUG,
    logging.INFO: INFO,
    logging.WARNING: WARNING,
    logging.ERROR: ERROR,
    logging.CRITICAL: FATAL,
}


def severity_for(levelno: int) -> str:
    """Return the Sentry severity for a logging level, or ``""`` if unmapped."""
    return SEVERITY_MAP.get(levelno, "")


@dataclass
class HTTPRequest:
    """The ``request`` interface: the HTTP request being served."""

    url: str
    method: str = "GET"
    query_string: str = ""
    cookies: str = ""
    headers: Dict[str, str] = field(default_factory=dict)
    data: Any = None
    env: Dict[str, str] = field(default_factory=dict)

    interface_name = "request"

    @classmethod
    def from_urllib(cls, request) -> "HTTPRequest":
        """Describe a ``urllib.request.Request``."""
        parts = urlsplit(request.full_url)
        headers = dict(request.header_items())
        data = request.data
        if isinstance(data, bytes):
            data = data.decode("utf-8", errors="replace")
        return cls(
            url=urlunsplit((parts.scheme, parts.netloc, parts.path, "", "")),
            method=request.get_method(),
            query_string=parts.query,
            cookies=headers.pop("Cookie", ""),
            headers=headers,
            data=data,
        )

    def to_dict(self) -> dict:
        data = {"url": self.url, "method": self.method}
        if self.query_string:
            data["query_string"] = self.query_string
        if self.cookies:
            data["cookies"] = self.cookies
        if self.headers:
            data["headers"] = dict(self.headers)
        if self.data is not None:
            data["data"] = self.data
        if self.env:
            data["env"] = dict(self.env)
        return data


@dataclass
class User:
    """The ``user`` interface: who was affected by the event."""

    id: str = ""
    username: str = ""
    email: str = ""
    ip_address: str = ""

    interface_name = "user"

    def to_dict(self) -> dict:
        return {k: v for k, v in vars(self).items() if v}


class ExceptionInterface:
    """The ``exception`` interface: an exception paired with its stack trace.

    Attributes:
        type (str): Class name of the exception. May be blanked by the hook
            when exception types are not to be sent.
        value (str): The exception message.
        module (str): Module that defines the exception class.
        stacktrace (Optional[Stacktrace]): Where the exception happened.
    """

    interface_name = "exception"

    def __init__(
        self,
        type: str,
        value: str,
        module: str = "",
        stacktrace: Optional[Stacktrace] = None,
    ) -> None:
        self.type = type
        self.value = value
        self.module = module
        self.stacktrace = stacktrace

    @classmethod
    def from_error(
        cls, err: BaseException, stacktrace: Optional[Stacktrace] = None
    ) -> "ExceptionInterface":
        kind = type(err)
        return cls(kind.__name__, str(err), kind.__module__, stacktrace)

    def to_dict(self) -> dict:
        value = {"type": self.type, "value": self.value}
        if self.module:
            value["module"] = self.module
        if self.stacktrace is not None:
            value["stacktrace"] = self.stacktrace.to_dict()
        return {"values": [value]}


@dataclass
class Packet:
    """A single event as sent to a Sentry server."""

    message: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    level: str = ""
    platform: str = "python"
    server_name: str = ""
    logger: str = ""
    event_id: str = ""
    release: str = ""
    environment: str = ""
    culprit: str = ""
    tags: Dict[str, str] = field(default_factory=dict)
    fingerprint: List[str] = field(default_factory=list)
    interfaces: List[Any] = field(default_factory=list)
    extra: Dict[str, Any] = field(default_factory=dict)

    def interface(self, name: str) -> Optional[Any]:
        """Return the first attached interface called ``name``, if any."""
        for item in self.interfaces:
            if item.interface_name == name:
                return item
        return None

    def to_dict(self) -> dict:
        """Return the JSON-serialisable wire form of the packet."""
        data = {
            "message": self.message,
            "timestamp": self.timestamp.astimezone(timezone.utc).strftime(
                "%Y-%m-%dT%H:%M:%S.%f"
            ),
            "platform": self.platform,
        }
        optional = (
            ("level", self.level),
            ("server_name", self.server_name),
            ("logger", self.logger),
            ("event_id", self.event_id),
            ("release", self.release),
            ("environment", self.environment),
            ("culprit", self.culprit),
            ("tags", self.tags),
            ("fingerprint", self.fingerprint),
        )
        for key, value in optional:
            if value:
                data[key] = value
        for item in self.interfaces:
            data[item.interface_name] = item.to_dict()
        if self.extra:
            data["extra"] = self.extra
        return data
