"""fields.py - Well-known field extraction from a log record's extra data.

Callers attach structured data to a record through ``extra={...}``:

    logger.error(
        "payment failed",
        extra={"error": exc, "tags": {"region": "eu"}, "order_id": 42},
    )

``record_fields()`` recovers that mapping from the record. ``DataField``
answers, for each name Sentry understands, whether the field is present and
of a usable type. Everything else becomes the packet's extra data.
"""

import logging
import urllib.request
from collections.abc import Mapping
from typing import Any, Dict, List, Optional, Tuple

from .packet import HTTPRequest, User

FIELD_LOGGER = "logger"
FIELD_SERVER_NAME = "server_name"
FIELD_EVENT_ID = "event_id"
FIELD_TAGS = "tags"
FIELD_FINGERPRINT = "fingerprint"
FIELD_HTTP_REQUEST = "http_request"
FIELD_USER = "user"
FIELD_ERROR = "error"

WELL_KNOWN_FIELDS = frozenset(
    {
        FIELD_LOGGER,
        FIELD_SERVER_NAME,
        FIELD_EVENT_ID,
        FIELD_TAGS,
        FIELD_FINGERPRINT,
        FIELD_HTTP_REQUEST,
        FIELD_USER,
        FIELD_ERROR,
    }
)

# Attributes every LogRecord carries; anything else was passed via ``extra``.
_RESERVED_ATTRS = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None))
) | {"message", "asctime", "taskName"}


def record_fields(record: logging.LogRecord) -> Dict[str, Any]:
    """Return the caller-supplied fields of ``record`` as a new dict."""
    return {k: v for k, v in vars(record).items() if k not in _RESERVED_ATTRS}


class DataField:
    """Read-only view over a record's fields.

    Every getter returns ``(value, True)`` when the field exists and has a
    usable type, and ``(None, False)`` otherwise. A malformed well-known
    field is not an error; it is treated as absent and left in the extra
    data.

    Attributes:
        data (Dict[str, Any]): The underlying field mapping. Not copied.
    """

    def __init__(self, data: Dict[str, Any], exc_info=None) -> None:
        self.data = data
        self._exc_info = exc_info

    @classmethod
    def from_record(cls, record: logging.LogRecord) -> "DataField":
        return cls(record_fields(record), record.exc_info)

    def __len__(self) -> int:
        return len(self.data)

    def get_logger(self) -> Tuple[Optional[str], bool]:
        return self._get_str(FIELD_LOGGER)

    def get_server_name(self) -> Tuple[Optional[str], bool]:
        return self._get_str(FIELD_SERVER_NAME)

    def get_event_id(self) -> Tuple[Optional[str], bool]:
        return self._get_str(FIELD_EVENT_ID)

    def get_tags(self) -> Tuple[Optional[Dict[str, str]], bool]:
        """Accept a str-to-str mapping or a sequence of (key, value) pairs."""
        value = self.data.get(FIELD_TAGS)
        if isinstance(value, Mapping):
            pairs = list(value.items())
        elif isinstance(value, (list, tuple)):
            pairs = value
        else:
            return None, False
        tags = {}
        for pair in pairs:
            if not (isinstance(pair, (list, tuple)) and len(pair) == 2):
                return None, False
            key, val = pair
            if not (isinstance(key, str) and isinstance(val, str)):
                return None, False
            tags[key] = val
        return tags, True

    def get_fingerprint(self) -> Tuple[Optional[List[str]], bool]:
        value = self.data.get(FIELD_FINGERPRINT)
        if isinstance(value, (list, tuple)) and all(isinstance(v, str) for v in value):
            return list(value), True
        return None, False

    def get_http_request(self) -> Tuple[Optional[HTTPRequest], bool]:
        """Accept an HTTPRequest or a ``urllib.request.Request``."""
        value = self.data.get(FIELD_HTTP_REQUEST)
        if isinstance(value, HTTPRequest):
            return value, True
        if isinstance(value, urllib.request.Request):
            return HTTPRequest.from_urllib(value), True
        return None, False

    def get_user(self) -> Tuple[Optional[User], bool]:
        value = self.data.get(FIELD_USER)
        if isinstance(value, User):
            return value, True
        return None, False

    def get_error(self) -> Tuple[Optional[BaseException], bool]:
        """Return the ``error`` field, falling back to the record's exc_info."""
        value = self.data.get(FIELD_ERROR)
        if isinstance(value, BaseException):
            return value, True
        if self._exc_info and isinstance(self._exc_info[1], BaseException):
            return self._exc_info[1], True
        return None, False

    def is_omit(self, key: str) -> bool:
        """True if ``key`` is a well-known field that was successfully extracted."""
        if key not in WELL_KNOWN_FIELDS:
            return False
        if key == FIELD_ERROR:
            return isinstance(self.data.get(key), BaseException)
        _, ok = self._getters[key](self)
        return ok

    def _get_str(self, key: str) -> Tuple[Optional[str], bool]:
        value = self.data.get(key)
        if isinstance(value, str):
            return value, True
        return None, False

    _getters = {
        FIELD_LOGGER: get_logger,
        FIELD_SERVER_NAME: get_server_name,
        FIELD_EVENT_ID: get_event_id,
        FIELD_TAGS: get_tags,
        FIELD_FINGERPRINT: get_fingerprint,
        FIELD_HTTP_REQUEST: get_http_request,
        FIELD_USER: get_user,
    }
