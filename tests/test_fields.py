"""test_fields.py - Unit tests for record_fields() and DataField.

Covers:
    - record_fields() returns only caller-supplied extra fields
    - String getters accept str and reject other types
    - get_tags() accepts mappings and pair sequences, rejects malformed values
    - get_fingerprint() requires a list/tuple of str
    - get_http_request() accepts HTTPRequest and urllib.request.Request
    - get_user() accepts User only
    - get_error() prefers the ``error`` field, falls back to exc_info
    - is_omit() is true only for successfully extracted well-known fields
"""

import logging
import sys
import urllib.request

import pytest

from sentryhook.fields import WELL_KNOWN_FIELDS, DataField, record_fields
from sentryhook.packet import HTTPRequest, User


def _make_record(extra=None, exc_info=None) -> logging.LogRecord:
    """Create a LogRecord the way Logger.makeRecord() would."""
    logger = logging.getLogger("test.fields")
    return logger.makeRecord(
        "test.fields", logging.ERROR, __file__, 1, "msg", (), exc_info, extra=extra
    )


# ---------------------------------------------------------------------------
# record_fields()
# ---------------------------------------------------------------------------


class TestRecordFields:
    def test_record_fields_empty_without_extra(self):
        """A record logged without extra has no fields."""
        assert record_fields(_make_record()) == {}

    def test_record_fields_returns_extra_only(self):
        """Only keys passed via extra are returned, not LogRecord attributes."""
        record = _make_record({"order_id": 42, "tags": {"a": "b"}})
        assert record_fields(record) == {"order_id": 42, "tags": {"a": "b"}}

    def test_record_fields_ignores_formatted_message(self):
        """Attributes added by formatting (message, asctime) are not fields."""
        record = _make_record({"k": "v"})
        logging.Formatter("%(asctime)s %(message)s").format(record)
        assert record_fields(record) == {"k": "v"}


# ---------------------------------------------------------------------------
# Getters
# ---------------------------------------------------------------------------


class TestStringGetters:
    @pytest.mark.parametrize(
        "key, getter",
        [
            ("logger", "get_logger"),
            ("server_name", "get_server_name"),
            ("event_id", "get_event_id"),
        ],
    )
    def test_string_field_present(self, key, getter):
        """A str value is returned as present."""
        df = DataField({key: "value"})
        assert getattr(df, getter)() == ("value", True)

    @pytest.mark.parametrize("getter", ["get_logger", "get_server_name", "get_event_id"])
    def test_string_field_absent(self, getter):
        """A missing key is reported as absent, not an error."""
        assert getattr(DataField({}), getter)() == (None, False)

    def test_string_field_wrong_type(self):
        """A non-str value is treated as absent."""
        assert DataField({"logger": 12}).get_logger() == (None, False)


class TestGetTags:
    def test_tags_from_mapping(self):
        tags, ok = DataField({"tags": {"region": "eu"}}).get_tags()
        assert ok
        assert tags == {"region": "eu"}

    def test_tags_from_pairs(self):
        tags, ok = DataField({"tags": [("region", "eu"), ("tier", "gold")]}).get_tags()
        assert ok
        assert tags == {"region": "eu", "tier": "gold"}

    def test_tags_returns_copy(self):
        """The returned dict is not the caller's mapping."""
        original = {"region": "eu"}
        tags, _ = DataField({"tags": original}).get_tags()
        assert tags is not original

    @pytest.mark.parametrize(
        "value",
        ["region=eu", {"region": 1}, {1: "eu"}, [("region",)], 42],
    )
    def test_tags_malformed_is_absent(self, value):
        assert DataField({"tags": value}).get_tags() == (None, False)


class TestGetFingerprint:
    def test_fingerprint_list_of_str(self):
        assert DataField({"fingerprint": ["a", "b"]}).get_fingerprint() == (["a", "b"], True)

    def test_fingerprint_tuple_is_converted_to_list(self):
        assert DataField({"fingerprint": ("a",)}).get_fingerprint() == (["a"], True)

    @pytest.mark.parametrize("value", ["abc", ["a", 1], None])
    def test_fingerprint_malformed_is_absent(self, value):
        assert DataField({"fingerprint": value}).get_fingerprint() == (None, False)


class TestGetHTTPRequest:
    def test_http_request_instance(self):
        req = HTTPRequest(url="https://example.com/pay", method="POST")
        assert DataField({"http_request": req}).get_http_request() == (req, True)

    def test_http_request_from_urllib(self):
        """A urllib Request is converted into an HTTPRequest."""
        raw = urllib.request.Request(
            "https://example.com/pay?id=7",
            data=b"amount=5",
            headers={"Cookie": "session=1", "X-Trace": "abc"},
        )
        req, ok = DataField({"http_request": raw}).get_http_request()
        assert ok
        assert req.url == "https://example.com/pay"
        assert req.method == "POST"
        assert req.query_string == "id=7"
        assert req.cookies == "session=1"
        assert req.headers == {"X-trace": "abc"}
        assert req.data == "amount=5"

    def test_http_request_string_is_absent(self):
        assert DataField({"http_request": "GET /"}).get_http_request() == (None, False)


class TestGetUser:
    def test_user_instance(self):
        user = User(id="7", email="a@example.com")
        assert DataField({"user": user}).get_user() == (user, True)

    def test_user_mapping_is_absent(self):
        assert DataField({"user": {"id": "7"}}).get_user() == (None, False)


class TestGetError:
    def test_error_field(self):
        err = ValueError("boom")
        assert DataField({"error": err}).get_error() == (err, True)

    def test_error_falls_back_to_exc_info(self):
        """Without an ``error`` field, the record's exc_info supplies the error."""
        try:
            raise KeyError("missing")
        except KeyError:
            exc_info = sys.exc_info()
        df = DataField.from_record(_make_record(exc_info=exc_info))
        err, ok = df.get_error()
        assert ok
        assert err is exc_info[1]

    def test_error_field_wins_over_exc_info(self):
        try:
            raise KeyError("missing")
        except KeyError:
            exc_info = sys.exc_info()
        explicit = ValueError("explicit")
        df = DataField({"error": explicit}, exc_info)
        assert df.get_error() == (explicit, True)

    def test_error_string_is_absent(self):
        assert DataField({"error": "boom"}).get_error() == (None, False)


# ---------------------------------------------------------------------------
# is_omit()
# ---------------------------------------------------------------------------


class TestIsOmit:
    def test_unknown_key_is_never_omitted(self):
        assert not DataField({"order_id": 1}).is_omit("order_id")

    def test_well_known_keys_omitted_when_extracted(self):
        df = DataField(
            {
                "logger": "app",
                "server_name": "web-1",
                "event_id": "abc",
                "tags": {"a": "b"},
                "fingerprint": ["x"],
                "http_request": HTTPRequest(url="https://example.com"),
                "user": User(id="1"),
                "error": ValueError("boom"),
            }
        )
        assert all(df.is_omit(key) for key in WELL_KNOWN_FIELDS)

    def test_malformed_well_known_key_is_kept(self):
        """A well-known name with an unusable value stays in extra data."""
        df = DataField({"tags": "region=eu", "error": "boom"})
        assert not df.is_omit("tags")
        assert not df.is_omit("error")

    def test_exc_info_error_does_not_omit_error_key(self):
        """The exc_info fallback does not hide an unrelated ``error`` value."""
        try:
            raise KeyError("missing")
        except KeyError:
            exc_info = sys.exc_info()
        df = DataField({"error": "text"}, exc_info)
        assert not df.is_omit("error")
