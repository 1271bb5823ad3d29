"""test_builder.py - Unit tests for build_packet() and extra data formatting.

Covers:
    - Seeding: message, timestamp, severity mapping, platform, hook defaults
    - Well-known fields applied only when present and well-typed
    - Record server_name overrides the hook default
    - Interface order: request, user, then exception/stacktrace
    - Stack trace block: enabled with error, without error, disabled, below level
    - send_exception_type and switch_exception_type_and_message
    - Extra data: ignore list, custom filters, default formatting
    - Packet.to_dict() wire form
"""

import json
import logging
from dataclasses import replace
from datetime import datetime, timezone

import pytest

from sentryhook.builder import build_packet, format_data, format_extra_data
from sentryhook.config import HookConfig, StacktraceConfiguration
from sentryhook.fields import DataField
from sentryhook.packet import ExceptionInterface, HTTPRequest, User, severity_for
from sentryhook.stacktrace import Stacktrace


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


class MyError(Exception):
    pass


def _explode():
    raise MyError("boom")


def _caught() -> MyError:
    try:
        _explode()
    except MyError as exc:
        return exc


def _make_record(msg="something happened", level=logging.ERROR, extra=None, exc_info=None):
    logger = logging.getLogger("test.builder")
    return logger.makeRecord(
        "test.builder", level, __file__, 1, msg, (), exc_info, extra=extra
    )


def _build(record, config=None):
    return build_packet(record, config or HookConfig(), DataField.from_record(record))


def _enabled(**kwargs) -> HookConfig:
    return HookConfig(stacktrace=StacktraceConfiguration(enabled=True, **kwargs))


class Opaque:
    """An object with no custom __str__."""


class Money:
    def __init__(self, cents):
        self.cents = cents

    def __str__(self):
        return f"${self.cents / 100:.2f}"


# ---------------------------------------------------------------------------
# Seeding
# ---------------------------------------------------------------------------


class TestSeed:
    def test_message_and_timestamp(self):
        record = _make_record("charge %s failed")
        record.args = ("c-1",)
        packet = _build(record)
        assert packet.message == "charge c-1 failed"
        assert packet.timestamp == datetime.fromtimestamp(record.created, timezone.utc)
        assert packet.platform == "python"

    @pytest.mark.parametrize(
        "level, severity",
        [
            (logging.DEBUG, "debug"),
            (logging.INFO, "info"),
            (logging.WARNING, "warning"),
            (logging.ERROR, "error"),
            (logging.CRITICAL, "fatal"),
            (logging.FATAL, "fatal"),
            (25, ""),
        ],
    )
    def test_severity_mapping(self, level, severity):
        assert severity_for(level) == severity
        assert _build(_make_record(level=level)).level == severity

    def test_hook_defaults(self):
        config = HookConfig(server_name="web-1", release="1.2.3", environment="prod")
        packet = _build(_make_record(), config)
        assert packet.server_name == "web-1"
        assert packet.release == "1.2.3"
        assert packet.environment == "prod"

    def test_record_server_name_overrides_hook_default(self):
        config = HookConfig(server_name="web-1")
        packet = _build(_make_record(extra={"server_name": "worker-3"}), config)
        assert packet.server_name == "worker-3"


# ---------------------------------------------------------------------------
# Well-known fields
# ---------------------------------------------------------------------------


class TestWellKnownFields:
    def test_no_well_known_fields(self):
        """Plain fields leave tags, fingerprint and interfaces empty."""
        packet = _build(_make_record(extra={"order_id": 42, "region": "eu"}))
        assert packet.tags == {}
        assert packet.fingerprint == []
        assert packet.interfaces == []
        assert packet.extra == {"order_id": 42, "region": "eu"}

    def test_well_known_fields_applied(self):
        request = HTTPRequest(url="https://example.com/pay", method="POST")
        user = User(id="7")
        packet = _build(
            _make_record(
                extra={
                    "logger": "billing",
                    "event_id": "abc123",
                    "tags": {"region": "eu"},
                    "fingerprint": ["billing", "charge"],
                    "http_request": request,
                    "user": user,
                }
            )
        )
        assert packet.logger == "billing"
        assert packet.event_id == "abc123"
        assert packet.tags == {"region": "eu"}
        assert packet.fingerprint == ["billing", "charge"]
        assert packet.interfaces == [request, user]
        assert packet.extra == {}

    def test_malformed_tags_kept_in_extra(self):
        packet = _build(_make_record(extra={"tags": "region=eu"}))
        assert packet.tags == {}
        assert packet.extra == {"tags": "region=eu"}


# ---------------------------------------------------------------------------
# Stack traces and exceptions
# ---------------------------------------------------------------------------


class TestStacktraceBlock:
    def test_disabled_with_error_sets_culprit_only(self):
        packet = _build(_make_record(extra={"error": _caught()}))
        assert packet.culprit == "boom"
        assert packet.interfaces == []

    def test_below_level_behaves_as_disabled(self):
        config = _enabled(level=logging.CRITICAL)
        packet = _build(_make_record(extra={"error": _caught()}), config)
        assert packet.culprit == "boom"
        assert packet.interfaces == []

    def test_enabled_with_error_attaches_exception(self):
        packet = _build(_make_record(extra={"error": _caught()}), _enabled())
        exc = packet.interface("exception")
        assert isinstance(exc, ExceptionInterface)
        assert exc.type == "MyError"
        assert exc.value == "boom"
        assert exc.stacktrace.frames[-1].function == "_explode"
        assert packet.culprit == "boom"

    def test_exception_describes_root_cause(self):
        inner = _caught()
        try:
            raise RuntimeError("charge failed") from inner
        except RuntimeError as exc:
            outer = exc
        packet = _build(_make_record(extra={"error": outer}), _enabled())
        exc = packet.interface("exception")
        assert exc.type == "MyError"
        assert packet.culprit == "charge failed"

    def test_error_without_trace_gets_current_stack(self):
        """An unraised error falls back to the hook's own call site."""
        packet = _build(_make_record(extra={"error": MyError("never raised")}), _enabled())
        exc = packet.interface("exception")
        functions = [f.function for f in exc.stacktrace.frames]
        assert "_build" in functions

    def test_send_exception_type_disabled_blanks_type(self):
        config = _enabled(send_exception_type=False)
        packet = _build(_make_record(extra={"error": _caught()}), config)
        assert packet.interface("exception").type == ""

    def test_switch_exception_type_and_message(self):
        config = _enabled(
            switch_exception_type_and_message=True, in_app_prefixes=(__name__,)
        )
        packet = _build(_make_record(extra={"error": _caught()}), config)
        assert packet.culprit == f"MyError: {__name__}._explode"
        assert packet.interface("exception") is None
        assert isinstance(packet.interface("stacktrace"), Stacktrace)

    def test_enabled_without_error_attaches_stacktrace(self):
        packet = _build(_make_record(), _enabled())
        stacktrace = packet.interface("stacktrace")
        assert stacktrace is not None
        assert stacktrace.frames[-1].function == "_build"
        assert packet.culprit == ""

    def test_exc_info_used_as_error(self):
        exc = _caught()
        record = _make_record(exc_info=(type(exc), exc, exc.__traceback__))
        packet = _build(record, _enabled())
        assert packet.interface("exception").value == "boom"

    def test_exception_follows_request_and_user(self):
        request = HTTPRequest(url="https://example.com")
        user = User(id="1")
        record = _make_record(
            extra={"http_request": request, "user": user, "error": _caught()}
        )
        packet = _build(record, _enabled())
        names = [i.interface_name for i in packet.interfaces]
        assert names == ["request", "user", "exception"]


# ---------------------------------------------------------------------------
# Extra data
# ---------------------------------------------------------------------------


class TestExtraData:
    def test_ignored_fields_dropped(self):
        config = HookConfig(ignore_fields={"password"})
        packet = _build(_make_record(extra={"password": "x", "user_id": 1}), config)
        assert packet.extra == {"user_id": 1}

    def test_custom_filter_applied(self):
        config = HookConfig(extra_filters={"card": lambda v: v[-4:]})
        packet = _build(_make_record(extra={"card": "4111111111111111"}), config)
        assert packet.extra == {"card": "1111"}

    def test_filter_not_applied_to_omitted_field(self):
        calls = []
        config = HookConfig(extra_filters={"logger": calls.append})
        _build(_make_record(extra={"logger": "billing"}), config)
        assert calls == []

    def test_format_extra_data_uses_default_formatter(self):
        df = DataField({"err": ValueError("bad"), "amount": Money(250)})
        assert format_extra_data(HookConfig(), df) == {"err": "bad", "amount": "$2.50"}

    @pytest.mark.parametrize("value", ["s", 1, 1.5, True, None, [1], {"a": 1}])
    def test_format_data_keeps_json_values(self, value):
        assert format_data(value) == value

    def test_format_data_keeps_opaque_objects(self):
        value = Opaque()
        assert format_data(value) is value


# ---------------------------------------------------------------------------
# Wire form
# ---------------------------------------------------------------------------


class TestToDict:
    def test_to_dict_is_json_serialisable(self):
        config = replace(_enabled(context=1), server_name="web-1")
        record = _make_record(
            extra={
                "error": _caught(),
                "tags": {"region": "eu"},
                "user": User(id="7"),
                "order_id": 42,
            }
        )
        data = json.loads(json.dumps(_build(record, config).to_dict()))
        assert data["level"] == "error"
        assert data["server_name"] == "web-1"
        assert data["tags"] == {"region": "eu"}
        assert data["user"] == {"id": "7"}
        assert data["extra"] == {"order_id": 42}
        value = data["exception"]["values"][0]
        assert value["type"] == "MyError"
        assert value["stacktrace"]["frames"][-1]["function"] == "_explode"

    def test_to_dict_omits_empty_optional_fields(self):
        data = _build(_make_record(level=25)).to_dict()
        assert set(data) == {"message", "timestamp", "platform"}
