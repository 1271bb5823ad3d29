"""builder.py - Turn a log record into a Sentry event packet.

``build_packet`` applies its steps in a fixed order and later steps win:

    1. Seed from the record (message, time, severity) and hook defaults.
    2. Apply well-known fields found in the record's extra data.
    3. Attach a stack trace or exception, when enabled for the record's level.
    4. Copy the remaining fields into the packet's extra data.

No step raises for missing or malformed input; the affected part of the
packet keeps its default instead.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict

from .config import HookConfig
from .fields import DataField
from .packet import ExceptionInterface, Packet, severity_for
from .stacktrace import find_stacktrace, new_stacktrace, root_cause

_JSON_TYPES = (str, int, float, bool, type(None), list, tuple, dict)


def build_packet(record: logging.LogRecord, config: HookConfig, df: DataField) -> Packet:
    """Build the packet for ``record``.

    Args:
        record: The record being logged.
        config: Hook settings; the caller holds the read lock.
        df: Field view over ``record``'s extra data.

    Returns:
        A new Packet, ready for the notifier client.
    """
    packet = Packet(
        message=record.getMessage(),
        timestamp=datetime.fromtimestamp(record.created, timezone.utc),
        level=severity_for(record.levelno),
        server_name=config.server_name,
        release=config.release,
        environment=config.environment,
    )

    logger, ok = df.get_logger()
    if ok:
        packet.logger = logger
    server_name, ok = df.get_server_name()
    if ok:
        packet.server_name = server_name
    event_id, ok = df.get_event_id()
    if ok:
        packet.event_id = event_id
    tags, ok = df.get_tags()
    if ok:
        packet.tags = tags
    fingerprint, ok = df.get_fingerprint()
    if ok:
        packet.fingerprint = fingerprint
    request, ok = df.get_http_request()
    if ok:
        packet.interfaces.append(request)
    user, ok = df.get_user()
    if ok:
        packet.interfaces.append(user)

    _apply_stacktrace(packet, record, config, df)

    for key, value in format_extra_data(config, df).items():
        packet.extra.setdefault(key, value)
    return packet


def _apply_stacktrace(
    packet: Packet, record: logging.LogRecord, config: HookConfig, df: DataField
) -> None:
    st_config = config.stacktrace
    err, has_error = df.get_error()

    if not (st_config.enabled and record.levelno >= st_config.level):
        # The culprit is still useful with stack traces disabled.
        if has_error:
            packet.culprit = str(err)
        return

    if not has_error:
        stacktrace = new_stacktrace(
            st_config.skip, st_config.context, st_config.in_app_prefixes
        )
        if stacktrace:
            packet.interfaces.append(stacktrace)
        return

    stacktrace = find_stacktrace(err, st_config.context, st_config.in_app_prefixes)
    if stacktrace is None:
        stacktrace = new_stacktrace(
            st_config.skip, st_config.context, st_config.in_app_prefixes
        )
    exc = ExceptionInterface.from_error(root_cause(err), stacktrace)
    if not st_config.send_exception_type:
        exc.type = ""

    if st_config.switch_exception_type_and_message:
        trace_culprit = stacktrace.culprit() if stacktrace is not None else ""
        if stacktrace is not None:
            packet.interfaces.append(stacktrace)
        packet.culprit = f"{exc.type}: {trace_culprit}"
    else:
        packet.interfaces.append(exc)
        packet.culprit = str(err)


def format_extra_data(config: HookConfig, df: DataField) -> Dict[str, Any]:
    """Return the fields that are neither well-known nor ignored, formatted."""
    result = {}
    for key, value in df.data.items():
        if df.is_omit(key) or key in config.ignore_fields:
            continue
        fn = config.extra_filters.get(key)
        result[key] = fn(value) if fn is not None else format_data(value)
    return result


def format_data(value: Any) -> Any:
    """Default formatter for extra data values.

    Exceptions become their message. JSON-native values pass through.
    Objects whose class defines ``__str__`` become that string. Everything
    else is returned unchanged.
    """
    if isinstance(value, BaseException):
        return str(value)
    if isinstance(value, _JSON_TYPES):
        return value
    if type(value).__str__ is not object.__str__:
        return str(value)
    return value
