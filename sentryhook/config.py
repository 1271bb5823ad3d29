"""config.py - Hook configuration objects."""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Set, Tuple

DEFAULT_TIMEOUT = 0.1
DEFAULT_LEVELS = frozenset({logging.ERROR, logging.CRITICAL})


@dataclass(frozen=True)
class StacktraceConfiguration:
    """Controls whether and how stack traces are attached to events.

    Frozen: to change a setting, assign a new instance to
    ``SentryHook.stacktrace`` (``dataclasses.replace`` is convenient).

    Attributes:
        enabled: Attach stack traces at all.
        level: Minimum record level that gets a stack trace.
        skip: Extra frames to drop from the innermost end of a trace captured
            from the hook's own call site.
        context: Source lines to include before and after each frame.
        in_app_prefixes: Module prefixes identifying application code.
        send_exception_type: Keep the exception class name in the event.
        switch_exception_type_and_message: Send a bare stack trace and use
            ``"<type>: <culprit>"`` as the culprit instead of the message.
    """

    enabled: bool = False
    level: int = logging.ERROR
    skip: int = 0
    context: int = 0
    in_app_prefixes: Tuple[str, ...] = ()
    send_exception_type: bool = True
    switch_exception_type_and_message: bool = False


@dataclass
class HookConfig:
    """Mutable settings read by every ``SentryHook.fire`` call.

    SentryHook only touches these under its readers/writer lock.
    """

    timeout: float = DEFAULT_TIMEOUT
    stacktrace: StacktraceConfiguration = field(default_factory=StacktraceConfiguration)
    server_name: str = ""
    release: str = ""
    environment: str = ""
    ignore_fields: Set[str] = field(default_factory=set)
    extra_filters: Dict[str, Callable[[Any], Any]] = field(default_factory=dict)
