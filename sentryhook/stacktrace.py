"""stacktrace.py - Stack trace model and resolution from exception chains.

Sentry renders stack frames in the order it receives them and expects the
oldest call first. This module produces ``Stacktrace`` objects in that order
from three sources:

    Direct traces   An exception (or any link in its chain) exposing a
                    ``get_stacktrace()`` method that returns a ``Stacktrace``.

    Tracebacks      The ``__traceback__`` attached to a raised exception. The
                    traceback chain already runs outermost to innermost.

    The live stack  ``new_stacktrace()`` captures the caller's own stack when
                    no exception in the chain carries a usable trace.

The chain is followed through ``__cause__`` and, unless suppressed with
``raise ... from None``, through ``__context__``.
"""

import linecache
import os
import sys
from typing import Iterator, List, Optional, Sequence

# Modules whose frames are never part of an application stack trace: the
# logging machinery calling into the hook, and the hook itself.
_INTERNAL_MODULES = ("logging", "sentryhook")


class StacktraceFrame:
    """A single frame of a Sentry stack trace.

    Attributes:
        function (str): Name of the function executing in this frame.
        module (str): Dotted module name the function belongs to.
        filename (str): ``abs_path`` trimmed to the import root.
        abs_path (str): Absolute path of the source file.
        lineno (int): Line currently executing in this frame.
        context_line (Optional[str]): Source text of ``lineno``, when available.
        pre_context (List[str]): Source lines before ``lineno``.
        post_context (List[str]): Source lines after ``lineno``.
        in_app (bool): True if ``module`` matches one of the configured
            in-app prefixes.
    """

    __slots__ = (
        "function",
        "module",
        "filename",
        "abs_path",
        "lineno",
        "context_line",
        "pre_context",
        "post_context",
        "in_app",
    )

    def __init__(
        self,
        function: str,
        module: str,
        abs_path: str,
        lineno: int,
        in_app: bool = False,
        context_line: Optional[str] = None,
        pre_context: Optional[List[str]] = None,
        post_context: Optional[List[str]] = None,
    ) -> None:
        self.function = function
        self.module = module
        self.abs_path = abs_path
        self.filename = _trim_path(abs_path)
        self.lineno = lineno
        self.in_app = in_app
        self.context_line = context_line
        self.pre_context = pre_context or []
        self.post_context = post_context or []

    @classmethod
    def from_frame(
        cls,
        frame,
        lineno: int,
        context: int = 0,
        in_app_prefixes: Sequence[str] = (),
    ) -> Optional["StacktraceFrame"]:
        """Build a frame record from a live Python frame object.

        Returns None when the frame's code object cannot be resolved; callers
        drop such frames rather than failing the whole trace.
        """
        try:
            code = frame.f_code
            abs_path = code.co_filename
            function = code.co_name
            module_globals = frame.f_globals
        except AttributeError:
            return None
        if not abs_path:
            return None

        module = module_globals.get("__name__") or ""
        result = cls(
            function=function,
            module=module,
            abs_path=abs_path,
            lineno=lineno,
            in_app=_is_in_app(module, in_app_prefixes),
        )
        if context > 0:
            result._load_context(context, module_globals)
        return result

    def culprit(self) -> str:
        return f"{self.module}.{self.function}"

    def to_dict(self) -> dict:
        data = {
            "function": self.function,
            "module": self.module,
            "filename": self.filename,
            "abs_path": self.abs_path,
            "lineno": self.lineno,
            "in_app": self.in_app,
        }
        if self.context_line is not None:
            data["context_line"] = self.context_line
            data["pre_context"] = list(self.pre_context)
            data["post_context"] = list(self.post_context)
        return data

    def _load_context(self, context: int, module_globals: dict) -> None:
        lines = linecache.getlines(self.abs_path, module_globals)
        index = self.lineno - 1
        if not 0 <= index < len(lines):
            return
        self.context_line = lines[index].rstrip("\n")
        self.pre_context = [line.rstrip("\n") for line in lines[max(0, index - context):index]]
        self.post_context = [line.rstrip("\n") for line in lines[index + 1:index + 1 + context]]

    def __repr__(self) -> str:  # pragma: no cover
        return f"StacktraceFrame({self.module}.{self.function}:{self.lineno})"


class Stacktrace:
    """An ordered list of frames, oldest call first.

    Doubles as a packet interface (``"stacktrace"``) when a packet carries a
    bare trace instead of an exception.
    """

    interface_name = "stacktrace"

    def __init__(self, frames: Optional[List[StacktraceFrame]] = None) -> None:
        self.frames: List[StacktraceFrame] = list(frames or [])

    def culprit(self) -> str:
        """Return ``module.function`` of the innermost in-app frame, or ``""``."""
        for frame in reversed(self.frames):
            if frame.in_app and frame.module and frame.function:
                return frame.culprit()
        return ""

    def to_dict(self) -> dict:
        return {"frames": [frame.to_dict() for frame in self.frames]}

    def __len__(self) -> int:
        return len(self.frames)

    def __repr__(self) -> str:  # pragma: no cover
        return f"Stacktrace({len(self.frames)} frames)"


# ---------------------------------------------------------------------------
# Exception chain helpers
# ---------------------------------------------------------------------------


def cause_of(err: BaseException) -> Optional[BaseException]:
    """Return the exception ``err`` wraps, or None at the end of the chain."""
    cause = getattr(err, "__cause__", None)
    if cause is None and not getattr(err, "__suppress_context__", False):
        cause = getattr(err, "__context__", None)
    return cause


def iter_chain(err: Optional[BaseException]) -> Iterator[BaseException]:
    """Yield ``err`` and each exception it wraps, outermost first.

    Stops at the first link already seen, so a hand-built cycle of
    ``__cause__``/``__context__`` references cannot loop forever.
    """
    seen = set()
    while err is not None and id(err) not in seen:
        seen.add(id(err))
        yield err
        err = cause_of(err)


def root_cause(err: BaseException) -> BaseException:
    """Return the innermost exception of the chain (``err`` if it wraps nothing)."""
    last = err
    for last in iter_chain(err):
        pass
    return last


# ---------------------------------------------------------------------------
# Resolution
# ---------------------------------------------------------------------------


def find_stacktrace(
    err: BaseException,
    context: int = 0,
    in_app_prefixes: Sequence[str] = (),
) -> Optional[Stacktrace]:
    """Find the stack trace recorded deepest in ``err``'s chain.

    Each link may carry a direct trace (``get_stacktrace()``) or a traceback.
    A direct trace is preferred over the traceback of the same link. Taking
    one kind of trace clears the other, so the innermost link carrying any
    trace decides the result.

    Args:
        err: The outermost exception of the chain.
        context: Number of source lines to attach around each frame when a
            traceback has to be converted.
        in_app_prefixes: Module prefixes marking frames as application code.

    Returns:
        The resolved Stacktrace (oldest frame first), or None if no link in
        the chain carried a trace.
    """
    stacktrace = None
    traceback = None
    for link in iter_chain(err):
        tracer = getattr(link, "get_stacktrace", None)
        if callable(tracer):
            stacktrace = tracer()
            traceback = None
        elif getattr(link, "__traceback__", None) is not None:
            stacktrace = None
            traceback = link.__traceback__
    if traceback is not None:
        stacktrace = convert_traceback(traceback, context, in_app_prefixes)
    return stacktrace


def convert_traceback(
    tb,
    context: int = 0,
    in_app_prefixes: Sequence[str] = (),
) -> Stacktrace:
    """Convert a traceback chain into a Stacktrace.

    Tracebacks link from the outermost call to the point of the raise, which
    is already the order Sentry expects. Links whose frame cannot be resolved
    are skipped.
    """
    frames = []
    while tb is not None:
        frame = StacktraceFrame.from_frame(
            getattr(tb, "tb_frame", None),
            getattr(tb, "tb_lineno", 0),
            context,
            in_app_prefixes,
        )
        if frame is not None:
            frames.append(frame)
        tb = getattr(tb, "tb_next", None)
    return Stacktrace(frames)


def new_stacktrace(
    skip: int = 0,
    context: int = 0,
    in_app_prefixes: Sequence[str] = (),
) -> Optional[Stacktrace]:
    """Capture the current call stack.

    Frames from the logging package and from this package are dropped from
    the innermost end first, then ``skip`` further frames. The remaining
    frames are reversed so the oldest call comes first.

    Returns:
        The captured Stacktrace, or None if no frames remain.
    """
    raw = []
    frame = sys._getframe(1)
    while frame is not None:
        raw.append((frame, frame.f_lineno))
        frame = frame.f_back

    start = 0
    while start < len(raw) and _is_internal(raw[start][0]):
        start += 1
    raw = raw[start + skip:]

    frames = []
    for f, lineno in reversed(raw):
        record = StacktraceFrame.from_frame(f, lineno, context, in_app_prefixes)
        if record is not None:
            frames.append(record)
    if not frames:
        return None
    return Stacktrace(frames)


# ---------------------------------------------------------------------------
# Private helpers
# ---------------------------------------------------------------------------


def _is_internal(frame) -> bool:
    module = frame.f_globals.get("__name__") or ""
    return any(
        module == name or module.startswith(name + ".") for name in _INTERNAL_MODULES
    )


def _is_in_app(module: str, prefixes: Sequence[str]) -> bool:
    return bool(module) and any(module.startswith(prefix) for prefix in prefixes)


def _trim_path(path: str) -> str:
    """Strip the longest ``sys.path`` entry that prefixes ``path``."""
    best = ""
    for entry in sys.path:
        if not entry:
            continue
        entry = os.path.join(os.path.abspath(entry), "")
        if path.startswith(entry) and len(entry) > len(best):
            best = entry
    return path[len(best):] if best else path
