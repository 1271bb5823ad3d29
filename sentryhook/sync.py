"""sync.py - Readers/writer lock and wait group used by SentryHook.

Neither primitive exists in the standard ``threading`` module, so both are
built on ``threading.Condition``:

    RWLock     Many concurrent readers (``SentryHook.fire``) or one writer
               (``SentryHook.flush`` and the configuration setters).
               Waiting writers block new readers so a flush cannot starve.

    WaitGroup  Counts outstanding asynchronous deliveries. ``wait()`` blocks
               until the count drops back to zero.
"""

import threading
from contextlib import contextmanager
from typing import Iterator


class RWLock:
    """A writer-preferring readers/writer lock.

    The lock is not re-entrant: a thread holding the read side must not try
    to take it again while a writer may be waiting.

    Example:
        >>> lock = RWLock()
        >>> with lock.read():
        ...     pass
        >>> with lock.write():
        ...     pass
    """

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    def acquire_read(self) -> None:
        with self._cond:
            while self._writer or self._writers_waiting:
                self._cond.wait()
            self._readers += 1

    def release_read(self) -> None:
        with self._cond:
            self._readers -= 1
            if self._readers == 0:
                self._cond.notify_all()

    def acquire_write(self) -> None:
        with self._cond:
            self._writers_waiting += 1
            try:
                while self._writer or self._readers:
                    self._cond.wait()
            finally:
                self._writers_waiting -= 1
            self._writer = True

    def release_write(self) -> None:
        with self._cond:
            self._writer = False
            self._cond.notify_all()

    @contextmanager
    def read(self) -> Iterator[None]:
        """Hold the shared side of the lock for the duration of the block."""
        self.acquire_read()
        try:
            yield
        finally:
            self.release_read()

    @contextmanager
    def write(self) -> Iterator[None]:
        """Hold the exclusive side of the lock for the duration of the block."""
        self.acquire_write()
        try:
            yield
        finally:
            self.release_write()


class WaitGroup:
    """Counter of outstanding work with a blocking ``wait()``.

    ``add()`` must not race with ``wait()``. SentryHook guarantees this by
    calling ``add()`` under the read lock and ``wait()`` under the write lock.
    """

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._count = 0

    def add(self, n: int = 1) -> None:
        with self._cond:
            if self._count + n < 0:
                raise ValueError("negative WaitGroup counter")
            self._count += n
            if self._count == 0:
                self._cond.notify_all()

    def done(self) -> None:
        """Mark one unit of work as complete."""
        self.add(-1)

    def wait(self) -> None:
        """Block until every registered unit of work has completed."""
        with self._cond:
            while self._count:
                self._cond.wait()

    def __len__(self) -> int:
        return self._count
