"""examples/multithreaded_usage.py - Asynchronous hook under concurrent load.

Several worker threads log errors at the same time. The asynchronous hook
returns from every logging call immediately; ``hook.flush()`` then waits for
all deliveries before the process exits.

An in-memory notifier with an artificial delay stands in for the Sentry
server, so the example runs without network access.

Run:
    python examples/multithreaded_usage.py
"""

import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from typing import List

from sentryhook import Notifier, Packet, SentryHook


class SlowMemoryNotifier(Notifier):
    """Keeps every packet and resolves deliveries after ``delay`` seconds."""

    def __init__(self, delay: float = 0.2) -> None:
        self.packets: List[Packet] = []
        self._delay = delay
        self._lock = threading.Lock()
        self._executor = ThreadPoolExecutor(max_workers=4)

    def capture(self, packet: Packet) -> Future:
        return self._executor.submit(self._deliver, packet)

    def _deliver(self, packet: Packet) -> None:
        time.sleep(self._delay)
        with self._lock:
            self.packets.append(packet)

    def close(self) -> None:
        self._executor.shutdown(wait=True)


notifier = SlowMemoryNotifier()
hook = SentryHook(notifier, asynchronous=True)
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] [thread=%(threadName)s] %(message)s",
)
logging.getLogger().addHandler(hook)
logger = logging.getLogger("order_service")


def place_order(order_id: int, product_id: int) -> None:
    stock = {1: 10, 2: 0}.get(product_id, 0)
    if not stock:
        logger.error(
            "Out of stock",
            extra={"tags": {"product_id": str(product_id)}, "order_id": order_id},
        )


if __name__ == "__main__":
    threads = [
        threading.Thread(target=place_order, args=(1000 + i, 2), name=f"worker-{i}")
        for i in range(8)
    ]
    start = time.monotonic()
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    print(f"All workers returned after {time.monotonic() - start:.3f}s")

    hook.flush()
    print(f"Flushed after {time.monotonic() - start:.3f}s: {len(notifier.packets)} events delivered")
    notifier.close()
