"""
Background delivery worker.

One daemon thread drains a FIFO queue and hands each payload to a
processing callback, strictly one at a time. Producers never block: a
full queue drops the payload. A failing item is logged and skipped so
it can never halt the pipeline.
"""

from __future__ import annotations

import queue
import threading
import time
from typing import Any, Callable, Dict, Optional

import structlog

from sentrylite.types import TaskPayload

logger = structlog.get_logger(__name__)

_STOP = object()


class BackgroundWorker:
    """
    Single-consumer delivery queue.

    Args:
        process: Called on the worker thread for each payload
        max_queue_size: Queue bound (0 = unbounded)
        debug: Log per-item failures and drops
    """

    def __init__(
        self,
        process: Callable[[TaskPayload], Any],
        max_queue_size: int = 1000,
        debug: bool = False,
        name: str = "sentrylite.worker",
    ):
        self._process = process
        self.debug = debug
        self.name = name

        self._queue: queue.Queue = queue.Queue(maxsize=max_queue_size)
        self._thread: Optional[threading.Thread] = None
        self._lock = threading.Lock()
        self._accepting = True

        self._stats = {
            "submitted": 0,
            "processed": 0,
            "failed": 0,
            "dropped": 0,
        }

    @property
    def is_alive(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    @property
    def pending(self) -> int:
        """Payloads queued or in flight."""
        return self._queue.unfinished_tasks

    def start(self) -> None:
        """Start the worker thread if it is not running."""
        with self._lock:
            self._ensure_thread()

    def _ensure_thread(self) -> None:
        # Caller holds _lock
        if self.is_alive or not self._accepting:
            return
        self._thread = threading.Thread(
            target=self._run,
            daemon=True,
            name=self.name,
        )
        self._thread.start()

    def submit(self, payload: TaskPayload) -> bool:
        """
        Enqueue a payload without blocking.

        Returns:
            True if queued, False if dropped (full or shut down)
        """
        # Held across the put so nothing lands behind the stop marker
        with self._lock:
            if not self._accepting:
                self._stats["dropped"] += 1
                if self.debug:
                    logger.debug("Worker shut down, dropping payload")
                return False

            self._ensure_thread()

            try:
                self._queue.put_nowait(payload)
            except queue.Full:
                self._stats["dropped"] += 1
                if self.debug:
                    logger.debug("Delivery queue full, dropping payload", size=self._queue.qsize())
                return False

            self._stats["submitted"] += 1
        return True

    def _run(self) -> None:
        while True:
            item = self._queue.get()
            try:
                if item is _STOP:
                    return
                self._process(item)
                self._stats["processed"] += 1
            except Exception as e:
                self._stats["failed"] += 1
                if self.debug:
                    logger.debug(
                        "Error in delivery worker",
                        payload=type(item).__name__,
                        error=str(e),
                        exc_info=True,
                    )
            finally:
                self._queue.task_done()

    def flush(self, timeout: float) -> bool:
        """
        Wait up to ``timeout`` seconds for every queued payload to be processed.

        Returns:
            True if the queue drained in time
        """
        deadline = time.monotonic() + timeout
        with self._queue.all_tasks_done:
            while self._queue.unfinished_tasks:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    return False
                self._queue.all_tasks_done.wait(remaining)
        return True

    def shutdown(self, timeout: float) -> int:
        """
        Stop accepting payloads and drain for at most ``timeout`` seconds.

        Returns:
            Number of payloads left undelivered
        """
        with self._lock:
            self._accepting = False

        if not self.is_alive:
            return self.pending

        pending = self.pending
        if pending:
            logger.info("Waiting for queued events to be sent", pending=pending, timeout=timeout)

        if self.flush(timeout):
            self._queue.put(_STOP)
            self._thread.join(timeout=1.0)
            return 0

        undelivered = self.pending
        logger.warning("Shutdown timeout reached, events were not sent", undelivered=undelivered)
        return undelivered

    def get_stats(self) -> Dict[str, Any]:
        return {
            **self._stats,
            "pending": self.pending,
            "alive": self.is_alive,
        }
