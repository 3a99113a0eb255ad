"""Ordered delivery of surface events to listeners.

Session callbacks run on the reader thread while the session lock is
held. Listeners are consumer code that may call back into the surface
(cancel, submit, clear_filter), so they are never run there. Instead,
events are queued and delivered by a single daemon thread that holds no
surface or session lock, which keeps production order.
"""

import queue
import threading
from collections.abc import Callable
from typing import Any

from ripsearch.dependencies import logger

Listener = Callable[[Any], None]


class EventDispatcher:
    """Deliver events to listeners on one background thread, in FIFO order.

    Args:
        name: Name of the delivery thread
    """

    def __init__(self, name: str = "surface-events") -> None:
        self._name = name
        self._queue: queue.Queue[tuple[list[Listener] | None, Any]] = queue.Queue()
        self._lock = threading.Lock()
        self._thread: threading.Thread | None = None

    def dispatch(self, listeners: list[Listener], event: Any) -> None:
        """Queue an event for the given listeners. Never blocks."""
        if not listeners:
            return
        self._ensure_started()
        self._queue.put((listeners, event))

    def drain(self, timeout: float | None = None) -> bool:
        """Block until every event queued before this call has been delivered.

        Returns:
            True once drained; False on timeout or when called from a listener
        """
        if threading.current_thread() is self._thread:
            return False
        self._ensure_started()
        done = threading.Event()
        self._queue.put((None, done))
        return done.wait(timeout)

    def _ensure_started(self) -> None:
        with self._lock:
            if self._thread is None:
                self._thread = threading.Thread(target=self._run, name=self._name, daemon=True)
                self._thread.start()

    def _run(self) -> None:
        while True:
            listeners, event = self._queue.get()
            if listeners is None:
                event.set()
                continue
            for listener in listeners:
                try:
                    listener(event)
                except Exception as e:
                    logger.error(
                        "surface_listener_failed",
                        extra={"session_id": getattr(event, "session_id", None), "error": str(e)},
                        exc_info=True,
                    )
