"""Thread-safe queues that wake the Qt event loop when items arrive."""

from __future__ import annotations

import queue
import threading
from typing import Any

from PySide6.QtCore import QObject, Signal


class ChannelClosedError(RuntimeError):
    """Raised when putting an item on a closed channel."""


class Channel(QObject):
    """FIFO handoff between the editor and the LSP session.

    ``put`` may be called from any thread. Consumers connect to
    ``itemAvailable`` (queued) and call :meth:`drain` on the owning thread.
    """

    itemAvailable = Signal()
    closed = Signal()

    def __init__(self, parent: QObject | None = None) -> None:
        super().__init__(parent)
        self._queue: queue.Queue[Any] = queue.Queue()
        self._lock = threading.Lock()
        self._closed = False

    def put(self, item: Any) -> None:
        with self._lock:
            if self._closed:
                raise ChannelClosedError("Channel is closed")
            self._queue.put(item)
        self.itemAvailable.emit()

    def drain(self) -> list[Any]:
        items: list[Any] = []
        while True:
            try:
                items.append(self._queue.get_nowait())
            except queue.Empty:
                return items

    def empty(self) -> bool:
        return self._queue.empty()

    def close(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
        self.closed.emit()

    def is_closed(self) -> bool:
        return self._closed
