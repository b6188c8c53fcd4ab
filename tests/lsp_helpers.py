from __future__ import annotations

import time
from typing import Any, Callable

from PySide6.QtCore import QCoreApplication, QEventLoop, QObject, Signal

from tedit.lsp.errors import LspTransportError
from tedit.lsp.json_rpc import LspMessageParser, encode_lsp_message


class FakeTransport(QObject):
    """In-memory stand-in for LspProcess that records every framed write."""

    bytesReceived = Signal(object)
    endOfStream = Signal()
    transportFailed = Signal(str)

    def __init__(self) -> None:
        super().__init__()
        self.running = False
        self.stopped = False
        self.fail_writes = False
        self.spawned_with: tuple[str, list[str], str] | None = None
        self.written: list[bytes] = []

    def spawn(self, program: str, args: list[str] | None = None, *, cwd: str = "", timeout_ms: int = 5000) -> None:
        self.spawned_with = (program, list(args or []), cwd)
        self.running = True

    def is_running(self) -> bool:
        return self.running

    def write(self, data: bytes) -> None:
        if self.fail_writes:
            raise LspTransportError("broken pipe")
        self.written.append(bytes(data))

    def stop(self, grace_ms: int = 1200) -> None:
        self.stopped = True
        self.running = False

    def sent(self) -> list[dict[str, Any]]:
        return LspMessageParser().feed(b"".join(self.written))

    def sent_methods(self) -> list[str | None]:
        return [message.get("method") for message in self.sent()]

    def feed(self, payload: dict[str, Any]) -> None:
        self.bytesReceived.emit(encode_lsp_message(payload))

    def feed_raw(self, data: bytes) -> None:
        self.bytesReceived.emit(data)

    def finish(self) -> None:
        self.running = False
        self.endOfStream.emit()


def wait_until(predicate: Callable[[], bool], timeout_s: float = 10.0) -> bool:
    deadline = time.monotonic() + timeout_s
    while not predicate():
        if time.monotonic() > deadline:
            return False
        QCoreApplication.processEvents(QEventLoop.ProcessEventsFlag.AllEvents, 50)
        time.sleep(0.005)
    return True


def process_events() -> None:
    QCoreApplication.processEvents()
