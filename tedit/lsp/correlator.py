"""Request id allocation and reply correlation."""

from __future__ import annotations

from typing import Any, Callable

from loguru import logger
from PySide6.QtCore import QObject, Signal

from .errors import LspDecodeError, LspRequestError


ResultCallback = Callable[[Any], None]
ErrorCallback = Callable[[LspRequestError], None]
Converter = Callable[[Any], Any]


class PendingReply(QObject):
    """Single-use completion channel for one outstanding request.

    The first outcome wins: a reply is either resolved with a value or failed
    with an :class:`LspRequestError`, and later outcomes are ignored.
    """

    resolved = Signal(object)
    failed = Signal(object)

    def __init__(
        self,
        request_id: int,
        method: str,
        *,
        convert: Converter | None = None,
        parent: QObject | None = None,
    ) -> None:
        super().__init__(parent)
        self.request_id = int(request_id)
        self.method = str(method or "")
        self._convert = convert
        self._done = False
        self._value: Any = None
        self._error: LspRequestError | None = None
        self._callbacks: list[tuple[ResultCallback | None, ErrorCallback | None]] = []

    def is_done(self) -> bool:
        return self._done

    def succeeded(self) -> bool:
        return self._done and self._error is None

    def error(self) -> LspRequestError | None:
        return self._error

    def result(self) -> Any:
        if not self._done:
            raise LspRequestError(f"Request {self.request_id} ({self.method}) has not completed")
        if self._error is not None:
            raise self._error
        return self._value

    def then(
        self,
        on_result: ResultCallback | None = None,
        on_error: ErrorCallback | None = None,
    ) -> "PendingReply":
        if self._done:
            self._invoke(on_result, on_error)
        else:
            self._callbacks.append((on_result, on_error))
        return self

    def _resolve(self, value: Any) -> bool:
        if self._done:
            return False
        if self._convert is not None:
            try:
                value = self._convert(value)
            except LspDecodeError as exc:
                return self._fail(LspRequestError(f"Malformed {self.method} reply: {exc}"))
        self._done = True
        self._value = value
        self._flush()
        self.resolved.emit(value)
        return True

    def _fail(self, error: LspRequestError) -> bool:
        if self._done:
            return False
        self._done = True
        self._error = error
        self._flush()
        self.failed.emit(error)
        return True

    def _flush(self) -> None:
        callbacks = list(self._callbacks)
        self._callbacks.clear()
        for on_result, on_error in callbacks:
            self._invoke(on_result, on_error)

    def _invoke(self, on_result: ResultCallback | None, on_error: ErrorCallback | None) -> None:
        try:
            if self._error is None:
                if callable(on_result):
                    on_result(self._value)
            elif callable(on_error):
                on_error(self._error)
        except Exception:
            logger.exception("Reply callback for request {} ({}) failed", self.request_id, self.method)


class RequestCorrelator:
    """Owns the request id counter and the map of replies still awaited."""

    def __init__(self) -> None:
        self._next_request_id = 1
        self._pending: dict[int, PendingReply] = {}

    def __len__(self) -> int:
        return len(self._pending)

    def is_idle(self) -> bool:
        return not self._pending

    def pending_ids(self) -> list[int]:
        return sorted(self._pending)

    def get(self, request_id: int) -> PendingReply | None:
        return self._pending.get(request_id)

    def register(self, method: str, *, convert: Converter | None = None) -> tuple[int, PendingReply]:
        request_id = self._next_request_id
        self._next_request_id += 1
        reply = PendingReply(request_id, method, convert=convert)
        self._pending[request_id] = reply
        return request_id, reply

    def resolve(self, request_id: int, result: Any) -> bool:
        reply = self._pending.pop(request_id, None)
        if reply is None:
            logger.warning("Received response for unknown request id: {}", request_id)
            return False
        reply._resolve(result)
        return True

    def reject(self, request_id: int, error_obj: object) -> bool:
        reply = self._pending.pop(request_id, None)
        if reply is None:
            logger.warning("Received error for unknown request id: {}", request_id)
            return False
        reply._fail(LspRequestError.from_error_object(error_obj))
        return True

    def discard(self, request_id: int, reason: str) -> bool:
        reply = self._pending.pop(request_id, None)
        if reply is None:
            return False
        reply._fail(LspRequestError(reason))
        return True

    def drain_with_error(self, reason: str) -> int:
        pending = list(self._pending.values())
        self._pending.clear()
        for reply in pending:
            reply._fail(LspRequestError(f"{reason} (request {reply.request_id}: {reply.method})"))
        if pending:
            logger.debug("Drained {} pending LSP request(s): {}", len(pending), reason)
        return len(pending)
