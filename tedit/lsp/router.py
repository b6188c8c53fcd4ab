"""Routes server notifications to handlers by method name."""

from __future__ import annotations

from typing import Any, Callable

from loguru import logger
from PySide6.QtCore import QObject, Signal

from .errors import LspDecodeError
from .types import LogMessage, MessageType


NotificationHandler = Callable[[Any], None]

_LOG_LEVELS = {
    MessageType.ERROR: "ERROR",
    MessageType.WARNING: "WARNING",
    MessageType.INFO: "INFO",
    MessageType.LOG: "DEBUG",
}


class NotificationRouter(QObject):
    notificationReceived = Signal(str, object)
    statusMessage = Signal(str)

    def __init__(self, parent: QObject | None = None) -> None:
        super().__init__(parent)
        self._handlers: dict[str, NotificationHandler] = {
            "window/logMessage": self._on_log_message,
            "window/showMessage": self._on_show_message,
        }

    def register(self, method: str, handler: NotificationHandler) -> None:
        clean = str(method or "").strip()
        if not clean:
            raise ValueError("Notification method cannot be empty.")
        self._handlers[clean] = handler

    def handles(self, method: str) -> bool:
        return method in self._handlers

    def dispatch(self, method: str, params: Any) -> None:
        handler = self._handlers.get(method)
        if handler is None:
            logger.debug("Unhandled notification: {}", method)
        else:
            try:
                handler(params)
            except LspDecodeError as exc:
                logger.warning("Dropping malformed {} notification: {}", method, exc)
            except Exception:
                logger.exception("Notification handler for {} failed", method)
        self.notificationReceived.emit(method, params)

    def _on_log_message(self, params: Any) -> None:
        entry = LogMessage.from_params(params)
        logger.log(_LOG_LEVELS[entry.type], "[LSP] {}: {}", entry.type.name, entry.message)

    def _on_show_message(self, params: Any) -> None:
        entry = LogMessage.from_params(params)
        logger.log(_LOG_LEVELS[entry.type], "[LSP] {}: {}", entry.type.name, entry.message)
        text = entry.message.strip()
        if text:
            self.statusMessage.emit(text)
