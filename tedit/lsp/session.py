"""Event loop that interleaves editor intents with language server traffic."""

from __future__ import annotations

from enum import Enum
from typing import Any

from loguru import logger
from PySide6.QtCore import QObject, Qt, Signal

from .channel import Channel
from .correlator import PendingReply, RequestCorrelator
from .errors import LspDecodeError, LspError, LspFramingError, LspSpawnError, LspTransportError
from .json_rpc import LspMessageParser, parse_server_message
from .lsp_client import LspClient
from .process import LspProcess
from .router import NotificationRouter
from .types import (
    ClientIntent,
    CompletionItem,
    CompletionRequest,
    CompletionResult,
    DidChange,
    DidOpen,
    Notification,
    Response,
    ServerMessage,
    ServerRequest,
)


class SessionState(Enum):
    IDLE = "idle"
    RUNNING = "running"
    CLOSED = "closed"


class LspSession(QObject):
    """Owns one server process, its pending requests and both editor channels.

    Intents put on ``intents`` are dispatched to the client; completion
    results come back on ``responses``. The session closes when the intent
    channel is closed and no server traffic is outstanding, or when the
    server's output ends.
    """

    stateChanged = Signal(object)
    ready = Signal()
    closed = Signal(str)
    statusMessage = Signal(str)

    def __init__(
        self,
        *,
        transport: Any = None,
        language_id: str = "rust",
        log_traffic: bool = False,
        shutdown_grace_ms: int = 1200,
        parent: QObject | None = None,
    ) -> None:
        super().__init__(parent)
        self._transport = transport if transport is not None else LspProcess(self)
        self._shutdown_grace_ms = int(shutdown_grace_ms)
        self._state = SessionState.IDLE
        self._close_reason = ""
        # Set while a batch is dispatched; closing waits until the batch is done.
        self._dispatching = False

        self.intents = Channel(self)
        self.responses = Channel(self)
        self._correlator = RequestCorrelator()
        self._parser = LspMessageParser()
        self._router = NotificationRouter(self)
        self._client = LspClient(
            self._transport,
            self._correlator,
            language_id=language_id,
            log_traffic=log_traffic,
            parent=self,
        )

        self._transport.bytesReceived.connect(self._on_bytes_received)
        self._transport.endOfStream.connect(self._on_end_of_stream)
        self._transport.transportFailed.connect(self._on_transport_failed)
        self.intents.itemAvailable.connect(self._on_intents_available, Qt.ConnectionType.QueuedConnection)
        self.intents.closed.connect(self._maybe_finish, Qt.ConnectionType.QueuedConnection)
        self._router.statusMessage.connect(self.statusMessage)
        self._client.statusMessage.connect(self.statusMessage)
        self._client.ready.connect(self.ready)

    @classmethod
    def from_settings(cls, settings: Any, parent: QObject | None = None) -> "LspSession":
        return cls(
            language_id=str(settings.get("lsp.language_id", "rust")),
            log_traffic=bool(settings.get("lsp.log_traffic", False)),
            shutdown_grace_ms=int(settings.get("lsp.shutdown_grace_ms", 1200)),
            parent=parent,
        )

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def close_reason(self) -> str:
        return self._close_reason

    @property
    def client(self) -> LspClient:
        return self._client

    @property
    def router(self) -> NotificationRouter:
        return self._router

    @property
    def correlator(self) -> RequestCorrelator:
        return self._correlator

    def start(
        self,
        program: str,
        args: list[str] | None = None,
        *,
        cwd: str = "",
        spawn_timeout_ms: int = 5000,
    ) -> PendingReply:
        """Spawn the server and send the handshake; returns the initialize reply."""
        if self._state is not SessionState.IDLE:
            raise LspError(f"Session cannot start from state {self._state.value}")
        try:
            self._transport.spawn(program, args, cwd=cwd, timeout_ms=spawn_timeout_ms)
        except LspSpawnError as exc:
            self._close(str(exc), fatal=True)
            raise
        self._set_state(SessionState.RUNNING)
        reply = self._client.initialize(cwd or None)
        if not self.intents.empty():
            self._on_intents_available()
        return reply

    def close(self, reason: str = "Session closed") -> None:
        self._close(reason, fatal=False)

    # ---------- Editor side ----------

    def _on_intents_available(self) -> None:
        if self._state is not SessionState.RUNNING:
            return
        self._dispatching = True
        try:
            for intent in self.intents.drain():
                try:
                    self._dispatch_intent(intent)
                except LspTransportError as exc:
                    self._close(str(exc), fatal=True)
                    return
                except LspError as exc:
                    logger.error("Error handling LSP message: {}", exc)
        finally:
            self._dispatching = False
        self._maybe_finish()

    def _dispatch_intent(self, intent: ClientIntent) -> None:
        if isinstance(intent, DidChange):
            self._client.change_document(intent.uri, intent.text, intent.version)
        elif isinstance(intent, CompletionRequest):
            reply = self._client.request_completion(intent.uri, intent.position)
            reply.then(
                lambda items, req=intent: self._deliver_completion(req, items),
                lambda error, req=intent: self._on_completion_failed(req, error),
            )
        elif isinstance(intent, DidOpen):
            self._client.open_document(intent.uri, intent.text)
        else:
            logger.warning("Ignoring unknown client intent: {!r}", intent)

    def _deliver_completion(self, request: CompletionRequest, items: list[CompletionItem]) -> None:
        if not self.responses.is_closed():
            self.responses.put(CompletionResult(uri=request.uri, position=request.position, items=tuple(items)))
        self._maybe_finish()

    def _on_completion_failed(self, request: CompletionRequest, error: LspError) -> None:
        logger.warning("Completion request for {} failed: {}", request.uri, error)
        self._maybe_finish()

    # ---------- Server side ----------

    def _on_bytes_received(self, data: bytes) -> None:
        if self._state is not SessionState.RUNNING:
            return
        try:
            payloads = self._parser.feed(data)
        except LspFramingError as exc:
            self._close(f"LSP framing error: {exc}", fatal=True)
            return
        self._dispatching = True
        try:
            for payload in payloads:
                self._client.log_payload("in", payload)
                try:
                    message = parse_server_message(payload)
                except LspDecodeError as exc:
                    logger.warning("Dropping LSP message: {}", exc)
                    continue
                try:
                    self._handle_server_message(message)
                except LspTransportError as exc:
                    self._close(str(exc), fatal=True)
                    return
                if self._state is not SessionState.RUNNING:
                    return
        finally:
            self._dispatching = False
        if self._parser.error is not None:
            self._close(f"LSP framing error: {self._parser.error}", fatal=True)
            return
        self._maybe_finish()

    def _handle_server_message(self, message: ServerMessage) -> None:
        if isinstance(message, Response):
            if message.is_error:
                self._correlator.reject(message.id, message.error)
            else:
                self._correlator.resolve(message.id, message.result)
        elif isinstance(message, Notification):
            self._router.dispatch(message.method, message.params)
        elif isinstance(message, ServerRequest):
            logger.debug("Rejecting server request {}", message.method)
            self._client.respond_method_not_found(message)

    def _on_end_of_stream(self) -> None:
        if self._state is SessionState.CLOSED:
            return
        if not self._parser.at_boundary():
            self._close("Language server output ended mid-message", fatal=True)
            return
        self._close("Language server exited", fatal=True)

    def _on_transport_failed(self, message: str) -> None:
        self._close(message, fatal=True)

    # ---------- Lifecycle ----------

    def _maybe_finish(self) -> None:
        if self._state is not SessionState.RUNNING or self._dispatching:
            return
        if not self.intents.is_closed() or not self.intents.empty():
            return
        if self._correlator.is_idle() and self._parser.at_boundary():
            self._close("Intent channel closed", fatal=False)

    def _close(self, reason: str, *, fatal: bool) -> None:
        if self._state is SessionState.CLOSED:
            return
        was_running = self._state is SessionState.RUNNING
        self._close_reason = reason
        self._set_state(SessionState.CLOSED)
        self._correlator.drain_with_error(reason)
        self._parser.reset()
        self.responses.close()
        if fatal:
            logger.error("LSP session closed: {}", reason)
            self.statusMessage.emit(f"Language server unavailable: {reason}")
        else:
            logger.info("LSP session closed: {}", reason)
        if was_running and self._transport.is_running():
            try:
                self._client.exit()
            except LspTransportError as exc:
                logger.debug("Could not send exit notification: {}", exc)
            self._transport.stop(self._shutdown_grace_ms)
        self.closed.emit(reason)

    def _set_state(self, state: SessionState) -> None:
        if state is self._state:
            return
        logger.debug("LSP session {} -> {}", self._state.value, state.value)
        self._state = state
        self.stateChanged.emit(state)
