"""LSP client façade: handshake, document sync and completion requests."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Protocol

from loguru import logger
from PySide6.QtCore import QObject, QUrl, Signal

from tedit import __version__

from .correlator import Converter, PendingReply, RequestCorrelator
from .errors import LspDecodeError, LspRequestError, LspTransportError
from .json_rpc import encode_lsp_message
from .types import CompletionItem, Position, ServerRequest


METHOD_NOT_FOUND = -32601


class Transport(Protocol):
    def write(self, data: bytes) -> None: ...

    def is_running(self) -> bool: ...


def normalize_completion_result(result: Any) -> list[CompletionItem]:
    """Flatten ``CompletionItem[] | CompletionList | null`` into one ordered list."""
    if result is None:
        return []
    if isinstance(result, dict):
        items = result.get("items")
        if not isinstance(items, list):
            raise LspDecodeError("completion list is missing its items array")
    elif isinstance(result, list):
        items = result
    else:
        raise LspDecodeError(f"unexpected completion result type {type(result).__name__}")
    return [CompletionItem.from_json(item) for item in items]


class LspClient(QObject):
    """Builds JSON-RPC payloads for the editor and hands them to the transport."""

    ready = Signal()
    statusMessage = Signal(str)

    def __init__(
        self,
        transport: Transport,
        correlator: RequestCorrelator,
        *,
        language_id: str = "rust",
        log_traffic: bool = False,
        parent: QObject | None = None,
    ) -> None:
        super().__init__(parent)
        self._transport = transport
        self._correlator = correlator
        self._language_id = str(language_id or "plaintext")
        self._log_traffic = bool(log_traffic)
        self._ready = False
        self.server_capabilities: dict[str, Any] = {}

    @staticmethod
    def path_to_uri(path: str) -> str:
        return QUrl.fromLocalFile(os.path.abspath(path)).toString()

    @staticmethod
    def uri_to_path(uri: str) -> str:
        url = QUrl(uri)
        if url.isLocalFile():
            return str(url.toLocalFile())
        return str(uri or "")

    def set_log_traffic(self, enabled: bool) -> None:
        self._log_traffic = bool(enabled)

    def is_ready(self) -> bool:
        return self._ready

    # ---------- Protocol operations ----------

    def initialize(self, root_path: str | None = None) -> PendingReply:
        root = os.path.abspath(root_path or os.getcwd())
        root_uri = self.path_to_uri(root)
        params: dict[str, Any] = {
            "processId": int(os.getpid()),
            "clientInfo": {"name": "tedit", "version": __version__},
            "rootUri": root_uri,
            "workspaceFolders": [{"uri": root_uri, "name": Path(root).name or "workspace"}],
            "capabilities": {
                "textDocument": {
                    "synchronization": {"didSave": False, "willSave": False},
                    "completion": {
                        "completionItem": {
                            "snippetSupport": False,
                            "documentationFormat": ["plaintext"],
                        },
                    },
                },
                "workspace": {"workspaceFolders": True},
            },
        }
        reply = self.request("initialize", params)
        reply.then(self._on_initialize_result, self._on_initialize_error)
        return reply

    def open_document(self, uri: str, text: str) -> None:
        self.notify(
            "textDocument/didOpen",
            {
                "textDocument": {
                    "uri": str(uri),
                    "languageId": self._language_id,
                    "version": 1,
                    "text": str(text or ""),
                }
            },
        )

    def change_document(self, uri: str, text: str, version: int) -> None:
        self.notify(
            "textDocument/didChange",
            {
                "textDocument": {"uri": str(uri), "version": int(version)},
                "contentChanges": [{"text": str(text or "")}],
            },
        )

    def request_completion(self, uri: str, position: Position) -> PendingReply:
        return self.request(
            "textDocument/completion",
            {
                "textDocument": {"uri": str(uri)},
                "position": position.to_json(),
            },
            convert=normalize_completion_result,
        )

    def exit(self) -> None:
        self._ready = False
        self.notify("exit", None)

    def respond_method_not_found(self, request: ServerRequest) -> None:
        self._send(
            {
                "jsonrpc": "2.0",
                "id": request.id,
                "error": {"code": METHOD_NOT_FOUND, "message": f"Method not supported: {request.method}"},
            }
        )

    # ---------- JSON-RPC plumbing ----------

    def request(
        self,
        method: str,
        params: dict[str, Any] | None = None,
        *,
        convert: Converter | None = None,
    ) -> PendingReply:
        request_id, reply = self._correlator.register(method, convert=convert)
        payload = {
            "jsonrpc": "2.0",
            "id": request_id,
            "method": str(method),
            "params": params if isinstance(params, dict) else {},
        }
        try:
            self._send(payload)
        except LspTransportError as exc:
            self._correlator.discard(request_id, str(exc))
        return reply

    def notify(self, method: str, params: dict[str, Any] | None = None) -> None:
        payload: dict[str, Any] = {"jsonrpc": "2.0", "method": str(method)}
        if params is not None:
            payload["params"] = params
        self._send(payload)

    def _send(self, payload: dict[str, Any]) -> None:
        if not self._transport.is_running():
            raise LspTransportError("Language server is not running")
        self._transport.write(encode_lsp_message(payload))
        self.log_payload("out", payload)

    def log_payload(self, direction: str, payload: object) -> None:
        if self._log_traffic:
            logger.debug("LSP {} {}", direction, payload)

    def _on_initialize_result(self, result_obj: object) -> None:
        result = result_obj if isinstance(result_obj, dict) else {}
        caps = result.get("capabilities")
        self.server_capabilities = caps if isinstance(caps, dict) else {}
        try:
            self.notify("initialized", {})
        except LspTransportError as exc:
            logger.error("Could not complete LSP handshake: {}", exc)
            return
        self._ready = True
        logger.info("LSP server initialized")
        self.ready.emit()

    def _on_initialize_error(self, error: LspRequestError) -> None:
        self._ready = False
        logger.error("LSP initialize failed: {}", error)
        self.statusMessage.emit(f"LSP initialize failed: {error}")
