"""Exception types raised by the LSP client stack."""

from __future__ import annotations

from typing import Any


class LspError(RuntimeError):
    """Base class for language-server client failures."""


class LspSpawnError(LspError):
    """Raised when the language server process cannot be started."""


class LspTransportError(LspError):
    """Raised on I/O failure on the server's standard streams."""


class LspFramingError(LspTransportError):
    """Raised when the inbound byte stream can no longer be split into messages."""


class LspDecodeError(LspError):
    """Raised for a complete message body that is not a usable JSON-RPC payload."""


class LspRequestError(LspError):
    """Failure outcome delivered to a pending request."""

    def __init__(self, message: str, *, code: int | None = None, data: Any = None) -> None:
        super().__init__(message)
        self.code = code
        self.data = data

    @classmethod
    def from_error_object(cls, error_obj: object) -> "LspRequestError":
        if not isinstance(error_obj, dict):
            return cls(f"Server returned an error: {error_obj!r}")
        raw_code = error_obj.get("code")
        code = raw_code if isinstance(raw_code, int) else None
        message = str(error_obj.get("message") or "unknown server error")
        return cls(message, code=code, data=error_obj.get("data"))
