"""Small LSP dataclasses for positions, completions and session traffic."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, Union

from .errors import LspDecodeError


@dataclass(frozen=True)
class Position:
    line: int
    character: int

    def to_json(self) -> dict[str, int]:
        return {"line": int(self.line), "character": int(self.character)}

    @classmethod
    def from_cursor(cls, line_text: str, line: int, column: int) -> "Position":
        """Build a position from a code-point column on ``line_text``."""
        return cls(line=max(0, int(line)), character=utf16_units_for_prefix(line_text, column))


def utf16_code_units(text: str) -> int:
    if not text:
        return 0
    return len(text.encode("utf-16-le")) // 2


def utf16_units_for_prefix(text: str, codepoint_index: int) -> int:
    if not text:
        return 0
    idx = max(0, min(len(text), int(codepoint_index)))
    return utf16_code_units(text[:idx])


class MessageType(IntEnum):
    ERROR = 1
    WARNING = 2
    INFO = 3
    LOG = 4


@dataclass(frozen=True)
class LogMessage:
    type: MessageType
    message: str

    @classmethod
    def from_params(cls, params: object) -> "LogMessage":
        if not isinstance(params, dict):
            raise LspDecodeError(f"log message params must be an object, got {type(params).__name__}")
        raw_type = params.get("type")
        try:
            msg_type = MessageType(int(raw_type))
        except (TypeError, ValueError):
            msg_type = MessageType.LOG
        return cls(type=msg_type, message=str(params.get("message") or ""))


@dataclass(frozen=True)
class CompletionItem:
    label: str
    kind: int | None = None
    detail: str = ""
    insert_text: str = ""
    raw: dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @property
    def text_to_insert(self) -> str:
        return self.insert_text or self.label

    @classmethod
    def from_json(cls, payload: object) -> "CompletionItem":
        if not isinstance(payload, dict):
            raise LspDecodeError(f"completion item must be an object, got {type(payload).__name__}")
        label = payload.get("label")
        if not isinstance(label, str):
            raise LspDecodeError("completion item is missing a string label")
        kind = payload.get("kind")
        insert_text = payload.get("insertText")
        text_edit = payload.get("textEdit")
        if not isinstance(insert_text, str) and isinstance(text_edit, dict):
            insert_text = text_edit.get("newText")
        return cls(
            label=label,
            kind=kind if isinstance(kind, int) else None,
            detail=str(payload.get("detail") or ""),
            insert_text=insert_text if isinstance(insert_text, str) else "",
            raw=dict(payload),
        )


# Messages read from the server.


@dataclass(frozen=True)
class Response:
    id: int
    result: Any = None
    error: Any = None

    @property
    def is_error(self) -> bool:
        return self.error is not None


@dataclass(frozen=True)
class ServerRequest:
    id: Any
    method: str
    params: Any = None


@dataclass(frozen=True)
class Notification:
    method: str
    params: Any = None


ServerMessage = Union[Response, ServerRequest, Notification]


# Traffic between the editor and the session.


@dataclass(frozen=True)
class DidOpen:
    uri: str
    text: str


@dataclass(frozen=True)
class DidChange:
    uri: str
    text: str
    version: int


@dataclass(frozen=True)
class CompletionRequest:
    uri: str
    position: Position


ClientIntent = Union[DidOpen, DidChange, CompletionRequest]


@dataclass(frozen=True)
class CompletionResult:
    uri: str
    position: Position
    items: tuple[CompletionItem, ...] = ()


ClientResponse = CompletionResult
