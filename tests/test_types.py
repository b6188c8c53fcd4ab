from __future__ import annotations

import pytest

from tedit.lsp.errors import LspDecodeError, LspRequestError
from tedit.lsp.types import CompletionItem, LogMessage, MessageType, Position, utf16_units_for_prefix


def test_position_from_cursor_counts_utf16_units() -> None:
    line = "let s = \"😀x\";"
    column = line.index("x")
    position = Position.from_cursor(line, 4, column)
    assert position == Position(line=4, character=column + 1)
    assert position.to_json() == {"line": 4, "character": column + 1}


def test_utf16_prefix_clamps_column() -> None:
    assert utf16_units_for_prefix("abc", 10) == 3
    assert utf16_units_for_prefix("abc", -2) == 0
    assert utf16_units_for_prefix("", 3) == 0


def test_log_message_unknown_type_falls_back_to_log() -> None:
    entry = LogMessage.from_params({"type": 42, "message": "hello"})
    assert entry == LogMessage(type=MessageType.LOG, message="hello")
    with pytest.raises(LspDecodeError):
        LogMessage.from_params("nope")


def test_completion_item_prefers_insert_text() -> None:
    item = CompletionItem.from_json({"label": "push", "insertText": "push(", "detail": "fn(&mut self, T)"})
    assert item.text_to_insert == "push("
    assert item.detail == "fn(&mut self, T)"
    assert CompletionItem.from_json({"label": "len"}).text_to_insert == "len"


def test_request_error_from_error_object() -> None:
    error = LspRequestError.from_error_object({"code": -32603, "message": "internal", "data": {"x": 1}})
    assert (error.code, error.data, str(error)) == (-32603, {"x": 1}, "internal")
    assert LspRequestError.from_error_object("weird").code is None
