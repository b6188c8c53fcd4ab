from __future__ import annotations

import io
import json

import pytest

from tedit.lsp.errors import LspDecodeError, LspFramingError
from tedit.lsp.json_rpc import (
    LspMessageParser,
    encode_lsp_message,
    parse_server_message,
    read_lsp_message,
)
from tedit.lsp.types import Notification, Response, ServerRequest


def _frame(body: bytes, header: bytes | None = None) -> bytes:
    if header is None:
        header = f"Content-Length: {len(body)}\r\n\r\n".encode("ascii")
    return header + body


def test_encode_declares_exact_byte_length() -> None:
    payload = {"jsonrpc": "2.0", "method": "textDocument/didChange", "params": {"text": "π → λ"}}
    raw = encode_lsp_message(payload)
    header, body = raw.split(b"\r\n\r\n", 1)
    assert header == f"Content-Length: {len(body)}".encode("ascii")
    assert len(body) > len(payload["params"]["text"])
    assert json.loads(body.decode("utf-8")) == payload


@pytest.mark.parametrize(
    "payload",
    [
        {},
        {"jsonrpc": "2.0", "id": 1, "result": None},
        {"nested": {"list": [1, 2.5, True, None, "x"], "unicode": "日本語"}},
    ],
)
def test_read_decodes_what_encode_wrote(payload: dict) -> None:
    stream = io.BytesIO(encode_lsp_message(payload))
    assert read_lsp_message(stream) == payload
    assert read_lsp_message(stream) is None


def test_read_returns_none_at_clean_end_of_stream() -> None:
    assert read_lsp_message(io.BytesIO(b"")) is None


def test_read_skips_other_headers() -> None:
    body = b'{"id":3,"result":{}}'
    header = f"Content-Type: application/vscode-jsonrpc\r\nContent-Length: {len(body)}\r\n\r\n".encode()
    assert read_lsp_message(io.BytesIO(_frame(body, header))) == {"id": 3, "result": {}}


def test_read_rejects_header_without_content_length() -> None:
    with pytest.raises(LspFramingError, match="Content-Length"):
        read_lsp_message(io.BytesIO(b"Foo: bar\r\n\r\n{}"))


def test_read_content_length_key_is_case_sensitive() -> None:
    with pytest.raises(LspFramingError):
        read_lsp_message(io.BytesIO(b"content-length: 2\r\n\r\n{}"))


def test_read_stream_closed_inside_header_is_framing_error() -> None:
    with pytest.raises(LspFramingError, match="header"):
        read_lsp_message(io.BytesIO(b"Content-Length: 10\r\n"))


def test_read_stream_closed_inside_body_is_framing_error() -> None:
    with pytest.raises(LspFramingError, match="body"):
        read_lsp_message(io.BytesIO(b"Content-Length: 10\r\n\r\n{}"))


def test_read_rejects_non_object_payload() -> None:
    with pytest.raises(LspDecodeError, match="object"):
        read_lsp_message(io.BytesIO(_frame(b"[]")))


def test_parser_handles_chunked_input() -> None:
    first = encode_lsp_message({"id": 1, "result": "a"})
    second = encode_lsp_message({"method": "window/logMessage", "params": {"type": 3, "message": "hi"}})
    data = first + second
    parser = LspMessageParser()
    messages = []
    for index in range(0, len(data), 7):
        messages.extend(parser.feed(data[index : index + 7]))
    assert messages == [
        {"id": 1, "result": "a"},
        {"method": "window/logMessage", "params": {"type": 3, "message": "hi"}},
    ]
    assert parser.at_boundary()


def test_parser_reports_partial_message() -> None:
    parser = LspMessageParser()
    assert parser.feed(b"Content-Length: 20\r\n\r\n{\"id\"") == []
    assert not parser.at_boundary()
    parser.reset()
    assert parser.at_boundary()


def test_parser_drops_undecodable_body_and_continues(log_records) -> None:
    parser = LspMessageParser()
    data = _frame(b"{not json") + encode_lsp_message({"id": 2, "result": 1})
    assert parser.feed(data) == [{"id": 2, "result": 1}]
    assert any("undecodable" in record["message"] for record in log_records)


def test_parser_keeps_error_for_missing_content_length() -> None:
    parser = LspMessageParser()
    assert parser.feed(b"X-Other: 1\r\n\r\n{}") == []
    assert isinstance(parser.error, LspFramingError)
    assert not parser.at_boundary()
    with pytest.raises(LspFramingError):
        parser.feed(b"")


def test_parser_returns_messages_framed_before_bad_header() -> None:
    parser = LspMessageParser()
    data = encode_lsp_message({"id": 1, "result": []}) + b"Bogus: x\r\n\r\n{}"
    assert parser.feed(data) == [{"id": 1, "result": []}]
    assert parser.error is not None
    assert "Content-Length" in str(parser.error)


def test_bare_lf_headers_are_accepted_by_both_readers() -> None:
    data = b"Content-Length: 2\n\n{}" + b"Content-Length: 8\n\n{\"id\":1}"
    parser = LspMessageParser()
    assert parser.feed(data) == [{}, {"id": 1}]
    assert parser.at_boundary()

    stream = io.BytesIO(data)
    assert read_lsp_message(stream) == {}
    assert read_lsp_message(stream) == {"id": 1}
    assert read_lsp_message(stream) is None


def test_parse_response_before_notification() -> None:
    message = parse_server_message({"jsonrpc": "2.0", "id": 4, "result": None})
    assert message == Response(id=4, result=None)
    assert not message.is_error


def test_parse_error_response() -> None:
    message = parse_server_message({"jsonrpc": "2.0", "id": 5, "error": {"code": -32600, "message": "bad"}})
    assert isinstance(message, Response)
    assert message.is_error


def test_parse_notification_and_server_request() -> None:
    notification = parse_server_message({"method": "window/logMessage", "params": {"type": 4, "message": "x"}})
    assert notification == Notification(method="window/logMessage", params={"type": 4, "message": "x"})
    request = parse_server_message({"id": "abc", "method": "workspace/configuration", "params": {}})
    assert request == ServerRequest(id="abc", method="workspace/configuration", params={})


@pytest.mark.parametrize(
    "payload",
    [
        [],
        {"jsonrpc": "2.0"},
        {"id": 1},
        {"id": "not-a-number", "result": 1},
        {"id": True, "result": 1},
        {"id": 1.9, "result": 1},
        {"id": "3", "result": 1},
        {"method": 7},
    ],
)
def test_parse_rejects_unknown_shapes(payload: object) -> None:
    with pytest.raises(LspDecodeError):
        parse_server_message(payload)
