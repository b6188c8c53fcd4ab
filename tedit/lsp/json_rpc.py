"""JSON-RPC framing helpers for LSP transport over stdio."""

from __future__ import annotations

import json
import re
from typing import Any, BinaryIO

from loguru import logger

from .errors import LspDecodeError, LspFramingError
from .types import Notification, Response, ServerMessage, ServerRequest

CONTENT_LENGTH = "Content-Length"
# Header blocks end with a blank line; bare LF line endings are tolerated.
HEADER_TERMINATOR = re.compile(rb"\r?\n\r?\n")


def encode_lsp_message(payload: dict[str, Any]) -> bytes:
    body = json.dumps(payload, separators=(",", ":"), ensure_ascii=False).encode("utf-8")
    header = f"{CONTENT_LENGTH}: {len(body)}\r\n\r\n".encode("ascii")
    return header + body


def _content_length_from_line(line: str) -> int | None:
    key, sep, value = line.partition(": ")
    if not sep or key != CONTENT_LENGTH:
        return None
    try:
        length = int(value.strip())
    except ValueError as exc:
        raise LspFramingError(f"Invalid {CONTENT_LENGTH} value: {value.strip()!r}") from exc
    if length < 0:
        raise LspFramingError(f"Negative {CONTENT_LENGTH}: {length}")
    return length


def _decode_body(body: bytes) -> dict[str, Any]:
    try:
        decoded = json.loads(body.decode("utf-8"))
    except (UnicodeDecodeError, ValueError) as exc:
        raise LspDecodeError(f"Message body is not valid JSON: {exc}") from exc
    if not isinstance(decoded, dict):
        raise LspDecodeError(f"Message payload must be a JSON object, got {type(decoded).__name__}")
    return decoded


def read_lsp_message(stream: BinaryIO) -> dict[str, Any] | None:
    """Read one framed message from a blocking binary stream.

    Returns ``None`` when the stream ends cleanly between messages. A stream
    that ends inside a header block or body raises :class:`LspFramingError`.
    """
    content_length: int | None = None
    saw_header = False
    while True:
        raw_line = stream.readline()
        if not raw_line:
            if saw_header:
                raise LspFramingError("Stream closed inside a header block")
            return None
        saw_header = True
        line = raw_line.decode("ascii", errors="replace").strip()
        if not line:
            break
        length = _content_length_from_line(line)
        if length is not None:
            content_length = length

    if content_length is None:
        raise LspFramingError(f"Header block without {CONTENT_LENGTH}")

    body = bytearray()
    while len(body) < content_length:
        chunk = stream.read(content_length - len(body))
        if not chunk:
            raise LspFramingError(
                f"Stream closed after {len(body)} of {content_length} body bytes"
            )
        body.extend(chunk)
    return _decode_body(bytes(body))


class LspMessageParser:
    """Incremental parser for `Content-Length` framed LSP messages.

    A framing failure stops parsing but does not discard the messages framed
    before it in the same chunk: :meth:`feed` returns those and keeps the
    failure in :attr:`error`. Any later :meth:`feed` raises it.
    """

    def __init__(self) -> None:
        self._buffer = bytearray()
        self._expected_length: int | None = None
        self.error: LspFramingError | None = None

    def reset(self) -> None:
        self._buffer.clear()
        self._expected_length = None
        self.error = None

    def at_boundary(self) -> bool:
        return self.error is None and not self._buffer and self._expected_length is None

    def feed(self, data: bytes | bytearray) -> list[dict[str, Any]]:
        if self.error is not None:
            raise self.error
        if data:
            self._buffer.extend(data)

        messages: list[dict[str, Any]] = []
        while True:
            if self._expected_length is None:
                match = HEADER_TERMINATOR.search(self._buffer)
                if match is None:
                    break

                header_blob = bytes(self._buffer[: match.start()])
                del self._buffer[: match.end()]
                try:
                    self._expected_length = self._parse_content_length(header_blob)
                except LspFramingError as exc:
                    self.error = exc
                    break

            if len(self._buffer) < self._expected_length:
                break

            body = bytes(self._buffer[: self._expected_length])
            del self._buffer[: self._expected_length]
            self._expected_length = None

            try:
                messages.append(_decode_body(body))
            except LspDecodeError as exc:
                logger.warning("Dropping undecodable LSP message: {}", exc)
        return messages

    @staticmethod
    def _parse_content_length(header_blob: bytes) -> int:
        header_text = header_blob.decode("ascii", errors="replace")
        for raw_line in header_text.splitlines():
            length = _content_length_from_line(raw_line.strip())
            if length is not None:
                return length
        raise LspFramingError(f"Header block without {CONTENT_LENGTH}: {header_text!r}")


def _request_id(raw_id: object) -> int:
    if isinstance(raw_id, bool) or not isinstance(raw_id, int):
        raise LspDecodeError(f"Invalid response id: {raw_id!r}")
    return raw_id


def parse_server_message(payload: object) -> ServerMessage:
    """Classify a decoded payload as a response, server request or notification."""
    if not isinstance(payload, dict):
        raise LspDecodeError(f"Message payload must be a JSON object, got {type(payload).__name__}")

    # Responses are the only shape with an id and no method.
    if "id" in payload and "method" not in payload:
        if "result" not in payload and "error" not in payload:
            raise LspDecodeError("Response carries neither result nor error")
        return Response(
            id=_request_id(payload.get("id")),
            result=payload.get("result"),
            error=payload.get("error"),
        )

    method = payload.get("method")
    if not isinstance(method, str) or not method:
        raise LspDecodeError(f"Unrecognized message shape: keys={sorted(payload)}")
    params = payload.get("params")
    if "id" in payload:
        return ServerRequest(id=payload.get("id"), method=method, params=params)
    return Notification(method=method, params=params)
