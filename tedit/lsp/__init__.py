from .channel import Channel, ChannelClosedError
from .correlator import PendingReply, RequestCorrelator
from .errors import (
    LspDecodeError,
    LspError,
    LspFramingError,
    LspRequestError,
    LspSpawnError,
    LspTransportError,
)
from .json_rpc import LspMessageParser, encode_lsp_message, parse_server_message, read_lsp_message
from .lsp_client import LspClient, normalize_completion_result
from .process import LspProcess
from .router import NotificationRouter
from .session import LspSession, SessionState

__all__ = [
    "Channel",
    "ChannelClosedError",
    "LspClient",
    "LspDecodeError",
    "LspError",
    "LspFramingError",
    "LspMessageParser",
    "LspProcess",
    "LspRequestError",
    "LspSession",
    "LspSpawnError",
    "LspTransportError",
    "NotificationRouter",
    "PendingReply",
    "RequestCorrelator",
    "SessionState",
    "encode_lsp_message",
    "normalize_completion_result",
    "parse_server_message",
    "read_lsp_message",
]
