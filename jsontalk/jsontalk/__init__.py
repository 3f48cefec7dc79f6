"""jsontalk — bidirectional JSON RPC over any message channel."""

from jsontalk.client import ServiceClient
from jsontalk.dispatcher import Dispatcher, Service
from jsontalk.errors import (
    JsonTalkError,
    MethodNotFoundError,
    ProtocolError,
    RemoteCallError,
)
from jsontalk.messages import (
    UNKNOWN_ERROR,
    ErrorInfo,
    Message,
    MessageKind,
    Request,
    Response,
    parse_message,
)
from jsontalk.pending import PendingCall, PendingCalls
from jsontalk.session import Session

__all__ = [
    "Session",
    "ServiceClient",
    "Service",
    "Dispatcher",
    "PendingCall",
    "PendingCalls",
    "Request",
    "Response",
    "ErrorInfo",
    "Message",
    "MessageKind",
    "parse_message",
    "UNKNOWN_ERROR",
    "JsonTalkError",
    "MethodNotFoundError",
    "ProtocolError",
    "RemoteCallError",
]
