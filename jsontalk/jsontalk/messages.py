"""Wire-format models for the jsontalk protocol.

Pure data — no I/O, no dispatch.  Every peer imports these; the transport
calls ``to_dict`` / ``parse_message`` at the edges and the core only ever
sees tagged ``Request`` / ``Response`` instances.

Wire shape::

    Request:  {"id"?: int, "service": str, "method": str, "params": [...]}
    Response: {"id": int, "result"?: Any, "error"?: {"message": str, "stack"?: str}}
"""

from __future__ import annotations

import enum
import traceback
from dataclasses import dataclass, field
from typing import Any, ClassVar, Union

UNKNOWN_ERROR = "Unknown Error"


class MessageKind(enum.Enum):
    REQUEST = "request"
    RESPONSE = "response"


def _check_id(raw_id: Any, *, required: bool) -> int | None:
    if raw_id is None:
        if required:
            raise ValueError("missing 'id' field")
        return None
    # bool is an int subclass but never a valid correlation id
    if isinstance(raw_id, bool) or not isinstance(raw_id, int):
        raise ValueError("'id' must be an integer")
    return raw_id


# ── Models ───────────────────────────────────────────────────────────
@dataclass(slots=True)
class ErrorInfo:
    """Serialisable snapshot of a failure, never the failure itself."""

    message: str
    stack: str | None = None

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {"message": self.message}
        if self.stack is not None:
            d["stack"] = self.stack
        return d

    @classmethod
    def from_dict(cls, raw: Any) -> "ErrorInfo":
        if not isinstance(raw, dict):
            raise ValueError("'error' must be a JSON object")
        message = raw.get("message")
        if not isinstance(message, str):
            raise ValueError("missing or invalid 'error.message' field")
        stack = raw.get("stack")
        if stack is not None and not isinstance(stack, str):
            raise ValueError("'error.stack' must be a string")
        return cls(message=message, stack=stack)

    @classmethod
    def from_exception(cls, exc: BaseException) -> "ErrorInfo":
        """Capture *exc* as message plus formatted traceback."""
        stack = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
        return cls(message=str(exc) or UNKNOWN_ERROR, stack=stack)


@dataclass(slots=True)
class Request:
    """Invocation of ``service.method(*params)`` on the remote peer.

    ``id is None`` marks a fire-and-forget request: the receiver never
    answers it, whatever the outcome.
    """

    service: str
    method: str
    params: list[Any] = field(default_factory=list)
    id: int | None = None

    kind: ClassVar[MessageKind] = MessageKind.REQUEST

    @property
    def expects_response(self) -> bool:
        return self.id is not None

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {}
        if self.id is not None:
            d["id"] = self.id
        d["service"] = self.service
        d["method"] = self.method
        d["params"] = list(self.params)
        return d

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "Request":
        """Parse a raw dict into a request — raises ``ValueError`` on bad input."""
        if not isinstance(raw, dict):
            raise ValueError("request must be a JSON object")
        service = raw.get("service")
        if not isinstance(service, str):
            raise ValueError("missing or invalid 'service' field")
        method = raw.get("method")
        if not isinstance(method, str):
            raise ValueError("missing or invalid 'method' field")
        params = raw.get("params", [])
        if not isinstance(params, list):
            raise ValueError("'params' must be a JSON array")
        req_id = _check_id(raw.get("id"), required=False)
        return cls(service=service, method=method, params=params, id=req_id)


@dataclass(slots=True)
class Response:
    """Outcome of a correlated request.

    At most one of ``result`` / ``error`` is set; neither means the call
    succeeded without a value.
    """

    id: int
    result: Any = None
    error: ErrorInfo | None = None

    kind: ClassVar[MessageKind] = MessageKind.RESPONSE

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {"id": self.id}
        if self.error is not None:
            d["error"] = self.error.to_dict()
        elif self.result is not None:
            d["result"] = self.result
        return d

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "Response":
        """Parse a raw dict into a response — raises ``ValueError`` on bad input."""
        if not isinstance(raw, dict):
            raise ValueError("response must be a JSON object")
        resp_id = _check_id(raw.get("id"), required=True)
        error = raw.get("error")
        if error is not None:
            return cls(id=resp_id, error=ErrorInfo.from_dict(error))
        return cls(id=resp_id, result=raw.get("result"))

    # -- Factories -----------------------------------------------------
    @classmethod
    def success(cls, resp_id: int, result: Any = None) -> "Response":
        return cls(id=resp_id, result=result)

    @classmethod
    def fail(cls, resp_id: int, error: ErrorInfo) -> "Response":
        return cls(id=resp_id, error=error)


Message = Union[Request, Response]


def parse_message(raw: Any) -> Message:
    """Turn a decoded wire document into a tagged message.

    Already-tagged messages are returned unchanged.  For dicts, the presence
    of ``service`` marks a request; this is the only place the wire's
    structural discriminant is applied.
    """
    if isinstance(raw, (Request, Response)):
        return raw
    if not isinstance(raw, dict):
        raise ValueError("message must be a JSON object")
    if "service" in raw:
        return Request.from_dict(raw)
    return Response.from_dict(raw)
