"""Exception types raised by jsontalk."""

from __future__ import annotations

from jsontalk.messages import ErrorInfo


class JsonTalkError(Exception):
    """Base class for all jsontalk errors."""


class MethodNotFoundError(JsonTalkError):
    """Raised when a request names a service or method that is not published."""

    def __init__(self, service: str, method: str, *, service_missing: bool = False) -> None:
        self.service = service
        self.method = method
        if service_missing:
            msg = f"Service not found: {service}"
        else:
            msg = f"Method not found: {service}.{method}"
        super().__init__(msg)


class RemoteCallError(JsonTalkError):
    """Raised by ``ServiceClient.call`` when the remote peer reports a failure.

    Carries the remote ``ErrorInfo``; ``str(exc)`` is the remote message.
    """

    def __init__(self, error: ErrorInfo) -> None:
        self.error = error
        super().__init__(error.message)

    @property
    def message(self) -> str:
        return self.error.message

    @property
    def remote_stack(self) -> str | None:
        return self.error.stack


class ProtocolError(JsonTalkError):
    """Raised when a response has no pending call to settle.

    Either the id was already resolved, was never issued by this session,
    or belongs to another session.
    """

    def __init__(self, call_id: int) -> None:
        self.call_id = call_id
        super().__init__(f"No pending call with id {call_id}")
