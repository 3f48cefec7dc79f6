"""Session — one endpoint of a bidirectional jsontalk conversation.

A session owns the pending-call registry and the published services of
its peer.  Messages enter through ``feed_message`` and leave through the
``message_produced`` callback given at construction; what happens in
between (sockets, queues, a direct function call to another session) is
up to the caller.

Every inbound request runs in its own task of the session's task group,
so use the session as an async context manager::

    async with Session(transport.put, {"calc": calc}) as session:
        remote = session.connect_service("remote")
        await remote.call("ping")
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any, Callable

import anyio
from anyio.abc import TaskGroup

from jsontalk.client import MessageProducedFn, ServiceClient
from jsontalk.dispatcher import Dispatcher
from jsontalk.messages import ErrorInfo, MessageKind, Request, Response, parse_message
from jsontalk.pending import PendingCalls

log = logging.getLogger(__name__)

UnhandledErrorFn = Callable[[Request, ErrorInfo], None]


class Session:
    """Caller and callee at once: connect to remote services, serve local ones.

    Parameters
    ----------
    message_produced : callable
        Invoked with every outbound ``Request`` / ``Response``.
    published_services : mapping, optional
        Service name → service (mapping or object).  Empty for a pure client.
    on_unhandled_error : callable, optional
        Receives ``(request, error_info)`` when a fire-and-forget request
        fails.  Without it such failures are dropped silently.
    """

    def __init__(
        self,
        message_produced: MessageProducedFn,
        published_services: Mapping[str, Any] | None = None,
        *,
        on_unhandled_error: UnhandledErrorFn | None = None,
    ) -> None:
        self._message_produced = message_produced
        self._pending = PendingCalls()
        self._dispatcher = Dispatcher(published_services)
        self._on_unhandled_error = on_unhandled_error
        self._task_group: TaskGroup | None = None

    # -- Lifecycle -----------------------------------------------------

    async def __aenter__(self) -> "Session":
        if self._task_group is not None:
            raise RuntimeError("session is already running")
        task_group = anyio.create_task_group()
        await task_group.__aenter__()
        self._task_group = task_group
        return self

    async def __aexit__(self, *exc: Any) -> bool | None:
        """Wait for in-flight dispatches, then stop accepting requests.

        Requests fed while draining are still dispatched.
        """
        task_group = self._task_group
        if task_group is None:
            raise RuntimeError("session is not running")
        try:
            return await task_group.__aexit__(*exc)
        finally:
            self._task_group = None

    @property
    def running(self) -> bool:
        return self._task_group is not None

    def cancel(self) -> None:
        """Abort every in-flight dispatch, and the rest of the ``async with`` body.

        Callers of the aborted requests never get a response.
        """
        if self._task_group is not None:
            self._task_group.cancel_scope.cancel()

    # -- Public API ----------------------------------------------------

    def connect_service(self, name: str) -> ServiceClient:
        return ServiceClient(name, self._message_produced, self._pending)

    def feed_message(self, msg: Request | Response | dict[str, Any]) -> None:
        """Sole inbound entry point.

        Responses settle their pending call immediately; requests are
        dispatched in the background.  Raises ``ProtocolError`` for a
        response nobody is waiting for and ``ValueError`` for a malformed
        wire dict.
        """
        msg = parse_message(msg)
        if msg.kind is MessageKind.RESPONSE:
            self._settle(msg)
        else:
            self._dispatch(msg)

    @property
    def pending_calls(self) -> int:
        return len(self._pending)

    @property
    def dispatcher(self) -> Dispatcher:
        return self._dispatcher

    # -- Internals -----------------------------------------------------

    def _settle(self, response: Response) -> None:
        if response.error is not None:
            self._pending.reject(response.id, response.error)
        else:
            self._pending.resolve(response.id, response.result)

    def _dispatch(self, request: Request) -> None:
        if self._task_group is None:
            raise RuntimeError("session is not running; use 'async with session'")
        self._task_group.start_soon(self._run_request, request)

    async def _run_request(self, request: Request) -> None:
        response, error = await self._dispatcher.handle(request)
        if response is not None:
            log.debug("rpc → response(id=%s)", response.id)
            self._message_produced(response)
        elif error is not None and self._on_unhandled_error is not None:
            self._on_unhandled_error(request, error)
