"""Remote proxy — the local handle for one service published by the peer.

* ``send(method, *args)`` → fire-and-forget, no response ever comes back
* ``call(method, *args)`` → correlated, returns the remote result
"""

from __future__ import annotations

import logging
from typing import Any, Callable

from jsontalk.messages import Message, Request
from jsontalk.pending import PendingCall, PendingCalls

log = logging.getLogger(__name__)

MessageProducedFn = Callable[[Message], None]


class ServiceClient:
    """Proxy for the remote service *name*.

    Shares the owning session's outbound callback and pending-call
    registry; create one through ``Session.connect_service``.
    """

    def __init__(
        self,
        name: str,
        message_produced: MessageProducedFn,
        pending: PendingCalls,
    ) -> None:
        self._name = name
        self._message_produced = message_produced
        self._pending = pending

    @property
    def name(self) -> str:
        return self._name

    def send(self, method: str, *args: Any) -> None:
        """Invoke *method* without waiting for, or ever seeing, its outcome."""
        log.debug("rpc → %s.%s (notify)", self._name, method)
        self._message_produced(Request(service=self._name, method=method, params=list(args)))

    async def call(self, method: str, *args: Any) -> Any:
        """Invoke *method* and return its result.

        Raises ``RemoteCallError`` if the remote side reports a failure.
        There is no timeout; wrap in ``anyio.fail_after`` if you need one.
        """
        outcome = PendingCall()
        call_id = self._pending.allocate()
        # must be registered before emitting: in-process transports can
        # deliver the response before _message_produced returns
        self._pending.register(call_id, outcome.resolve, outcome.reject)
        log.debug("rpc → %s.%s(id=%s)", self._name, method, call_id)
        try:
            self._message_produced(
                Request(service=self._name, method=method, params=list(args), id=call_id)
            )
        except Exception:
            self._pending.discard(call_id)
            raise
        return await outcome.wait()

    def __repr__(self) -> str:
        return f"ServiceClient({self._name!r})"
