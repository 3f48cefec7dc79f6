"""Pending-call registry.

Tracks in-flight correlated calls of one session, keyed by a locally
generated id.  All access happens from the session's single event-loop
thread, so a plain dict is enough.
"""

from __future__ import annotations

import itertools
import logging
from typing import Any, Callable

import anyio

from jsontalk.errors import ProtocolError, RemoteCallError
from jsontalk.messages import ErrorInfo

log = logging.getLogger(__name__)

ResolveFn = Callable[[Any], None]
RejectFn = Callable[[ErrorInfo], None]


class PendingCall:
    """The awaitable outcome of one correlated call."""

    def __init__(self) -> None:
        self._done = anyio.Event()
        self._value: Any = None
        self._error: ErrorInfo | None = None

    @property
    def done(self) -> bool:
        return self._done.is_set()

    def resolve(self, value: Any = None) -> None:
        self._value = value
        self._done.set()

    def reject(self, error: ErrorInfo) -> None:
        self._error = error
        self._done.set()

    async def wait(self) -> Any:
        """Block until settled; return the value or raise ``RemoteCallError``."""
        await self._done.wait()
        if self._error is not None:
            raise RemoteCallError(self._error)
        return self._value


class PendingCalls:
    """id → (resolve, reject) for every call still awaiting its response.

    Ids come from a strictly increasing counter and are never reused, even
    after their entry is gone.
    """

    def __init__(self) -> None:
        self._ids = itertools.count()
        self._entries: dict[int, tuple[ResolveFn, RejectFn]] = {}

    def allocate(self) -> int:
        return next(self._ids)

    def register(self, call_id: int, resolve: ResolveFn, reject: RejectFn) -> None:
        self._entries[call_id] = (resolve, reject)

    def discard(self, call_id: int) -> None:
        """Forget *call_id* without settling it."""
        self._entries.pop(call_id, None)

    def _pop(self, call_id: int) -> tuple[ResolveFn, RejectFn]:
        try:
            return self._entries.pop(call_id)
        except KeyError:
            raise ProtocolError(call_id) from None

    def resolve(self, call_id: int, value: Any = None) -> None:
        resolve, _ = self._pop(call_id)
        log.debug("call %s resolved", call_id)
        resolve(value)

    def reject(self, call_id: int, error: ErrorInfo) -> None:
        _, reject = self._pop(call_id)
        log.debug("call %s rejected: %s", call_id, error.message)
        reject(error)

    # -- Introspection -------------------------------------------------
    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, call_id: object) -> bool:
        return call_id in self._entries

    @property
    def ids(self) -> list[int]:
        return list(self._entries.keys())
