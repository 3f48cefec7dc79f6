"""Local dispatch of incoming requests.

A published-services table maps service names to services; a service is
either a mapping of method name → callable (``Service`` builds one with a
decorator) or any object whose public callable attributes are its methods.

Methods may be plain functions or coroutine functions, or return any other
awaitable.  ``Dispatcher.handle`` awaits whatever comes back, so sync and
async methods share a single completion path.
"""

from __future__ import annotations

import inspect
import logging
from collections.abc import Mapping
from typing import Any, Callable, Iterator

from jsontalk.errors import MethodNotFoundError
from jsontalk.messages import ErrorInfo, Request, Response

log = logging.getLogger(__name__)

MethodFn = Callable[..., Any]


class Service(Mapping[str, MethodFn]):
    """A method name → callable table.

    Usage::

        calc = Service()

        @calc.method()
        def add(a, b):
            return a + b

        @calc.method("sleep")
        async def sleep_for(seconds):
            await anyio.sleep(seconds)
    """

    def __init__(self, methods: Mapping[str, MethodFn] | None = None) -> None:
        self._methods: dict[str, MethodFn] = dict(methods or {})

    # -- Registration --------------------------------------------------
    def method(self, name: str | None = None) -> Callable[[MethodFn], MethodFn]:
        """Decorator that publishes *fn* under *name* (default: its own name)."""

        def decorator(fn: MethodFn) -> MethodFn:
            key = name or fn.__name__
            if key in self._methods:
                log.warning("overwriting method %r", key)
            self._methods[key] = fn
            log.debug("registered method %r → %s", key, fn.__qualname__)
            return fn

        return decorator

    # -- Mapping -------------------------------------------------------
    def __getitem__(self, key: str) -> MethodFn:
        return self._methods[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._methods)

    def __len__(self) -> int:
        return len(self._methods)


def _find_method(service: Any, method: str) -> MethodFn | None:
    if isinstance(service, Mapping):
        fn = service.get(method)
    elif method.startswith("_"):
        return None
    else:
        fn = getattr(service, method, None)
    return fn if callable(fn) else None


class Dispatcher:
    """Turns incoming requests into responses using the published services."""

    def __init__(self, services: Mapping[str, Any] | None = None) -> None:
        self._services: Mapping[str, Any] = services if services is not None else {}

    # -- Lookup --------------------------------------------------------
    def lookup(self, service: str, method: str) -> MethodFn:
        """Return the callable for ``service.method``.

        Raises ``MethodNotFoundError`` if either part is not published.
        """
        target = self._services.get(service)
        if target is None:
            raise MethodNotFoundError(service, method, service_missing=True)
        fn = _find_method(target, method)
        if fn is None:
            raise MethodNotFoundError(service, method)
        return fn

    def is_published(self, service: str, method: str) -> bool:
        try:
            self.lookup(service, method)
        except MethodNotFoundError:
            return False
        return True

    @property
    def services(self) -> list[str]:
        return list(self._services.keys())

    # -- Dispatch ------------------------------------------------------
    async def invoke(self, request: Request) -> Any:
        """Call the target method and return its (awaited) result."""
        fn = self.lookup(request.service, request.method)
        outcome = fn(*request.params)
        if inspect.isawaitable(outcome):
            outcome = await outcome
        return outcome

    async def handle(self, request: Request) -> tuple[Response | None, ErrorInfo | None]:
        """Run *request* to completion.

        Returns ``(response, error)``: ``response`` is ``None`` for
        fire-and-forget requests, ``error`` is the captured failure if any.
        Cancellation is not an ``Exception`` and passes straight through.
        """
        log.debug("rpc ← %s.%s(id=%s)", request.service, request.method, request.id)
        try:
            result = await self.invoke(request)
        except Exception as exc:
            error = ErrorInfo.from_exception(exc)
            if request.id is None:
                return None, error
            return Response.fail(request.id, error), error

        if request.id is None:
            return None, None
        return Response.success(request.id, result), None
