"""Peer client — connects to a gateway and talks jsontalk over TCP.

* ``service(name)``   → ``ServiceClient`` for a service the gateway publishes
* ``published_services`` → services this side exposes back to the gateway

Connection establishment is retried with exponential backoff; calls
themselves are never retried.
**Never** imports from ``gateway/``.

Run directly for a quick demo (start ``python -m gateway.server
--transport tcp`` first)::

    python -m peer.client
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

import anyio
from anyio.abc import SocketStream
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from jsontalk import RemoteCallError, ServiceClient
from jsontalk.config import DEFAULT_MAX_LINE_BYTES, Settings
from jsontalk.streams import JsonLineStream, Peer

log = logging.getLogger(__name__)


class PeerClient:
    """Async TCP client hosting its own session.

    Parameters
    ----------
    host, port : str, int
        Gateway address.
    published_services : mapping, optional
        Services the gateway may call back into.
    max_retries : int
        Max connection attempts.
    max_line_bytes : int
        Largest message accepted from the gateway.
    """

    def __init__(
        self,
        host: str = "127.0.0.1",
        port: int = 8100,
        published_services: Mapping[str, Any] | None = None,
        max_retries: int = 3,
        max_line_bytes: int = DEFAULT_MAX_LINE_BYTES,
    ) -> None:
        self.host = host
        self.port = port
        self.max_retries = max_retries
        self.max_line_bytes = max_line_bytes
        self._published_services = published_services
        self._peer: Peer | None = None

    @classmethod
    def from_settings(
        cls, settings: Settings, published_services: Mapping[str, Any] | None = None
    ) -> "PeerClient":
        return cls(
            host=settings.host,
            port=settings.port,
            published_services=published_services,
            max_retries=settings.connect_retries,
            max_line_bytes=settings.max_line_bytes,
        )

    # -- Internal retry helper -----------------------------------------

    def _get_retrier(self) -> AsyncRetrying:
        return AsyncRetrying(
            stop=stop_after_attempt(self.max_retries),
            wait=wait_exponential(multiplier=0.5, max=10),
            retry=retry_if_exception_type(OSError),
            reraise=True,
            sleep=anyio.sleep,
        )

    async def _connect(self) -> SocketStream:
        async for attempt in self._get_retrier():
            with attempt:
                log.debug(
                    "connecting to %s:%s (attempt %d)",
                    self.host,
                    self.port,
                    attempt.retry_state.attempt_number,
                )
                stream = await anyio.connect_tcp(self.host, self.port)
        return stream

    # -- Lifecycle -----------------------------------------------------

    async def open(self) -> None:
        if self._peer is not None:
            raise RuntimeError("client is already open")
        stream = await self._connect()
        peer = Peer(JsonLineStream(stream, self.max_line_bytes), self._published_services)
        await peer.__aenter__()
        self._peer = peer
        log.info("connected to %s:%s", self.host, self.port)

    async def close(self) -> None:
        peer, self._peer = self._peer, None
        if peer is not None:
            await peer.__aexit__(None, None, None)
            log.info("disconnected from %s:%s", self.host, self.port)

    async def __aenter__(self) -> "PeerClient":
        await self.open()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.close()

    # -- Public API ----------------------------------------------------

    def service(self, name: str) -> ServiceClient:
        if self._peer is None:
            raise RuntimeError("client is not open")
        return self._peer.connect_service(name)


# ── Demo entrypoint ──────────────────────────────────────────────────


async def _demo() -> None:
    settings = Settings.from_env()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    async with PeerClient.from_settings(settings) as client:
        calc = client.service("calc")

        print("── add ──")
        print(f"  result: {await calc.call('add', 17, 25)}")

        print("── echo ──")
        print(f"  result: {await calc.call('echo', {'msg': 'hello from peer'})}")

        print("── sleep_echo (concurrent) ──")
        results: dict[int, Any] = {}

        async def one(i: int) -> None:
            results[i] = await calc.call("sleep_echo", i, 0.2)

        async with anyio.create_task_group() as tg:
            for i in range(3):
                tg.start_soon(one, i)
        print(f"  results: {results}")

        print("── fail ──")
        try:
            await calc.call("fail", "boom")
        except RemoteCallError as exc:
            print(f"  error: {exc}")

        print("── notify ──")
        calc.send("echo", "nobody listens")

        print("── done ──")


if __name__ == "__main__":
    anyio.run(_demo)
