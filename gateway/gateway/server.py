"""Gateway — serves the example services to remote peers.

Two transports, one session per connection:

* ``/ws`` WebSocket route on a Starlette ASGI app (JSON text frames)
* raw TCP via ``serve_tcp`` (newline-delimited JSON)

Run directly::

    python -m gateway.server --transport ws
    python -m gateway.server --transport tcp --port 8101
"""

from __future__ import annotations

import argparse
import functools
import logging
from collections.abc import Mapping
from typing import Any

import anyio
from anyio.abc import ObjectStream, SocketAttribute, SocketStream, TaskStatus
from starlette.applications import Starlette
from starlette.routing import WebSocketRoute
from starlette.websockets import WebSocket, WebSocketDisconnect, WebSocketState

from jsontalk import ErrorInfo, Request
from jsontalk.config import Settings
from jsontalk.streams import JsonLineStream, Peer

from gateway.handlers import SERVICES

log = logging.getLogger(__name__)


# ── Helpers ──────────────────────────────────────────────────────────


def _log_unhandled(request: Request, error: ErrorInfo) -> None:
    """Fire-and-forget failures have no caller to report to; log them here."""
    log.warning("notify %s.%s failed: %s", request.service, request.method, error.message)


class WebSocketStream(ObjectStream[Any]):
    """Adapts a Starlette ``WebSocket`` to an anyio object stream of JSON documents."""

    def __init__(self, websocket: WebSocket) -> None:
        self._ws = websocket

    async def receive(self) -> Any:
        try:
            return await self._ws.receive_json()
        except WebSocketDisconnect:
            raise anyio.EndOfStream from None
        except (KeyError, TypeError) as exc:
            # binary frame: receive_json only reads text frames
            raise ValueError("expected a JSON text frame") from exc

    async def send(self, item: Any) -> None:
        if self._ws.application_state != WebSocketState.CONNECTED:
            raise anyio.ClosedResourceError
        try:
            await self._ws.send_json(item)
        except (WebSocketDisconnect, RuntimeError, OSError) as exc:
            raise anyio.BrokenResourceError from exc

    async def send_eof(self) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._ws.application_state == WebSocketState.CONNECTED:
            await self._ws.close()


# ── Endpoints ────────────────────────────────────────────────────────


async def ws_endpoint(websocket: WebSocket) -> None:
    """Host one session for the lifetime of a WebSocket connection."""
    services = websocket.app.state.services
    await websocket.accept()
    log.info("ws peer connected from %s", websocket.client)
    stream = WebSocketStream(websocket)
    try:
        await Peer(stream, services, on_unhandled_error=_log_unhandled).run()
    except Exception:
        log.exception("ws peer %s failed", websocket.client)
        await stream.aclose()
    log.info("ws peer %s disconnected", websocket.client)


async def handle_tcp(stream: SocketStream, services: Mapping[str, Any], max_line_bytes: int) -> None:
    """Host one session for the lifetime of a TCP connection."""
    remote = stream.extra(SocketAttribute.remote_address, None)
    log.info("tcp peer connected from %s", remote)
    async with stream:
        try:
            await Peer(
                JsonLineStream(stream, max_line_bytes),
                services,
                on_unhandled_error=_log_unhandled,
            ).run()
        except Exception:
            log.exception("tcp peer %s failed", remote)
    log.info("tcp peer %s disconnected", remote)


async def serve_tcp(
    settings: Settings,
    services: Mapping[str, Any] = SERVICES,
    *,
    task_status: TaskStatus[int] = anyio.TASK_STATUS_IGNORED,
) -> None:
    """Accept TCP peers forever.

    Reports the bound port through *task_status*, so ``port=0`` works
    with ``await tg.start(serve_tcp, settings)``.
    """
    listener = await anyio.create_tcp_listener(local_host=settings.host, local_port=settings.port)
    port = listener.extra(SocketAttribute.local_port)
    log.info("tcp gateway listening on %s:%s", settings.host, port)
    task_status.started(port)
    async with listener:
        await listener.serve(
            functools.partial(handle_tcp, services=services, max_line_bytes=settings.max_line_bytes)
        )


# ── App factory ──────────────────────────────────────────────────────


def create_app(services: Mapping[str, Any] = SERVICES) -> Starlette:
    app = Starlette(
        debug=False,
        routes=[WebSocketRoute("/ws", ws_endpoint)],
    )
    app.state.services = services
    return app


app = create_app()


# ── Runnable entrypoint ──────────────────────────────────────────────


def main(argv: list[str] | None = None) -> None:
    settings = Settings.from_env()

    parser = argparse.ArgumentParser(description="jsontalk gateway")
    parser.add_argument("--host", type=str, default=settings.host, help="Interface to bind")
    parser.add_argument("--port", type=int, default=settings.port, help="Port to bind")
    parser.add_argument(
        "--transport",
        choices=("ws", "tcp"),
        default="ws",
        help="WebSocket (uvicorn) or newline-delimited JSON over TCP",
    )
    args = parser.parse_args(argv)
    settings.host = args.host
    settings.port = args.port

    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    if args.transport == "tcp":
        anyio.run(serve_tcp, settings)
        return

    import uvicorn

    uvicorn.run(
        "gateway.server:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
