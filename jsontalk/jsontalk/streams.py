"""Transport glue: run a ``Session`` over an anyio object stream.

* ``JsonLineStream`` — newline-delimited JSON documents over a byte stream
  (TCP, pipes, anything anyio wraps as a ``ByteStream``).
* ``Peer`` — pumps documents between an object stream and a session.

The session's outbound callback is synchronous, so outbound messages go
through an in-memory buffer that a writer task drains into the stream.
"""

from __future__ import annotations

import json
import logging
import math
from collections.abc import Mapping
from typing import Any

import anyio
from anyio.abc import ByteStream, ObjectStream, TaskGroup
from anyio.streams.buffered import BufferedByteReceiveStream

from jsontalk.client import ServiceClient
from jsontalk.config import DEFAULT_MAX_LINE_BYTES
from jsontalk.messages import ErrorInfo, Message, MessageKind, Response
from jsontalk.session import Session, UnhandledErrorFn

log = logging.getLogger(__name__)

_DISCONNECTED = (anyio.EndOfStream, anyio.ClosedResourceError, anyio.BrokenResourceError)


class JsonLineStream(ObjectStream[Any]):
    """One JSON document per ``\\n``-terminated line."""

    def __init__(self, stream: ByteStream, max_line_bytes: int = DEFAULT_MAX_LINE_BYTES) -> None:
        self._stream = stream
        self._reader = BufferedByteReceiveStream(stream)
        self._max_line_bytes = max_line_bytes

    async def receive(self) -> Any:
        """Return the next decoded document.

        Raises ``EndOfStream`` once the other side closes, ``ValueError``
        for a line that is not JSON or is longer than ``max_line_bytes``
        (the line is consumed either way), and ``DelimiterNotFound`` when
        ``max_line_bytes`` arrive without a newline.
        """
        while True:
            try:
                line = await self._reader.receive_until(b"\n", self._max_line_bytes)
            except anyio.IncompleteRead:
                raise anyio.EndOfStream from None
            if len(line) > self._max_line_bytes:
                raise ValueError(
                    f"line of {len(line)} bytes exceeds max_line_bytes={self._max_line_bytes}"
                )
            if line.strip():
                return json.loads(line)

    async def send(self, item: Any) -> None:
        data = json.dumps(item, separators=(",", ":")).encode("utf-8") + b"\n"
        await self._stream.send(data)

    async def send_eof(self) -> None:
        await self._stream.send_eof()

    async def aclose(self) -> None:
        await self._stream.aclose()


class Peer:
    """A session attached to one connection.

    ``await peer.run()`` serves until the remote side hangs up; or use
    ``async with Peer(...) as peer`` to run it in the background while
    calling out through ``peer.connect_service``.
    """

    drain_timeout = 5.0  # seconds to flush queued messages on exit

    def __init__(
        self,
        stream: ObjectStream[Any],
        published_services: Mapping[str, Any] | None = None,
        *,
        buffer_size: float = math.inf,
        on_unhandled_error: UnhandledErrorFn | None = None,
    ) -> None:
        self._stream = stream
        self._outbox_send, self._outbox_recv = anyio.create_memory_object_stream[dict[str, Any]](
            max_buffer_size=buffer_size,
        )
        self.session = Session(
            self._enqueue,
            published_services,
            on_unhandled_error=on_unhandled_error,
        )
        self._task_group: TaskGroup | None = None
        self._writer_done: anyio.Event | None = None

    # -- Public API ----------------------------------------------------

    def connect_service(self, name: str) -> ServiceClient:
        return self.session.connect_service(name)

    async def run(self) -> None:
        """Pump messages until the connection ends.

        In-flight dispatches are allowed to finish and their responses are
        flushed before returning.
        """
        async with anyio.create_task_group() as tg:
            tg.start_soon(self._write_loop)
            try:
                async with self.session:
                    await self._read_loop()
            finally:
                self._outbox_send.close()

    # -- Lifecycle -----------------------------------------------------

    async def __aenter__(self) -> "Peer":
        self._writer_done = anyio.Event()
        task_group = anyio.create_task_group()
        await task_group.__aenter__()
        self._task_group = task_group
        task_group.start_soon(self.run)
        return self

    async def __aexit__(self, *exc: Any) -> bool | None:
        task_group, self._task_group = self._task_group, None
        if task_group is None:
            raise RuntimeError("peer is not running")
        # flush what is already queued, then stop
        self._outbox_send.close()
        if self._writer_done is not None:
            with anyio.move_on_after(self.drain_timeout):
                await self._writer_done.wait()
        task_group.cancel_scope.cancel()
        try:
            return await task_group.__aexit__(*exc)
        finally:
            await self._stream.aclose()

    # -- Internals -----------------------------------------------------

    def _enqueue(self, msg: Message) -> None:
        try:
            self._outbox_send.send_nowait(msg.to_dict())
        except (anyio.BrokenResourceError, anyio.ClosedResourceError):
            if msg.kind is MessageKind.REQUEST:
                raise
            log.warning("connection gone, dropping response(id=%s)", msg.id)

    async def _read_loop(self) -> None:
        while True:
            try:
                raw = await self._stream.receive()
            except _DISCONNECTED:
                log.info("peer hung up")
                return
            except anyio.DelimiterNotFound:
                # no way to resynchronise with the line framing
                log.warning("closing connection: unterminated line over the size limit")
                return
            except ValueError as exc:
                log.warning("dropping undecodable message: %s", exc)
                continue
            try:
                self.session.feed_message(raw)
            except ValueError as exc:
                log.warning("dropping malformed message: %s", exc)

    async def _write_loop(self) -> None:
        try:
            async with self._outbox_recv:
                async for doc in self._outbox_recv:
                    try:
                        await self._send(doc)
                    except _DISCONNECTED:
                        log.warning("connection lost, discarding outbound messages")
                        return
        finally:
            if self._writer_done is not None:
                self._writer_done.set()

    async def _send(self, doc: dict[str, Any]) -> None:
        try:
            await self._stream.send(doc)
        except (TypeError, ValueError) as exc:
            log.exception("cannot encode outbound message(id=%s)", doc.get("id"))
            if doc.get("id") is None:
                return
            failure = Response.fail(doc["id"], ErrorInfo.from_exception(exc))
            if "service" in doc:
                # our own call: fail it locally instead of leaving it pending
                self.session.feed_message(failure)
            else:
                await self._stream.send(failure.to_dict())
