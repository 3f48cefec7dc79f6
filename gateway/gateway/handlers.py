"""Example published services.

``SERVICES`` is the table the server hands to every connection's session.
"""

from __future__ import annotations

import logging
import time

import anyio

from jsontalk import Service

log = logging.getLogger(__name__)

calc = Service()
clock = Service()

# ── calc ─────────────────────────────────────────────────────────────


@calc.method()
def add(a: float, b: float) -> float:
    """Add two numbers."""
    return a + b


@calc.method()
def echo(*args):
    """Return the arguments unchanged (a single argument is unwrapped)."""
    if len(args) == 1:
        return args[0]
    return list(args)


@calc.method()
async def sleep_echo(value, delay: float = 0.1):
    """Return *value* after *delay* seconds."""
    await anyio.sleep(delay)
    return value


@calc.method()
def fail(message: str = "") -> None:
    """Always raises; an empty *message* exercises the generic error text."""
    raise RuntimeError(message)


# ── clock ────────────────────────────────────────────────────────────


@clock.method()
def now() -> float:
    return time.time()


SERVICES = {
    "calc": calc,
    "clock": clock,
}
