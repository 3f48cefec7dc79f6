"""Runtime settings shared by the gateway and the peer client.

Values come from ``JSONTALK_*`` environment variables, optionally loaded
from a ``.env`` file in the working directory.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

# Defaults
DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 8100
DEFAULT_MAX_LINE_BYTES = 1024 * 1024  # largest single message on a line transport
DEFAULT_CONNECT_RETRIES = 3


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None


@dataclass(slots=True)
class Settings:
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    max_line_bytes: int = DEFAULT_MAX_LINE_BYTES
    connect_retries: int = DEFAULT_CONNECT_RETRIES
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, env_file: str | os.PathLike | None = None) -> "Settings":
        """Build settings from the environment.

        Existing environment variables win over the ``.env`` file.
        """
        load_dotenv(env_file or os.path.join(Path.cwd(), ".env"))
        return cls(
            host=os.getenv("JSONTALK_HOST") or DEFAULT_HOST,
            port=_env_int("JSONTALK_PORT", DEFAULT_PORT),
            max_line_bytes=_env_int("JSONTALK_MAX_LINE_BYTES", DEFAULT_MAX_LINE_BYTES),
            connect_retries=_env_int("JSONTALK_CONNECT_RETRIES", DEFAULT_CONNECT_RETRIES),
            log_level=(os.getenv("JSONTALK_LOG_LEVEL") or "INFO").upper(),
        )
