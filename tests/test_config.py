"""Tests for environment-driven settings."""

import os

import pytest
from jsontalk.config import DEFAULT_MAX_LINE_BYTES, DEFAULT_PORT, Settings


@pytest.fixture
def clean_env(monkeypatch):
    """Isolate os.environ; load_dotenv writes into it."""
    env = {k: v for k, v in os.environ.items() if not k.startswith("JSONTALK_")}
    monkeypatch.setattr(os, "environ", env)
    return env


def test_defaults(clean_env, tmp_path):
    settings = Settings.from_env(tmp_path / "missing.env")
    assert settings.port == DEFAULT_PORT
    assert settings.max_line_bytes == DEFAULT_MAX_LINE_BYTES
    assert settings.log_level == "INFO"


def test_env_file(clean_env, tmp_path):
    env_file = tmp_path / ".env"
    env_file.write_text("JSONTALK_PORT=9001\nJSONTALK_LOG_LEVEL=debug\n")
    settings = Settings.from_env(env_file)
    assert settings.port == 9001
    assert settings.log_level == "DEBUG"


def test_environment_wins_over_file(clean_env, tmp_path):
    env_file = tmp_path / ".env"
    env_file.write_text("JSONTALK_HOST=file.example\n")
    clean_env["JSONTALK_HOST"] = "env.example"
    assert Settings.from_env(env_file).host == "env.example"


def test_bad_integer(clean_env, tmp_path):
    clean_env["JSONTALK_CONNECT_RETRIES"] = "many"
    with pytest.raises(ValueError, match="JSONTALK_CONNECT_RETRIES"):
        Settings.from_env(tmp_path / "missing.env")
