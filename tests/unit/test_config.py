from __future__ import annotations

import logging
from pathlib import Path

import pytest
from cryptography.fernet import Fernet

from common.config import (
    DEFAULT_API_URL,
    ENV_API_URL,
    ENV_FERNET_KEY,
    ENV_LOG_LEVEL,
    ENV_SESSION_FILE,
    ENV_TIMEOUT,
    Settings,
)
from common.logging_config import PACKAGE_LOGGERS, setup_logging


@pytest.fixture
def clean_env(monkeypatch):
    for name in (ENV_API_URL, ENV_SESSION_FILE, ENV_FERNET_KEY, ENV_TIMEOUT, ENV_LOG_LEVEL):
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


def test_defaults(clean_env):
    s = Settings.from_env()
    assert s.api_url == DEFAULT_API_URL
    assert s.session_file == Path.home() / ".exogena" / "session.json"
    assert s.fernet_key is None
    assert s.timeout == 15.0
    assert s.log_level == logging.WARNING


def test_env_overrides(clean_env, tmp_path):
    clean_env.setenv(ENV_API_URL, "https://api.example.com/api/")
    clean_env.setenv(ENV_SESSION_FILE, str(tmp_path / "s.json"))
    key = Fernet.generate_key().decode()
    clean_env.setenv(ENV_FERNET_KEY, key)
    clean_env.setenv(ENV_TIMEOUT, "2.5")
    clean_env.setenv(ENV_LOG_LEVEL, "debug")

    s = Settings.from_env()
    assert s.api_url == "https://api.example.com/api"
    assert s.session_file == tmp_path / "s.json"
    assert s.fernet_key == key
    assert s.timeout == 2.5
    assert s.log_level == logging.DEBUG


def test_empty_values_fall_back_to_defaults(clean_env):
    clean_env.setenv(ENV_API_URL, "")
    clean_env.setenv(ENV_TIMEOUT, "")
    s = Settings.from_env()
    assert s.api_url == DEFAULT_API_URL
    assert s.timeout == 15.0


@pytest.mark.parametrize(
    "name,value",
    [
        (ENV_TIMEOUT, "soon"),
        (ENV_TIMEOUT, "0"),
        (ENV_LOG_LEVEL, "LOUD"),
        (ENV_FERNET_KEY, "not-a-key"),
    ],
)
def test_invalid_values_name_the_variable(clean_env, name, value):
    clean_env.setenv(name, value)
    with pytest.raises(RuntimeError, match=name):
        Settings.from_env()


def test_setup_logging_is_idempotent(tmp_path):
    log_file = tmp_path / "console.log"
    setup_logging(logging.INFO, str(log_file))
    setup_logging(logging.INFO, str(log_file))

    for name in PACKAGE_LOGGERS:
        lg = logging.getLogger(name)
        assert len(lg.handlers) == 2
        assert lg.propagate is False
        assert lg.level == logging.INFO

    logging.getLogger("auth.store").info("hola")
    for name in PACKAGE_LOGGERS:
        for h in logging.getLogger(name).handlers:
            h.flush()
    assert "auth.store - INFO - hola" in log_file.read_text(encoding="utf-8")

    # Leave the loggers as other tests expect them
    for name in PACKAGE_LOGGERS:
        lg = logging.getLogger(name)
        for h in lg.handlers:
            h.close()
        lg.handlers.clear()
        lg.propagate = True
        lg.setLevel(logging.NOTSET)
