"""Tests for logging setup."""

import logging

import pytest

from hubspot_sync.logger import setup_logging


@pytest.fixture(autouse=True)
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    httpx_level = logging.getLogger("httpx").level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)
    logging.getLogger("httpx").setLevel(httpx_level)


class TestSetupLogging:
    def test_explicit_level(self):
        setup_logging("debug")

        assert logging.getLogger().level == logging.DEBUG

    def test_level_from_environment(self, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "WARNING")

        setup_logging()

        assert logging.getLogger().level == logging.WARNING

    def test_unknown_level_falls_back_to_info(self, monkeypatch):
        monkeypatch.delenv("LOG_LEVEL", raising=False)

        setup_logging("chatty")

        assert logging.getLogger().level == logging.INFO

    def test_http_client_is_quieted(self):
        setup_logging("DEBUG")

        assert logging.getLogger("httpx").level == logging.WARNING
