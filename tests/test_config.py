"""Tests for settings and logging setup."""

import logging

import pytest
import structlog
from pydantic import ValidationError

from btcverify import verify_message
from btcverify.config import Settings, get_settings
from btcverify.logging import LOGGER_NAME, setup_logging


@pytest.fixture(autouse=True)
def _clear_settings_cache():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


class TestSettings:
    def test_defaults(self, monkeypatch):
        for name in ("NETWORK", "LOOSE_BIP137_ENABLED", "HEADER_RECOVERY_ONLY", "LOG_LEVEL", "LOG_FORMAT"):
            monkeypatch.delenv(f"BTCVERIFY_{name}", raising=False)
        settings = Settings(_env_file=None)
        assert settings.network is None
        assert settings.loose_bip137_enabled is True
        assert settings.header_recovery_only is True
        assert settings.log_format == "json"

    def test_env_prefix(self, monkeypatch):
        monkeypatch.setenv("BTCVERIFY_NETWORK", "Regtest")
        monkeypatch.setenv("BTCVERIFY_LOOSE_BIP137_ENABLED", "false")
        settings = get_settings()
        assert settings.network == "regtest"
        assert settings.loose_bip137_enabled is False

    def test_unknown_network(self):
        with pytest.raises(ValidationError, match="Unknown network"):
            Settings(network="moonnet")

    def test_cached(self):
        assert get_settings() is get_settings()


class TestLogging:
    @pytest.fixture(autouse=True)
    def _reset_structlog(self):
        stdlib_logger = logging.getLogger(LOGGER_NAME)
        handlers = list(stdlib_logger.handlers)
        yield
        structlog.reset_defaults()
        stdlib_logger.handlers[:] = handlers
        stdlib_logger.setLevel(logging.NOTSET)

    def test_silent_until_configured(self, capsys):
        verify_message("m", "not a signature", "1A1zP1eP5QGefi2DMPTfTL5SLmv7DivfNa")
        verify_message(
            "not the signed message",
            "H+MnkbI81kkWRUys5B6j/svR3I5rQCdjkCH6/Jv88/Q+BoIX6n7hP9Tj/kRqmnfdwLLYv27/pM1hlsWISMVwuBs=",
            "19QWXpMXeLkoEKEJv2xo9rn8wkPCyxACSX",
        )
        captured = capsys.readouterr()
        assert captured.out == ""
        assert captured.err == ""

    def test_null_handler_installed(self):
        assert any(isinstance(h, logging.NullHandler) for h in logging.getLogger(LOGGER_NAME).handlers)

    def test_level_applied(self):
        setup_logging(Settings(log_level="debug", log_format="console"))
        assert logging.getLogger(LOGGER_NAME).level == logging.DEBUG

    def test_handler_added_once(self):
        settings = Settings(log_level="info")
        setup_logging(settings)
        setup_logging(settings)
        handlers = logging.getLogger(LOGGER_NAME).handlers
        assert sum(isinstance(h, logging.StreamHandler) for h in handlers) == 1

    def test_json_events(self, capsys):
        setup_logging(Settings(log_level="debug", log_format="json"))
        structlog.get_logger(LOGGER_NAME).debug("strategy_matched", strategy="BIP-137")
        err = capsys.readouterr().err
        assert '"event": "strategy_matched"' in err
        assert '"strategy": "BIP-137"' in err
