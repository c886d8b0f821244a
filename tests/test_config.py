"""
Tests for configuration and structured logging
"""

import json
import logging
from pathlib import Path

from wallet_ledger import config as config_module
from wallet_ledger.config import WalletConfig, get_config, reload_config
from wallet_ledger.logging_config import JSONFormatter, log_action, setup_logging


class TestConfig:
    """Test environment-driven configuration"""

    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("WALLET_DATABASE_URL", raising=False)
        monkeypatch.delenv("WALLET_DEFAULT_PAGE_SIZE", raising=False)
        settings = WalletConfig(_env_file=None)
        assert settings.database_url == "sqlite:///wallet.db"
        assert settings.default_page_size == 10
        assert settings.max_transaction_amount == "999999.99"

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("WALLET_DATABASE_URL", "memory://")
        monkeypatch.setenv("WALLET_LOCK_TIMEOUT_SECONDS", "1.5")
        monkeypatch.setenv("WALLET_ENABLE_AUDIT_LOGGING", "false")
        settings = WalletConfig(_env_file=None)
        assert settings.database_url == "memory://"
        assert settings.lock_timeout_seconds == 1.5
        assert settings.enable_audit_logging is False

    def test_reload_config(self, monkeypatch):
        original = get_config()
        monkeypatch.setenv("WALLET_API_PORT", "9100")
        try:
            reloaded = reload_config()
            assert reloaded.api_port == 9100
            assert get_config() is reloaded
        finally:
            config_module.config = original


class _Capture(logging.Handler):
    def __init__(self):
        super().__init__()
        self.records = []

    def emit(self, record):
        self.records.append(record)


class TestStructuredLogging:
    """Test JSON log output"""

    def setup_method(self):
        self.logger = logging.getLogger("wallet_ledger.tests")
        self.logger.setLevel(logging.DEBUG)
        self.handler = _Capture()
        self.logger.addHandler(self.handler)

    def teardown_method(self):
        self.logger.removeHandler(self.handler)

    def test_log_action_fields(self):
        log_action(
            self.logger, "info", "Top-up successful",
            account_id="acc-1", action="process_top_up",
            resource="transaction:1", extra={"amount": "5.00"}
        )

        entry = json.loads(JSONFormatter().format(self.handler.records[0]))
        assert entry["message"] == "Top-up successful"
        assert entry["level"] == "INFO"
        assert entry["account_id"] == "acc-1"
        assert entry["action"] == "process_top_up"
        assert entry["resource"] == "transaction:1"
        assert entry["extra"] == {"amount": "5.00"}
        assert "correlation_id" not in entry

    def test_disabled_level_skipped(self):
        self.logger.setLevel(logging.WARNING)
        log_action(self.logger, "info", "ignored")
        assert self.handler.records == []

    def test_exception_included(self):
        try:
            raise RuntimeError("boom")
        except RuntimeError:
            log_action(self.logger, "error", "failed", exc_info=True)

        entry = json.loads(JSONFormatter().format(self.handler.records[0]))
        assert "RuntimeError: boom" in entry["exception"]

    def test_setup_logging_replaces_handlers(self):
        logger = setup_logging("DEBUG", logger_name="wallet_ledger.tests.setup")
        setup_logging("DEBUG", logger_name="wallet_ledger.tests.setup", log_format="text")
        assert len(logger.handlers) == 1
        assert logger.level == logging.DEBUG
        assert logger.propagate is False


class TestPackaging:
    """Test project metadata"""

    def test_no_working_documents_packaged(self):
        pyproject = (Path(__file__).resolve().parent.parent / "pyproject.toml").read_text()
        assert 'name = "wallet-ledger"' in pyproject
        assert "SPEC_FULL.md" not in pyproject
        assert "readme" not in pyproject
