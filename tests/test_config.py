"""
Tests for environment-based configuration and logging setup
"""

import json
import logging

from investment_engine import config as config_module
from investment_engine.config import EngineConfig, get_config, reload_config
from investment_engine.logging_config import JSONFormatter, get_logger, log_action, setup_logging


class TestEngineConfig:
    """Defaults and environment overrides"""

    def test_defaults(self, monkeypatch):
        for key in ("INVEST_WITHDRAWAL_FEE_PERCENT", "INVEST_DATABASE_URL", "INVEST_MAX_BULK_SIZE"):
            monkeypatch.delenv(key, raising=False)
        config = EngineConfig(_env_file=None)
        assert config.database_url == "memory://"
        assert config.withdrawal_fee_percent == "3"
        assert config.default_rejection_reason == "Rejected by administrator"
        assert config.auto_confirm_balance_deposits is True
        assert config.max_bulk_size == 500
        assert config.api_port == 8090

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("INVEST_WITHDRAWAL_FEE_PERCENT", "2.5")
        monkeypatch.setenv("INVEST_AUTO_CONFIRM_BALANCE_DEPOSITS", "false")
        monkeypatch.setenv("invest_max_bulk_size", "10")

        config = EngineConfig(_env_file=None)

        assert config.withdrawal_fee_percent == "2.5"
        assert config.auto_confirm_balance_deposits is False
        assert config.max_bulk_size == 10

    def test_reload_config(self, monkeypatch):
        original = config_module.config
        monkeypatch.setenv("INVEST_API_PORT", "9100")
        try:
            reloaded = reload_config()
            assert reloaded.api_port == 9100
            assert get_config() is reloaded
        finally:
            config_module.config = original


class TestLogging:
    """Structured JSON logging"""

    def test_json_formatter_includes_structured_fields(self):
        logger = get_logger("investment_engine.test")
        record = logger.makeRecord(logger.name, logging.INFO, __name__, 0, "Transaction created", (), None)
        record.user_id = "admin-1"
        record.action = "approve"
        record.extra = {"transaction_id": "tx-1"}

        entry = json.loads(JSONFormatter().format(record))

        assert entry["message"] == "Transaction created"
        assert entry["level"] == "INFO"
        assert entry["user_id"] == "admin-1"
        assert entry["action"] == "approve"
        assert entry["extra"] == {"transaction_id": "tx-1"}
        assert "resource" not in entry

    def test_log_action_respects_level(self):
        logger = setup_logging("WARNING", logger_name="investment_engine.test_level")
        records = []

        class Collector(logging.Handler):
            def emit(self, record):
                records.append(record)

        logger.addHandler(Collector())
        log_action(logger, "info", "ignored")
        log_action(logger, "warning", "kept", action="conflict", resource="transaction:tx-1")

        assert [r.getMessage() for r in records] == ["kept"]
        assert records[0].resource == "transaction:tx-1"

    def test_text_format(self):
        logger = setup_logging("INFO", logger_name="investment_engine.test_text", log_format="text")
        assert not isinstance(logger.handlers[0].formatter, JSONFormatter)
