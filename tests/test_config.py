"""Tests for configuration loading."""

import json
import logging
from datetime import timedelta

import pytest

from caseguard.config import CONFIG_FILE, CoordinationConfig, load_config
from caseguard.domain.exceptions import ConfigurationError
from caseguard.logging_setup import setup_logging


class TestLoadConfig:
    """Tests for layering defaults, caseguard.json and environment."""

    def test_defaults(self, tmp_path):
        config = load_config(tmp_path, environ={})

        assert config == CoordinationConfig()
        assert config.lock_timeout == 5.0
        assert config.allocation_staleness == timedelta(hours=1)
        assert config.claim_staleness == timedelta(minutes=30)

    def test_case_file(self, tmp_path):
        (tmp_path / CONFIG_FILE).write_text(json.dumps({"lock_timeout": 2, "batch_size": 8}))

        config = load_config(tmp_path, environ={})

        assert config.lock_timeout == 2.0
        assert config.batch_size == 8

    def test_environment_wins(self, tmp_path):
        (tmp_path / CONFIG_FILE).write_text(json.dumps({"lock_timeout": 2}))

        config = load_config(tmp_path, environ={"CASEGUARD_LOCK_TIMEOUT": "9.5"})

        assert config.lock_timeout == 9.5

    def test_no_case_dir(self):
        assert load_config(environ={"CASEGUARD_BATCH_SIZE": "2"}).batch_size == 2

    def test_unknown_key(self, tmp_path):
        (tmp_path / CONFIG_FILE).write_text(json.dumps({"lock_timout": 2}))
        with pytest.raises(ConfigurationError, match="unknown setting"):
            load_config(tmp_path, environ={})

    @pytest.mark.parametrize(
        "values",
        [
            {"lock_timeout": "soon"},
            {"lock_timeout": True},
            {"batch_size": 2.5},
            {"batch_size": 0},
            {"claim_stale_after": -1},
        ],
    )
    def test_bad_values(self, tmp_path, values):
        (tmp_path / CONFIG_FILE).write_text(json.dumps(values))
        with pytest.raises(ConfigurationError):
            load_config(tmp_path, environ={})

    def test_invalid_json(self, tmp_path):
        (tmp_path / CONFIG_FILE).write_text("{")
        with pytest.raises(ConfigurationError, match="Invalid JSON"):
            load_config(tmp_path, environ={})

    def test_not_an_object(self, tmp_path):
        (tmp_path / CONFIG_FILE).write_text("[]")
        with pytest.raises(ConfigurationError, match="Expected dict"):
            load_config(tmp_path, environ={})


class TestSetupLogging:
    def test_repeated_setup_does_not_stack_handlers(self, tmp_path):
        setup_logging(logger_name="caseguard.test")
        logger = setup_logging(log_file=str(tmp_path / "logs" / "run.log"), logger_name="caseguard.test")

        assert len(logger.handlers) == 2
        assert not logger.propagate

    def test_file_handler_records_debug(self, tmp_path):
        log_file = tmp_path / "run.log"
        logger = setup_logging(log_file=str(log_file), logger_name="caseguard.test")

        logger.debug("lock contention")
        for handler in logger.handlers:
            handler.flush()

        assert "DEBUG    | caseguard.test | lock contention" in log_file.read_text()

    def test_console_level(self):
        quiet = setup_logging(logger_name="caseguard.test")
        assert quiet.handlers[0].level == logging.INFO
        loud = setup_logging(verbose=True, logger_name="caseguard.test")
        assert loud.handlers[0].level == logging.DEBUG
