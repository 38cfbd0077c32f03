import json
import logging

import pytest

from nozbe_client.utils.logger import (
    LoggerConfig, PerformanceLogger, initialize_logging, get_log_files, log_api_request, mask_credentials
)


pytestmark = pytest.mark.unit


def test_mask_credentials():
    url = "http://nozbe.test/api/actions/what-next/key-abc123/"
    assert mask_credentials(url) == "http://nozbe.test/api/actions/what-next/key-****/"
    assert mask_credentials("http://nozbe.test/api/login/email-a/") == "http://nozbe.test/api/login/email-a/"
    assert mask_credentials("http://nozbe.test/api/login/email-a/password-S3CRETPW/") == \
        "http://nozbe.test/api/login/email-a/password-****/"


def test_initialize_logging_creates_handlers(tmp_path):
    logger = initialize_logging(log_dir=str(tmp_path), level="INFO")

    assert logger.name == "nozbe_client"
    handler_types = {type(handler).__name__ for handler in logger.handlers}
    assert "TimedRotatingFileHandler" in handler_types
    assert "RotatingFileHandler" in handler_types
    assert "StreamHandler" in handler_types
    assert set(get_log_files()) == {"main", "debug", "error", "config"}


def test_debug_mode_adds_debug_file(tmp_path):
    logger = initialize_logging(log_dir=str(tmp_path), level="DEBUG", debug_mode=True)
    logger.debug("hello")

    for handler in logger.handlers:
        handler.flush()
    debug_files = list(tmp_path.glob("nozbe_client_debug_*.log"))
    assert debug_files
    assert "hello" in debug_files[0].read_text(encoding="utf-8")


def test_logging_config_file_is_merged(tmp_path):
    (tmp_path / "logging_config.json").write_text(json.dumps({"backup_count": 2}), encoding="utf-8")

    config = LoggerConfig(str(tmp_path)).load_config()

    assert config["backup_count"] == 2
    assert config["log_level"] == "INFO"


def test_invalid_logging_config_falls_back(tmp_path):
    (tmp_path / "logging_config.json").write_text("{broken", encoding="utf-8")

    config_manager = LoggerConfig(str(tmp_path))
    assert config_manager.load_config() == config_manager.default_config


def test_log_api_request_masks_key(caplog):
    with caplog.at_level(logging.INFO, logger="nozbe_client.api"):
        log_api_request("GET", "http://nozbe.test/api/projects/key-secret/", 200, 0.1, response_size=12)

    assert "key-****/" in caplog.text
    assert "secret" not in caplog.text


def test_performance_logger_measures_duration():
    with PerformanceLogger("operation") as perf:
        pass
    assert perf.duration >= 0.0
    assert perf.end_time is not None


def test_performance_logger_hides_credentials_in_errors(caplog):
    with caplog.at_level(logging.WARNING, logger="nozbe_client.performance"):
        with pytest.raises(RuntimeError):
            with PerformanceLogger("login"):
                raise RuntimeError("failed: /api/login/email-a/password-S3CRETPW/")

    assert "S3CRETPW" not in caplog.text
    assert "password-****/" in caplog.text
