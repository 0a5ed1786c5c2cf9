import logging

import pytest

from portier.config.logging import UVICORN_LOGGERS, setup_logging


@pytest.mark.unit
class TestSetupLogging:
    def test_root_level_follows_setting(self) -> None:
        setup_logging(log_level="WARNING", json_output=True)
        assert logging.getLogger().level == logging.WARNING
        setup_logging(log_level="INFO", json_output=True)
        assert logging.getLogger().level == logging.INFO

    def test_unknown_level_falls_back_to_info(self) -> None:
        setup_logging(log_level="chatty", json_output=True)
        assert logging.getLogger().level == logging.INFO

    def test_uvicorn_loggers_propagate_to_root(self) -> None:
        logging.getLogger("uvicorn.error").addHandler(logging.NullHandler())
        setup_logging(log_level="DEBUG", json_output=True)
        for name in UVICORN_LOGGERS:
            uvicorn_logger = logging.getLogger(name)
            assert uvicorn_logger.handlers == []
            assert uvicorn_logger.propagate is True
            assert uvicorn_logger.level == logging.DEBUG
        setup_logging(log_level="INFO", json_output=True)
