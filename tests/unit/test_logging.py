"""Unit tests for utils/logging.py."""

import logging
import pytest
from logging.handlers import RotatingFileHandler

from launcher.utils.logging import setup_logger


@pytest.mark.unit
class TestSetupLogger:

    @pytest.fixture
    def logger_name(self, request):
        """Unique logger name per test; handlers are closed afterwards."""
        name = f"test_launcher_logger_{request.node.name}"
        yield name
        lg = logging.getLogger(name)
        for h in list(lg.handlers):
            h.close()
            lg.removeHandler(h)

    def _file_handlers(self, logger):
        return [h for h in logger.handlers if isinstance(h, RotatingFileHandler)]

    def test_creates_log_directory(self, tmp_path, logger_name):
        log_dir = tmp_path / "logs" / "nested"

        setup_logger(logger_name, str(log_dir / "launcher.log"))

        assert log_dir.is_dir()

    def test_defaults(self, tmp_path, logger_name):
        logger = setup_logger(logger_name, str(tmp_path / "launcher.log"))

        assert logger.name == logger_name
        assert logger.level == logging.INFO
        handler = self._file_handlers(logger)[0]
        assert handler.maxBytes == 10 * 1024 * 1024
        assert handler.backupCount == 3
        # file handler plus console
        assert len(logger.handlers) == 2

    def test_custom_rotation_and_level(self, tmp_path, logger_name):
        logger = setup_logger(
            logger_name, str(tmp_path / "launcher.log"),
            max_bytes=1024, backup_count=5, level=logging.DEBUG,
        )

        handler = self._file_handlers(logger)[0]
        assert handler.maxBytes == 1024
        assert handler.backupCount == 5
        assert logger.level == logging.DEBUG

    def test_console_disabled(self, tmp_path, logger_name):
        logger = setup_logger(logger_name, str(tmp_path / "launcher.log"), console=False)

        assert logger.handlers == self._file_handlers(logger)

    def test_no_duplicate_handlers_on_second_call(self, tmp_path, logger_name):
        first = setup_logger(logger_name, str(tmp_path / "launcher.log"))
        count = len(first.handlers)

        second = setup_logger(logger_name, str(tmp_path / "launcher.log"))

        assert first is second
        assert len(second.handlers) == count

    def test_child_loggers_reach_file(self, tmp_path, logger_name):
        log_file = tmp_path / "launcher.log"
        logger = setup_logger(logger_name, str(log_file), console=False)

        logging.getLogger(f"{logger_name}.state").info("Step: CHECK_ENVIRONMENT")
        for h in logger.handlers:
            h.flush()

        content = log_file.read_text(encoding="utf-8")
        assert f"[INFO] {logger_name}.state: Step: CHECK_ENVIRONMENT" in content
