"""Tests for the mathpad logger tree."""

import logging

import pytest

from mathpad_pkg.logging_config import ROOT_LOGGER, get_logger, setup_logging


@pytest.fixture
def root_logger():
    root = logging.getLogger(ROOT_LOGGER)
    saved = (list(root.handlers), root.level, root.propagate)
    yield root
    for handler in list(root.handlers):
        if handler not in saved[0]:
            root.removeHandler(handler)
            handler.close()
    for handler in saved[0]:
        if handler not in root.handlers:
            root.addHandler(handler)
    root.setLevel(saved[1])
    root.propagate = saved[2]


class TestGetLogger:
    """Test get_logger()."""

    def test_component_names(self):
        assert get_logger("solver").name == "mathpad.solver"
        assert get_logger().name == "mathpad"


class TestSetupLogging:
    """Test setup_logging()."""

    def test_repeated_setup_replaces_handlers(self, root_logger):
        setup_logging("INFO")
        setup_logging("DEBUG")
        streams = [h for h in root_logger.handlers if not isinstance(h, logging.NullHandler)]
        assert len(streams) == 1
        assert root_logger.level == logging.DEBUG

    def test_unknown_level_means_warning(self, root_logger):
        setup_logging("chatty")
        assert root_logger.level == logging.WARNING

    def test_log_file_gets_component_records(self, root_logger, tmp_path):
        log_file = tmp_path / "mathpad.log"
        setup_logging("INFO", str(log_file))
        get_logger("solver").info("Root %s found", 3)
        get_logger("engine").debug("hidden")
        text = log_file.read_text(encoding="utf-8")
        assert "[INFO] solver: Root 3 found" in text
        assert "mathpad.solver" not in text
        assert "hidden" not in text
