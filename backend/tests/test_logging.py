"""
Tests for logging configuration.
"""

import logging

from orgadmin.core.logging import LIBRARY_LOG_LEVELS, configure_logging, get_logger


def test_configure_logging_sets_root_and_library_levels():
    root = logging.getLogger()
    previous = root.level
    try:
        configure_logging("debug")
        assert root.level == logging.DEBUG
        for name, level in LIBRARY_LOG_LEVELS.items():
            assert logging.getLogger(name).level == level

        configure_logging("chatty")
        assert root.level == logging.INFO
    finally:
        root.setLevel(previous)


def test_get_logger_uses_module_name():
    assert get_logger("orgadmin.db.executor").name == "orgadmin.db.executor"
