"""
Testes para configure_logging.
"""

import logging

import pytest
import structlog

from eureka_client.logging_config import configure_logging


@pytest.fixture
def restore_logging():
    root = logging.getLogger()
    level, handlers = root.level, root.handlers[:]
    yield
    root.setLevel(level)
    root.handlers[:] = handlers
    structlog.reset_defaults()


class TestConfigureLogging:

    def test_sets_level_and_single_handler(self, restore_logging):
        configure_logging(log_level="debug")

        root = logging.getLogger()
        assert root.level == logging.DEBUG
        assert len(root.handlers) == 1
        assert logging.getLogger("httpx").level == logging.WARNING

    def test_unknown_level_falls_back_to_info(self, restore_logging):
        configure_logging(log_level="chatty")

        assert logging.getLogger().level == logging.INFO

    @pytest.mark.parametrize("log_format, renderer", [
        ("json", structlog.processors.JSONRenderer),
        ("console", structlog.dev.ConsoleRenderer),
    ])
    def test_renderer_follows_format(self, restore_logging, log_format, renderer):
        configure_logging(log_format=log_format)

        processors = structlog.get_config()["processors"]
        assert isinstance(processors[-1], renderer)
