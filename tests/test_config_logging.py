"""Tests for runtime configuration and logging setup."""

import logging

import pytest

from pathtracer import config
from pathtracer.logging_config import LOGGER_NAME, get_logger, setup_logging


@pytest.fixture
def restore_package_logger():
    logger = logging.getLogger(LOGGER_NAME)
    handlers = list(logger.handlers)
    level = logger.level
    propagate = logger.propagate
    yield logger
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    for handler in handlers:
        logger.addHandler(handler)
    logger.setLevel(level)
    logger.propagate = propagate


class TestRuntimeConfig:
    def test_defaults(self):
        runtime = config.RuntimeConfig()
        assert runtime.arch == "cpu"
        assert runtime.random_seed == 0
        assert runtime.debug is False

    def test_unknown_arch_rejected(self):
        with pytest.raises(ValueError, match="Unknown arch"):
            config.RuntimeConfig(arch="tpu")

    def test_init_runtime_passes_settings(self, monkeypatch):
        calls = []
        monkeypatch.setattr(config.ti, "init", lambda **kwargs: calls.append(kwargs))
        config.init_runtime(config.RuntimeConfig(arch="vulkan", random_seed=9, debug=True))
        assert calls == [{"arch": config.ti.vulkan, "random_seed": 9, "debug": True}]


class TestLogging:
    def test_level_by_name(self, restore_package_logger):
        logger = setup_logging("debug")
        assert logger is restore_package_logger
        assert logger.level == logging.DEBUG
        assert logger.propagate is False

    def test_unknown_level_rejected(self, restore_package_logger):
        with pytest.raises(ValueError):
            setup_logging("chatty")

    def test_repeated_setup_replaces_handlers(self, restore_package_logger):
        setup_logging("INFO")
        logger = setup_logging(logging.WARNING)
        assert len(logger.handlers) == 1
        assert logger.level == logging.WARNING

    def test_log_file(self, restore_package_logger, tmp_path):
        log_file = tmp_path / "render.log"
        logger = setup_logging("INFO", str(log_file))
        assert len(logger.handlers) == 2
        get_logger("tests").info("hello from the renderer")
        for handler in logger.handlers:
            handler.flush()
        text = log_file.read_text()
        assert "pathtracer.tests - INFO - hello from the renderer" in text

    def test_child_logger_name(self):
        assert get_logger("cli").name == "pathtracer.cli"
