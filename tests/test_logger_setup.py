import logging

import pytest

from vgif.logger_setup import ColoredFormatter, get_logger, setup_logging


@pytest.fixture
def restore_logging():
    vgif_logger = logging.getLogger("vgif")
    root = logging.getLogger()
    saved = (vgif_logger.handlers[:], vgif_logger.level, vgif_logger.propagate,
             root.handlers[:], root.level)
    yield
    for handler in vgif_logger.handlers:
        if handler not in saved[0]:
            handler.close()
    vgif_logger.handlers[:], vgif_logger.level, vgif_logger.propagate = saved[0], saved[1], saved[2]
    root.handlers[:], root.level = saved[3], saved[4]


def _console_handler():
    return next(h for h in logging.getLogger("vgif").handlers
                if isinstance(h, logging.StreamHandler) and not isinstance(h, logging.FileHandler))


def test_console_handler_is_colored(restore_logging):
    setup_logging()

    handler = _console_handler()
    assert isinstance(handler.formatter, ColoredFormatter)
    assert handler.level == logging.INFO


def test_verbose_lowers_console_level(restore_logging):
    setup_logging(verbose=True)
    assert _console_handler().level == logging.DEBUG


def test_log_file_receives_plain_debug_records(restore_logging, tmp_path):
    log_file = tmp_path / "logs" / "vgif.log"

    setup_logging(log_file=str(log_file))
    get_logger("segment_cache").debug("cache probe")
    for handler in logging.getLogger("vgif").handlers:
        handler.flush()

    text = log_file.read_text(encoding="utf-8")
    assert "cache probe" in text
    assert "DEBUG" in text and "\x1b[" not in text


def test_get_logger_namespacing():
    assert get_logger("converter").name == "vgif.converter"
    assert get_logger().name == "vgif"
