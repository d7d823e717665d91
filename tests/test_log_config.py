# tests/test_log_config.py

import io
import logging

import pytest

from rtlsim_core.log_config import setup_logging


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    for handler in root.handlers[:]:
        root.removeHandler(handler)
    for handler in handlers:
        root.addHandler(handler)
    root.setLevel(level)


def test_setup_logging_replaces_handlers(restore_root_logger):
    stream = io.StringIO()
    setup_logging(logging.DEBUG, stream=stream)
    root = logging.getLogger()
    assert len(root.handlers) == 1
    assert root.level == logging.DEBUG

    logging.getLogger("rtlsim_core.synthesis.lowering").info("Lowering 'adder' to gates.")
    line = stream.getvalue().splitlines()[-1]
    assert "[INFO ] [rtlsim_core.synthesis.lowering] Lowering 'adder' to gates." in line


def test_level_filters_debug(restore_root_logger):
    stream = io.StringIO()
    setup_logging(logging.WARNING, stream=stream)
    logging.getLogger("rtlsim_core").info("hidden")
    logging.getLogger("rtlsim_core").warning("shown")
    assert "hidden" not in stream.getvalue()
    assert "shown" in stream.getvalue()
