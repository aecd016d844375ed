"""
Tests for logging setup.
"""

import logging

from x402_exact.logging_config import setup_logging


def test_setup_logging_installs_single_handler():
    root = logging.getLogger()
    saved_handlers, saved_level = root.handlers[:], root.level
    try:
        setup_logging(logging.DEBUG)
        setup_logging(logging.DEBUG)

        assert len(root.handlers) == 1
        assert root.level == logging.DEBUG
        assert "%(filename)s:%(lineno)d" in root.handlers[0].formatter._fmt
        assert logging.getLogger("web3").level == logging.WARNING
    finally:
        root.handlers[:] = saved_handlers
        root.setLevel(saved_level)
        logging.getLogger("web3").setLevel(logging.NOTSET)
