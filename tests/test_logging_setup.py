from __future__ import annotations

import logging

import pytest

from library_backend.config import Settings
from library_backend.logging_setup import configure_logging


@pytest.fixture
def restore_levels():
    root = logging.getLogger()
    urllib3 = logging.getLogger("urllib3")
    saved = (root.level, urllib3.level)
    yield
    root.setLevel(saved[0])
    urllib3.setLevel(saved[1])


def test_level_comes_from_settings(restore_levels):
    assert configure_logging(Settings(log_level="warning")) == logging.WARNING
    assert configure_logging(Settings(log_level="nonsense")) == logging.INFO


def test_urllib3_stays_quiet_at_debug(restore_levels):
    # Request URLs logged by urllib3 would include the Steam key.
    configure_logging(Settings(log_level="DEBUG"))
    assert logging.getLogger("urllib3").level == logging.WARNING

    configure_logging(Settings(log_level="ERROR"))
    assert logging.getLogger("urllib3").level == logging.ERROR
