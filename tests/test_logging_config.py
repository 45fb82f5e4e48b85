"""Tests for logging setup."""

import logging

import pytest

from djmix.logging_config import PACKAGE_LOGGER, get_logger, setup_logging


@pytest.fixture(autouse=True)
def reset_package_level():
    yield
    logging.getLogger(PACKAGE_LOGGER).setLevel(logging.NOTSET)


def test_default_hides_scoring_debug():
    setup_logging()
    logger = get_logger("djmix.scoring")
    assert logger.isEnabledFor(logging.INFO)
    assert not logger.isEnabledFor(logging.DEBUG)


def test_verbose_shows_scoring_debug():
    setup_logging(verbose=True)
    assert get_logger("djmix.scoring").isEnabledFor(logging.DEBUG)


def test_other_libraries_are_not_raised_to_debug():
    setup_logging(verbose=True)
    assert logging.getLogger(PACKAGE_LOGGER).level == logging.DEBUG
    assert logging.getLogger("asyncio").getEffectiveLevel() > logging.DEBUG
