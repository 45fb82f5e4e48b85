"""Logging setup for djmix."""

import logging
import sys

PACKAGE_LOGGER = "djmix"

QUIET_FORMAT = "%(levelname)s: %(message)s"
VERBOSE_FORMAT = "%(levelname)s %(name)s: %(message)s"


def setup_logging(verbose: bool = False):
    """Send djmix logs to stderr.

    Per-pair scoring and cache lookups log at DEBUG, so they only show with
    verbose. Other libraries stay at WARNING either way.

    Args:
        verbose: Enable debug logging (with logger names) if True.
    """
    logging.basicConfig(
        level=logging.WARNING,
        format=VERBOSE_FORMAT if verbose else QUIET_FORMAT,
        stream=sys.stderr,
    )
    logging.getLogger(PACKAGE_LOGGER).setLevel(logging.DEBUG if verbose else logging.INFO)


def get_logger(name: str) -> logging.Logger:
    """Logger for a djmix module; pass __name__."""
    return logging.getLogger(name)
