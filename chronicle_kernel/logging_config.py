"""Logging configuration for the Chronicle kernel.

Library modules only ever call ``logging.getLogger(__name__)``; hosts that
want terminal output call ``setup_logging()`` once at start-up.
"""

import logging
import os
import sys

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
VERBOSE_ENV = "CHRONICLE_VERBOSE"


def setup_logging(verbose: bool = False) -> logging.Logger:
    """Configure the ``chronicle_kernel`` logger to write to stdout."""
    if os.environ.get(VERBOSE_ENV, "").lower() in ("1", "true", "yes"):
        verbose = True

    level = logging.DEBUG if verbose else logging.INFO
    logger = logging.getLogger("chronicle_kernel")
    logger.setLevel(level)

    # Avoid duplicate handlers when called more than once
    if logger.hasHandlers():
        logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt='%Y-%m-%d %H:%M:%S'))
    logger.addHandler(console_handler)

    logger.debug("Logging initialized (verbose=%s)", verbose)
    return logger
