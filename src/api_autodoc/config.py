"""Defaults and logging setup shared by the CLI."""

import logging
import sys

DEFAULT_SCHEMA_DIR = "./schemas"
DEFAULT_STORE_DIR = ".autodoc"
DEFAULT_CONCURRENCY = 3
DEFAULT_VERSION = "1.0.0"
DEFAULT_LOG_LEVEL = "WARNING"

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
HANDLER_NAME = "api_autodoc.console"


def setup_logging(level: str | int = DEFAULT_LOG_LEVEL) -> logging.Logger:
    """Route ``api_autodoc`` logs to the current stderr.

    Calling it again replaces the handler instead of stacking another one.
    """
    if isinstance(level, str):
        name = level.upper()
        level = logging.getLevelName(name)
        if not isinstance(level, int):
            raise ValueError(f"Unknown log level: {name}")

    logger = logging.getLogger("api_autodoc")
    logger.setLevel(level)
    for handler in list(logger.handlers):
        if handler.get_name() == HANDLER_NAME:
            logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stderr)
    handler.set_name(HANDLER_NAME)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logger.addHandler(handler)
    return logger
