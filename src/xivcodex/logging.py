import logging
from logging import Logger


"""
Logger setup for XIV Codex.
this can be used to log messages to the console, from any part of the program.

Modules log through child loggers (xivcodex.parsers.*, xivcodex.repos, ...)
which propagate up to the single handler installed here.

date: 2026-10-18
version: 0.1.0
"""

# LOGGER_NAME is used to identify the logger.
LOGGER_NAME = "xivcodex"

#now we create the logger from the LOGGER_NAME
logger: Logger = logging.getLogger(LOGGER_NAME)  # import this anywhere


def get_logger(name: str) -> Logger:
    """Child logger under the package logger, e.g. get_logger("parsers.schema")."""
    return logger.getChild(name)


def setup(level: str = "INFO") -> None:
    """
    Setup the logger.
    """
    if logger.handlers:
        return  # already configured
    # set the level of the logger
    logger.setLevel(level.upper())

    # create a formatter
    fmt = "%(asctime)s %(levelname)s %(name)s %(message)s"
    # create a stream handler
    h = logging.StreamHandler()
    # set the formatter
    h.setFormatter(logging.Formatter(fmt))
    # add the handler to the logger
    logger.addHandler(h)

    # Child loggers (xivcodex.*) reach this handler; keep them off the root
    logger.propagate = False
