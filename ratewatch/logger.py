# ratewatch/logger.py
# Centralized logging utility.
# Observations go to stdout, fatal errors to stderr, both as bare messages.
import sys

from loguru import logger


def _below_error(record) -> bool:
    return record["level"].no < logger.level("ERROR").no


def setup_logging(level: str = "INFO"):
    logger.remove()
    logger.add(lambda msg: print(msg, end="", flush=True), level=level, format="{message}", filter=_below_error)
    logger.add(sys.stderr, level="ERROR", format="{message}")
    logger.debug("Logger initialized at level {}", level)
    return logger
