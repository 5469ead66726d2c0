"""
Logging configuration for modbundler.

Log lines go to stderr so the rich tables and reports printed on stdout stay
readable. A bundle run can additionally keep a full DEBUG trace in a log
file, which is what one attaches when a merge goes wrong.
"""

import logging
import sys
from pathlib import Path
from typing import Optional, Union

LOGGER_NAME = "modbundler"
LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")

CONSOLE_FORMAT = "%(levelname)-8s %(message)s"
FILE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def _parse_level(level: str) -> int:
    name = level.upper()
    if name not in LEVELS:
        raise ValueError(f"Unknown log level {level!r}, expected one of {', '.join(LEVELS)}")
    return getattr(logging, name)


def setup_logging(level: str = "INFO", log_file: Optional[Union[str, Path]] = None) -> logging.Logger:
    """
    Set up the package logger.

    Args:
        level: Console logging level (DEBUG, INFO, WARNING, ERROR)
        log_file: Optional file receiving every record down to DEBUG,
            whatever the console level

    Returns:
        Configured package logger

    Raises:
        ValueError: If the level is not one of LEVELS
    """
    console_level = _parse_level(level)
    logger = logging.getLogger(LOGGER_NAME)

    for handler in logger.handlers[:]:
        logger.removeHandler(handler)
        handler.close()

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(console_level)
    console_handler.setFormatter(logging.Formatter(CONSOLE_FORMAT))
    logger.addHandler(console_handler)

    if log_file is not None:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path, mode="w", encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
        logger.addHandler(file_handler)

    logger.setLevel(logging.DEBUG if log_file is not None else console_level)
    return logger


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Return the package logger, or the child named ``modbundler.<name>``."""
    if name:
        return logging.getLogger(f"{LOGGER_NAME}.{name}")
    return logging.getLogger(LOGGER_NAME)
