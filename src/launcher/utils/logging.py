"""Logging for the launcher process: one rotating file plus optional stderr."""

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%dT%H:%M:%S%z"


def setup_logger(
    name: str = "launcher",
    log_file: str = "./logs/launcher.log",
    max_bytes: int = 10 * 1024 * 1024,
    backup_count: int = 3,
    level: int = logging.INFO,
    console: bool = True,
) -> logging.Logger:
    """Attach launcher handlers to the ``name`` logger.

    Service modules log through children such as ``launcher.state`` or
    ``launcher.handoff``; their records propagate here. Calling this again
    for a name that already has handlers only updates the level.

    Args:
        name: Parent logger for the service
        log_file: Rotating log file; missing parent directories are created
        max_bytes: File size that triggers rotation
        backup_count: Rotated files kept beside the live one
        level: Level for the logger and its handlers
        console: Mirror records to stderr (off when embedded in a host that logs itself)

    Returns:
        The configured logger
    """
    Path(log_file).parent.mkdir(parents=True, exist_ok=True)

    logger = logging.getLogger(name)
    logger.setLevel(level)
    if logger.handlers:
        return logger

    handlers: list[logging.Handler] = [
        RotatingFileHandler(log_file, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8")
    ]
    if console:
        handlers.append(logging.StreamHandler())

    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=LOG_DATE_FORMAT)
    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    return logger
