"""
Logging utility for epigeo

Every module asks for a child of the ``epigeo`` logger. The library never
installs handlers on its own; entry points call ``setup_logger`` once.
"""

import logging
import sys
from pathlib import Path
from typing import Optional

ROOT_NAME = "epigeo"


def setup_logger(
    level: str = "INFO",
    log_file: Optional[str] = None,
    console: bool = True,
    force: bool = False,
) -> logging.Logger:
    """
    Setup the package logger with file and/or console output

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional path to log file
        console: Whether to output to console
        force: Force reconfiguration even if already configured

    Returns:
        Configured ``epigeo`` logger

    Example:
        >>> logger = setup_logger(level='DEBUG', log_file='two_view.log')
        >>> logger.info("Verification started")
    """
    logger = logging.getLogger(ROOT_NAME)

    if logger.handlers and not force:
        return logger

    lvl = getattr(logging, level.upper(), None)
    if not isinstance(lvl, int):
        raise ValueError(f"Unknown log level: {level}")
    logger.setLevel(lvl)
    logger.handlers = []

    # [2025-10-31 10:15:30] [INFO] [epigeo.verifier] Message
    formatter = logging.Formatter(
        '[%(asctime)s] [%(levelname)s] [%(name)s] %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    if console:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, mode='a')
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger


def get_logger(name: str) -> logging.Logger:
    """
    Get logger for a specific module

    Args:
        name: Module name (e.g., 'fmat', 'pose', 'verifier')

    Returns:
        Logger instance
    """
    return logging.getLogger(f"{ROOT_NAME}.{name}")
