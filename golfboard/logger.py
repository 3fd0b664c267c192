"""
Logging setup for the golfboard package.
"""

import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Any

LOGGER_NAME = "golfboard"


def setup_logging(config: Any) -> logging.Logger:
    """
    Configure the package logger from the "logging" config section.

    Console output always; a dated log file under log_dir when log_to_file
    is set. Calling it again replaces the handlers.

    @param config: GolfBoardConfig instance
    @return: The configured "golfboard" logger
    """
    logger = logging.getLogger(LOGGER_NAME)
    level = getattr(logging, config.get("logging", "level") or "INFO", logging.INFO)
    logger.setLevel(level)

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if config.get("logging", "log_to_file"):
        log_dir = Path(config.get("logging", "log_dir") or "logs")
        log_dir.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(
            log_dir / f'golfboard_{datetime.now().strftime("%Y%m%d")}.log',
            encoding="utf-8",
        )
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger
