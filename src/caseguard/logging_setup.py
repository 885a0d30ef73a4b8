"""Logging configuration for the caseguard command line."""

from __future__ import annotations

import logging
import os

ROOT_LOGGER = "caseguard"


def setup_logging(
    log_file: str | None = None,
    verbose: bool = False,
    logger_name: str = ROOT_LOGGER,
) -> logging.Logger:
    """
    Configure dual-handler logging (console + file).

    Console output goes to stderr so command results on stdout stay parseable.

    Args:
        log_file: Path to log file (None for no file logging)
        verbose: Enable DEBUG level on console (default INFO)
        logger_name: Logger to attach handlers to

    Returns:
        Configured logger instance
    """
    console_handler = logging.StreamHandler()
    console_handler.setLevel(logging.DEBUG if verbose else logging.INFO)
    console_handler.setFormatter(
        logging.Formatter("%(levelname)-8s | %(name)s | %(message)s")
    )

    file_handler = None
    if log_file:
        log_dir = os.path.dirname(log_file)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
        file_handler = logging.FileHandler(log_file, mode="a")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(
            logging.Formatter(
                "%(asctime)s | %(process)d | %(levelname)-8s | %(name)s | %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        )

    logger = logging.getLogger(logger_name)
    # Re-running setup (tests, nested invocations) must not stack handlers
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.setLevel(logging.DEBUG)
    logger.addHandler(console_handler)
    if file_handler:
        logger.addHandler(file_handler)
    logger.propagate = False

    return logger
