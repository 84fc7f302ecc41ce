"""
Logging setup shared by the Pulumi program and the CLI.

Pulumi forwards the program's stderr to the engine, so log lines show up
in `pulumi up` diagnostics.
"""
import logging
import os
import sys


def get_logger(name: str | None = None) -> logging.Logger:
    """
    Get a configured logger.

    Args:
        name: Logger name (defaults to the package logger)

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name or "apistack")

    # Avoid adding handlers multiple times
    if logger.handlers:
        return logger

    log_level = os.environ.get("LOG_LEVEL", "INFO").upper()
    logger.setLevel(getattr(logging, log_level, logging.INFO))

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(logger.level)
    handler.setFormatter(
        logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    )
    logger.addHandler(handler)
    logger.propagate = False

    return logger
