"""Logging helpers for RelayNode.

Progress lines for the operator go through :mod:`relaynode.console`; this
module wires the ``relaynode`` logger hierarchy to a per-run log file and
keeps only warnings on the console.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

ROOT_LOGGER = "relaynode"
LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

# Paramiko logs every transport negotiation at INFO/DEBUG.
NOISY_LOGGERS = ("paramiko", "urllib3")


def _has_file_handler(logger: logging.Logger, log_file: Path) -> bool:
    target = str(log_file.resolve())
    return any(
        isinstance(handler, logging.FileHandler) and handler.baseFilename == target
        for handler in logger.handlers
    )


def _has_console_handler(logger: logging.Logger) -> bool:
    return any(type(handler) is logging.StreamHandler for handler in logger.handlers)


def setup_logging(
    log_dir: str | Path,
    log_name: str = ROOT_LOGGER,
    *,
    verbose: bool = False,
) -> logging.Logger:
    """Attach the console and file handlers to the ``relaynode`` logger.

    ``verbose`` lowers the level to ``DEBUG``, which records every host
    command and lets Paramiko and urllib3 log their own details too.
    Calling this again with the same directory adds no handlers.
    """

    log_directory = Path(log_dir)
    log_directory.mkdir(parents=True, exist_ok=True)
    log_file = log_directory / f"{log_name}.log"

    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(logging.DEBUG if verbose else logging.INFO)
    formatter = logging.Formatter(LOG_FORMAT)

    if not _has_console_handler(logger):
        console_handler = logging.StreamHandler()
        console_handler.setFormatter(formatter)
        console_handler.setLevel(logging.WARNING)
        logger.addHandler(console_handler)

    if not _has_file_handler(logger, log_file):
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.DEBUG if verbose else logging.WARNING)

    logger.debug("Logging initialized", extra={"log_file": str(log_file)})
    return logger


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Return a logger under the ``relaynode`` hierarchy.

    Module names that already start with ``relaynode.`` are used as-is.
    """

    if not name:
        return logging.getLogger(ROOT_LOGGER)
    if name == ROOT_LOGGER or name.startswith(f"{ROOT_LOGGER}."):
        return logging.getLogger(name)
    return logging.getLogger(ROOT_LOGGER).getChild(name)
