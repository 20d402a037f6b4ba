"""
Shared helpers.
"""
import logging
import sys

from app.core import config

_configured = False


def _configure_root() -> None:
    global _configured
    if _configured:
        return
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(
        "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    ))
    root = logging.getLogger("app")
    root.addHandler(handler)
    root.setLevel(config.LOG_LEVEL)
    _configured = True


def get_logger(name: str) -> logging.Logger:
    """
    Get a module logger.

    Usage:
        log = get_logger(__name__)
        log.info("Something happened")
    """
    _configure_root()
    if not name.startswith("app"):
        name = f"app.{name}"
    return logging.getLogger(name)
