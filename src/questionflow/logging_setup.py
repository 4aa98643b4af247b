"""Central logging configuration for questionflow tools and demos.

Library modules only create named loggers; applications call
`configure_logging` once to attach a stdout handler to the root logger.
"""
from __future__ import annotations
import logging
from logging.config import dictConfig


def _dict_config(level: str) -> dict:
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "default": {
                "format": "%(asctime)s %(levelname)s:%(name)s:%(message)s",
            }
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "level": level,
                "formatter": "default",
                "stream": "ext://sys.stdout",
            }
        },
        "root": {"level": level, "handlers": ["console"]},
    }


def configure_logging(level: str = "INFO") -> None:
    """Configure application-wide logging once.

    If the root logger already has handlers, return to prevent duplicate
    output (e.g. under pytest's log capture or a host application).
    """
    root = logging.getLogger()
    if root.handlers:
        return
    dictConfig(_dict_config(level.upper()))
