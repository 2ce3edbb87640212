"""Central logging configuration for fxbind.

Configures the `fxbind` logger tree once. Under pytest no handler is attached
so records propagate to pytest's own capture and live-log handlers; standalone
callers can ask for a stderr console handler.
"""
from __future__ import annotations
import copy
import logging
from logging.config import dictConfig
from typing import Any, Dict

_DICT_CONFIG: Dict[str, Any] = {
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
            "level": "DEBUG",
            "formatter": "default",
            "stream": "ext://sys.stderr",
        }
    },
    "loggers": {
        "fxbind": {"level": "WARNING", "handlers": [], "propagate": True},
    },
}

_CONFIGURED = False


def configure_logging(level: str = "WARNING", console: bool = False) -> None:
    """Configure the fxbind loggers once per process."""
    global _CONFIGURED
    if _CONFIGURED:
        logging.getLogger("fxbind").setLevel(level)
        return
    cfg = copy.deepcopy(_DICT_CONFIG)
    cfg["loggers"]["fxbind"]["level"] = level
    if console:
        cfg["loggers"]["fxbind"]["handlers"] = ["console"]
        cfg["loggers"]["fxbind"]["propagate"] = False
    dictConfig(cfg)
    _CONFIGURED = True


__all__ = ["configure_logging"]
