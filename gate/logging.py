"""FEATUREGATE FILE PURPOSE
Purpose: logging setup with strict debug gating.
Hot path: yes (logger calls occur on every feature check; default is quiet).
Feature flags: GATE_DEBUG.
Failure mode: never crash due to logging.
"""

from __future__ import annotations

import logging

from gate.config import is_debug


def _configure() -> logging.Logger:
    logger = logging.getLogger("featuregate")
    if logger.handlers:
        return logger

    handler = logging.StreamHandler()
    fmt = "%(asctime)s %(levelname)s %(name)s %(message)s"
    handler.setFormatter(logging.Formatter(fmt))
    logger.addHandler(handler)
    logger.setLevel(logging.INFO if is_debug() else logging.WARNING)
    return logger


logger = _configure()


def debug_note(msg: str) -> None:
    if is_debug():
        logger.info(msg)
