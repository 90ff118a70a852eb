"""sqlagent.logging_utils

Logging utilities:
- Operational log (app.log + console) injected into every component
- Audit log (audit.log, JSON lines, no console) used by AuditTrail
"""

from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

_FORMAT = "%(asctime)s %(levelname)s %(message)s"


def _file_handler(log_dir: str, filename: str, fmt: logging.Formatter) -> RotatingFileHandler:
    Path(log_dir).mkdir(parents=True, exist_ok=True)
    handler = RotatingFileHandler(str(Path(log_dir) / filename), maxBytes=2_000_000, backupCount=5, encoding="utf-8")
    handler.setFormatter(fmt)
    return handler


def build_logger(log_dir: str, name: str = "sqlagent", level: str = "INFO") -> logging.Logger:
    logger = logging.getLogger(name)
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    # Avoid duplicate handlers when the agent is rebuilt in the same process
    if logger.handlers:
        return logger

    fmt = logging.Formatter(_FORMAT)
    logger.addHandler(_file_handler(log_dir, "app.log", fmt))

    console = logging.StreamHandler()
    console.setFormatter(fmt)
    logger.addHandler(console)
    return logger


def build_audit_logger(log_dir: str, name: str = "sqlagent.audit") -> logging.Logger:
    logger = logging.getLogger(name)
    logger.setLevel(logging.INFO)
    logger.propagate = False

    if logger.handlers:
        return logger

    logger.addHandler(_file_handler(log_dir, "audit.log", logging.Formatter("%(message)s")))
    return logger
