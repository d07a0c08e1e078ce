"""
Logging setup for omegaopts.

- Logs to stderr, and optionally to a rotating file under the data root.
- Default level comes from the caller; OMEGAOPTS_LOG_LEVEL overrides it.
"""

from __future__ import annotations

import logging
import os
from logging.handlers import RotatingFileHandler
from pathlib import Path

LOGGER_NAMES = ("omegaopts", "omega_engine")


def setup_logging(default_level: str = "WARNING", log_dir: Path | None = None) -> logging.Logger:
    level_name = os.environ.get("OMEGAOPTS_LOG_LEVEL", default_level).upper()
    level = getattr(logging, level_name, logging.WARNING)

    fmt = logging.Formatter("%(asctime)s %(levelname)s [%(name)s] %(message)s")
    handlers: list[logging.Handler] = []

    ch = logging.StreamHandler()
    ch.setLevel(level)
    ch.setFormatter(fmt)
    handlers.append(ch)

    log_file: Path | None = None
    if log_dir is not None:
        log_dir.mkdir(parents=True, exist_ok=True)
        log_file = log_dir / "omegaopts.log"
        fh = RotatingFileHandler(log_file, maxBytes=1_000_000, backupCount=3, encoding="utf-8")
        fh.setLevel(level)
        fh.setFormatter(fmt)
        handlers.append(fh)

    for name in LOGGER_NAMES:
        logger = logging.getLogger(name)
        logger.setLevel(level)
        logger.propagate = False  # avoid duplicate logs

        # Idempotent setup
        for h in list(logger.handlers):
            logger.removeHandler(h)
            h.close()
        for h in handlers:
            logger.addHandler(h)

    root = logging.getLogger(LOGGER_NAMES[0])
    root.debug("Logging initialized at level %s", level_name)
    if log_file is not None:
        root.debug("Log file: %s", log_file)
    return root
