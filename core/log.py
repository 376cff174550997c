"""Logging setup driven by the `logging` config section.

All runtime loggers live under the ``glucobalance`` namespace; this
attaches one stream handler to that root so repeated calls are idempotent.
"""
from __future__ import annotations

import json
import logging

from core.config.schemas.observability import LoggingConfig

ROOT_LOGGER = "glucobalance"

_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "error": logging.ERROR,
}


class JsonLineFormatter(logging.Formatter):
    """One JSON object per record (ts, level, logger, msg)."""

    def format(self, record: logging.LogRecord) -> str:  # noqa: D401
        data = {
            "ts": record.created,
            "level": record.levelname.lower(),
            "logger": record.name,
            "msg": record.getMessage(),
        }
        if record.exc_info:
            data["exc"] = self.formatException(record.exc_info)
        return json.dumps(data, ensure_ascii=False)


def configure_logging(cfg: LoggingConfig | None = None) -> logging.Logger:
    cfg = cfg or LoggingConfig()
    root = logging.getLogger(ROOT_LOGGER)
    root.setLevel(_LEVELS[cfg.level])
    handler = next(
        (h for h in root.handlers if getattr(h, "_glucobalance", False)),
        None,
    )
    if handler is None:
        handler = logging.StreamHandler()
        handler._glucobalance = True  # type: ignore[attr-defined]
        root.addHandler(handler)
    if cfg.format == "json":
        handler.setFormatter(JsonLineFormatter())
    else:
        handler.setFormatter(
            logging.Formatter("[%(levelname)s] %(name)s: %(message)s")
        )
    return root


__all__ = ["configure_logging", "JsonLineFormatter", "ROOT_LOGGER"]
