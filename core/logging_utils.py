from __future__ import annotations

import json
import logging
import sys
import time
from pathlib import Path
from typing import Any, Dict

from .paths import get_logs_dir

ROOT_LOGGER = "videoarchive"
_RESERVED = set(vars(logging.LogRecord("", 0, "", 0, "", None, None)).keys()) | {"message", "asctime"}


class JsonLogFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:  # noqa: D401
        payload: Dict[str, Any] = {
            "ts": time.time(),
            "level": record.levelname,
            "name": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        for key, value in record.__dict__.items():
            if key.startswith("_") or key in _RESERVED or key in payload:
                continue
            try:
                json.dumps(value)
            except TypeError:
                continue
            payload[key] = value
        return json.dumps(payload, ensure_ascii=False)


def configure_logging(
    working_dir: Path,
    *,
    level: str = "INFO",
    console: bool = True,
    json_file: bool = True,
    name: str = ROOT_LOGGER,
) -> logging.Logger:
    """Attach the JSONL file handler and optional console handler once."""

    logger = logging.getLogger(name)
    logger.setLevel(getattr(logging, str(level).upper(), logging.INFO))
    if json_file:
        logs_dir = get_logs_dir(working_dir)
        logs_dir.mkdir(parents=True, exist_ok=True)
        log_path = logs_dir / "videoarchive.log.jsonl"
        for handler in list(logger.handlers):
            if isinstance(handler, logging.FileHandler) and getattr(handler, "baseFilename", None) == str(log_path):
                break
        else:
            handler = logging.FileHandler(log_path, encoding="utf-8")
            handler.setFormatter(JsonLogFormatter())
            logger.addHandler(handler)
    if console and not any(getattr(h, "_videoarchive_console", False) for h in logger.handlers):
        stream = logging.StreamHandler(sys.stderr)
        stream.setFormatter(logging.Formatter("%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"))
        stream._videoarchive_console = True  # type: ignore[attr-defined]
        logger.addHandler(stream)
    logger.propagate = False
    return logger


def redact_secret(value: str | None) -> str:
    if not value:
        return ""
    if len(value) <= 6:
        return "***"
    return f"{value[:3]}***{value[-2:]}"


__all__ = ["JsonLogFormatter", "ROOT_LOGGER", "configure_logging", "redact_secret"]
