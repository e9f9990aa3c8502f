# shared/logger.py
from __future__ import annotations

import hashlib
import json
import logging
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Tuple

from .config import get
from .schema import LoggingConfig

ROOT_LOGGER_NAME = "cdn_delivery"
DEFAULT_LEVEL = "WARNING"

# Public type for structured loggers
SlogFn = Callable[..., None]
SlogExcFn = Callable[..., None]

_STANDARD_ATTRS = set(vars(logging.makeLogRecord({})).keys()) | {"message", "asctime"}

_configured: Dict[str, Tuple] = {}
_lock = threading.Lock()

logging.getLogger(ROOT_LOGGER_NAME).addHandler(logging.NullHandler())


# -----------------------------------------------------------------------------
# Structured log records (JSONL).
# -----------------------------------------------------------------------------
class JsonFormatter(logging.Formatter):
    """One JSON object per record: ts/level/logger/event/message + extras."""

    def format(self, record: logging.LogRecord) -> str:
        rec: Dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "event": getattr(record, "event", ""),
            "message": record.getMessage(),
        }
        for key, value in record.__dict__.items():
            if key in _STANDARD_ATTRS or key.startswith("_") or key in rec:
                continue
            rec[key] = value
        if record.exc_info:
            rec["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(rec, ensure_ascii=False, separators=(",", ":"), default=str)


def _level_for(config: Optional[LoggingConfig]) -> int:
    name = (config.level if config and config.level else None) or get("CDN_DELIVERY_LOG_LEVEL") or DEFAULT_LEVEL
    level = logging.getLevelName(str(name).upper())
    return level if isinstance(level, int) else logging.WARNING


def _is_explicit(config: Optional[LoggingConfig]) -> bool:
    return bool(config and (config.level or config.file or config.console))


def get_logger(name: str, config: Optional[LoggingConfig] = None) -> logging.Logger:
    """
    Return the logger for `name` under this LoggingConfig.

    - level:   logger threshold (falls back to CDN_DELIVERY_LOG_LEVEL, then WARNING)
    - file:    append JSON lines to this path
    - console: mirror records to stderr

    A config that sets any of these gets its own child logger,
    cdn_delivery.<name>.<digest>, configured once and never touched again.
    Without one, cdn_delivery.<name> only tracks the environment level.
    """
    full = name if name.startswith(ROOT_LOGGER_NAME) else f"{ROOT_LOGGER_NAME}.{name}"
    signature = (
        _level_for(config),
        config.file if config else None,
        bool(config.console) if config else False,
    )
    if _is_explicit(config):
        full = f"{full}.{hashlib.sha1(repr(signature).encode('utf-8')).hexdigest()[:10]}"
    logger = logging.getLogger(full)
    with _lock:
        if _configured.get(full) == signature:
            return logger
        level, file_path, console = signature
        logger.setLevel(level)
        if full not in _configured:
            if file_path:
                Path(file_path).parent.mkdir(parents=True, exist_ok=True)
                fh = logging.FileHandler(file_path, encoding="utf-8")
                fh.setFormatter(JsonFormatter())
                logger.addHandler(fh)
            if console:
                sh = logging.StreamHandler()
                sh.setFormatter(JsonFormatter())
                logger.addHandler(sh)
        _configured[full] = signature
    return logger


# -----------------------------------------------------------------------------
# Slogger: human "[event] msg" line + structured extra fields
# -----------------------------------------------------------------------------
def make_slogger(
    logger: logging.Logger,
    *,
    ctx: Optional[Dict[str, Any]] = None,
) -> Tuple[SlogFn, SlogExcFn]:
    """
    Returns (slog, slog_exc):
      slog(event, msg=None, level=logging.DEBUG, **fields)
      slog_exc(event, exc, msg=None, level=logging.CRITICAL, **fields)

    - ctx: static fields attached to each record (cloud, public_id, ...)
    """
    context = dict(ctx or {})

    def _extra(event: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        out: Dict[str, Any] = {"event": event}
        out.update(context)
        out.update(fields)
        # LogRecord refuses to overwrite its own attributes
        return {k: v for k, v in out.items() if k not in _STANDARD_ATTRS}

    def slog(event: str, msg: Optional[str] = None, level: int = logging.DEBUG, **fields: Any) -> None:
        if not logger.isEnabledFor(level):
            return
        if msg is None and fields:
            kv = " ".join(f"{k}={v}" for k, v in fields.items())
            text = f"[{event}] {kv}"
        else:
            text = f"[{event}] {msg or ''}".rstrip()
        logger.log(level, text, extra=_extra(event, fields))

    def slog_exc(
        event: str,
        exc: BaseException,
        msg: Optional[str] = None,
        level: int = logging.CRITICAL,
        **fields: Any,
    ) -> None:
        fields = {"exception": f"{type(exc).__name__}: {exc}", **fields}
        logger.log(level, f"[{event}] {msg or msg_for(exc)}", extra=_extra(event, fields))

    return slog, slog_exc


def msg_for(exc: BaseException) -> str:
    return str(exc) or type(exc).__name__
