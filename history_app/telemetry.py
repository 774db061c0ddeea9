from __future__ import annotations

import atexit
from datetime import datetime, timezone
from enum import Enum
import hashlib
import json
import logging
import logging.handlers
import os
from pathlib import Path
import queue
import threading
from typing import Final

from translation_core.models import PipelineState

_LOGGER_NAME: Final[str] = "translator.history"
_LOG_DIR_ENV: Final[str] = "TRANSLATOR_LOG_DIR"
_LOG_ENABLED_ENV: Final[str] = "TRANSLATOR_LOGGING"
_REDACTED: Final[str] = "***"
# Provider credentials and request signatures are never written out.
_SECRET_FIELDS: Final[frozenset[str]] = frozenset(
    {"secret_key", "secret", "sign", "signature", "salt"}
)
_MASKED_FIELDS: Final[frozenset[str]] = frozenset({"app_id", "appid"})
# Raw translation text is replaced by its length and hash.
_TEXT_FIELDS: Final[frozenset[str]] = frozenset(
    {"q", "query", "text", "original_text", "translated_text", "notes"}
)

_logger: logging.Logger | None = None
_listener: logging.handlers.QueueListener | None = None
_file_handler: logging.Handler | None = None
_setup_lock = threading.Lock()


class Event(Enum):
    HISTORY_OPENED = "history.opened"
    HISTORY_INSERTED = "history.inserted"
    HISTORY_UPDATED = "history.updated"
    HISTORY_DELETED = "history.deleted"
    HISTORY_CLEARED = "history.cleared"
    HISTORY_PRUNED = "history.pruned"
    HISTORY_RECORD_CORRUPTED = "history.record_corrupted"
    PIPELINE_COMPLETED = "pipeline.completed"
    PIPELINE_FAILED = "pipeline.failed"


_TERMINAL_EVENTS: Final[dict[PipelineState, Event]] = {
    PipelineState.COMPLETED: Event.PIPELINE_COMPLETED,
    PipelineState.FAILED: Event.PIPELINE_FAILED,
}


def log_path() -> Path:
    override = os.environ.get(_LOG_DIR_ENV, "").strip()
    if override:
        return Path(override) / "translator.log"
    return Path.home() / ".translator" / "logs" / "translator.log"


def setup(*, reset: bool) -> None:
    global _logger, _listener, _file_handler
    if not _is_enabled():
        return
    with _setup_lock:
        if _logger is not None:
            return
        path = log_path()
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
        except OSError:
            return
        file_handler = logging.FileHandler(
            path, mode="w" if reset else "a", encoding="utf-8"
        )
        file_handler.setFormatter(logging.Formatter("%(message)s"))
        file_handler.setLevel(logging.INFO)
        record_queue: queue.SimpleQueue[logging.LogRecord] = queue.SimpleQueue()
        logger = logging.getLogger(_LOGGER_NAME)
        logger.setLevel(logging.INFO)
        logger.propagate = False
        logger.addHandler(logging.handlers.QueueHandler(record_queue))
        listener = logging.handlers.QueueListener(
            record_queue, file_handler, respect_handler_level=True
        )
        listener.start()
        _logger = logger
        _listener = listener
        _file_handler = file_handler
    atexit.register(shutdown)


def shutdown() -> None:
    global _logger, _listener, _file_handler
    with _setup_lock:
        if _listener is not None:
            _listener.stop()
            _listener = None
        if _file_handler is not None:
            _file_handler.close()
            _file_handler = None
        if _logger is not None:
            _logger.handlers.clear()
            _logger = None


def log_event(event: Event, **fields: object) -> None:
    _emit(logging.INFO, event, None, fields)


def log_error(event: Event, exc: BaseException | None = None, **fields: object) -> None:
    _emit(logging.ERROR, event, exc, fields)


def log_pipeline_state(state: PipelineState) -> None:
    """State listener for a pipeline; only terminal states are recorded."""
    event = _TERMINAL_EVENTS.get(state)
    if event is not None:
        log_event(event, state=state.value)


def text_meta(value: str | None) -> dict[str, object]:
    if not value:
        return {"text_len": 0, "text_hash": ""}
    digest = hashlib.sha256(value.encode("utf-8", errors="ignore")).hexdigest()
    return {"text_len": len(value), "text_hash": digest}


def redact_fields(fields: dict[str, object]) -> dict[str, object]:
    redacted: dict[str, object] = {}
    for key, value in fields.items():
        if key in _SECRET_FIELDS:
            redacted[key] = _REDACTED
        elif key in _MASKED_FIELDS:
            redacted[key] = f"{str(value)[:8]}{_REDACTED}" if value else None
        elif key in _TEXT_FIELDS:
            meta = text_meta(value if isinstance(value, str) else None)
            redacted[f"{key}_len"] = meta["text_len"]
            redacted[f"{key}_hash"] = meta["text_hash"]
        elif isinstance(value, Enum):
            redacted[key] = value.value
        elif isinstance(value, (str, int, float, bool)) or value is None:
            redacted[key] = value
        else:
            redacted[key] = str(value)
    return redacted


def _emit(
    level: int, event: Event, exc: BaseException | None, fields: dict[str, object]
) -> None:
    if _logger is None:
        setup(reset=False)
    logger = _logger
    if logger is None or not logger.isEnabledFor(level):
        return
    payload: dict[str, object] = {
        "ts": datetime.now(timezone.utc).isoformat(timespec="milliseconds"),
        "event": event.value,
        "pid": os.getpid(),
        "thread": threading.get_ident(),
    }
    if exc is not None:
        payload["error_type"] = exc.__class__.__name__
        payload["error"] = str(exc)
    payload.update(redact_fields(fields))
    logger.log(level, json.dumps(payload, ensure_ascii=True, separators=(",", ":")))


def _is_enabled() -> bool:
    return os.environ.get(_LOG_ENABLED_ENV, "1").strip() != "0"
