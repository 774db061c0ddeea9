from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Final

AUTO_DETECT_CODE: Final[str] = "auto"


class QueryLimit(Enum):
    MAX_CHARS = 5000


class PipelineState(Enum):
    IDLE = "idle"
    VALIDATING = "validating"
    REQUESTING = "requesting"
    MAPPING = "mapping"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True, slots=True)
class Language:
    code: str
    name: str
    display_name: str = ""

    @classmethod
    def unknown(cls, code: str) -> "Language":
        return cls(code=code, name=f"Unknown ({code})", display_name=f"Unknown ({code})")

    @property
    def is_auto_detect(self) -> bool:
        return self.code == AUTO_DETECT_CODE

    @property
    def display_text(self) -> str:
        return self.display_name or self.name


@dataclass(frozen=True, slots=True)
class TranslationRequest:
    query: str
    source_language: str
    target_language: str
    app_id: str | None = None
    salt: str | None = None
    signature: str | None = None

    @property
    def is_signed(self) -> bool:
        return self.signature is not None

    def to_form(self) -> dict[str, str]:
        form = {
            "q": self.query,
            "from": self.source_language,
            "to": self.target_language,
        }
        if self.app_id is not None:
            form["appid"] = self.app_id
        if self.salt is not None:
            form["salt"] = self.salt
        if self.signature is not None:
            form["sign"] = self.signature
        return form

    def safe_summary(self) -> str:
        query = self.query[:100]
        if len(self.query) > 100:
            query += "..."
        app_id = f"{self.app_id[:8]}***" if self.app_id else None
        return (
            f"TranslationRequest(query={query!r}, from={self.source_language!r}, "
            f"to={self.target_language!r}, app_id={app_id!r}, "
            f"has_signature={self.is_signed})"
        )


@dataclass(frozen=True, slots=True)
class TranslationSegment:
    src: str
    dst: str
    confidence: float | None = None


@dataclass(frozen=True, slots=True)
class ProviderResponse:
    error_code: str | None = None
    error_msg: str | None = None
    segments: tuple[TranslationSegment, ...] = ()
    source_language: str | None = None
    target_language: str | None = None
    confidence: float | None = None
    processing_time_ms: int | None = None

    @classmethod
    def from_payload(cls, payload: object) -> "ProviderResponse":
        if not isinstance(payload, dict):
            return cls()
        return cls(
            error_code=_get_code(payload.get("error_code")),
            error_msg=_get_optional_str(payload.get("error_msg")),
            segments=_parse_segments(payload.get("trans_result")),
            source_language=_get_optional_str(payload.get("from")),
            target_language=_get_optional_str(payload.get("to")),
            confidence=_get_float(payload.get("confidence")),
            processing_time_ms=_get_int(payload.get("processing_time")),
        )


@dataclass(frozen=True, slots=True)
class TranslationResult:
    original_text: str
    translated_text: str
    source_language: Language
    target_language: Language
    timestamp: int
    provider: str
    confidence: float | None = None
    duration_ms: int | None = None
    record_id: str | None = None
    # A PersistenceWarning when the history save failed.
    persistence_warning: Exception | None = field(default=None, compare=False)


def _parse_segments(value: object) -> tuple[TranslationSegment, ...]:
    if not isinstance(value, list):
        return ()
    segments: list[TranslationSegment] = []
    for item in value:
        if not isinstance(item, dict):
            continue
        segments.append(
            TranslationSegment(
                src=_get_optional_str(item.get("src")) or "",
                dst=_get_optional_str(item.get("dst")) or "",
                confidence=_get_float(item.get("confidence")),
            )
        )
    return tuple(segments)


def _get_code(value: object) -> str | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return str(value)
    if isinstance(value, str):
        stripped = value.strip()
        return stripped or None
    return None


def _get_optional_str(value: object) -> str | None:
    if isinstance(value, str):
        return value
    return None


def _get_float(value: object) -> float | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    return None


def _get_int(value: object) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value)
    return None
