from __future__ import annotations

from collections.abc import Collection
from dataclasses import dataclass, field, replace
from enum import Enum
import json
import sqlite3
import time
import uuid

from translation_core.domain.errors import CorruptedStateError, ValidationError
from translation_core.domain.models import TranslationResult
from translation_core.domain.rules import validate_language_pair


class SearchField(Enum):
    ORIGINAL_TEXT = "original_text"
    TRANSLATED_TEXT = "translated_text"
    LANGUAGE_NAMES = "language_names"
    TAGS = "tags"
    NOTES = "notes"


ALL_FIELDS: frozenset[SearchField] = frozenset(SearchField)


def now_ms() -> int:
    return time.time_ns() // 1_000_000


def new_record_id() -> str:
    return str(uuid.uuid4())


@dataclass(frozen=True, slots=True)
class TranslationRecord:
    original_text: str
    translated_text: str
    source_language_code: str
    target_language_code: str
    source_language_name: str
    target_language_name: str
    provider: str
    id: str = field(default_factory=new_record_id)
    timestamp: int = field(default_factory=now_ms)
    is_favorite: bool = False
    quality_score: float | None = None
    usage_count: int = 0
    last_access_time: int | None = None
    tags: tuple[str, ...] = ()
    notes: str | None = None

    def __post_init__(self) -> None:
        if self.last_access_time is None:
            object.__setattr__(self, "last_access_time", self.timestamp)

    @property
    def language_pair_code(self) -> str:
        return f"{self.source_language_code}-{self.target_language_code}"

    @property
    def language_pair_description(self) -> str:
        return f"{self.source_language_name} → {self.target_language_name}"

    def contains_query(
        self, query: str, fields: Collection[SearchField] = ALL_FIELDS
    ) -> bool:
        needle = query.strip().casefold()
        if not needle:
            return True
        return any(needle in value.casefold() for value in self._field_values(fields))

    def _field_values(self, fields: Collection[SearchField]) -> list[str]:
        values: list[str] = []
        if SearchField.ORIGINAL_TEXT in fields:
            values.append(self.original_text)
        if SearchField.TRANSLATED_TEXT in fields:
            values.append(self.translated_text)
        if SearchField.LANGUAGE_NAMES in fields:
            values.append(self.source_language_name)
            values.append(self.target_language_name)
        if SearchField.TAGS in fields:
            values.extend(self.tags)
        if SearchField.NOTES in fields and self.notes:
            values.append(self.notes)
        return values


def validate_record(record: TranslationRecord) -> None:
    required = {
        "id": record.id,
        "original_text": record.original_text,
        "translated_text": record.translated_text,
        "source_language_code": record.source_language_code,
        "target_language_code": record.target_language_code,
        "provider": record.provider,
    }
    for name, value in required.items():
        if not isinstance(value, str) or not value.strip():
            raise ValidationError(name, "must not be blank")
    if record.timestamp <= 0:
        raise ValidationError("timestamp", "must be positive")
    if record.usage_count < 0:
        raise ValidationError("usage_count", "must not be negative")
    validate_language_pair(record.source_language_code, record.target_language_code)


def toggle_favorite(record: TranslationRecord) -> TranslationRecord:
    return replace(record, is_favorite=not record.is_favorite)


def increment_usage(record: TranslationRecord, accessed_at: int) -> TranslationRecord:
    return replace(
        record, usage_count=record.usage_count + 1, last_access_time=accessed_at
    )


def add_tag(record: TranslationRecord, tag: str) -> TranslationRecord:
    cleaned = tag.strip()
    if not cleaned or cleaned in record.tags:
        return record
    return replace(record, tags=(*record.tags, cleaned))


def remove_tag(record: TranslationRecord, tag: str) -> TranslationRecord:
    cleaned = tag.strip()
    if cleaned not in record.tags:
        return record
    return replace(record, tags=tuple(item for item in record.tags if item != cleaned))


def update_notes(record: TranslationRecord, notes: str | None) -> TranslationRecord:
    normalized = notes.strip() if notes is not None else None
    return replace(record, notes=normalized or None)


def record_from_result(result: TranslationResult) -> TranslationRecord:
    return TranslationRecord(
        original_text=result.original_text,
        translated_text=result.translated_text,
        source_language_code=result.source_language.code,
        target_language_code=result.target_language.code,
        source_language_name=result.source_language.display_text,
        target_language_name=result.target_language.display_text,
        provider=result.provider,
        timestamp=result.timestamp,
        quality_score=result.confidence,
    )


def record_to_row(record: TranslationRecord) -> tuple[object, ...]:
    return (
        record.id,
        record.original_text,
        record.translated_text,
        record.source_language_code,
        record.target_language_code,
        record.source_language_name,
        record.target_language_name,
        record.timestamp,
        int(record.is_favorite),
        record.provider,
        record.quality_score,
        record.usage_count,
        record.last_access_time,
        json.dumps(list(record.tags), ensure_ascii=False),
        record.notes,
    )


def record_from_row(row: sqlite3.Row) -> TranslationRecord:
    record_id = str(row["id"])
    try:
        tags_payload: object = json.loads(row["tags"] or "[]")
    except json.JSONDecodeError as exc:
        raise CorruptedStateError(record_id, "tags are not valid JSON") from exc
    if not isinstance(tags_payload, list) or not all(
        isinstance(item, str) for item in tags_payload
    ):
        raise CorruptedStateError(record_id, "tags must be a list of strings")
    try:
        record = TranslationRecord(
            id=record_id,
            original_text=row["original_text"] or "",
            translated_text=row["translated_text"] or "",
            source_language_code=row["source_language_code"] or "",
            target_language_code=row["target_language_code"] or "",
            source_language_name=row["source_language_name"] or "",
            target_language_name=row["target_language_name"] or "",
            timestamp=int(row["timestamp"] or 0),
            is_favorite=bool(row["is_favorite"]),
            provider=row["provider"] or "",
            quality_score=row["quality_score"],
            usage_count=int(row["usage_count"] or 0),
            last_access_time=row["last_access_time"],
            tags=tuple(tags_payload),
            notes=row["notes"],
        )
        validate_record(record)
    except (TypeError, ValueError, ValidationError) as exc:
        raise CorruptedStateError(record_id, str(exc)) from exc
    return record
