from __future__ import annotations

from translation_core.domain.errors import ValidationError
from translation_core.domain.models import AUTO_DETECT_CODE, QueryLimit


def validate_language_pair(source_code: str, target_code: str) -> None:
    if not source_code or not source_code.strip():
        raise ValidationError("source_language", "must not be blank")
    if not target_code or not target_code.strip():
        raise ValidationError("target_language", "must not be blank")
    source = source_code.strip().casefold()
    target = target_code.strip().casefold()
    if target == AUTO_DETECT_CODE:
        raise ValidationError("target_language", "cannot be auto-detect")
    if source == target:
        raise ValidationError(
            "target_language", "must differ from the source language"
        )


def validate_input(query: str, source_code: str, target_code: str) -> None:
    if not query or not query.strip():
        raise ValidationError("query", "must not be blank")
    if len(query) > QueryLimit.MAX_CHARS.value:
        raise ValidationError(
            "query", f"exceeds {QueryLimit.MAX_CHARS.value} characters"
        )
    validate_language_pair(source_code, target_code)