from __future__ import annotations

from translation_core.domain.models import (
    AUTO_DETECT_CODE,
    Language,
    PipelineState,
    ProviderResponse,
    QueryLimit,
    TranslationRequest,
    TranslationResult,
    TranslationSegment,
)

__all__ = [
    "AUTO_DETECT_CODE",
    "Language",
    "PipelineState",
    "ProviderResponse",
    "QueryLimit",
    "TranslationRequest",
    "TranslationResult",
    "TranslationSegment",
]
