from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Final

from translation_core.domain.errors import (
    EmptyResultError,
    MissingLanguageMetadataError,
    ProviderError,
)
from translation_core.domain.models import ProviderResponse, TranslationResult
from translation_core.languages import LanguageCatalog

DEFAULT_PROVIDER: Final[str] = "baidu"
SUCCESS_CODES: Final[frozenset[str]] = frozenset({"0", "200", "52000", "success"})


class ProviderErrorCode(Enum):
    TIMEOUT = "52001"
    SYSTEM_ERROR = "52002"
    UNAUTHORIZED = "52003"
    MISSING_PARAMETER = "54000"
    SIGNATURE_ERROR = "54001"
    RATE_LIMITED = "54003"
    INSUFFICIENT_BALANCE = "54004"
    LONG_QUERY_RATE_LIMITED = "54005"
    ILLEGAL_CLIENT_IP = "58000"
    UNSUPPORTED_DIRECTION = "58001"
    SERVICE_CLOSED = "58002"
    AUTHENTICATION_FAILED = "90107"


ERROR_MESSAGES: Final[dict[ProviderErrorCode, str]] = {
    ProviderErrorCode.TIMEOUT: "Request timed out, please retry",
    ProviderErrorCode.SYSTEM_ERROR: "Provider system error, please retry later",
    ProviderErrorCode.UNAUTHORIZED: "Unauthorized user, check the app id and secret key",
    ProviderErrorCode.MISSING_PARAMETER: "Required parameter is empty",
    ProviderErrorCode.SIGNATURE_ERROR: "Signature error, check the API configuration",
    ProviderErrorCode.RATE_LIMITED: "Access frequency limited, please retry later",
    ProviderErrorCode.INSUFFICIENT_BALANCE: "Insufficient account balance",
    ProviderErrorCode.LONG_QUERY_RATE_LIMITED: "Long queries are sent too frequently",
    ProviderErrorCode.ILLEGAL_CLIENT_IP: "Client IP is not allowed",
    ProviderErrorCode.UNSUPPORTED_DIRECTION: "Translation direction is not supported",
    ProviderErrorCode.SERVICE_CLOSED: "Service is currently closed",
    ProviderErrorCode.AUTHENTICATION_FAILED: "Authentication failed or not yet effective",
}


def error_message_for(code: str) -> str:
    try:
        known = ProviderErrorCode(code)
    except ValueError:
        return f"Translation failed with code {code}"
    return ERROR_MESSAGES[known]


def is_success_code(code: str | None) -> bool:
    return code is None or code in SUCCESS_CODES


def average_confidence(response: ProviderResponse) -> float | None:
    values: list[float] = []
    if response.confidence is not None:
        values.append(response.confidence)
    values.extend(
        segment.confidence
        for segment in response.segments
        if segment.confidence is not None
    )
    if not values:
        return None
    return sum(values) / len(values)


def joined_translation(response: ProviderResponse) -> str | None:
    if not response.segments:
        return None
    if not any(segment.dst.strip() for segment in response.segments):
        return None
    return "\n".join(segment.dst for segment in response.segments)


@dataclass(frozen=True, slots=True)
class ResponseMapper:
    catalog: LanguageCatalog = field(default_factory=LanguageCatalog)
    provider: str = DEFAULT_PROVIDER

    def to_result(
        self,
        response: ProviderResponse,
        original_text: str,
        request_time_ms: int,
    ) -> TranslationResult:
        code = response.error_code
        if code is not None and not is_success_code(code):
            provider_message = response.error_msg
            if provider_message is not None and not provider_message.strip():
                provider_message = None
            raise ProviderError(code, error_message_for(code), provider_message)
        translated_text = joined_translation(response)
        if translated_text is None:
            raise EmptyResultError()
        source_code = (response.source_language or "").strip()
        if not source_code:
            raise MissingLanguageMetadataError("source")
        target_code = (response.target_language or "").strip()
        if not target_code:
            raise MissingLanguageMetadataError("target")
        return TranslationResult(
            original_text=original_text,
            translated_text=translated_text,
            source_language=self.catalog.resolve_or_unknown(source_code),
            target_language=self.catalog.resolve_or_unknown(target_code),
            timestamp=request_time_ms,
            provider=self.provider,
            confidence=average_confidence(response),
            duration_ms=response.processing_time_ms,
        )
