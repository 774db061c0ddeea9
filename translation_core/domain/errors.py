from __future__ import annotations

from collections.abc import Iterable


class TranslatorError(Exception):
    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return self.message


class ValidationError(TranslatorError):
    def __init__(self, field: str, reason: str) -> None:
        super().__init__(f"{field}: {reason}")
        self.field = field
        self.reason = reason


class ProviderError(TranslatorError):
    def __init__(
        self, code: str, message: str, provider_message: str | None = None
    ) -> None:
        super().__init__(message)
        self.code = code
        self.provider_message = provider_message


class EmptyResultError(ProviderError):
    def __init__(self) -> None:
        super().__init__("empty_result", "Translation result is empty")


class MissingLanguageMetadataError(ProviderError):
    def __init__(self, side: str) -> None:
        super().__init__("missing_language", f"Response is missing the {side} language")
        self.side = side


class TransportError(TranslatorError):
    def __init__(
        self,
        message: str,
        *,
        is_timeout: bool = False,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message)
        self.is_timeout = is_timeout
        self.status_code = status_code


class NotFoundError(TranslatorError):
    def __init__(self, ids: Iterable[str]) -> None:
        missing = tuple(ids)
        super().__init__(f"History record(s) not found: {', '.join(missing)}")
        self.ids = missing


class PersistenceWarning(TranslatorError):
    pass


class CorruptedStateError(TranslatorError):
    def __init__(self, record_id: str, reason: str) -> None:
        super().__init__(f"Stored record {record_id} is corrupted: {reason}")
        self.record_id = record_id
        self.reason = reason


class StoreClosedError(TranslatorError):
    def __init__(self) -> None:
        super().__init__("History store is closed")
