from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Final

from translation_core.domain.models import AUTO_DETECT_CODE, Language

AUTO_DETECT: Final[Language] = Language(
    code=AUTO_DETECT_CODE, name="Auto Detect", display_name="Auto Detect"
)

DEFAULT_LANGUAGES: Final[tuple[Language, ...]] = (
    AUTO_DETECT,
    Language(code="en", name="English", display_name="English"),
    Language(code="zh", name="Chinese", display_name="中文"),
    Language(code="ja", name="Japanese", display_name="日本語"),
    Language(code="ko", name="Korean", display_name="한국어"),
    Language(code="fr", name="French", display_name="Français"),
    Language(code="de", name="German", display_name="Deutsch"),
    Language(code="es", name="Spanish", display_name="Español"),
    Language(code="ru", name="Russian", display_name="Русский"),
)


def _default_index() -> dict[str, Language]:
    return {}


@dataclass(slots=True)
class LanguageCatalog:
    languages: tuple[Language, ...] = DEFAULT_LANGUAGES
    _index: dict[str, Language] = field(default_factory=_default_index, repr=False)

    def __post_init__(self) -> None:
        self._index = {language.code.casefold(): language for language in self.languages}

    @classmethod
    def from_languages(cls, languages: Iterable[Language]) -> "LanguageCatalog":
        return cls(languages=tuple(languages))

    def resolve(self, code: str) -> Language | None:
        return self._index.get(code.strip().casefold())

    def resolve_or_unknown(self, code: str) -> Language:
        language = self.resolve(code)
        if language is None:
            return Language.unknown(code)
        return language

    def supported(self, *, include_auto: bool = True) -> tuple[Language, ...]:
        if include_auto:
            return self.languages
        return tuple(item for item in self.languages if not item.is_auto_detect)
