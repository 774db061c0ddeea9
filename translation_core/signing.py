from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
import hashlib
import logging
import threading
import time

from translation_core.domain.models import TranslationRequest

_LOGGER = logging.getLogger(__name__)


def sign(app_id: str, query: str, salt: str, secret: str) -> str:
    # Concatenation order is fixed by the provider: appid + q + salt + key.
    payload = f"{app_id}{query}{salt}{secret}".encode("utf-8")
    return hashlib.md5(payload).hexdigest()


def _wall_clock_ms() -> int:
    return time.time_ns() // 1_000_000


def _thread_lock() -> threading.Lock:
    return threading.Lock()


@dataclass(slots=True)
class NonceSource:
    clock_ms: Callable[[], int] = _wall_clock_ms
    _last: int = 0
    _lock: threading.Lock = field(default_factory=_thread_lock, repr=False)

    def next(self) -> str:
        with self._lock:
            value = max(self.clock_ms(), self._last + 1)
            self._last = value
        return str(value)


@dataclass(slots=True)
class RequestSigner:
    app_id: str | None = None
    secret: str | None = None
    nonce_source: NonceSource = field(default_factory=NonceSource)

    @property
    def has_credentials(self) -> bool:
        return bool(self.app_id and self.app_id.strip()) and bool(
            self.secret and self.secret.strip()
        )

    def build(self, query: str, source_lang: str, target_lang: str) -> TranslationRequest:
        if not self.has_credentials:
            _LOGGER.warning("Provider credentials missing, sending unsigned request")
            return TranslationRequest(
                query=query,
                source_language=source_lang,
                target_language=target_lang,
            )
        app_id = self.app_id or ""
        salt = self.nonce_source.next()
        signature = sign(app_id, query, salt, self.secret or "")
        return TranslationRequest(
            query=query,
            source_language=source_lang,
            target_language=target_lang,
            app_id=app_id,
            salt=salt,
            signature=signature,
        )
