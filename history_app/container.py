from __future__ import annotations

import asyncio
from collections.abc import Callable, Coroutine
from concurrent.futures import Future
from dataclasses import dataclass, field
import logging
import threading
from typing import Any, Final, TypeVar, cast

from history_app import telemetry
from history_app.backend import SqliteHistoryBackend
from history_app.history import HistoryStore
from history_app.runtime import AsyncRuntime
from translation_core.config import ProviderConfig
from translation_core.http import AiohttpTransport, Transport
from translation_core.languages import LanguageCatalog
from translation_core.mapper import ResponseMapper
from translation_core.models import TranslationResult
from translation_core.pipeline import TranslationPipeline
from translation_core.signing import RequestSigner

PIPELINE_KEY: Final[str] = "pipeline"
HISTORY_KEY: Final[str] = "history"
DEFAULT_SHUTDOWN_TIMEOUT_S: Final[float] = 2.0

_LOGGER = logging.getLogger(__name__)
_T = TypeVar("_T")

TransportFactory = Callable[[ProviderConfig], Transport]


def _default_instances() -> dict[str, object]:
    return {}


def _reentrant_lock() -> threading.RLock:
    return threading.RLock()


@dataclass(slots=True)
class ServiceCache:
    _instances: dict[str, object] = field(default_factory=_default_instances)
    # Reentrant so a factory may resolve its own dependencies from the cache.
    _lock: threading.RLock = field(default_factory=_reentrant_lock, repr=False)

    def get_or_create(self, key: str, factory: Callable[[], _T]) -> _T:
        instance = self._instances.get(key)
        if instance is not None:
            return cast(_T, instance)
        with self._lock:
            instance = self._instances.get(key)
            if instance is None:
                instance = factory()
                # Publish a new mapping only once the instance is fully built.
                self._instances = {**self._instances, key: instance}
        return cast(_T, instance)

    def peek(self, key: str) -> object | None:
        return self._instances.get(key)

    def drain(self) -> dict[str, object]:
        with self._lock:
            instances = self._instances
            self._instances = {}
        return instances


def _default_transport(config: ProviderConfig) -> Transport:
    return AiohttpTransport(base_url=config.base_url, timeout=config.timeout_seconds)


@dataclass(slots=True)
class AppServices:
    config: ProviderConfig
    transport_factory: TransportFactory = _default_transport
    catalog: LanguageCatalog = field(default_factory=LanguageCatalog)
    cache: ServiceCache = field(default_factory=ServiceCache)
    runtime: AsyncRuntime = field(default_factory=AsyncRuntime)

    def pipeline(self) -> TranslationPipeline:
        return self.cache.get_or_create(PIPELINE_KEY, self._build_pipeline)

    def history(self) -> HistoryStore:
        return self.cache.get_or_create(HISTORY_KEY, self._build_history)

    def submit(self, coro: Coroutine[Any, Any, _T]) -> Future[_T]:
        return self.runtime.submit(coro)

    def translate_in_background(
        self, text: str, source_lang: str, target_lang: str
    ) -> Future[TranslationResult]:
        return self.submit(self.pipeline().translate(text, source_lang, target_lang))

    async def aclose(self) -> None:
        instances = self.cache.drain()
        pipeline = instances.get(PIPELINE_KEY)
        history = instances.get(HISTORY_KEY)
        if isinstance(pipeline, TranslationPipeline):
            await pipeline.close()
        if isinstance(history, HistoryStore):
            await history.close()

    def shutdown(self, timeout: float = DEFAULT_SHUTDOWN_TIMEOUT_S) -> None:
        if not self.runtime.is_running:
            asyncio.run(self.aclose())
            return
        future = self.runtime.submit(self.aclose())
        try:
            future.result(timeout=timeout)
        except Exception as exc:
            _LOGGER.warning("Service shutdown did not complete cleanly: %s", exc)
        self.runtime.stop()

    def _build_history(self) -> HistoryStore:
        backend = SqliteHistoryBackend(db_path=self.config.history_db_path)
        return HistoryStore(backend)

    def _build_pipeline(self) -> TranslationPipeline:
        signer = RequestSigner(
            app_id=self.config.app_id or None,
            secret=self.config.secret_key or None,
        )
        mapper = ResponseMapper(catalog=self.catalog, provider=self.config.provider)
        history = self.history() if self.config.save_history else None
        return TranslationPipeline(
            self.transport_factory(self.config),
            signer,
            mapper,
            history,
            save_history=self.config.save_history,
            on_state=telemetry.log_pipeline_state,
        )
