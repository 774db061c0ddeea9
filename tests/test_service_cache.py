from __future__ import annotations

import asyncio
from pathlib import Path
import threading
import time

import pytest

from history_app.container import HISTORY_KEY, PIPELINE_KEY, AppServices, ServiceCache
from translation_core.config import ProviderConfig
from translation_core.models import ProviderResponse, TranslationRequest


class _StubTransport:
    def __init__(self) -> None:
        self.closed = False

    async def send(self, request: TranslationRequest) -> ProviderResponse:
        return ProviderResponse.from_payload(
            {
                "from": "en",
                "to": "zh",
                "trans_result": [{"src": request.query, "dst": "你好"}],
            }
        )

    async def close(self) -> None:
        self.closed = True


def test_concurrent_first_access_builds_one_instance() -> None:
    cache = ServiceCache()
    barrier = threading.Barrier(8)
    created: list[object] = []
    results: list[object] = []
    results_lock = threading.Lock()

    def factory() -> object:
        time.sleep(0.01)
        instance = object()
        created.append(instance)
        return instance

    def worker() -> None:
        barrier.wait()
        value = cache.get_or_create("service", factory)
        with results_lock:
            results.append(value)

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert len(created) == 1
    assert len(results) == 8
    assert all(value is created[0] for value in results)


def test_failed_factory_publishes_nothing() -> None:
    cache = ServiceCache()

    def broken() -> object:
        raise RuntimeError("boom")

    with pytest.raises(RuntimeError):
        cache.get_or_create("service", broken)

    assert cache.peek("service") is None
    assert cache.get_or_create("service", lambda: "ready") == "ready"


def test_factory_may_resolve_other_keys() -> None:
    cache = ServiceCache()

    def outer() -> tuple[str, str]:
        return ("outer", cache.get_or_create("inner", lambda: "inner"))

    assert cache.get_or_create("outer", outer) == ("outer", "inner")
    assert cache.peek("inner") == "inner"


def test_drain_empties_cache() -> None:
    cache = ServiceCache()
    cache.get_or_create("a", lambda: 1)

    drained = cache.drain()

    assert drained == {"a": 1}
    assert cache.peek("a") is None


def _services(tmp_path: Path, transport: _StubTransport, **changes: object) -> AppServices:
    config = ProviderConfig(
        app_id="app",
        secret_key="secret",
        history_db_path=tmp_path / "history.db",
        **changes,  # type: ignore[arg-type]
    )
    return AppServices(config, transport_factory=lambda _: transport)


def test_services_share_history_between_pipeline_and_queries(tmp_path: Path) -> None:
    transport = _StubTransport()
    services = _services(tmp_path, transport)

    async def run() -> int:
        result = await services.pipeline().translate("hello", "en", "zh")
        assert result.record_id is not None
        count = await services.history().count()
        await services.aclose()
        return count

    assert asyncio.run(run()) == 1
    assert transport.closed is True
    assert services.cache.peek(PIPELINE_KEY) is None
    assert services.cache.peek(HISTORY_KEY) is None


def test_services_skip_history_when_disabled(tmp_path: Path) -> None:
    transport = _StubTransport()
    services = _services(tmp_path, transport, save_history=False)

    async def run() -> str | None:
        result = await services.pipeline().translate("hello", "en", "zh")
        await services.aclose()
        return result.record_id

    assert asyncio.run(run()) is None
    assert services.cache.peek(HISTORY_KEY) is None


def test_background_translation_runs_on_runtime(tmp_path: Path) -> None:
    transport = _StubTransport()
    services = _services(tmp_path, transport)
    services.runtime.start()
    try:
        result = services.translate_in_background("hello", "en", "zh").result(timeout=5)
    finally:
        services.shutdown()

    assert result.translated_text == "你好"
    assert services.cache.peek(HISTORY_KEY) is None
    assert services.runtime.is_running is False
    assert transport.closed is True


def test_concurrent_first_pipeline_callers_share_one_instance(tmp_path: Path) -> None:
    config = ProviderConfig(
        app_id="app", secret_key="secret", history_db_path=tmp_path / "history.db"
    )
    built: list[_StubTransport] = []
    built_lock = threading.Lock()

    def transport_factory(_: ProviderConfig) -> _StubTransport:
        time.sleep(0.01)
        transport = _StubTransport()
        with built_lock:
            built.append(transport)
        return transport

    services = AppServices(config, transport_factory=transport_factory)
    barrier = threading.Barrier(2)
    pipelines: list[object] = []
    pipelines_lock = threading.Lock()

    def caller() -> None:
        barrier.wait()
        pipeline = services.pipeline()
        with pipelines_lock:
            pipelines.append(pipeline)

    threads = [threading.Thread(target=caller) for _ in range(2)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()
    services.shutdown()

    assert len(built) == 1
    assert len(pipelines) == 2
    assert pipelines[0] is pipelines[1]
    assert built[0].closed is True
