from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import replace
import logging
import time
from typing import Protocol

from translation_core.domain.errors import (
    PersistenceWarning,
    ProviderError,
    TransportError,
    ValidationError,
)
from translation_core.domain.models import PipelineState, TranslationResult
from translation_core.domain.rules import validate_input
from translation_core.http import Transport
from translation_core.mapper import ResponseMapper
from translation_core.signing import RequestSigner

_LOGGER = logging.getLogger(__name__)

StateListener = Callable[[PipelineState], None]


class HistorySink(Protocol):
    async def save_result(self, result: TranslationResult) -> str: ...


def _now_ms() -> int:
    return time.time_ns() // 1_000_000


class TranslationPipeline:
    """Validate, sign, send, map and record one translation per call.

    The pipeline is shared between callers, so it keeps no per-call state.
    Progress of a call is reported to the pipeline-wide ``on_state``
    listener and to the listener passed to that ``translate`` call.
    """

    def __init__(
        self,
        transport: Transport,
        signer: RequestSigner | None = None,
        mapper: ResponseMapper | None = None,
        history: HistorySink | None = None,
        *,
        save_history: bool = True,
        on_state: StateListener | None = None,
        clock_ms: Callable[[], int] = _now_ms,
    ) -> None:
        self.transport = transport
        self.signer = signer or RequestSigner()
        self.mapper = mapper or ResponseMapper()
        self.history = history
        self.save_history = save_history
        self.on_state = on_state
        self._clock_ms = clock_ms

    async def translate(
        self,
        text: str,
        source_lang: str,
        target_lang: str,
        *,
        on_state: StateListener | None = None,
    ) -> TranslationResult:
        def report(state: PipelineState) -> None:
            for listener in (self.on_state, on_state):
                if listener is not None:
                    listener(state)

        try:
            report(PipelineState.VALIDATING)
            validate_input(text, source_lang, target_lang)
            request = self.signer.build(text, source_lang, target_lang)

            report(PipelineState.REQUESTING)
            request_time = self._clock_ms()
            response = await self.transport.send(request)

            report(PipelineState.MAPPING)
            result = self.mapper.to_result(response, text, request_time)
            result = await self._persist(result)
        except ValidationError as exc:
            _LOGGER.info("Rejected translation input: %s", exc)
            report(PipelineState.FAILED)
            raise
        except ProviderError as exc:
            _LOGGER.warning("Provider error %s: %s", exc.code, exc.message)
            report(PipelineState.FAILED)
            raise
        except TransportError as exc:
            _LOGGER.warning("Transport failure: %s", exc)
            report(PipelineState.FAILED)
            raise
        except asyncio.CancelledError:
            report(PipelineState.FAILED)
            raise

        report(PipelineState.COMPLETED)
        return result

    async def close(self) -> None:
        await self.transport.close()

    async def _persist(self, result: TranslationResult) -> TranslationResult:
        if self.history is None or not self.save_history:
            return result
        try:
            record_id = await self.history.save_result(result)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            _LOGGER.warning("History save failed: %s", exc)
            warning = PersistenceWarning(f"Translation was not saved to history: {exc}")
            warning.__cause__ = exc
            return replace(result, persistence_warning=warning)
        return replace(result, record_id=record_id)
