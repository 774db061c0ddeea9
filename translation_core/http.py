from __future__ import annotations

import asyncio
import json
import logging
from typing import Final, Protocol

import aiohttp

from translation_core.domain.errors import TransportError
from translation_core.domain.models import ProviderResponse, TranslationRequest

DEFAULT_TIMEOUT_SECONDS: Final[float] = 30.0
DEFAULT_BASE_URL: Final[str] = "https://fanyi-api.baidu.com/api/trans/vip/translate"
DEFAULT_USER_AGENT: Final[str] = "translator-history/0.1"

_LOGGER = logging.getLogger(__name__)


class Transport(Protocol):
    async def send(self, request: TranslationRequest) -> ProviderResponse: ...

    async def close(self) -> None: ...


def parse_response_body(body: str) -> ProviderResponse:
    try:
        payload: object = json.loads(body)
    except json.JSONDecodeError as exc:
        raise TransportError("Provider returned a non-JSON body") from exc
    return ProviderResponse.from_payload(payload)


async def post_form_async(
    url: str,
    form: dict[str, str],
    session: aiohttp.ClientSession,
    timeout: float = DEFAULT_TIMEOUT_SECONDS,
) -> str:
    timeout_config = aiohttp.ClientTimeout(total=timeout)
    try:
        async with session.post(
            url,
            data=form,
            headers={"User-Agent": DEFAULT_USER_AGENT},
            timeout=timeout_config,
        ) as response:
            payload = await response.text(errors="replace")
            if response.status >= 400:
                raise TransportError(
                    f"Provider responded with HTTP {response.status}",
                    status_code=response.status,
                )
            return payload
    except TransportError:
        raise
    except asyncio.TimeoutError as exc:
        raise TransportError(f"Timed out after {timeout}s", is_timeout=True) from exc
    except aiohttp.ClientError as exc:
        raise TransportError(f"Failed to reach provider: {exc}") from exc


class AiohttpTransport:
    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        session: aiohttp.ClientSession | None = None,
    ) -> None:
        self.base_url = base_url
        self.timeout = timeout
        self._session = session
        self._owns_session = session is None
        self._session_lock: asyncio.Lock | None = None

    async def send(self, request: TranslationRequest) -> ProviderResponse:
        session = await self._ensure_session()
        _LOGGER.debug("Sending %s", request.safe_summary())
        body = await post_form_async(
            self.base_url, request.to_form(), session, self.timeout
        )
        return parse_response_body(body)

    async def close(self) -> None:
        session = self._session
        if session is None or not self._owns_session:
            return
        self._session = None
        await session.close()

    async def _ensure_session(self) -> aiohttp.ClientSession:
        if self._session is not None:
            return self._session
        lock = self._session_lock
        if lock is None:
            lock = asyncio.Lock()
            self._session_lock = lock
        async with lock:
            if self._session is None:
                self._session = aiohttp.ClientSession()
                self._owns_session = True
            return self._session
