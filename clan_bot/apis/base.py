from __future__ import annotations

import logging
from typing import Any, Dict, Mapping, Optional

import aiohttp


logger = logging.getLogger(__name__)


class ApiError(RuntimeError):
    """Raised when a remote API answers with an error payload."""


class ApiClient:
    """Small JSON GET client shared by the Wargaming, Tomato and WoT wrappers.

    A ``ClientSession`` can be injected (tests pass a fake one); otherwise a
    session is created lazily and owned by the client until :meth:`close`.
    """

    base_url: str = ""

    def __init__(self, session: Optional[aiohttp.ClientSession] = None, *, timeout: float = 30.0) -> None:
        self._session = session
        self._owns_session = session is None
        self._timeout = aiohttp.ClientTimeout(total=timeout)

    def _url(self, endpoint: str) -> str:
        return f"{self.base_url.rstrip('/')}/{endpoint.lstrip('/')}"

    def _params(self, params: Optional[Mapping[str, Any]]) -> Dict[str, str]:
        return {key: str(value) for key, value in (params or {}).items() if value is not None}

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self._timeout)
            self._owns_session = True
        return self._session

    async def _get_data(self, endpoint: str, params: Optional[Mapping[str, Any]] = None) -> Any:
        url = self._url(endpoint)
        query = self._params(params)
        logger.debug("HTTP(S) call to %s with %s", url, query)
        async with self._get_session().get(url, params=query, timeout=self._timeout) as response:
            return await response.json(content_type=None)

    async def close(self) -> None:
        if self._session is not None and self._owns_session and not self._session.closed:
            await self._session.close()
        self._session = None


__all__ = ["ApiClient", "ApiError"]
