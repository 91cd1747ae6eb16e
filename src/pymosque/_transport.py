"""HTTP transport for the Overpass search backend."""

from __future__ import annotations

import asyncio
import logging
from typing import Protocol

import aiohttp

from pymosque._constants import BODY_TRUNCATE
from pymosque.config import MosqueConfig
from pymosque.exceptions import BackendError, EmptyResponseError, NetworkUnavailableError

_logger = logging.getLogger(__name__)

_RETRYABLE_STATUSES = frozenset({429, 500, 502, 503, 504})


class Transport(Protocol):
    """Anything that runs one Overpass QL query and returns the raw body.

    Implementations raise :class:`~pymosque.exceptions.SearchError`
    subclasses on failure.
    """

    async def query(self, query: str) -> str:
        ...


class OverpassTransport:
    """Send one Overpass QL query and return the raw response text.

    Raises
    ------
    NetworkUnavailableError
        DNS failure, connection reset, connect or read timeout.
    BackendError
        Non-2xx status.
    EmptyResponseError
        2xx status with an empty body.
    """

    def __init__(self, config: MosqueConfig, http_session: aiohttp.ClientSession) -> None:
        self._config = config
        self._http = http_session
        self._timeout = aiohttp.ClientTimeout(
            total=None,
            sock_connect=config.connect_timeout,
            sock_read=config.read_timeout,
        )

    async def query(self, query: str) -> str:
        for attempt in range(1, self._config.max_retries + 1):
            try:
                return await self._send(query)
            except NetworkUnavailableError:
                _logger.debug("Overpass request attempt=%d failed, retrying", attempt, exc_info=True)
            except BackendError as exc:
                if exc.status_code not in _RETRYABLE_STATUSES:
                    raise
                _logger.debug("Overpass attempt=%d returned HTTP %d, retrying", attempt, exc.status_code)
            if self._config.retry_backoff > 0:
                await asyncio.sleep(self._config.retry_backoff)
        # Last attempt: failures propagate.
        return await self._send(query)

    async def _send(self, query: str) -> str:
        headers = {
            "user-agent": self._config.user_agent,
            "accept": "application/json",
        }
        url = self._config.endpoint
        _logger.debug("%s %s query_len=%d", self._config.http_method, url, len(query))

        try:
            if self._config.http_method == "POST":
                request = self._http.post(url, data={"data": query}, headers=headers, timeout=self._timeout)
            else:
                request = self._http.get(url, params={"data": query}, headers=headers, timeout=self._timeout)
            async with request as resp:
                text = await resp.text(errors="replace")
                status = resp.status
        except (aiohttp.ClientError, TimeoutError) as exc:
            raise NetworkUnavailableError(f"Request to {url} failed: {exc!r}") from exc

        if not 200 <= status < 300:
            body = text[:BODY_TRUNCATE]
            raise BackendError(f"HTTP {status} from {url}: {body}", status_code=status, body=body)
        if not text.strip():
            raise EmptyResponseError(f"Empty response body from {url}")
        return text
