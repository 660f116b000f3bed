"""
HTTP transport used by the samplers.

All network work for one engine run goes through a single
``aiohttp.ClientSession`` managed via the async-context-manager protocol
(``async with HttpTransport(config) as transport: ...``).  The samplers only
ever call :meth:`probe`, :meth:`stream` and :meth:`send`, which keeps them
independent of aiohttp and lets tests drive them with synthetic transports.
"""
from __future__ import annotations

import logging
from typing import AsyncIterator, Callable, Optional

import aiohttp

from .constants import CHUNK_SIZE, COMMON_HEADERS, CONNECT_TIMEOUT
from .errors import SampleFailure

logger = logging.getLogger(__name__)

SentCallback = Callable[[int], None]


class HttpTransport:
    """aiohttp-backed transport shared by the samplers of one session."""

    def __init__(
        self,
        connect_timeout: float = CONNECT_TIMEOUT,
        chunk_size: int = CHUNK_SIZE,
    ) -> None:
        self.connect_timeout = connect_timeout
        self.chunk_size = chunk_size
        self._session: Optional[aiohttp.ClientSession] = None

    # -- Context manager ----------------------------------------------------

    async def __aenter__(self) -> HttpTransport:
        connector = aiohttp.TCPConnector(
            force_close=False,
            enable_cleanup_closed=True,
        )
        # Per-request deadlines are enforced by the samplers.
        timeout = aiohttp.ClientTimeout(total=None, connect=self.connect_timeout)
        self._session = aiohttp.ClientSession(
            headers=COMMON_HEADERS,
            connector=connector,
            timeout=timeout,
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:  # noqa: ANN001
        if self._session:
            await self._session.close()
            self._session = None

    # -- Internal helpers ---------------------------------------------------

    def _ensure_session(self) -> aiohttp.ClientSession:
        if self._session is None:
            raise RuntimeError(
                "HttpTransport must be used as an async context manager "
                "(async with HttpTransport() as transport: ...)"
            )
        return self._session

    # -- Public methods -----------------------------------------------------

    async def probe(self, url: str) -> int:
        """Issue a body-less HEAD request and return the status code.

        Any response below 500 is a completed round trip, redirects and 4xx
        included; server errors raise :class:`SampleFailure`.
        """
        session = self._ensure_session()

        async with session.head(url, allow_redirects=False) as resp:
            if resp.status >= 500:
                raise SampleFailure(f"HEAD {url} returned HTTP {resp.status}")
            return resp.status

    async def stream(self, url: str) -> AsyncIterator[bytes]:
        """GET *url* and yield the body as it arrives."""
        session = self._ensure_session()

        async with session.get(url) as resp:
            if resp.status >= 300:
                raise SampleFailure(f"GET {url} returned HTTP {resp.status}")
            async for chunk in resp.content.iter_chunked(self.chunk_size):
                yield chunk

    async def send(
        self,
        url: str,
        payload: bytes,
        on_sent: Optional[SentCallback] = None,
    ) -> int:
        """POST *payload* as ``application/octet-stream``.

        *on_sent* receives the cumulative number of bytes handed to the
        socket after every chunk.  Returns the response status.
        """
        session = self._ensure_session()
        size = len(payload)
        chunk_size = self.chunk_size

        async def _body() -> AsyncIterator[bytes]:
            view = memoryview(payload)
            sent = 0
            for offset in range(0, size, chunk_size):
                chunk = bytes(view[offset:offset + chunk_size])
                yield chunk
                sent += len(chunk)
                if on_sent:
                    on_sent(sent)

        headers = {
            "Content-Type": "application/octet-stream",
            "Content-Length": str(size),
        }
        async with session.post(url, data=_body(), headers=headers) as resp:
            await resp.read()
            if not 200 <= resp.status < 300:
                raise SampleFailure(f"POST {url} returned HTTP {resp.status}")
            return resp.status
