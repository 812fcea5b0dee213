"""Async HTTP client utilities."""

import aiohttp
from typing import Optional, Dict, Any, Tuple


class AsyncHTTPClient:
    """Reusable async HTTP client."""

    def __init__(self, headers: Optional[Dict[str, str]] = None):
        self.default_headers = headers or {}
        self.session: Optional[aiohttp.ClientSession] = None

    async def __aenter__(self):
        self.session = aiohttp.ClientSession(headers=self.default_headers)
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    async def close(self):
        if self.session:
            await self.session.close()
            self.session = None

    def _session(self) -> aiohttp.ClientSession:
        if self.session is None:
            self.session = aiohttp.ClientSession(headers=self.default_headers)
        return self.session

    async def get(self, url: str, headers: Optional[Dict[str, str]] = None) -> Any:
        """GET request returning decoded JSON."""
        async with self._session().get(url, headers=headers) as resp:
            resp.raise_for_status()
            return await resp.json(content_type=None)

    async def get_bytes(self, url: str, headers: Optional[Dict[str, str]] = None) -> bytes:
        """GET request returning the raw body."""
        async with self._session().get(url, headers=headers) as resp:
            resp.raise_for_status()
            return await resp.read()

    async def post(self, url: str, json_data: Optional[Dict] = None,
                   data: Optional[Dict] = None, headers: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
        """POST request."""
        async with self._session().post(url, json=json_data, data=data, headers=headers) as resp:
            resp.raise_for_status()
            return await resp.json(content_type=None)

    async def get_text(self, url: str, headers: Optional[Dict[str, str]] = None) -> Tuple[int, str]:
        """GET request returning status and body, without raising on error statuses."""
        async with self._session().get(url, headers=headers) as resp:
            return resp.status, await resp.text()
