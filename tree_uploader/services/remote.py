"""HTTP adapter for the single-verb directory management calls."""
from __future__ import annotations

import logging
from typing import Optional

import httpx

from ..errors import RemoteOperationError
from ..paths import join_url, split_path

logger = logging.getLogger(__name__)


class RemoteDirectoryClient:
    """
    mkdir / delete / rename against a WebDAV-style file server.

    Names are relative to base_url and may contain "/" to reach into
    subdirectories; each segment is percent-encoded. Failures raise
    RemoteOperationError and are never retried.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 60,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self._base_url = base_url if base_url.endswith("/") else base_url + "/"
        self._timeout = timeout
        self._external_client = client
        self._client: Optional[httpx.AsyncClient] = client

    async def __aenter__(self):
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout)
        return self

    async def __aexit__(self, *args):
        if self._client is not None and self._external_client is None:
            await self._client.aclose()
            self._client = None

    def url_for(self, name: str) -> str:
        return join_url(self._base_url, split_path(name))

    async def mkdir(self, name: str) -> httpx.Response:
        return await self._request("MKCOL", self.url_for(name))

    async def delete(self, name: str) -> httpx.Response:
        return await self._request("DELETE", self.url_for(name))

    async def rename(self, source: str, destination: str) -> Optional[httpx.Response]:
        """MOVE source to destination; a same-name rename does nothing."""
        source = source.rstrip("/")
        destination = destination.rstrip("/")
        if source == destination:
            logger.debug(f"Rename of {source} onto itself skipped")
            return None
        return await self._request(
            "MOVE",
            self.url_for(source),
            headers={"Destination": self.url_for(destination)},
        )

    async def _request(self, method: str, url: str, headers: Optional[dict] = None) -> httpx.Response:
        if not self._client:
            raise RuntimeError("RemoteDirectoryClient not initialized. Use 'async with' context.")

        logger.debug(f"{method} {url}")
        response = await self._client.request(method, url, headers=headers)
        if 200 <= response.status_code < 300:
            return response

        raise RemoteOperationError(
            method,
            url,
            response.status_code,
            response.reason_phrase,
            response.text,
        )
