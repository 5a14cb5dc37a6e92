"""Core orchestrator - turns input events into upload batches."""
from pathlib import Path
from typing import Callable, Iterable, Optional, Union

import httpx

from ..handles import handles_from_paths
from ..models import UploadConfig
from ..protocols import DirectoryHandle
from .process import BatchUploadProcess


class UploadOrchestrator:
    """
    Owns the HTTP client and starts one BatchUploadProcess per input event.

    Usage:
        async with UploadOrchestrator("https://host/dir/") as uploader:
            process = uploader.upload_paths(["photos", "notes.txt"])
            process.on_task_fail(lambda task: print(task.error))
            result = await process.wait()

        # Any handle implementation works, e.g. an in-memory tree
        process = uploader.upload([MemoryDirectory.from_dict("a", {"b.txt": b"hi"})])
    """

    def __init__(
        self,
        base_url: str,
        config: Optional[UploadConfig] = None,
        client: Optional[httpx.AsyncClient] = None,
        clock: Optional[Callable[[], float]] = None,
    ):
        """
        Args:
            base_url: Directory URL the relative paths are appended to
            config: Upload configuration
            client: Pre-built httpx.AsyncClient; closed by its owner, not here
            clock: Monotonic clock for progress tracking (tests)
        """
        self._base_url = base_url if base_url.endswith("/") else base_url + "/"
        self._config = config or UploadConfig()
        self._external_client = client
        self._client: Optional[httpx.AsyncClient] = client
        self._clock = clock

    async def __aenter__(self):
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._config.timeout)
        return self

    async def __aexit__(self, *args):
        if self._client is not None and self._external_client is None:
            await self._client.aclose()
            self._client = None

    @property
    def base_url(self) -> str:
        return self._base_url

    @property
    def config(self) -> UploadConfig:
        return self._config

    def upload(self, roots: Iterable[DirectoryHandle]) -> BatchUploadProcess:
        """
        Upload a mix of file and container handles as one batch.

        Returns a BatchUploadProcess; wait() starts it if needed.
        """
        if self._client is None:
            raise RuntimeError("UploadOrchestrator not initialized. Use 'async with' context.")
        return BatchUploadProcess(
            self._client,
            self._base_url,
            list(roots),
            config=self._config,
            clock=self._clock,
        )

    def upload_paths(
        self,
        paths: Iterable[Union[str, Path]],
        follow_symlinks: bool = False,
    ) -> BatchUploadProcess:
        """Upload local files and directories as one batch."""
        roots = handles_from_paths(paths, self._config.page_size, follow_symlinks)
        return self.upload(roots)
