"""One PUT transfer per discovered leaf."""
from typing import AsyncIterator, Dict, List, Optional
import asyncio
import logging

import httpx

from .batch import TransferBatch
from .errors import EnumerationFailure, TransferRejected, TransferTransportFailure, UploaderError
from .models import LeafDescriptor, TaskStatus, UploadConfig, UploadTask
from .paths import join_url
from .progress import ProgressTracker
from .utils.events import EventEmitter

logger = logging.getLogger(__name__)

LAST_MODIFIED_HEADER = "X-Last-Modified"


class CancellationToken:
    """Shared flag that tells every transfer of a batch to stop."""

    def __init__(self):
        self._cancelled = False
        self._callbacks = []

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def on_cancel(self, callback) -> None:
        if self._cancelled:
            callback()
            return
        self._callbacks.append(callback)

    def cancel(self) -> None:
        if self._cancelled:
            return
        self._cancelled = True
        for callback in self._callbacks:
            callback()
        self._callbacks.clear()


class TransferScheduler:
    """
    Opens a transfer for every leaf it is handed, the moment it is handed.

    Without max_concurrency nothing is throttled: every scheduled task is in
    flight until it is terminal. With max_concurrency set, tasks wait PENDING
    on a semaphore. Either way each task reports to the batch exactly once.

    Events emitted (when an EventEmitter is given):
        task_start(task), task_progress(task, snapshot),
        task_complete(task), task_fail(task), task_cancel(task)
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        batch: TransferBatch,
        tracker: Optional[ProgressTracker] = None,
        config: Optional[UploadConfig] = None,
        events: Optional[EventEmitter] = None,
        cancel_token: Optional[CancellationToken] = None,
    ):
        self._client = client
        self._batch = batch
        self._tracker = tracker or ProgressTracker()
        self._config = config or UploadConfig()
        self._events = events
        self._token = cancel_token or CancellationToken()
        self._semaphore = (
            asyncio.Semaphore(self._config.max_concurrency)
            if self._config.max_concurrency
            else None
        )
        self._tasks: List[UploadTask] = []
        self._running: Dict[asyncio.Task, UploadTask] = {}
        self._token.on_cancel(self._cancel_running)

    @property
    def tasks(self) -> List[UploadTask]:
        return list(self._tasks)

    @property
    def in_flight(self) -> int:
        return sum(1 for t in self._tasks if t.status == TaskStatus.ACTIVE)

    @property
    def tracker(self) -> ProgressTracker:
        return self._tracker

    def schedule(self, leaf: LeafDescriptor, base_url: str) -> UploadTask:
        """Start the transfer for one leaf and return without waiting."""
        task = UploadTask(descriptor=leaf, destination_url=join_url(base_url, leaf.relative_path))
        self._tasks.append(task)
        runner = asyncio.create_task(self._run(task))
        self._running[runner] = task
        runner.add_done_callback(self._on_runner_done)
        if self._token.cancelled:
            runner.cancel()
        return task

    async def join(self) -> List[UploadTask]:
        """Wait until every scheduled transfer is terminal."""
        while self._running:
            await asyncio.gather(*list(self._running), return_exceptions=True)
        return self.tasks

    def _cancel_running(self) -> None:
        for runner in list(self._running):
            runner.cancel()

    def _on_runner_done(self, runner: asyncio.Task) -> None:
        task = self._running.pop(runner, None)
        # a runner cancelled before its first step never enters _run
        if task is not None and self._settle(task, TaskStatus.CANCELLED):
            asyncio.ensure_future(self._emit("task_cancel", task))

    async def _run(self, task: UploadTask) -> None:
        try:
            if self._semaphore is not None:
                async with self._semaphore:
                    await self._transfer(task)
            else:
                await self._transfer(task)
        except asyncio.CancelledError:
            await self._finish(task, TaskStatus.CANCELLED)
            raise
        except Exception as e:
            # anything unexpected still has to count as terminal
            logger.error(f"Unexpected error uploading {task.filename}: {e}", exc_info=True)
            error = e if isinstance(e, UploaderError) else UploaderError(str(e))
            await self._finish(task, TaskStatus.FAILED, error)

    async def _transfer(self, task: UploadTask) -> None:
        leaf = task.descriptor
        task.status = TaskStatus.ACTIVE
        self._tracker.start(task)
        await self._emit("task_start", task)
        logger.debug(f"PUT {task.destination_url} ({leaf.size_bytes} bytes)")

        headers = {"Content-Length": str(leaf.size_bytes)}
        if self._config.send_last_modified and leaf.last_modified is not None:
            headers[LAST_MODIFIED_HEADER] = str(int(leaf.last_modified))
        headers.update(dict(self._config.headers))

        try:
            response = await self._client.put(
                task.destination_url,
                content=self._body(task),
                headers=headers,
            )
        except httpx.TransportError as e:
            logger.warning(f"Transport failure for {task.filename}: {e}")
            await self._finish(task, TaskStatus.FAILED, TransferTransportFailure(task.destination_url, e))
            return
        except OSError as e:
            logger.warning(f"Cannot read {task.filename}: {e}")
            await self._finish(task, TaskStatus.FAILED, EnumerationFailure(task.filename, e))
            return

        if 200 <= response.status_code < 300:
            await self._finish(task, TaskStatus.SUCCEEDED)
            return

        error = TransferRejected(
            task.destination_url,
            response.status_code,
            response.reason_phrase,
            response.text,
        )
        logger.warning(f"Upload rejected for {task.filename}: {response.status_code} {response.reason_phrase}")
        await self._finish(task, TaskStatus.FAILED, error)

    async def _body(self, task: UploadTask) -> AsyncIterator[bytes]:
        leaf = task.descriptor
        sent = 0
        async for chunk in leaf.source.iter_chunks(self._config.chunk_size):
            sent += len(chunk)
            yield chunk
            snapshot = self._tracker.sample(task, sent, leaf.size_bytes)
            await self._emit("task_progress", task, snapshot)

    def _settle(self, task: UploadTask, status: TaskStatus, error: Optional[UploaderError] = None) -> bool:
        if task.is_terminal:
            return False
        task.status = status
        task.error = error
        task.finished_at = self._tracker.now()
        self._tracker.finish(task)
        self._batch.report_terminal(task)
        return True

    async def _finish(self, task: UploadTask, status: TaskStatus, error: Optional[UploaderError] = None) -> None:
        if not self._settle(task, status, error):
            return

        event = {
            TaskStatus.SUCCEEDED: "task_complete",
            TaskStatus.FAILED: "task_fail",
            TaskStatus.CANCELLED: "task_cancel",
        }[status]
        await self._emit(event, task)

    async def _emit(self, event_name: str, *args) -> None:
        if self._events is not None:
            await self._events.emit(event_name, *args)
