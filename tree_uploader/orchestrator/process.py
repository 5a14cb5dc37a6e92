from enum import Enum
from typing import Any, Callable, List, Optional, Sequence, TYPE_CHECKING
import asyncio
import logging
import traceback

from tree_uploader.batch import TransferBatch
from tree_uploader.enumerator import ON_ERROR_SKIP, TreeEnumerator
from tree_uploader.errors import EnumerationFailure
from tree_uploader.models import UploadConfig, UploadTask
from tree_uploader.orchestrator.models import BatchUploadResult
from tree_uploader.progress import ProgressSnapshot, ProgressTracker
from tree_uploader.protocols import DirectoryHandle
from tree_uploader.scheduler import CancellationToken, TransferScheduler
from tree_uploader.utils.events import EventEmitter

if TYPE_CHECKING:
    import httpx

logger = logging.getLogger(__name__)


class ProcessState(Enum):
    """State of a batch upload process."""
    PENDING = "pending"
    RUNNING = "running"
    CANCELLED = "cancelled"
    COMPLETED = "completed"
    FAILED = "failed"


class BatchUploadProcess:
    """
    Process object for one batch with event-based progress tracking.

    Usage:
        process = orchestrator.upload(roots)
        process.on_task_start(lambda task: print(f"Starting: {task.filename}"))
        process.on_task_progress(lambda task, snap: print(snap.describe()))
        process.on_task_complete(lambda task: print(f"Done: {task.filename}"))
        process.on_finish(lambda result: print("All done!"))

        result = await process.wait()
    """

    def __init__(
        self,
        client: "httpx.AsyncClient",
        base_url: str,
        roots: Sequence[DirectoryHandle],
        config: Optional[UploadConfig] = None,
        clock: Optional[Callable[[], float]] = None,
    ):
        self._client = client
        self._base_url = base_url
        self._roots = list(roots)
        self._config = config or UploadConfig()
        self._events = EventEmitter()
        self._state = ProcessState.PENDING
        self._task: Optional[asyncio.Task] = None
        self._token = CancellationToken()
        self._batch = TransferBatch()
        self._tracker = ProgressTracker(clock) if clock else ProgressTracker()
        self._scheduler: Optional[TransferScheduler] = None
        self._enumeration_errors: List[EnumerationFailure] = []
        self._pending_emits: List[asyncio.Future] = []
        self._result: Optional[BatchUploadResult] = None

    # Event subscription methods
    def on_start(self, callback: Callable[[], Any]):
        """Called when the process starts."""
        self._events.on("start", callback)

    def on_counted(self, callback: Callable[[int], Any]):
        """Called after the counting pass. Receives the expected file count."""
        self._events.on("counted", callback)

    def on_task_start(self, callback: Callable[[UploadTask], Any]):
        """Called when a transfer goes active. Receives the UploadTask."""
        self._events.on("task_start", callback)

    def on_task_progress(self, callback: Callable[[UploadTask, ProgressSnapshot], Any]):
        """Called for every progress sample. Receives (UploadTask, ProgressSnapshot)."""
        self._events.on("task_progress", callback)

    def on_task_complete(self, callback: Callable[[UploadTask], Any]):
        """Called when a transfer succeeds."""
        self._events.on("task_complete", callback)

    def on_task_fail(self, callback: Callable[[UploadTask], Any]):
        """Called when a transfer fails. task.error holds the reason."""
        self._events.on("task_fail", callback)

    def on_task_cancel(self, callback: Callable[[UploadTask], Any]):
        """Called when a transfer is cancelled."""
        self._events.on("task_cancel", callback)

    def on_enumeration_error(self, callback: Callable[[EnumerationFailure], Any]):
        """Called for each entry that could not be read and was skipped."""
        self._events.on("enumeration_error", callback)

    def on_batch_complete(self, callback: Callable[[TransferBatch], Any]):
        """Called once when every registered task is terminal."""
        self._events.on("batch_complete", callback)

    def on_finish(self, callback: Callable[[BatchUploadResult], Any]):
        """Called when the process ends. Receives BatchUploadResult."""
        self._events.on("finish", callback)

    def on_error(self, callback: Callable[[Exception], Any]):
        """Called when a critical error occurs."""
        self._events.on("error", callback)

    # Control methods
    async def start(self):
        """Start the process (non-blocking)."""
        if self._state != ProcessState.PENDING:
            raise RuntimeError(f"Cannot start process in state: {self._state}")

        self._state = ProcessState.RUNNING
        self._task = asyncio.create_task(self._run())
        await self._events.emit("start")

    async def cancel(self):
        """Cancel every transfer; each still ends terminal (CANCELLED)."""
        if self._state in (ProcessState.COMPLETED, ProcessState.CANCELLED, ProcessState.FAILED):
            return
        if self._state == ProcessState.PENDING:
            self._state = ProcessState.CANCELLED
            return

        self._token.cancel()
        if self._task:
            await self._task

    async def wait(self) -> BatchUploadResult:
        """Wait for the process to complete and return its result."""
        if self._state == ProcessState.PENDING:
            await self.start()

        if self._task:
            await self._task

        if self._result is None:
            self._result = BatchUploadResult(
                success=False,
                expected_files=0,
                error="Process was cancelled or failed without result",
            )
        return self._result

    # State properties
    @property
    def state(self) -> ProcessState:
        return self._state

    @property
    def batch(self) -> TransferBatch:
        return self._batch

    @property
    def tracker(self) -> ProgressTracker:
        return self._tracker

    @property
    def tasks(self) -> List[UploadTask]:
        return self._scheduler.tasks if self._scheduler else []

    @property
    def result(self) -> Optional[BatchUploadResult]:
        return self._result

    @property
    def is_running(self) -> bool:
        return self._state == ProcessState.RUNNING

    @property
    def is_cancelled(self) -> bool:
        return self._state == ProcessState.CANCELLED

    # Internal methods
    def _record_enumeration_error(self, failure: EnumerationFailure) -> None:
        self._enumeration_errors.append(failure)
        self._pending_emits.append(
            asyncio.ensure_future(self._events.emit("enumeration_error", failure))
        )

    async def _run(self):
        try:
            self._scheduler = TransferScheduler(
                self._client,
                self._batch,
                tracker=self._tracker,
                config=self._config,
                events=self._events,
                cancel_token=self._token,
            )

            counted = 0
            if self._config.count_first:
                # fresh cursors: this pass must not consume the upload pass's state
                counted = await TreeEnumerator(on_error=ON_ERROR_SKIP).count(self._roots)
                self._batch.register(counted)
                await self._events.emit("counted", counted)
                logger.info(f"Batch expects {counted} file(s)")

            discovered = 0
            if not self._config.count_first or counted > 0:
                enumerator = TreeEnumerator(
                    on_error=ON_ERROR_SKIP,
                    error_callback=self._record_enumeration_error,
                )
                # the newest leaf is scheduled only once the next one is registered,
                # so remaining_count cannot touch zero while the walk goes on
                held = None
                async for leaf in enumerator.enumerate(self._roots):
                    if self._token.cancelled:
                        break
                    discovered += 1
                    if discovered > counted:
                        self._batch.register(1)
                    if held is not None:
                        self._scheduler.schedule(held, self._base_url)
                    held = leaf
                if held is not None:
                    self._scheduler.schedule(held, self._base_url)

            if self._pending_emits:
                await asyncio.gather(*self._pending_emits)
            self._batch.seal(discovered)
            await self._scheduler.join()
            await self._batch.wait()
            await self._events.emit("batch_complete", self._batch)

            self._state = ProcessState.CANCELLED if self._token.cancelled else ProcessState.COMPLETED
            self._result = BatchUploadResult(
                success=True,
                expected_files=self._batch.expected_count,
                tasks=self._scheduler.tasks,
                enumeration_errors=[str(e) for e in self._enumeration_errors],
            )
            await self._events.emit("finish", self._result)

        except asyncio.CancelledError:
            self._token.cancel()
            self._state = ProcessState.CANCELLED
            raise
        except Exception as e:
            self._state = ProcessState.FAILED
            logger.error(f"Batch upload failed: {e}", exc_info=True)
            self._token.cancel()
            if self._scheduler:
                await self._scheduler.join()
            await self._events.emit("error", e)
            self._result = BatchUploadResult(
                success=False,
                expected_files=self._batch.expected_count,
                tasks=self._scheduler.tasks if self._scheduler else [],
                enumeration_errors=[str(e) for e in self._enumeration_errors],
                error=f"{str(e)}\n\n{traceback.format_exc()}",
            )
