"""Batch completion counter shared by every transfer of one input event."""
from typing import Callable, List, Optional
import asyncio
import logging
import weakref

from .errors import BatchStateError
from .models import TaskStatus, UploadTask

logger = logging.getLogger(__name__)


class TransferBatch:
    """
    Counts the terminal outcomes of one batch and fires completion once.

    The expected count is either registered up front by a counting pass or
    grows as leaves are discovered. Completion only fires after seal(), so a
    fast transfer finishing while enumeration is still running can never
    end the batch early. Every task reports exactly once, success or not.

    The counter itself lets remaining_count return to zero before seal() and
    rise again on the next register(). Callers that register while tasks
    run keep one registered task unreported (BatchUploadProcess holds back
    the newest leaf) so zero is only reached once.

    Usage:
        batch = TransferBatch()
        batch.on_complete(lambda b: print("done", b.any_failed))
        batch.register(3)
        batch.seal()
        ...
        batch.report_terminal(task)   # from each transfer
        await batch.wait()
    """

    def __init__(self):
        self.expected_count = 0
        self.remaining_count = 0
        self.any_failed = False
        self._sealed = False
        self._completed = False
        # tasks hash by identity; weak so reported tasks can still be collected
        self._reported: "weakref.WeakSet[UploadTask]" = weakref.WeakSet()
        self._reported_count = 0
        self._listeners: List[Callable[["TransferBatch"], None]] = []
        self._done: Optional[asyncio.Event] = None

    @property
    def sealed(self) -> bool:
        return self._sealed

    @property
    def completed(self) -> bool:
        return self._completed

    @property
    def reported_count(self) -> int:
        return self._reported_count

    def on_complete(self, callback: Callable[["TransferBatch"], None]) -> None:
        """Subscribe to the single batch-complete signal."""
        if self._completed:
            callback(self)
            return
        self._listeners.append(callback)

    def register(self, count: int = 1) -> None:
        if count < 0:
            raise ValueError(f"cannot register a negative count: {count}")
        if self._completed:
            raise BatchStateError("batch already completed")
        self.expected_count += count
        self.remaining_count += count

    def seal(self, discovered: Optional[int] = None) -> None:
        """
        Mark enumeration as finished.

        discovered is the number of leaves the upload pass actually produced;
        when it is below a pre-counted expectation the gap is written off so
        the batch cannot wait for leaves that no longer exist.
        """
        if self._sealed:
            raise BatchStateError("batch already sealed")
        if discovered is not None and discovered < self.expected_count:
            gap = self.expected_count - discovered
            logger.warning(
                f"Upload pass found {discovered} file(s), expected {self.expected_count}"
            )
            self.expected_count = discovered
            self.remaining_count = max(self.remaining_count - gap, 0)
        self._sealed = True
        self._check_done()

    def report_terminal(self, task: UploadTask) -> int:
        """Count one terminal outcome; returns the new remaining count."""
        if task in self._reported:
            raise BatchStateError(f"task already reported: {task.filename}")
        if self._completed or self.remaining_count <= 0:
            raise BatchStateError(f"batch has no remaining tasks, rejected: {task.filename}")
        self._reported.add(task)
        self._reported_count += 1
        self.remaining_count -= 1
        if task.status in (TaskStatus.FAILED, TaskStatus.CANCELLED):
            self.any_failed = True
        self._check_done()
        return self.remaining_count

    async def wait(self) -> "TransferBatch":
        if not self._completed:
            if self._done is None:
                self._done = asyncio.Event()
            await self._done.wait()
        return self

    def _check_done(self) -> None:
        if self._completed or not self._sealed or self.remaining_count != 0:
            return
        self._completed = True
        logger.info(
            f"Batch complete: {self.expected_count} file(s)"
            f"{' with failures' if self.any_failed else ''}"
        )
        if self._done is not None:
            self._done.set()
        for callback in self._listeners[:]:
            try:
                callback(self)
            except Exception as e:
                logger.error(f"Error in batch-complete listener: {e}")
        self._listeners.clear()
