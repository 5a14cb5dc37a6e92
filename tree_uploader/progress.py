"""Per-transfer progress: byte counters, throughput, ETA and their display."""
from dataclasses import dataclass
from typing import Callable, Dict, Optional
import math
import time

from .models import UploadTask

SIZE_UNITS = ["B", "KiB", "MiB", "GiB", "TiB", "PiB", "EiB", "ZiB", "YiB"]

# Below this many seconds the rate is too noisy to report
RATE_THRESHOLD = 0.1

STATE_PENDING = "pending"
STATE_UPLOADING = "uploading"
STATE_INDETERMINATE = "indeterminate"


def format_bytes(value: float) -> str:
    """
    Render a byte count with binary units.

    Whole bytes are shown as integers, anything from KiB upward with one
    decimal: 1023 -> "1023 B", 1024 -> "1.0 KiB", 1536 -> "1.5 KiB".
    """
    value = max(float(value), 0.0)
    exp = 0
    # integer comparison is floor(log(value) / log(1024)) without float drift
    while exp < len(SIZE_UNITS) - 1 and value >= 1024 ** (exp + 1):
        exp += 1
    scaled = value / 1024 ** exp
    if exp == 0:
        # half up, so 2.5 B/s reads "3 B"
        return f"{math.floor(scaled + 0.5)} {SIZE_UNITS[0]}"
    return f"{scaled:.1f} {SIZE_UNITS[exp]}"


def format_duration(seconds: float) -> str:
    """H:MM:SS from one hour, M:SS from one minute, else "<s>.<d>s"."""
    seconds = max(float(seconds), 0.0)
    if seconds >= 3600:
        whole = int(seconds)
        hours, rest = divmod(whole, 3600)
        minutes, secs = divmod(rest, 60)
        return f"{hours}:{minutes:02d}:{secs:02d}"
    if seconds >= 60:
        minutes, secs = divmod(int(seconds), 60)
        return f"{minutes}:{secs:02d}"
    return f"{seconds:.1f}s"


@dataclass(frozen=True)
class ProgressSnapshot:
    """Derived progress of one transfer at one instant."""
    bytes_loaded: int
    bytes_total: Optional[int]
    elapsed: float
    rate: Optional[float] = None
    eta: Optional[float] = None
    state: str = STATE_PENDING

    @property
    def percent(self) -> Optional[float]:
        if self.bytes_total is None:
            return None
        if self.bytes_total == 0:
            return 100.0
        return min(self.bytes_loaded / self.bytes_total * 100.0, 100.0)

    @property
    def has_rate(self) -> bool:
        return self.rate is not None

    def describe(self) -> str:
        """One-line rendering: "<pct>% <rate>/s <loaded>/<total> <elapsed>/<eta>"."""
        loaded = format_bytes(self.bytes_loaded)
        if self.state == STATE_INDETERMINATE:
            rate = f" {format_bytes(self.rate)}/s" if self.rate is not None else ""
            return f"{loaded}{rate} {format_duration(self.elapsed)}"
        total = format_bytes(self.bytes_total or 0)
        pct = f"{self.percent:.0f}%"
        if self.rate is None:
            return f"{pct} {loaded}/{total} {self.state}"
        eta = format_duration(self.eta) if self.eta is not None else "-"
        return (
            f"{pct} {format_bytes(self.rate)}/s {loaded}/{total} "
            f"{format_duration(self.elapsed)}/{eta}"
        )


class ProgressTracker:
    """
    Keeps the latest snapshot for every active transfer.

    Args:
        clock: monotonic time source in seconds, injectable for tests.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._snapshots: Dict[int, ProgressSnapshot] = {}

    def now(self) -> float:
        return self._clock()

    def start(self, task: UploadTask, now: Optional[float] = None) -> ProgressSnapshot:
        now = self._clock() if now is None else now
        task.started_at = now
        snapshot = ProgressSnapshot(
            bytes_loaded=0,
            bytes_total=task.size_bytes,
            elapsed=0.0,
            state=STATE_PENDING,
        )
        self._snapshots[id(task)] = snapshot
        return snapshot

    def sample(
        self,
        task: UploadTask,
        bytes_loaded: int,
        bytes_total: Optional[int],
        now: Optional[float] = None,
    ) -> ProgressSnapshot:
        if task.started_at is None:
            self.start(task, now)
        now = self._clock() if now is None else now
        task.bytes_sent = bytes_loaded
        elapsed = max(now - task.started_at, 0.0)

        rate = None
        eta = None
        if elapsed > RATE_THRESHOLD:
            rate = bytes_loaded / elapsed

        if bytes_total is None:
            state = STATE_INDETERMINATE
        else:
            state = STATE_UPLOADING if bytes_loaded > 0 or rate is not None else STATE_PENDING
            if rate:
                eta = max(bytes_total - bytes_loaded, 0) / rate

        snapshot = ProgressSnapshot(
            bytes_loaded=bytes_loaded,
            bytes_total=bytes_total,
            elapsed=elapsed,
            rate=rate,
            eta=eta,
            state=state,
        )
        self._snapshots[id(task)] = snapshot
        return snapshot

    def snapshot(self, task: UploadTask) -> Optional[ProgressSnapshot]:
        return self._snapshots.get(id(task))

    def finish(self, task: UploadTask) -> Optional[ProgressSnapshot]:
        """Forget a task once it is terminal; returns its last snapshot."""
        return self._snapshots.pop(id(task), None)

    @property
    def active_count(self) -> int:
        return len(self._snapshots)
