"""
Models for tree_uploader.

Leaf descriptors are immutable; upload tasks are mutated only by the
transfer that owns them.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Tuple, TYPE_CHECKING
import os

if TYPE_CHECKING:
    from .errors import UploaderError
    from .protocols import ReadableFile


class TaskStatus(Enum):
    """Lifecycle of a single transfer."""
    PENDING = "pending"
    ACTIVE = "active"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (TaskStatus.SUCCEEDED, TaskStatus.FAILED, TaskStatus.CANCELLED)


@dataclass(frozen=True)
class LeafDescriptor:
    """A single transferable file, relative to the upload root."""
    relative_path: Tuple[str, ...]
    size_bytes: int
    source: "ReadableFile"
    last_modified: Optional[float] = None  # ms since epoch

    def __post_init__(self):
        if not self.relative_path:
            raise ValueError("relative_path must contain at least one segment")
        if self.size_bytes < 0:
            raise ValueError(f"size_bytes must be >= 0, got {self.size_bytes}")

    @property
    def name(self) -> str:
        return self.relative_path[-1]

    @property
    def display_path(self) -> str:
        return "/".join(self.relative_path)


@dataclass(eq=False)
class UploadTask:
    """One PUT transfer for one leaf."""
    descriptor: LeafDescriptor
    destination_url: str
    bytes_sent: int = 0
    status: TaskStatus = TaskStatus.PENDING
    started_at: Optional[float] = None
    finished_at: Optional[float] = None
    error: Optional["UploaderError"] = None

    @property
    def filename(self) -> str:
        return self.descriptor.display_path

    @property
    def size_bytes(self) -> int:
        return self.descriptor.size_bytes

    @property
    def success(self) -> bool:
        return self.status == TaskStatus.SUCCEEDED

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal


def _env_int(name: str, default: Optional[int]) -> Optional[int]:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return int(raw)


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class UploadConfig:
    """Immutable configuration for upload batches."""
    timeout: float = 60.0
    chunk_size: int = 1024 * 1024
    page_size: int = 100  # Chromium hands out directory entries 100 at a time
    max_concurrency: Optional[int] = None  # None = every leaf at once
    count_first: bool = True
    send_last_modified: bool = True
    headers: Tuple[Tuple[str, str], ...] = field(default_factory=tuple)

    def __post_init__(self):
        if self.chunk_size <= 0:
            raise ValueError("chunk_size must be positive")
        if self.page_size <= 0:
            raise ValueError("page_size must be positive")
        if self.max_concurrency is not None and self.max_concurrency <= 0:
            raise ValueError("max_concurrency must be positive or None")

    @classmethod
    def from_env(cls, **overrides) -> "UploadConfig":
        """Build a config from TREE_UP_* environment variables."""
        values = {
            "timeout": float(os.getenv("TREE_UP_TIMEOUT") or cls.timeout),
            "chunk_size": _env_int("TREE_UP_CHUNK_SIZE", cls.chunk_size),
            "page_size": _env_int("TREE_UP_PAGE_SIZE", cls.page_size),
            "max_concurrency": _env_int("TREE_UP_MAX_PARALLEL", None),
            "count_first": _env_bool("TREE_UP_COUNT_FIRST", cls.count_first),
            "send_last_modified": _env_bool("TREE_UP_SEND_MTIME", cls.send_last_modified),
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)
