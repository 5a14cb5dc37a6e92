"""Orchestrator data models."""
from dataclasses import dataclass, field
from typing import List, Optional

from ..models import TaskStatus, UploadTask


@dataclass
class BatchUploadResult:
    """Result of one batch (one drop, paste or selection)."""
    success: bool
    expected_files: int
    tasks: List[UploadTask] = field(default_factory=list)
    enumeration_errors: List[str] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def uploaded_files(self) -> int:
        return sum(1 for t in self.tasks if t.status == TaskStatus.SUCCEEDED)

    @property
    def failed_files(self) -> int:
        return sum(1 for t in self.tasks if t.status == TaskStatus.FAILED)

    @property
    def cancelled_files(self) -> int:
        return sum(1 for t in self.tasks if t.status == TaskStatus.CANCELLED)

    @property
    def total_files(self) -> int:
        return len(self.tasks)

    @property
    def all_success(self) -> bool:
        return (
            self.success
            and self.failed_files == 0
            and self.cancelled_files == 0
            and not self.enumeration_errors
        )
