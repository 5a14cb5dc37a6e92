"""
tree_uploader - upload files and whole directory trees with HTTP PUT.

Every dropped or selected root (file or directory, local or in-memory) is
expanded into leaves, each leaf gets its own concurrent PUT to
<base_url>/<percent-encoded relative path>, and the batch signals
completion once every transfer reached a terminal outcome.

Usage:
    from tree_uploader import UploadOrchestrator

    async with UploadOrchestrator("https://host/dir/") as uploader:
        process = uploader.upload_paths(["photos", "notes.txt"])
        process.on_task_progress(lambda task, snap: print(task.filename, snap.describe()))
        process.on_batch_complete(lambda batch: print("failures:", batch.any_failed))
        result = await process.wait()

    # Management calls
    async with RemoteDirectoryClient("https://host/dir/") as remote:
        await remote.mkdir("new folder")
        await remote.rename("old.txt", "new.txt")
"""
from .batch import TransferBatch
from .enumerator import TreeEnumerator
from .errors import (
    BatchStateError,
    CursorExhausted,
    EnumerationFailure,
    RemoteOperationError,
    TransferError,
    TransferRejected,
    TransferTransportFailure,
    UploaderError,
)
from .handles import LocalDirectory, LocalFile, MemoryDirectory, MemoryFile, handles_from_paths
from .models import LeafDescriptor, TaskStatus, UploadConfig, UploadTask
from .orchestrator import BatchUploadProcess, BatchUploadResult, ProcessState, UploadOrchestrator
from .paths import decode_path, encode_path, join_url, split_path
from .progress import ProgressSnapshot, ProgressTracker, format_bytes, format_duration
from .protocols import ContainerHandle, DirectoryCursor, DirectoryHandle, FileHandle, HandleKind, ReadableFile
from .scheduler import CancellationToken, TransferScheduler
from .services import RemoteDirectoryClient

__version__ = "0.1.0"
__all__ = [
    # Main
    "UploadOrchestrator",
    "BatchUploadProcess",
    "BatchUploadResult",
    "ProcessState",
    # Core
    "TreeEnumerator",
    "TransferScheduler",
    "TransferBatch",
    "ProgressTracker",
    "ProgressSnapshot",
    "CancellationToken",
    "encode_path",
    "decode_path",
    "split_path",
    "join_url",
    "format_bytes",
    "format_duration",
    # Models
    "LeafDescriptor",
    "UploadTask",
    "TaskStatus",
    "UploadConfig",
    # Handles
    "HandleKind",
    "DirectoryHandle",
    "FileHandle",
    "ContainerHandle",
    "DirectoryCursor",
    "ReadableFile",
    "LocalFile",
    "LocalDirectory",
    "MemoryFile",
    "MemoryDirectory",
    "handles_from_paths",
    # Services
    "RemoteDirectoryClient",
    # Errors
    "UploaderError",
    "TransferError",
    "TransferRejected",
    "TransferTransportFailure",
    "EnumerationFailure",
    "CursorExhausted",
    "BatchStateError",
    "RemoteOperationError",
]
