"""
Protocols (Interfaces) for the handles the enumerator walks.

Handles are tagged with a HandleKind instead of being probed for
capabilities. A container never iterates itself: every traversal asks for
a fresh DirectoryCursor.
"""
from abc import ABC, abstractmethod
from enum import Enum
from typing import AsyncIterator, Awaitable, List, Optional, Protocol, Union, runtime_checkable


class HandleKind(Enum):
    """Discriminator for directory handles."""
    FILE = "file"
    CONTAINER = "container"


@runtime_checkable
class ReadableFile(Protocol):
    """Interface for the byte source behind a leaf."""

    size: int
    last_modified: Optional[float]

    def iter_chunks(self, chunk_size: int) -> AsyncIterator[bytes]:
        """Yield the file content in chunks of at most chunk_size bytes."""
        ...


class DirectoryHandle(ABC):
    """Unexpanded node of an input tree."""

    kind: HandleKind

    @property
    @abstractmethod
    def name(self) -> str:
        """Entry name; may carry a trailing slash, callers normalize it."""
        pass


class FileHandle(DirectoryHandle):
    """Leaf handle. resolve() may hand back the file or an awaitable of it."""

    kind = HandleKind.FILE

    @abstractmethod
    def resolve(self) -> Union[ReadableFile, Awaitable[ReadableFile]]:
        """Expose the readable file, synchronously or asynchronously."""
        pass


class DirectoryCursor(ABC):
    """Single-use paginated reader over a container's children."""

    @abstractmethod
    async def read_page(self) -> List[DirectoryHandle]:
        """Return the next page of children; an empty list means exhausted."""
        pass


class ContainerHandle(DirectoryHandle):
    """Directory-like handle whose children must be paginated."""

    kind = HandleKind.CONTAINER

    @abstractmethod
    def open_cursor(self) -> DirectoryCursor:
        """Open a fresh cursor for one traversal."""
        pass
