"""
Concrete handles: local file system and in-memory trees.

LocalFile exposes its readable file asynchronously (stat runs off the event
loop); MemoryFile exposes it synchronously. The enumerator normalizes both.
"""
from dataclasses import dataclass
from pathlib import Path
from typing import AsyncIterator, Dict, Iterable, List, Optional, Sequence, Union
import asyncio
import logging

from .errors import CursorExhausted
from .protocols import ContainerHandle, DirectoryCursor, DirectoryHandle, FileHandle

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 100


class LocalReadable:
    """Readable file backed by a path on disk."""

    def __init__(self, path: Path, size: int, last_modified: Optional[float]):
        self.path = Path(path)
        self.size = size
        self.last_modified = last_modified

    async def iter_chunks(self, chunk_size: int) -> AsyncIterator[bytes]:
        f = await asyncio.to_thread(open, self.path, "rb")
        try:
            while True:
                chunk = await asyncio.to_thread(f.read, chunk_size)
                if not chunk:
                    break
                yield chunk
        finally:
            f.close()

    def __repr__(self) -> str:
        return f"LocalReadable({str(self.path)!r}, size={self.size})"


class MemoryReadable:
    """Readable file backed by an in-memory bytes object."""

    def __init__(self, data: bytes, last_modified: Optional[float] = None):
        self._data = bytes(data)
        self.size = len(self._data)
        self.last_modified = last_modified

    async def iter_chunks(self, chunk_size: int) -> AsyncIterator[bytes]:
        for offset in range(0, self.size, chunk_size):
            yield self._data[offset:offset + chunk_size]


class PagedCursor(DirectoryCursor):
    """
    Hands out a lazily loaded child list page by page.

    After the empty page has been returned the cursor is spent; reading it
    again raises CursorExhausted.
    """

    def __init__(self, loader, page_size: int = DEFAULT_PAGE_SIZE):
        self._loader = loader
        self._page_size = page_size
        self._children: Optional[List[DirectoryHandle]] = None
        self._offset = 0
        self._exhausted = False

    async def read_page(self) -> List[DirectoryHandle]:
        if self._exhausted:
            raise CursorExhausted("directory cursor already fully read")
        if self._children is None:
            self._children = list(await self._loader())
        page = self._children[self._offset:self._offset + self._page_size]
        self._offset += len(page)
        if not page:
            self._exhausted = True
        return page


class LocalFile(FileHandle):
    """A regular file on disk."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    @property
    def name(self) -> str:
        return self.path.name

    async def resolve(self) -> LocalReadable:
        st = await asyncio.to_thread(self.path.stat)
        return LocalReadable(self.path, st.st_size, st.st_mtime * 1000)

    def __repr__(self) -> str:
        return f"LocalFile({str(self.path)!r})"


class LocalDirectory(ContainerHandle):
    """
    A directory on disk.

    Symlinked directories are skipped unless follow_symlinks is set, which
    keeps link cycles from turning the walk infinite.
    """

    def __init__(
        self,
        path: Union[str, Path],
        page_size: int = DEFAULT_PAGE_SIZE,
        follow_symlinks: bool = False,
    ):
        self.path = Path(path)
        self.page_size = page_size
        self.follow_symlinks = follow_symlinks

    @property
    def name(self) -> str:
        return self.path.name

    def open_cursor(self) -> PagedCursor:
        return PagedCursor(self._load_children, self.page_size)

    async def _load_children(self) -> List[DirectoryHandle]:
        # listing and stat calls both block, so the whole scan runs off the loop
        return await asyncio.to_thread(self._scan)

    def _scan(self) -> List[DirectoryHandle]:
        children: List[DirectoryHandle] = []
        for entry in sorted(self.path.iterdir()):
            if entry.is_dir():
                if entry.is_symlink() and not self.follow_symlinks:
                    logger.debug(f"Skipping symlinked directory: {entry}")
                    continue
                children.append(LocalDirectory(entry, self.page_size, self.follow_symlinks))
            elif entry.is_file():
                children.append(LocalFile(entry))
            else:
                logger.debug(f"Skipping special file: {entry}")
        return children

    def __repr__(self) -> str:
        return f"LocalDirectory({str(self.path)!r})"


@dataclass
class MemoryFile(FileHandle):
    """In-memory leaf; resolves synchronously."""
    file_name: str
    data: bytes = b""
    last_modified: Optional[float] = None

    @property
    def name(self) -> str:
        return self.file_name

    def resolve(self) -> MemoryReadable:
        return MemoryReadable(self.data, self.last_modified)


class MemoryDirectory(ContainerHandle):
    """In-memory container built from a name and its children."""

    def __init__(
        self,
        dir_name: str,
        children: Sequence[DirectoryHandle] = (),
        page_size: int = DEFAULT_PAGE_SIZE,
    ):
        self.dir_name = dir_name
        self.children = list(children)
        self.page_size = page_size

    @property
    def name(self) -> str:
        return self.dir_name

    def open_cursor(self) -> PagedCursor:
        async def load():
            return self.children
        return PagedCursor(load, self.page_size)

    @classmethod
    def from_dict(cls, name: str, tree: Dict[str, object], page_size: int = DEFAULT_PAGE_SIZE):
        """Build a tree from {"file": b"bytes", "subdir": {...}}."""
        children: List[DirectoryHandle] = []
        for child_name, value in tree.items():
            if isinstance(value, dict):
                children.append(cls.from_dict(child_name, value, page_size))
            else:
                children.append(MemoryFile(child_name, bytes(value)))
        return cls(name, children, page_size)


def handles_from_paths(
    paths: Iterable[Union[str, Path]],
    page_size: int = DEFAULT_PAGE_SIZE,
    follow_symlinks: bool = False,
) -> List[DirectoryHandle]:
    """Turn command-line paths into root handles."""
    roots: List[DirectoryHandle] = []
    for raw in paths:
        path = Path(raw).expanduser()
        if path.is_dir():
            roots.append(LocalDirectory(path, page_size, follow_symlinks))
        elif path.is_file():
            roots.append(LocalFile(path))
        else:
            raise FileNotFoundError(f"source does not exist: {path}")
    return roots
