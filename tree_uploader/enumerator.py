"""Expand dropped/selected roots into leaf descriptors."""
from typing import AsyncIterator, Callable, Iterable, Optional, Tuple
import inspect
import logging

from .errors import EnumerationFailure
from .models import LeafDescriptor
from .protocols import ContainerHandle, DirectoryHandle, FileHandle, HandleKind

logger = logging.getLogger(__name__)

ON_ERROR_RAISE = "raise"
ON_ERROR_SKIP = "skip"


class TreeEnumerator:
    """
    Walks handles depth-first and yields one LeafDescriptor per file.

    Each call to enumerate() opens fresh cursors, so a counting pass and an
    upload pass over the same roots never share state. A single enumerate()
    iterator is not restartable.

    Args:
        on_error: "raise" to abort on the first unreadable handle, or "skip"
            to log it, hand it to error_callback and carry on with siblings.
        error_callback: receives each skipped EnumerationFailure.
    """

    def __init__(
        self,
        on_error: str = ON_ERROR_RAISE,
        error_callback: Optional[Callable[[EnumerationFailure], None]] = None,
    ):
        if on_error not in (ON_ERROR_RAISE, ON_ERROR_SKIP):
            raise ValueError(f"on_error must be 'raise' or 'skip', got {on_error!r}")
        self._on_error = on_error
        self._error_callback = error_callback

    async def enumerate(self, roots: Iterable[DirectoryHandle]) -> AsyncIterator[LeafDescriptor]:
        for root in roots:
            async for leaf in self._walk(root, ()):
                yield leaf

    async def count(self, roots: Iterable[DirectoryHandle]) -> int:
        """Independent counting pass over the same roots."""
        total = 0
        async for _ in self.enumerate(roots):
            total += 1
        logger.debug(f"Counting pass found {total} file(s)")
        return total

    async def _walk(self, handle: DirectoryHandle, prefix: Tuple[str, ...]) -> AsyncIterator[LeafDescriptor]:
        name = handle.name.strip("/")
        path = prefix + ((name,) if name else ())
        if handle.kind is HandleKind.FILE:
            leaf = await self._describe(handle, path)
            if leaf is not None:
                yield leaf
        elif handle.kind is HandleKind.CONTAINER:
            async for leaf in self._walk_container(handle, path):
                yield leaf
        else:
            raise TypeError(f"unknown handle kind: {handle.kind!r}")

    async def _walk_container(self, container: ContainerHandle, path: Tuple[str, ...]) -> AsyncIterator[LeafDescriptor]:
        try:
            cursor = container.open_cursor()
        except Exception as e:
            self._fail(path, e)
            return

        while True:
            try:
                page = await cursor.read_page()
            except Exception as e:
                self._fail(path, e)
                return
            # an empty page is the only end marker; a short page may be followed by more
            if not page:
                return
            for child in page:
                async for leaf in self._walk(child, path):
                    yield leaf

    async def _describe(self, handle: FileHandle, path: Tuple[str, ...]) -> Optional[LeafDescriptor]:
        if not path:
            self._fail(path, ValueError("file handle has an empty name"))
            return None
        try:
            readable = handle.resolve()
            if inspect.isawaitable(readable):
                readable = await readable
            return LeafDescriptor(
                relative_path=path,
                size_bytes=int(readable.size),
                source=readable,
                last_modified=readable.last_modified,
            )
        except Exception as e:
            self._fail(path, e)
            return None

    def _fail(self, path: Tuple[str, ...], cause: Exception) -> None:
        failure = cause if isinstance(cause, EnumerationFailure) else EnumerationFailure("/".join(path), cause)
        if self._on_error == ON_ERROR_RAISE:
            if failure is cause:
                raise failure
            raise failure from cause
        logger.warning(f"Skipping unreadable entry: {failure}")
        if self._error_callback:
            self._error_callback(failure)
