"""Exception hierarchy for tree_uploader."""
from typing import Optional


class UploaderError(RuntimeError):
    """Base class for every error raised by tree_uploader."""


class TransferError(UploaderError):
    """A transfer reached a failed terminal outcome."""


class TransferRejected(TransferError):
    """Server answered with a status outside [200, 300)."""

    def __init__(self, url: str, status_code: int, reason: str = "", body: str = ""):
        self.url = url
        self.status_code = status_code
        self.reason = reason
        self.body = body
        detail = f" - {body}" if body else ""
        super().__init__(f"{status_code} {reason} on PUT {url}{detail}".rstrip())


class TransferTransportFailure(TransferError):
    """No response at all: connection refused, dropped, timed out."""

    def __init__(self, url: str, cause: Optional[BaseException] = None):
        self.url = url
        self.cause = cause
        super().__init__(f"transport failure on PUT {url}: {cause}")


class EnumerationFailure(UploaderError):
    """A container or file handle could not be read."""

    def __init__(self, path: str, cause: Optional[BaseException] = None):
        self.path = path
        self.cause = cause
        super().__init__(f"cannot read {path or '<root>'}: {cause}")


class CursorExhausted(UploaderError):
    """A directory cursor was read again after its final empty page."""


class BatchStateError(UploaderError):
    """Terminal report that would break the batch counter invariants."""


class RemoteOperationError(UploaderError):
    """A management request (MKCOL, DELETE, MOVE) was rejected."""

    def __init__(self, method: str, url: str, status_code: int, reason: str = "", body: str = ""):
        self.method = method
        self.url = url
        self.status_code = status_code
        self.reason = reason
        self.body = body
        detail = f" - {body}" if body else ""
        super().__init__(f"{status_code} {reason} on {method} {url}{detail}".rstrip())
