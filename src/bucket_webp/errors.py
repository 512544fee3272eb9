from __future__ import annotations


class BatchError(RuntimeError):
    code = "UNKNOWN"

    def __init__(self, message: str, *, code: str | None = None) -> None:
        super().__init__(message)
        if code is not None:
            self.code = code


class OperationTimeoutError(BatchError):
    """A remote call did not settle within its allotted duration."""

    code = "TIMEOUT"

    def __init__(self, label: str, timeout_s: float) -> None:
        super().__init__(f"Timeout after {timeout_s:g}s for {label}")
        self.label = label
        self.timeout_s = timeout_s


class NotFoundError(BatchError):
    """The storage backend reported the object as absent."""

    code = "NOT_FOUND"


class StorageError(BatchError):
    code = "STORAGE_IO"


class TranscodeError(BatchError):
    code = "TRANSCODE"


class FatalEnumerationError(BatchError):
    """A listing page could not be fetched; the run cannot continue."""

    code = "LIST_FAILED"


def error_code(exc: BaseException) -> str:
    if isinstance(exc, BatchError):
        return exc.code
    return type(exc).__name__


__all__ = [
    "BatchError",
    "FatalEnumerationError",
    "NotFoundError",
    "OperationTimeoutError",
    "StorageError",
    "TranscodeError",
    "error_code",
]
