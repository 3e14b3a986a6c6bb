"""
Exceptions raised by the widget repository.

`ConflictError` is the recoverable case: the caller re-reads the widget and
decides whether to retry. `StorageFault` means the operation failed for a
reason unrelated to concurrency; the transaction has already been rolled back.
"""


class RepoError(Exception):
    """Base class for all repository errors."""


class ConflictError(RepoError, ValueError):
    def __init__(self, widget_id: str, expected_version: int | None = None):
        self.widget_id = widget_id
        self.expected_version = expected_version
        if expected_version is None:
            message = f"Concurrency conflict: widget {widget_id} already exists"
        else:
            message = (
                f"Concurrency conflict: widget {widget_id} is not at version {expected_version}"
            )
        super().__init__(message)


class NotFoundError(RepoError, LookupError):
    def __init__(self, widget_id: str):
        self.widget_id = widget_id
        super().__init__(f"Widget {widget_id} not found")


class StorageFault(RepoError):
    """The storage backend failed. The original driver error is the `__cause__`."""
