"""
Storage Errors - Data Layer

Error kinds raised by the metadata store and the content file store.

@.architecture
Incoming: data/database/*.py, data/storage/local.py --- {content id, filename, driver exceptions}
Processing: StorageError.__init__() --- {1 job: error_context}
Outgoing: core/content/*.py, callers --- {StorageUnavailableError, ContentFileNotFoundError}

Invalid documents and filenames raise security.sanitization.ValidationError.
Disk I/O failures are not wrapped: the underlying OSError reaches the caller
unchanged (FilesystemError is an alias kept for readability in signatures).
"""

from typing import Any, Optional


class StorageError(Exception):
    """Base class for content storage errors."""

    def __init__(
        self,
        message: str,
        content_id: Optional[Any] = None,
        filename: Optional[str] = None
    ):
        super().__init__(message)
        self.content_id = content_id
        self.filename = filename


class StorageUnavailableError(StorageError):
    """Relational store unreachable or a query failed."""
    pass


class ContentFileNotFoundError(StorageError):
    """A requested content file does not exist."""

    def __init__(self, content_id: Any, filename: str):
        super().__init__(
            f"File '{filename}' not found for content {content_id}",
            content_id=content_id,
            filename=filename,
        )


FilesystemError = OSError
