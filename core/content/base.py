"""
Content Storage Interface - Abstract base for content storage backends

@.architecture
Incoming: core/content/storage.py, alternative backends --- {subclass implementations}
Processing: abstract method declarations --- {1 job: interface_definition}
Outgoing: Callers of content storage --- {ContentStorage contract}

A content item is a metadata document, a parameters document and any number
of files addressed by a relative path. DatabaseContentStorage keeps the
documents in PostgreSQL and the files on local disk; other backends (pure
filesystem, object storage) implement the same methods.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Set, Union

from data.storage import FileStats, FileStream
from security.permissions import Permission

from .dependencies import LibraryName
from .usage import ContentUsage

ContentId = Union[int, str]


class ContentStorage(ABC):
    """
    Abstract content storage.

    ``user`` arguments are opaque tokens; implementations may log them but
    must not interpret them.
    """

    # ==================== Content ====================

    @abstractmethod
    async def add_content(
        self,
        metadata: Dict[str, Any],
        parameters: Dict[str, Any],
        user: Optional[Any] = None,
        content_id: Optional[ContentId] = None
    ) -> int:
        """Insert content (no id) or update it (id given). Returns the id."""

    @abstractmethod
    async def delete_content(self, content_id: ContentId, user: Optional[Any] = None) -> None:
        """Delete all files of the content, then its documents. Idempotent."""

    @abstractmethod
    async def content_exists(self, content_id: ContentId) -> bool:
        """Check if content exists."""

    @abstractmethod
    async def get_metadata(
        self,
        content_id: ContentId,
        user: Optional[Any] = None
    ) -> Optional[Dict[str, Any]]:
        """Metadata document, or None if the content does not exist."""

    @abstractmethod
    async def get_parameters(
        self,
        content_id: ContentId,
        user: Optional[Any] = None
    ) -> Optional[Dict[str, Any]]:
        """Parameters document, or None if the content does not exist."""

    @abstractmethod
    async def list_content(self, user: Optional[Any] = None) -> List[int]:
        """All content ids, in no particular order."""

    @abstractmethod
    async def get_usage(self, library: Union[str, LibraryName]) -> ContentUsage:
        """Count content using a library as main library or dependency."""

    @abstractmethod
    async def get_user_permissions(
        self,
        content_id: ContentId,
        user: Optional[Any] = None
    ) -> Set[Permission]:
        """Permissions the user holds on the content."""

    # ==================== Files ====================

    @abstractmethod
    async def add_file(
        self,
        content_id: ContentId,
        filename: str,
        source: Any,
        user: Optional[Any] = None
    ) -> None:
        """Store a file for the content, replacing any file at that path."""

    @abstractmethod
    async def delete_file(
        self,
        content_id: ContentId,
        filename: str,
        user: Optional[Any] = None
    ) -> None:
        """Delete one file. Raises ContentFileNotFoundError if absent."""

    @abstractmethod
    async def file_exists(self, content_id: Optional[ContentId], filename: str) -> bool:
        """Check if a file exists. False when content_id is None."""

    @abstractmethod
    async def get_file_stats(
        self,
        content_id: ContentId,
        filename: str,
        user: Optional[Any] = None
    ) -> FileStats:
        """Size and timestamps of a file."""

    @abstractmethod
    async def get_file_stream(
        self,
        content_id: ContentId,
        filename: str,
        user: Optional[Any] = None,
        range_start: Optional[int] = None,
        range_end: Optional[int] = None
    ) -> FileStream:
        """Stream a file, optionally only the inclusive byte range."""

    @abstractmethod
    async def list_files(self, content_id: ContentId, user: Optional[Any] = None) -> List[str]:
        """Relative paths of all files of the content."""

    @abstractmethod
    def sanitize_filename(self, filename: str) -> str:
        """Turn an untrusted filename into one the storage accepts."""
