"""
Database Content Storage - PostgreSQL documents plus local files

@.architecture
Incoming: core/content/factory.py, application code --- {ContentRepository, LocalFileStorage, content ids, documents, filenames, byte sources, opaque user tokens}
Processing: add_content(), add_file(), delete_content(), delete_file(), get_file_stats(), get_file_stream(), list_files(), list_content(), content_exists(), file_exists(), get_metadata(), get_parameters(), get_usage(), get_user_permissions(), sanitize_filename() --- {6 jobs: document_persistence, file_persistence, deletion_ordering, usage_scanning, permission_listing, metrics_recording}
Outgoing: data/database/repositories/content.py, data/storage/local.py, monitoring/metrics.py --- {repository calls, file store calls, operation counters and durations}

The two stores are not updated atomically. Callers attaching files first
call add_content() to obtain the id, then add_file() per file.
delete_content() removes the files before the row, so an interrupted delete
leaves a row without files rather than files without a row.
"""

import time
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Dict, List, Optional, Set, Union

from data.database.repositories import ContentRepository
from data.storage import FileStats, FileStream, LocalFileStorage
from monitoring import get_logger, setup_storage_metrics
from security.permissions import Permission, get_content_permissions
from security.sanitization import (
    DEFAULT_MAX_FILENAME_LENGTH,
    FilenameSanitizer,
    check_content_id,
    check_filename,
)

from .base import ContentId, ContentStorage
from .dependencies import DependencyPredicate, LibraryName, has_dependency_on
from .usage import ContentUsage, UsageScanner

logger = get_logger(__name__)


class DatabaseContentStorage(ContentStorage):
    """
    Content storage backed by a ContentRepository and a LocalFileStorage.

    Usage:
        storage = DatabaseContentStorage(ContentRepository(db), LocalFileStorage(path))
        content_id = await storage.add_content(metadata, parameters)
        await storage.add_file(content_id, "images/cover.png", data)
    """

    def __init__(
        self,
        repository: ContentRepository,
        files: LocalFileStorage,
        max_filename_length: int = DEFAULT_MAX_FILENAME_LENGTH,
        dependency_predicate: DependencyPredicate = has_dependency_on
    ):
        """
        Initialize content storage.

        Args:
            repository: Metadata/parameters store
            files: File store
            max_filename_length: Limit applied by sanitize_filename()
            dependency_predicate: (metadata, library) -> bool used by get_usage()
        """
        self.repository = repository
        self.files = files
        self.sanitizer = FilenameSanitizer(max_filename_length)
        self.usage_scanner = UsageScanner(repository, dependency_predicate)

        metrics = setup_storage_metrics()
        self._operations = metrics['operations_total']
        self._duration = metrics['operation_duration_seconds']

    @asynccontextmanager
    async def _track(self, operation: str) -> AsyncGenerator[None, None]:
        """Count the operation by outcome and record its duration."""
        start_time = time.time()
        try:
            yield
        except Exception:
            self._operations.inc(operation=operation, status='error')
            raise
        else:
            self._operations.inc(operation=operation, status='success')
        finally:
            self._duration.observe(time.time() - start_time, operation=operation)

    # =========================================================================
    # CONTENT
    # =========================================================================

    async def add_content(
        self,
        metadata: Dict[str, Any],
        parameters: Dict[str, Any],
        user: Optional[Any] = None,
        content_id: Optional[ContentId] = None
    ) -> int:
        """
        Create or update content documents.

        Args:
            metadata: Metadata document
            parameters: Parameters document
            user: Opaque user token
            content_id: Id to update; None creates new content

        Returns:
            Content id

        Raises:
            ValidationError: If a document or the id is invalid
            StorageUnavailableError: If the database fails
        """
        async with self._track('add_content'):
            new_id = await self.repository.upsert(metadata, parameters, content_id)

        logger.info(
            f"{'Updated' if content_id is not None else 'Created'} content {new_id}",
            content_id=new_id,
            user=repr(user) if user is not None else None,
        )
        return new_id

    async def delete_content(self, content_id: ContentId, user: Optional[Any] = None) -> None:
        """
        Delete content: all files first, then the documents.

        Deleting content that does not exist is not an error.
        """
        content_id = check_content_id(content_id)
        async with self._track('delete_content'):
            await self.files.remove_all(content_id)
            await self.repository.remove(content_id)

        logger.info(f"Deleted content {content_id}", content_id=content_id)

    async def content_exists(self, content_id: ContentId) -> bool:
        async with self._track('content_exists'):
            return await self.repository.exists(content_id)

    async def get_metadata(
        self,
        content_id: ContentId,
        user: Optional[Any] = None
    ) -> Optional[Dict[str, Any]]:
        async with self._track('get_metadata'):
            return await self.repository.get_metadata(content_id)

    async def get_parameters(
        self,
        content_id: ContentId,
        user: Optional[Any] = None
    ) -> Optional[Dict[str, Any]]:
        async with self._track('get_parameters'):
            return await self.repository.get_parameters(content_id)

    async def list_content(self, user: Optional[Any] = None) -> List[int]:
        async with self._track('list_content'):
            return await self.repository.list_ids()

    async def get_usage(self, library: Union[str, LibraryName]) -> ContentUsage:
        """Full scan over all content; see UsageScanner."""
        async with self._track('get_usage'):
            return await self.usage_scanner.get_usage(library)

    async def get_user_permissions(
        self,
        content_id: ContentId,
        user: Optional[Any] = None
    ) -> Set[Permission]:
        """Always the full set of permissions."""
        return get_content_permissions(content_id, user)

    # =========================================================================
    # FILES
    # =========================================================================

    async def add_file(
        self,
        content_id: ContentId,
        filename: str,
        source: Any,
        user: Optional[Any] = None
    ) -> None:
        """
        Store a file for a content item.

        Args:
            content_id: Content id
            filename: Relative path, must pass check_filename()
            source: bytes, (async) iterable of bytes or readable object
            user: Opaque user token

        Raises:
            ValidationError: If the filename or id is invalid
            OSError: If writing fails
        """
        check_filename(filename)
        async with self._track('add_file'):
            await self.files.write_file(content_id, filename, source)

    async def delete_file(
        self,
        content_id: ContentId,
        filename: str,
        user: Optional[Any] = None
    ) -> None:
        check_filename(filename)
        async with self._track('delete_file'):
            await self.files.delete_file(content_id, filename)

    async def file_exists(self, content_id: Optional[ContentId], filename: str) -> bool:
        async with self._track('file_exists'):
            return await self.files.file_exists(content_id, filename)

    async def get_file_stats(
        self,
        content_id: ContentId,
        filename: str,
        user: Optional[Any] = None
    ) -> FileStats:
        async with self._track('get_file_stats'):
            return await self.files.stat(content_id, filename)

    async def get_file_stream(
        self,
        content_id: ContentId,
        filename: str,
        user: Optional[Any] = None,
        range_start: Optional[int] = None,
        range_end: Optional[int] = None
    ) -> FileStream:
        """
        Open a file for streaming.

        Range bounds are inclusive; (10, 19) yields ten bytes.
        """
        async with self._track('get_file_stream'):
            return await self.files.read_stream(content_id, filename, range_start, range_end)

    async def list_files(self, content_id: ContentId, user: Optional[Any] = None) -> List[str]:
        async with self._track('list_files'):
            return await self.files.list_files(content_id)

    def sanitize_filename(self, filename: str) -> str:
        return self.sanitizer.sanitize_filename(filename)
