"""
Local File Storage - Per-content file system storage

@.architecture
Incoming: core/content/storage.py, Local filesystem (content_path) --- {content id, relative filename, byte sources, byte range requests}
Processing: write_file(), file_exists(), delete_file(), stat(), read_stream(), list_files(), remove_all(), get_storage_stats(), _file_path(), _validate_path() --- {8 jobs: streaming_write, ranged_streaming_read, file_crud, path_validation, directory_management, recursive_listing, statistics_collection}
Outgoing: Local filesystem (aiofiles), core/content/storage.py --- {bytes written in bounded chunks, FileStream async iterators, FileStats, List[str] relative paths, storage stats dict}

Files are laid out as:

    <content_path>/
    ├── 1/
    │   ├── images/photo.png
    │   └── audio/clip.mp3
    └── 2/
        └── file.pdf

Each content id owns one directory. Every resolved path is checked to stay
inside that directory. Data is moved in chunks of ``chunk_size`` bytes, so
file size is not limited by memory.
"""

import asyncio
import inspect
import os
import shutil
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, AsyncIterator, Dict, List, Optional, Union

import aiofiles
import aiofiles.os
from pydantic import BaseModel, Field

from data.errors import ContentFileNotFoundError
from monitoring import get_logger, setup_storage_metrics
from security.sanitization import (
    InvalidFilenameError,
    PathTraversalError,
    ValidationError,
    check_content_id,
    check_filename,
)

logger = get_logger(__name__)

DEFAULT_CHUNK_SIZE = 64 * 1024

# Suffix of in-progress uploads, hidden from listings
PARTIAL_SUFFIX = ".part"

ContentId = Union[int, str]


def _is_partial(name: str) -> bool:
    return name.startswith(".") and name.endswith(PARTIAL_SUFFIX)


class FileStats(BaseModel):
    """Size and timestamps of a content file."""

    size: int = Field(..., ge=0, description="File size in bytes")
    modified_time: datetime = Field(..., description="Last modification time (UTC)")
    created_time: datetime = Field(..., description="Creation time, or metadata change time where the platform has no birth time (UTC)")


class FileStream:
    """
    Async byte stream over a (possibly partial) file.

    Usage:
        async with await storage.read_stream(1, "video.mp4", 10, 19) as stream:
            async for chunk in stream:
                ...

    The file handle is closed when iteration is exhausted, when aclose() is
    called, when the context manager exits, or when a read fails.
    """

    def __init__(self, handle: Any, length: Optional[int], chunk_size: int = DEFAULT_CHUNK_SIZE):
        """
        Args:
            handle: Open aiofiles binary handle, already positioned at the start offset
            length: Number of bytes to yield, or None for everything up to EOF
            chunk_size: Maximum size of each yielded chunk
        """
        self._handle = handle
        self._remaining = length
        self._chunk_size = chunk_size

    @property
    def closed(self) -> bool:
        return self._handle is None

    async def aclose(self) -> None:
        """Release the file handle. Safe to call more than once."""
        handle, self._handle = self._handle, None
        if handle is not None:
            await handle.close()

    def __aiter__(self) -> "FileStream":
        return self

    async def __anext__(self) -> bytes:
        if self._handle is None or self._remaining == 0:
            await self.aclose()
            raise StopAsyncIteration

        size = self._chunk_size if self._remaining is None else min(self._chunk_size, self._remaining)
        try:
            data = await self._handle.read(size)
        except BaseException:
            await self.aclose()
            raise

        if not data:
            await self.aclose()
            raise StopAsyncIteration

        if self._remaining is not None:
            self._remaining -= len(data)
        return data

    async def read_all(self) -> bytes:
        """Drain the stream into memory. Meant for small files and tests."""
        chunks = [chunk async for chunk in self]
        return b"".join(chunks)

    async def __aenter__(self) -> "FileStream":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()


class LocalFileStorage:
    """
    File storage for content assets, one directory per content id.

    Features:
    - Streaming writes from bytes, (async) iterables or file-like objects
    - Ranged streaming reads (inclusive bounds, like HTTP Range)
    - Recursive listing and idempotent removal per content id
    - Safe path handling (prevents directory traversal)
    """

    def __init__(
        self,
        content_path: Union[str, Path] = "./data/content",
        chunk_size: int = DEFAULT_CHUNK_SIZE
    ):
        """
        Initialize local file storage.

        Args:
            content_path: Root directory holding one subdirectory per content id
            chunk_size: Bytes moved per read/write call
        """
        if chunk_size < 1:
            raise ValueError(f"chunk_size must be positive, got {chunk_size}")

        self.content_path = Path(content_path).resolve()
        self.chunk_size = chunk_size
        self.content_path.mkdir(parents=True, exist_ok=True)
        self._bytes_written = setup_storage_metrics()['bytes_written_total']

        logger.debug(f"Content storage root ensured at {self.content_path}")

    # =========================================================================
    # PATHS
    # =========================================================================

    def content_dir(self, content_id: ContentId) -> Path:
        """Directory owned by a content id (may not exist yet)."""
        return self.content_path / str(check_content_id(content_id))

    def _file_path(self, content_id: ContentId, filename: str) -> Path:
        check_filename(filename)
        content_dir = self.content_dir(content_id)
        file_path = content_dir / filename
        self._validate_path(file_path, content_dir)
        return file_path

    @staticmethod
    def _validate_path(path: Path, content_dir: Path) -> None:
        """
        Validate that path is within the content directory.

        Raises:
            PathTraversalError: If path resolves outside content_dir
        """
        try:
            path.resolve().relative_to(content_dir.resolve())
        except ValueError:
            raise PathTraversalError(
                f"Invalid path: {path} is outside content directory {content_dir}",
                str(path),
            )

    # =========================================================================
    # WRITE OPERATIONS
    # =========================================================================

    @staticmethod
    def _check_source(source: Any) -> None:
        """Reject byte sources of an unsupported type before touching the disk."""
        if isinstance(source, (bytes, bytearray, memoryview)):
            return
        if hasattr(source, "read") or hasattr(source, "__aiter__"):
            return
        if hasattr(source, "__iter__") and not isinstance(source, str):
            return
        raise ValidationError(f"Unsupported byte source: {type(source).__name__}")

    async def _iter_source(self, source: Any) -> AsyncIterator[bytes]:
        """Yield chunks from any supported byte source."""
        if isinstance(source, (bytes, bytearray, memoryview)):
            view = memoryview(source)
            for offset in range(0, len(view), self.chunk_size):
                yield bytes(view[offset:offset + self.chunk_size])
        elif hasattr(source, "read"):
            read = source.read
            while True:
                if inspect.iscoroutinefunction(read):
                    chunk = await read(self.chunk_size)
                else:
                    # Blocking readers (open files, sockets) run off the event loop
                    chunk = await asyncio.to_thread(read, self.chunk_size)
                    if inspect.isawaitable(chunk):
                        chunk = await chunk
                if not chunk:
                    break
                yield chunk
        elif hasattr(source, "__aiter__"):
            async for chunk in source:
                yield chunk
        else:
            for chunk in source:
                yield chunk

    async def write_file(self, content_id: ContentId, filename: str, source: Any) -> int:
        """
        Stream a byte source into a content file, replacing any existing file.

        Data goes to a hidden temporary file next to the target, which is
        moved over the target only once the source is exhausted. A failed or
        rejected write leaves any previous file untouched.

        Args:
            content_id: Content id
            filename: Path relative to the content directory
            source: bytes, an (async) iterable of bytes, or an object with a
                sync or async read(size) method

        Returns:
            Number of bytes written

        Raises:
            ValidationError: If the id, filename or source is invalid
            OSError: If the disk write fails (temporary file is removed)
        """
        file_path = self._file_path(content_id, filename)
        self._check_source(source)
        await aiofiles.os.makedirs(file_path.parent, exist_ok=True)

        temp_path = file_path.with_name(f".{file_path.name}.{uuid.uuid4().hex}{PARTIAL_SUFFIX}")
        written = 0
        try:
            async with aiofiles.open(temp_path, "wb") as f:
                async for chunk in self._iter_source(source):
                    if isinstance(chunk, str):
                        raise ValidationError("Byte source yielded str, expected bytes")
                    await f.write(chunk)
                    written += len(chunk)
            await aiofiles.os.replace(temp_path, file_path)
        except BaseException:
            if temp_path.is_file():
                temp_path.unlink()
            logger.error(
                f"Failed to write file {filename} for content {content_id}",
                exc_info=True,
                content_id=content_id,
                filename=filename,
            )
            raise

        self._bytes_written.inc(written)
        logger.debug(
            f"Wrote file {filename} for content {content_id} ({written} bytes)",
            content_id=content_id,
        )
        return written

    async def delete_file(self, content_id: ContentId, filename: str) -> None:
        """
        Delete one content file. Only regular files can be deleted.

        Raises:
            InvalidFilenameError: If the filename names a directory
            ContentFileNotFoundError: If the file does not exist
        """
        file_path = self._file_path(content_id, filename)
        if await aiofiles.os.path.isdir(file_path):
            raise InvalidFilenameError(
                f"Cannot delete directory {filename!r}, only files", filename
            )
        if not await aiofiles.os.path.isfile(file_path):
            raise ContentFileNotFoundError(content_id, filename)

        try:
            await aiofiles.os.remove(file_path)
        except FileNotFoundError as e:
            raise ContentFileNotFoundError(content_id, filename) from e

        logger.info(f"Deleted file {filename} of content {content_id}", content_id=content_id)

    async def remove_all(self, content_id: ContentId) -> None:
        """Recursively delete the content directory. Missing directory is not an error."""
        content_dir = self.content_dir(content_id)
        try:
            await asyncio.to_thread(shutil.rmtree, content_dir)
        except FileNotFoundError:
            logger.debug(f"No directory to remove for content {content_id}", content_id=content_id)
            return

        logger.info(f"Removed all files of content {content_id}", content_id=content_id)

    # =========================================================================
    # READ OPERATIONS
    # =========================================================================

    async def file_exists(self, content_id: Optional[ContentId], filename: str) -> bool:
        """
        Check if a content file exists.

        The filename is validated first; a missing content id yields False.
        """
        check_filename(filename)
        if content_id is None:
            return False
        file_path = self._file_path(content_id, filename)
        return await aiofiles.os.path.isfile(file_path)

    async def stat(self, content_id: ContentId, filename: str) -> FileStats:
        """
        Get size and timestamps of a content file.

        Raises:
            ContentFileNotFoundError: If the file does not exist
        """
        file_path = self._file_path(content_id, filename)
        try:
            st = await aiofiles.os.stat(file_path)
        except FileNotFoundError as e:
            raise ContentFileNotFoundError(content_id, filename) from e

        if not file_path.is_file():
            raise ContentFileNotFoundError(content_id, filename)

        created = getattr(st, "st_birthtime", st.st_ctime)
        return FileStats(
            size=st.st_size,
            modified_time=datetime.fromtimestamp(st.st_mtime, tz=timezone.utc),
            created_time=datetime.fromtimestamp(created, tz=timezone.utc),
        )

    async def read_stream(
        self,
        content_id: ContentId,
        filename: str,
        range_start: Optional[int] = None,
        range_end: Optional[int] = None
    ) -> FileStream:
        """
        Open a content file for streaming.

        Bounds are inclusive: (10, 19) yields exactly bytes 10 through 19.
        A range_end past the end of the file is clamped to the last byte.

        Args:
            content_id: Content id
            filename: Path relative to the content directory
            range_start: First byte offset (default 0)
            range_end: Last byte offset, inclusive (default end of file)

        Returns:
            FileStream to iterate; close it (or use it as a context manager)
            if not consumed to the end

        Raises:
            ValidationError: If the range is negative or inverted
            ContentFileNotFoundError: If the file does not exist
        """
        start = 0 if range_start is None else range_start
        if start < 0 or (range_end is not None and range_end < start):
            raise ValidationError(f"Invalid byte range: {range_start}-{range_end}")

        file_path = self._file_path(content_id, filename)
        if not await aiofiles.os.path.isfile(file_path):
            raise ContentFileNotFoundError(content_id, filename)

        try:
            handle = await aiofiles.open(file_path, "rb")
        except FileNotFoundError as e:
            raise ContentFileNotFoundError(content_id, filename) from e

        length: Optional[int] = None
        try:
            if range_end is not None:
                size = (await aiofiles.os.stat(file_path)).st_size
                length = max(0, min(range_end, size - 1) - start + 1)
            if start:
                await handle.seek(start)
        except BaseException:
            await handle.close()
            raise

        logger.debug(
            f"Streaming {filename} of content {content_id} from byte {start}"
            + (f" ({length} bytes)" if length is not None else ""),
            content_id=content_id,
        )
        return FileStream(handle, length, self.chunk_size)

    async def list_files(self, content_id: ContentId) -> List[str]:
        """
        List all regular files of a content item, recursively.

        Uploads still in progress are not listed.

        Returns:
            POSIX-style paths relative to the content directory; empty if
            the directory does not exist
        """
        content_dir = self.content_dir(content_id)

        def _walk() -> List[str]:
            if not content_dir.is_dir():
                return []
            return sorted(
                path.relative_to(content_dir).as_posix()
                for path in content_dir.rglob("*")
                if path.is_file() and not _is_partial(path.name)
            )

        return await asyncio.to_thread(_walk)

    # =========================================================================
    # STATISTICS
    # =========================================================================

    async def get_storage_stats(self, content_id: Optional[ContentId] = None) -> Dict[str, Any]:
        """
        Get storage statistics.

        Args:
            content_id: Restrict to one content item (default: whole root)

        Returns:
            Dict with file count and total size, plus the number of content
            directories when computed over the whole root
        """
        root = self.content_path if content_id is None else self.content_dir(content_id)

        def _collect() -> Dict[str, Any]:
            stats: Dict[str, Any] = {
                "total_files": 0,
                "total_size_bytes": 0,
            }
            if content_id is None:
                stats["content_directories"] = 0
            if not root.is_dir():
                return stats

            for dirpath, dirnames, filenames in os.walk(root):
                if content_id is None and Path(dirpath) == root:
                    stats["content_directories"] = len(dirnames)
                for name in filenames:
                    if _is_partial(name):
                        continue
                    stats["total_files"] += 1
                    stats["total_size_bytes"] += os.path.getsize(os.path.join(dirpath, name))
            return stats

        return await asyncio.to_thread(_collect)
