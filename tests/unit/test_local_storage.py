"""
Unit Tests: Local File Storage

Tests for per-content file storage on a temporary directory: streaming
writes, ranged reads, listing, stats and removal.
"""

import io
import threading
from pathlib import Path

import pytest

from data.errors import ContentFileNotFoundError
from data.storage import FileStats, LocalFileStorage
from monitoring import setup_storage_metrics
from security.sanitization import InvalidFilenameError, PathTraversalError, ValidationError


DATA = bytes(range(256)) * 4  # 1024 bytes


async def _chunks(*parts):
    for part in parts:
        yield part


class _AsyncReader:
    def __init__(self, data: bytes):
        self._buffer = io.BytesIO(data)

    async def read(self, size: int = -1) -> bytes:
        return self._buffer.read(size)


# =============================================================================
# Write Tests
# =============================================================================

@pytest.mark.unit
class TestWriteFile:
    """Test streaming writes from different byte sources."""

    @pytest.mark.asyncio
    async def test_write_bytes(self, file_storage: LocalFileStorage, content_root: Path):
        """bytes are written under <root>/<id>/<filename>."""
        written = await file_storage.write_file(1, "images/a.png", DATA)

        assert written == len(DATA)
        assert (content_root / "1" / "images" / "a.png").read_bytes() == DATA

    @pytest.mark.asyncio
    @pytest.mark.parametrize("make_source", [
        lambda: io.BytesIO(DATA),
        lambda: _AsyncReader(DATA),
        lambda: [DATA[:100], DATA[100:]],
        lambda: _chunks(DATA[:500], DATA[500:]),
        lambda: bytearray(DATA),
    ])
    async def test_write_sources(self, file_storage, content_root, make_source):
        """Readers, iterables and async iterables are all accepted."""
        await file_storage.write_file(2, "file.bin", make_source())

        assert (content_root / "2" / "file.bin").read_bytes() == DATA

    @pytest.mark.asyncio
    async def test_overwrite_truncates(self, file_storage, content_root):
        """Writing again replaces the previous content."""
        await file_storage.write_file(1, "a.txt", b"long original content")
        await file_storage.write_file(1, "a.txt", b"short")

        assert (content_root / "1" / "a.txt").read_bytes() == b"short"

    @pytest.mark.asyncio
    async def test_rejects_traversal(self, file_storage, tmp_path):
        """Traversal filenames never touch the disk."""
        with pytest.raises(PathTraversalError):
            await file_storage.write_file(1, "../../escape.txt", b"x")

        assert not (tmp_path / "escape.txt").exists()

    @pytest.mark.asyncio
    async def test_rejects_invalid_content_id(self, file_storage):
        """Content ids must be positive integers."""
        with pytest.raises(ValidationError):
            await file_storage.write_file("../1", "a.txt", b"x")

    @pytest.mark.asyncio
    async def test_failed_source_removes_partial_file(self, file_storage, content_root):
        """A source failing mid-stream leaves no partial file."""
        async def failing():
            yield b"first chunk"
            raise RuntimeError("source broke")

        with pytest.raises(RuntimeError):
            await file_storage.write_file(1, "partial.bin", failing())

        assert not (content_root / "1" / "partial.bin").exists()

    @pytest.mark.asyncio
    async def test_unsupported_source(self, file_storage):
        """Sources that are neither bytes, readers nor iterables are rejected."""
        with pytest.raises(ValidationError):
            await file_storage.write_file(1, "a.bin", 12345)

    @pytest.mark.asyncio
    async def test_rejected_source_keeps_existing_file(self, file_storage, content_root):
        """A rejected source leaves the stored file as it was."""
        await file_storage.write_file(1, "a.txt", b"original")

        with pytest.raises(ValidationError):
            await file_storage.write_file(1, "a.txt", 12345)

        assert (content_root / "1" / "a.txt").read_bytes() == b"original"
        assert await file_storage.list_files(1) == ["a.txt"]

    @pytest.mark.asyncio
    async def test_failed_source_keeps_existing_file(self, file_storage, content_root):
        """A source failing mid-stream does not replace the stored file."""
        await file_storage.write_file(1, "a.txt", b"original")

        async def failing():
            yield b"replacement"
            raise RuntimeError("source broke")

        with pytest.raises(RuntimeError):
            await file_storage.write_file(1, "a.txt", failing())

        assert (content_root / "1" / "a.txt").read_bytes() == b"original"
        assert sorted(p.name for p in (content_root / "1").iterdir()) == ["a.txt"]

    @pytest.mark.asyncio
    async def test_in_progress_upload_not_listed(self, file_storage, content_root):
        """Temporary upload files are hidden from listings and stats."""
        async def slow():
            yield b"partial"
            assert await file_storage.list_files(1) == []
            assert (await file_storage.get_storage_stats(1))["total_files"] == 0
            yield b" done"

        await file_storage.write_file(1, "a.txt", slow())

        assert await file_storage.list_files(1) == ["a.txt"]
        assert (content_root / "1" / "a.txt").read_bytes() == b"partial done"

    @pytest.mark.asyncio
    async def test_sync_reader_runs_off_event_loop(self, file_storage, content_root):
        """Blocking read(size) calls are made from a worker thread."""
        loop_thread = threading.get_ident()
        reader_threads = set()

        class _ThreadRecordingReader(io.BytesIO):
            def read(self, size=-1):
                reader_threads.add(threading.get_ident())
                return super().read(size)

        await file_storage.write_file(1, "a.bin", _ThreadRecordingReader(DATA))

        assert (content_root / "1" / "a.bin").read_bytes() == DATA
        assert reader_threads and loop_thread not in reader_threads

    @pytest.mark.asyncio
    async def test_counts_bytes_written(self, file_storage):
        """Written bytes are added to the bytes-written counter."""
        counter = setup_storage_metrics()['bytes_written_total']
        before = counter.get()

        await file_storage.write_file(1, "a.bin", DATA)

        assert counter.get() - before == len(DATA)


# =============================================================================
# Read Tests
# =============================================================================

@pytest.mark.unit
class TestReadStream:
    """Test streaming and ranged reads."""

    @pytest.mark.asyncio
    async def test_full_read(self, file_storage):
        """Without a range the whole file is streamed in chunks."""
        await file_storage.write_file(1, "a.bin", DATA)

        stream = await file_storage.read_stream(1, "a.bin")
        chunks = [chunk async for chunk in stream]

        assert b"".join(chunks) == DATA
        assert max(len(c) for c in chunks) <= file_storage.chunk_size
        assert stream.closed

    @pytest.mark.asyncio
    async def test_inclusive_range(self, file_storage):
        """Range 10-19 yields exactly bytes 10 through 19."""
        await file_storage.write_file(1, "a.bin", DATA)

        async with await file_storage.read_stream(1, "a.bin", 10, 19) as stream:
            data = await stream.read_all()

        assert data == DATA[10:20]
        assert len(data) == 10

    @pytest.mark.asyncio
    async def test_range_across_chunks(self, file_storage):
        """Ranges spanning several chunks are exact."""
        await file_storage.write_file(1, "a.bin", DATA)

        stream = await file_storage.read_stream(1, "a.bin", 5, 700)

        assert await stream.read_all() == DATA[5:701]

    @pytest.mark.asyncio
    async def test_open_ended_range(self, file_storage):
        """A start without end reads to end of file."""
        await file_storage.write_file(1, "a.bin", DATA)

        stream = await file_storage.read_stream(1, "a.bin", range_start=1000)

        assert await stream.read_all() == DATA[1000:]

    @pytest.mark.asyncio
    async def test_end_clamped(self, file_storage):
        """An end beyond EOF is clamped to the last byte."""
        await file_storage.write_file(1, "a.bin", b"0123456789")

        stream = await file_storage.read_stream(1, "a.bin", 5, 10_000)

        assert await stream.read_all() == b"56789"

    @pytest.mark.asyncio
    async def test_start_beyond_eof(self, file_storage):
        """A start beyond EOF yields nothing."""
        await file_storage.write_file(1, "a.bin", b"0123456789")

        stream = await file_storage.read_stream(1, "a.bin", 50, 60)

        assert await stream.read_all() == b""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("start,end", [(-1, 5), (10, 9)])
    async def test_invalid_range(self, file_storage, start, end):
        """Negative or inverted ranges are rejected."""
        await file_storage.write_file(1, "a.bin", DATA)

        with pytest.raises(ValidationError):
            await file_storage.read_stream(1, "a.bin", start, end)

    @pytest.mark.asyncio
    async def test_missing_file(self, file_storage):
        """Missing files raise ContentFileNotFoundError with context."""
        with pytest.raises(ContentFileNotFoundError) as exc_info:
            await file_storage.read_stream(3, "nope.bin")

        assert exc_info.value.content_id == 3
        assert exc_info.value.filename == "nope.bin"

    @pytest.mark.asyncio
    async def test_close_early(self, file_storage):
        """Closing a partly consumed stream releases the handle."""
        await file_storage.write_file(1, "a.bin", DATA)

        stream = await file_storage.read_stream(1, "a.bin")
        first = await stream.__anext__()
        await stream.aclose()

        assert first == DATA[:file_storage.chunk_size]
        assert stream.closed
        assert [chunk async for chunk in stream] == []


# =============================================================================
# Metadata Operations Tests
# =============================================================================

@pytest.mark.unit
class TestFileOperations:
    """Test exists, stat, delete, listing and removal."""

    @pytest.mark.asyncio
    async def test_file_exists(self, file_storage):
        await file_storage.write_file(1, "a.txt", b"x")

        assert await file_storage.file_exists(1, "a.txt") is True
        assert await file_storage.file_exists(1, "b.txt") is False
        assert await file_storage.file_exists(2, "a.txt") is False

    @pytest.mark.asyncio
    async def test_file_exists_without_content_id(self, file_storage):
        """A missing content id is reported as not found."""
        assert await file_storage.file_exists(None, "a.txt") is False

    @pytest.mark.asyncio
    async def test_file_exists_validates_filename(self, file_storage):
        """The filename is validated even when the content id is missing."""
        with pytest.raises(InvalidFilenameError):
            await file_storage.file_exists(None, "../a.txt")

    @pytest.mark.asyncio
    async def test_directory_is_not_a_file(self, file_storage):
        await file_storage.write_file(1, "images/a.png", b"x")

        assert await file_storage.file_exists(1, "images") is False

    @pytest.mark.asyncio
    async def test_stat(self, file_storage):
        await file_storage.write_file(1, "a.bin", DATA)

        stats = await file_storage.stat(1, "a.bin")

        assert isinstance(stats, FileStats)
        assert stats.size == len(DATA)
        assert stats.modified_time.tzinfo is not None

    @pytest.mark.asyncio
    async def test_stat_missing(self, file_storage):
        with pytest.raises(ContentFileNotFoundError):
            await file_storage.stat(1, "missing.bin")

    @pytest.mark.asyncio
    async def test_delete_file(self, file_storage):
        await file_storage.write_file(1, "a.txt", b"x")

        await file_storage.delete_file(1, "a.txt")

        assert await file_storage.file_exists(1, "a.txt") is False

    @pytest.mark.asyncio
    async def test_delete_missing_file(self, file_storage):
        with pytest.raises(ContentFileNotFoundError):
            await file_storage.delete_file(1, "a.txt")

    @pytest.mark.asyncio
    async def test_delete_directory_rejected(self, file_storage, content_root):
        """Only regular files can be deleted; directories are left alone."""
        await file_storage.write_file(1, "sub/b.txt", b"x")

        with pytest.raises(InvalidFilenameError, match="directory"):
            await file_storage.delete_file(1, "sub")

        assert (content_root / "1" / "sub" / "b.txt").exists()

    @pytest.mark.asyncio
    async def test_list_files_recursive(self, file_storage):
        """Listing is recursive, relative and excludes directories."""
        await file_storage.write_file(1, "a.txt", b"1")
        await file_storage.write_file(1, "images/b.png", b"2")
        await file_storage.write_file(1, "images/deep/c.png", b"3")
        await file_storage.write_file(2, "other.txt", b"4")

        files = await file_storage.list_files(1)

        assert sorted(files) == ["a.txt", "images/b.png", "images/deep/c.png"]

    @pytest.mark.asyncio
    async def test_list_files_missing_directory(self, file_storage):
        assert await file_storage.list_files(99) == []

    @pytest.mark.asyncio
    async def test_remove_all(self, file_storage, content_root):
        await file_storage.write_file(1, "images/b.png", b"2")
        await file_storage.write_file(2, "keep.txt", b"4")

        await file_storage.remove_all(1)

        assert not (content_root / "1").exists()
        assert await file_storage.list_files(1) == []
        assert await file_storage.list_files(2) == ["keep.txt"]

    @pytest.mark.asyncio
    async def test_remove_all_idempotent(self, file_storage):
        """Removing a missing directory is not an error."""
        await file_storage.remove_all(5)
        await file_storage.remove_all(5)

    @pytest.mark.asyncio
    async def test_storage_stats(self, file_storage):
        await file_storage.write_file(1, "a.bin", b"x" * 10)
        await file_storage.write_file(1, "sub/b.bin", b"x" * 5)
        await file_storage.write_file(2, "c.bin", b"x" * 7)

        total = await file_storage.get_storage_stats()
        single = await file_storage.get_storage_stats(1)

        assert total == {"total_files": 3, "total_size_bytes": 22, "content_directories": 2}
        assert single == {"total_files": 2, "total_size_bytes": 15}

    def test_invalid_chunk_size(self, tmp_path):
        with pytest.raises(ValueError):
            LocalFileStorage(tmp_path, chunk_size=0)
