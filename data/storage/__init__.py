"""
Storage Layer - Content file storage

Provides file system storage operations:
- One directory per content id
- Streaming writes and ranged streaming reads
- Path validation against traversal

The storage layer handles physical file persistence while
the database layer holds the metadata and parameters documents.
"""

from .local import DEFAULT_CHUNK_SIZE, FileStats, FileStream, LocalFileStorage

__all__ = ["LocalFileStorage", "FileStream", "FileStats", "DEFAULT_CHUNK_SIZE"]
