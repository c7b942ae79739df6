"""
Content Storage - Hybrid document and file storage for content items

Provides:
- ContentStorage interface and the PostgreSQL + local disk implementation
- Library usage scanning over all stored content
- Lifecycle helper that opens the pool and ensures the schema

Usage:
    from core.content import open_content_storage

    async with open_content_storage() as storage:
        content_id = await storage.add_content({"title": "Quiz"}, {"questions": []})
        await storage.add_file(content_id, "images/cover.png", image_bytes)
"""

from .base import ContentId, ContentStorage
from .dependencies import DEPENDENCY_FIELDS, DependencyPredicate, LibraryName, has_dependency_on
from .factory import build_content_storage, open_content_storage
from .storage import DatabaseContentStorage
from .usage import ContentUsage, UsageScanner

__all__ = [
    # Interface
    "ContentStorage",
    "ContentId",
    # Implementation
    "DatabaseContentStorage",
    # Usage
    "ContentUsage",
    "UsageScanner",
    "LibraryName",
    "DependencyPredicate",
    "DEPENDENCY_FIELDS",
    "has_dependency_on",
    # Lifecycle
    "open_content_storage",
    "build_content_storage",
]
