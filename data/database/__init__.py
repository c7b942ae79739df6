"""
Database Layer - Relational side of content storage

Provides:
- Connection management with async pooling
- Schema initialization for the content table
- Repository pattern for data access
- Pydantic models for type safety

Usage:
    from data.database import DatabaseConnection, SchemaInitializer, ContentRepository

    # Initialize connection
    db = DatabaseConnection(connection_url)
    await db.connect()
    await SchemaInitializer(db).ensure_schema()

    # Use repository
    repo = ContentRepository(db)
    content_id = await repo.upsert({"title": "Demo"}, {"text": "hello"})
    metadata = await repo.get_metadata(content_id)

    # Cleanup
    await db.disconnect()
"""

from .connection import DatabaseConnection
from .models import ContentRecord
from .repositories import ContentRepository
from .schema import CONTENT_SCHEMA_FILE, CONTENT_TABLE, SchemaInitializer

__all__ = [
    # Connection
    "DatabaseConnection",
    # Schema
    "SchemaInitializer",
    "CONTENT_TABLE",
    "CONTENT_SCHEMA_FILE",
    # Models
    "ContentRecord",
    # Repositories
    "ContentRepository",
]
