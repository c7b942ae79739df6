"""
Content Storage Factory - Startup and shutdown of the storage stack

@.architecture
Incoming: Application startup, scripts, tests --- {Settings instance (optional)}
Processing: open_content_storage(), build_content_storage() --- {4 jobs: pool_lifecycle, schema_initialization, component_wiring, shutdown}
Outgoing: core/content/storage.py --- {DatabaseContentStorage bound to an open pool}

The storage is only handed out after the content table has been verified.
If schema initialization fails the pool is closed and the error propagates.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from config.settings import Settings, get_settings
from data.database import ContentRepository, DatabaseConnection, SchemaInitializer
from data.storage import LocalFileStorage
from monitoring import get_logger

from .dependencies import DependencyPredicate, has_dependency_on
from .storage import DatabaseContentStorage

logger = get_logger(__name__)


def build_content_storage(
    db: DatabaseConnection,
    settings: Settings,
    dependency_predicate: DependencyPredicate = has_dependency_on
) -> DatabaseContentStorage:
    """Wire repository and file store around an existing connection manager."""
    files = LocalFileStorage(
        settings.storage.content_path,
        chunk_size=settings.storage.chunk_size,
    )
    return DatabaseContentStorage(
        ContentRepository(db),
        files,
        max_filename_length=settings.storage.max_filename_length,
        dependency_predicate=dependency_predicate,
    )


@asynccontextmanager
async def open_content_storage(
    settings: Optional[Settings] = None,
    dependency_predicate: DependencyPredicate = has_dependency_on
) -> AsyncGenerator[DatabaseContentStorage, None]:
    """
    Open the database pool, ensure the schema and yield a ready storage.

    Usage:
        async with open_content_storage() as storage:
            content_id = await storage.add_content(metadata, parameters)

    Args:
        settings: Settings to use (default: get_settings())
        dependency_predicate: Predicate passed to the usage scanner

    Yields:
        DatabaseContentStorage

    Raises:
        StorageUnavailableError: If the database is unreachable or the
            schema cannot be created
    """
    settings = settings or get_settings()
    db = DatabaseConnection.from_settings(settings.database)

    await db.connect()
    try:
        await SchemaInitializer(db).ensure_schema()
    except Exception:
        logger.error("Schema initialization failed, closing pool", exc_info=True)
        await db.disconnect()
        raise

    logger.info(f"Content storage ready (files at {settings.storage.content_path})")
    try:
        yield build_content_storage(db, settings, dependency_predicate)
    finally:
        await db.disconnect()
        logger.info("Content storage closed")
