"""
Content Repository - Data access layer for content metadata and parameters

@.architecture
Incoming: core/content/storage.py, core/content/usage.py --- {DatabaseConnection instance, content id, metadata/parameters dicts}
Processing: upsert(), exists(), get_metadata(), get_parameters(), get_record(), list_ids(), count(), remove() --- {6 jobs: content_crud, json_serialization, id_validation, error_translation, query_execution, transaction_management}
Outgoing: PostgreSQL (via DatabaseConnection), core/content/*.py --- {SQL INSERT/SELECT/UPDATE/DELETE on the content table, dicts, ContentRecord instances}

One row per content item. The "content" column holds the parameters
document, "metadata" the metadata document; both are JSONB objects.

Writes are plain INSERT/UPDATE statements: concurrent updates of the same id
are serialized by PostgreSQL row locks and the last writer wins.
"""

import json
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Dict, List, Optional

import psycopg
import psycopg.errors

from data.errors import StorageUnavailableError
from monitoring import get_logger
from security.sanitization import ValidationError, check_content_id

from ..connection import DatabaseConnection
from ..models import ContentRecord

logger = get_logger(__name__)


class ContentRepository:
    """
    Repository for content records.

    Provides clean API for:
    - Inserting and updating metadata/parameters documents
    - Loading either document by content id
    - Listing and counting content ids
    - Idempotent removal

    All methods are async and use connection pooling.
    """

    def __init__(self, db: DatabaseConnection):
        """
        Initialize content repository.

        Args:
            db: Database connection manager
        """
        self.db = db

    # =========================================================================
    # HELPERS
    # =========================================================================

    @staticmethod
    def _dump_document(document: Any, field: str) -> str:
        """Serialize a document to strict JSON text for a ::jsonb parameter."""
        if not isinstance(document, dict):
            raise ValidationError(
                f"{field} must be a JSON object, got {type(document).__name__}"
            )
        try:
            return json.dumps(document, allow_nan=False)
        except (TypeError, ValueError) as e:
            raise ValidationError(f"{field} is not valid JSON: {e}") from e

    @staticmethod
    def _load_document(value: Any) -> Optional[Dict[str, Any]]:
        """JSONB columns normally arrive decoded; accept text as well."""
        if value is None:
            return None
        if isinstance(value, str):
            return json.loads(value)
        return value

    @asynccontextmanager
    async def _translate_errors(
        self,
        operation: str,
        content_id: Optional[int] = None
    ) -> AsyncGenerator[None, None]:
        """Map driver errors to ValidationError / StorageUnavailableError."""
        try:
            yield
        except (psycopg.errors.CheckViolation, psycopg.DataError) as e:
            logger.warning(f"Content {operation} rejected by database: {e}", content_id=content_id)
            raise ValidationError(f"Invalid content document: {e}") from e
        except psycopg.Error as e:
            logger.error(
                f"Content {operation} failed: {e}",
                exc_info=True,
                content_id=content_id,
            )
            raise StorageUnavailableError(
                f"Content {operation} failed: {e}", content_id=content_id
            ) from e

    # =========================================================================
    # WRITE OPERATIONS
    # =========================================================================

    async def upsert(
        self,
        metadata: Dict[str, Any],
        parameters: Dict[str, Any],
        content_id: Optional[int] = None
    ) -> int:
        """
        Insert a new content row or update an existing one.

        Args:
            metadata: Metadata document (JSON object)
            parameters: Parameters document (JSON object)
            content_id: Existing content id to update; None inserts

        Returns:
            The generated id (insert) or content_id (update)

        Raises:
            ValidationError: If a document is not a JSON object or the id is invalid
            StorageUnavailableError: If the database is unreachable or the query fails
        """
        if content_id is not None:
            content_id = check_content_id(content_id)
        metadata_json = self._dump_document(metadata, "metadata")
        parameters_json = self._dump_document(parameters, "parameters")

        async with self._translate_errors("upsert", content_id):
            async with self.db.transaction() as conn:
                if content_id is None:
                    cursor = await conn.execute(
                        """
                        INSERT INTO content (metadata, content)
                        VALUES (%s::jsonb, %s::jsonb)
                        RETURNING id
                        """,
                        (metadata_json, parameters_json),
                    )
                    row = await cursor.fetchone()
                    content_id = row["id"]
                    logger.debug(f"Inserted content {content_id}", content_id=content_id)
                    return content_id

                cursor = await conn.execute(
                    """
                    UPDATE content
                    SET metadata = %s::jsonb, content = %s::jsonb
                    WHERE id = %s
                    """,
                    (metadata_json, parameters_json, content_id),
                )

        if cursor.rowcount == 0:
            logger.warning(
                f"Update of content {content_id} matched no row",
                content_id=content_id,
            )
        else:
            logger.debug(f"Updated content {content_id}", content_id=content_id)
        return content_id

    async def remove(self, content_id: int) -> None:
        """
        Delete a content row. Deleting a missing row is not an error.

        Args:
            content_id: Content id
        """
        content_id = check_content_id(content_id)
        async with self._translate_errors("remove", content_id):
            async with self.db.transaction() as conn:
                cursor = await conn.execute(
                    "DELETE FROM content WHERE id = %s",
                    (content_id,),
                )

        logger.debug(
            f"Removed content {content_id} ({cursor.rowcount} row(s))",
            content_id=content_id,
        )

    # =========================================================================
    # READ OPERATIONS
    # =========================================================================

    async def exists(self, content_id: int) -> bool:
        """Check whether a row with this id exists."""
        content_id = check_content_id(content_id)
        async with self._translate_errors("exists", content_id):
            async with self.db.get_connection() as conn:
                cursor = await conn.execute(
                    "SELECT EXISTS (SELECT 1 FROM content WHERE id = %s) AS present",
                    (content_id,),
                )
                row = await cursor.fetchone()

        return bool(row and row["present"])

    async def get_metadata(self, content_id: int) -> Optional[Dict[str, Any]]:
        """
        Load the metadata document.

        Args:
            content_id: Content id

        Returns:
            Metadata dict or None if no row found
        """
        return await self._get_column(content_id, "metadata")

    async def get_parameters(self, content_id: int) -> Optional[Dict[str, Any]]:
        """
        Load the parameters document.

        Args:
            content_id: Content id

        Returns:
            Parameters dict or None if no row found
        """
        return await self._get_column(content_id, "content")

    async def _get_column(self, content_id: int, column: str) -> Optional[Dict[str, Any]]:
        content_id = check_content_id(content_id)
        async with self._translate_errors(f"read of {column}", content_id):
            async with self.db.get_connection() as conn:
                cursor = await conn.execute(
                    f"SELECT {column} AS document FROM content WHERE id = %s",
                    (content_id,),
                )
                row = await cursor.fetchone()

        if not row:
            return None
        return self._load_document(row["document"])

    async def get_record(self, content_id: int) -> Optional[ContentRecord]:
        """
        Load both documents of a content row.

        Args:
            content_id: Content id

        Returns:
            ContentRecord or None if no row found
        """
        content_id = check_content_id(content_id)
        async with self._translate_errors("read", content_id):
            async with self.db.get_connection() as conn:
                cursor = await conn.execute(
                    "SELECT id, metadata, content FROM content WHERE id = %s",
                    (content_id,),
                )
                row = await cursor.fetchone()

        if not row:
            return None
        return ContentRecord(
            id=row["id"],
            metadata=self._load_document(row["metadata"]),
            content=self._load_document(row["content"]),
        )

    async def list_ids(self) -> List[int]:
        """
        List ids of all rows that have metadata.

        Returns:
            Content ids in no particular order
        """
        async with self._translate_errors("listing"):
            async with self.db.get_connection() as conn:
                cursor = await conn.execute(
                    "SELECT id FROM content WHERE metadata IS NOT NULL"
                )
                rows = await cursor.fetchall()

        return [row["id"] for row in rows]

    async def count(self) -> int:
        """Count content rows."""
        async with self._translate_errors("count"):
            async with self.db.get_connection() as conn:
                cursor = await conn.execute("SELECT COUNT(*) AS total FROM content")
                row = await cursor.fetchone()

        return row["total"] if row else 0
