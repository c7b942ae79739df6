"""
Schema Initializer - Ensures the content table exists

@.architecture
Incoming: core/content/factory.py, scripts/init_schema.py --- {DatabaseConnection instance}
Processing: ensure_schema() --- {2 jobs: schema_creation, schema_verification}
Outgoing: PostgreSQL (via DatabaseConnection) --- {CREATE TABLE IF NOT EXISTS content, raises StorageUnavailableError}

Runs once at startup. The SQL uses "create if not exists" under a
transaction-scoped advisory lock, so concurrent process instances can call it
at the same time. A failure here is fatal: callers must not serve traffic
without a validated schema.
"""

from pathlib import Path

from data.errors import StorageUnavailableError
from monitoring import get_logger

from .connection import DatabaseConnection

logger = get_logger(__name__)

CONTENT_TABLE = "content"
CONTENT_SCHEMA_FILE = Path(__file__).parent / "migrations" / "content.sql"


class SchemaInitializer:
    """Creates and verifies the content table."""

    def __init__(
        self,
        db: DatabaseConnection,
        schema_file: Path = CONTENT_SCHEMA_FILE,
        table_name: str = CONTENT_TABLE,
    ):
        self.db = db
        self.schema_file = schema_file
        self.table_name = table_name

    async def ensure_schema(self) -> None:
        """
        Create the content table if absent and verify it exists.

        Raises:
            StorageUnavailableError: If the database is unreachable, the SQL
                fails, or the table is still missing afterwards
        """
        await self.db.initialize_schema(self.schema_file)

        if not await self.db.table_exists(self.table_name):
            logger.error(f"Table '{self.table_name}' missing after schema initialization")
            raise StorageUnavailableError(
                f"Table '{self.table_name}' missing after schema initialization"
            )

        logger.info(f"Schema verified: table '{self.table_name}' ready")
