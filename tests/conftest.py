"""
Pytest Configuration and Shared Fixtures

Provides test fixtures, a mocked database connection, an in-memory content
repository and temporary content directories for unit tests.
"""

import os
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, Dict, List, Optional
from unittest.mock import AsyncMock, MagicMock

import pytest

# Test environment setup
os.environ["CONTENT_STORAGE_ENVIRONMENT"] = "test"

from config.settings import get_settings, reload_settings
from core.content import DatabaseContentStorage
from data.database.models import ContentRecord
from data.database.repositories.content import ContentRepository
from data.storage import LocalFileStorage
from security.sanitization import check_content_id


# =============================================================================
# Pytest Configuration
# =============================================================================

def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers", "unit: Unit tests that test individual components"
    )
    config.addinivalue_line(
        "markers", "integration: Integration tests that test component interactions"
    )
    config.addinivalue_line(
        "markers", "requires_db: Tests that require database connection"
    )


# =============================================================================
# Settings Fixtures
# =============================================================================

@pytest.fixture
def test_settings():
    """Load test settings."""
    reload_settings()  # Clear cache and reload with test environment
    return get_settings()


@pytest.fixture(autouse=True)
def reset_settings():
    """Reset settings after each test."""
    yield
    get_settings.cache_clear()


# =============================================================================
# Database Fixtures
# =============================================================================

class MockDatabase:
    """
    Stand-in for DatabaseConnection.

    Both get_connection() and transaction() yield the same mock connection,
    whose execute() returns ``cursor``. Set ``cursor.fetchone.return_value``
    or ``conn.execute.side_effect`` to script responses.
    """

    def __init__(self):
        self.cursor = MagicMock()
        self.cursor.fetchone = AsyncMock(return_value=None)
        self.cursor.fetchall = AsyncMock(return_value=[])
        self.cursor.rowcount = 1

        self.conn = MagicMock()
        self.conn.execute = AsyncMock(return_value=self.cursor)

        self.transactions = 0

    @asynccontextmanager
    async def get_connection(self):
        yield self.conn

    @asynccontextmanager
    async def transaction(self):
        self.transactions += 1
        yield self.conn

    def executed_sql(self) -> List[str]:
        """SQL text of every execute() call, whitespace-normalized."""
        return [" ".join(c.args[0].split()) for c in self.conn.execute.call_args_list]


@pytest.fixture
def mock_db() -> MockDatabase:
    """Mock database connection."""
    return MockDatabase()


class InMemoryContentRepository:
    """ContentRepository double keeping rows in a dict."""

    def __init__(self):
        self.rows: Dict[int, Dict[str, Any]] = {}
        self._next_id = 1
        self.calls: List[str] = []

    async def upsert(self, metadata, parameters, content_id=None) -> int:
        self.calls.append("upsert")
        ContentRepository._dump_document(metadata, "metadata")
        ContentRepository._dump_document(parameters, "parameters")
        if content_id is None:
            content_id = self._next_id
            self._next_id += 1
        else:
            content_id = check_content_id(content_id)
            if content_id not in self.rows:
                return content_id
        self.rows[content_id] = {"metadata": metadata, "content": parameters}
        return content_id

    async def remove(self, content_id) -> None:
        self.calls.append("remove")
        self.rows.pop(check_content_id(content_id), None)

    async def exists(self, content_id) -> bool:
        return check_content_id(content_id) in self.rows

    async def get_metadata(self, content_id) -> Optional[Dict[str, Any]]:
        row = self.rows.get(check_content_id(content_id))
        return row["metadata"] if row else None

    async def get_parameters(self, content_id) -> Optional[Dict[str, Any]]:
        row = self.rows.get(check_content_id(content_id))
        return row["content"] if row else None

    async def get_record(self, content_id) -> Optional[ContentRecord]:
        content_id = check_content_id(content_id)
        row = self.rows.get(content_id)
        return ContentRecord(id=content_id, **row) if row else None

    async def list_ids(self) -> List[int]:
        return list(self.rows)

    async def count(self) -> int:
        return len(self.rows)


@pytest.fixture
def memory_repository() -> InMemoryContentRepository:
    """In-memory content repository."""
    return InMemoryContentRepository()


# =============================================================================
# Storage Fixtures
# =============================================================================

@pytest.fixture
def content_root(tmp_path: Path) -> Path:
    """Temporary content root directory."""
    return tmp_path / "content"


@pytest.fixture
def file_storage(content_root: Path) -> LocalFileStorage:
    """File storage with a small chunk size so streams span several chunks."""
    return LocalFileStorage(content_root, chunk_size=16)


@pytest.fixture
def content_storage(
    memory_repository: InMemoryContentRepository,
    file_storage: LocalFileStorage
) -> DatabaseContentStorage:
    """Content storage over the in-memory repository and temporary files."""
    return DatabaseContentStorage(memory_repository, file_storage)


@pytest.fixture
def sample_metadata() -> Dict[str, Any]:
    """Typical content metadata document."""
    return {
        "title": "Capital cities",
        "mainLibrary": "H5P.MultiChoice",
        "language": "en",
        "preloadedDependencies": [
            {"machineName": "H5P.MultiChoice", "majorVersion": 1, "minorVersion": 16},
            {"machineName": "FontAwesome", "majorVersion": 4, "minorVersion": 5},
        ],
    }


@pytest.fixture
def sample_parameters() -> Dict[str, Any]:
    """Typical content parameters document."""
    return {
        "question": "<p>What is the capital of France?</p>",
        "answers": [
            {"text": "Paris", "correct": True},
            {"text": "Lyon", "correct": False},
        ],
    }
