"""
Database Repositories - Data access layer for database operations

Provides repository pattern implementations for:
- Content operations (metadata and parameters documents)

Each repository encapsulates database queries and provides a clean API
for data access without exposing SQL implementation details.
"""

from .content import ContentRepository

__all__ = [
    "ContentRepository",
]
