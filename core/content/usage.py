"""
Usage Scanner - Counts how content items use a library

@.architecture
Incoming: core/content/storage.py --- {ContentRepository instance, library name, dependency predicate}
Processing: get_usage() --- {2 jobs: full_scan, usage_classification}
Outgoing: core/content/storage.py --- {ContentUsage}

A full scan: every content id is listed and its metadata loaded. Nothing is
indexed or cached here; callers that ask often should cache the result.
"""

import inspect
from dataclasses import dataclass
from typing import Any, Dict, Union

from data.database.repositories import ContentRepository
from monitoring import get_logger

from .dependencies import DependencyPredicate, LibraryName, has_dependency_on

logger = get_logger(__name__)


@dataclass
class ContentUsage:
    """Usage counts of one library across all content."""
    as_dependency: int = 0
    as_main_library: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {
            "asDependency": self.as_dependency,
            "asMainLibrary": self.as_main_library,
        }


class UsageScanner:
    """Classifies every content item as main-library use, dependency use or neither."""

    def __init__(
        self,
        repository: ContentRepository,
        dependency_predicate: DependencyPredicate = has_dependency_on
    ):
        """
        Args:
            repository: Content repository to scan
            dependency_predicate: (metadata, library) -> bool, sync or async
        """
        self.repository = repository
        self.dependency_predicate = dependency_predicate

    async def _depends_on(self, metadata: Dict[str, Any], library: LibraryName) -> bool:
        result = self.dependency_predicate(metadata, library)
        if inspect.isawaitable(result):
            result = await result
        return bool(result)

    async def get_usage(self, library: Union[str, LibraryName]) -> ContentUsage:
        """
        Count content using a library.

        Content whose mainLibrary is the library counts as main-library use;
        otherwise content the predicate accepts counts as dependency use.

        Args:
            library: Machine name or LibraryName

        Returns:
            ContentUsage counts
        """
        library = LibraryName.coerce(library)
        usage = ContentUsage()

        content_ids = await self.repository.list_ids()
        for content_id in content_ids:
            metadata = await self.repository.get_metadata(content_id)
            if metadata is None:
                # Deleted between listing and loading
                logger.debug(f"Content {content_id} vanished during usage scan")
                continue

            if metadata.get("mainLibrary") == library.machine_name:
                usage.as_main_library += 1
            elif await self._depends_on(metadata, library):
                usage.as_dependency += 1

        logger.info(
            f"Usage of {library}: {usage.as_main_library} as main library, "
            f"{usage.as_dependency} as dependency ({len(content_ids)} scanned)"
        )
        return usage
