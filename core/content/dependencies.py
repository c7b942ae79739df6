"""
Library Dependencies - Does a content item reference a library?

@.architecture
Incoming: core/content/usage.py --- {metadata dicts, str machine name or LibraryName}
Processing: LibraryName.coerce(), has_dependency_on() --- {2 jobs: library_name_parsing, dependency_matching}
Outgoing: core/content/usage.py --- {LibraryName, bool}

Content metadata lists the libraries it needs in three fields, each a list of
``{"machineName": ..., "majorVersion": ..., "minorVersion": ...}`` entries.
"""

from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional, Union

DEPENDENCY_FIELDS = (
    "preloadedDependencies",
    "editorDependencies",
    "dynamicDependencies",
)


@dataclass(frozen=True)
class LibraryName:
    """Library identifier; versions are optional."""
    machine_name: str
    major_version: Optional[int] = None
    minor_version: Optional[int] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LibraryName":
        """Build from a ``{"machineName", "majorVersion", "minorVersion"}`` dict."""
        return cls(
            machine_name=data["machineName"],
            major_version=_as_int(data.get("majorVersion")),
            minor_version=_as_int(data.get("minorVersion")),
        )

    @classmethod
    def coerce(cls, library: Union[str, "LibraryName", Dict[str, Any]]) -> "LibraryName":
        if isinstance(library, LibraryName):
            return library
        if isinstance(library, str):
            return cls(machine_name=library)
        if isinstance(library, dict):
            return cls.from_dict(library)
        raise TypeError(f"Cannot interpret {type(library).__name__} as a library name")

    def __str__(self) -> str:
        if self.major_version is None:
            return self.machine_name
        if self.minor_version is None:
            return f"{self.machine_name} {self.major_version}"
        return f"{self.machine_name} {self.major_version}.{self.minor_version}"


DependencyPredicate = Callable[
    [Dict[str, Any], LibraryName],
    Union[bool, Awaitable[bool]],
]


def _as_int(value: Any) -> Optional[int]:
    if value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def has_dependency_on(metadata: Dict[str, Any], library: Union[str, LibraryName]) -> bool:
    """
    Check whether metadata lists library among its dependencies.

    Versions are compared only when the library specifies them.

    Args:
        metadata: Content metadata document
        library: Machine name or LibraryName

    Returns:
        True if any dependency field references the library
    """
    library = LibraryName.coerce(library)

    for field_name in DEPENDENCY_FIELDS:
        for dependency in metadata.get(field_name) or []:
            if not isinstance(dependency, dict):
                continue
            if dependency.get("machineName") != library.machine_name:
                continue
            if (library.major_version is not None
                    and _as_int(dependency.get("majorVersion")) != library.major_version):
                continue
            if (library.minor_version is not None
                    and _as_int(dependency.get("minorVersion")) != library.minor_version):
                continue
            return True

    return False
