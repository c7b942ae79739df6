"""
Filename Validation and Sanitization - Security Layer

Validates and normalizes the relative file names used to address content
files on disk, preventing path traversal out of a content directory.

@.architecture
Incoming: core/content/storage.py, data/storage/local.py --- {str relative filename, int max_length}
Processing: check_filename(), sanitize_filename(), check_content_id(), FilenameSanitizer._normalize_segments(), FilenameSanitizer._truncate() --- {5 jobs: character_filtering, path_validation, segment_normalization, truncation, id_validation}
Outgoing: core/content/storage.py, data/storage/local.py --- {None (valid), str sanitized filename, raises InvalidFilenameError / PathTraversalError}
"""

import logging
import re
from pathlib import PurePosixPath
from typing import Optional

logger = logging.getLogger(__name__)


DEFAULT_MAX_FILENAME_LENGTH = 100

# Characters allowed in a relative content filename. "/" separates segments.
ALLOWED_CHARACTERS = r"A-Za-z0-9\-._!()@/"

FALLBACK_FILENAME = "file"


class ValidationError(Exception):
    """Raised when input validation fails."""
    pass


class InvalidFilenameError(ValidationError):
    """Raised when a content filename is empty, absolute or uses disallowed characters."""

    def __init__(self, message: str, filename: Optional[str] = None):
        super().__init__(message)
        self.filename = filename


class PathTraversalError(InvalidFilenameError):
    """Raised when path traversal attempt detected."""
    pass


class FilenameSanitizer:
    """
    Validates and cleans relative filenames for content file storage.

    Rules enforced by check_filename():
    - not empty
    - relative (no leading "/" or "\\", no drive letter)
    - no "..", "." or empty path segments
    - only characters from ALLOWED_CHARACTERS
    """

    def __init__(self, max_length: int = DEFAULT_MAX_FILENAME_LENGTH):
        """
        Initialize sanitizer.

        Args:
            max_length: Default maximum length for sanitized filenames
        """
        self.max_length = max_length
        self._invalid_characters = re.compile(f"[^{ALLOWED_CHARACTERS}]")
        self._absolute_patterns = re.compile(r"^(/|\\|[A-Za-z]:)")

    # ==================== Validation ====================

    def check_filename(self, filename: str) -> None:
        """
        Validate a relative filename.

        Args:
            filename: Filename relative to a content directory

        Raises:
            InvalidFilenameError: If the filename is empty, absolute or
                contains disallowed characters
            PathTraversalError: If the filename contains traversal segments
        """
        if not isinstance(filename, str):
            raise InvalidFilenameError(
                f"Expected string filename, got {type(filename).__name__}"
            )

        if not filename:
            raise InvalidFilenameError("Filename cannot be empty", filename)

        if self._absolute_patterns.match(filename):
            raise InvalidFilenameError(
                f"Absolute filenames are not allowed: {filename}", filename
            )

        segments = filename.split("/")
        if ".." in segments:
            raise PathTraversalError(
                f"Path traversal in filename: {filename}", filename
            )
        if any(segment in ("", ".") for segment in segments):
            raise InvalidFilenameError(
                f"Empty or '.' path segment in filename: {filename}", filename
            )

        invalid = sorted(set(self._invalid_characters.findall(filename)))
        if invalid:
            raise InvalidFilenameError(
                f"Filename {filename!r} contains disallowed characters: {''.join(invalid)!r}",
                filename,
            )

    # ==================== Sanitization ====================

    def sanitize_filename(
        self,
        filename: str,
        max_length: Optional[int] = None
    ) -> str:
        """
        Produce a filename that passes check_filename().

        Removes disallowed characters, collapses separators, drops traversal
        and empty segments, then truncates to max_length characters while
        keeping the extension where possible.

        Args:
            filename: Untrusted filename
            max_length: Maximum length of the result (default: self.max_length)

        Returns:
            Safe relative filename, never longer than max_length

        Raises:
            InvalidFilenameError: If filename is not a string
            ValueError: If max_length is smaller than 1
        """
        if not isinstance(filename, str):
            raise InvalidFilenameError(
                f"Expected string filename, got {type(filename).__name__}"
            )

        max_length = self.max_length if max_length is None else max_length
        if max_length < 1:
            raise ValueError(f"max_length must be at least 1, got {max_length}")

        cleaned = self._invalid_characters.sub("", filename.replace("\\", "/"))
        cleaned = self._normalize_segments(cleaned)

        if len(cleaned) > max_length:
            cleaned = self._normalize_segments(self._truncate(cleaned, max_length))

        if not cleaned:
            cleaned = FALLBACK_FILENAME[:max_length]

        if cleaned != filename:
            logger.debug(f"Sanitized filename {filename!r} -> {cleaned!r}")
        return cleaned

    @staticmethod
    def _normalize_segments(filename: str) -> str:
        """Drop empty, '.' and '..' segments and rejoin with single slashes."""
        segments = [s for s in filename.split("/") if s not in ("", ".", "..")]
        return "/".join(segments)

    @staticmethod
    def _truncate(filename: str, max_length: int) -> str:
        """Shorten the basename first; cut from the front if that is not enough."""
        path = PurePosixPath(filename)
        suffix = path.suffix
        stem = path.name[: len(path.name) - len(suffix)] if suffix else path.name

        overflow = len(filename) - max_length
        keep = max(1, len(stem) - overflow)
        shortened = stem[:keep] + suffix
        parent = str(path.parent)
        candidate = shortened if parent == "." else f"{parent}/{shortened}"

        if len(candidate) > max_length:
            # Long directory part or extension: keep the tail
            candidate = candidate[-max_length:]
        return candidate


# Global sanitizer instance
_default_sanitizer: Optional[FilenameSanitizer] = None


def get_sanitizer() -> FilenameSanitizer:
    """Get global sanitizer instance."""
    global _default_sanitizer
    if _default_sanitizer is None:
        _default_sanitizer = FilenameSanitizer()
    return _default_sanitizer


def check_filename(filename: str) -> None:
    """Validate filename using global sanitizer."""
    get_sanitizer().check_filename(filename)


def sanitize_filename(filename: str, max_length: int = DEFAULT_MAX_FILENAME_LENGTH) -> str:
    """Sanitize filename using global sanitizer."""
    return get_sanitizer().sanitize_filename(filename, max_length)


def check_content_id(content_id) -> int:
    """
    Validate a content identifier and return it as an int.

    Content ids become directory names under the content root, so anything
    other than a positive integer (or its decimal string form) is rejected.

    Raises:
        ValidationError: If content_id is not a positive integer
    """
    if isinstance(content_id, bool):
        raise ValidationError(f"Invalid content id: {content_id!r}")
    if isinstance(content_id, str) and content_id.isdecimal():
        content_id = int(content_id)
    if not isinstance(content_id, int) or content_id < 1:
        raise ValidationError(f"Invalid content id: {content_id!r}")
    return content_id
