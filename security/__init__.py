"""
Security Layer - Filename safety and content permissions

Provides:
- Relative filename validation and sanitization (path traversal protection)
- Content permission definitions and the full-rights permission stub
"""

# Filename validation and sanitization
from .sanitization import (
    DEFAULT_MAX_FILENAME_LENGTH,
    FilenameSanitizer,
    ValidationError,
    InvalidFilenameError,
    PathTraversalError,
    get_sanitizer,
    check_filename,
    sanitize_filename,
    check_content_id,
)

# Permissions
from .permissions import (
    Permission,
    ALL_PERMISSIONS,
    get_content_permissions,
)

__all__ = [
    # Sanitization
    'DEFAULT_MAX_FILENAME_LENGTH',
    'FilenameSanitizer',
    'ValidationError',
    'InvalidFilenameError',
    'PathTraversalError',
    'get_sanitizer',
    'check_filename',
    'sanitize_filename',
    'check_content_id',

    # Permissions
    'Permission',
    'ALL_PERMISSIONS',
    'get_content_permissions',
]
