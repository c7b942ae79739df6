"""
Content Permissions - Security Layer

Defines the permissions a user can hold on a stored content item.

The storage core performs no authorization of its own: get_content_permissions()
grants every permission regardless of identity. Real permission checks belong
to the layer that owns users and sessions.

@.architecture
Incoming: core/content/storage.py --- {content id, opaque user token}
Processing: get_content_permissions() --- {1 job: permission_listing}
Outgoing: core/content/storage.py --- {Set[Permission]}
"""

import logging
from enum import Enum
from typing import Any, Optional, Set

logger = logging.getLogger(__name__)


class Permission(str, Enum):
    """Actions a user may perform on a content item."""

    DELETE = "delete"
    DOWNLOAD = "download"
    EDIT = "edit"
    EMBED = "embed"
    VIEW = "view"


ALL_PERMISSIONS = frozenset(Permission)


def get_content_permissions(content_id: Optional[int], user: Any = None) -> Set[Permission]:
    """
    Get the permissions a user holds on a content item.

    Placeholder that grants full rights to every caller. It is not a
    security boundary.

    Args:
        content_id: Content identifier (may be None for new content)
        user: Opaque user token

    Returns:
        Set of permissions
    """
    logger.debug(f"Granting full permissions on content {content_id}")
    return set(ALL_PERMISSIONS)
