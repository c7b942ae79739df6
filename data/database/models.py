"""
Database Models - Content record

@.architecture
Incoming: data/database/repositories/content.py --- {dict rows from psycopg dict_row cursors}
Processing: ContentRecord validation --- {1 job: row_validation}
Outgoing: data/database/repositories/content.py, core/content/*.py --- {ContentRecord instances}
"""

from typing import Any, Dict

from pydantic import BaseModel, ConfigDict, Field


class ContentRecord(BaseModel):
    """One row of the content table: metadata and parameters documents."""

    model_config = ConfigDict(populate_by_name=True)

    id: int = Field(..., gt=0, description="Content identifier")
    metadata: Dict[str, Any] = Field(default_factory=dict, description="Metadata document")
    parameters: Dict[str, Any] = Field(
        default_factory=dict,
        alias="content",
        description="Parameters document (stored in the 'content' column)",
    )
