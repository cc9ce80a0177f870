"""
Pydantic models for validating the raw records found in dump files.

These models serve as a strict contract for the expected record data,
ensuring that any deviation from this structure is caught at the
infrastructure layer before being passed to the application core.
"""

import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class EntityPayload(BaseModel):
    """
    Represents one entity line of a JSON dump.

    Only the identifying fields are checked. Labels, claims, sitelinks and
    everything else are kept untouched as extra fields, since their shape
    differs between entity types and evolves with the data model.
    """

    model_config = ConfigDict(extra="allow")

    id: str = Field(min_length=1)
    type: str = Field(min_length=1)


class RevisionPayload(BaseModel):
    """
    Represents one <revision> of an XML dump, flattened with the fields of
    its enclosing <page>.

    Optional fields may be absent in real dumps: the first revision of a page
    has no parent, suppressed revisions lack contributor and comment, and
    older export versions do not carry model and format.
    """

    page_id: int
    title: str
    namespace: int = 0
    revision_id: int
    parent_id: Optional[int] = None
    timestamp: Optional[datetime.datetime] = None
    contributor: Optional[str] = None
    comment: Optional[str] = None
    model: Optional[str] = None
    format: Optional[str] = None
    text: str = ""
