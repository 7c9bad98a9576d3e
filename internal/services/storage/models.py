"""
Storage service data models

Backend-independent descriptions of stored objects and listing pages.
"""

import datetime
from dataclasses import dataclass, field
from typing import Dict, List, Optional

# Name of the field in the object property bag which holds location metadata
METADATA_KEY = "meta"


@dataclass(frozen=True)
class ObjectProperties:
    """
    Properties of a stored object as reported by a backend.

    Attributes:
        size: Size of the object content in bytes
        contentType: MIME type of the content
        metadata: Generic key-value property bag of the object
        lastModified: Time of the last content or metadata change (if known)
    """

    size: int
    contentType: Optional[str] = None
    metadata: Dict[str, str] = field(default_factory=dict)
    lastModified: Optional[datetime.datetime] = None


@dataclass(frozen=True)
class ObjectListPage:
    """
    One page of object keys returned by a backend listing.

    Attributes:
        keys: Object keys on this page
        nextPageToken: Token to request the next page, None for the last page
    """

    keys: List[str]
    nextPageToken: Optional[str] = None
