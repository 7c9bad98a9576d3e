"""
Internal Models Package

This package contains shared models and enums used across multiple modules
to avoid circular dependencies.
"""

from .media_id import DicomMediaId, MediaIdentifier, stableStringHash
from .shared_enums import HierarchyLevel
from .types import UploadPayload

__all__ = [
    # Shared enums
    "HierarchyLevel",
    # Media identifiers
    "MediaIdentifier",
    "DicomMediaId",
    "stableStringHash",
    # Types
    "UploadPayload",
]
