"""
Shared Enums: Enums that are used across multiple modules to avoid circular dependencies
"""

from enum import StrEnum


class HierarchyLevel(StrEnum):
    """Level of the DICOM object hierarchy, outermost first"""

    STUDY = "study"
    SERIES = "series"
    INSTANCE = "instance"
    # Frame number inside a multi-frame instance
    FRAME = "frame"
