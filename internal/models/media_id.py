"""
Media identifiers: hierarchical, backend-independent identifiers of stored objects, dood!

Any class can act as a media identifier by implementing the MediaIdentifier
protocol: an accessor for the hierarchy components it knows about, a stable
textual representation (__str__) and a hash that survives process restarts.
"""

import hashlib
from dataclasses import dataclass
from typing import Optional, Protocol, runtime_checkable

from .shared_enums import HierarchyLevel


def stableStringHash(text: str) -> int:
    """
    Get non-negative hash of a string which is the same in every process.

    Python's builtin hash() is salted per process for strings, so it can't be used
    for storage keys.
    """
    digest = hashlib.sha256(text.encode("utf-8")).digest()
    return int.from_bytes(digest[:8], "big") >> 1


@runtime_checkable
class MediaIdentifier(Protocol):
    """
    Protocol for hierarchical media identifiers, dood!

    Implementations expose zero or more named hierarchy components
    (study / series / instance / frame), a stable textual representation
    via __str__ and a stable hash.

    Example:
        >>> mediaId = DicomMediaId(studyInstanceUid="1.2.3", seriesInstanceUid="1.2.3.4")
        >>> mediaId.getComponent(HierarchyLevel.SERIES)
        '1.2.3.4'
        >>> mediaId.getComponent(HierarchyLevel.FRAME) is None
        True
    """

    def getComponent(self, level: HierarchyLevel) -> Optional[str]:
        """
        Get value of hierarchy component.

        Args:
            level: Hierarchy level to read

        Returns:
            Component value or None if the identifier has no such component
        """
        ...

    def stableHash(self) -> int:
        """
        Get hash of the identifier which doesn't change between process restarts.

        Returns:
            Non-negative integer
        """
        ...


@dataclass(frozen=True)
class DicomMediaId:
    """
    Identifier of a DICOM object: study, series, SOP instance and frame.

    Any subset of the components may be present, including none of them.
    """

    studyInstanceUid: Optional[str] = None
    seriesInstanceUid: Optional[str] = None
    sopInstanceUid: Optional[str] = None
    frameNumber: Optional[int] = None

    def getComponent(self, level: HierarchyLevel) -> Optional[str]:
        value: Optional[str | int] = None
        match level:
            case HierarchyLevel.STUDY:
                value = self.studyInstanceUid
            case HierarchyLevel.SERIES:
                value = self.seriesInstanceUid
            case HierarchyLevel.INSTANCE:
                value = self.sopInstanceUid
            case HierarchyLevel.FRAME:
                value = self.frameNumber

        if value is None:
            return None
        strValue = str(value).strip()
        return strValue if strValue else None

    def getComponents(self) -> list[str]:
        """Get all present components, outermost first."""
        ret: list[str] = []
        for level in HierarchyLevel:
            value = self.getComponent(level)
            if value is not None:
                ret.append(value)
        return ret

    def stableHash(self) -> int:
        return stableStringHash(
            "|".join(
                "" if value is None else str(value)
                for value in (self.studyInstanceUid, self.seriesInstanceUid, self.sopInstanceUid, self.frameNumber)
            )
        )

    def __str__(self) -> str:
        return "/".join(self.getComponents())
