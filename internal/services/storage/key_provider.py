"""
Storage key provider

This module converts hierarchical media identifiers into flat storage keys
and splits storage keys into container and location names, dood!

Key derivation is a total function: it never raises, whatever object it gets.
It uses three tiers:
1. Hierarchy components (study/series/instance/frame) joined with "/"
2. Sanitized textual representation of the identifier
3. "media_<hash>" built from a stable non-negative hash
"""

import logging
import re
from typing import Any, List, Optional

from internal.models.shared_enums import HierarchyLevel

logger = logging.getLogger(__name__)

# Characters allowed in a key built from the textual representation
UNSAFE_KEY_CHARS_PATTERN = re.compile(r"[^a-zA-Z0-9\-\.]")

HASH_KEY_PREFIX = "media_"


class KeyProvider:
    """
    Derives storage keys from media identifiers.

    Example:
        >>> provider = KeyProvider()
        >>> key = provider.deriveKey(DicomMediaId("A", "B", "C"))
        >>> key
        'a/b/c'
        >>> provider.getContainerName(key), provider.getLocationName(key)
        ('a', 'c')

    Note:
        Keys are split into two levels only: the first segment is the container name,
        the last segment is the location name. Segments in between are not reachable
        through getContainerName()/getLocationName().
    """

    LOGICAL_SEPARATOR = "/"

    def getLogicalSeparator(self) -> str:
        """Get separator used for joining key components and splitting keys."""
        return self.LOGICAL_SEPARATOR

    def deriveKey(self, mediaId: Any) -> str:
        """
        Derive storage key from media identifier.

        Args:
            mediaId: Media identifier. Objects not implementing MediaIdentifier
                protocol are accepted as well and go through fallback tiers.

        Returns:
            Non-empty lower-cased storage key
        """
        components = self._getComponents(mediaId)
        if components:
            return self.LOGICAL_SEPARATOR.join(components).lower()

        textKey = self._getTextKey(mediaId)
        if textKey:
            return textKey

        return f"{HASH_KEY_PREFIX}{self._getStableHash(mediaId)}"

    def getContainerName(self, key: str) -> str:
        """
        Get container name from storage key: everything before first separator.

        Args:
            key: Storage key

        Returns:
            Container name or empty string for empty key
        """
        if not key:
            return ""

        key = key.strip(self.LOGICAL_SEPARATOR)
        separatorIdx = key.find(self.LOGICAL_SEPARATOR)
        if separatorIdx >= 0:
            return key[:separatorIdx]
        return key

    def getLocationName(self, key: str) -> str:
        """
        Get location name from storage key: everything after last separator.

        Args:
            key: Storage key

        Returns:
            Location name or empty string for empty key
        """
        if not key:
            return ""

        key = key.strip(self.LOGICAL_SEPARATOR)
        separatorIdx = key.rfind(self.LOGICAL_SEPARATOR)
        if separatorIdx >= 0:
            return key[separatorIdx + 1 :]
        return key

    def _getComponents(self, mediaId: Any) -> List[str]:
        """Read present hierarchy components, outermost first."""
        try:
            getComponent = getattr(mediaId, "getComponent", None)
        except Exception as e:
            logger.debug(f"Failed to get component accessor of {type(mediaId).__name__}: {e}")
            return []

        if not callable(getComponent):
            return []

        components: List[str] = []
        for level in HierarchyLevel:
            try:
                value = getComponent(level)
                if value is None:
                    continue
                strValue = str(value)
            except Exception as e:
                logger.debug(f"Failed to read {level} component of {type(mediaId).__name__}: {e}")
                continue

            if strValue:
                components.append(strValue)

        return components

    def _getTextKey(self, mediaId: Any) -> Optional[str]:
        """Build key from textual representation, None if it is unusable."""
        mediaIdType = type(mediaId)
        # Default object representation contains memory address, so it isn't stable
        if mediaIdType.__str__ is object.__str__ and mediaIdType.__repr__ is object.__repr__:
            return None

        try:
            text = str(mediaId)
        except Exception as e:
            logger.debug(f"Failed to convert {mediaIdType.__name__} to string: {e}")
            return None

        typeNames = {
            mediaIdType.__name__,
            mediaIdType.__qualname__,
            f"{mediaIdType.__module__}.{mediaIdType.__qualname__}",
        }
        if not text or text in typeNames:
            return None

        return UNSAFE_KEY_CHARS_PATTERN.sub("_", text).lower()

    def _getStableHash(self, mediaId: Any) -> int:
        """Get non-negative hash, preferring identifier's own stable hash."""
        try:
            stableHash = getattr(mediaId, "stableHash", None)
            if callable(stableHash):
                return abs(int(stableHash()))
        except Exception as e:
            logger.debug(f"Failed to get stable hash of {type(mediaId).__name__}: {e}")

        try:
            return abs(hash(mediaId))
        except Exception:
            return id(mediaId)
