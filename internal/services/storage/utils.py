"""
Storage service utility functions

This module provides utility functions for the storage service:
container name normalization, location name normalization, object key validation,
content type detection by file extension and running blocking backend calls
from coroutines.
"""

import asyncio
import logging
import os
import posixpath
import re
from typing import Callable, TypeVar

from .exceptions import StorageBackendError, StorageCancelledError, StorageError, StorageInvalidArgumentError

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Container name length limits
MIN_CONTAINER_NAME_LENGTH = 3
MAX_CONTAINER_NAME_LENGTH = 63

# Character used instead of characters not allowed in container names
CONTAINER_NAME_FILLER = "-"
# Character used to pad too short container names
CONTAINER_NAME_PAD = "0"
# Replacement for non-alphanumeric first character
CONTAINER_NAME_FIRST_CHAR = "c"

# Regex pattern for characters not allowed in container names
UNSAFE_CONTAINER_CHARS_PATTERN = re.compile(r"[^a-z0-9\-]")

DEFAULT_CONTENT_TYPE = "application/octet-stream"

CONTENT_TYPES_BY_EXTENSION = {
    ".dcm": "application/dicom",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".gif": "image/gif",
    ".bmp": "image/bmp",
    ".tiff": "image/tiff",
    ".tif": "image/tiff",
    ".pdf": "application/pdf",
    ".txt": "text/plain",
    ".xml": "application/xml",
    ".json": "application/json",
    ".zip": "application/zip",
}


def _isAsciiAlnum(char: str) -> bool:
    return char.isascii() and char.isalnum()


def normalizeContainerPrefix(prefix: str) -> str:
    """
    Apply character rules of container names to a prefix filter.

    Same as normalizeContainerName() but without padding and truncation,
    so a short prefix still matches longer names.

    Args:
        prefix: The prefix to normalize

    Returns:
        Normalized prefix (empty string for empty input)
    """
    if not prefix:
        return ""

    normalized = UNSAFE_CONTAINER_CHARS_PATTERN.sub(CONTAINER_NAME_FILLER, prefix.lower())
    if not _isAsciiAlnum(normalized[0]):
        normalized = CONTAINER_NAME_FIRST_CHAR + normalized[1:]
    return normalized


def normalizeContainerName(name: str) -> str:
    """
    Normalize a container name so every backend accepts it.

    This function performs the following steps in order:
    1. Lower-case the name
    2. Replace characters other than [a-z0-9-] with "-"
    3. Replace non-alphanumeric first character with "c"
    4. Truncate to 63 characters
    5. Strip trailing "-" so the name ends with a letter or digit
    6. Pad with "0" on the right up to 3 characters

    The function never raises and is idempotent. Empty input gives empty output,
    callers must not resolve an empty container name.

    Args:
        name: The container name to normalize

    Returns:
        The normalized container name

    Examples:
        >>> normalizeContainerName("AB")
        'ab0'
        >>> normalizeContainerName("Study!1")
        'study-1'
        >>> normalizeContainerName("-series")
        'cseries'
        >>> normalizeContainerName("ABC---")
        'abc'
    """
    normalized = normalizeContainerPrefix(name)
    if not normalized:
        return ""

    normalized = normalized[:MAX_CONTAINER_NAME_LENGTH].rstrip(CONTAINER_NAME_FILLER)
    return normalized.ljust(MIN_CONTAINER_NAME_LENGTH, CONTAINER_NAME_PAD)


def normalizeLocationName(name: str) -> str:
    """
    Replace OS-specific path separators with "/".

    Args:
        name: The location name

    Returns:
        Location name with "/" separators only
    """
    name = name.replace("\\", "/")
    if os.sep != "/":
        name = name.replace(os.sep, "/")
    return name


def validateObjectKey(key: str) -> str:
    """
    Validate object key of a location inside a container.

    Rejects keys which could escape the container:
    - Empty or whitespace-only keys
    - Keys with null bytes or control characters
    - Absolute keys
    - Keys with ".." segments

    Args:
        key: The object key (already normalized by normalizeLocationName)

    Returns:
        The key with duplicate and "." segments collapsed

    Raises:
        StorageInvalidArgumentError: If the key is invalid
    """
    if not key or not key.strip():
        raise StorageInvalidArgumentError("Object key cannot be empty or only whitespace")

    if any(ord(char) < 32 or ord(char) == 127 for char in key):
        raise StorageInvalidArgumentError(f"Object key contains control characters: {key!r}")

    key = normalizeLocationName(key)
    if key.startswith("/") or key.startswith("~") or (len(key) >= 2 and key[1] == ":"):
        raise StorageInvalidArgumentError(f"Object key must be relative: {key!r}")

    if any(segment == ".." for segment in key.split("/")):
        raise StorageInvalidArgumentError(f"Object key contains path traversal: {key!r}")

    normalized = posixpath.normpath(key)
    if normalized in (".", ""):
        raise StorageInvalidArgumentError(f"Object key is empty after normalization: {key!r}")
    return normalized


def getContentTypeByName(name: str) -> str:
    """
    Get MIME type by file extension of the name.

    Args:
        name: File or location name

    Returns:
        MIME type, "application/octet-stream" for unknown extensions

    Examples:
        >>> getContentTypeByName("scan.dcm")
        'application/dicom'
        >>> getContentTypeByName("1.2.840.10008")
        'application/octet-stream'
    """
    extension = posixpath.splitext(normalizeLocationName(name))[1].lower()
    return CONTENT_TYPES_BY_EXTENSION.get(extension, DEFAULT_CONTENT_TYPE)


async def runBackendCall(func: Callable[..., T], *args, **kwargs) -> T:
    """
    Run blocking backend call in a worker thread, dood!

    Errors which are not storage errors yet are wrapped into StorageBackendError,
    cancellation of the awaiting task is reported as StorageCancelledError.

    Args:
        func: Backend method to call
        *args: Positional arguments for the call
        **kwargs: Keyword arguments for the call

    Returns:
        Result of the call
    """
    try:
        return await asyncio.to_thread(func, *args, **kwargs)
    except StorageError:
        raise
    except asyncio.CancelledError as e:
        operation = getattr(func, "__name__", func)
        raise StorageCancelledError(f"Storage operation {operation} was cancelled", originalError=e) from e
    except Exception as e:
        logger.error(f"Unexpected error in storage operation {getattr(func, '__name__', func)}: {e}")
        raise StorageBackendError(f"Storage operation failed: {e}", originalError=e) from e
