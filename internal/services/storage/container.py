"""
Storage container: named collection of locations
"""

import logging
from typing import AsyncIterator, Optional

from internal.models import MediaIdentifier

from .backends.abstract import DEFAULT_PAGE_SIZE, AbstractStorageBackend
from .exceptions import StorageInvalidArgumentError
from .location import StorageLocation
from .utils import normalizeLocationName, runBackendCall

logger = logging.getLogger(__name__)


class StorageContainer:
    """
    Handle of a container (directory for filesystem backend, bucket for S3).

    Attributes:
        backend: Storage backend the container lives in
        name: Normalized container name
        pageSize: Number of keys requested per listing page

    Example:
        >>> container = await storageService.getContainer("1.2.840.113619")
        >>> location = container.getLocation("scan.dcm")
        >>> async for location in container.getLocations(prefix="scan"):
        ...     print(location.key)
    """

    def __init__(self, backend: AbstractStorageBackend, name: str, pageSize: int = DEFAULT_PAGE_SIZE):
        self.backend = backend
        self.name = name
        self.pageSize = pageSize

    @property
    def connection(self) -> str:
        """Addressable root URI of the container (for diagnostics)."""
        return self.backend.getContainerUri(self.name)

    def __repr__(self) -> str:
        return f"StorageContainer(name={self.name!r}, backend={self.backend.backendName!r})"

    def getLocation(self, name: str, mediaId: Optional[MediaIdentifier] = None) -> StorageLocation:
        """
        Get handle of a location. Object itself is not created.

        Args:
            name: Location name, path separators are converted to "/"
            mediaId: Media identifier the location belongs to (optional)

        Returns:
            StorageLocation handle

        Raises:
            StorageInvalidArgumentError: If name is empty
        """
        if not name:
            raise StorageInvalidArgumentError(f"Location name cannot be empty (container '{self.name}')")

        return StorageLocation(self.backend, self.name, normalizeLocationName(name), mediaId)

    async def getLocations(self, prefix: Optional[str] = None) -> AsyncIterator[StorageLocation]:
        """
        Iterate over locations with names starting with the prefix.

        Pages are requested from the backend lazily, so iteration may be
        stopped at any moment.

        Args:
            prefix: Optional name prefix filter

        Yields:
            StorageLocation handles
        """
        prefix = normalizeLocationName(prefix) if prefix else ""
        pageToken: Optional[str] = None

        while True:
            page = await runBackendCall(self.backend.listObjects, self.name, prefix, pageToken, self.pageSize)
            for key in page.keys:
                yield StorageLocation(self.backend, self.name, key)

            if page.nextPageToken is None:
                break
            pageToken = page.nextPageToken

    async def locationExists(self, name: str) -> bool:
        """
        Check if a location exists.

        Returns:
            True if the object exists, False if it doesn't or the name is invalid
        """
        if not name:
            return False

        try:
            return await runBackendCall(self.backend.objectExists, self.name, normalizeLocationName(name))
        except StorageInvalidArgumentError as e:
            logger.debug(f"Invalid location name '{name}' in container '{self.name}': {e}")
            return False

    async def exists(self) -> bool:
        """Check if the container exists."""
        return await runBackendCall(self.backend.containerExists, self.name)

    async def delete(self) -> bool:
        """
        Delete the container with all its locations. Deleting a missing container is not an error.

        Returns:
            True if the container was deleted, False if it didn't exist
        """
        deleted = await runBackendCall(self.backend.deleteContainer, self.name)
        if deleted:
            logger.info(f"Deleted container '{self.name}', dood!")
        return deleted
