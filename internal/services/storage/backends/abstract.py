"""
Abstract storage backend interface

This module defines the abstract base class that all storage backends must implement.
It provides a consistent capability set across different backend types, so
containers and locations never branch on backend identity.
"""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import BinaryIO, Dict, List, Optional

from ..models import ObjectListPage, ObjectProperties

# Default number of keys requested per listing page
DEFAULT_PAGE_SIZE = 1000

UploadSource = bytes | BinaryIO | Path
"""Upload source: whole payload in memory, readable binary stream or local file path"""


class AbstractStorageBackend(ABC):
    """
    Abstract base class for storage backends.

    All storage backend implementations must inherit from this class and implement
    all abstract methods. This ensures a consistent interface across different
    storage types (filesystem, S3, null, etc.).

    Container names passed to the backend are already normalized by the service,
    object keys use "/" as separator.

    Implementations must translate backend-specific errors at their boundary:
    - StorageInvalidArgumentError for keys the backend can't accept
    - StorageNotFoundError for missing objects/containers where they are required
    - StoragePermissionError for rejected credentials
    - StorageBackendError for everything else
    """

    @property
    @abstractmethod
    def backendName(self) -> str:
        """
        Get backend identifier for logging (e.g. "fs", "s3").
        """
        pass

    # Containers

    @abstractmethod
    def createContainer(self, name: str) -> None:
        """
        Create a container unless it already exists.

        Args:
            name: Normalized container name

        Raises:
            StoragePermissionError: If the backend rejects the operation
            StorageBackendError: If the operation fails
        """
        pass

    @abstractmethod
    def containerExists(self, name: str) -> bool:
        """
        Check if a container exists.

        Args:
            name: Normalized container name

        Returns:
            True if the container exists, False otherwise
        """
        pass

    @abstractmethod
    def listContainers(self, prefix: str = "") -> List[str]:
        """
        List names of containers starting with the prefix.

        Args:
            prefix: Optional prefix filter (default: "" for all containers)

        Returns:
            Sorted list of container names
        """
        pass

    @abstractmethod
    def deleteContainer(self, name: str) -> bool:
        """
        Delete a container with all its objects.

        Args:
            name: Normalized container name

        Returns:
            True if the container was deleted, False if it didn't exist
        """
        pass

    @abstractmethod
    def getContainerUri(self, name: str) -> str:
        """
        Get addressable root URI of a container (for diagnostics).
        """
        pass

    # Objects

    @abstractmethod
    def getObjectUri(self, container: str, key: str) -> str:
        """
        Get addressable URI of an object (for diagnostics).
        """
        pass

    @abstractmethod
    def objectExists(self, container: str, key: str) -> bool:
        """
        Check if an object exists.

        Args:
            container: Container name
            key: Object key inside the container

        Returns:
            True if the object exists, False otherwise (including missing container)
        """
        pass

    @abstractmethod
    def listObjects(
        self,
        container: str,
        prefix: str = "",
        pageToken: Optional[str] = None,
        pageSize: int = DEFAULT_PAGE_SIZE,
    ) -> ObjectListPage:
        """
        List one page of object keys starting with the prefix.

        Args:
            container: Container name
            prefix: Optional key prefix filter
            pageToken: Token returned with the previous page, None for the first page
            pageSize: Maximum number of keys on the page

        Returns:
            Page of keys. Missing container gives an empty last page.
        """
        pass

    @abstractmethod
    def getProperties(self, container: str, key: str) -> Optional[ObjectProperties]:
        """
        Get object properties: size, content type and metadata map.

        Returns:
            Object properties, None if the object does not exist
        """
        pass

    @abstractmethod
    def setMetadata(self, container: str, key: str, metadata: Dict[str, str]) -> None:
        """
        Replace metadata map of an existing object.

        Raises:
            StorageNotFoundError: If the object does not exist
        """
        pass

    @abstractmethod
    def upload(self, container: str, key: str, source: UploadSource, contentType: str) -> None:
        """
        Write object content, replacing existing object and its metadata.

        Args:
            container: Container name
            key: Object key inside the container
            source: Payload bytes, readable binary stream or path to a local file
            contentType: MIME type of the content

        Raises:
            StorageNotFoundError: If the container does not exist
            StorageBackendError: If the write fails
        """
        pass

    @abstractmethod
    def download(self, container: str, key: str) -> BinaryIO:
        """
        Open object content for reading. Caller must close returned stream.

        Raises:
            StorageNotFoundError: If the object does not exist
        """
        pass

    @abstractmethod
    def downloadTo(self, container: str, key: str, destination: BinaryIO) -> None:
        """
        Write object content into a writable binary stream.

        Raises:
            StorageNotFoundError: If the object does not exist
        """
        pass

    @abstractmethod
    def delete(self, container: str, key: str) -> bool:
        """
        Delete an object.

        Returns:
            True if the object was deleted, False if it didn't exist
        """
        pass
