"""
Null storage backend implementation

This module provides a no-op storage backend for testing purposes.
All operations return expected values without performing any actual storage.
"""

from typing import BinaryIO, Dict, List, Optional

from ..exceptions import StorageNotFoundError
from ..models import ObjectListPage, ObjectProperties
from ..utils import validateObjectKey
from .abstract import DEFAULT_PAGE_SIZE, AbstractStorageBackend, UploadSource


class NullStorageBackend(AbstractStorageBackend):
    """
    No-op storage backend for testing purposes.

    This backend validates keys but performs no actual storage operations.
    All methods return expected values without side effects:
    - createContainer() and upload() do nothing
    - containerExists() and objectExists() always return False
    - getProperties() always returns None
    - download() always raises StorageNotFoundError
    - delete() and deleteContainer() always return False
    - listing always returns nothing

    Use cases:
    - Unit testing without actual storage
    - Disabling storage functionality
    - Performance testing without I/O overhead

    Example:
        >>> backend = NullStorageBackend()
        >>> backend.upload("study", "scan.dcm", b"data", "application/dicom")  # Does nothing
        >>> backend.objectExists("study", "scan.dcm")
        False
    """

    @property
    def backendName(self) -> str:
        return "null"

    def createContainer(self, name: str) -> None:
        pass

    def containerExists(self, name: str) -> bool:
        return False

    def listContainers(self, prefix: str = "") -> List[str]:
        return []

    def deleteContainer(self, name: str) -> bool:
        return False

    def getContainerUri(self, name: str) -> str:
        return f"null://{name}"

    def getObjectUri(self, container: str, key: str) -> str:
        return f"null://{container}/{validateObjectKey(key)}"

    def objectExists(self, container: str, key: str) -> bool:
        # Validate key (will raise StorageInvalidArgumentError if invalid)
        validateObjectKey(key)
        return False

    def listObjects(
        self,
        container: str,
        prefix: str = "",
        pageToken: Optional[str] = None,
        pageSize: int = DEFAULT_PAGE_SIZE,
    ) -> ObjectListPage:
        return ObjectListPage(keys=[])

    def getProperties(self, container: str, key: str) -> Optional[ObjectProperties]:
        validateObjectKey(key)
        return None

    def setMetadata(self, container: str, key: str, metadata: Dict[str, str]) -> None:
        raise StorageNotFoundError(f"Object with key '{key}' not found in null storage")

    def upload(self, container: str, key: str, source: UploadSource, contentType: str) -> None:
        validateObjectKey(key)
        # No-op: do nothing with the data

    def download(self, container: str, key: str) -> BinaryIO:
        raise StorageNotFoundError(f"Object with key '{key}' not found in null storage")

    def downloadTo(self, container: str, key: str, destination: BinaryIO) -> None:
        raise StorageNotFoundError(f"Object with key '{key}' not found in null storage")

    def delete(self, container: str, key: str) -> bool:
        validateObjectKey(key)
        return False
