"""
Storage location: one addressable binary object inside a container

A location holds binary payload, content type and one free-form metadata string.
Object properties are fetched lazily and cached per StorageLocation instance,
the cache is dropped after every mutation made through the instance, dood!
"""

import logging
import os
import posixpath
from pathlib import Path
from typing import BinaryIO, Optional

from internal.models import MediaIdentifier, UploadPayload

from .backends.abstract import AbstractStorageBackend, UploadSource
from .exceptions import StorageInvalidArgumentError, StorageSourceNotFoundError
from .models import METADATA_KEY, ObjectProperties
from .utils import getContentTypeByName, runBackendCall

logger = logging.getLogger(__name__)


class StorageLocation:
    """
    Handle of one stored object.

    Creating a StorageLocation doesn't touch the backend, the object itself is
    created by the first successful upload().

    All I/O methods are coroutines. They suspend only while the backend call is
    running in a worker thread. Blocking callers can use asyncio.run().

    Attributes:
        backend: Storage backend the object lives in
        containerName: Name of the container
        key: Object key inside the container ("/"-separated)
        name: Last segment of the key (file name)
        mediaId: Media identifier the location was resolved from (if any)

    Thread Safety:
        Property cache is not synchronized. Mutations through one instance don't
        invalidate caches of other instances addressing the same object, so
        resolve the location again when read-after-write consistency is needed.

    Example:
        >>> location = container.getLocation("scan.dcm")
        >>> await location.upload(b"0123456789")
        >>> await location.getContentType()
        'application/dicom'
        >>> await location.getSize()
        10
    """

    def __init__(
        self,
        backend: AbstractStorageBackend,
        containerName: str,
        key: str,
        mediaId: Optional[MediaIdentifier] = None,
    ):
        self.backend = backend
        self.containerName = containerName
        self.key = key
        self.name = posixpath.basename(key)
        self.mediaId = mediaId

        self._properties: Optional[ObjectProperties] = None
        self._size: Optional[int] = None

    @property
    def id(self) -> str:
        """Addressable URI of the object."""
        return self.backend.getObjectUri(self.containerName, self.key)

    def __repr__(self) -> str:
        return f"StorageLocation(container={self.containerName!r}, key={self.key!r})"

    def invalidateCache(self) -> None:
        """Forget cached properties and size, next access fetches them again."""
        self._properties = None
        self._size = None

    async def _ensureProperties(self) -> Optional[ObjectProperties]:
        """Get cached properties or fetch them. Missing object is never cached."""
        if self._properties is None:
            self._properties = await runBackendCall(self.backend.getProperties, self.containerName, self.key)
        return self._properties

    async def exists(self) -> bool:
        """
        Check if the object exists.

        Returns:
            True if the backend reports the object, False otherwise
        """
        return await runBackendCall(self.backend.objectExists, self.containerName, self.key)

    async def getSize(self) -> int:
        """
        Get size of the object in bytes.

        Returns:
            Size in bytes, 0 if the object does not exist
        """
        if self._size is not None:
            return self._size

        properties = await self._ensureProperties()
        if properties is None:
            return 0

        self._size = properties.size
        return self._size

    async def getContentType(self) -> Optional[str]:
        """
        Get MIME type of the object.

        Returns:
            Content type, None if the object does not exist
        """
        properties = await self._ensureProperties()
        return properties.contentType if properties is not None else None

    async def getMetadata(self) -> Optional[str]:
        """
        Get metadata string of the object.

        Returns:
            Metadata string, None if it isn't set or the object does not exist
        """
        properties = await self._ensureProperties()
        if properties is None:
            return None
        return properties.metadata.get(METADATA_KEY)

    async def setMetadata(self, value: Optional[str]) -> None:
        """
        Set metadata string of the object.

        Does nothing if the object does not exist. Empty or None value removes
        the metadata.

        Args:
            value: Metadata string
        """
        properties = await runBackendCall(self.backend.getProperties, self.containerName, self.key)
        if properties is None:
            logger.debug(f"Skipping metadata update of missing object {self}")
            return

        metadata = dict(properties.metadata)
        if value:
            metadata[METADATA_KEY] = value
        else:
            metadata.pop(METADATA_KEY, None)

        try:
            await runBackendCall(self.backend.setMetadata, self.containerName, self.key, metadata)
        finally:
            self.invalidateCache()

    def _prepareSource(self, payload: UploadPayload) -> UploadSource:
        """
        Convert upload payload into backend upload source.

        Raises:
            StorageInvalidArgumentError: If payload is missing or of unsupported type
            StorageSourceNotFoundError: If payload is a path to a missing file
        """
        if payload is None:
            raise StorageInvalidArgumentError(f"Upload payload is required for {self}")

        if isinstance(payload, bytes):
            return payload
        if isinstance(payload, (bytearray, memoryview)):
            return bytes(payload)
        if isinstance(payload, (str, os.PathLike)):
            if not payload:
                raise StorageInvalidArgumentError(f"Source file name cannot be empty for {self}")
            sourcePath = Path(payload)
            if not sourcePath.is_file():
                raise StorageSourceNotFoundError(f"Source file not found: {sourcePath}")
            return sourcePath
        if hasattr(payload, "read"):
            return payload

        raise StorageInvalidArgumentError(f"Unsupported upload payload type: {type(payload).__name__}")

    async def upload(self, payload: UploadPayload, contentType: Optional[str] = None) -> None:
        """
        Write the object, replacing existing content and metadata.

        Args:
            payload: bytes-like buffer, readable binary stream or path to a local file
            contentType: MIME type, inferred from the location name if omitted

        Raises:
            StorageInvalidArgumentError: If payload is missing
            StorageSourceNotFoundError: If payload is a path to a missing file
            StorageError: If the backend fails
        """
        source = self._prepareSource(payload)
        if not contentType:
            contentType = getContentTypeByName(self.name)

        try:
            await runBackendCall(self.backend.upload, self.containerName, self.key, source, contentType)
        finally:
            self.invalidateCache()
        logger.debug(f"Uploaded {self} with content type {contentType}, dood!")

    async def download(self) -> BinaryIO:
        """
        Open the object for reading. Caller must close returned stream.

        Raises:
            StorageNotFoundError: If the object does not exist
        """
        return await runBackendCall(self.backend.download, self.containerName, self.key)

    async def downloadTo(self, destination: BinaryIO) -> None:
        """
        Write the object content into a writable binary stream.

        Raises:
            StorageInvalidArgumentError: If destination is missing
            StorageNotFoundError: If the object does not exist
        """
        if destination is None:
            raise StorageInvalidArgumentError(f"Download destination is required for {self}")
        await runBackendCall(self.backend.downloadTo, self.containerName, self.key, destination)

    def _readAll(self) -> bytes:
        stream = self.backend.download(self.containerName, self.key)
        try:
            return stream.read()
        finally:
            stream.close()

    async def readBytes(self) -> bytes:
        """
        Read whole object content.

        Raises:
            StorageNotFoundError: If the object does not exist
        """
        return await runBackendCall(self._readAll)

    async def delete(self) -> bool:
        """
        Delete the object. Deleting a missing object is not an error.

        Returns:
            True if the object was deleted, False if it didn't exist
        """
        try:
            deleted = await runBackendCall(self.backend.delete, self.containerName, self.key)
        finally:
            self.invalidateCache()

        if deleted:
            logger.debug(f"Deleted {self}, dood!")
        return deleted
