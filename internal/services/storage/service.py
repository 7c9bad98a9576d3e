"""
Storage service: Singleton service for media object storage operations

This module provides a singleton service that resolves media identifiers into
storage locations and manages containers through pluggable backend
implementations (filesystem, S3, null).
"""

import logging
import os
import threading
from typing import TYPE_CHECKING, Any, AsyncIterator, Dict, Optional, Union
from urllib.parse import unquote, urlparse

from internal.models import MediaIdentifier, UploadPayload

from .backends.abstract import AbstractStorageBackend
from .backends.filesystem import FSStorageBackend
from .backends.null import NullStorageBackend
from .backends.s3 import S3StorageBackend
from .container import StorageContainer
from .exceptions import StorageConfigError, StorageInvalidArgumentError, StorageNotFoundError
from .key_provider import KeyProvider
from .location import StorageLocation
from .utils import normalizeContainerName, normalizeContainerPrefix, runBackendCall

if TYPE_CHECKING:
    from internal.config.manager import ConfigManager

logger = logging.getLogger(__name__)

# Connection prefix resolved against application data directory
DATA_DIRECTORY_MARKER = "|datadirectory|"
DEFAULT_DATA_DIR = "./data"


class StorageService:
    """
    Singleton service for media object storage operations.

    This service provides a unified interface for storing and retrieving binary objects
    using different backend implementations. The backend is configured once at
    startup through the injectConfig (or injectBackend) method, after that the
    service never branches on backend type.

    Supported backends:
    - null: No-op backend for testing
    - fs: Filesystem-based storage
    - s3: AWS S3 or S3-compatible storage

    Usage:
        storage = StorageService.getInstance()
        storage.injectConfig(configManager)

        # Resolve media identifier into location and work with it
        location = await storage.resolve(DicomMediaId("1.2.3", "1.2.3.4", "1.2.3.4.5"))
        await location.upload(b"...", "application/dicom")
        data = await location.readBytes()

        # Shortcuts
        await storage.store("study/series/scan.dcm", b"data")
        data = await storage.get("study/series/scan.dcm")

    Thread Safety:
        The singleton instance creation is thread-safe using RLock.
        Individual backend operations depend on backend implementation.
    """

    _instance: Union["StorageService", None] = None
    _lock = threading.RLock()

    def __new__(cls) -> "StorageService":
        """
        Create or return singleton instance with thread safety.

        Returns:
            The singleton StorageService instance
        """
        with cls._lock:
            if cls._instance is None:
                cls._instance = super().__new__(cls)
            return cls._instance

    def __init__(self):
        """
        Initialize storage service.

        Only runs once due to singleton pattern. Sets up:
        - Key provider
        - Backend placeholder (None until injectConfig is called)
        - Initialization flag
        """
        if not hasattr(self, "initialized"):
            self.keyProvider = KeyProvider()
            self.backend: AbstractStorageBackend | None = None
            self.initialized = False
            logger.info("StorageService created, awaiting configuration, dood!")

    @classmethod
    def getInstance(cls) -> "StorageService":
        """
        Get singleton instance.

        Returns:
            The singleton StorageService instance
        """
        return cls()

    def injectBackend(self, backend: AbstractStorageBackend) -> None:
        """
        Initialize service with already created backend.

        Args:
            backend: Storage backend to use
        """
        self.backend = backend
        self.initialized = True
        logger.info(f"StorageService initialized with {backend.backendName} backend, dood!")

    def injectConfig(self, configManager: "ConfigManager") -> None:
        """
        Initialize service with configuration from ConfigManager.

        Reads storage configuration and creates the appropriate backend based on
        the configured connection or type. This method should be called once during
        application initialization.

        Args:
            configManager: The configuration manager containing storage settings

        Raises:
            StorageConfigError: If configuration is invalid or backend creation fails

        Configuration format:
            {
                "type": "fs",  # or "null" or "s3"
                "connection": "",  # optional, overrides type
                "data-dir": "./data",  # base for "|datadirectory|" connections
                "fs": {"base-dir": "./storage/objects"},
                "s3": {
                    "endpoint": "https://s3.amazonaws.com",
                    "region": "us-east-1",
                    "key-id": "...",
                    "key-secret": "...",
                }
            }
        """
        try:
            # Get storage configuration from ConfigManager
            config = configManager.getStorageConfig()

            if not config:
                raise StorageConfigError("Storage configuration is missing")

            connection = config.get("connection")
            if connection:
                backend = self._createBackendFromConnection(connection, config)
            else:
                backend = self._createBackendByType(config)

            self.injectBackend(backend)

        except StorageConfigError:
            raise
        except Exception as e:
            raise StorageConfigError(f"Failed to initialize storage service: {e}", originalError=e) from e

    def _createBackendByType(self, config: Dict[str, Any]) -> AbstractStorageBackend:
        """Create backend from "type" and backend-specific configuration section."""
        storageType = config.get("type")
        if not storageType:
            raise StorageConfigError("Storage type is not specified in configuration")

        # Create appropriate backend based on type
        if storageType == "null":
            return NullStorageBackend()

        elif storageType == "fs":
            fsConfig = config.get("fs")
            if not fsConfig:
                raise StorageConfigError("Filesystem storage configuration is missing")

            baseDir = fsConfig.get("base-dir")
            if not baseDir:
                raise StorageConfigError("Filesystem base-dir is not specified")

            logger.info(f"Using filesystem storage with base-dir: {baseDir}, dood!")
            return FSStorageBackend(baseDir)

        elif storageType == "s3":
            s3Config = config.get("s3")
            if not s3Config:
                raise StorageConfigError("S3 storage configuration is missing")

            return self._createS3Backend(s3Config, endpoint=s3Config.get("endpoint"))

        raise StorageConfigError(f"Unknown storage type: {storageType}")

    def _createS3Backend(self, s3Config: Dict[str, Any], endpoint: Optional[str]) -> S3StorageBackend:
        """Create S3 backend, validating required parameters."""
        if not endpoint:
            raise StorageConfigError("S3 configuration missing required parameters: endpoint")
        if not s3Config.get("region"):
            raise StorageConfigError("S3 configuration missing required parameters: region")

        # Credentials are optional (boto3 default chain), but must be complete
        keyId = s3Config.get("key-id")
        keySecret = s3Config.get("key-secret")
        if bool(keyId) != bool(keySecret):
            raise StorageConfigError("S3 configuration must specify both key-id and key-secret or none of them")

        logger.info(f"Using S3 storage with endpoint: {endpoint}, dood!")
        return S3StorageBackend(
            endpoint=endpoint,
            region=s3Config["region"],
            keyId=keyId or None,
            keySecret=keySecret or None,
            sessionToken=s3Config.get("session-token") or None,
        )

    def _createBackendFromConnection(self, connection: str, config: Dict[str, Any]) -> AbstractStorageBackend:
        """
        Create backend from single connection descriptor.

        Supported descriptors:
        - "|datadirectory|/relative/path": filesystem, relative to data-dir
        - "file:///absolute/path": filesystem
        - "/absolute/path": filesystem
        - "http(s)://endpoint": S3, other parameters from "s3" section
        """
        if connection.lower().startswith(DATA_DIRECTORY_MARKER):
            dataDir = config.get("data-dir", DEFAULT_DATA_DIR)
            relativePath = connection[len(DATA_DIRECTORY_MARKER) :].lstrip("/\\")
            baseDir = os.path.join(dataDir, relativePath)
            logger.info(f"Using filesystem storage in data directory: {baseDir}, dood!")
            return FSStorageBackend(baseDir)

        if connection.startswith("file://"):
            baseDir = unquote(urlparse(connection).path)
            logger.info(f"Using filesystem storage with base-dir: {baseDir}, dood!")
            return FSStorageBackend(baseDir)

        if os.path.isabs(connection):
            logger.info(f"Using filesystem storage with base-dir: {connection}, dood!")
            return FSStorageBackend(connection)

        if connection.startswith("http://") or connection.startswith("https://"):
            return self._createS3Backend(config.get("s3", {}), endpoint=connection)

        raise StorageConfigError(f"Unsupported storage connection: {connection}")

    def _ensureInitialized(self) -> AbstractStorageBackend:
        """
        Ensure the service is initialized before operations.

        Returns:
            Configured backend

        Raises:
            StorageConfigError: If service is not initialized
        """
        if not self.initialized or self.backend is None:
            raise StorageConfigError("StorageService is not initialized. Call injectConfig() first, dood!")
        return self.backend

    def getStorageKey(self, target: Union[MediaIdentifier, str]) -> str:
        """
        Get storage key of a media identifier. Strings are treated as ready keys.
        """
        if isinstance(target, str):
            return target
        return self.keyProvider.deriveKey(target)

    async def resolve(self, target: Union[MediaIdentifier, str]) -> StorageLocation:
        """
        Resolve media identifier or storage key into a location.

        The container is created if it doesn't exist yet.

        Args:
            target: Media identifier or storage key ("study/series/instance")

        Returns:
            StorageLocation handle

        Raises:
            StorageConfigError: If service is not initialized
            StorageInvalidArgumentError: If the key has no container or location name
            StorageError: If the container can't be created
        """
        self._ensureInitialized()
        key = self.getStorageKey(target)
        mediaId = None if isinstance(target, str) else target

        containerName = self.keyProvider.getContainerName(key)
        locationName = self.keyProvider.getLocationName(key)
        if not containerName or not locationName:
            raise StorageInvalidArgumentError(f"Storage key '{key}' has no container or location name")

        container = await self.getContainer(containerName)
        return container.getLocation(locationName, mediaId)

    async def getContainer(self, containerKey: str) -> StorageContainer:
        """
        Get container by key, creating it if it doesn't exist.

        Args:
            containerKey: Container key, normalized before use

        Returns:
            StorageContainer handle

        Raises:
            StorageInvalidArgumentError: If the key is empty
        """
        backend = self._ensureInitialized()
        containerName = normalizeContainerName(containerKey)
        if not containerName:
            raise StorageInvalidArgumentError("Container key cannot be empty")

        await runBackendCall(backend.createContainer, containerName)
        logger.debug(f"Got container '{containerName}' for key '{containerKey}', dood!")
        return StorageContainer(backend, containerName)

    async def containerExists(self, containerKey: str) -> bool:
        """
        Check if a container exists.

        Args:
            containerKey: Container key, normalized before use

        Returns:
            True if the container exists, False otherwise (including empty key)
        """
        backend = self._ensureInitialized()
        containerName = normalizeContainerName(containerKey)
        if not containerName:
            return False

        return await runBackendCall(backend.containerExists, containerName)

    async def listContainers(self, prefix: Optional[str] = None) -> AsyncIterator[StorageContainer]:
        """
        Iterate over containers with names starting with the prefix.

        Args:
            prefix: Optional container key prefix, normalized before use

        Yields:
            StorageContainer handles
        """
        backend = self._ensureInitialized()
        namePrefix = normalizeContainerPrefix(prefix or "")

        names = await runBackendCall(backend.listContainers, namePrefix)
        logger.debug(f"Listed {len(names)} containers with prefix: '{namePrefix}', dood!")
        for name in names:
            yield StorageContainer(backend, name)

    async def store(
        self,
        target: Union[MediaIdentifier, str],
        payload: UploadPayload,
        contentType: Optional[str] = None,
        metadata: Optional[str] = None,
    ) -> StorageLocation:
        """
        Store payload under media identifier or storage key.

        Args:
            target: Media identifier or storage key
            payload: bytes-like buffer, readable binary stream or path to a local file
            contentType: Optional MIME type, inferred from the location name if omitted
            metadata: Optional metadata string

        Returns:
            Location the payload was stored to
        """
        location = await self.resolve(target)
        await location.upload(payload, contentType)
        if metadata:
            await location.setMetadata(metadata)
        logger.debug(f"Stored object {location}, dood!")
        return location

    async def get(self, target: Union[MediaIdentifier, str]) -> Optional[bytes]:
        """
        Read payload stored under media identifier or storage key.

        Returns:
            The binary data if the object exists, None if not found
        """
        location = await self.resolve(target)
        try:
            data = await location.readBytes()
        except StorageNotFoundError:
            logger.warning(f"Object not found: {location}, dood!")
            return None

        logger.debug(f"Retrieved object {location}, dood!")
        return data

    async def exists(self, target: Union[MediaIdentifier, str]) -> bool:
        """
        Check if an object exists under media identifier or storage key.
        """
        location = await self.resolve(target)
        return await location.exists()

    async def delete(self, target: Union[MediaIdentifier, str]) -> bool:
        """
        Delete object stored under media identifier or storage key.

        Returns:
            True if the object was deleted, False if it didn't exist
        """
        location = await self.resolve(target)
        deleted = await location.delete()
        if not deleted:
            logger.warning(f"Object not found for deletion: {location}, dood!")
        return deleted
