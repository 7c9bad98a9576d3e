"""
Filesystem storage backend implementation

This module provides a storage backend that stores objects as files
in a local directory with atomic operations and proper error handling.

Layout:
    {baseDir}/{container}/{key}             # content
    {baseDir}/{container}/{key}.meta.json   # content type and metadata map
    {baseDir}/{container}/.{key}.{uuid}.medistore-tmp  # write in progress
"""

import datetime
import json
import logging
import os
import shutil
import uuid
from pathlib import Path
from typing import BinaryIO, Dict, List, Optional

import lib.utils as utils

from ..exceptions import (
    StorageBackendError,
    StorageError,
    StorageInvalidArgumentError,
    StorageNotFoundError,
    StoragePermissionError,
    StorageSourceNotFoundError,
)
from ..models import ObjectListPage, ObjectProperties
from ..utils import getContentTypeByName, validateObjectKey
from .abstract import DEFAULT_PAGE_SIZE, AbstractStorageBackend, UploadSource

logger = logging.getLogger(__name__)

METADATA_SUFFIX = ".meta.json"
# Temporary files are hidden: ".{name}.{uuid}.medistore-tmp"
TEMP_SUFFIX = ".medistore-tmp"


def _translateOSError(e: OSError, message: str) -> StorageError:
    """Convert OSError into storage error of matching kind."""
    if isinstance(e, (FileNotFoundError, NotADirectoryError, IsADirectoryError)):
        return StorageNotFoundError(f"{message}: {e}", originalError=e)
    if isinstance(e, PermissionError):
        return StoragePermissionError(f"{message}: {e}", originalError=e)
    return StorageBackendError(f"{message}: {e}", originalError=e)


def _isReservedName(name: str) -> bool:
    return name.endswith(METADATA_SUFFIX) or name.endswith(TEMP_SUFFIX)


def _isServiceFile(path: Path) -> bool:
    return _isReservedName(path.name)


class FSStorageBackend(AbstractStorageBackend):
    """
    Filesystem-based storage backend.

    Containers are directories inside the base directory, objects are files.
    Keys with "/" become nested directories. Content type and metadata map of
    each object are kept in a JSON sidecar file next to it.

    Features:
    - Automatic base directory creation if it doesn't exist
    - Atomic writes via temporary file and rename
    - File permissions set to 0o644 (readable by all, writable by owner)
    - Path traversal protection for object keys
    - OSError translation into storage error kinds

    Keys ending with ".meta.json" or ".medistore-tmp" are reserved for service
    files: uploading them raises StorageInvalidArgumentError, reading them
    behaves as for a missing object.

    Args:
        baseDir: Base directory path for storage (will be created if needed)

    Raises:
        StorageBackendError: If baseDir cannot be created or accessed

    Example:
        >>> backend = FSStorageBackend("/tmp/storage")
        >>> backend.createContainer("study1")
        >>> backend.upload("study1", "scan.dcm", b"data", "application/dicom")
        >>> backend.getProperties("study1", "scan.dcm").size
        4
    """

    def __init__(self, baseDir: str):
        """
        Initialize filesystem storage backend.

        Args:
            baseDir: Base directory path for storage

        Raises:
            StorageBackendError: If baseDir cannot be created or is not a directory
        """
        self.baseDir = Path(baseDir)

        # Create base directory if it doesn't exist
        try:
            self.baseDir.mkdir(parents=True, exist_ok=True)
        except Exception as e:
            raise StorageBackendError(f"Failed to create base directory '{baseDir}': {e}", originalError=e)

        # Verify it's actually a directory
        if not self.baseDir.is_dir():
            raise StorageBackendError(f"Base path '{baseDir}' exists but is not a directory")

    @property
    def backendName(self) -> str:
        return "fs"

    def _getContainerDir(self, name: str) -> Path:
        """
        Get directory of a container.

        Raises:
            StorageInvalidArgumentError: If the name can't be used as directory name
        """
        if not name or "/" in name or "\\" in name or name in (".", ".."):
            raise StorageInvalidArgumentError(f"Invalid container name: '{name}'")
        return self.baseDir / name

    def _getObjectPath(self, container: str, key: str) -> Path:
        """
        Get file path of an object.

        Raises:
            StorageInvalidArgumentError: If the key is invalid
        """
        return self._getContainerDir(container) / validateObjectKey(key)

    def _getWritableObjectPath(self, container: str, key: str) -> Path:
        """
        Get file path of an object which is going to be written.

        Raises:
            StorageInvalidArgumentError: If the key is invalid or reserved
        """
        filePath = self._getObjectPath(container, key)
        if _isReservedName(filePath.name):
            raise StorageInvalidArgumentError(f"Object key uses reserved suffix: '{key}'")
        return filePath

    def _getReadableObjectPath(self, container: str, key: str) -> Optional[Path]:
        """Get file path of an object, None if the key can't name a stored object."""
        filePath = self._getObjectPath(container, key)
        return None if _isReservedName(filePath.name) else filePath

    def _getMetadataPath(self, objectPath: Path) -> Path:
        return objectPath.with_name(objectPath.name + METADATA_SUFFIX)

    def _getTempPath(self, path: Path) -> Path:
        return path.with_name(f".{path.name}.{uuid.uuid4().hex}{TEMP_SUFFIX}")

    def _readSidecar(self, objectPath: Path) -> Dict:
        """Read sidecar file, empty dict if it is missing or broken."""
        metaPath = self._getMetadataPath(objectPath)
        try:
            data = json.loads(metaPath.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return {}
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Failed to read metadata file {metaPath}: {e}")
            return {}
        return data if isinstance(data, dict) else {}

    def _writeAtomic(self, path: Path, source: UploadSource) -> None:
        """Write data to a temporary file then rename it to the target path."""
        tempPath = self._getTempPath(path)
        try:
            if isinstance(source, Path):
                shutil.copyfile(source, tempPath)
            elif isinstance(source, bytes):
                with open(tempPath, "wb") as f:
                    f.write(source)
            else:
                with open(tempPath, "wb") as f:
                    shutil.copyfileobj(source, f)

            os.chmod(tempPath, 0o644)
            tempPath.replace(path)
        except BaseException:
            # Clean up temporary file if it exists
            try:
                tempPath.unlink(missing_ok=True)
            except OSError as cleanupError:
                logger.warning(f"Failed to remove temporary file {tempPath}: {cleanupError}")
            raise

    def _writeSidecar(self, objectPath: Path, contentType: Optional[str], metadata: Dict[str, str]) -> None:
        sidecar = {"content-type": contentType, "metadata": metadata}
        self._writeAtomic(self._getMetadataPath(objectPath), utils.jsonDumps(sidecar, indent=2).encode("utf-8"))

    # Containers

    def createContainer(self, name: str) -> None:
        containerDir = self._getContainerDir(name)
        try:
            containerDir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise _translateOSError(e, f"Failed to create container '{name}'") from e

    def containerExists(self, name: str) -> bool:
        try:
            return self._getContainerDir(name).is_dir()
        except OSError as e:
            raise _translateOSError(e, f"Failed to check existence of container '{name}'") from e

    def listContainers(self, prefix: str = "") -> List[str]:
        try:
            names = [d.name for d in self.baseDir.iterdir() if d.is_dir() and d.name.startswith(prefix)]
        except OSError as e:
            raise _translateOSError(e, f"Failed to list containers with prefix '{prefix}'") from e

        # Sort for consistent ordering
        names.sort()
        return names

    def deleteContainer(self, name: str) -> bool:
        containerDir = self._getContainerDir(name)
        if not containerDir.is_dir():
            return False

        try:
            shutil.rmtree(containerDir)
            return True
        except FileNotFoundError:
            # Directory was deleted between check and removal
            return False
        except OSError as e:
            raise _translateOSError(e, f"Failed to delete container '{name}'") from e

    def getContainerUri(self, name: str) -> str:
        return self._getContainerDir(name).resolve().as_uri()

    # Objects

    def getObjectUri(self, container: str, key: str) -> str:
        return self._getObjectPath(container, key).resolve().as_uri()

    def objectExists(self, container: str, key: str) -> bool:
        filePath = self._getReadableObjectPath(container, key)
        if filePath is None:
            return False
        try:
            return filePath.is_file()
        except OSError as e:
            raise _translateOSError(e, f"Failed to check existence of key '{key}'") from e

    def listObjects(
        self,
        container: str,
        prefix: str = "",
        pageToken: Optional[str] = None,
        pageSize: int = DEFAULT_PAGE_SIZE,
    ) -> ObjectListPage:
        containerDir = self._getContainerDir(container)
        if not containerDir.is_dir():
            return ObjectListPage(keys=[])

        try:
            allKeys = [
                path.relative_to(containerDir).as_posix()
                for path in containerDir.rglob("*")
                if path.is_file() and not _isServiceFile(path)
            ]
        except OSError as e:
            raise _translateOSError(e, f"Failed to list objects in container '{container}'") from e

        matchingKeys = sorted(key for key in allKeys if key.startswith(prefix))
        if pageToken is not None:
            matchingKeys = [key for key in matchingKeys if key > pageToken]

        if pageSize <= 0 or len(matchingKeys) <= pageSize:
            return ObjectListPage(keys=matchingKeys)

        pageKeys = matchingKeys[:pageSize]
        return ObjectListPage(keys=pageKeys, nextPageToken=pageKeys[-1])

    def getProperties(self, container: str, key: str) -> Optional[ObjectProperties]:
        filePath = self._getReadableObjectPath(container, key)
        if filePath is None:
            return None
        try:
            stat = filePath.stat()
        except FileNotFoundError:
            return None
        except OSError as e:
            raise _translateOSError(e, f"Failed to get properties of key '{key}'") from e

        if not filePath.is_file():
            return None

        sidecar = self._readSidecar(filePath)
        metadata = sidecar.get("metadata")
        return ObjectProperties(
            size=stat.st_size,
            contentType=sidecar.get("content-type") or getContentTypeByName(key),
            metadata=dict(metadata) if isinstance(metadata, dict) else {},
            lastModified=datetime.datetime.fromtimestamp(stat.st_mtime, tz=datetime.timezone.utc),
        )

    def setMetadata(self, container: str, key: str, metadata: Dict[str, str]) -> None:
        filePath = self._getReadableObjectPath(container, key)
        if filePath is None or not filePath.is_file():
            raise StorageNotFoundError(f"Object with key '{key}' not found in container '{container}'")

        sidecar = self._readSidecar(filePath)
        try:
            self._writeSidecar(filePath, sidecar.get("content-type"), dict(metadata))
        except OSError as e:
            raise _translateOSError(e, f"Failed to set metadata of key '{key}'") from e

    def upload(self, container: str, key: str, source: UploadSource, contentType: str) -> None:
        filePath = self._getWritableObjectPath(container, key)
        containerDir = self._getContainerDir(container)
        if not containerDir.is_dir():
            raise StorageNotFoundError(f"Container '{container}' not found")

        if isinstance(source, Path) and not source.is_file():
            raise StorageSourceNotFoundError(f"Source file not found: {source}")

        try:
            filePath.parent.mkdir(parents=True, exist_ok=True)
            self._writeAtomic(filePath, source)
            self._writeSidecar(filePath, contentType, {})
        except OSError as e:
            raise _translateOSError(e, f"Failed to store object with key '{key}'") from e

    def _getDownloadPath(self, container: str, key: str) -> Path:
        filePath = self._getReadableObjectPath(container, key)
        if filePath is None:
            raise StorageNotFoundError(f"Object with key '{key}' not found in container '{container}'")
        return filePath

    def download(self, container: str, key: str) -> BinaryIO:
        filePath = self._getDownloadPath(container, key)
        try:
            return open(filePath, "rb")
        except OSError as e:
            raise _translateOSError(e, f"Failed to read object with key '{key}'") from e

    def downloadTo(self, container: str, key: str, destination: BinaryIO) -> None:
        filePath = self._getDownloadPath(container, key)
        try:
            with open(filePath, "rb") as f:
                shutil.copyfileobj(f, destination)
        except OSError as e:
            raise _translateOSError(e, f"Failed to read object with key '{key}'") from e

    def delete(self, container: str, key: str) -> bool:
        filePath = self._getReadableObjectPath(container, key)
        # Directories are not objects
        if filePath is None or not filePath.is_file():
            return False

        try:
            filePath.unlink()
        except (FileNotFoundError, NotADirectoryError, IsADirectoryError):
            return False
        except OSError as e:
            raise _translateOSError(e, f"Failed to delete object with key '{key}'") from e

        try:
            self._getMetadataPath(filePath).unlink(missing_ok=True)
        except OSError as e:
            logger.warning(f"Failed to delete metadata file of key '{key}': {e}")
        return True
