"""
Storage service package

This package provides a unified interface for storing and retrieving medical imaging
objects across multiple backend implementations (Null, Filesystem, S3).
Media identifiers are mapped to storage keys by KeyProvider, keys are resolved
into containers and locations by StorageService.
"""

from .container import StorageContainer
from .exceptions import (
    StorageBackendError,
    StorageCancelledError,
    StorageConfigError,
    StorageError,
    StorageInvalidArgumentError,
    StorageNotFoundError,
    StoragePermissionError,
    StorageSourceNotFoundError,
)
from .key_provider import KeyProvider
from .location import StorageLocation
from .service import StorageService

__all__ = [
    "KeyProvider",
    "StorageBackendError",
    "StorageCancelledError",
    "StorageConfigError",
    "StorageContainer",
    "StorageError",
    "StorageInvalidArgumentError",
    "StorageLocation",
    "StorageNotFoundError",
    "StoragePermissionError",
    "StorageService",
    "StorageSourceNotFoundError",
]
