"""
Storage service exceptions

This module defines the exception hierarchy for the storage service.
All storage-related errors inherit from StorageError base class, so callers never
see backend-specific error types (OSError, botocore errors, etc.), dood!

Error kinds:
- StorageInvalidArgumentError: empty/malformed key, name or payload
- StorageNotFoundError: object or container is absent where it is required
- StoragePermissionError: backend rejected the credentials or authorization
- StorageBackendError: transport-level failure, eligible for retry
- StorageCancelledError: operation was cancelled while waiting for the backend
- StorageConfigError: service or backend is misconfigured
"""

import asyncio


class StorageError(Exception):
    """
    Base exception for all storage service errors.

    This is the parent class for all storage-related exceptions.
    Catch this to handle any storage service error generically.

    Args:
        message: Description of the error
        originalError: The original exception that caused this error (optional)
    """

    def __init__(self, message: str, originalError: Exception | BaseException | None = None):
        """
        Initialize StorageError with message and optional original error.

        Args:
            message: Description of the error
            originalError: The original exception that caused this error
        """
        super().__init__(message)
        self.originalError = originalError


class StorageInvalidArgumentError(StorageError):
    """
    Exception raised when a storage argument is invalid.

    This exception is raised synchronously, before any backend call, when:
    - Location or container name is empty
    - Key contains path traversal sequences
    - Required payload is missing
    """

    pass


class StorageSourceNotFoundError(StorageInvalidArgumentError):
    """
    Exception raised when the source file of an upload does not exist.
    """

    pass


class StorageNotFoundError(StorageError):
    """
    Exception raised when an object or container does not exist.

    Only operations that require the object to exist (download, for example) raise it.
    Existence checks and size/content-type accessors report empty results instead.
    """

    pass


class StoragePermissionError(StorageError):
    """
    Exception raised when the backend rejects the credentials or authorization
    for the requested operation.
    """

    pass


class StorageBackendError(StorageError):
    """
    Exception raised when a storage backend operation fails.

    This exception wraps backend-specific errors such as:
    - File system I/O errors
    - Network errors for remote storage
    - Throttling and internal errors of the remote service
    - Storage quota exceeded
    - Backend service unavailable

    Unrecognized backend failures are always wrapped into this error.
    """

    pass


class StorageCancelledError(StorageError, asyncio.CancelledError):
    """
    Exception raised when an operation is cancelled while waiting for the backend.

    It is also an asyncio.CancelledError, so asyncio timeouts and task
    cancellation keep working for code awaiting storage calls, dood!
    """

    pass


class StorageConfigError(StorageError):
    """
    Exception raised when storage configuration is invalid.

    This exception is raised during service initialization when:
    - Required configuration parameters are missing
    - Configuration values are invalid
    - Backend type is not recognized
    - Backend-specific configuration is malformed

    It is also raised when the service is used before it was configured.
    """

    pass
