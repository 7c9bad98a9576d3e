"""
Pytest configuration and common fixtures for MediStore tests.

All fixtures follow camelCase naming convention.
"""

import pytest

from internal.models import DicomMediaId
from internal.services.storage import StorageService


@pytest.fixture(autouse=True)
def resetStorageServiceSingleton():
    """
    Reset StorageService singleton before and after each test.

    StorageService keeps configured backend in the process-wide instance,
    so tests must not see backends configured by other tests.
    """
    StorageService._instance = None
    yield
    StorageService._instance = None


@pytest.fixture
def sampleMediaId() -> DicomMediaId:
    """
    Provide DICOM identifier with study, series and instance components.

    Returns:
        DicomMediaId: Identifier which key is "1.2.840.113619/1.2.840.113619.2/1.2.840.113619.2.1"
    """
    return DicomMediaId("1.2.840.113619", "1.2.840.113619.2", "1.2.840.113619.2.1")
