"""
Tests for StorageLocation, dood!

This module tests object handles: upload of different payload kinds,
content type inference, metadata round trips, property caching and deletion.
"""

import io
from unittest.mock import Mock

import pytest

from internal.models import DicomMediaId
from internal.services.storage.backends.filesystem import FSStorageBackend
from internal.services.storage.exceptions import (
    StorageBackendError,
    StorageInvalidArgumentError,
    StorageNotFoundError,
    StorageSourceNotFoundError,
)
from internal.services.storage.location import StorageLocation
from internal.services.storage.models import ObjectProperties


@pytest.fixture
def fsBackend(tmp_path):
    """Create filesystem backend with container "study", dood!"""
    backend = FSStorageBackend(str(tmp_path / "storage"))
    backend.createContainer("study")
    return backend


@pytest.fixture
def location(fsBackend):
    """Create location "scan.dcm" in container "study", dood!"""
    return StorageLocation(fsBackend, "study", "scan.dcm")


@pytest.fixture
def mockBackend():
    """Create mocked backend, dood!"""
    backend = Mock()
    backend.getProperties = Mock(
        return_value=ObjectProperties(size=4, contentType="application/dicom", metadata={"meta": "value"})
    )
    return backend


class TestLocationAttributes:
    """Test location attributes, dood!"""

    def testName(self, fsBackend):
        """Test that name is the last segment of the key"""
        location = StorageLocation(fsBackend, "study", "series/instance/frame1.png")

        assert location.name == "frame1.png"
        assert location.key == "series/instance/frame1.png"
        assert location.containerName == "study"

    def testId(self, location, fsBackend):
        """Test that id is URI of the object"""
        assert location.id == fsBackend.getObjectUri("study", "scan.dcm")

    def testMediaId(self, fsBackend):
        """Test that media identifier is kept"""
        mediaId = DicomMediaId("1.2.3")

        assert StorageLocation(fsBackend, "study", "scan.dcm", mediaId).mediaId is mediaId

    def testCreationDoesNotTouchBackend(self, mockBackend):
        """Test that creating handle doesn't call backend"""
        StorageLocation(mockBackend, "study", "scan.dcm")

        assert mockBackend.mock_calls == []


class TestLocationUpload:
    """Test upload of different payloads, dood!"""

    @pytest.mark.asyncio
    async def testUploadInfersContentType(self, location):
        """Test that 10-byte upload to scan.dcm gives DICOM type and size 10"""
        await location.upload(b"0123456789")

        assert await location.getContentType() == "application/dicom"
        assert await location.getSize() == 10
        assert await location.exists() is True

    @pytest.mark.asyncio
    async def testUploadExplicitContentType(self, location):
        """Test that explicit content type wins"""
        await location.upload(b"data", "application/x-custom")

        assert await location.getContentType() == "application/x-custom"

    @pytest.mark.asyncio
    async def testUploadUnknownExtension(self, fsBackend):
        """Test that unknown extension gives generic binary type"""
        location = StorageLocation(fsBackend, "study", "1.2.840.10008")

        await location.upload(b"data")

        assert await location.getContentType() == "application/octet-stream"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("payload", [bytearray(b"data"), memoryview(b"data")])
    async def testUploadBytesLike(self, location, payload):
        """Test that bytes-like buffers are accepted"""
        await location.upload(payload)

        assert await location.readBytes() == b"data"

    @pytest.mark.asyncio
    async def testUploadStream(self, location):
        """Test that readable stream is accepted"""
        await location.upload(io.BytesIO(b"stream"))

        assert await location.readBytes() == b"stream"

    @pytest.mark.asyncio
    async def testUploadFilePath(self, location, tmp_path):
        """Test that string and Path payloads are local file names"""
        sourcePath = tmp_path / "source.dcm"
        sourcePath.write_bytes(b"from file")

        await location.upload(str(sourcePath))
        assert await location.readBytes() == b"from file"

        sourcePath.write_bytes(b"from path")
        await location.upload(sourcePath)
        assert await location.readBytes() == b"from path"

    @pytest.mark.asyncio
    async def testUploadMissingFile(self, location, tmp_path):
        """Test that missing source file raises error"""
        with pytest.raises(StorageSourceNotFoundError):
            await location.upload(str(tmp_path / "missing.dcm"))

        assert await location.exists() is False

    @pytest.mark.asyncio
    async def testUploadMissingFileIsInvalidArgument(self, location, tmp_path):
        """Test that missing source file is an invalid argument kind"""
        with pytest.raises(StorageInvalidArgumentError):
            await location.upload(tmp_path / "missing.dcm")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("payload", [None, "", 12345])
    async def testUploadInvalidPayload(self, location, payload):
        """Test that missing or unsupported payload raises error"""
        with pytest.raises(StorageInvalidArgumentError):
            await location.upload(payload)

    @pytest.mark.asyncio
    async def testUploadReplacesMetadata(self, location):
        """Test that upload drops previous metadata"""
        await location.upload(b"first")
        await location.setMetadata("old")

        await location.upload(b"second")

        assert await location.getMetadata() is None


class TestLocationProperties:
    """Test size, content type and metadata accessors, dood!"""

    @pytest.mark.asyncio
    async def testMissingObject(self, location):
        """Test accessors of missing object"""
        assert await location.exists() is False
        assert await location.getSize() == 0
        assert await location.getContentType() is None
        assert await location.getMetadata() is None

    @pytest.mark.asyncio
    async def testMetadataRoundTrip(self, location):
        """Test that metadata is stored and read back"""
        await location.upload(b"data")

        await location.setMetadata("patient=anonymous;modality=CT")

        assert await location.getMetadata() == "patient=anonymous;modality=CT"

    @pytest.mark.asyncio
    async def testMetadataKeepsContentType(self, location):
        """Test that metadata update doesn't change content type"""
        await location.upload(b"data", "application/x-custom")

        await location.setMetadata("value")

        assert await location.getContentType() == "application/x-custom"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("value", [None, ""])
    async def testClearMetadata(self, location, value):
        """Test that empty value removes metadata"""
        await location.upload(b"data")
        await location.setMetadata("value")

        await location.setMetadata(value)

        assert await location.getMetadata() is None

    @pytest.mark.asyncio
    async def testSetMetadataOfMissingObject(self, location):
        """Test that setting metadata of missing object does nothing"""
        await location.setMetadata("value")

        assert await location.exists() is False
        assert await location.getMetadata() is None

    @pytest.mark.asyncio
    async def testPropertiesAreCached(self, mockBackend):
        """Test that properties are fetched once"""
        location = StorageLocation(mockBackend, "study", "scan.dcm")

        assert await location.getSize() == 4
        assert await location.getContentType() == "application/dicom"
        assert await location.getMetadata() == "value"

        mockBackend.getProperties.assert_called_once_with("study", "scan.dcm")

    @pytest.mark.asyncio
    async def testMissingObjectIsNotCached(self, mockBackend):
        """Test that absent object is asked again"""
        mockBackend.getProperties.return_value = None
        location = StorageLocation(mockBackend, "study", "scan.dcm")

        await location.getSize()
        await location.getSize()

        assert mockBackend.getProperties.call_count == 2

    @pytest.mark.asyncio
    async def testInvalidateCache(self, mockBackend):
        """Test that invalidated cache is fetched again"""
        location = StorageLocation(mockBackend, "study", "scan.dcm")
        await location.getSize()

        location.invalidateCache()
        mockBackend.getProperties.return_value = ObjectProperties(size=8)

        assert await location.getSize() == 8

    @pytest.mark.asyncio
    async def testCacheInvalidatedAfterFailedUpload(self, mockBackend):
        """Test that failed upload still drops cached properties"""
        location = StorageLocation(mockBackend, "study", "scan.dcm")
        await location.getSize()
        mockBackend.upload.side_effect = RuntimeError("network down")

        with pytest.raises(StorageBackendError):
            await location.upload(b"new data")

        mockBackend.getProperties.return_value = ObjectProperties(size=8)
        assert await location.getSize() == 8

    @pytest.mark.asyncio
    async def testSetMetadataPassesWholeMap(self, mockBackend):
        """Test that other keys of the property bag are kept"""
        mockBackend.getProperties.return_value = ObjectProperties(size=4, metadata={"other": "kept", "meta": "old"})
        location = StorageLocation(mockBackend, "study", "scan.dcm")

        await location.setMetadata("new")

        mockBackend.setMetadata.assert_called_once_with("study", "scan.dcm", {"other": "kept", "meta": "new"})


class TestLocationDownload:
    """Test reading object content, dood!"""

    @pytest.mark.asyncio
    async def testDownload(self, location):
        """Test opening object stream"""
        await location.upload(b"content")

        stream = await location.download()
        try:
            assert stream.read() == b"content"
        finally:
            stream.close()

    @pytest.mark.asyncio
    async def testDownloadTo(self, location):
        """Test copying object into stream"""
        await location.upload(b"content")
        destination = io.BytesIO()

        await location.downloadTo(destination)

        assert destination.getvalue() == b"content"

    @pytest.mark.asyncio
    async def testDownloadToWithoutDestination(self, location):
        """Test that destination is required"""
        with pytest.raises(StorageInvalidArgumentError):
            await location.downloadTo(None)  # type: ignore[arg-type]

    @pytest.mark.asyncio
    async def testDownloadMissing(self, location):
        """Test that reading missing object raises error"""
        with pytest.raises(StorageNotFoundError):
            await location.download()
        with pytest.raises(StorageNotFoundError):
            await location.readBytes()


class TestLocationDelete:
    """Test deleting objects, dood!"""

    @pytest.mark.asyncio
    async def testDelete(self, location):
        """Test that deleted object is gone"""
        await location.upload(b"data")
        assert await location.getSize() == 4

        assert await location.delete() is True

        assert await location.exists() is False
        assert await location.getSize() == 0

    @pytest.mark.asyncio
    async def testDeleteIsIdempotent(self, location):
        """Test that deleting missing object is not an error"""
        await location.upload(b"data")

        assert await location.delete() is True
        assert await location.delete() is False

    @pytest.mark.asyncio
    async def testDeleteLocationNamingDirectory(self, fsBackend):
        """Test that location naming a directory is absent and delete doesn't raise"""
        await StorageLocation(fsBackend, "study", "series/scan.dcm").upload(b"data")
        directoryLocation = StorageLocation(fsBackend, "study", "series")

        assert await directoryLocation.exists() is False
        assert await directoryLocation.getSize() == 0
        assert await directoryLocation.delete() is False
        assert await StorageLocation(fsBackend, "study", "series/scan.dcm").exists() is True
