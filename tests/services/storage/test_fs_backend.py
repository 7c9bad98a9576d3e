"""
Comprehensive tests for FSStorageBackend, dood!

This module tests the FSStorageBackend to ensure it properly
stores and retrieves files, content types and metadata from the filesystem.
"""

import io
import json
import os
import shutil
import tempfile
from pathlib import Path

import pytest

from internal.services.storage.backends.filesystem import FSStorageBackend
from internal.services.storage.exceptions import (
    StorageBackendError,
    StorageInvalidArgumentError,
    StorageNotFoundError,
    StorageSourceNotFoundError,
)


@pytest.fixture
def tempDir():
    """Create a temporary directory for testing, dood!"""
    tmpDir = tempfile.mkdtemp()
    yield tmpDir
    # Cleanup
    shutil.rmtree(tmpDir, ignore_errors=True)


@pytest.fixture
def fsBackend(tempDir):
    """Create FSStorageBackend with temporary directory, dood!"""
    return FSStorageBackend(tempDir)


@pytest.fixture
def studyContainer(fsBackend):
    """Create container "study" in the backend, dood!"""
    fsBackend.createContainer("study")
    return "study"


class TestFSBackendInitialization:
    """Test FSStorageBackend initialization, dood!"""

    def testBackendCreation(self, tempDir):
        """Test that backend can be created with base directory"""
        backend = FSStorageBackend(tempDir)

        assert backend.baseDir == Path(tempDir)
        assert backend.backendName == "fs"

    def testNestedDirectoryCreation(self, tempDir):
        """Test that backend creates nested base directories"""
        nestedDir = os.path.join(tempDir, "nested", "path")

        FSStorageBackend(nestedDir)

        assert Path(nestedDir).is_dir()

    def testBaseDirIsFile(self, tempDir):
        """Test that file as base directory raises error"""
        filePath = os.path.join(tempDir, "file.txt")
        Path(filePath).write_text("content")

        with pytest.raises(StorageBackendError):
            FSStorageBackend(filePath)


class TestFSBackendContainers:
    """Test container operations, dood!"""

    def testCreateContainer(self, fsBackend, tempDir):
        """Test that container is a directory"""
        fsBackend.createContainer("study")

        assert (Path(tempDir) / "study").is_dir()
        assert fsBackend.containerExists("study") is True

    def testCreateContainerIdempotent(self, fsBackend):
        """Test that creating existing container is not an error"""
        fsBackend.createContainer("study")
        fsBackend.createContainer("study")

        assert fsBackend.containerExists("study") is True

    def testContainerNotExists(self, fsBackend):
        """Test that missing container is reported"""
        assert fsBackend.containerExists("missing") is False

    @pytest.mark.parametrize("name", ["", "..", ".", "a/b", "a\\b"])
    def testInvalidContainerName(self, fsBackend, name):
        """Test that names which aren't single directory names are rejected"""
        with pytest.raises(StorageInvalidArgumentError):
            fsBackend.createContainer(name)

    def testListContainers(self, fsBackend):
        """Test listing containers with prefix"""
        for name in ["study-b", "study-a", "other"]:
            fsBackend.createContainer(name)

        assert fsBackend.listContainers() == ["other", "study-a", "study-b"]
        assert fsBackend.listContainers("study") == ["study-a", "study-b"]
        assert fsBackend.listContainers("missing") == []

    def testDeleteContainer(self, fsBackend, studyContainer):
        """Test that container is deleted with its content"""
        fsBackend.upload(studyContainer, "series/scan.dcm", b"data", "application/dicom")

        assert fsBackend.deleteContainer(studyContainer) is True
        assert fsBackend.containerExists(studyContainer) is False

    def testDeleteMissingContainer(self, fsBackend):
        """Test that deleting missing container returns False"""
        assert fsBackend.deleteContainer("missing") is False

    def testContainerUri(self, fsBackend, tempDir):
        """Test that container URI is file URI of its directory"""
        uri = fsBackend.getContainerUri("study")

        assert uri == (Path(tempDir) / "study").resolve().as_uri()
        assert uri.startswith("file://")


class TestFSBackendUpload:
    """Test upload operations, dood!"""

    def testUploadBytes(self, fsBackend, studyContainer, tempDir):
        """Test uploading bytes"""
        fsBackend.upload(studyContainer, "scan.dcm", b"0123456789", "application/dicom")

        filePath = Path(tempDir) / "study" / "scan.dcm"
        assert filePath.read_bytes() == b"0123456789"

    def testUploadWritesSidecar(self, fsBackend, studyContainer, tempDir):
        """Test that content type is kept in sidecar file"""
        fsBackend.upload(studyContainer, "scan.dcm", b"data", "application/dicom")

        sidecarPath = Path(tempDir) / "study" / "scan.dcm.meta.json"
        sidecar = json.loads(sidecarPath.read_text())
        assert sidecar == {"content-type": "application/dicom", "metadata": {}}

    def testUploadStream(self, fsBackend, studyContainer):
        """Test uploading readable stream"""
        fsBackend.upload(studyContainer, "scan.dcm", io.BytesIO(b"stream data"), "application/dicom")

        assert fsBackend.getProperties(studyContainer, "scan.dcm").size == len(b"stream data")

    def testUploadFile(self, fsBackend, studyContainer, tempDir):
        """Test uploading local file"""
        sourcePath = Path(tempDir) / "source.bin"
        sourcePath.write_bytes(b"file data")

        fsBackend.upload(studyContainer, "copy.bin", sourcePath, "application/octet-stream")

        assert (Path(tempDir) / "study" / "copy.bin").read_bytes() == b"file data"

    def testUploadMissingFile(self, fsBackend, studyContainer, tempDir):
        """Test that missing source file raises error"""
        with pytest.raises(StorageSourceNotFoundError):
            fsBackend.upload(studyContainer, "copy.bin", Path(tempDir) / "missing.bin", "application/octet-stream")

    def testUploadNestedKey(self, fsBackend, studyContainer, tempDir):
        """Test that nested keys become subdirectories"""
        fsBackend.upload(studyContainer, "series/instance/frame.png", b"png", "image/png")

        assert (Path(tempDir) / "study" / "series" / "instance" / "frame.png").is_file()

    def testUploadToMissingContainer(self, fsBackend):
        """Test that upload requires existing container"""
        with pytest.raises(StorageNotFoundError):
            fsBackend.upload("missing", "scan.dcm", b"data", "application/dicom")

    def testUploadOverwrites(self, fsBackend, studyContainer):
        """Test that upload replaces content and metadata"""
        fsBackend.upload(studyContainer, "scan.dcm", b"old content", "application/dicom")
        fsBackend.setMetadata(studyContainer, "scan.dcm", {"meta": "old"})

        fsBackend.upload(studyContainer, "scan.dcm", b"new", "text/plain")

        properties = fsBackend.getProperties(studyContainer, "scan.dcm")
        assert properties.size == 3
        assert properties.contentType == "text/plain"
        assert properties.metadata == {}

    def testNoTempFilesLeft(self, fsBackend, studyContainer, tempDir):
        """Test that atomic writes don't leave temporary files"""
        fsBackend.upload(studyContainer, "scan.dcm", b"data", "application/dicom")

        names = sorted(p.name for p in (Path(tempDir) / "study").iterdir())
        assert names == ["scan.dcm", "scan.dcm.meta.json"]

    def testFilePermissions(self, fsBackend, studyContainer, tempDir):
        """Test that stored files are readable by all"""
        fsBackend.upload(studyContainer, "scan.dcm", b"data", "application/dicom")

        mode = (Path(tempDir) / "study" / "scan.dcm").stat().st_mode & 0o777
        assert mode == 0o644

    @pytest.mark.parametrize("key", ["../escape.dcm", "/etc/passwd", "a/../../b", "scan\x00.dcm"])
    def testInvalidKeys(self, fsBackend, studyContainer, key):
        """Test that keys escaping the container are rejected"""
        with pytest.raises(StorageInvalidArgumentError):
            fsBackend.upload(studyContainer, key, b"data", "application/octet-stream")

    @pytest.mark.parametrize("key", ["scan.dcm.meta.json", "scan.dcm.medistore-tmp"])
    def testReservedSuffixes(self, fsBackend, studyContainer, key):
        """Test that service file names can't be used as keys"""
        with pytest.raises(StorageInvalidArgumentError, match="reserved"):
            fsBackend.upload(studyContainer, key, b"data", "application/octet-stream")

    @pytest.mark.parametrize("key", ["scan.dcm.meta.json", "scan.dcm.medistore-tmp"])
    def testReservedKeysReadAsMissing(self, fsBackend, studyContainer, key):
        """Test that reserved keys behave as missing objects on read"""
        fsBackend.upload(studyContainer, "scan.dcm", b"data", "application/dicom")

        assert fsBackend.objectExists(studyContainer, key) is False
        assert fsBackend.getProperties(studyContainer, key) is None
        assert fsBackend.delete(studyContainer, key) is False
        with pytest.raises(StorageNotFoundError):
            fsBackend.download(studyContainer, key)
        with pytest.raises(StorageNotFoundError):
            fsBackend.setMetadata(studyContainer, key, {"meta": "x"})
        assert fsBackend.objectExists(studyContainer, "scan.dcm") is True

    def testTmpExtensionIsOrdinaryKey(self, fsBackend, studyContainer):
        """Test that keys ending with .tmp are stored and listed"""
        fsBackend.upload(studyContainer, "upload.tmp", b"data", "application/octet-stream")

        assert fsBackend.objectExists(studyContainer, "upload.tmp") is True
        assert fsBackend.listObjects(studyContainer).keys == ["upload.tmp"]


class TestFSBackendProperties:
    """Test properties and metadata, dood!"""

    def testGetProperties(self, fsBackend, studyContainer):
        """Test properties of stored object"""
        fsBackend.upload(studyContainer, "scan.dcm", b"0123456789", "application/dicom")

        properties = fsBackend.getProperties(studyContainer, "scan.dcm")

        assert properties.size == 10
        assert properties.contentType == "application/dicom"
        assert properties.metadata == {}
        assert properties.lastModified is not None
        assert properties.lastModified.tzinfo is not None

    def testGetPropertiesMissing(self, fsBackend, studyContainer):
        """Test that missing object has no properties"""
        assert fsBackend.getProperties(studyContainer, "missing.dcm") is None
        assert fsBackend.getProperties("missing", "missing.dcm") is None

    def testGetPropertiesOfDirectory(self, fsBackend, studyContainer):
        """Test that directory of nested keys isn't an object"""
        fsBackend.upload(studyContainer, "series/scan.dcm", b"data", "application/dicom")

        assert fsBackend.getProperties(studyContainer, "series") is None
        assert fsBackend.objectExists(studyContainer, "series") is False

    def testContentTypeWithoutSidecar(self, fsBackend, studyContainer, tempDir):
        """Test that content type is detected by name when sidecar is missing"""
        (Path(tempDir) / "study" / "external.png").write_bytes(b"png")

        properties = fsBackend.getProperties(studyContainer, "external.png")

        assert properties.contentType == "image/png"
        assert properties.metadata == {}

    def testBrokenSidecar(self, fsBackend, studyContainer, tempDir):
        """Test that broken sidecar is ignored"""
        fsBackend.upload(studyContainer, "scan.dcm", b"data", "application/dicom")
        (Path(tempDir) / "study" / "scan.dcm.meta.json").write_text("{not json")

        properties = fsBackend.getProperties(studyContainer, "scan.dcm")

        assert properties.contentType == "application/dicom"
        assert properties.metadata == {}

    def testSetMetadata(self, fsBackend, studyContainer):
        """Test metadata round trip keeping content type"""
        fsBackend.upload(studyContainer, "scan.dcm", b"data", "application/x-custom")

        fsBackend.setMetadata(studyContainer, "scan.dcm", {"meta": "patient=anonymous"})

        properties = fsBackend.getProperties(studyContainer, "scan.dcm")
        assert properties.metadata == {"meta": "patient=anonymous"}
        assert properties.contentType == "application/x-custom"

    def testSetMetadataMissing(self, fsBackend, studyContainer):
        """Test that setting metadata of missing object raises error"""
        with pytest.raises(StorageNotFoundError):
            fsBackend.setMetadata(studyContainer, "missing.dcm", {"meta": "value"})


class TestFSBackendDownload:
    """Test download operations, dood!"""

    def testDownload(self, fsBackend, studyContainer):
        """Test opening object for reading"""
        fsBackend.upload(studyContainer, "scan.dcm", b"content", "application/dicom")

        with fsBackend.download(studyContainer, "scan.dcm") as stream:
            assert stream.read() == b"content"

    def testDownloadTo(self, fsBackend, studyContainer):
        """Test copying object into stream"""
        fsBackend.upload(studyContainer, "scan.dcm", b"content", "application/dicom")
        destination = io.BytesIO()

        fsBackend.downloadTo(studyContainer, "scan.dcm", destination)

        assert destination.getvalue() == b"content"

    def testDownloadMissing(self, fsBackend, studyContainer):
        """Test that downloading missing object raises error"""
        with pytest.raises(StorageNotFoundError):
            fsBackend.download(studyContainer, "missing.dcm")
        with pytest.raises(StorageNotFoundError):
            fsBackend.downloadTo(studyContainer, "missing.dcm", io.BytesIO())

    def testDownloadDirectory(self, fsBackend, studyContainer):
        """Test that downloading directory raises not found"""
        fsBackend.upload(studyContainer, "series/scan.dcm", b"data", "application/dicom")

        with pytest.raises(StorageNotFoundError):
            fsBackend.download(studyContainer, "series")


class TestFSBackendDelete:
    """Test delete operations, dood!"""

    def testDelete(self, fsBackend, studyContainer, tempDir):
        """Test that object and its sidecar are deleted"""
        fsBackend.upload(studyContainer, "scan.dcm", b"data", "application/dicom")

        assert fsBackend.delete(studyContainer, "scan.dcm") is True
        assert fsBackend.objectExists(studyContainer, "scan.dcm") is False
        assert list((Path(tempDir) / "study").iterdir()) == []

    def testDeleteMissing(self, fsBackend, studyContainer):
        """Test that deleting missing object returns False"""
        assert fsBackend.delete(studyContainer, "missing.dcm") is False
        assert fsBackend.delete("missing", "missing.dcm") is False

    def testDeleteDirectory(self, fsBackend, studyContainer, tempDir):
        """Test that key naming a directory is absent and deleting it returns False"""
        fsBackend.upload(studyContainer, "series/scan.dcm", b"data", "application/dicom")

        assert fsBackend.objectExists(studyContainer, "series") is False
        assert fsBackend.delete(studyContainer, "series") is False
        assert (Path(tempDir) / "study" / "series" / "scan.dcm").is_file()


class TestFSBackendListing:
    """Test object listing, dood!"""

    def testListObjects(self, fsBackend, studyContainer):
        """Test that keys are listed sorted without service files"""
        for key in ["b.dcm", "a.dcm", "series/c.dcm"]:
            fsBackend.upload(studyContainer, key, b"data", "application/dicom")

        page = fsBackend.listObjects(studyContainer)

        assert page.keys == ["a.dcm", "b.dcm", "series/c.dcm"]
        assert page.nextPageToken is None

    def testListObjectsWithPrefix(self, fsBackend, studyContainer):
        """Test listing with prefix"""
        for key in ["frame1.png", "frame2.png", "scan.dcm"]:
            fsBackend.upload(studyContainer, key, b"data", "application/octet-stream")

        assert fsBackend.listObjects(studyContainer, prefix="frame").keys == ["frame1.png", "frame2.png"]

    def testListObjectsPaging(self, fsBackend, studyContainer):
        """Test that pages are linked with tokens"""
        keys = [f"frame{i:02d}.png" for i in range(5)]
        for key in keys:
            fsBackend.upload(studyContainer, key, b"data", "image/png")

        firstPage = fsBackend.listObjects(studyContainer, pageSize=2)
        secondPage = fsBackend.listObjects(studyContainer, pageToken=firstPage.nextPageToken, pageSize=2)
        lastPage = fsBackend.listObjects(studyContainer, pageToken=secondPage.nextPageToken, pageSize=2)

        assert firstPage.keys == keys[:2]
        assert secondPage.keys == keys[2:4]
        assert lastPage.keys == keys[4:]
        assert lastPage.nextPageToken is None

    def testListMissingContainer(self, fsBackend):
        """Test that listing missing container gives empty page"""
        page = fsBackend.listObjects("missing")

        assert page.keys == []
        assert page.nextPageToken is None

    def testObjectUri(self, fsBackend, tempDir):
        """Test that object URI is file URI"""
        uri = fsBackend.getObjectUri("study", "series/scan.dcm")

        assert uri == (Path(tempDir) / "study" / "series" / "scan.dcm").resolve().as_uri()
