"""Common type definitions used across the storage application."""

import os
from typing import BinaryIO, Union

UploadPayload = Union[bytes, bytearray, memoryview, BinaryIO, str, os.PathLike]
"""
Payload accepted by upload operations:
bytes-like buffer, binary stream or path to a local file
"""
