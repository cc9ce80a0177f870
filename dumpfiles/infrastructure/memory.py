"""In-memory implementation of the ResourceFetcher port, for tests and demos."""

import bz2
import gzip
import io
from typing import BinaryIO, Dict, List, Tuple

import zstandard

from ..application.domain import CompressionType
from ..application.exceptions import ReadFailureError, ResourceNotFoundError

from .fetchers import BaseResourceFetcher


class _FailingStream(io.RawIOBase):
    """A stream that opens fine but fails on the first read."""

    def __init__(self, locator: str):
        self._locator = locator

    def readable(self) -> bool:
        return True

    def readinto(self, buffer) -> int:
        raise ReadFailureError(self._locator, "simulated connection failure")


def _compress(data: bytes, compression: CompressionType) -> bytes:
    if compression is CompressionType.GZIP:
        return gzip.compress(data)
    if compression is CompressionType.BZ2:
        return bz2.compress(data)
    if compression is CompressionType.ZSTD:
        return zstandard.ZstdCompressor().compress(data)
    return data


class InMemoryResourceFetcher(BaseResourceFetcher):
    """
    A fetcher serving resources registered in memory.

    The declared type of a resource decides which accessors may open it:
    contents registered as GZIP can only be read through open_gzip (or as raw
    bytes), contents registered as NONE only through open_text, and so on.
    Unregistered locators are reported as not found by every accessor.
    """

    def __init__(self, is_network: bool = True):
        super().__init__()
        self.is_network = is_network
        self.resources: Dict[str, Tuple[bytes, CompressionType]] = {}
        self.opened: List[str] = []
        self.return_failing_readers = False

    def set_return_failing_readers(self, return_failing_readers: bool):
        """
        When enabled, every stream handed out fails when read, simulating a
        connection that drops after the resource was opened.
        """
        self.return_failing_readers = return_failing_readers

    def set_resource(
        self,
        locator: str,
        contents: str,
        compression: CompressionType = CompressionType.NONE,
    ):
        """
        Defines a resource from a string. The contents are compressed
        according to the declared type so that raw reads yield real
        compressed bytes.
        """
        self.set_resource_bytes(
            locator, _compress(contents.encode("utf-8"), compression),
            compression,
        )

    def set_resource_bytes(
        self, locator: str, data: bytes, compression: CompressionType
    ):
        """Defines a resource from bytes that are already encoded."""
        self.resources[locator] = (data, compression)

    def _declared_type(self, locator: str) -> CompressionType:
        if locator not in self.resources:
            raise ResourceNotFoundError(locator, "inaccessible (not mocked)")
        return self.resources[locator][1]

    def _open_stream(self, locator: str, text: bool = False) -> BinaryIO:
        self.opened.append(locator)
        if self.return_failing_readers:
            return io.BufferedReader(_FailingStream(locator))
        return io.BytesIO(self.resources[locator][0])
