"""Network and filesystem implementations of the ResourceFetcher port."""

import io
import logging
import os
from abc import abstractmethod
from pathlib import Path
from typing import BinaryIO, Iterator, Optional, TextIO

import httpx

from ..application.domain import CompressionType, ResourceFetcher
from ..application.exceptions import (
    OfflineModeError,
    ReadFailureError,
    ResourceNotFoundError,
    WrongAccessorError,
)

from .base_client import BaseClient
from .decompression import open_decompressed_text


class BaseResourceFetcher(ResourceFetcher):
    """
    Shared accessor logic: existence check, then content-type gate, then a
    (possibly lazy) stream. Subclasses only know about transport.
    """

    def __init__(self):
        self.logger = logging.getLogger(self.__class__.__name__)

    @abstractmethod
    def _declared_type(self, locator: str) -> CompressionType:
        """Returns the declared type, raising ResourceNotFoundError if absent."""
        pass

    @abstractmethod
    def _open_stream(self, locator: str, text: bool = False) -> BinaryIO:
        """
        Returns the byte stream of a resource known to exist. Payloads are
        passed through undecoded unless the stream is for a text accessor.
        """
        pass

    def _check_accessor(self, locator: str, expected: CompressionType):
        declared = self._declared_type(locator)
        if declared is not expected:
            raise WrongAccessorError(locator, declared.label, expected.label)

    def open_text(self, locator: str) -> TextIO:
        self._check_accessor(locator, CompressionType.NONE)
        self.logger.debug(f"Opening text resource {locator}")
        return io.TextIOWrapper(
            self._open_stream(locator, text=True), encoding="utf-8"
        )

    def open_gzip(self, locator: str) -> TextIO:
        self._check_accessor(locator, CompressionType.GZIP)
        self.logger.debug(f"Opening gzip resource {locator}")
        return open_decompressed_text(
            self._open_stream(locator), CompressionType.GZIP
        )

    def open_raw_bytes(self, locator: str) -> BinaryIO:
        self._declared_type(locator)
        self.logger.debug(f"Opening raw resource {locator}")
        return self._open_stream(locator)


# --- Network ---

class _ResponseStream(io.RawIOBase):
    """
    A raw stream over an HTTP GET that is only sent on the first read.

    Payload streams ask for the identity encoding and yield the bytes as
    served. Content-decoded streams accept any Content-Encoding the client
    supports and yield the decoded bytes, as text accessors need.

    Any failure of the request or of the connection while streaming is
    reported as ReadFailureError.
    """

    def __init__(
        self,
        client: httpx.Client,
        url: str,
        headers: dict,
        timeout: float,
        chunk_size: int,
        content_decoded: bool = False,
    ):
        self._client = client
        self._url = url
        self._headers = dict(headers)
        if not content_decoded:
            self._headers["Accept-Encoding"] = "identity"
        self._timeout = timeout
        self._chunk_size = chunk_size
        self._content_decoded = content_decoded
        self._response: Optional[httpx.Response] = None
        self._chunks: Optional[Iterator[bytes]] = None
        self._pending = b""

    def readable(self) -> bool:
        return True

    def _start(self):
        request = self._client.build_request(
            "GET", self._url, headers=self._headers, timeout=self._timeout
        )
        try:
            self._response = self._client.send(request, stream=True)
            self._response.raise_for_status()
        except httpx.HTTPError as e:
            if self._response is not None:
                self._response.close()
            raise ReadFailureError(
                self._url, f"request failed ({type(e).__name__})"
            ) from e
        if self._content_decoded:
            self._chunks = self._response.iter_bytes(self._chunk_size)
        else:
            # Compressed dump payloads must reach our own decoders untouched.
            self._chunks = self._response.iter_raw(self._chunk_size)

    def readinto(self, buffer) -> int:
        if self.closed:
            raise ValueError("I/O operation on closed stream")
        if self._chunks is None:
            self._start()
        while not self._pending:
            try:
                self._pending = next(self._chunks)
            except StopIteration:
                return 0
            except httpx.HTTPError as e:
                raise ReadFailureError(
                    self._url, f"connection failed ({type(e).__name__})"
                ) from e
        size = min(len(buffer), len(self._pending))
        buffer[:size] = self._pending[:size]
        self._pending = self._pending[size:]
        return size

    def close(self):
        if self._response is not None:
            self._response.close()
        super().close()


class OfflineResourceFetcher(ResourceFetcher):
    """Takes the place of the network fetcher in offline mode."""

    is_network = True

    def _refuse(self, locator: str):
        raise OfflineModeError(
            f"Network access to {locator} is disabled in offline mode."
        )

    def open_text(self, locator: str) -> TextIO:
        self._refuse(locator)

    def open_gzip(self, locator: str) -> TextIO:
        self._refuse(locator)

    def open_raw_bytes(self, locator: str) -> BinaryIO:
        self._refuse(locator)


class HttpResourceFetcher(BaseClient, BaseResourceFetcher):
    """A fetcher for resources published on a web server."""

    is_network = True

    def __init__(
        self,
        client: httpx.Client,
        user_agent: str,
        timeout: float,
        chunk_size: int,
    ):
        """Initializes the fetcher adapter."""
        super().__init__(client, user_agent)
        self.timeout = timeout
        self.chunk_size = chunk_size

    def _declared_type(self, locator: str) -> CompressionType:
        """Confirms the resource is reachable with a HEAD request."""
        try:
            response = self.client.head(
                locator,
                headers=self.headers,
                timeout=self.timeout,
                follow_redirects=True,
            )
        except httpx.TransportError as e:
            raise ResourceNotFoundError(
                locator, f"unreachable ({type(e).__name__})"
            ) from e
        if response.is_error:
            raise ResourceNotFoundError(
                locator, f"HTTP {response.status_code}"
            )
        return CompressionType.for_locator(locator)

    def _open_stream(self, locator: str, text: bool = False) -> BinaryIO:
        return io.BufferedReader(
            _ResponseStream(
                self.client,
                locator,
                self.headers,
                self.timeout,
                self.chunk_size,
                content_decoded=text,
            ),
            buffer_size=self.chunk_size,
        )


# --- Filesystem ---

class _FileStream(io.RawIOBase):
    """A raw file stream reporting OS read errors as ReadFailureError."""

    def __init__(self, path: Path, file: BinaryIO):
        self._path = path
        self._file = file

    def readable(self) -> bool:
        return True

    def readinto(self, buffer) -> int:
        try:
            return self._file.readinto(buffer)
        except OSError as e:
            raise ReadFailureError(str(self._path), f"read failed ({e})") from e

    def close(self):
        if not self.closed:
            self._file.close()
        super().close()


class LocalResourceFetcher(BaseResourceFetcher):
    """A fetcher for files on local disk. Locators are filesystem paths."""

    is_network = False

    def __init__(self, chunk_size: int = 1024 * 1024):
        super().__init__()
        self.chunk_size = chunk_size

    def _declared_type(self, locator: str) -> CompressionType:
        path = Path(os.fspath(locator))
        if not path.is_file():
            raise ResourceNotFoundError(str(path), "no such file")
        return CompressionType.for_suffix(path.suffix)

    def _open_stream(self, locator: str, text: bool = False) -> BinaryIO:
        path = Path(os.fspath(locator))
        try:
            file = open(path, "rb", buffering=0)
        except OSError as e:
            raise ResourceNotFoundError(str(path), f"cannot open ({e})") from e
        return io.BufferedReader(
            _FileStream(path, file), buffer_size=self.chunk_size
        )
