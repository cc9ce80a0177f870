"""
Streaming decompression of raw resource streams.

The decoders wrap the source incrementally; nothing here ever holds the whole
decompressed output in memory.
"""

import bz2
import gzip
import io
import zlib
from typing import BinaryIO

import zstandard

from ..application.domain import CompressionType

# Errors raised by the decoders (or text decoding) for malformed input. Read
# failures of the underlying transport surface as ReadFailureError instead.
DECODER_ERRORS = (
    EOFError,
    OSError,
    zlib.error,
    zstandard.ZstdError,
    UnicodeDecodeError,
)

_READ_BUFFER_SIZE = 1024 * 1024


class _DecodedStream(io.RawIOBase):
    """Raw stream over a decoder that also owns the decoder's source."""

    def __init__(self, decoder, source: BinaryIO):
        self._decoder = decoder
        self._source = source

    def readable(self) -> bool:
        return True

    def readinto(self, buffer) -> int:
        return self._decoder.readinto(buffer)

    def close(self):
        if self.closed:
            return
        try:
            self._decoder.close()
        finally:
            try:
                self._source.close()
            finally:
                super().close()


def _make_decoder(raw: BinaryIO, compression: CompressionType):
    if compression is CompressionType.GZIP:
        return gzip.GzipFile(fileobj=raw, mode="rb")
    if compression is CompressionType.BZ2:
        return bz2.BZ2File(raw, mode="rb")
    if compression is CompressionType.ZSTD:
        decompressor = zstandard.ZstdDecompressor()
        return decompressor.stream_reader(raw, closefd=False)
    raise ValueError(f"Unsupported compression: {compression}")


def open_decompressed(raw: BinaryIO, compression: CompressionType) -> BinaryIO:
    """
    Wraps a raw byte stream with the decoder implied by its compression.

    Closing the returned stream closes the raw stream too, and closing it
    more than once is harmless.

    Args:
        raw: The undecoded stream, as returned by a resource fetcher.
        compression: The compression of the resource.

    Returns:
        A buffered binary stream yielding the decompressed bytes.
    """

    if compression is CompressionType.NONE:
        return raw
    decoder = _make_decoder(raw, compression)
    return io.BufferedReader(
        _DecodedStream(decoder, raw), buffer_size=_READ_BUFFER_SIZE
    )


def open_decompressed_text(
    raw: BinaryIO, compression: CompressionType, encoding: str = "utf-8"
) -> io.TextIOWrapper:
    """Like open_decompressed, but decodes the result as text."""
    return io.TextIOWrapper(
        open_decompressed(raw, compression), encoding=encoding
    )
