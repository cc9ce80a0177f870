"""Tests for the resource fetchers."""

import gzip

import httpx
import pytest

from dumpfiles.application.domain import CompressionType
from dumpfiles.application.exceptions import (
    ConfigurationError,
    OfflineModeError,
    ReadFailureError,
    ResourceNotFoundError,
    WrongAccessorError,
)
from dumpfiles.infrastructure.fetchers import (
    HttpResourceFetcher,
    LocalResourceFetcher,
    OfflineResourceFetcher,
)
from dumpfiles.infrastructure.memory import InMemoryResourceFetcher

ALL_TYPES = list(CompressionType)


class TestInMemoryResourceFetcher:
    """Tests for the in-memory fetcher used as a test double."""

    @pytest.mark.parametrize("accessor", ["open_text", "open_gzip", "open_raw_bytes"])
    def test_unregistered_resource_is_not_found(self, accessor):
        """Test every accessor reports unknown resources as not found."""
        fetcher = InMemoryResourceFetcher()
        fetcher.set_resource("http://example.org/other", "x", CompressionType.GZIP)

        with pytest.raises(ResourceNotFoundError):
            getattr(fetcher, accessor)("http://example.org/missing")

    def test_text_accessor_refuses_compressed_resources(self):
        """Test open_text rejects anything not declared as plain text."""
        fetcher = InMemoryResourceFetcher()
        for compression in ALL_TYPES[1:]:
            fetcher.set_resource(f"url{compression.value}", "data", compression)
            with pytest.raises(WrongAccessorError):
                fetcher.open_text(f"url{compression.value}")
        assert fetcher.opened == []

    def test_gzip_accessor_refuses_other_resources(self):
        """Test open_gzip rejects plain and bz2 resources."""
        fetcher = InMemoryResourceFetcher()
        fetcher.set_resource("plain", "data")
        fetcher.set_resource("bz2", "data", CompressionType.BZ2)

        with pytest.raises(WrongAccessorError):
            fetcher.open_gzip("plain")
        with pytest.raises(WrongAccessorError):
            fetcher.open_gzip("bz2")

    def test_wrong_accessor_is_distinct_from_not_found(self):
        """Test the two open-time errors are not confused."""
        assert not issubclass(WrongAccessorError, ResourceNotFoundError)
        assert not issubclass(ResourceNotFoundError, WrongAccessorError)

    def test_matching_accessors_return_contents(self):
        """Test text and gzip resources read back as their contents."""
        fetcher = InMemoryResourceFetcher()
        fetcher.set_resource("page.html", "<html>listing</html>")
        fetcher.set_resource("dump.json.gz", "line 1\nline 2\n", CompressionType.GZIP)

        with fetcher.open_text("page.html") as stream:
            assert stream.read() == "<html>listing</html>"
        with fetcher.open_gzip("dump.json.gz") as stream:
            assert stream.readlines() == ["line 1\n", "line 2\n"]

    def test_raw_bytes_are_compressed_according_to_type(self):
        """Test raw access skips the type check and exposes encoded bytes."""
        fetcher = InMemoryResourceFetcher()
        fetcher.set_resource("dump.json.gz", "contents", CompressionType.GZIP)

        with fetcher.open_raw_bytes("dump.json.gz") as stream:
            assert gzip.decompress(stream.read()) == b"contents"

    @pytest.mark.parametrize("accessor", ["open_text", "open_gzip", "open_raw_bytes"])
    def test_failing_readers_fail_on_read_not_on_open(self, accessor):
        """Test simulated connection failures surface on the first read."""
        fetcher = InMemoryResourceFetcher()
        fetcher.set_resource("open_text", "data")
        fetcher.set_resource("open_gzip", "data", CompressionType.GZIP)
        fetcher.set_resource("open_raw_bytes", "data", CompressionType.BZ2)
        fetcher.set_return_failing_readers(True)

        stream = getattr(fetcher, accessor)(accessor)

        with pytest.raises(ReadFailureError):
            stream.read()
        stream.close()
        stream.close()

    def test_failing_readers_still_check_access(self):
        """Test not-found and wrong-accessor errors win over read failures."""
        fetcher = InMemoryResourceFetcher()
        fetcher.set_resource("dump.gz", "data", CompressionType.GZIP)
        fetcher.set_return_failing_readers(True)

        with pytest.raises(ResourceNotFoundError):
            fetcher.open_text("missing")
        with pytest.raises(WrongAccessorError):
            fetcher.open_text("dump.gz")


class TestLocalResourceFetcher:
    """Tests for the filesystem fetcher."""

    def test_missing_file_is_not_found(self, tmp_path):
        fetcher = LocalResourceFetcher()

        with pytest.raises(ResourceNotFoundError):
            fetcher.open_raw_bytes(str(tmp_path / "nothing.json.gz"))

    def test_declared_type_follows_suffix(self, tmp_path):
        """Test a .gz file can only be read as text through open_gzip."""
        path = tmp_path / "20150713.json.gz"
        path.write_bytes(gzip.compress(b'{"id": "Q1"}\n'))
        fetcher = LocalResourceFetcher()

        with pytest.raises(WrongAccessorError):
            fetcher.open_text(str(path))
        with fetcher.open_gzip(str(path)) as stream:
            assert stream.read() == '{"id": "Q1"}\n'

    def test_plain_file_reads_as_text(self, tmp_path):
        path = tmp_path / "md5sums.txt"
        path.write_text("abc  dump.xml.bz2\n")
        fetcher = LocalResourceFetcher()

        with fetcher.open_text(path) as stream:
            assert "dump.xml.bz2" in stream.read()

    def test_close_is_idempotent(self, tmp_path):
        path = tmp_path / "dump.json"
        path.write_bytes(b"[]")
        stream = LocalResourceFetcher().open_raw_bytes(str(path))

        stream.close()
        stream.close()
        assert stream.closed


class _FailingByteStream(httpx.SyncByteStream):
    """A response body whose connection drops after the first chunk."""

    def __iter__(self):
        yield b"first chunk"
        raise httpx.ReadError("connection reset")


@pytest.fixture
def http_log():
    return []


@pytest.fixture
def accept_encodings():
    return {}


@pytest.fixture
def http_fetcher(http_log, accept_encodings):
    """An HttpResourceFetcher over a mock transport."""

    def handler(request: httpx.Request) -> httpx.Response:
        http_log.append((request.method, request.url.path))
        path = request.url.path
        if request.method == "GET":
            accept_encodings[path] = request.headers.get("Accept-Encoding")
        if path == "/missing.json.gz":
            return httpx.Response(404)
        if path == "/broken.json.gz":
            if request.method == "HEAD":
                return httpx.Response(200)
            return httpx.Response(200, stream=_FailingByteStream())
        if path == "/dump.json.gz":
            return httpx.Response(200, content=gzip.compress(b"payload"))
        if path == "/listing/":
            return httpx.Response(200, content=b'<a href="20210301/">')
        if path == "/encoded/":
            return httpx.Response(
                200,
                headers={"Content-Encoding": "gzip"},
                content=gzip.compress(b'<a href="20210301/">20210301/</a>'),
            )
        return httpx.Response(500)

    client = httpx.Client(
        transport=httpx.MockTransport(handler),
        base_url="https://dumps.example.org",
    )
    return HttpResourceFetcher(
        client, user_agent="dumpfiles-tests/1.0 (tests@example.org)",
        timeout=5, chunk_size=4,
    )


class TestHttpResourceFetcher:
    """Tests for the HTTP fetcher."""

    def test_placeholder_user_agent_is_rejected(self):
        with pytest.raises(ConfigurationError):
            HttpResourceFetcher(
                httpx.Client(), user_agent="YOUR_USER_AGENT",
                timeout=5, chunk_size=1024,
            )

    def test_missing_resource_is_not_found(self, http_fetcher):
        with pytest.raises(ResourceNotFoundError):
            http_fetcher.open_gzip("https://dumps.example.org/missing.json.gz")

    def test_server_error_is_not_found(self, http_fetcher):
        with pytest.raises(ResourceNotFoundError):
            http_fetcher.open_text("https://dumps.example.org/unknown/")

    def test_gzip_resource_refuses_text_accessor(self, http_fetcher, http_log):
        """Test the suffix gate fires before any content is requested."""
        with pytest.raises(WrongAccessorError):
            http_fetcher.open_text("https://dumps.example.org/dump.json.gz")
        assert ("GET", "/dump.json.gz") not in http_log

    def test_content_is_requested_lazily(self, http_fetcher, http_log):
        """Test open only checks existence; the GET happens on first read."""
        stream = http_fetcher.open_gzip("https://dumps.example.org/dump.json.gz")
        assert http_log == [("HEAD", "/dump.json.gz")]

        with stream:
            assert stream.read() == "payload"
        assert ("GET", "/dump.json.gz") in http_log

    def test_listing_reads_as_text(self, http_fetcher):
        with http_fetcher.open_text("https://dumps.example.org/listing/") as stream:
            assert "20210301" in stream.read()

    def test_content_encoded_listing_reads_as_text(self, http_fetcher):
        """Test a listing gzipped in transit by the server is decoded."""
        with http_fetcher.open_text("https://dumps.example.org/encoded/") as stream:
            assert stream.read() == '<a href="20210301/">20210301/</a>'

    def test_payloads_are_requested_without_content_encoding(
        self, http_fetcher, accept_encodings
    ):
        """Test dump payloads ask for the bytes exactly as stored."""
        with http_fetcher.open_gzip("https://dumps.example.org/dump.json.gz") as stream:
            assert stream.read() == "payload"
        with http_fetcher.open_text("https://dumps.example.org/listing/") as stream:
            stream.read()

        assert accept_encodings["/dump.json.gz"] == "identity"
        assert accept_encodings["/listing/"] != "identity"

    def test_dropped_connection_is_read_failure(self, http_fetcher):
        stream = http_fetcher.open_raw_bytes(
            "https://dumps.example.org/broken.json.gz"
        )

        with pytest.raises(ReadFailureError):
            stream.read()
        stream.close()
        stream.close()


class TestOfflineResourceFetcher:

    def test_every_access_is_refused(self):
        fetcher = OfflineResourceFetcher()

        for accessor in (fetcher.open_text, fetcher.open_gzip, fetcher.open_raw_bytes):
            with pytest.raises(OfflineModeError):
                accessor("https://dumps.example.org/")
