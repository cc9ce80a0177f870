"""Pytest configuration and fixtures."""

import pytest

from dumpfiles.application.controller import DumpProcessingController
from dumpfiles.application.discovery import DumpFileManager
from dumpfiles.infrastructure.decompression import open_decompressed
from dumpfiles.infrastructure.fetchers import LocalResourceFetcher
from dumpfiles.infrastructure.layouts import LocalDumpConvention, default_layouts
from dumpfiles.infrastructure.memory import InMemoryResourceFetcher
from dumpfiles.infrastructure.parsers import default_parsers

from tests.dump_samples import BASE_URL, PROJECT, FakeArchive


@pytest.fixture
def web_fetcher():
    """In-memory stand-in for the network."""
    return InMemoryResourceFetcher()


@pytest.fixture
def archive(web_fetcher):
    return FakeArchive(web_fetcher)


@pytest.fixture
def dump_dir(tmp_path):
    path = tmp_path / "dumps"
    path.mkdir()
    return path


@pytest.fixture
def make_manager(web_fetcher, dump_dir):
    """Builds a DumpFileManager over the fake archive and a local directory."""

    def _make(fetcher=None, local_dump_dir=dump_dir, retrying=None):
        return DumpFileManager(
            project_name=PROJECT,
            web_fetcher=fetcher or web_fetcher,
            layouts=default_layouts(BASE_URL),
            local_convention=LocalDumpConvention(),
            local_dump_dir=local_dump_dir,
            retrying=retrying,
        )

    return _make


@pytest.fixture
def make_controller(web_fetcher, make_manager):
    """Builds a DumpProcessingController wired like the container does."""

    def _make(fetcher=None, **kwargs):
        fetcher = fetcher or web_fetcher
        return DumpProcessingController(
            project_name=PROJECT,
            dump_file_manager=make_manager(fetcher=fetcher),
            web_fetcher=fetcher,
            local_fetcher=LocalResourceFetcher(),
            parsers=default_parsers(),
            decompress=open_decompressed,
            **kwargs,
        )

    return _make
