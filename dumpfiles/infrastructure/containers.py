"""
Dependency Injection container for the dumpfiles component.

This container uses the `dependency-injector` library to wire together all
the components of the application, such as the controller, discovery and
infrastructure adapters, based on the application's configuration.
"""

from pathlib import Path
from typing import Optional

from dependency_injector import containers, providers
import httpx

from ..application.controller import DumpProcessingController
from ..application.discovery import DumpFileManager
from ..settings import settings

from .decompression import open_decompressed
from .decorators import retrying_on_read_failure
from .fetchers import (
    HttpResourceFetcher,
    LocalResourceFetcher,
    OfflineResourceFetcher,
)
from .layouts import LocalDumpConvention, default_layouts
from .parsers import default_parsers


def _override(cli_value, configured):
    """Prefers a value given on the command line over the configured one."""
    return configured if cli_value is None else cli_value


def _fetcher_mode(offline: bool) -> str:
    return "offline" if offline else "online"


def _dump_dir(cli_value: Optional[str], configured: Optional[str]):
    value = _override(cli_value, configured)
    return Path(value).expanduser() if value else None


class Container(containers.DeclarativeContainer):
    """DI container for wiring the application components."""

    cli_args = providers.Configuration()

    config = providers.Object(settings)

    options = config.provided.dumpfiles

    offline = providers.Callable(_override, cli_args.offline, options.offline)

    show_progress = providers.Callable(
        _override, cli_args.progress, options.show_progress
    )

    local_dump_dir = providers.Callable(
        _dump_dir, cli_args.dump_dir, options.local_dump_dir
    )

    http_client = providers.Singleton(
        httpx.Client,
        timeout=options.timeout,
        follow_redirects=True,
    )

    http_fetcher = providers.Factory(
        HttpResourceFetcher,
        client=http_client,
        user_agent=options.user_agent,
        timeout=options.timeout,
        chunk_size=options.chunk_size,
    )

    web_fetcher = providers.Selector(
        providers.Callable(_fetcher_mode, offline),
        online=http_fetcher,
        offline=providers.Factory(OfflineResourceFetcher),
    )

    local_fetcher = providers.Factory(
        LocalResourceFetcher,
        chunk_size=options.chunk_size,
    )

    retrying = providers.Factory(
        retrying_on_read_failure,
        attempts=options.retry.attempts,
        min_wait=options.retry.min_wait,
        max_wait=options.retry.max_wait,
    )

    dump_file_manager = providers.Factory(
        DumpFileManager,
        project_name=options.project_name,
        web_fetcher=web_fetcher,
        layouts=providers.Callable(default_layouts, options.base_url),
        local_convention=providers.Factory(LocalDumpConvention),
        local_dump_dir=local_dump_dir,
        retrying=retrying,
    )

    controller = providers.Factory(
        DumpProcessingController,
        project_name=options.project_name,
        dump_file_manager=dump_file_manager,
        web_fetcher=web_fetcher,
        local_fetcher=local_fetcher,
        parsers=providers.Callable(default_parsers),
        decompress=providers.Object(open_decompressed),
        offline=offline,
        skip_corrupt_records=options.skip_corrupt_records,
        isolate_consumer_failures=options.isolate_consumer_failures,
        show_progress=show_progress,
        max_reported_errors=options.max_reported_errors,
    )
