"""
Discovery and selection of dumps, online and on local disk.

Discovery only confirms that dumps exist; it never opens their contents, so
choosing among very large files stays cheap.
"""

import datetime
import logging
from pathlib import Path
from typing import (
    Callable,
    Dict,
    Iterable,
    Iterator,
    List,
    Mapping,
    Optional,
)

from .domain import (
    CompressionType,
    DumpContentType,
    DumpDescriptor,
    DumpLayout,
    LocalNamingConvention,
    ResourceFetcher,
)
from .exceptions import (
    ConfigurationError,
    NoDumpAvailableError,
    ResourceNotFoundError,
)


def _call_directly(fn, *args, **kwargs):
    return fn(*args, **kwargs)


class DumpFileManager:
    """Finds the dumps available for a project and selects among them."""

    def __init__(
        self,
        project_name: str,
        web_fetcher: ResourceFetcher,
        layouts: Mapping[DumpContentType, DumpLayout],
        local_convention: LocalNamingConvention,
        local_dump_dir: Optional[Path] = None,
        retrying: Optional[Callable] = None,
    ):
        """
        Initializes the manager.

        Args:
            project_name: The database name of the project, e.g. wikidatawiki.
            web_fetcher: Fetcher used for listings and probes when online.
            layouts: How the archive host publishes each content type.
            local_convention: How dump files on local disk are named.
            local_dump_dir: Directory searched recursively for local dumps.
            retrying: Callable wrapping reads of listings and probes,
                      typically a tenacity Retrying object.
        """
        self.logger = logging.getLogger(self.__class__.__name__)
        self.project_name = project_name
        self.web_fetcher = web_fetcher
        self.layouts = dict(layouts)
        self.local_convention = local_convention
        self.local_dump_dir = Path(local_dump_dir) if local_dump_dir else None
        self.retrying = retrying or _call_directly

    # --- Local dumps ---

    def describe_local_file(
        self, path: Path, content_type: Optional[DumpContentType] = None
    ) -> DumpDescriptor:
        """
        Builds a descriptor for an explicitly given local file.

        The content type, date and compression are read from the file name.
        A file name that does not follow the naming convention is accepted
        when the content type is given; its date is then the modification
        date of the file.

        Raises:
            ResourceNotFoundError: If the file does not exist.
            ConfigurationError: If the content type can neither be inferred
                                nor was given.
        """
        path = Path(path)
        if not path.is_file():
            raise ResourceNotFoundError(str(path), "no such dump file")

        if content_type is None:
            identified = self.local_convention.identify(path.name)
            if identified is None:
                raise ConfigurationError(
                    f"Cannot infer the content type of {path.name}; "
                    f"please specify it explicitly."
                )
            content_type, date, compression = identified
        else:
            matched = self.local_convention.match(path.name, content_type)
            if matched:
                date, compression = matched
            else:
                date = datetime.date.fromtimestamp(path.stat().st_mtime)
                compression = CompressionType.for_suffix(path.suffix)
                self.logger.warning(
                    f"{path.name} does not follow the dump naming convention; "
                    f"assuming {content_type.value} dump of {date}."
                )

        return DumpDescriptor(
            content_type=content_type,
            publication_date=date,
            compression=compression,
            locator=str(path),
            project_name=self.project_name,
        )

    def find_local_dumps(
        self,
        content_type: DumpContentType,
        paths: Optional[Iterable[Path]] = None,
    ) -> List[DumpDescriptor]:
        """
        Lists local dumps of a content type, newest first.

        Args:
            content_type: The content type to look for.
            paths: Explicit candidate files; defaults to every file below
                   the local dump directory.
        """

        if paths is None:
            if self.local_dump_dir is None:
                return []
            if not self.local_dump_dir.is_dir():
                self.logger.info(
                    f"Local dump directory {self.local_dump_dir} does not exist."
                )
                return []
            paths = sorted(self.local_dump_dir.rglob("*"))

        found: Dict[DumpDescriptor, DumpDescriptor] = {}
        for path in map(Path, paths):
            matched = self.local_convention.match(path.name, content_type)
            if not matched or not path.is_file():
                continue
            date, compression = matched
            descriptor = DumpDescriptor(
                content_type=content_type,
                publication_date=date,
                compression=compression,
                locator=str(path),
                project_name=self.project_name,
            )
            found.setdefault(descriptor, descriptor)

        dumps = sorted(
            found.values(), key=lambda d: d.publication_date, reverse=True
        )
        self.logger.debug(
            f"Found {len(dumps)} local {content_type.value} dumps."
        )
        return dumps

    # --- Online dumps ---

    def _layout(self, content_type: DumpContentType) -> DumpLayout:
        try:
            return self.layouts[content_type]
        except KeyError:
            raise ConfigurationError(
                f"No online layout configured for {content_type.value} dumps."
            ) from None

    def _read_text(self, url: str) -> str:
        """Reads a small text resource, retrying failed reads."""

        def _read():
            with self.web_fetcher.open_text(url) as stream:
                return stream.read()

        return self.retrying(_read)

    def _probe(self, layout: DumpLayout, date: datetime.date) -> bool:
        url = layout.probe_url(self.project_name, date)
        try:
            probe = self._read_text(url)
        except ResourceNotFoundError as e:
            self.logger.debug(f"No dump for {date}: {e}")
            return False
        available = layout.is_available(probe, self.project_name, date)
        if not available:
            self.logger.debug(f"Dump for {date} is not (yet) available.")
        return available

    def _iter_online_dumps(
        self,
        content_type: DumpContentType,
        newer_than: Optional[datetime.date] = None,
    ) -> Iterator[DumpDescriptor]:
        """Yields the available online dumps newest first, probing lazily."""

        layout = self._layout(content_type)
        listing_url = layout.listing_url(self.project_name)
        try:
            listing = self._read_text(listing_url)
        except ResourceNotFoundError as e:
            self.logger.warning(f"Dump listing is unavailable: {e}")
            return

        dates = sorted(layout.extract_dates(listing), reverse=True)
        self.logger.info(
            f"Listing {listing_url} mentions {len(dates)} dump dates."
        )
        for date in dates:
            if newer_than is not None and date <= newer_than:
                return
            if self._probe(layout, date):
                yield DumpDescriptor(
                    content_type=content_type,
                    publication_date=date,
                    compression=layout.compression,
                    locator=layout.dump_url(self.project_name, date),
                    project_name=self.project_name,
                )

    def find_online_dumps(
        self, content_type: DumpContentType
    ) -> List[DumpDescriptor]:
        """Lists every available online dump of a content type, newest first."""
        return list(self._iter_online_dumps(content_type))

    # --- Selection ---

    def find_dumps(
        self, content_type: DumpContentType, offline: bool = False
    ) -> List[DumpDescriptor]:
        """
        Lists every usable dump, newest first. A local copy replaces the
        online dump of the same date.

        Raises:
            NoDumpAvailableError: If no dump could be found at all.
        """

        merged: Dict[DumpDescriptor, DumpDescriptor] = {}
        for dump in self.find_local_dumps(content_type):
            merged.setdefault(dump, dump)
        if not offline:
            for dump in self._iter_online_dumps(content_type):
                merged.setdefault(dump, dump)

        if not merged:
            raise NoDumpAvailableError(content_type, self._search_scope(offline))
        return sorted(
            merged.values(), key=lambda d: d.publication_date, reverse=True
        )

    def find_most_recent_dump(
        self, content_type: DumpContentType, offline: bool = False
    ) -> DumpDescriptor:
        """
        Selects the most recent usable dump of a content type.

        Online, probing stops at the newest date that has a dump, and only
        dates newer than the newest local dump are probed at all. Offline,
        only local dumps are considered and the network is never touched.

        Raises:
            NoDumpAvailableError: If no dump could be found.
        """

        local_dumps = self.find_local_dumps(content_type)
        newest_local = local_dumps[0] if local_dumps else None

        if not offline:
            newer_than = newest_local.publication_date if newest_local else None
            for dump in self._iter_online_dumps(content_type, newer_than):
                self.logger.info(f"Selected online {dump}")
                return dump

        if newest_local is None:
            raise NoDumpAvailableError(content_type, self._search_scope(offline))
        self.logger.info(f"Selected local {newest_local}")
        return newest_local

    def _search_scope(self, offline: bool) -> str:
        where = f"local directory {self.local_dump_dir}"
        if self.local_dump_dir is None:
            where = "no local directory"
        return f"offline, {where}" if offline else f"online and {where}"
