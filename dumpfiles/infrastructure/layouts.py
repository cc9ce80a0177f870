"""
Naming conventions of dump files, on the Wikimedia dump server and on disk.

The listing and file-name formats are conventions of the archive host. They
live here, behind the DumpLayout and LocalNamingConvention ports, so that a
mirror with a different layout only needs another adapter.
"""

import datetime
import re
from typing import Dict, List, Mapping, Optional, Pattern, Tuple

from ..application.domain import (
    CompressionType,
    DumpContentType,
    DumpLayout,
    LocalNamingConvention,
)

DEFAULT_BASE_URL = "https://dumps.wikimedia.org"

# Date directories as they appear in an Apache/nginx directory index.
DEFAULT_DATE_PATTERN = re.compile(r'href="(\d{8})/?"')

_XML_FILE_KINDS = {
    DumpContentType.CURRENT: "pages-meta-current",
    DumpContentType.FULL: "pages-meta-history",
}


def parse_date_stamp(stamp: str) -> Optional[datetime.date]:
    """Parses a YYYYMMDD stamp, returning None for impossible dates."""
    try:
        return datetime.datetime.strptime(stamp, "%Y%m%d").date()
    except ValueError:
        return None


class WmfDumpLayout(DumpLayout):
    """Shared behaviour of the Wikimedia layouts: date directory listings."""

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        date_pattern: Pattern = DEFAULT_DATE_PATTERN,
    ):
        self.base_url = base_url.rstrip("/")
        self.date_pattern = date_pattern

    def extract_dates(self, listing: str) -> List[datetime.date]:
        dates = {
            parse_date_stamp(stamp)
            for stamp in self.date_pattern.findall(listing)
        }
        dates.discard(None)
        return sorted(dates, reverse=True)


class WmfJsonDumpLayout(WmfDumpLayout):
    """
    JSON entity dumps, published as
    other/wikibase/<project>/<date>/<short>-<date>-all.json.gz, where <short>
    is the project name without its trailing "wiki" (wikidatawiki → wikidata).
    The date directory index serves as the probe.
    """

    content_type = DumpContentType.JSON
    compression = CompressionType.GZIP

    def listing_url(self, project_name: str) -> str:
        return f"{self.base_url}/other/wikibase/{project_name}/"

    def probe_url(self, project_name: str, date: datetime.date) -> str:
        return f"{self.listing_url(project_name)}{date:%Y%m%d}/"

    def dump_file_name(self, project_name: str, date: datetime.date) -> str:
        short_name = project_name
        if short_name.endswith("wiki") and len(short_name) > len("wiki"):
            short_name = short_name[: -len("wiki")]
        return f"{short_name}-{date:%Y%m%d}-all.json{self.compression.value}"

    def dump_url(self, project_name: str, date: datetime.date) -> str:
        return self.probe_url(project_name, date) + self.dump_file_name(
            project_name, date
        )


class WmfXmlDumpLayout(WmfDumpLayout):
    """
    XML revision dumps, published as
    <project>/<date>/<project>-<date>-<kind>.xml.bz2. A dump counts as
    available once it is listed in the md5sums file of its run, which is
    only written for completed jobs.
    """

    compression = CompressionType.BZ2

    def __init__(
        self,
        content_type: DumpContentType,
        base_url: str = DEFAULT_BASE_URL,
        date_pattern: Pattern = DEFAULT_DATE_PATTERN,
    ):
        if content_type not in _XML_FILE_KINDS:
            raise ValueError(f"Not an XML content type: {content_type}")
        super().__init__(base_url, date_pattern)
        self.content_type = content_type

    def listing_url(self, project_name: str) -> str:
        return f"{self.base_url}/{project_name}/"

    def probe_url(self, project_name: str, date: datetime.date) -> str:
        return (
            f"{self.listing_url(project_name)}{date:%Y%m%d}/"
            f"{project_name}-{date:%Y%m%d}-md5sums.txt"
        )

    def dump_file_name(self, project_name: str, date: datetime.date) -> str:
        kind = _XML_FILE_KINDS[self.content_type]
        return (
            f"{project_name}-{date:%Y%m%d}-{kind}.xml{self.compression.value}"
        )

    def dump_url(self, project_name: str, date: datetime.date) -> str:
        return (
            f"{self.listing_url(project_name)}{date:%Y%m%d}/"
            f"{self.dump_file_name(project_name, date)}"
        )


def default_layouts(
    base_url: str = DEFAULT_BASE_URL,
) -> Dict[DumpContentType, DumpLayout]:
    """Returns the Wikimedia layout for each content type."""
    return {
        DumpContentType.JSON: WmfJsonDumpLayout(base_url),
        DumpContentType.CURRENT: WmfXmlDumpLayout(
            DumpContentType.CURRENT, base_url
        ),
        DumpContentType.FULL: WmfXmlDumpLayout(DumpContentType.FULL, base_url),
    }


_COMPRESSION_SUFFIX = r"(?P<suffix>\.gz|\.bz2|\.zst)?"

DEFAULT_LOCAL_PATTERNS: Mapping[DumpContentType, Pattern] = {
    # wikidata-20150713-all.json.gz, or just 20150713.json.gz
    DumpContentType.JSON: re.compile(
        r"^(?:[\w.-]+-)?(?P<date>\d{8})(?:-all)?\.json" + _COMPRESSION_SUFFIX + "$"
    ),
    DumpContentType.CURRENT: re.compile(
        r"^(?:[\w.-]+-)?(?P<date>\d{8})-pages-meta-current\.xml"
        + _COMPRESSION_SUFFIX + "$"
    ),
    DumpContentType.FULL: re.compile(
        r"^(?:[\w.-]+-)?(?P<date>\d{8})-pages-meta-history\.xml"
        + _COMPRESSION_SUFFIX + "$"
    ),
}


class LocalDumpConvention(LocalNamingConvention):
    """
    Recognizes dump files by regular expressions with a "date" group
    (YYYYMMDD) and an optional "suffix" group (compression suffix).
    """

    def __init__(
        self, patterns: Mapping[DumpContentType, Pattern] = DEFAULT_LOCAL_PATTERNS
    ):
        self.patterns = dict(patterns)

    def match(
        self, file_name: str, content_type: DumpContentType
    ) -> Optional[Tuple[datetime.date, CompressionType]]:
        pattern = self.patterns.get(content_type)
        matched = pattern.match(file_name) if pattern else None
        if not matched:
            return None
        date = parse_date_stamp(matched.group("date"))
        if date is None:
            return None
        suffix = matched.groupdict().get("suffix") or ""
        return date, CompressionType.for_suffix(suffix)
