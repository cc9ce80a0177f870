"""
This module defines the core domain models for the application.

These classes represent the pure, technology-agnostic entities and data
structures that the application's business logic operates on, together with
the ports (interfaces) that infrastructure adapters implement.
"""

import dataclasses
import datetime
import enum
from abc import ABC, abstractmethod
from pathlib import PurePosixPath
from typing import (
    Any,
    BinaryIO,
    Callable,
    Iterator,
    List,
    Mapping,
    Optional,
    TextIO,
    Tuple,
    Union,
)
from urllib.parse import urlsplit


# --- Enumerations ---

class DumpContentType(enum.Enum):
    """The logical encoding of a dump's records, independent of compression."""

    JSON = "json"
    CURRENT = "current"
    FULL = "full"

    @property
    def is_xml(self) -> bool:
        return self is not DumpContentType.JSON


class CompressionType(enum.Enum):
    """
    The byte-level encoding wrapping a resource, signaled by its suffix.

    This tag is shared by dump descriptors and resource fetchers; fetchers use
    it to refuse accessors that do not match a resource's declared type.
    """

    NONE = ""
    GZIP = ".gz"
    BZ2 = ".bz2"
    ZSTD = ".zst"

    @property
    def label(self) -> str:
        return self.name.lower() if self.value else "plain text"

    @classmethod
    def for_suffix(cls, suffix: str) -> "CompressionType":
        for member in cls:
            if member.value and member.value == suffix.lower():
                return member
        return cls.NONE

    @classmethod
    def for_locator(cls, locator: str) -> "CompressionType":
        """Derive the declared type of a URL or path from its suffix."""
        path = urlsplit(str(locator)).path if "://" in str(locator) else locator
        return cls.for_suffix(PurePosixPath(str(path)).suffix)


# --- Domain Models ---

@dataclasses.dataclass(frozen=True)
class DumpDescriptor:
    """
    An immutable description of one candidate dump.

    Two descriptors denote the same dump when content type and publication
    date match; compression and locator do not take part in equality.
    """

    content_type: DumpContentType
    publication_date: datetime.date
    compression: CompressionType = dataclasses.field(compare=False)
    locator: str = dataclasses.field(compare=False)
    project_name: str = dataclasses.field(default="", compare=False)

    @property
    def is_remote(self) -> bool:
        return urlsplit(self.locator).scheme in ("http", "https")

    @property
    def date_stamp(self) -> str:
        return self.publication_date.strftime("%Y%m%d")

    @property
    def file_name(self) -> str:
        if self.is_remote:
            return PurePosixPath(urlsplit(self.locator).path).name
        return PurePosixPath(self.locator.replace("\\", "/")).name

    def __str__(self) -> str:
        return (
            f"{self.content_type.value} dump {self.date_stamp} "
            f"({self.compression.label}, {self.locator})"
        )


@dataclasses.dataclass(frozen=True)
class EntityDocument:
    """A single entity taken from a JSON dump. Entity dumps hold no history."""

    site: str
    entity_id: str
    entity_type: str
    data: Mapping[str, Any] = dataclasses.field(repr=False)

    @property
    def is_current(self) -> bool:
        return True

    @property
    def key(self) -> str:
        return self.entity_id


@dataclasses.dataclass(frozen=True)
class Revision:
    """A single page revision taken from an XML dump."""

    site: str
    page_id: int
    title: str
    namespace: int
    revision_id: int
    parent_id: Optional[int]
    timestamp: Optional[datetime.datetime]
    contributor: Optional[str]
    comment: Optional[str]
    model: Optional[str]
    format: Optional[str]
    text: str = dataclasses.field(repr=False)
    is_current: bool = True

    @property
    def key(self) -> str:
        return f"{self.title}@{self.revision_id}"


Record = Union[EntityDocument, Revision]

RecordConsumer = Callable[[Record, bool], Any]

RecordPredicate = Callable[[Record], bool]


@dataclasses.dataclass(frozen=True)
class RegisteredConsumer:
    """A consumer together with the filter deciding which records it gets."""

    consumer: RecordConsumer
    site_filter: Optional[str]
    current_revisions_only: bool
    predicate: RecordPredicate

    def accepts(self, record: Record) -> bool:
        return self.predicate(record)


@dataclasses.dataclass(frozen=True)
class ConsumerFailure:
    """
    An error raised by a consumer while handling one record. Only the key of
    the record is kept. Once reported, the error is detached from its
    traceback, so no frame (and no record) outlives the dispatch.
    """

    consumer: RecordConsumer
    record_index: int
    record_key: str
    error: Exception


@dataclasses.dataclass
class ProcessingReport:
    """
    The outcome of one processing run over a single dump.

    The counters cover the whole run. The failure and corrupt record lists
    keep only the first few entries, as configured on the controller.
    """

    dump: DumpDescriptor
    records_processed: int = 0
    records_skipped: int = 0
    deliveries: int = 0
    failure_count: int = 0
    consumer_failures: List[ConsumerFailure] = dataclasses.field(
        default_factory=list
    )
    corrupt_records: List[Exception] = dataclasses.field(default_factory=list)


# --- Ports (Interfaces) ---

class ResourceFetcher(ABC):
    """
    A port for anything that can open named resources as streams.

    Every accessor raises ResourceNotFoundError for unknown resources. The
    typed accessors additionally raise WrongAccessorError when the declared
    type of the resource does not match. Returned streams may fail later with
    ReadFailureError.
    """

    is_network: bool = False

    @abstractmethod
    def open_text(self, locator: str) -> TextIO:
        """Opens an uncompressed text resource."""
        pass

    @abstractmethod
    def open_gzip(self, locator: str) -> TextIO:
        """Opens a gzip-compressed resource as decompressed text."""
        pass

    @abstractmethod
    def open_raw_bytes(self, locator: str) -> BinaryIO:
        """Opens any resource as its raw, undecoded bytes."""
        pass


class DumpLayout(ABC):
    """
    A port describing how an archive host publishes dumps of one content type.

    The listing and probe formats are host-specific conventions, so they are
    kept behind this interface rather than in the discovery logic.
    """

    content_type: DumpContentType
    compression: CompressionType

    @abstractmethod
    def listing_url(self, project_name: str) -> str:
        """URL of the resource enumerating the available dump dates."""
        pass

    @abstractmethod
    def extract_dates(self, listing: str) -> List[datetime.date]:
        """Extracts the dump dates mentioned in a listing."""
        pass

    @abstractmethod
    def probe_url(self, project_name: str, date: datetime.date) -> str:
        """URL of a small resource confirming a dump exists at a date."""
        pass

    @abstractmethod
    def dump_file_name(self, project_name: str, date: datetime.date) -> str:
        pass

    @abstractmethod
    def dump_url(self, project_name: str, date: datetime.date) -> str:
        pass

    def is_available(
        self, probe: str, project_name: str, date: datetime.date
    ) -> bool:
        """Decides from the probe contents whether the dump is published."""
        return self.dump_file_name(project_name, date) in probe


class LocalNamingConvention(ABC):
    """A port for recognizing dump files on local disk by their names."""

    @abstractmethod
    def match(
        self, file_name: str, content_type: DumpContentType
    ) -> Optional[Tuple[datetime.date, CompressionType]]:
        """Returns date and compression if the name fits the content type."""
        pass

    def identify(
        self, file_name: str
    ) -> Optional[Tuple[DumpContentType, datetime.date, CompressionType]]:
        """Finds the content type whose naming convention fits the name."""
        for content_type in DumpContentType:
            matched = self.match(file_name, content_type)
            if matched:
                return (content_type,) + matched
        return None


class DumpParser(ABC):
    """A port for turning a decompressed dump stream into records."""

    @abstractmethod
    def iter_records(
        self,
        stream: BinaryIO,
        site: str,
        locator: str = "",
        on_corrupt: Optional[Callable[[Exception], None]] = None,
    ) -> Iterator[Record]:
        """
        Lazily yields records in dump order.

        Raises CorruptDumpError on malformed input. When on_corrupt is given,
        errors confined to a single record are passed to it and the record is
        skipped instead.
        """
        pass
