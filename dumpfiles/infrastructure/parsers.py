"""
Infrastructure adapters turning decompressed dump streams into records.

Both parsers are generators: they pull from the stream only as fast as the
caller pulls records, and keep at most one record's worth of data around.
"""

import dataclasses
import io
import json
import logging
import xml.etree.ElementTree as ET
from typing import (
    BinaryIO,
    Callable,
    Dict,
    Iterator,
    Mapping,
    Optional,
)

from pydantic import ValidationError

from ..application.domain import (
    DumpContentType,
    DumpParser,
    EntityDocument,
    Record,
    Revision,
)
from ..application.exceptions import CorruptDumpError

from .decompression import DECODER_ERRORS
from .dump_models import EntityPayload, RevisionPayload

# Direct children of <page> copied onto each revision of the page.
_PAGE_FIELDS = {"title": "title", "ns": "namespace", "id": "page_id"}


def _first_line(error: Exception) -> str:
    return str(error).splitlines()[0] if str(error) else type(error).__name__


def _local_tag(tag: str) -> str:
    """Strips the XML namespace from a tag."""
    return tag.rsplit("}", 1)[-1]


class JsonDumpParser(DumpParser):
    """
    Parses JSON entity dumps.

    The dumps are one large JSON array with one entity per line, so they can
    be read line by line. Bracket lines and trailing commas are tolerated,
    which also makes plain JSON Lines files readable.
    """

    def __init__(self):
        self.logger = logging.getLogger(self.__class__.__name__)

    def _parse_line(self, line: str, site: str) -> EntityDocument:
        data = json.loads(line)
        if not isinstance(data, dict):
            raise ValueError(f"expected a JSON object, got {type(data).__name__}")
        payload = EntityPayload.model_validate(data)
        return EntityDocument(
            site=site,
            entity_id=payload.id,
            entity_type=payload.type,
            data=data,
        )

    def iter_records(
        self,
        stream: BinaryIO,
        site: str,
        locator: str = "",
        on_corrupt: Optional[Callable[[Exception], None]] = None,
    ) -> Iterator[Record]:
        text = io.TextIOWrapper(stream, encoding="utf-8")
        record_index = 0
        line_number = 0
        try:
            for line_number, line in enumerate(text, 1):
                stripped = line.strip()
                if stripped in ("", "[", "]"):
                    continue
                if stripped.endswith(","):
                    stripped = stripped[:-1]
                record_index += 1
                try:
                    record = self._parse_line(stripped, site)
                except (ValueError, ValidationError) as e:
                    error = CorruptDumpError(
                        f"Invalid entity: {_first_line(e)}",
                        locator,
                        record_index,
                        f"line {line_number}",
                    )
                    if on_corrupt is None:
                        raise error from e
                    on_corrupt(error)
                    continue
                yield record
        except DECODER_ERRORS as e:
            raise CorruptDumpError(
                f"Unreadable dump data: {_first_line(e)}",
                locator,
                record_index + 1,
                f"after line {line_number}",
            ) from e


class XmlDumpParser(DumpParser):
    """
    Parses MediaWiki XML export dumps into revisions.

    Revisions of a page appear oldest first; every revision but the last one
    of its page is marked as not current. The site of each revision is the
    database name from <siteinfo>, falling back to the given site.
    """

    def __init__(self):
        self.logger = logging.getLogger(self.__class__.__name__)

    def _build_revision(
        self, element: ET.Element, page: Mapping[str, Optional[str]], site: str
    ) -> Revision:
        children: Dict[str, ET.Element] = {
            _local_tag(child.tag): child for child in element
        }

        def _text(name: str) -> Optional[str]:
            child = children.get(name)
            return child.text if child is not None else None

        contributor = None
        if "contributor" in children:
            for child in children["contributor"]:
                if _local_tag(child.tag) in ("username", "ip"):
                    contributor = child.text
                    break

        payload = RevisionPayload.model_validate({
            "page_id": page.get("page_id"),
            "title": page.get("title"),
            "namespace": page.get("namespace") or 0,
            "revision_id": _text("id"),
            "parent_id": _text("parentid"),
            "timestamp": _text("timestamp"),
            "contributor": contributor,
            "comment": _text("comment"),
            "model": _text("model"),
            "format": _text("format"),
            "text": _text("text") or "",
        })
        return Revision(site=site, **payload.model_dump())

    def iter_records(
        self,
        stream: BinaryIO,
        site: str,
        locator: str = "",
        on_corrupt: Optional[Callable[[Exception], None]] = None,
    ) -> Iterator[Record]:
        dump_site = site
        record_index = 0
        stack = []
        page: Dict[str, Optional[str]] = {}
        pending: Optional[Revision] = None
        root = None
        try:
            for event, element in ET.iterparse(stream, events=("start", "end")):
                tag = _local_tag(element.tag)
                if event == "start":
                    if root is None:
                        root = element
                    stack.append(tag)
                    if tag == "page":
                        page = {}
                    continue

                stack.pop()
                parent = stack[-1] if stack else None

                if tag == "dbname" and parent == "siteinfo":
                    dump_site = (element.text or "").strip() or site
                elif parent == "page" and tag in _PAGE_FIELDS:
                    page[_PAGE_FIELDS[tag]] = element.text
                elif tag == "revision" and parent == "page":
                    record_index += 1
                    try:
                        revision = self._build_revision(element, page, dump_site)
                    except ValidationError as e:
                        error = CorruptDumpError(
                            f"Invalid revision: {_first_line(e)}",
                            locator,
                            record_index,
                            f"page {page.get('title')!r}",
                        )
                        if on_corrupt is None:
                            raise error from e
                        on_corrupt(error)
                        revision = None
                    element.clear()
                    if revision is not None:
                        if pending is not None:
                            yield dataclasses.replace(pending, is_current=False)
                        pending = revision
                elif tag == "page":
                    if pending is not None:
                        yield pending
                        pending = None
                    root.clear()
        except ET.ParseError as e:
            line, column = e.position
            raise CorruptDumpError(
                f"Malformed XML: {_first_line(e)}",
                locator,
                record_index + 1,
                f"line {line}, column {column}",
            ) from e
        except DECODER_ERRORS as e:
            raise CorruptDumpError(
                f"Unreadable dump data: {_first_line(e)}",
                locator,
                record_index + 1,
            ) from e


def default_parsers() -> Dict[DumpContentType, DumpParser]:
    """Returns the parser to use for each content type."""
    xml_parser = XmlDumpParser()
    return {
        DumpContentType.JSON: JsonDumpParser(),
        DumpContentType.CURRENT: xml_parser,
        DumpContentType.FULL: xml_parser,
    }
