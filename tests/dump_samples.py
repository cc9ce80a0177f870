"""Sample dump contents and fakes shared by the tests."""

import datetime
import json
from typing import Iterable, List

import pytest

from dumpfiles.application.domain import (
    DumpContentType,
    DumpDescriptor,
    ResourceFetcher,
)
from dumpfiles.infrastructure.layouts import default_layouts
from dumpfiles.infrastructure.memory import InMemoryResourceFetcher

BASE_URL = "https://dumps.example.org"
PROJECT = "wikidatawiki"


def make_entity(number: int, entity_type: str = "item") -> dict:
    prefix = "Q" if entity_type == "item" else "P"
    return {
        "id": f"{prefix}{number}",
        "type": entity_type,
        "labels": {"en": {"language": "en", "value": f"Entity {number}"}},
    }


def make_json_dump(entities: Iterable[dict]) -> str:
    """Formats entities the way JSON dumps do: one array, one entity per line."""
    lines = [json.dumps(entity) for entity in entities]
    return "[\n" + ",\n".join(lines) + "\n]\n"


def make_items(count: int) -> str:
    return make_json_dump(make_entity(number) for number in range(1, count + 1))


XML_DUMP = """<mediawiki xmlns="http://www.mediawiki.org/xml/export-0.10/" version="0.10">
  <siteinfo>
    <sitename>Wikidata</sitename>
    <dbname>wikidatawiki</dbname>
  </siteinfo>
  <page>
    <title>Q1</title>
    <ns>0</ns>
    <id>1</id>
    <revision>
      <id>10</id>
      <timestamp>2014-01-01T00:00:00Z</timestamp>
      <contributor><username>Alice</username><id>7</id></contributor>
      <comment>create</comment>
      <model>wikibase-item</model>
      <format>application/json</format>
      <text xml:space="preserve">{"id":"Q1"}</text>
    </revision>
    <revision>
      <id>11</id>
      <parentid>10</parentid>
      <timestamp>2014-01-02T00:00:00Z</timestamp>
      <contributor><username>Bob</username><id>8</id></contributor>
      <model>wikibase-item</model>
      <format>application/json</format>
      <text xml:space="preserve">{"id":"Q1","labels":{}}</text>
    </revision>
  </page>
  <page>
    <title>Property:P31</title>
    <ns>120</ns>
    <id>2</id>
    <revision>
      <id>12</id>
      <timestamp>2014-01-03T00:00:00Z</timestamp>
      <contributor><ip>127.0.0.1</ip></contributor>
      <model>wikibase-property</model>
      <format>application/json</format>
      <text xml:space="preserve">{"id":"P31"}</text>
    </revision>
  </page>
</mediawiki>
"""


def as_date(stamp: str) -> datetime.date:
    return datetime.datetime.strptime(stamp, "%Y%m%d").date()


class ForbiddenFetcher(ResourceFetcher):
    """A network fetcher that fails the test as soon as it is used."""

    is_network = True

    def open_text(self, locator):
        pytest.fail(f"Network access to {locator} in offline mode")

    def open_gzip(self, locator):
        pytest.fail(f"Network access to {locator} in offline mode")

    def open_raw_bytes(self, locator):
        pytest.fail(f"Network access to {locator} in offline mode")


class FakeArchive:
    """Publishes listings, probes and dumps on an in-memory fetcher."""

    def __init__(self, fetcher: InMemoryResourceFetcher):
        self.fetcher = fetcher
        self.layouts = default_layouts(BASE_URL)

    def publish_listing(self, content_type: DumpContentType, stamps: List[str]):
        layout = self.layouts[content_type]
        html = "".join(f'<a href="{stamp}/">{stamp}/</a>\n' for stamp in stamps)
        self.fetcher.set_resource(layout.listing_url(PROJECT), html)

    def publish_dump(
        self, content_type: DumpContentType, stamp: str, contents: str
    ) -> DumpDescriptor:
        layout = self.layouts[content_type]
        date = as_date(stamp)
        name = layout.dump_file_name(PROJECT, date)
        self.fetcher.set_resource(
            layout.probe_url(PROJECT, date), f'<a href="{name}">{name}</a>\n'
        )
        url = layout.dump_url(PROJECT, date)
        self.fetcher.set_resource(url, contents, layout.compression)
        return DumpDescriptor(
            content_type, date, layout.compression, url, PROJECT
        )
