"""
Entry point for the dumpfiles component.

Processes the most recent dump of the requested content type (or a given
local dump file) and logs how many records of each kind it contains.
"""

import argparse
import collections
import logging
import sys
from typing import List, Optional

from .application.domain import DumpContentType, EntityDocument, Record
from .application.exceptions import DumpfilesError
from .infrastructure.containers import Container

logger = logging.getLogger(__name__)


def setup_logging(level: str):
    """Applies basic logging configuration."""
    logging.basicConfig(
        level=level,
        format="[%(asctime)s] [%(levelname)s] [%(name)s] %(message)s",
        datefmt="%H:%M:%S",
    )


class RecordCounter:
    """Counts records by entity type (JSON) or namespace (XML)."""

    def __init__(self):
        self.counts = collections.Counter()
        self.current = 0

    def __call__(self, record: Record, is_current: bool):
        if isinstance(record, EntityDocument):
            self.counts[record.entity_type] += 1
        else:
            self.counts[f"namespace {record.namespace}"] += 1
        if is_current:
            self.current += 1

    def log_summary(self):
        for kind, count in self.counts.most_common():
            logger.info(f"{kind}: {count}")
        logger.info(
            f"{sum(self.counts.values())} records, {self.current} current."
        )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Dump File Processor")

    parser.add_argument(
        "--content-type",
        required=True,
        choices=[content_type.value for content_type in DumpContentType],
        help="Kind of dump to process: entity JSON, current or full XML.",
    )

    parser.add_argument(
        "--dump-file",
        help="Process this local dump file instead of discovering one.",
    )

    parser.add_argument(
        "--dump-dir",
        help="Directory searched for local dumps (overrides settings).",
    )

    parser.add_argument(
        "--offline",
        action="store_true",
        default=None,
        help="Never access the network; only use local dumps.",
    )

    parser.add_argument(
        "--current-only",
        action="store_true",
        help="Only count current revisions.",
    )

    parser.add_argument(
        "--progress",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Show a progress bar (overrides settings).",
    )

    return parser


def run_application(args: argparse.Namespace) -> int:
    """Wires and runs the application using the DI container."""

    container = Container()
    container.cli_args.from_dict(vars(args))
    setup_logging(level=container.config().logging.level)

    content_type = DumpContentType(args.content_type)
    counter = RecordCounter()

    try:
        controller = container.controller()
        controller.register_consumer(
            counter, current_revisions_only=args.current_only
        )
        if args.dump_file:
            controller.process_dump(args.dump_file, content_type)
        else:
            controller.process_most_recent_dump(content_type)
    except DumpfilesError as e:
        logger.error(f"An application error occurred: {e}")
        return 1

    counter.log_summary()
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    return run_application(build_parser().parse_args(argv))


if __name__ == "__main__":
    sys.exit(main())
