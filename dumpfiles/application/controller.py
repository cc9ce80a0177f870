"""
The core application service: one controller driving dump processing runs.

The controller selects a dump (or takes one given explicitly), opens it
through the matching fetcher, decompresses and parses it lazily, and hands
every record to the registered consumers whose filters accept it.
"""

import contextlib
import logging
import os
from pathlib import Path
from typing import (
    BinaryIO,
    Callable,
    List,
    Mapping,
    Optional,
    Tuple,
    Union,
)

from tqdm import tqdm
from tqdm.contrib.logging import logging_redirect_tqdm

from .discovery import DumpFileManager
from .domain import (
    CompressionType,
    ConsumerFailure,
    DumpContentType,
    DumpDescriptor,
    DumpParser,
    ProcessingReport,
    Record,
    RecordConsumer,
    RecordPredicate,
    RegisteredConsumer,
    ResourceFetcher,
)
from .exceptions import ConfigurationError, OfflineModeError
from .filters import build_predicate

DumpSource = Union[DumpDescriptor, str, os.PathLike]

Decompressor = Callable[[BinaryIO, CompressionType], BinaryIO]

# Failures and corrupt records kept in a report; past this only counters grow.
MAX_REPORTED_ERRORS = 1000


def _release_frames(error: BaseException):
    """Drops the tracebacks of an error and of the errors chained to it."""
    seen = set()
    while error is not None and id(error) not in seen:
        seen.add(id(error))
        error.with_traceback(None)
        error = error.__cause__ or error.__context__


class DumpProcessingController:
    """Orchestrates processing runs over dumps of one project."""

    def __init__(
        self,
        project_name: str,
        dump_file_manager: DumpFileManager,
        web_fetcher: ResourceFetcher,
        local_fetcher: ResourceFetcher,
        parsers: Mapping[DumpContentType, DumpParser],
        decompress: Decompressor,
        offline: bool = False,
        skip_corrupt_records: bool = False,
        isolate_consumer_failures: bool = True,
        error_handler: Optional[Callable[[ConsumerFailure], None]] = None,
        show_progress: bool = False,
        max_reported_errors: int = MAX_REPORTED_ERRORS,
    ):
        """
        Initializes the controller with its collaborators (ports).

        Args:
            project_name: Database name of the project, e.g. wikidatawiki.
                          Records of dumps without site information carry it
                          as their site.
            dump_file_manager: Discovery used by process_most_recent_dump.
            web_fetcher: Fetcher for remote dumps; unused in offline mode.
            local_fetcher: Fetcher for dumps on local disk.
            parsers: The parser to use for each content type.
            decompress: Wraps a raw stream with the decoder for a compression.
            offline: Whether network access is forbidden.
            skip_corrupt_records: Skip records that fail validation instead
                                  of aborting the run.
            isolate_consumer_failures: When True, a failing consumer does not
                                       keep later consumers from receiving
                                       the same record.
            error_handler: Called with every consumer failure; defaults to
                           logging it. The traceback of the failure is
                           only available while the handler runs.
            show_progress: Display a tqdm progress bar while processing.
            max_reported_errors: How many consumer failures and corrupt
                                 records a report keeps; later ones are
                                 only counted.
        """
        self.logger = logging.getLogger(self.__class__.__name__)
        self.project_name = project_name
        self.dump_file_manager = dump_file_manager
        self.web_fetcher = web_fetcher
        self.local_fetcher = local_fetcher
        self.parsers = dict(parsers)
        self.decompress = decompress
        self.skip_corrupt_records = skip_corrupt_records
        self.isolate_consumer_failures = isolate_consumer_failures
        self.error_handler = error_handler or self._log_consumer_failure
        self.show_progress = show_progress
        self.max_reported_errors = max_reported_errors
        self._offline = bool(offline)
        self._consumers: List[RegisteredConsumer] = []
        self._running = False

    # --- Configuration ---

    @property
    def offline(self) -> bool:
        return self._offline

    def set_offline_mode(self, offline: bool):
        """
        Switches between online and offline operation. In offline mode only
        local dumps are discovered or opened.

        Raises:
            ConfigurationError: If called while a run is in progress.
        """
        if self._running:
            raise ConfigurationError(
                "The offline mode cannot change while a dump is processed."
            )
        self._offline = bool(offline)

    @property
    def consumers(self) -> Tuple[RegisteredConsumer, ...]:
        return tuple(self._consumers)

    def register_consumer(
        self,
        consumer: RecordConsumer,
        site_filter: Optional[str] = None,
        current_revisions_only: bool = False,
        predicate: Optional[RecordPredicate] = None,
    ) -> RegisteredConsumer:
        """
        Registers a consumer for all subsequent runs.

        Consumers are invoked in registration order. Registering the same
        consumer twice delivers each record to it twice.

        Args:
            consumer: Callable receiving (record, is_current).
            site_filter: Only deliver records of this site.
            current_revisions_only: Only deliver current revisions.
            predicate: Additional filter combined with the others.

        Returns:
            The registration.
        """
        registration = RegisteredConsumer(
            consumer=consumer,
            site_filter=site_filter,
            current_revisions_only=current_revisions_only,
            predicate=build_predicate(
                site_filter, current_revisions_only, predicate
            ),
        )
        self._consumers.append(registration)
        return registration

    # --- Processing ---

    def process_most_recent_dump(
        self, content_type: DumpContentType
    ) -> ProcessingReport:
        """
        Processes the most recent dump of a content type.

        Raises:
            NoDumpAvailableError: If discovery finds no dump.
        """
        dump = self.dump_file_manager.find_most_recent_dump(
            content_type, offline=self._offline
        )
        return self.process_dump(dump)

    def process_all_dumps(
        self, content_type: DumpContentType
    ) -> List[ProcessingReport]:
        """
        Processes every discoverable dump of a content type, oldest first.

        Raises:
            NoDumpAvailableError: If discovery finds no dump.
        """
        dumps = self.dump_file_manager.find_dumps(
            content_type, offline=self._offline
        )
        self.logger.info(
            f"Processing {len(dumps)} {content_type.value} dumps..."
        )
        return [self.process_dump(dump) for dump in reversed(dumps)]

    def process_dump(
        self,
        dump: DumpSource,
        content_type: Optional[DumpContentType] = None,
    ) -> ProcessingReport:
        """
        Processes one explicitly given dump, bypassing discovery.

        Args:
            dump: A descriptor, or the path of a local dump file.
            content_type: Content type of a local file whose name does not
                          reveal it.

        Returns:
            The report of the run.

        Raises:
            OfflineModeError: If a remote dump is given in offline mode.
            ResourceNotFoundError: If the dump cannot be found.
            ReadFailureError: If reading the dump fails.
            CorruptDumpError: If the dump is malformed.
        """

        if not isinstance(dump, DumpDescriptor):
            dump = self.dump_file_manager.describe_local_file(
                Path(dump), content_type
            )
        parser = self._parser_for(dump.content_type)
        fetcher = self._fetcher_for(dump)
        report = ProcessingReport(dump=dump)

        self.logger.info(f"Processing {dump}...")
        self._running = True
        try:
            with contextlib.ExitStack() as stack:
                records = self._open_records(stack, dump, fetcher, parser, report)
                for index, record in enumerate(records, 1):
                    report.records_processed += 1
                    self._dispatch(record, index, report)
        finally:
            self._running = False

        self.logger.info(
            f"Finished {dump.file_name}: {report.records_processed} records, "
            f"{report.deliveries} deliveries, "
            f"{report.failure_count} consumer failures, "
            f"{report.records_skipped} skipped records."
        )
        return report

    def _open_records(
        self,
        stack: contextlib.ExitStack,
        dump: DumpDescriptor,
        fetcher: ResourceFetcher,
        parser: DumpParser,
        report: ProcessingReport,
    ):
        """Opens every layer of the pipeline, registering each for closing."""

        raw = stack.enter_context(
            contextlib.closing(fetcher.open_raw_bytes(dump.locator))
        )
        stream = stack.enter_context(
            contextlib.closing(self.decompress(raw, dump.compression))
        )

        on_corrupt = None
        if self.skip_corrupt_records:

            def on_corrupt(error: Exception):
                report.records_skipped += 1
                self.logger.warning(f"Skipping corrupt record: {error}")
                _release_frames(error)
                if len(report.corrupt_records) < self.max_reported_errors:
                    report.corrupt_records.append(error)

        records = stack.enter_context(
            contextlib.closing(
                parser.iter_records(
                    stream,
                    site=dump.project_name or self.project_name,
                    locator=dump.locator,
                    on_corrupt=on_corrupt,
                )
            )
        )
        if not self.show_progress:
            return records

        stack.enter_context(logging_redirect_tqdm())
        return stack.enter_context(
            tqdm(records, desc=dump.file_name, unit=" records")
        )

    def _dispatch(self, record: Record, index: int, report: ProcessingReport):
        """Delivers one record to every consumer accepting it."""
        is_current = record.is_current
        for registration in self._consumers:
            if not registration.accepts(record):
                continue
            try:
                registration.consumer(record, is_current)
            except Exception as e:
                failure = ConsumerFailure(
                    consumer=registration.consumer,
                    record_index=index,
                    record_key=record.key,
                    error=e,
                )
                report.failure_count += 1
                self.error_handler(failure)
                # The traceback would keep the record alive.
                _release_frames(e)
                if len(report.consumer_failures) < self.max_reported_errors:
                    report.consumer_failures.append(failure)
                if not self.isolate_consumer_failures:
                    break
            else:
                report.deliveries += 1

    def _fetcher_for(self, dump: DumpDescriptor) -> ResourceFetcher:
        fetcher = self.web_fetcher if dump.is_remote else self.local_fetcher
        if self._offline and fetcher.is_network:
            raise OfflineModeError(
                f"Cannot open {dump} over the network in offline mode."
            )
        return fetcher

    def _parser_for(self, content_type: DumpContentType) -> DumpParser:
        try:
            return self.parsers[content_type]
        except KeyError:
            raise ConfigurationError(
                f"No parser configured for {content_type.value} dumps."
            ) from None

    def _log_consumer_failure(self, failure: ConsumerFailure):
        name = getattr(failure.consumer, "__name__", repr(failure.consumer))
        self.logger.error(
            f"Consumer {name} failed on record {failure.record_index} "
            f"({failure.record_key}): {failure.error}",
            exc_info=failure.error,
        )
