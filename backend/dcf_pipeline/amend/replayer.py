"""Version replayer: rebuilds the current state of a report from its versions.

The data collection service stores every version of a report that was ever
sent. Each version only carries the rows that changed (tagged with amType)
relative to the previous one, so the current content of a report is
obtained by replaying its versions in ascending order:

    for each version v (ascending):
        download v, stage its records
        if v is the last accepted version (k) or the last existing one (n):
            collapse the staged amendments and publish the snapshot
            clear staging
            stop if v == n

Publishing at k gives the report as accepted by the data warehouse;
publishing at n gives the report as it currently stands. When k == n the
version is published once.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol

from dcf_app.models.enums import AmendType
from dcf_app.schemas.message import DatasetMetadata
from dcf_pipeline.amend.exceptions import DownloadError
from dcf_pipeline.amend.record_codec import DatasetRecordParser, parse_fragment
from dcf_pipeline.amend.staging import Record, StagingStore
from dcf_pipeline.dcf.datasets import (
    DatasetDescriptor,
    last_accepted_version,
    last_existing_version,
    sort_ascending,
    unique_versions,
)
from dcf_pipeline.dcf.metadata import parse_dataset_metadata

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[float], None]


class DatasetSource(Protocol):
    """Where report versions come from (the DCF, or files in tests)."""

    async def list_versions(self, sender_dataset_id: str) -> list[DatasetDescriptor]:
        ...

    async def download(self, descriptor: DatasetDescriptor) -> Path:
        ...


class ReportSink(Protocol):
    """Where collapsed snapshots are published."""

    async def publish(
        self,
        descriptor: DatasetDescriptor,
        metadata: DatasetMetadata,
        rows: list[dict[str, str]],
    ) -> int:
        """Durably store one snapshot and return its publication id."""
        ...

    async def discard(self, publication_ids: list[int]) -> None:
        """Delete publications made by an aborted replay."""
        ...


@dataclass
class ReplayResult:
    """Summary of one replay."""

    sender_dataset_id: str | None = None
    accepted_version: int | None = None
    existing_version: int | None = None
    versions_processed: list[str] = field(default_factory=list)
    publication_ids: list[int] = field(default_factory=list)
    rows_published: int = 0
    elapsed_seconds: float = 0.0


def collapse_amendments(store: StagingStore) -> list[Record]:
    """Reduce the staged versions of a report to its current rows.

    Runs, in this order:

    1. drop nullified records;
    2. keep only the numerically greatest version of each row id;
    3. drop records tagged DELETE.

    Dropping deletions after the reduction matters: a row deleted in the
    latest version must hide the older copies of that row, not resurrect
    them.

    The store is modified in place; the surviving records are returned in
    staging order.
    """
    store.delete_where(lambda r: r.nullified)

    latest: dict[str, int] = {}
    for record in store:
        current = latest.get(record.row_id)
        if current is None or record.version_number > current:
            latest[record.row_id] = record.version_number
    store.delete_where(lambda r: r.version_number < latest[r.row_id])

    store.delete_where(lambda r: r.amend_type == AmendType.DELETE)
    return store.all()


class VersionReplayer:
    """Replays the versions of one report and publishes boundary snapshots.

    One instance serves one import. After a failure the caller invokes
    abort() to discard what was already published.
    """

    def __init__(
        self,
        source: DatasetSource,
        sink: ReportSink,
        row_id_field: str,
        version_field: str,
        progress: ProgressCallback | None = None,
        metadata_parser: Callable[[Path], DatasetMetadata] = parse_dataset_metadata,
    ):
        self.source = source
        self.sink = sink
        self.row_id_field = row_id_field
        self.version_field = version_field
        self.progress = progress
        self.metadata_parser = metadata_parser
        self.store = StagingStore()
        self.published: list[int] = []

    def _report_progress(self, fraction: float) -> None:
        if self.progress is not None:
            self.progress(min(max(fraction, 0.0), 1.0))

    async def replay(
        self,
        versions: list[DatasetDescriptor],
        accepted_version: int | None = None,
        existing_version: int | None = None,
    ) -> ReplayResult:
        """Replay ``versions`` and publish the snapshots at k and n.

        Args:
            versions: Descriptors of the report's versions, any order.
            accepted_version: k, the last accepted version number. Derived
                from the descriptor statuses when not given.
            existing_version: n, the last existing version number. Derived
                from the descriptor statuses when not given.

        Returns:
            ReplayResult with the ids of the publications made.

        Raises:
            DownloadError: If a version cannot be downloaded or its file is
                missing.
            ParseError: If a version file or fragment is malformed.
        """
        start = time.monotonic()
        ordered = unique_versions(sort_ascending(versions))

        k = accepted_version
        if k is None:
            k = last_accepted_version(ordered)
        n = existing_version
        if n is None:
            n = last_existing_version(ordered)

        result = ReplayResult(
            sender_dataset_id=ordered[0].sender_dataset_id if ordered else None,
            accepted_version=k,
            existing_version=n,
        )

        if k is None and n is None:
            logger.warning(
                f"Report {result.sender_dataset_id}: no accepted and no existing "
                "version found, nothing to import"
            )
            self._report_progress(1.0)
            result.elapsed_seconds = time.monotonic() - start
            return result

        last = n if n is not None else k
        to_process = [d for d in ordered if d.version_number <= last]
        total = len(to_process)

        logger.info(
            f"Replaying report {result.sender_dataset_id}: {total} versions "
            f"(accepted={k}, existing={n})"
        )

        for index, descriptor in enumerate(to_process):
            path = await self.source.download(descriptor)
            self._report_progress((index + 0.3) / total)

            self._stage(path, descriptor)
            self._report_progress((index + 0.6) / total)
            result.versions_processed.append(descriptor.version)

            number = descriptor.version_number
            if number == k or number == n:
                rows = await self._publish(path, descriptor)
                result.rows_published += rows

            self._report_progress((index + 1) / total)

            if number == n:
                break

        self.store.clear()
        result.publication_ids = list(self.published)
        result.elapsed_seconds = time.monotonic() - start
        self._report_progress(1.0)
        logger.info(
            f"Replay of {result.sender_dataset_id} done: "
            f"{len(result.publication_ids)} publications, "
            f"{result.rows_published} rows in {result.elapsed_seconds:.1f}s"
        )
        return result

    def _stage(self, path: Path, descriptor: DatasetDescriptor) -> None:
        try:
            handle = open(path, "rb")  # noqa: SIM115
        except OSError as e:
            raise DownloadError(
                f"Downloaded file of {descriptor.sender_id} is missing or unreadable: {e}",
                dataset_id=descriptor.dataset_id,
            ) from e

        with handle, DatasetRecordParser(
            handle,
            self.row_id_field,
            self.version_field,
            default_version=descriptor.version,
        ) as parser:
            count = 0
            for record in parser:
                self.store.add(record)
                count += 1
        logger.debug(f"Staged {count} records of {descriptor.sender_id}")

    async def _publish(self, path: Path, descriptor: DatasetDescriptor) -> int:
        metadata = self.metadata_parser(path)
        survivors = collapse_amendments(self.store)
        rows = [parse_fragment(r.content) for r in survivors]

        publication_id = await self.sink.publish(descriptor, metadata, rows)
        self.published.append(publication_id)
        self.store.clear()

        logger.info(
            f"Published {descriptor.sender_id} ({len(rows)} rows) "
            f"as publication {publication_id}"
        )
        return len(rows)

    async def abort(self) -> None:
        """Discard every publication made by this replay and clear staging."""
        self.store.clear()
        if not self.published:
            return
        logger.warning(
            f"Aborting replay: discarding {len(self.published)} publications"
        )
        await self.sink.discard(list(self.published))
        self.published.clear()
