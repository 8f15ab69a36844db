"""Import a report from the DCF into the local store.

Runs the version replayer over the upstream versions of one report and
stores the resulting snapshots as Report/ReportRow rows. Local versions
that existed before the import are replaced once the replay succeeds; a
failed replay removes whatever it had already stored.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from sqlalchemy.ext.asyncio import AsyncSession

from dcf_app.crud.report import delete_reports, get_report_versions
from dcf_app.models.report import Report, ReportRow
from dcf_app.schemas.message import DatasetMetadata
from dcf_pipeline.amend.exceptions import AmendError
from dcf_pipeline.amend.replayer import (
    DatasetSource,
    ProgressCallback,
    VersionReplayer,
)
from dcf_pipeline.dcf.datasets import DatasetDescriptor

logger = logging.getLogger(__name__)


class SqlReportSink:
    """ReportSink storing each publication as a Report with its rows.

    Publications are flushed, not committed; the import service owns the
    transaction.
    """

    def __init__(self, session: AsyncSession, row_id_field: str):
        self.session = session
        self.row_id_field = row_id_field

    async def publish(
        self,
        descriptor: DatasetDescriptor,
        metadata: DatasetMetadata,
        rows: list[dict[str, str]],
    ) -> int:
        operation = metadata.operation
        report = Report(
            sender_dataset_id=descriptor.sender_dataset_id,
            version=descriptor.version,
            dataset_id=descriptor.dataset_id or operation.dataset_id,
            status=descriptor.status.value,
            dc_code=operation.dc_code,
            dc_table=operation.dc_table,
            org_code=operation.org_code,
            message_id=metadata.header.sender_message_id,
        )
        report.rows = [
            ReportRow(
                row_id=row.get(self.row_id_field, ""),
                fields=row,
                sort_order=i,
            )
            for i, row in enumerate(rows)
        ]
        self.session.add(report)
        await self.session.flush()
        return report.report_id

    async def discard(self, publication_ids: list[int]) -> None:
        deleted = await delete_reports(self.session, publication_ids)
        await self.session.flush()
        logger.info(f"Discarded {deleted} partially imported report versions")


@dataclass
class ImportResult:
    """Result of importing one report."""

    sender_dataset_id: str
    versions_processed: list[str] = field(default_factory=list)
    report_ids: list[int] = field(default_factory=list)
    replaced_report_ids: list[int] = field(default_factory=list)
    rows_published: int = 0
    elapsed_seconds: float = 0.0


class ReportImportService:
    """Downloads every version of a report and stores its current state."""

    def __init__(
        self,
        session: AsyncSession,
        source: DatasetSource,
        row_id_field: str,
        version_field: str,
        progress: ProgressCallback | None = None,
    ):
        self.session = session
        self.source = source
        self.row_id_field = row_id_field
        self.version_field = version_field
        self.progress = progress

    async def import_report(self, sender_dataset_id: str) -> ImportResult:
        """Import a report by sender id.

        Args:
            sender_dataset_id: Report sender id without version ("FR1704").

        Returns:
            ImportResult listing the stored and the replaced report ids.

        Raises:
            ValueError: If the DCF has no version of the report.
            AmendError: If the replay fails. Already stored versions are
                removed before the error is re-raised.
        """
        versions = await self.source.list_versions(sender_dataset_id)
        if not versions:
            raise ValueError(f"No versions of report {sender_dataset_id} found")

        previous = await get_report_versions(self.session, sender_dataset_id)
        previous_ids = [r.report_id for r in previous]

        replayer = VersionReplayer(
            self.source,
            SqlReportSink(self.session, self.row_id_field),
            self.row_id_field,
            self.version_field,
            progress=self.progress,
        )

        try:
            replay = await replayer.replay(versions)
        except AmendError as e:
            logger.error(f"Import of {sender_dataset_id} failed: {e}")
            await replayer.abort()
            await self.session.commit()
            raise

        replaced = 0
        if replay.publication_ids:
            replaced = await delete_reports(self.session, previous_ids)
        await self.session.commit()

        logger.info(
            f"Imported {sender_dataset_id}: {len(replay.publication_ids)} versions "
            f"stored, {replaced} replaced"
        )
        return ImportResult(
            sender_dataset_id=sender_dataset_id,
            versions_processed=replay.versions_processed,
            report_ids=replay.publication_ids,
            replaced_report_ids=previous_ids if replay.publication_ids else [],
            rows_published=replay.rows_published,
            elapsed_seconds=replay.elapsed_seconds,
        )
