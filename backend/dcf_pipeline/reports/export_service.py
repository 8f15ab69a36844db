"""Export a stored report version as a DCF message.

A baseline version ("00") is sent in full. Any later version is sent as an
amendment delta against the closest previous stored version: unchanged rows
are left out, changed rows carry <amType>U</amType>, removed rows carry
<amType>D</amType>.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from pathlib import Path

from sqlalchemy.ext.asyncio import AsyncSession

from dcf_app.config import settings
from dcf_app.crud.report import get_previous_version, get_report, get_report_rows
from dcf_app.models.enums import DatasetStatus, OperationType
from dcf_app.models.report import Report
from dcf_app.schemas.message import HeaderSchema, MessageConfig, OperationSchema
from dcf_pipeline.amend.assembler import ReportAssembler
from dcf_pipeline.amend.delta import compute_delta
from dcf_pipeline.amend.exceptions import MissingPreviousVersionError
from dcf_pipeline.amend.formula import (
    FormulaEvaluator,
    FormulaMemo,
    IdentityEvaluator,
    evaluate_rows,
)
from dcf_pipeline.amend.record_codec import serialize_row
from dcf_pipeline.amend.replayer import ProgressCallback
from dcf_pipeline.amend.staging import Record, StagingStore
from dcf_pipeline.amend.versions import is_baseline, merge_sender_id

logger = logging.getLogger(__name__)

_REPLACE_STATUSES = frozenset(
    {
        DatasetStatus.VALID,
        DatasetStatus.VALID_WITH_WARNINGS,
        DatasetStatus.REJECTED_EDITABLE,
        DatasetStatus.REJECTED,
    }
)


def send_operation_for(
    status: DatasetStatus | None, has_remote_dataset: bool = True
) -> OperationType:
    """Pick the operation used to send a report in the given DCF status.

    A report never sent (no remote dataset) or deleted upstream is inserted;
    one the DCF still holds in an editable state is replaced. Any other
    status cannot be sent.
    """
    if not has_remote_dataset or status is None or status == DatasetStatus.DELETED:
        return OperationType.INSERT
    if status in _REPLACE_STATUSES:
        return OperationType.REPLACE
    return OperationType.NOT_SUPPORTED


def build_message_config(report: Report, op_type: OperationType) -> MessageConfig:
    """Header and operation blocks for sending ``report``."""
    header = HeaderSchema(
        type=settings.message_type,
        version=settings.message_version,
        sender_message_id=f"{report.sender_dataset_id}_{int(time.time())}",
        sender_org_code=settings.sender_org_code or report.org_code,
        receiver_org_code=settings.receiver_org_code,
    )
    operation = OperationSchema(
        op_type=op_type,
        dataset_id=report.dataset_id if op_type != OperationType.INSERT else None,
        sender_dataset_id=merge_sender_id(report.sender_dataset_id, report.version),
        dc_code=report.dc_code,
        dc_table=report.dc_table,
        org_code=report.org_code,
        op_com=f"File generated with {settings.app_name}",
    )
    return MessageConfig(header=header, operation=operation)


@dataclass
class ExportResult:
    """Result of exporting one report version."""

    report_id: int
    version: str
    op_type: OperationType
    path: Path
    records_written: int = 0
    previous_version: str | None = None
    rows_inserted: int = 0
    rows_updated: int = 0
    rows_deleted: int = 0
    rows_unchanged: int = 0


class ReportExportService:
    """Builds the message file for a stored report version."""

    def __init__(
        self,
        session: AsyncSession,
        row_id_field: str,
        evaluator: FormulaEvaluator | None = None,
        progress: ProgressCallback | None = None,
    ):
        self.session = session
        self.row_id_field = row_id_field
        self.evaluator = evaluator or IdentityEvaluator()
        self.progress = progress

    def _report_progress(self, fraction: float) -> None:
        if self.progress is not None:
            self.progress(fraction)

    async def _stage(
        self, store: StagingStore, report: Report, memo: FormulaMemo
    ) -> int:
        """Stage the rows of ``report`` with their derived fields recomputed."""
        rows = await get_report_rows(self.session, report.report_id)
        evaluated = evaluate_rows(
            [dict(row.fields) for row in rows], self.evaluator, memo
        )
        for row, fields in zip(rows, evaluated):
            store.add(
                Record(
                    row_id=fields.get(self.row_id_field, row.row_id),
                    version=report.version,
                    content=serialize_row(fields),
                )
            )
        return len(rows)

    async def export_report(
        self,
        report_id: int,
        out_path: Path | str,
        op_type: OperationType | None = None,
    ) -> ExportResult:
        """Write the message for a stored report version.

        Args:
            report_id: Local id of the version to send.
            out_path: Where the message file is written.
            op_type: Operation to request. Derived from the report status
                when not given.

        Returns:
            ExportResult with the written path and delta counts.

        Raises:
            LookupError: If the report does not exist.
            ValueError: If the report status cannot be sent.
            MissingPreviousVersionError: If the version before a non-baseline
                version is not stored locally.
            EmptyDeltaError: If nothing changed since the previous version.
        """
        report = await get_report(self.session, report_id)
        if report is None:
            raise LookupError(f"Report {report_id} not found")

        status = DatasetStatus.from_string(report.status)
        if op_type is None:
            op_type = send_operation_for(
                status,
                has_remote_dataset=report.dataset_id is not None,
            )
        if op_type == OperationType.NOT_SUPPORTED:
            raise ValueError(
                f"Report {report.full_sender_id} cannot be sent in status "
                f"{status.value}"
            )

        config = build_message_config(report, op_type)
        assembler = ReportAssembler(config)
        result = ExportResult(
            report_id=report_id,
            version=report.version,
            op_type=op_type,
            path=Path(out_path),
        )

        if config.needs_empty_dataset:
            result.path = assembler.write([], out_path)
            self._report_progress(1.0)
            return result

        previous: Report | None = None
        if not is_baseline(report.version):
            previous = await get_previous_version(self.session, report)
            if previous is None:
                raise MissingPreviousVersionError(
                    report.sender_dataset_id, report.version
                )

        store = StagingStore()
        memo = FormulaMemo()
        try:
            await self._stage(store, report, memo)
            self._report_progress(0.4)

            if previous is None:
                records = store.all()
                result.rows_inserted = len(records)
            else:
                await self._stage(store, previous, memo)
                self._report_progress(0.6)

                delta = compute_delta(store, previous.version, report.version)
                self._report_progress(0.8)

                records = delta.records
                result.previous_version = previous.version
                result.rows_inserted = delta.rows_inserted
                result.rows_updated = delta.rows_updated
                result.rows_deleted = delta.rows_deleted
                result.rows_unchanged = delta.rows_unchanged

            result.path = assembler.write(records, out_path)
            result.records_written = len(records)
        finally:
            store.clear()

        self._report_progress(1.0)
        logger.info(
            f"Exported {report.full_sender_id} ({op_type.value}): "
            f"{result.records_written} records to {result.path}"
        )
        return result
