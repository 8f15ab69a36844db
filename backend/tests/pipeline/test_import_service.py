"""Tests for the report import service."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from dcf_app.models.enums import DatasetStatus
from dcf_app.models.report import Report
from dcf_app.schemas.message import DatasetMetadata, HeaderSchema, OperationSchema
from dcf_pipeline.amend.exceptions import DownloadError
from dcf_pipeline.amend.replayer import ReplayResult
from dcf_pipeline.dcf.datasets import DatasetDescriptor
from dcf_pipeline.reports.import_service import ReportImportService, SqlReportSink

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _make_descriptor(
    sender_id: str = "FR1704.01", status: DatasetStatus = DatasetStatus.VALID
) -> DatasetDescriptor:
    return DatasetDescriptor(dataset_id="12", sender_id=sender_id, status=status)


def _make_mock_session() -> AsyncMock:
    session = AsyncMock()
    session.add = MagicMock()
    return session


def _make_mock_source(versions: list[DatasetDescriptor] | None = None) -> MagicMock:
    source = MagicMock()
    source.list_versions = AsyncMock(
        return_value=versions if versions is not None else [_make_descriptor()]
    )
    return source


def _make_stored_report(report_id: int, version: str) -> MagicMock:
    report = MagicMock()
    report.report_id = report_id
    report.version = version
    return report


def _make_service(
    session: AsyncMock, source: MagicMock | None = None
) -> ReportImportService:
    return ReportImportService(
        session,
        source or _make_mock_source(),
        row_id_field="resId",
        version_field="senderDatasetId",
    )


# ---------------------------------------------------------------------------
# SqlReportSink
# ---------------------------------------------------------------------------


class TestSqlReportSink:
    @pytest.mark.asyncio
    async def test_publish_creates_report_with_rows(self) -> None:
        session = _make_mock_session()
        added: list[Report] = []
        session.add.side_effect = added.append

        async def _flush() -> None:
            added[0].report_id = 7

        session.flush.side_effect = _flush
        metadata = DatasetMetadata(
            header=HeaderSchema(sender_message_id="MSG_1"),
            operation=OperationSchema(dc_code="DC", dc_table="TBL", org_code="ORG"),
        )
        rows = [{"resId": "R1", "value": "a"}, {"resId": "R2", "value": "b"}]

        publication_id = await SqlReportSink(session, "resId").publish(
            _make_descriptor(), metadata, rows
        )

        assert publication_id == 7
        report = added[0]
        assert report.sender_dataset_id == "FR1704"
        assert report.version == "01"
        assert report.dataset_id == "12"
        assert report.status == DatasetStatus.VALID.value
        assert report.dc_code == "DC"
        assert report.dc_table == "TBL"
        assert report.message_id == "MSG_1"
        assert [r.row_id for r in report.rows] == ["R1", "R2"]
        assert [r.sort_order for r in report.rows] == [0, 1]
        assert report.rows[1].fields == {"resId": "R2", "value": "b"}

    @pytest.mark.asyncio
    async def test_discard_deletes_reports(self) -> None:
        session = _make_mock_session()

        with patch(
            "dcf_pipeline.reports.import_service.delete_reports",
            new_callable=AsyncMock,
            return_value=2,
        ) as mock_delete:
            await SqlReportSink(session, "resId").discard([3, 4])

        mock_delete.assert_awaited_once_with(session, [3, 4])
        session.flush.assert_awaited()


# ---------------------------------------------------------------------------
# ReportImportService
# ---------------------------------------------------------------------------


class TestReportImportService:
    @pytest.mark.asyncio
    async def test_no_versions_raises(self) -> None:
        session = _make_mock_session()
        service = _make_service(session, _make_mock_source([]))

        with pytest.raises(ValueError):
            await service.import_report("FR1704")

        session.commit.assert_not_awaited()

    @pytest.mark.asyncio
    @patch("dcf_pipeline.reports.import_service.delete_reports", new_callable=AsyncMock)
    @patch(
        "dcf_pipeline.reports.import_service.get_report_versions",
        new_callable=AsyncMock,
    )
    @patch("dcf_pipeline.reports.import_service.VersionReplayer")
    async def test_success_replaces_previous_versions(
        self,
        mock_replayer_cls: MagicMock,
        mock_get_versions: AsyncMock,
        mock_delete: AsyncMock,
    ) -> None:
        session = _make_mock_session()
        mock_get_versions.return_value = [
            _make_stored_report(1, "00"),
            _make_stored_report(2, "01"),
        ]
        replayer = mock_replayer_cls.return_value
        replayer.replay = AsyncMock(
            return_value=ReplayResult(
                sender_dataset_id="FR1704",
                versions_processed=["00", "01"],
                publication_ids=[10, 11],
                rows_published=5,
            )
        )

        result = await _make_service(session).import_report("FR1704")

        assert result.report_ids == [10, 11]
        assert result.replaced_report_ids == [1, 2]
        assert result.rows_published == 5
        assert result.versions_processed == ["00", "01"]
        mock_delete.assert_awaited_once_with(session, [1, 2])
        session.commit.assert_awaited_once()

    @pytest.mark.asyncio
    @patch("dcf_pipeline.reports.import_service.delete_reports", new_callable=AsyncMock)
    @patch(
        "dcf_pipeline.reports.import_service.get_report_versions",
        new_callable=AsyncMock,
    )
    @patch("dcf_pipeline.reports.import_service.VersionReplayer")
    async def test_failure_aborts_and_keeps_previous_versions(
        self,
        mock_replayer_cls: MagicMock,
        mock_get_versions: AsyncMock,
        mock_delete: AsyncMock,
    ) -> None:
        session = _make_mock_session()
        mock_get_versions.return_value = [_make_stored_report(1, "00")]
        replayer = mock_replayer_cls.return_value
        replayer.replay = AsyncMock(side_effect=DownloadError("boom", dataset_id="12"))
        replayer.abort = AsyncMock()

        with pytest.raises(DownloadError):
            await _make_service(session).import_report("FR1704")

        replayer.abort.assert_awaited_once()
        session.commit.assert_awaited_once()
        mock_delete.assert_not_awaited()

    @pytest.mark.asyncio
    @patch("dcf_pipeline.reports.import_service.delete_reports", new_callable=AsyncMock)
    @patch(
        "dcf_pipeline.reports.import_service.get_report_versions",
        new_callable=AsyncMock,
    )
    @patch("dcf_pipeline.reports.import_service.VersionReplayer")
    async def test_nothing_published_keeps_previous_versions(
        self,
        mock_replayer_cls: MagicMock,
        mock_get_versions: AsyncMock,
        mock_delete: AsyncMock,
    ) -> None:
        session = _make_mock_session()
        mock_get_versions.return_value = [_make_stored_report(1, "00")]
        mock_replayer_cls.return_value.replay = AsyncMock(
            return_value=ReplayResult(sender_dataset_id="FR1704")
        )

        result = await _make_service(session).import_report("FR1704")

        assert result.report_ids == []
        assert result.replaced_report_ids == []
        mock_delete.assert_not_awaited()
