"""Report endpoints: browse stored versions, import from and export to the DCF."""

from pathlib import Path

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import Response
from sqlalchemy.ext.asyncio import AsyncSession

from dcf_app.config import settings
from dcf_app.crud.report import get_all_reports, get_report_by_id, get_report_row_schemas
from dcf_app.models.base import get_async_session
from dcf_app.schemas.report import (
    AvailableReportSchema,
    ExportRequest,
    ImportRequest,
    ImportResultSchema,
    ReportRowSchema,
    ReportSchema,
)
from dcf_pipeline.amend.exceptions import (
    AmendError,
    DownloadError,
    EmptyDeltaError,
    MissingPreviousVersionError,
    ParseError,
)
from dcf_pipeline.amend.replayer import DatasetSource
from dcf_pipeline.dcf.client import DCFClient
from dcf_pipeline.reports.export_service import ReportExportService
from dcf_pipeline.reports.import_service import ReportImportService

router = APIRouter()

_ERROR_STATUS: list[tuple[type[AmendError], int]] = [
    (MissingPreviousVersionError, 404),
    (EmptyDeltaError, 409),
    (DownloadError, 502),
    (ParseError, 422),
]


def _http_error(error: AmendError) -> HTTPException:
    for error_class, status_code in _ERROR_STATUS:
        if isinstance(error, error_class):
            return HTTPException(status_code=status_code, detail=str(error))
    return HTTPException(status_code=500, detail=str(error))


def get_dataset_source() -> DCFClient:
    """Dependency for the DCF connection."""
    return DCFClient()


@router.get("")
async def list_reports(
    session: AsyncSession = Depends(get_async_session),
) -> list[ReportSchema]:
    """List every stored report version."""
    return await get_all_reports(session)


@router.get("/available")
async def list_available_reports(
    source: DCFClient = Depends(get_dataset_source),
) -> list[AvailableReportSchema]:
    """List the reports the DCF holds that can be imported."""
    try:
        available = await source.list_available()
    except AmendError as e:
        raise _http_error(e) from e
    return [AvailableReportSchema.model_validate(d) for d in available]


@router.get("/{report_id}")
async def get_report(
    report_id: int,
    session: AsyncSession = Depends(get_async_session),
) -> ReportSchema:
    """Get a stored report version."""
    result = await get_report_by_id(session, report_id)
    if result is None:
        raise HTTPException(status_code=404, detail=f"Report {report_id} not found")
    return result


@router.get("/{report_id}/rows")
async def list_report_rows(
    report_id: int,
    session: AsyncSession = Depends(get_async_session),
) -> list[ReportRowSchema]:
    """Get the rows of a stored report version."""
    if await get_report_by_id(session, report_id) is None:
        raise HTTPException(status_code=404, detail=f"Report {report_id} not found")
    return await get_report_row_schemas(session, report_id)


@router.post("/import")
async def import_report(
    request: ImportRequest,
    session: AsyncSession = Depends(get_async_session),
    source: DatasetSource = Depends(get_dataset_source),
) -> ImportResultSchema:
    """Import a report from the DCF, replacing its stored versions."""
    service = ReportImportService(
        session,
        source,
        row_id_field=settings.row_id_field,
        version_field=settings.version_field,
    )
    try:
        result = await service.import_report(request.sender_dataset_id)
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    except AmendError as e:
        raise _http_error(e) from e

    return ImportResultSchema(
        sender_dataset_id=result.sender_dataset_id,
        versions_processed=result.versions_processed,
        report_ids=result.report_ids,
        rows_published=result.rows_published,
        replaced_report_ids=result.replaced_report_ids,
    )


@router.post("/{report_id}/export")
async def export_report(
    report_id: int,
    request: ExportRequest | None = None,
    session: AsyncSession = Depends(get_async_session),
) -> Response:
    """Build the DCF message for a stored report version and return it."""
    op_type = request.op_type if request is not None else None
    out_path = Path(settings.export_dir) / f"report_{report_id}.xml"

    service = ReportExportService(session, settings.row_id_field)
    try:
        result = await service.export_report(report_id, out_path, op_type=op_type)
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    except AmendError as e:
        raise _http_error(e) from e

    return Response(
        content=result.path.read_bytes(),
        media_type="application/xml",
        headers={
            "Content-Disposition": f'attachment; filename="{result.path.name}"',
            "X-Records-Written": str(result.records_written),
        },
    )
