"""CRUD operations for locally stored report versions."""

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from dcf_app.models.report import Report, ReportRow
from dcf_app.schemas.report import ReportRowSchema, ReportSchema


async def get_all_reports(session: AsyncSession) -> list[ReportSchema]:
    """Return every stored report version, grouped by sender id."""
    stmt = select(Report).order_by(Report.sender_dataset_id, Report.version)
    result = await session.execute(stmt)
    return [ReportSchema.model_validate(r) for r in result.scalars().all()]


async def get_report(session: AsyncSession, report_id: int) -> Report | None:
    """Return the Report model for an id."""
    stmt = select(Report).where(Report.report_id == report_id)
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def get_report_by_id(
    session: AsyncSession, report_id: int
) -> ReportSchema | None:
    """Return a specific report version by ID."""
    report = await get_report(session, report_id)
    if report is None:
        return None
    return ReportSchema.model_validate(report)


async def get_report_versions(
    session: AsyncSession, sender_dataset_id: str
) -> list[Report]:
    """Return all stored versions of a report, oldest first."""
    stmt = (
        select(Report)
        .where(Report.sender_dataset_id == sender_dataset_id)
        .order_by(Report.version)
    )
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def get_previous_version(session: AsyncSession, report: Report) -> Report | None:
    """Return the closest stored version before ``report``, or None.

    Versions are compared numerically.
    """
    current = int(report.version)
    candidates = [
        r
        for r in await get_report_versions(session, report.sender_dataset_id)
        if int(r.version) < current
    ]
    if not candidates:
        return None
    return max(candidates, key=lambda r: int(r.version))


async def get_report_rows(session: AsyncSession, report_id: int) -> list[ReportRow]:
    """Return the rows of a report version in their stored order."""
    stmt = (
        select(ReportRow)
        .where(ReportRow.report_id == report_id)
        .order_by(ReportRow.sort_order, ReportRow.report_row_id)
    )
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def get_report_row_schemas(
    session: AsyncSession, report_id: int
) -> list[ReportRowSchema]:
    rows = await get_report_rows(session, report_id)
    return [ReportRowSchema.model_validate(r) for r in rows]


async def delete_reports(session: AsyncSession, report_ids: list[int]) -> int:
    """Delete report versions (and their rows). Returns the number deleted.

    Does not commit; the caller owns the transaction.
    """
    if not report_ids:
        return 0
    await session.execute(delete(ReportRow).where(ReportRow.report_id.in_(report_ids)))
    result = await session.execute(delete(Report).where(Report.report_id.in_(report_ids)))
    return result.rowcount or 0
