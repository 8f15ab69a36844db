"""CLI for importing and exporting DCF reports."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from dcf_app.config import settings
from dcf_app.models.enums import OperationType
from dcf_pipeline.amend.exceptions import AmendError

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(levelname)-5.5s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


def _print_progress(fraction: float) -> None:
    logger.debug(f"Progress: {fraction:.0%}")


async def init_db_command() -> int:
    """Create the local report tables."""
    from dcf_app.models.base import init_db

    await init_db()
    logger.info(f"Database ready at {settings.database_url}")
    return 0


async def list_versions_command(sender_dataset_id: str) -> int:
    """List the DCF versions of a report.

    Returns:
        0 on success, 1 on failure.
    """
    from dcf_pipeline.dcf.client import DCFClient
    from dcf_pipeline.dcf.datasets import (
        last_accepted_version,
        last_existing_version,
        sort_ascending,
    )

    client = DCFClient()
    try:
        versions = sort_ascending(await client.list_versions(sender_dataset_id))
    except AmendError as e:
        logger.error(f"Failed to list versions of {sender_dataset_id}: {e}")
        return 1

    print(f"\nReport {sender_dataset_id}: {len(versions)} versions\n")
    for d in versions:
        print(f"  {d.sender_id:<14} {d.dataset_id:<12} {d.status.value}")
    print(f"\n  Last accepted version: {last_accepted_version(versions)}")
    print(f"  Last existing version: {last_existing_version(versions)}")
    return 0


async def available_command() -> int:
    """List the reports the DCF holds that can be imported.

    Returns:
        0 on success, 1 on failure.
    """
    from dcf_pipeline.dcf.client import DCFClient

    try:
        available = await DCFClient().list_available()
    except AmendError as e:
        logger.error(f"Failed to list available reports: {e}")
        return 1

    print(f"\n{len(available)} reports available for import\n")
    for d in available:
        print(f"  {d.sender_dataset_id:<10} v{d.version}  {d.dataset_id:<12} {d.status.value}")
    return 0


async def list_reports_command() -> int:
    """List the report versions stored locally."""
    from dcf_app.crud.report import get_all_reports
    from dcf_app.models.base import async_session_maker

    async with async_session_maker() as session:
        reports = await get_all_reports(session)

    print(f"\n{len(reports)} stored report versions\n")
    for r in reports:
        print(
            f"  [{r.report_id:>4}] {r.sender_dataset_id}.{r.version}  "
            f"{r.status.value:<20} dataset={r.dataset_id or '-'}"
        )
    return 0


async def import_report_command(sender_dataset_id: str) -> int:
    """Import a report from the DCF, replacing the stored versions.

    Returns:
        0 on success, 1 on failure.
    """
    from dcf_app.models.base import async_session_maker
    from dcf_pipeline.dcf.client import DCFClient
    from dcf_pipeline.reports.import_service import ReportImportService

    async with async_session_maker() as session:
        service = ReportImportService(
            session,
            DCFClient(),
            row_id_field=settings.row_id_field,
            version_field=settings.version_field,
            progress=_print_progress,
        )
        try:
            result = await service.import_report(sender_dataset_id)
        except (AmendError, ValueError) as e:
            logger.error(f"Failed to import {sender_dataset_id}: {e}")
            return 1

    logger.info(
        f"Imported {sender_dataset_id}: versions {', '.join(result.versions_processed)} "
        f"-> reports {result.report_ids} ({result.rows_published} rows, "
        f"{result.elapsed_seconds:.1f}s)"
    )
    return 0


async def export_report_command(
    report_id: int,
    out_path: Path | None = None,
    op_type: OperationType | None = None,
) -> int:
    """Write the DCF message for a stored report version.

    Returns:
        0 on success, 1 on failure.
    """
    from dcf_app.models.base import async_session_maker
    from dcf_pipeline.reports.export_service import ReportExportService

    out_path = out_path or Path(settings.export_dir) / f"report_{report_id}.xml"

    async with async_session_maker() as session:
        service = ReportExportService(
            session, settings.row_id_field, progress=_print_progress
        )
        try:
            result = await service.export_report(report_id, out_path, op_type=op_type)
        except (AmendError, LookupError, ValueError) as e:
            logger.error(f"Failed to export report {report_id}: {e}")
            return 1

    print(f"\nMessage written to {result.path}")
    print(f"  Operation:  {result.op_type.value}")
    print(f"  Records:    {result.records_written}")
    if result.previous_version is not None:
        print(f"  Against:    version {result.previous_version}")
        print(
            f"  Inserted {result.rows_inserted}, updated {result.rows_updated}, "
            f"deleted {result.rows_deleted}, unchanged {result.rows_unchanged}"
        )
    return 0


def diff_files_command(
    old_file: Path,
    new_file: Path,
    out_path: Path | None = None,
    verbose: bool = False,
) -> int:
    """Compute the amendment delta between two dataset files.

    Returns:
        0 on success, 1 on failure.
    """
    from dcf_app.schemas.message import MessageConfig
    from dcf_pipeline.amend.assembler import ReportAssembler
    from dcf_pipeline.amend.delta import compute_delta
    from dcf_pipeline.amend.record_codec import DatasetRecordParser
    from dcf_pipeline.amend.staging import StagingStore
    from dcf_pipeline.dcf.metadata import parse_dataset_metadata

    store = StagingStore()
    try:
        versions = []
        for path in (old_file, new_file):
            with DatasetRecordParser(
                path, settings.row_id_field, settings.version_field
            ) as parser:
                store.extend(parser.parse_all())
                versions.append(parser.dataset_version or "00")

        old_version, new_version = versions
        if old_version == new_version:
            logger.error(f"Both files hold version {old_version}")
            return 1

        delta = compute_delta(store, old_version, new_version)

        if out_path is not None:
            metadata = parse_dataset_metadata(new_file)
            config = MessageConfig(header=metadata.header, operation=metadata.operation)
            ReportAssembler(config).write(delta.records, out_path)
    except AmendError as e:
        logger.error(f"Failed to diff {old_file} and {new_file}: {e}")
        return 1

    print(f"\nDelta {old_version} -> {new_version}")
    print(f"  Inserted:  {delta.rows_inserted}")
    print(f"  Updated:   {delta.rows_updated}")
    print(f"  Deleted:   {delta.rows_deleted}")
    print(f"  Unchanged: {delta.rows_unchanged}")
    if verbose:
        print()
        for record in delta.records:
            tag = record.amend_type.value if record.amend_type else "I"
            print(f"  {tag} {record.row_id}")
    if out_path is not None:
        print(f"\nMessage written to {out_path}")
    return 0


def main() -> int:
    """Main entry point for CLI."""
    parser = argparse.ArgumentParser(description="DCF report import/export CLI")
    parser.add_argument(
        "--debug", action="store_true", help="Enable debug logging"
    )
    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    subparsers.add_parser("init-db", help="Create the local report tables")

    versions_parser = subparsers.add_parser(
        "versions", help="List the DCF versions of a report"
    )
    versions_parser.add_argument("sender_dataset_id", help='e.g. "FR1704"')

    subparsers.add_parser(
        "available", help="List the reports the DCF holds that can be imported"
    )

    subparsers.add_parser("list-reports", help="List stored report versions")

    import_parser = subparsers.add_parser(
        "import-report", help="Import a report from the DCF"
    )
    import_parser.add_argument("sender_dataset_id", help='e.g. "FR1704"')

    export_parser = subparsers.add_parser(
        "export-report", help="Write the DCF message for a stored report version"
    )
    export_parser.add_argument("report_id", type=int, help="Local report id")
    export_parser.add_argument(
        "--out",
        type=Path,
        default=None,
        help="Output file (default: <export_dir>/report_<id>.xml)",
    )
    export_parser.add_argument(
        "--op-type",
        choices=[op.value for op in OperationType if op != OperationType.NOT_SUPPORTED],
        default=None,
        help="Operation to request (default: derived from the report status)",
    )

    diff_parser = subparsers.add_parser(
        "diff-files", help="Compute the amendment delta between two dataset files"
    )
    diff_parser.add_argument("old_file", type=Path, help="Previous version file")
    diff_parser.add_argument("new_file", type=Path, help="New version file")
    diff_parser.add_argument(
        "--out", type=Path, default=None, help="Write the delta message here"
    )
    diff_parser.add_argument(
        "--verbose", "-v", action="store_true", help="List every delta record"
    )

    args = parser.parse_args()

    if args.debug:
        logging.getLogger().setLevel(logging.DEBUG)

    if args.command == "init-db":
        return asyncio.run(init_db_command())

    elif args.command == "versions":
        return asyncio.run(list_versions_command(args.sender_dataset_id))

    elif args.command == "available":
        return asyncio.run(available_command())

    elif args.command == "list-reports":
        return asyncio.run(list_reports_command())

    elif args.command == "import-report":
        return asyncio.run(import_report_command(args.sender_dataset_id))

    elif args.command == "export-report":
        op_type = OperationType(args.op_type) if args.op_type else None
        return asyncio.run(
            export_report_command(
                report_id=args.report_id,
                out_path=args.out,
                op_type=op_type,
            )
        )

    elif args.command == "diff-files":
        return diff_files_command(
            old_file=args.old_file,
            new_file=args.new_file,
            out_path=args.out,
            verbose=args.verbose,
        )

    else:
        parser.print_help()
        return 1


if __name__ == "__main__":
    sys.exit(main())
