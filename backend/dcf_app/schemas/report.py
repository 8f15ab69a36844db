"""Pydantic schemas for report endpoints."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from dcf_app.models.enums import DatasetStatus, OperationType


class ReportSchema(BaseModel):
    """A locally stored report version."""

    report_id: int
    sender_dataset_id: str
    version: str
    dataset_id: str | None
    status: DatasetStatus
    dc_code: str | None = None
    dc_table: str | None = None
    org_code: str | None = None
    message_id: str | None = None
    created_at: datetime | None = None

    model_config = {"from_attributes": True}


class ReportRowSchema(BaseModel):
    """One record of a stored report version."""

    row_id: str
    fields: dict[str, Any]
    sort_order: int

    model_config = {"from_attributes": True}


class ImportRequest(BaseModel):
    """Request body for importing a report from the DCF."""

    sender_dataset_id: str = Field(..., description='Sender id, e.g. "FR1704"')


class ImportResultSchema(BaseModel):
    """Summary of an import."""

    sender_dataset_id: str
    versions_processed: list[str]
    report_ids: list[int]
    rows_published: int
    replaced_report_ids: list[int]


class ExportRequest(BaseModel):
    """Request body for exporting a report as a DCF message."""

    op_type: OperationType | None = Field(
        None, description="Operation to request (default: from the report status)"
    )


class AvailableReportSchema(BaseModel):
    """A report held by the DCF that can be imported (newest version)."""

    sender_dataset_id: str
    version: str
    dataset_id: str
    status: DatasetStatus

    model_config = {"from_attributes": True}
