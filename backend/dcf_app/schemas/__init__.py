"""Pydantic schemas module.

This module contains Pydantic models used for:
- API request/response validation
- Data transfer between layers (pipeline, core, API)

Naming convention:
- Schema suffix to distinguish from SQLAlchemy models
- Report* prefix for locally stored report entities
"""

from dcf_app.schemas.message import (
    DatasetMetadata,
    HeaderSchema,
    MessageConfig,
    OperationSchema,
)
from dcf_app.schemas.report import (
    AvailableReportSchema,
    ExportRequest,
    ImportRequest,
    ImportResultSchema,
    ReportRowSchema,
    ReportSchema,
)

__all__ = [
    # Message blocks
    "DatasetMetadata",
    "HeaderSchema",
    "MessageConfig",
    "OperationSchema",
    # Reports
    "AvailableReportSchema",
    "ExportRequest",
    "ImportRequest",
    "ImportResultSchema",
    "ReportRowSchema",
    "ReportSchema",
]
