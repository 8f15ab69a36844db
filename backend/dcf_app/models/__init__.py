"""SQLAlchemy models for the DCF Report Tool."""

from dcf_app.models.base import (
    Base,
    TimestampMixin,
    async_session_maker,
    get_async_session,
    init_db,
)
from dcf_app.models.enums import AmendType, DatasetStatus, OperationType
from dcf_app.models.report import Report, ReportRow

__all__ = [
    # Base
    "Base",
    "TimestampMixin",
    "async_session_maker",
    "get_async_session",
    "init_db",
    # Enums
    "AmendType",
    "DatasetStatus",
    "OperationType",
    # Reports
    "Report",
    "ReportRow",
]
