"""Report and ReportRow models: locally published report versions.

A Report is one version of a regulatory report (``FR1704`` version ``"02"``);
its ReportRows are the current records of that version after the amendments
received from the data collection service have been applied.
"""

from typing import Any

from sqlalchemy import (
    JSON,
    ForeignKey,
    Index,
    Integer,
    String,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from dcf_app.models.base import Base, TimestampMixin, enum_column
from dcf_app.models.enums import DatasetStatus


class Report(Base, TimestampMixin):
    """One version of a report, as stored locally.

    Identified by (sender_dataset_id, version). ``version`` is the two-digit,
    zero-padded version code; ``"00"`` is the baseline.
    """

    __tablename__ = "report"

    report_id: Mapped[int] = mapped_column(primary_key=True)
    sender_dataset_id: Mapped[str] = mapped_column(
        String(50), nullable=False, doc='Sender id without version, e.g. "FR1704"'
    )
    version: Mapped[str] = mapped_column(
        String(2), nullable=False, doc='Two-digit version, e.g. "00", "01"'
    )
    dataset_id: Mapped[str | None] = mapped_column(
        String(50), nullable=True, doc="Identifier assigned by the DCF"
    )
    status: Mapped[str] = mapped_column(
        enum_column(DatasetStatus, "dataset_status_enum"),
        nullable=False,
        default=DatasetStatus.DRAFT.value,
    )
    dc_code: Mapped[str | None] = mapped_column(String(100), nullable=True)
    dc_table: Mapped[str | None] = mapped_column(String(100), nullable=True)
    org_code: Mapped[str | None] = mapped_column(String(100), nullable=True)
    message_id: Mapped[str | None] = mapped_column(String(100), nullable=True)

    rows: Mapped[list["ReportRow"]] = relationship(
        back_populates="report",
        cascade="all, delete-orphan",
        order_by="ReportRow.sort_order",
    )

    __table_args__ = (
        # Not unique: an import stores the new copy of a version before
        # deleting the copy it replaces
        Index("idx_report_sender_version", "sender_dataset_id", "version"),
    )

    @property
    def full_sender_id(self) -> str:
        return f"{self.sender_dataset_id}.{self.version}"

    def __repr__(self) -> str:
        return f"<Report({self.full_sender_id}, status={self.status})>"


class ReportRow(Base, TimestampMixin):
    """One record of a report version (field -> value)."""

    __tablename__ = "report_row"

    report_row_id: Mapped[int] = mapped_column(primary_key=True)
    report_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("report.report_id", ondelete="CASCADE"),
        nullable=False,
    )
    row_id: Mapped[str] = mapped_column(
        String(100), nullable=False, doc="Natural key of the record"
    )
    fields: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    report: Mapped["Report"] = relationship(back_populates="rows")

    __table_args__ = (Index("idx_report_row_report", "report_id"),)

    def __repr__(self) -> str:
        return f"<ReportRow(report={self.report_id}, row_id={self.row_id!r})>"
