"""Dataset descriptors returned by the data collection service.

A report sent several times exists upstream as several datasets, one per
version ("FR1704", "FR1704.01", "FR1704.02", ...). Each has a status; the
import replay needs the last ACCEPTED DWH version and the last version that
still exists (not deleted or rejected).
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any

from dcf_app.models.enums import DatasetStatus
from dcf_pipeline.amend.versions import split_sender_id, version_number

logger = logging.getLogger(__name__)

# Country code + year(2) + month(2), optional version: IT1704, FR1411.1, SP1512.01
VALID_SENDER_ID_PATTERN = re.compile(r"^[A-Za-z]{2}\d{4}(\.\d{1,2})?$")


@dataclass
class DatasetDescriptor:
    """One upstream version of a report."""

    dataset_id: str
    sender_id: str  # full sender id, e.g. "FR1704.01"
    status: DatasetStatus

    @property
    def sender_dataset_id(self) -> str:
        """Sender id without the version suffix ("FR1704")."""
        return split_sender_id(self.sender_id)[0]

    @property
    def version(self) -> str:
        return split_sender_id(self.sender_id)[1]

    @property
    def version_number(self) -> int:
        return version_number(self.version)

    @classmethod
    def from_api_response(cls, data: dict[str, Any]) -> DatasetDescriptor:
        """Create from a DCF dataset list item."""
        return cls(
            dataset_id=str(data.get("datasetId", "")),
            sender_id=str(data.get("senderDatasetId", "")),
            status=DatasetStatus.from_string(data.get("status")),
        )


def filter_by_sender_id(
    datasets: list[DatasetDescriptor], sender_dataset_id: str
) -> list[DatasetDescriptor]:
    """Keep the versions of one report (sender id compared without version)."""
    return [d for d in datasets if d.sender_dataset_id == sender_dataset_id]


def sort_ascending(datasets: list[DatasetDescriptor]) -> list[DatasetDescriptor]:
    """Sort by sender id, then numerically by version."""
    return sorted(datasets, key=lambda d: (d.sender_dataset_id, d.version_number))


def unique_versions(datasets: list[DatasetDescriptor]) -> list[DatasetDescriptor]:
    """Keep one dataset per (report, version number), preserving order.

    A version deleted or rejected upstream and then sent again is listed
    twice. The dataset that still exists wins; between equals, the one
    listed last.
    """
    chosen: dict[tuple[str, int], DatasetDescriptor] = {}
    for d in datasets:
        key = (d.sender_dataset_id, d.version_number)
        current = chosen.get(key)
        if current is not None:
            logger.warning(
                f"Version {d.sender_id} listed twice "
                f"({current.dataset_id}, {d.dataset_id})"
            )
            if current.status.is_existing and not d.status.is_existing:
                continue
        chosen[key] = d
    return list(chosen.values())


def last_accepted_version(datasets: list[DatasetDescriptor]) -> int | None:
    """Version number of the last ACCEPTED DWH dataset, None if none."""
    accepted = [
        d.version_number for d in datasets if d.status == DatasetStatus.ACCEPTED_DWH
    ]
    return max(accepted, default=None)


def last_existing_version(datasets: list[DatasetDescriptor]) -> int | None:
    """Version number of the last dataset not deleted/rejected, None if none."""
    existing = [d.version_number for d in datasets if d.status.is_existing]
    return max(existing, default=None)


def latest_versions(datasets: list[DatasetDescriptor]) -> list[DatasetDescriptor]:
    """Keep only the newest version of each report."""
    latest: dict[str, DatasetDescriptor] = {}
    for d in datasets:
        current = latest.get(d.sender_dataset_id)
        if current is None or d.version_number > current.version_number:
            latest[d.sender_dataset_id] = d
    return list(latest.values())


def downloadable_datasets(
    datasets: list[DatasetDescriptor],
) -> list[DatasetDescriptor]:
    """Reports that can be imported: downloadable status, valid sender id,
    newest version only."""
    candidates = [
        d
        for d in datasets
        if d.status.is_downloadable and VALID_SENDER_ID_PATTERN.match(d.sender_id)
    ]
    return latest_versions(candidates)
