"""Amendment delta between two staged versions of a report.

Given the previously submitted version and the version about to be
submitted, both staged in full, rewrites the staging area so that it holds
only what the data collection service needs to receive:

1. fold duplicates: rows whose content is identical in both versions are
   dropped entirely (unchanged, must not be resubmitted);
2. mark updated: rows present in both versions get ``<amType>U</amType>``
   appended to the new copy, and the old copy is dropped;
3. mark deleted: rows present only in the old version get
   ``<amType>D</amType>`` appended and are kept.

Rows present only in the new version are left untouched (inserts). The
passes must run in this order.
"""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field

from dcf_app.models.enums import AmendType
from dcf_pipeline.amend.exceptions import EmptyDeltaError
from dcf_pipeline.amend.record_codec import amend_marker
from dcf_pipeline.amend.staging import Record, StagingStore
from dcf_pipeline.amend.versions import version_number

logger = logging.getLogger(__name__)


@dataclass
class DeltaResult:
    """Records to submit for ``new_version`` relative to ``old_version``."""

    old_version: str
    new_version: str
    records: list[Record] = field(default_factory=list)
    rows_unchanged: int = 0
    rows_updated: int = 0
    rows_deleted: int = 0
    rows_inserted: int = 0


def _tag(record: Record, amend_type: AmendType) -> None:
    record.content = record.content + amend_marker(amend_type)
    record.amend_type = amend_type


def _warn_duplicate_keys(records: list[Record], version: str) -> None:
    counts = Counter(r.row_id for r in records)
    duplicates = sorted(k for k, n in counts.items() if n > 1)
    if duplicates:
        logger.warning(
            f"Version {version} has {len(duplicates)} duplicated row ids "
            f"(first: {duplicates[:5]})"
        )


def compute_delta(
    store: StagingStore, old_version: str, new_version: str
) -> DeltaResult:
    """Reduce a staging store holding two versions to their amendment delta.

    The store is modified in place and ends up holding exactly the returned
    records.

    Args:
        store: Staging store holding the full ``old_version`` and
            ``new_version`` snapshots (content already recomputed).
        old_version: Previously submitted version code, e.g. "01".
        new_version: Version about to be submitted, e.g. "02".

    Returns:
        DeltaResult whose records are the new-version rows (tagged U or
        untagged inserts) followed by the old rows tagged D.

    Raises:
        ValueError: If the store holds records of any other version.
        EmptyDeltaError: If nothing differs between the two versions.
    """
    old_n = version_number(old_version)
    new_n = version_number(new_version)

    def is_old(r: Record) -> bool:
        return r.version_number == old_n

    def is_new(r: Record) -> bool:
        return r.version_number == new_n

    stray = [r for r in store if not is_old(r) and not is_new(r)]
    if stray:
        raise ValueError(
            f"Staging holds versions {store.versions()}, expected only "
            f"{old_version} and {new_version}"
        )

    _warn_duplicate_keys(store.snapshot(old_version), old_version)
    _warn_duplicate_keys(store.snapshot(new_version), new_version)

    result = DeltaResult(old_version=old_version, new_version=new_version)

    # Pass 1: fold rows whose content did not change
    old_pairs = {(r.row_id, r.content) for r in store if is_old(r)}
    unchanged_ids = {
        r.row_id for r in store if is_new(r) and (r.row_id, r.content) in old_pairs
    }
    store.delete_where(lambda r: r.row_id in unchanged_ids)
    result.rows_unchanged = len(unchanged_ids)

    # Pass 2: rows still present in both versions were updated
    old_ids = {r.row_id for r in store if is_old(r)}
    updated_ids: set[str] = set()
    for record in store:
        if is_new(record) and record.row_id in old_ids:
            _tag(record, AmendType.UPDATE)
            updated_ids.add(record.row_id)
    store.delete_where(lambda r: is_old(r) and r.row_id in updated_ids)
    result.rows_updated = len(updated_ids)

    # Pass 3: rows left only in the old version were deleted
    new_ids = {r.row_id for r in store if is_new(r)}
    for record in store:
        if is_old(record) and record.row_id not in new_ids:
            _tag(record, AmendType.DELETE)
            result.rows_deleted += 1

    new_records = [r for r in store if is_new(r)]
    deleted_records = [r for r in store if is_old(r)]
    result.rows_inserted = sum(1 for r in new_records if r.amend_type is None)
    result.records = new_records + deleted_records

    if not result.records:
        raise EmptyDeltaError(old_version, new_version)

    logger.info(
        f"Delta {old_version} -> {new_version}: "
        f"+{result.rows_inserted} ~{result.rows_updated} "
        f"-{result.rows_deleted} ={result.rows_unchanged}"
    )
    return result
