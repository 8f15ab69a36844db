"""In-memory staging area used by the import replay and the export delta.

Holds the records of the report currently being processed. During an export
it contains at most two snapshots (new and previous version); during an
import it contains the in-flight snapshot until the next publish boundary.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator
from dataclasses import dataclass

from dcf_app.models.enums import AmendType
from dcf_pipeline.amend.versions import version_number

logger = logging.getLogger(__name__)


@dataclass
class Record:
    """A staged record: natural key, version, serialized content."""

    row_id: str
    version: str  # "00", "01", ...
    content: str  # flat <tag>value</tag> fragment, no root element
    amend_type: AmendType | None = None
    nullified: bool = False

    @property
    def version_number(self) -> int:
        return version_number(self.version)

    def __repr__(self) -> str:
        tag = self.amend_type.value if self.amend_type else "-"
        return (
            f"Record(row_id={self.row_id!r}, version={self.version!r}, "
            f"amend_type={tag}, nullified={self.nullified}, "
            f"content={self.content[:30]!r})"
        )


class StagingStore:
    """Multiset of Records with add / scan / delete-by-predicate / clear.

    Not shared between operations: one store serves one in-flight import or
    export.
    """

    def __init__(self) -> None:
        self._records: list[Record] = []

    def add(self, record: Record) -> None:
        self._records.append(record)

    def extend(self, records: list[Record]) -> None:
        self._records.extend(records)

    def all(self) -> list[Record]:
        """Return the staged records in insertion order (a copy of the list)."""
        return list(self._records)

    def delete_where(self, predicate: Callable[[Record], bool]) -> int:
        """Delete every record matching ``predicate``. Returns how many."""
        kept = [r for r in self._records if not predicate(r)]
        removed = len(self._records) - len(kept)
        self._records = kept
        return removed

    def clear(self) -> None:
        logger.debug(f"Clearing {len(self._records)} staged records")
        self._records.clear()

    def snapshot(self, version: str) -> list[Record]:
        """Return the records of one version (compared numerically)."""
        wanted = version_number(version)
        return [r for r in self._records if r.version_number == wanted]

    def versions(self) -> list[str]:
        """Return the distinct staged versions, ascending."""
        seen = {r.version_number: r.version for r in self._records}
        return [seen[n] for n in sorted(seen)]

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[Record]:
        return iter(list(self._records))
