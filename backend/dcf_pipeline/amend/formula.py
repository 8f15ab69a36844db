"""Formula evaluation seam used before records are staged for export.

Derived field values are computed by an external formula evaluator. Lookups
it performs (keyed by table, column and field) are memoized in a FormulaMemo
that is created per operation and passed into every evaluate() call, so two
imports or exports never observe each other's cached values.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Protocol

logger = logging.getLogger(__name__)

MemoKey = tuple[str, str, str]  # (table, column, field)


class FormulaMemo:
    """Memo table for formula lookups, scoped to one operation."""

    def __init__(self) -> None:
        self._values: dict[MemoKey, str | None] = {}
        self.hits = 0
        self.misses = 0

    def get(self, table: str, column: str, field: str) -> str | None:
        key = (table, column, field)
        if key in self._values:
            self.hits += 1
            return self._values[key]
        self.misses += 1
        return None

    def put(self, table: str, column: str, field: str, value: str | None) -> None:
        self._values[(table, column, field)] = value

    def get_or_compute(
        self,
        table: str,
        column: str,
        field: str,
        compute: Callable[[], str | None],
    ) -> str | None:
        """Return the memoized value, computing and storing it on a miss."""
        if (table, column, field) in self:
            return self.get(table, column, field)
        self.misses += 1
        value = compute()
        self.put(table, column, field, value)
        return value

    def __contains__(self, key: object) -> bool:
        return key in self._values

    def __len__(self) -> int:
        return len(self._values)


class FormulaEvaluator(Protocol):
    """Recomputes the derived fields of a row before it is serialized."""

    def evaluate(self, row: dict[str, str], memo: FormulaMemo) -> dict[str, str]:
        ...


class IdentityEvaluator:
    """Evaluator for reports without derived fields: returns the row as is."""

    def evaluate(self, row: dict[str, str], memo: FormulaMemo) -> dict[str, str]:
        return dict(row)


def evaluate_rows(
    rows: list[dict[str, str]],
    evaluator: FormulaEvaluator,
    memo: FormulaMemo | None = None,
) -> list[dict[str, str]]:
    """Evaluate every row with one shared memo (a fresh one if not given)."""
    memo = memo if memo is not None else FormulaMemo()
    evaluated = [evaluator.evaluate(row, memo) for row in rows]
    logger.debug(
        f"Evaluated {len(rows)} rows (memo: {len(memo)} entries, "
        f"{memo.hits} hits, {memo.misses} misses)"
    )
    return evaluated
