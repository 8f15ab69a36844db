"""Tests for the per-operation formula memo."""

from dcf_pipeline.amend.formula import FormulaMemo, IdentityEvaluator, evaluate_rows


class _LookupEvaluator:
    """Fills "label" from a code lookup, memoized per (table, column, field)."""

    def __init__(self) -> None:
        self.lookups = 0
        self.memos: list[FormulaMemo] = []

    def _lookup(self, code: str) -> str:
        self.lookups += 1
        return f"label-{code}"

    def evaluate(self, row: dict[str, str], memo: FormulaMemo) -> dict[str, str]:
        self.memos.append(memo)
        code = row["code"]
        label = memo.get_or_compute(
            "catalogue", code, "label", lambda: self._lookup(code)
        )
        return {**row, "label": label or ""}


class TestFormulaMemo:
    def test_get_miss_then_hit(self) -> None:
        memo = FormulaMemo()

        assert memo.get("t", "c", "f") is None
        memo.put("t", "c", "f", "value")

        assert memo.get("t", "c", "f") == "value"
        assert memo.misses == 1
        assert memo.hits == 1
        assert ("t", "c", "f") in memo
        assert len(memo) == 1

    def test_get_or_compute_computes_once(self) -> None:
        memo = FormulaMemo()
        calls: list[int] = []

        def compute() -> str:
            calls.append(1)
            return "v"

        assert memo.get_or_compute("t", "c", "f", compute) == "v"
        assert memo.get_or_compute("t", "c", "f", compute) == "v"
        assert len(calls) == 1

    def test_none_is_memoized(self) -> None:
        memo = FormulaMemo()
        calls: list[int] = []

        def compute() -> None:
            calls.append(1)
            return None

        memo.get_or_compute("t", "c", "f", compute)
        memo.get_or_compute("t", "c", "f", compute)

        assert len(calls) == 1


class TestEvaluateRows:
    def test_identity(self) -> None:
        rows = [{"resId": "R1"}]

        evaluated = evaluate_rows(rows, IdentityEvaluator())

        assert evaluated == rows
        assert evaluated[0] is not rows[0]

    def test_shared_memo_within_call(self) -> None:
        evaluator = _LookupEvaluator()
        rows = [{"code": "A"}, {"code": "A"}, {"code": "B"}]

        evaluated = evaluate_rows(rows, evaluator)

        assert [r["label"] for r in evaluated] == ["label-A", "label-A", "label-B"]
        assert evaluator.lookups == 2
        assert evaluator.memos[0] is evaluator.memos[-1]

    def test_fresh_memo_per_call(self) -> None:
        evaluator = _LookupEvaluator()

        evaluate_rows([{"code": "A"}], evaluator)
        evaluate_rows([{"code": "A"}], evaluator)

        assert evaluator.lookups == 2
        assert evaluator.memos[0] is not evaluator.memos[1]

    def test_explicit_memo_is_reused(self) -> None:
        evaluator = _LookupEvaluator()
        memo = FormulaMemo()

        evaluate_rows([{"code": "A"}], evaluator, memo)
        evaluate_rows([{"code": "A"}], evaluator, memo)

        assert evaluator.lookups == 1
        assert memo.hits == 1
