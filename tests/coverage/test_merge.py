"""Tests for the merge engine.

Covers:
- Additive hit counts for lines, branches, and functions
- Instrumented-with-zero-hits beats not-instrumented
- Order independence and the empty-record identity
- Start-line disagreement reported as MergeConflict
- Path canonicalization across records
"""

from __future__ import annotations

import itertools

import pytest

from coverplane.coverage import (
    BranchCoverage,
    CoverageRecord,
    FileCoverage,
    FunctionCoverage,
    UnifiedCoverageModel,
    merge,
    merge_file_coverage,
    merge_records,
)


def _fc(
    path: str,
    lines: dict[int, int] | None = None,
    functions: list[tuple[str, int, int]] | None = None,
    branches: list[tuple[int, int, int, int | None]] | None = None,
) -> FileCoverage:
    fc = FileCoverage(path=path, lines=dict(lines or {}))
    for name, start, hits in functions or []:
        fc.functions[name] = FunctionCoverage(name, start, hits)
    for line, block, branch, hits in branches or []:
        fc.add_branch(BranchCoverage(line, block, branch, hits))
    return fc


def _record(project: str, *files: FileCoverage) -> CoverageRecord:
    return CoverageRecord(project=project, files={f.path: f for f in files})


@pytest.fixture
def records() -> list[CoverageRecord]:
    a = _record(
        "a",
        _fc("src/a.rs", {1: 1, 2: 0}, [("a::f", 1, 1)], [(2, 0, 0, 1), (2, 0, 1, None)]),
        _fc("src/shared.rs", {10: 2}),
    )
    b = _record(
        "b",
        _fc("src/shared.rs", {10: 3, 11: 0}, [("shared::g", 10, 2)]),
        _fc("src/b.rs", {5: 0}),
    )
    c = _record(
        "c",
        _fc("src/a.rs", {2: 4, 3: 1}, [("a::f", 3, 2)], [(2, 0, 1, 0)]),
        _fc("src/shared.rs", {11: 1}, [("shared::g", 10, 1)]),
    )
    return [a, b, c]


class TestAdditivity:
    """Hit counts are summed, never maxed or overwritten."""

    def test_line_hits_are_summed(self) -> None:
        a = _record("A", _fc("f.x", {10: 2}))
        b = _record("B", _fc("f.x", {10: 3}))
        assert merge(a, b).files["f.x"].lines[10] == 5

    def test_instrumented_zero_beats_absent(self) -> None:
        a = _record("A", _fc("f.x", {10: 0}))
        b = _record("B", _fc("f.x", {11: 1}))
        lines = merge(a, b).files["f.x"].lines
        assert lines[10] == 0
        assert lines == {10: 0, 11: 1}

    def test_function_hits_summed_and_lowest_start_kept(
        self, records: list[CoverageRecord]
    ) -> None:
        model = merge_records(records)
        assert model.files["src/a.rs"].functions["a::f"] == FunctionCoverage("a::f", 1, 3)
        assert model.files["src/shared.rs"].functions["shared::g"] == FunctionCoverage(
            "shared::g", 10, 3
        )

    def test_branch_hits_follow_instrumented_wins(self, records: list[CoverageRecord]) -> None:
        branches = merge_records(records).files["src/a.rs"].branches
        assert branches[(2, 0, 0)].hits == 1
        # "-" in one record, 0 in another: evaluated wins
        assert branches[(2, 0, 1)].hits == 0

    def test_never_evaluated_everywhere_stays_none(self) -> None:
        a = _record("A", _fc("f.x", branches=[(1, 0, 0, None)]))
        b = _record("B", _fc("f.x", branches=[(1, 0, 0, None)]))
        assert merge(a, b).files["f.x"].branches[(1, 0, 0)].hits is None

    def test_two_project_scenario(self) -> None:
        p1 = _record("P1", _fc("src/a.rs", {1: 1}))
        p2 = _record("P2", _fc("src/a.rs", {1: 4}), _fc("src/b.rs", {5: 0}))

        model = merge(p1, p2)

        assert model.files["src/a.rs"].lines == {1: 5}
        assert model.files["src/b.rs"].lines == {5: 0}
        assert model.projects == ("P1", "P2")


class TestOrderIndependence:
    """merge() is commutative and associative."""

    def test_commutative_over_all_permutations(self, records: list[CoverageRecord]) -> None:
        expected = merge_records(records)
        for perm in itertools.permutations(records):
            assert merge_records(perm) == expected

    def test_associative(self, records: list[CoverageRecord]) -> None:
        a, b, c = records
        left = merge(merge(a, b).as_record(), c)
        right = merge(a, merge(b, c).as_record())
        assert left == right == merge(a, b, c)

    def test_empty_record_is_identity(self, records: list[CoverageRecord]) -> None:
        a = records[0]
        assert merge(a, CoverageRecord(project="empty")) == merge(a)

    def test_zero_records_yield_empty_model(self) -> None:
        model = merge_records([])
        assert model == UnifiedCoverageModel()
        assert model.files == {}
        assert model.conflicts == []

    def test_merged_paths_are_sorted(self, records: list[CoverageRecord]) -> None:
        assert list(merge_records(records).files) == ["src/a.rs", "src/b.rs", "src/shared.rs"]

    def test_inputs_are_not_modified(self, records: list[CoverageRecord]) -> None:
        shared = [r.files["src/shared.rs"] for r in records if "src/shared.rs" in r.files]
        before = [dict(fc.lines) for fc in shared]
        merge_records(records)
        after = [dict(fc.lines) for fc in shared]
        assert before == after


class TestConflicts:
    """Start-line disagreements are diagnostics, not failures."""

    def test_conflicting_start_lines_flagged(self, records: list[CoverageRecord]) -> None:
        model = merge_records(records)
        assert len(model.conflicts) == 1
        conflict = model.conflicts[0]
        assert conflict.file == "src/a.rs"
        assert conflict.line == 1
        assert "a::f" in conflict.detail
        assert "keeping 1" in conflict.detail

    def test_agreeing_start_lines_not_flagged(self) -> None:
        a = _record("A", _fc("f.x", functions=[("f", 3, 1)]))
        b = _record("B", _fc("f.x", functions=[("f", 3, 0)]))
        assert merge(a, b).conflicts == []

    def test_conflicts_do_not_affect_equality(self, records: list[CoverageRecord]) -> None:
        model = merge_records(records)
        clean = UnifiedCoverageModel(files=model.files)
        assert model == clean


class TestPaths:
    """Files are grouped by canonical path across records."""

    def test_spellings_of_one_path_are_grouped(self) -> None:
        a = _record("A", _fc("./src/a.rs", {1: 1}))
        b = _record("B", _fc("src\\a.rs", {1: 2}))
        model = merge(a, b)
        assert list(model.files) == ["src/a.rs"]
        assert model.files["src/a.rs"].lines == {1: 3}
        assert model.files["src/a.rs"].path == "src/a.rs"


class TestMergeFileCoverage:
    """Lower-level per-file merge."""

    def test_empty_list_rejected(self) -> None:
        with pytest.raises(ValueError, match="empty"):
            merge_file_coverage([])

    def test_result_is_a_new_object(self) -> None:
        first = _fc("f.x", {1: 1})
        merged = merge_file_coverage([first, _fc("f.x", {1: 1})])
        assert merged is not first
        assert first.lines == {1: 1}
        assert merged.lines == {1: 2}
