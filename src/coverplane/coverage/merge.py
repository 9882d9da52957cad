"""Coverage record merging with additive-hit semantics.

Each project's record reflects a distinct execution, so merging sums
evidence rather than taking a maximum:

- line[i] = sum(line[i] across records that instrument it)
- branch[j] = sum of evaluated hits; "never evaluated" only if no record evaluated it
- function[k].hits = sum across records, start line = lowest seen

A line absent from one record (not instrumented) and present with 0 hits
in another stays present with 0 hits. Disagreeing function start lines are
reported as MergeConflict diagnostics and never abort the merge.

Sums and minimums are commutative and associative, so the merged model does
not depend on record order.
"""

from collections.abc import Iterable

from coverplane.coverage.models import (
    CoverageRecord,
    FileCoverage,
    FunctionCoverage,
    MergeConflict,
    UnifiedCoverageModel,
)
from coverplane.coverage.paths import canonical_path
from coverplane.core.logging import get_logger

log = get_logger("coverage.merge")


def fold_file_into(target: FileCoverage, other: FileCoverage) -> None:
    """Add ``other``'s coverage into ``target`` in place."""
    for line, hits in other.lines.items():
        target.add_line(line, hits)

    for branch in other.branches.values():
        target.add_branch(branch)

    for name, func in other.functions.items():
        existing = target.functions.get(name)
        if existing is None:
            target.functions[name] = func
        else:
            target.functions[name] = FunctionCoverage(
                name=name,
                start_line=min(existing.start_line, func.start_line),
                hits=existing.hits + func.hits,
            )


def merge_file_coverage(
    files: Iterable[FileCoverage],
    conflicts: list[MergeConflict] | None = None,
) -> FileCoverage:
    """Merge FileCoverage objects for the same file into a new object.

    Args:
        files: FileCoverage objects to merge (must share a path).
        conflicts: Receives start-line disagreements, if given.

    Returns:
        Merged FileCoverage; inputs are not modified.
    """
    files_list = list(files)
    if not files_list:
        raise ValueError("Cannot merge empty file coverage list")

    path = files_list[0].path
    result = FileCoverage(path=path)
    start_lines: dict[str, set[int]] = {}

    for fc in files_list:
        fold_file_into(result, fc)
        for name, func in fc.functions.items():
            start_lines.setdefault(name, set()).add(func.start_line)

    if conflicts is not None:
        for name in sorted(start_lines):
            seen = sorted(start_lines[name])
            if len(seen) > 1:
                conflicts.append(
                    MergeConflict(
                        file=path,
                        line=seen[0],
                        detail=(
                            f"function {name!r} has start lines {seen}; keeping {seen[0]}"
                        ),
                    )
                )

    return result


def merge_records(records: Iterable[CoverageRecord]) -> UnifiedCoverageModel:
    """Merge per-project records into one unified model.

    Files are grouped by canonical path across all records. Merging zero
    records yields an empty model.
    """
    records_list = list(records)

    files_by_path: dict[str, list[FileCoverage]] = {}
    for record in records_list:
        for fc in record.files.values():
            path = canonical_path(fc.path)
            if path != fc.path:
                fc = _with_path(fc, path)
            files_by_path.setdefault(path, []).append(fc)

    conflicts: list[MergeConflict] = []
    merged_files = {
        path: merge_file_coverage(files_by_path[path], conflicts)
        for path in sorted(files_by_path)
    }

    for conflict in conflicts:
        log.warning(
            "merge_conflict",
            file=conflict.file,
            line=conflict.line,
            detail=conflict.detail,
        )

    log.debug(
        "records_merged",
        records=len(records_list),
        files=len(merged_files),
        conflicts=len(conflicts),
    )

    return UnifiedCoverageModel(
        files=merged_files,
        projects=tuple(sorted(r.project for r in records_list)),
        conflicts=conflicts,
    )


def merge(*records: CoverageRecord) -> UnifiedCoverageModel:
    """Convenience function to merge records as varargs."""
    return merge_records(records)


def _with_path(fc: FileCoverage, path: str) -> FileCoverage:
    return FileCoverage(
        path=path,
        lines=dict(fc.lines),
        branches=dict(fc.branches),
        functions=dict(fc.functions),
    )
