"""Structured coverage summaries.

Transforms merged coverage into plain dicts for ``summary.json`` next to the
rendered report and into the one-line text used by the run summary.

Output schema for build_summary:
{
    "summary": {
        "total_files": int,
        "total_lines": int,
        "covered_lines": int,
        "line_coverage_percent": float,
        "total_functions": int,           # only when functions exist
        "covered_functions": int,
        "function_coverage_percent": float,
        "total_branches": int,            # only when branches exist
        "covered_branches": int,
        "branch_coverage_percent": float
    },
    "projects": [str, ...],
    "files": [
        {
            "path": str,
            "total_lines": int,
            "covered_lines": int,
            "coverage_percent": float,
            "missed_lines": [int, ...]
        },
        ...
    ]
}
"""

from typing import Any

from coverplane.coverage.models import UnifiedCoverageModel


def _percent(hit: int, found: int) -> float:
    return round(hit / found * 100.0, 2) if found else 100.0


def compute_file_stats(model: UnifiedCoverageModel) -> list[dict[str, Any]]:
    """Compute per-file coverage statistics, sorted by path."""
    file_stats = []
    for path in sorted(model.files):
        fc = model.files[path]
        file_stats.append(
            {
                "path": path,
                "total_lines": fc.lines_found,
                "covered_lines": fc.lines_hit,
                "coverage_percent": _percent(fc.lines_hit, fc.lines_found),
                "missed_lines": fc.uncovered_lines,
            }
        )
    return file_stats


def build_summary(
    model: UnifiedCoverageModel,
    *,
    include_files: bool = True,
    max_missed_lines: int = 20,
) -> dict[str, Any]:
    """Build a structured coverage summary from a merged model.

    Args:
        model: The merged model to summarize.
        include_files: Whether to include per-file details.
        max_missed_lines: Max missed lines to list per file.

    Returns:
        Structured dict suitable for JSON serialization.
    """
    stats = model.summary

    summary_dict: dict[str, Any] = {
        "total_files": stats.files,
        "total_lines": stats.lines_found,
        "covered_lines": stats.lines_hit,
        "line_coverage_percent": _percent(stats.lines_hit, stats.lines_found),
    }

    if stats.functions_found:
        summary_dict["total_functions"] = stats.functions_found
        summary_dict["covered_functions"] = stats.functions_hit
        summary_dict["function_coverage_percent"] = _percent(
            stats.functions_hit, stats.functions_found
        )

    if stats.branches_found:
        summary_dict["total_branches"] = stats.branches_found
        summary_dict["covered_branches"] = stats.branches_hit
        summary_dict["branch_coverage_percent"] = _percent(
            stats.branches_hit, stats.branches_found
        )

    result: dict[str, Any] = {
        "summary": summary_dict,
        "projects": list(model.projects),
    }

    if include_files:
        file_stats = compute_file_stats(model)
        for fs in file_stats:
            missed = fs["missed_lines"]
            if len(missed) > max_missed_lines:
                fs["missed_lines"] = missed[:max_missed_lines]
                fs["missed_lines_truncated"] = True
        result["files"] = file_stats

    return result


def build_text_summary(model: UnifiedCoverageModel) -> str:
    """Concise one-line summary for display contexts."""
    stats = model.summary
    if stats.lines_found == 0:
        return "No coverage data"
    percent = stats.lines_hit / stats.lines_found * 100.0
    return f"Coverage: {percent:.1f}% ({stats.lines_hit}/{stats.lines_found} lines)"
