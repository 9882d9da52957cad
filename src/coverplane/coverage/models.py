"""Unified coverage data model.

File-centric model: a record maps workspace-relative paths to per-file
coverage. Line hit counts live in a ``dict[int, int]`` so line numbers are
unique by construction; a line absent from the dict is "not instrumented",
which is distinct from a line present with 0 hits.
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field


class CoverageParseError(Exception):
    """Malformed coverage artifact.

    Carries the artifact name and the 1-based line number of the offending
    entry when one is known.
    """

    def __init__(
        self,
        message: str,
        *,
        artifact: str | None = None,
        line_number: int | None = None,
    ) -> None:
        self.artifact = artifact
        self.line_number = line_number
        self.reason = message
        location = artifact or "<input>"
        if line_number is not None:
            location = f"{location}:{line_number}"
        super().__init__(f"{location}: {message}")


@dataclass(frozen=True, slots=True)
class LineCoverage:
    """Hit count for one instrumented line."""

    line: int
    hits: int


@dataclass(frozen=True, slots=True)
class BranchCoverage:
    """Branch coverage at a specific line.

    ``hits`` is None when the enclosing block was never evaluated (lcov ``-``),
    which is weaker information than an evaluated branch with 0 hits.
    """

    line: int
    block_id: int
    branch_id: int
    hits: int | None

    @property
    def key(self) -> tuple[int, int, int]:
        return (self.line, self.block_id, self.branch_id)


@dataclass(frozen=True, slots=True)
class FunctionCoverage:
    """Function/method coverage, keyed by canonical symbol name."""

    name: str
    start_line: int
    hits: int


@dataclass(slots=True)
class FileCoverage:
    """Coverage data for a single file.

    Line numbers are 1-based to match source file conventions.
    """

    path: str  # workspace-relative POSIX path
    lines: dict[int, int] = field(default_factory=dict)  # line_number → hit_count
    branches: dict[tuple[int, int, int], BranchCoverage] = field(default_factory=dict)
    functions: dict[str, FunctionCoverage] = field(default_factory=dict)  # name → coverage

    def line_entries(self) -> Iterator[LineCoverage]:
        """Yield line coverage in ascending line order."""
        for line in sorted(self.lines):
            yield LineCoverage(line=line, hits=self.lines[line])

    def function_entries(self) -> list[FunctionCoverage]:
        """Functions ordered by start line, then name."""
        return sorted(self.functions.values(), key=lambda f: (f.start_line, f.name))

    def branch_entries(self) -> list[BranchCoverage]:
        return [self.branches[key] for key in sorted(self.branches)]

    def add_line(self, line: int, hits: int) -> None:
        """Record hits for a line, summing with any existing entry."""
        self.lines[line] = self.lines.get(line, 0) + hits

    def add_branch(self, branch: BranchCoverage) -> None:
        existing = self.branches.get(branch.key)
        if existing is None:
            self.branches[branch.key] = branch
            return
        self.branches[branch.key] = BranchCoverage(
            line=branch.line,
            block_id=branch.block_id,
            branch_id=branch.branch_id,
            hits=add_branch_hits(existing.hits, branch.hits),
        )

    @property
    def lines_found(self) -> int:
        """Total number of instrumented lines."""
        return len(self.lines)

    @property
    def lines_hit(self) -> int:
        """Number of lines with at least one hit."""
        return sum(1 for hits in self.lines.values() if hits > 0)

    @property
    def line_rate(self) -> float:
        """Fraction of lines covered (0.0 to 1.0)."""
        if not self.lines:
            return 0.0
        return self.lines_hit / len(self.lines)

    @property
    def uncovered_lines(self) -> list[int]:
        """Sorted list of line numbers with zero hits."""
        return sorted(line for line, hits in self.lines.items() if hits == 0)

    @property
    def branches_found(self) -> int:
        return len(self.branches)

    @property
    def branches_hit(self) -> int:
        return sum(1 for b in self.branches.values() if b.hits)

    @property
    def functions_found(self) -> int:
        return len(self.functions)

    @property
    def functions_hit(self) -> int:
        return sum(1 for f in self.functions.values() if f.hits > 0)


def add_branch_hits(left: int | None, right: int | None) -> int | None:
    """Sum branch hits where None means "never evaluated"."""
    if left is None:
        return right
    if right is None:
        return left
    return left + right


@dataclass(frozen=True, slots=True)
class CoverageSummary:
    """Aggregate coverage statistics snapshot."""

    files: int
    lines_found: int
    lines_hit: int
    branches_found: int
    branches_hit: int
    functions_found: int
    functions_hit: int

    @property
    def line_rate(self) -> float:
        return self.lines_hit / self.lines_found if self.lines_found else 0.0

    @property
    def branch_rate(self) -> float:
        return self.branches_hit / self.branches_found if self.branches_found else 0.0

    @property
    def function_rate(self) -> float:
        return self.functions_hit / self.functions_found if self.functions_found else 0.0


def summarize(files: dict[str, FileCoverage]) -> CoverageSummary:
    """Compute aggregate summary across all files."""
    return CoverageSummary(
        files=len(files),
        lines_found=sum(f.lines_found for f in files.values()),
        lines_hit=sum(f.lines_hit for f in files.values()),
        branches_found=sum(f.branches_found for f in files.values()),
        branches_hit=sum(f.branches_hit for f in files.values()),
        functions_found=sum(f.functions_found for f in files.values()),
        functions_hit=sum(f.functions_hit for f in files.values()),
    )


@dataclass(slots=True)
class CoverageRecord:
    """Coverage collected for one project.

    Files are keyed by workspace-relative path; keys are unique per record.
    """

    project: str
    files: dict[str, FileCoverage] = field(default_factory=dict)  # path → coverage
    source_format: str = "lcov"

    @property
    def summary(self) -> CoverageSummary:
        return summarize(self.files)


@dataclass(slots=True)
class MergeConflict:
    """Non-fatal disagreement found while merging.

    Recorded as a diagnostic; merge always proceeds with the documented policy.
    """

    file: str
    line: int
    detail: str


@dataclass(slots=True)
class UnifiedCoverageModel:
    """Merged coverage across all projects of one run.

    Equality compares ``files`` only: ``projects`` and ``conflicts`` describe
    the merge that produced the model, so merging an empty record changes
    neither the coverage nor equality.
    """

    files: dict[str, FileCoverage] = field(default_factory=dict)
    projects: tuple[str, ...] = field(default=(), compare=False)
    conflicts: list[MergeConflict] = field(default_factory=list, compare=False)

    @property
    def summary(self) -> CoverageSummary:
        return summarize(self.files)

    def as_record(self, project: str = "merged") -> CoverageRecord:
        """View the merged model as a single record (e.g. for re-merging)."""
        return CoverageRecord(project=project, files=self.files, source_format="lcov")
