"""Coverage parsing, normalization, merging, and serialization.

This package provides:
- Strict lcov parsing into per-project CoverageRecords
- Canonical symbol names across compilations (symbols.py)
- Additive merge of records into a UnifiedCoverageModel
- Deterministic lcov output and structured summaries

Usage:
    from coverplane.coverage import parse_artifact, merge, write_lcov

    a = parse_artifact(Path("lcov.info"), project=".")
    b = parse_artifact(Path("driver/lcov.info"), project="driver")
    model = merge(a, b)
    data = write_lcov(model)
"""

from coverplane.coverage.merge import (
    fold_file_into,
    merge,
    merge_file_coverage,
    merge_records,
)
from coverplane.coverage.models import (
    BranchCoverage,
    CoverageParseError,
    CoverageRecord,
    CoverageSummary,
    FileCoverage,
    FunctionCoverage,
    LineCoverage,
    MergeConflict,
    UnifiedCoverageModel,
)
from coverplane.coverage.parsers import (
    PARSER_BY_FORMAT,
    PARSER_REGISTRY,
    CoverageParser,
    parse_artifact,
    parse_bytes,
)
from coverplane.coverage.paths import canonical_path
from coverplane.coverage.report import (
    build_summary,
    build_text_summary,
    compute_file_stats,
)
from coverplane.coverage.symbols import SymbolNormalizer, canonical_symbol
from coverplane.coverage.writer import write_files, write_lcov, write_lcov_file

__all__ = [
    # Models
    "BranchCoverage",
    "CoverageParseError",
    "CoverageRecord",
    "CoverageSummary",
    "FileCoverage",
    "FunctionCoverage",
    "LineCoverage",
    "MergeConflict",
    "UnifiedCoverageModel",
    # Parsers
    "CoverageParser",
    "PARSER_BY_FORMAT",
    "PARSER_REGISTRY",
    "parse_artifact",
    "parse_bytes",
    "canonical_path",
    # Normalizer
    "SymbolNormalizer",
    "canonical_symbol",
    # Merge
    "fold_file_into",
    "merge",
    "merge_file_coverage",
    "merge_records",
    # Writer
    "write_files",
    "write_lcov",
    "write_lcov_file",
    # Report
    "build_summary",
    "build_text_summary",
    "compute_file_stats",
]
