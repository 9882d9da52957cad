"""LCOV serialization.

Output is format-stable: files sorted by path, functions by start line then
name, branches by (line, block, branch), lines ascending. Writing the same
model twice yields byte-identical output, and ``parse(write(model))``
reproduces the model.
"""

from collections.abc import Mapping
from pathlib import Path

from coverplane.coverage.models import CoverageRecord, FileCoverage, UnifiedCoverageModel
from coverplane.files.ops import atomic_write_bytes


def _write_file(fc: FileCoverage, out: list[str]) -> None:
    out.append(f"SF:{fc.path}")

    functions = fc.function_entries()
    for func in functions:
        out.append(f"FN:{func.start_line},{func.name}")
    for func in functions:
        out.append(f"FNDA:{func.hits},{func.name}")
    out.append(f"FNF:{fc.functions_found}")
    out.append(f"FNH:{fc.functions_hit}")

    branches = fc.branch_entries()
    if branches:
        for b in branches:
            taken = "-" if b.hits is None else str(b.hits)
            out.append(f"BRDA:{b.line},{b.block_id},{b.branch_id},{taken}")
        out.append(f"BRF:{fc.branches_found}")
        out.append(f"BRH:{fc.branches_hit}")

    for entry in fc.line_entries():
        out.append(f"DA:{entry.line},{entry.hits}")
    out.append(f"LF:{fc.lines_found}")
    out.append(f"LH:{fc.lines_hit}")
    out.append("end_of_record")


def write_files(files: Mapping[str, FileCoverage]) -> bytes:
    """Serialize per-file coverage to LCOV bytes."""
    out: list[str] = []
    for path in sorted(files):
        _write_file(files[path], out)
    if not out:
        return b""
    return ("\n".join(out) + "\n").encode("utf-8")


def write_lcov(model: UnifiedCoverageModel | CoverageRecord) -> bytes:
    """Serialize a merged model or a single record to LCOV bytes."""
    return write_files(model.files)


def write_lcov_file(model: UnifiedCoverageModel | CoverageRecord, path: Path) -> None:
    """Write LCOV to ``path`` atomically (temp file in the same directory + rename)."""
    atomic_write_bytes(path, write_lcov(model))
