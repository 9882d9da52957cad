"""Coverage toolchains.

A toolchain knows how to turn one project into one raw lcov artifact. Most
run an external, instrumented build/test cycle that writes lcov to a path
chosen by the collector; the ``artifact`` toolchain reads a file some earlier
step already produced.

The instrumentation itself stays a black box: toolchains only build argv.
"""

from __future__ import annotations

import sys
from abc import ABC, abstractmethod
from pathlib import Path

from coverplane.collect.models import ProjectSpec
from coverplane.core.errors import ConfigError


class Toolchain(ABC):
    """Abstract base for coverage collection.

    Each toolchain:
    1. Names itself (the registry id used in config)
    2. Builds the command that writes lcov to ``output``
    3. Says where the raw artifact is read from afterwards

    ``project_relative_paths`` marks tools whose relative SF paths start at
    the project root rather than the workspace root.
    """

    runs_process = True
    project_relative_paths = False

    @property
    @abstractmethod
    def toolchain_id(self) -> str:
        """Registry id (e.g., 'cargo-llvm-cov')."""
        ...

    @abstractmethod
    def build_command(self, spec: ProjectSpec, output: Path, target: str) -> list[str]:
        """Argv that collects coverage for ``spec`` into ``output``."""
        ...

    def artifact_source(self, spec: ProjectSpec, output: Path) -> Path:
        """Path of the raw artifact once the command has finished."""
        return output


# =============================================================================
# Rust - cargo-llvm-cov
# =============================================================================


class CargoLlvmCov(Toolchain):
    """Coverage via cargo-llvm-cov, one invocation per cargo workspace."""

    @property
    def toolchain_id(self) -> str:
        return "cargo-llvm-cov"

    def build_command(self, spec: ProjectSpec, output: Path, target: str) -> list[str]:
        return [
            "cargo",
            "llvm-cov",
            "--coverage-target-only",
            "--target",
            target,
            "--workspace",
            "--failure-mode",
            "all",
            "--lcov",
            "--output-path",
            str(output),
        ]


# =============================================================================
# Python - pytest-cov
# =============================================================================


class PytestCov(Toolchain):
    """Coverage via pytest-cov with lcov output."""

    # coverage.py reports files relative to its working directory
    project_relative_paths = True

    @property
    def toolchain_id(self) -> str:
        return "pytest-cov"

    def build_command(self, spec: ProjectSpec, output: Path, target: str) -> list[str]:
        return [sys.executable, "-m", "pytest", "--cov=.", f"--cov-report=lcov:{output}"]


# =============================================================================
# Generic
# =============================================================================


class CommandToolchain(Toolchain):
    """User-supplied argv template.

    Placeholders: ``{output}`` (lcov path to write), ``{target}`` (target
    triple), ``{root}`` (project root).
    """

    @property
    def toolchain_id(self) -> str:
        return "command"

    def build_command(self, spec: ProjectSpec, output: Path, target: str) -> list[str]:
        if not spec.command:
            raise ConfigError.missing_required(f"projects[{spec.name}].command")
        values = {"output": str(output), "target": target, "root": str(spec.root)}
        try:
            return [arg.format(**values) for arg in spec.command]
        except (KeyError, IndexError, ValueError) as e:
            raise ConfigError.invalid_value(
                f"projects[{spec.name}].command",
                list(spec.command),
                f"bad placeholder: {e}",
            ) from e


class ArtifactToolchain(Toolchain):
    """No process: the project's lcov was collected by an earlier step."""

    runs_process = False

    @property
    def toolchain_id(self) -> str:
        return "artifact"

    def build_command(self, spec: ProjectSpec, output: Path, target: str) -> list[str]:
        return []

    def artifact_source(self, spec: ProjectSpec, output: Path) -> Path:
        if not spec.artifact:
            raise ConfigError.missing_required(f"projects[{spec.name}].artifact")
        return spec.root / spec.artifact


TOOLCHAINS: dict[str, Toolchain] = {
    t.toolchain_id: t
    for t in (CargoLlvmCov(), PytestCov(), CommandToolchain(), ArtifactToolchain())
}


def get_toolchain(toolchain_id: str) -> Toolchain:
    """Look up a toolchain by id."""
    toolchain = TOOLCHAINS.get(toolchain_id)
    if toolchain is None:
        valid = ", ".join(sorted(TOOLCHAINS))
        raise ConfigError.invalid_value(
            "collect.toolchain", toolchain_id, f"unknown toolchain; valid: {valid}"
        )
    return toolchain
