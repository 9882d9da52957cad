"""Pydantic configuration models with env var support.

Configuration Hierarchy (highest to lowest precedence):
1. Direct kwargs to load_config()
2. Environment variables (COVERPLANE__SECTION__KEY)
3. Workspace YAML (coverplane.yaml or .coverplane/config.yaml)
4. Global YAML (~/.config/coverplane/config.yaml)
5. Built-in defaults (this file)

Environment Variable Format:
    COVERPLANE__<SECTION>__<KEY>=<VALUE>

Examples:
    COVERPLANE__LOGGING__LEVEL=DEBUG
    COVERPLANE__COLLECT__FAILURE_MODE=lenient
    COVERPLANE__COLLECT__TIMEOUT_SEC=1800
    COVERPLANE__PUBLISH__BRANCH=gh-pages
"""

import os
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, field_validator, model_validator

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
FailureMode = Literal["strict", "lenient"]


def _default_max_workers() -> int:
    """Bound collection parallelism by CPU count."""
    return min(os.cpu_count() or 4, 8)


class LogOutputConfig(BaseModel):
    """Single logging output configuration.

    Env vars: Not directly configurable via env (use YAML for multi-output).
    """

    format: Literal["json", "console"] = "console"
    destination: str = "stderr"  # stderr, stdout, or absolute file path
    level: LogLevel | None = None  # Inherits from parent if None

    @field_validator("destination")
    @classmethod
    def validate_destination(cls, v: str) -> str:
        if v in ("stderr", "stdout"):
            return v
        path = Path(v).expanduser()
        if not path.is_absolute():
            raise ValueError(f"File destination must be absolute path: {v}")
        return str(path)


class LoggingConfig(BaseModel):
    """Logging configuration.

    Env vars:
        COVERPLANE__LOGGING__LEVEL: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """

    level: LogLevel = Field(
        default="INFO",
        description="Root log level. DEBUG logs every parsed artifact and subprocess.",
    )
    outputs: list[LogOutputConfig] = Field(default_factory=lambda: [LogOutputConfig()])


class ProjectConfig(BaseModel):
    """One sub-project whose coverage is collected independently.

    ``path`` is relative to the workspace root.
    """

    path: str = Field(default=".", description="Project root relative to the workspace.")
    name: str | None = Field(
        default=None,
        description="Display name. Defaults to the project path.",
    )
    toolchain: str | None = Field(
        default=None,
        description="Toolchain id overriding collect.toolchain for this project.",
    )
    command: list[str] | None = Field(
        default=None,
        description="Argv template for the 'command' toolchain. "
        "Placeholders: {output}, {target}, {root}.",
    )
    artifact: str | None = Field(
        default=None,
        description="Existing lcov file for the 'artifact' toolchain, relative to the project.",
    )

    @field_validator("path")
    @classmethod
    def validate_path(cls, v: str) -> str:
        if Path(v).is_absolute():
            raise ValueError(f"Project path must be workspace-relative: {v}")
        return v


class CollectConfig(BaseModel):
    """Per-project collection settings.

    Env vars:
        COVERPLANE__COLLECT__TOOLCHAIN: Default toolchain id
        COVERPLANE__COLLECT__TARGET: Toolchain target triple
        COVERPLANE__COLLECT__TIMEOUT_SEC: Per-project timeout
        COVERPLANE__COLLECT__MAX_WORKERS: Concurrent collectors
        COVERPLANE__COLLECT__FAILURE_MODE: strict | lenient
    """

    toolchain: str = Field(
        default="cargo-llvm-cov",
        description="Default toolchain: cargo-llvm-cov, pytest-cov, command, artifact.",
    )
    target: str = Field(
        default="x86_64-unknown-linux-gnu",
        description="Target triple passed to the toolchain.",
    )
    timeout_sec: float = Field(
        default=3600.0,
        description="Per-project timeout. A project exceeding it is marked failed (timeout).",
    )
    max_workers: int = Field(
        default_factory=_default_max_workers,
        description="Concurrent project collections. "
        "RISK: Each cargo build is CPU and disk heavy; keep close to core count.",
    )
    failure_mode: FailureMode = Field(
        default="strict",
        description="strict: any project failure fails the run. "
        "lenient: merge the successful projects and warn.",
    )
    output_name: str = Field(
        default="lcov.info",
        description="Normalized artifact written inside each project root.",
    )
    normalize_symbols: bool = Field(
        default=True,
        description="Demangle function names before merging.",
    )

    @field_validator("timeout_sec")
    @classmethod
    def validate_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError(f"Timeout must be positive, got {v}")
        return v

    @field_validator("max_workers")
    @classmethod
    def validate_workers(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"max_workers must be >= 1, got {v}")
        return v


class RenderConfig(BaseModel):
    """External report renderer.

    Env vars:
        COVERPLANE__RENDER__KIND: genhtml | none
        COVERPLANE__RENDER__TIMEOUT_SEC: Renderer timeout
    """

    kind: Literal["genhtml", "none"] = Field(
        default="genhtml",
        description="genhtml renders HTML; none only writes lcov.info and summary.json.",
    )
    command: list[str] = Field(
        default_factory=lambda: ["genhtml", "--output-directory", "{output}", "{input}"],
        description="Renderer argv template. Placeholders: {output}, {input}.",
    )
    timeout_sec: float = Field(default=600.0, description="Renderer timeout.")


class PublishConfig(BaseModel):
    """Publish target.

    Env vars:
        COVERPLANE__PUBLISH__KIND: directory | git-branch | none
        COVERPLANE__PUBLISH__TARGET: Target directory (directory kind)
        COVERPLANE__PUBLISH__BRANCH: Branch to commit the report to (git-branch kind)
        COVERPLANE__PUBLISH__REMOTE: Remote to push to, empty to skip pushing
    """

    kind: Literal["directory", "git-branch", "none"] = "directory"
    target: str = Field(
        default="coverage",
        description="Directory kind: published path (workspace-relative or absolute).",
    )
    branch: str = Field(default="gh-pages", description="git-branch kind: branch name.")
    remote: str | None = Field(
        default=None,
        description="git-branch kind: remote to force-push the branch to.",
    )
    prefix: str = Field(
        default="coverage",
        description="git-branch kind: directory inside the branch tree.",
    )
    force: bool = Field(default=True, description="Force-push the branch.")
    message: str = Field(default="Coverage", description="Commit message.")
    author_name: str = "coverage"
    author_email: str = "coverage@users.noreply.github.com"
    keep_versions: int = Field(
        default=1,
        description="Directory kind: previous versions kept after a swap.",
    )

    @model_validator(mode="after")
    def validate_target(self) -> "PublishConfig":
        if self.kind == "directory" and not self.target:
            raise ValueError("publish.target is required for directory publishing")
        if self.keep_versions < 0:
            raise ValueError("publish.keep_versions must be >= 0")
        return self


class CoverplaneConfig(BaseModel):
    """Root configuration for Coverplane.

    All settings can be configured via:
    1. Environment variables: COVERPLANE__SECTION__KEY
    2. YAML config files (workspace or global)
    3. Direct kwargs to load_config()
    """

    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    collect: CollectConfig = Field(default_factory=CollectConfig)
    projects: list[ProjectConfig] = Field(default_factory=lambda: [ProjectConfig()])
    render: RenderConfig = Field(default_factory=RenderConfig)
    publish: PublishConfig = Field(default_factory=PublishConfig)
    lock_path: str = Field(
        default=".coverplane/run.lock",
        description="Run-level lock file, workspace-relative.",
    )
