"""Tests for config/loader.py module.

Covers:
- _load_yaml() function
- _deep_merge() function
- find_workspace_config() discovery order
- load_config() precedence: yaml < env vars < kwargs
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import pytest

from coverplane.config import loader
from coverplane.config.loader import _deep_merge, _load_yaml, find_workspace_config, load_config
from coverplane.core.errors import ConfigError, ErrorCode


@pytest.fixture(autouse=True)
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point the global config at a temp file and clear COVERPLANE__ env vars."""
    global_path = tmp_path / "global" / "config.yaml"
    monkeypatch.setattr(loader, "GLOBAL_CONFIG_PATH", global_path)
    for key in list(os.environ):
        if key.upper().startswith("COVERPLANE__"):
            monkeypatch.delenv(key)
    return global_path


class TestLoadYaml:
    """Tests for _load_yaml function."""

    def test_returns_empty_dict_for_missing_file(self, tmp_path: Path) -> None:
        assert _load_yaml(tmp_path / "nonexistent.yaml") == {}

    def test_loads_valid_yaml(self, tmp_path: Path) -> None:
        yaml_file = tmp_path / "config.yaml"
        yaml_file.write_text("collect:\n  failure_mode: lenient\n")
        assert _load_yaml(yaml_file) == {"collect": {"failure_mode": "lenient"}}

    def test_returns_empty_for_yaml_null(self, tmp_path: Path) -> None:
        yaml_file = tmp_path / "null.yaml"
        yaml_file.write_text("null\n")
        assert _load_yaml(yaml_file) == {}

    def test_raises_config_error_for_invalid_yaml(self, tmp_path: Path) -> None:
        yaml_file = tmp_path / "invalid.yaml"
        yaml_file.write_text("collect:\n  target:\n    - invalid: [unclosed")
        with pytest.raises(ConfigError) as exc_info:
            _load_yaml(yaml_file)
        assert exc_info.value.code == ErrorCode.CONFIG_PARSE_ERROR

    def test_rejects_non_mapping(self, tmp_path: Path) -> None:
        yaml_file = tmp_path / "list.yaml"
        yaml_file.write_text("- a\n- b\n")
        with pytest.raises(ConfigError, match="mapping"):
            _load_yaml(yaml_file)


class TestDeepMerge:
    """Tests for _deep_merge function."""

    def test_nested_merge(self) -> None:
        base = {"collect": {"target": "a", "timeout_sec": 10}}
        override = {"collect": {"target": "b"}}
        assert _deep_merge(base, override) == {"collect": {"target": "b", "timeout_sec": 10}}

    def test_override_replaces_non_dict(self) -> None:
        base: dict[str, Any] = {"projects": {"nested": 1}}
        assert _deep_merge(base, {"projects": ["x"]}) == {"projects": ["x"]}

    def test_does_not_mutate_base(self) -> None:
        base = {"a": 1}
        _deep_merge(base, {"b": 2})
        assert base == {"a": 1}


class TestFindWorkspaceConfig:
    def test_none_when_absent(self, tmp_path: Path) -> None:
        assert find_workspace_config(tmp_path) is None

    def test_root_file_preferred(self, tmp_path: Path) -> None:
        (tmp_path / ".coverplane").mkdir()
        (tmp_path / ".coverplane" / "config.yaml").write_text("{}\n")
        (tmp_path / "coverplane.yaml").write_text("{}\n")
        assert find_workspace_config(tmp_path) == tmp_path / "coverplane.yaml"

    def test_state_dir_fallback(self, tmp_path: Path) -> None:
        (tmp_path / ".coverplane").mkdir()
        (tmp_path / ".coverplane" / "config.yaml").write_text("{}\n")
        assert find_workspace_config(tmp_path) == tmp_path / ".coverplane" / "config.yaml"


class TestLoadConfig:
    """Tests for load_config function."""

    def test_defaults(self, tmp_path: Path) -> None:
        config = load_config(tmp_path)
        assert config.collect.failure_mode == "strict"
        assert config.collect.toolchain == "cargo-llvm-cov"
        assert [p.path for p in config.projects] == ["."]
        assert config.publish.kind == "directory"

    def test_workspace_yaml(self, tmp_path: Path) -> None:
        (tmp_path / "coverplane.yaml").write_text(
            "collect:\n"
            "  failure_mode: lenient\n"
            "projects:\n"
            "  - path: .\n"
            "  - path: driver\n"
            "    toolchain: artifact\n"
            "    artifact: target/lcov.info\n"
        )
        config = load_config(tmp_path)
        assert config.collect.failure_mode == "lenient"
        assert [p.path for p in config.projects] == [".", "driver"]
        assert config.projects[1].artifact == "target/lcov.info"

    def test_workspace_overrides_global(self, tmp_path: Path, isolated_config: Path) -> None:
        isolated_config.parent.mkdir(parents=True)
        isolated_config.write_text("collect:\n  target: global-triple\n  timeout_sec: 5\n")
        (tmp_path / "coverplane.yaml").write_text("collect:\n  target: ws-triple\n")
        config = load_config(tmp_path)
        assert config.collect.target == "ws-triple"
        assert config.collect.timeout_sec == 5

    def test_env_overrides_yaml(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        (tmp_path / "coverplane.yaml").write_text(
            "collect:\n  failure_mode: lenient\n  timeout_sec: 42\n"
        )
        monkeypatch.setenv("COVERPLANE__COLLECT__FAILURE_MODE", "strict")
        config = load_config(tmp_path)
        assert config.collect.failure_mode == "strict"
        assert config.collect.timeout_sec == 42

    def test_kwargs_override_everything(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("COVERPLANE__LOCK_PATH", "from-env.lock")
        config = load_config(tmp_path, lock_path="from-kwargs.lock")
        assert config.lock_path == "from-kwargs.lock"

    def test_explicit_config_path(self, tmp_path: Path) -> None:
        (tmp_path / "coverplane.yaml").write_text("publish:\n  kind: none\n")
        explicit = tmp_path / "ci.yaml"
        explicit.write_text("publish:\n  kind: git-branch\n  branch: pages\n")
        config = load_config(tmp_path, config_path=explicit)
        assert config.publish.kind == "git-branch"
        assert config.publish.branch == "pages"

    def test_missing_explicit_config(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigError) as exc_info:
            load_config(tmp_path, config_path=tmp_path / "nope.yaml")
        assert exc_info.value.code == ErrorCode.CONFIG_FILE_NOT_FOUND

    def test_validation_error_names_field(self, tmp_path: Path) -> None:
        (tmp_path / "coverplane.yaml").write_text("collect:\n  timeout_sec: -1\n")
        with pytest.raises(ConfigError) as exc_info:
            load_config(tmp_path)
        assert exc_info.value.details["field"] == "collect.timeout_sec"

    def test_invalid_failure_mode(self, tmp_path: Path) -> None:
        (tmp_path / "coverplane.yaml").write_text("collect:\n  failure_mode: sometimes\n")
        with pytest.raises(ConfigError):
            load_config(tmp_path)
