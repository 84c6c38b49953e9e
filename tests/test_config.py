"""Tests for configuration loading."""

from __future__ import annotations

from pathlib import Path

import pytest

from presetsync.config import (
    CONFIG_VERSION,
    FetchConfig,
    PresetSyncConfig,
    load_config,
    save_config,
)
from presetsync.errors import ConfigError


def test_missing_config_yields_defaults(tmp_path: Path) -> None:
    config = load_config(tmp_path / "config.yml")
    assert config == PresetSyncConfig()
    assert config.default_repository is None
    assert config.document_name == "CLAUDE.md"


def test_load_config_reads_fields(tmp_path: Path) -> None:
    config_file = tmp_path / "config.yml"
    config_file.write_text(
        """
version: "1.0.0"
default_preset_repositories:
  - github.com/acme/presets
  - github.com/acme/extra
default_presets:
  - react.md
  - python.md
document_name: AGENTS.md
fetch:
  request_timeout: 5
  max_workers: 2
""",
        encoding="utf-8",
    )

    config = load_config(tmp_path)

    assert config.default_presets == ["react.md", "python.md"]
    assert config.default_repository == "github.com/acme/presets"
    assert config.document_name == "AGENTS.md"
    assert config.fetch == FetchConfig(request_timeout=5.0, max_workers=2)


def test_default_preset_repo_takes_precedence(tmp_path: Path) -> None:
    config = PresetSyncConfig(
        default_preset_repositories=["github.com/acme/presets", "github.com/acme/other"],
        default_preset_repo="github.com/acme/other",
    )
    assert config.default_repository == "github.com/acme/other"
    assert config.repositories() == ["github.com/acme/other", "github.com/acme/presets"]


def test_invalid_values_fall_back(tmp_path: Path) -> None:
    config_file = tmp_path / "config.yml"
    config_file.write_text(
        "default_presets: react.md\nfetch:\n  max_workers: zero\n  request_timeout: -1\n",
        encoding="utf-8",
    )
    config = load_config(config_file)
    assert config.default_presets == ["react.md"]
    assert config.fetch == FetchConfig()


def test_malformed_yaml_raises(tmp_path: Path) -> None:
    config_file = tmp_path / "config.yml"
    config_file.write_text("default_presets: [unclosed\n", encoding="utf-8")
    with pytest.raises(ConfigError):
        load_config(config_file)


def test_non_mapping_root_raises(tmp_path: Path) -> None:
    config_file = tmp_path / "config.yml"
    config_file.write_text("- just\n- a list\n", encoding="utf-8")
    with pytest.raises(ConfigError):
        load_config(config_file)


def test_save_then_load(tmp_path: Path) -> None:
    config = PresetSyncConfig(
        default_preset_repo="file:///srv/presets",
        default_presets=["react.md"],
    )
    written = save_config(config, tmp_path / "nested" / "config.yml")
    loaded = load_config(written)

    assert loaded.default_preset_repo == "file:///srv/presets"
    assert loaded.default_presets == ["react.md"]
    assert loaded.version == CONFIG_VERSION


def test_add_repository_skips_duplicates() -> None:
    config = PresetSyncConfig(default_preset_repositories=["github.com/acme/presets"])

    assert config.add_repository("github.com/acme/presets") is False
    assert config.add_repository("file:///srv/presets") is True
    assert config.default_preset_repositories == ["github.com/acme/presets", "file:///srv/presets"]


def test_remove_repository_requires_a_listed_entry() -> None:
    config = PresetSyncConfig(default_preset_repositories=["github.com/acme/presets"])

    with pytest.raises(ConfigError):
        config.remove_repository("github.com/acme/other")
    config.remove_repository("github.com/acme/presets")
    assert config.default_preset_repositories == []
