"""Tests for on-disk layout derivation."""

from __future__ import annotations

from pathlib import Path

import pytest

from presetsync.identity import resolve_identity
from presetsync.models import HostedSource, PresetPointer
from presetsync.paths import (
    contract_home,
    default_cache_root,
    derive_paths,
    expand_home,
    merged_artifact_name,
)


def test_derive_paths_layout(tmp_path: Path) -> None:
    cache = tmp_path / "cache"
    paths = derive_paths(
        tmp_path / "project",
        "git@github.com:test/my-project.git",
        "HEAD",
        cache_root=cache,
    )
    slug = resolve_identity("https://github.com/test/my-project").slug

    assert paths.identity.slug == slug
    assert paths.project_dir == cache / "projects" / slug
    assert paths.merged_artifact_path == cache / "projects" / slug / "merged-preset-HEAD.md"
    assert paths.selection_path == cache / "projects" / slug / "preset-selection.json"
    assert paths.target_document == tmp_path / "project" / "CLAUDE.md"
    assert paths.vendor_dir("abc123") == cache / "projects" / slug / "vendor" / "abc123"
    assert not cache.exists()


def test_artifact_is_keyed_by_revision(tmp_path: Path) -> None:
    head = derive_paths(tmp_path, "https://github.com/o/r", "HEAD", cache_root=tmp_path)
    pinned = derive_paths(tmp_path, "https://github.com/o/r", "abc123", cache_root=tmp_path)
    assert head.project_dir == pinned.project_dir
    assert head.merged_artifact_path != pinned.merged_artifact_path
    assert pinned.merged_artifact_path.name == merged_artifact_name("abc123")


def test_preset_and_vendor_paths(tmp_path: Path) -> None:
    paths = derive_paths(tmp_path, "https://github.com/o/r", "HEAD", cache_root=tmp_path)
    pointer = PresetPointer(HostedSource("github.com", "acme", "presets"), "lang/python.md", "abc")

    assert paths.preset_cache_path(pointer) == (
        tmp_path / "presets" / "github.com" / "acme" / "presets" / "lang" / "python.md"
    )
    assert paths.vendor_path(pointer) == (
        paths.project_dir / "vendor" / "abc" / "github.com_acme_presets_lang_python.md"
    )


def test_path_identity_and_document_name(tmp_path: Path) -> None:
    paths = derive_paths(
        tmp_path, str(tmp_path), "HEAD", is_path=True, cache_root=tmp_path, document_name="AGENTS.md"
    )
    assert paths.identity.origin == str(tmp_path)
    assert paths.target_document.name == "AGENTS.md"


def test_default_cache_root_honours_environment(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setenv("PRESETSYNC_HOME", str(tmp_path))
    assert default_cache_root() == tmp_path
    monkeypatch.delenv("PRESETSYNC_HOME")
    assert default_cache_root() == Path.home() / ".presetsync"


def test_home_contraction_round_trip(tmp_path: Path) -> None:
    home = tmp_path / "home"
    artifact = home / ".presetsync" / "projects" / "abc" / "merged-preset-HEAD.md"

    contracted = contract_home(artifact, home)
    assert contracted == "~/.presetsync/projects/abc/merged-preset-HEAD.md"
    assert expand_home(contracted, home) == artifact
    assert contract_home(home, home) == "~"
    assert contract_home(tmp_path / "elsewhere.md", home) == (tmp_path / "elsewhere.md").as_posix()
