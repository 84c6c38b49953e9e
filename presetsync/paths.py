"""On-disk locations read and written by presetsync."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from .identity import resolve_identity, resolve_identity_from_path
from .models import PresetPointer, ProjectIdentity

ENV_HOME_KEYS = ("PRESETSYNC_HOME",)
DEFAULT_DOCUMENT_NAME = "CLAUDE.md"
SELECTION_FILENAME = "preset-selection.json"
CONFIG_FILENAME = "config.yml"


@dataclass(frozen=True)
class ProjectPaths:
    """Every location derived for one project at one revision."""

    root: Path
    target_document: Path
    cache_root: Path
    preset_cache_root: Path
    project_dir: Path
    merged_artifact_path: Path
    selection_path: Path
    identity: ProjectIdentity
    revision: str

    def vendor_dir(self, revision: str | None = None) -> Path:
        return self.project_dir / "vendor" / (revision or self.revision)

    def preset_cache_path(self, pointer: PresetPointer) -> Path:
        return preset_cache_path(self.cache_root, pointer)

    def vendor_path(self, pointer: PresetPointer) -> Path:
        flattened = pointer.file_path.replace("/", "_")
        name = f"{pointer.host}_{pointer.owner}_{pointer.repo}_{flattened}"
        return self.vendor_dir(pointer.revision) / name


def default_cache_root() -> Path:
    for key in ENV_HOME_KEYS:
        value = os.getenv(key)
        if value:
            return Path(value).expanduser()
    return Path.home() / ".presetsync"


def merged_artifact_name(revision: str) -> str:
    return f"merged-preset-{revision}.md"


def preset_cache_path(cache_root: Path, pointer: PresetPointer) -> Path:
    return (
        cache_root
        / "presets"
        / pointer.host
        / pointer.owner
        / pointer.repo
        / Path(*pointer.file_path.split("/"))
    )


def derive_paths(
    root: Path | str,
    origin_or_path: str,
    revision: str,
    *,
    is_path: bool = False,
    cache_root: Path | None = None,
    document_name: str = DEFAULT_DOCUMENT_NAME,
) -> ProjectPaths:
    """Compute project locations without touching the filesystem.

    The merged artifact is keyed by both slug and revision so runs at
    different pinned revisions never overwrite each other.
    """
    identity = (
        resolve_identity_from_path(origin_or_path)
        if is_path
        else resolve_identity(origin_or_path)
    )
    base = cache_root if cache_root is not None else default_cache_root()
    project_root = Path(root)
    project_dir = base / "projects" / identity.slug
    return ProjectPaths(
        root=project_root,
        target_document=project_root / document_name,
        cache_root=base,
        preset_cache_root=base / "presets",
        project_dir=project_dir,
        merged_artifact_path=project_dir / merged_artifact_name(revision),
        selection_path=project_dir / SELECTION_FILENAME,
        identity=identity,
        revision=revision,
    )


def expand_home(path: str, home: Path | None = None) -> Path:
    """Expand a leading `~` to the home directory."""
    base = home if home is not None else Path.home()
    if path == "~":
        return base
    if path.startswith("~/"):
        return base / path[2:]
    return Path(path)


def contract_home(path: Path | str, home: Path | None = None) -> str:
    """Render `path` as `~/...` when it lives under the home directory."""
    if not str(path):
        return ""
    base = Path(os.path.abspath(home if home is not None else Path.home()))
    target = Path(os.path.abspath(path))
    try:
        relative = target.relative_to(base)
    except ValueError:
        return target.as_posix()
    if not relative.parts:
        return "~"
    return f"~/{relative.as_posix()}"


__all__ = [
    "CONFIG_FILENAME",
    "DEFAULT_DOCUMENT_NAME",
    "ProjectPaths",
    "contract_home",
    "default_cache_root",
    "derive_paths",
    "expand_home",
    "merged_artifact_name",
    "preset_cache_path",
]
