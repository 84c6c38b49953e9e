"""Core data models shared across presetsync components."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Tuple, Union

LOCAL_HOST = "localhost"
LOCAL_OWNER = "local"
LOCAL_REPO = "presets"
HEAD = "HEAD"


@dataclass(frozen=True)
class LocalSource:
    """Preset repository living on the local filesystem."""

    path: Path

    @property
    def host(self) -> str:
        return LOCAL_HOST

    @property
    def owner(self) -> str:
        return LOCAL_OWNER

    @property
    def repo(self) -> str:
        return LOCAL_REPO

    @property
    def url(self) -> str:
        return f"file://{self.path.as_posix()}"


@dataclass(frozen=True)
class HostedSource:
    """Preset repository on a web hosting provider."""

    host: str
    owner: str
    repo: str

    @property
    def url(self) -> str:
        return f"{self.host}/{self.owner}/{self.repo}"


PresetSource = Union[LocalSource, HostedSource]


@dataclass(frozen=True)
class PresetPointer:
    """Fully qualified reference to one versioned preset file."""

    source: PresetSource
    file_path: str
    revision: str = HEAD

    @property
    def host(self) -> str:
        return self.source.host

    @property
    def owner(self) -> str:
        return self.source.owner

    @property
    def repo(self) -> str:
        return self.source.repo

    @property
    def is_local(self) -> bool:
        return isinstance(self.source, LocalSource)

    def describe(self) -> str:
        return f"{self.host}/{self.owner}/{self.repo}/{self.file_path}@{self.revision}"


@dataclass(frozen=True)
class ProjectIdentity:
    """Deterministic project identifier derived from an origin or path."""

    slug: str
    origin: str


@dataclass(frozen=True)
class FetchedPreset:
    """Content retrieved for a pointer, plus where it was written."""

    pointer: PresetPointer
    local_path: Path
    content: str
    retrieval_method: str = field(default="", compare=False)


@dataclass(frozen=True)
class MergedArtifact:
    """Revision-pinned file combining every resolved preset."""

    path: Path
    ordered_presets: Tuple[FetchedPreset, ...]
    revision: str


@dataclass(frozen=True)
class PresetFileInfo:
    """Entry reported by directory enumeration of a preset source."""

    name: str
    path: str
    size: int
    sha: str


@dataclass(frozen=True)
class SelectedPreset:
    """A `{repo, file}` pair persisted in a project selection."""

    repo: str
    file: str


@dataclass
class PresetSelection:
    """Per-project preset selection loaded from disk."""

    selected_presets: List[SelectedPreset] = field(default_factory=list)
    last_updated: Optional[str] = None


__all__ = [
    "FetchedPreset",
    "HEAD",
    "HostedSource",
    "LOCAL_HOST",
    "LOCAL_OWNER",
    "LOCAL_REPO",
    "LocalSource",
    "MergedArtifact",
    "PresetFileInfo",
    "PresetPointer",
    "PresetSelection",
    "PresetSource",
    "ProjectIdentity",
    "SelectedPreset",
]
