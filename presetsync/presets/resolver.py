"""Expand configured and selected presets into fully qualified pointers."""

from __future__ import annotations

from pathlib import Path
from typing import Iterable, List, Optional, Sequence

from ..config import PresetSyncConfig
from ..errors import InvalidPresetFilename, MissingRepository, UnsupportedOriginFormat
from ..identity import parse_origin
from ..logging import get_logger
from ..models import (
    HEAD,
    HostedSource,
    LocalSource,
    PresetPointer,
    PresetSelection,
    PresetSource,
    SelectedPreset,
)

PRESET_SUFFIX = ".md"
_FILE_PREFIX = "file://"

_LOGGER = get_logger("presets.resolver")


def parse_source(url: str) -> PresetSource:
    """Decide once whether a repository URL is local or hosted.

    Accepts `file://<path>`, bare `host/owner/repo`, and any origin shape
    understood by the identity resolver.
    """
    candidate = url.strip()
    if candidate.startswith(_FILE_PREFIX):
        return LocalSource(path=Path(candidate[len(_FILE_PREFIX):]))
    if "://" not in candidate and "@" not in candidate:
        parts = [part for part in candidate.rstrip("/").split("/") if part]
        if len(parts) == 3:
            candidate = "https://" + "/".join(parts)
    parts = parse_origin(candidate)
    return HostedSource(host=parts.host, owner=parts.owner, repo=parts.repo)


def parse_hosted_source(url: str) -> HostedSource:
    """Like :func:`parse_source` but rejects local repositories."""
    source = parse_source(url)
    if not isinstance(source, HostedSource):
        raise UnsupportedOriginFormat(url)
    return source


def validate_preset_filename(filename: str) -> str:
    if not filename.endswith(PRESET_SUFFIX):
        raise InvalidPresetFilename(filename)
    return filename


def resolve_pointers(
    config: PresetSyncConfig,
    selection: Optional[PresetSelection] = None,
    revision: str = HEAD,
) -> List[PresetPointer]:
    """Return the ordered pointers a project should sync.

    A non-empty project selection replaces the global defaults entirely.
    """
    if selection is not None and selection.selected_presets:
        _LOGGER.debug(
            "Resolving %d preset(s) from project selection", len(selection.selected_presets)
        )
        return pointers_from_selection(selection.selected_presets, revision)
    return default_pointers(config, revision)


def pointers_from_selection(
    entries: Sequence[SelectedPreset], revision: str = HEAD
) -> List[PresetPointer]:
    pointers: List[PresetPointer] = []
    for entry in entries:
        validate_preset_filename(entry.file)
        source = parse_hosted_source(entry.repo)
        pointers.append(PresetPointer(source=source, file_path=entry.file, revision=revision))
    return pointers


def default_pointers(config: PresetSyncConfig, revision: str = HEAD) -> List[PresetPointer]:
    presets = list(config.default_presets)
    if not presets:
        return []
    repository = config.default_repository
    if not repository:
        raise MissingRepository(
            "default_presets is configured but no default preset repository is set"
        )
    for preset in presets:
        validate_preset_filename(preset)

    source = parse_source(repository)
    _LOGGER.debug("Resolving %d default preset(s) against %s", len(presets), source.url)
    return [PresetPointer(source=source, file_path=preset, revision=revision) for preset in presets]


def selection_entries(repo: str, files: Iterable[str]) -> List[SelectedPreset]:
    """Validate CLI-provided selections before they are persisted."""
    parse_hosted_source(repo)
    return [SelectedPreset(repo=repo, file=validate_preset_filename(name)) for name in files]


__all__ = [
    "PRESET_SUFFIX",
    "default_pointers",
    "parse_hosted_source",
    "parse_source",
    "pointers_from_selection",
    "resolve_pointers",
    "selection_entries",
    "validate_preset_filename",
]
