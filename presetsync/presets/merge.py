"""Merge fetched presets into one revision-pinned artifact."""

from __future__ import annotations

from pathlib import Path
from typing import Sequence

from ..errors import FilesystemFailure
from ..logging import get_logger
from ..models import FetchedPreset, MergedArtifact

HEADER_FMT = "<!-- presetsync:merged revision={revision} count={count} -->"
PROVENANCE_FMT = "<!-- presetsync:preset {source} -->"

_LOGGER = get_logger("presets.merge")


def render_merged(presets: Sequence[FetchedPreset], revision: str) -> str:
    """Render the artifact text. Deterministic: no timestamps or host details."""
    blocks = [HEADER_FMT.format(revision=revision, count=len(presets))]
    for preset in presets:
        body = preset.content.replace("\r\n", "\n").rstrip("\n")
        provenance = PROVENANCE_FMT.format(source=preset.pointer.describe())
        blocks.append(f"{provenance}\n{body}" if body else provenance)
    return "\n\n".join(blocks) + "\n"


def generate_merged(
    presets: Sequence[FetchedPreset], output_path: Path, revision: str
) -> MergedArtifact:
    """Write the merged artifact for ``presets`` in the given order."""
    text = render_merged(presets, revision)
    try:
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_text(text, encoding="utf-8", newline="\n")
    except OSError as exc:
        raise FilesystemFailure(f"Unable to write merged artifact {output_path}", exc) from exc
    _LOGGER.debug("Wrote %s with %d preset(s)", output_path, len(presets))
    return MergedArtifact(path=output_path, ordered_presets=tuple(presets), revision=revision)


__all__ = ["generate_merged", "render_merged"]
