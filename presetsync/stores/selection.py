"""Per-project preset selection persisted as JSON."""

from __future__ import annotations

import json
from datetime import UTC, datetime
from pathlib import Path
from typing import Dict, Iterable, List

from ..errors import FilesystemFailure
from ..models import PresetSelection, SelectedPreset

_SELECTION_VERSION = 1


class PresetSelectionStore:
    """Reads and writes the selection file of a single project."""

    def __init__(self, path: Path) -> None:
        self._path = path

    @property
    def path(self) -> Path:
        return self._path

    def exists(self) -> bool:
        return self._path.is_file()

    def load(self) -> PresetSelection | None:
        """Return the stored selection, or ``None`` when nothing was saved."""
        try:
            raw = self._path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as exc:
            raise FilesystemFailure(f"Unable to read {self._path}", exc) from exc
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise FilesystemFailure(f"Corrupt preset selection {self._path}", exc) from exc
        if not isinstance(data, dict):
            raise FilesystemFailure(f"Corrupt preset selection {self._path}")

        entries = data.get("selected_presets")
        selected: List[SelectedPreset] = []
        if isinstance(entries, list):
            for payload in entries:
                entry = _entry_from_dict(payload)
                if entry is not None:
                    selected.append(entry)
        last_updated = data.get("last_updated")
        return PresetSelection(
            selected_presets=selected,
            last_updated=last_updated if isinstance(last_updated, str) else None,
        )

    def save(self, entries: Iterable[SelectedPreset]) -> PresetSelection:
        selection = PresetSelection(
            selected_presets=list(entries),
            last_updated=datetime.now(UTC).isoformat().replace("+00:00", "Z"),
        )
        payload = {
            "version": _SELECTION_VERSION,
            "selected_presets": [_entry_to_dict(entry) for entry in selection.selected_presets],
            "last_updated": selection.last_updated,
        }
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._path.write_text(json.dumps(payload, indent=2) + "\n", encoding="utf-8")
        except OSError as exc:
            raise FilesystemFailure(f"Unable to write {self._path}", exc) from exc
        return selection


def _entry_to_dict(entry: SelectedPreset) -> Dict[str, str]:
    return {"repo": entry.repo, "file": entry.file}


def _entry_from_dict(payload: object) -> SelectedPreset | None:
    if not isinstance(payload, dict):
        return None
    repo = payload.get("repo")
    file = payload.get("file")
    if not isinstance(repo, str) or not isinstance(file, str) or not repo or not file:
        return None
    return SelectedPreset(repo=repo, file=file)


__all__ = ["PresetSelectionStore"]
