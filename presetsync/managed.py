"""Managed import line handling for target documents.

A target document is free-form text followed by at most one managed line:
the last non-empty line, when it starts with the ``@`` import sigil. Only
that line is ever created or replaced; every other byte is preserved.
"""

from __future__ import annotations

import os
import re
import stat
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .errors import FilesystemFailure, InvalidDocumentPath
from .paths import contract_home

IMPORT_SIGIL = "@"
_REVISION_PATTERN = re.compile(r"merged-preset-([^/\\]+)\.md$")


@dataclass(frozen=True)
class ManagedDocument:
    """A document split around its managed line.

    ``free_content`` holds every byte before the managed line and ``suffix``
    the bytes after it, so ``free_content + managed_line + suffix`` rebuilds
    the original text.
    """

    free_content: str
    managed_line: Optional[str]
    suffix: str = ""

    @property
    def has_managed_line(self) -> bool:
        return self.managed_line is not None

    @property
    def import_path(self) -> Optional[str]:
        if self.managed_line is None:
            return None
        return self.managed_line[len(IMPORT_SIGIL):].strip()

    @property
    def revision(self) -> Optional[str]:
        """Revision of the referenced merged artifact, if recognisable."""
        path = self.import_path
        if not path:
            return None
        match = _REVISION_PATTERN.search(path)
        return match.group(1) if match else None

    def render(self) -> str:
        return f"{self.free_content}{self.managed_line or ''}{self.suffix}"


def parse_document(text: str) -> ManagedDocument:
    lines = text.splitlines(keepends=True)
    for index in range(len(lines) - 1, -1, -1):
        stripped = lines[index].rstrip("\r\n")
        if not stripped.strip():
            continue
        if not stripped.startswith(IMPORT_SIGIL):
            break
        line_end = lines[index][len(stripped):]
        return ManagedDocument(
            free_content="".join(lines[:index]),
            managed_line=stripped,
            suffix=line_end + "".join(lines[index + 1:]),
        )
    return ManagedDocument(free_content=text, managed_line=None)


def render_managed_line(artifact_path: Path | str, home: Path | None = None) -> str:
    return f"{IMPORT_SIGIL}{contract_home(artifact_path, home)}"


def rewrite_document(
    text: str, artifact_path: Path | str, home: Path | None = None
) -> str:
    """Point the managed line at ``artifact_path``; idempotent."""
    document = parse_document(text)
    line = render_managed_line(artifact_path, home)
    if document.has_managed_line:
        return f"{document.free_content}{line}{document.suffix}"
    if not text:
        return f"{line}\n"
    if text.endswith("\n\n"):
        return f"{text}{line}\n"
    if text.endswith("\n"):
        return f"{text}\n{line}\n"
    return f"{text}\n\n{line}"


def read_document(path: Path) -> ManagedDocument:
    return parse_document(_read_text(_check_document_path(path)))


def rewrite_document_file(
    path: Path, artifact_path: Path | str, home: Path | None = None
) -> ManagedDocument:
    """Rewrite the managed line of the file at ``path`` atomically.

    A missing file is created. Returns the parsed result.
    """
    target = _check_document_path(path)
    original = _read_text(target)
    updated = rewrite_document(original, artifact_path, home)
    if updated != original or not target.exists():
        _atomic_write(target, updated)
    return parse_document(updated)


def _check_document_path(path: Path) -> Path:
    if not str(path) or path.name in {"", ".", ".."}:
        raise InvalidDocumentPath(f"Invalid target document path: {path!r}")
    if path.is_dir():
        raise InvalidDocumentPath(f"Target document path is a directory: {path}")
    return path


def _read_text(path: Path) -> str:
    try:
        with path.open("r", encoding="utf-8", newline="") as handle:
            return handle.read()
    except FileNotFoundError:
        return ""
    except OSError as exc:
        raise FilesystemFailure(f"Unable to read {path}", exc) from exc
    except UnicodeDecodeError as exc:
        raise FilesystemFailure(f"{path} is not valid UTF-8", exc) from exc


def _atomic_write(path: Path, text: str) -> None:
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, temp_name = tempfile.mkstemp(prefix=f".{path.name}.", dir=str(path.parent))
        try:
            with os.fdopen(fd, "w", encoding="utf-8", newline="") as handle:
                handle.write(text)
            os.chmod(temp_name, _target_mode(path))
            os.replace(temp_name, path)
        except BaseException:
            if os.path.exists(temp_name):
                os.unlink(temp_name)
            raise
    except OSError as exc:
        raise FilesystemFailure(f"Unable to write {path}", exc) from exc


def _target_mode(path: Path) -> int:
    """Mode the rewritten file should carry: the existing one, else 0o666 minus umask."""
    try:
        return stat.S_IMODE(path.stat().st_mode)
    except FileNotFoundError:
        umask = os.umask(0)
        os.umask(umask)
        return 0o666 & ~umask


__all__ = [
    "IMPORT_SIGIL",
    "ManagedDocument",
    "parse_document",
    "read_document",
    "render_managed_line",
    "rewrite_document",
    "rewrite_document_file",
]
