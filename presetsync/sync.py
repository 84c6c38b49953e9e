"""Pipeline orchestration for sync, lock, unlock, scan and select flows."""

from __future__ import annotations

import subprocess
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from .config import PresetSyncConfig, config_path_for, save_config
from .errors import NoOriginRemote, NotLocked, OriginHasNoUrl, PresetSyncError
from .fetch import HttpTransport, PresetFetcher
from .git.repository import GitRepository
from .logging import get_logger
from .managed import ManagedDocument, read_document, rewrite_document_file
from .models import (
    HEAD,
    MergedArtifact,
    PresetFileInfo,
    PresetPointer,
    PresetSelection,
    ProjectIdentity,
    SelectedPreset,
)
from .paths import ProjectPaths, default_cache_root, derive_paths
from .presets.merge import generate_merged
from .presets.resolver import parse_source, pointers_from_selection, resolve_pointers
from .stores.selection import PresetSelectionStore


@dataclass(frozen=True)
class ProjectContext:
    """Identity and derived locations of the project being synced."""

    identity: ProjectIdentity
    paths: ProjectPaths
    origin: Optional[str] = None


@dataclass
class SyncOutcome:
    """Result of a sync or lock run."""

    context: ProjectContext
    artifact: MergedArtifact
    document: ManagedDocument

    @property
    def revision(self) -> str:
        return self.artifact.revision

    @property
    def document_path(self) -> Path:
        return self.context.paths.target_document


@dataclass
class ScanReport:
    """Presets available per configured repository, plus per-repository failures."""

    presets: Dict[str, List[PresetFileInfo]] = field(default_factory=dict)
    errors: Dict[str, PresetSyncError] = field(default_factory=dict)


class PresetSynchronizer:
    """Runs the identity -> paths -> pointers -> fetch -> merge -> rewrite pipeline."""

    def __init__(
        self,
        config: PresetSyncConfig,
        *,
        cache_root: Path | None = None,
        git: GitRepository | None = None,
        fetcher: PresetFetcher | None = None,
    ) -> None:
        self.config = config
        self.cache_root = cache_root if cache_root is not None else default_cache_root()
        self.git = git or GitRepository()
        self.fetcher = fetcher or PresetFetcher(
            http=HttpTransport(request_timeout=config.fetch.request_timeout),
            max_workers=config.fetch.max_workers,
        )
        self.logger = get_logger("sync")

    def setup(self, path: Path | str, revision: str = HEAD) -> ProjectContext:
        """Identify the project at ``path`` and derive its locations."""
        root = Path(path).expanduser().resolve()
        origin = self._origin_for(root)
        if origin is None:
            paths = derive_paths(
                root,
                str(root),
                revision,
                is_path=True,
                cache_root=self.cache_root,
                document_name=self.config.document_name,
            )
        else:
            paths = derive_paths(
                root,
                origin,
                revision,
                cache_root=self.cache_root,
                document_name=self.config.document_name,
            )
        self.logger.debug("Project %s has slug %s", root, paths.identity.slug)
        return ProjectContext(identity=paths.identity, paths=paths, origin=origin)

    def run_sync(self, path: Path | str, revision: str = HEAD) -> SyncOutcome:
        """Fetch the project's presets into the shared cache and re-point its document."""
        context = self.setup(path, revision)
        self.logger.info("Syncing presets for %s at %s", context.paths.root, revision)
        pointers = self._pointers(context, revision)
        destinations = [context.paths.preset_cache_path(pointer) for pointer in pointers]
        return self._materialise(context, pointers, destinations, revision)

    def run_lock(self, path: Path | str, sha: str) -> SyncOutcome:
        """Pin the project to ``sha`` using a per-revision vendor directory."""
        revision = sha.strip()
        if not revision:
            raise PresetSyncError("A commit hash is required to lock presets")
        context = self.setup(path, revision)
        self.logger.info("Locking presets for %s to %s", context.paths.root, revision)
        pointers = self._pointers(context, revision)
        for pointer in pointers:
            if pointer.is_local:
                self.logger.warning(
                    "%s is a local preset; locking copies the current working tree",
                    pointer.file_path,
                )
        destinations = [context.paths.vendor_path(pointer) for pointer in pointers]
        return self._materialise(context, pointers, destinations, revision)

    def lock_state(self, path: Path | str) -> Optional[str]:
        """Return the revision the document is pinned to, or ``None``."""
        context = self.setup(path)
        document = read_document(context.paths.target_document)
        revision = document.revision
        if revision is None or revision == HEAD:
            return None
        return revision

    def run_unlock(self, path: Path | str) -> SyncOutcome:
        context = self.setup(path)
        document = read_document(context.paths.target_document)
        if not document.has_managed_line:
            raise NotLocked(f"{context.paths.target_document} has no managed preset line")
        if document.revision is None or document.revision == HEAD:
            raise NotLocked(f"{context.paths.target_document} is not locked to a revision")
        self.logger.info("Unlocking %s from %s", context.paths.root, document.revision)
        return self.run_sync(path, HEAD)

    def scan_sources(self, revision: str = HEAD) -> ScanReport:
        """Enumerate presets in every configured repository."""
        report = ScanReport()
        for repo in self.config.repositories():
            try:
                report.presets[repo] = self.fetcher.scan(parse_source(repo), revision)
            except PresetSyncError as exc:
                self.logger.warning("Unable to scan %s: %s", repo, exc)
                report.errors[repo] = exc
        return report

    def load_selection(self, path: Path | str) -> Optional[PresetSelection]:
        context = self.setup(path)
        return PresetSelectionStore(context.paths.selection_path).load()

    def select(self, path: Path | str, entries: Sequence[SelectedPreset]) -> PresetSelection:
        """Validate and persist the project's preset selection."""
        pointers_from_selection(entries)
        context = self.setup(path)
        store = PresetSelectionStore(context.paths.selection_path)
        selection = store.save(entries)
        self.logger.info(
            "Saved %d preset selection(s) to %s", len(selection.selected_presets), store.path
        )
        return selection

    # ------------------------------------------------------------------
    # Internal helpers

    def _origin_for(self, root: Path) -> Optional[str]:
        if not self.git.is_repository(root):
            self.logger.info("%s is not a git repository; using path identity", root)
            return None
        try:
            return self.git.get_origin_url(root)
        except (NoOriginRemote, OriginHasNoUrl) as exc:
            self.logger.info("%s; using path identity", exc)
        except (FileNotFoundError, subprocess.CalledProcessError) as exc:
            self.logger.warning("Unable to read git remotes for %s: %s", root, exc)
        return None

    def _pointers(self, context: ProjectContext, revision: str) -> List[PresetPointer]:
        selection = PresetSelectionStore(context.paths.selection_path).load()
        pointers = resolve_pointers(self.config, selection, revision)
        if not pointers:
            self.logger.warning(
                "No presets configured; run `presetsync select` or set default_presets"
            )
        return pointers

    def _materialise(
        self,
        context: ProjectContext,
        pointers: Sequence[PresetPointer],
        destinations: Sequence[Path],
        revision: str,
    ) -> SyncOutcome:
        presets = self.fetcher.fetch_all(pointers, destinations)
        artifact = generate_merged(presets, context.paths.merged_artifact_path, revision)
        document = rewrite_document_file(context.paths.target_document, artifact.path)
        self.logger.info(
            "Merged %d preset(s) into %s", len(artifact.ordered_presets), artifact.path
        )
        return SyncOutcome(context=context, artifact=artifact, document=document)


def init_home(
    cache_root: Path | None = None,
    config: PresetSyncConfig | None = None,
    *,
    force: bool = False,
) -> Path:
    """Create the cache layout and write config.yml unless it already exists."""
    base = cache_root if cache_root is not None else default_cache_root()
    logger = get_logger("sync")
    for name in ("presets", "projects"):
        (base / name).mkdir(parents=True, exist_ok=True)
    config_file = config_path_for(base)
    if config_file.exists() and not force:
        logger.info("Keeping existing configuration at %s", config_file)
        return config_file
    save_config(config or PresetSyncConfig(), config_file)
    logger.info("Wrote configuration to %s", config_file)
    return config_file


__all__ = [
    "PresetSynchronizer",
    "ProjectContext",
    "ScanReport",
    "SyncOutcome",
    "init_home",
]
