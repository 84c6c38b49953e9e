"""Fetch orchestration: transport fallback, batching and enumeration."""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor, wait
from pathlib import Path
from typing import Callable, List, Optional, Sequence, Tuple, TypeVar

from ..errors import (
    BatchFetchFailed,
    FilesystemFailure,
    LengthMismatch,
    PresetSyncError,
    TransportError,
    TransportUnavailable,
)
from ..logging import get_logger
from ..models import (
    HEAD,
    FetchedPreset,
    HostedSource,
    LocalSource,
    PresetFileInfo,
    PresetPointer,
    PresetSource,
)
from .classify import most_specific
from .transports import GhCliTransport, HttpTransport, LocalTransport

_T = TypeVar("_T")


class PresetFetcher:
    """Retrieves preset files, falling back from `gh` to plain HTTP."""

    def __init__(
        self,
        *,
        local: LocalTransport | None = None,
        gh: GhCliTransport | None = None,
        http: HttpTransport | None = None,
        max_workers: int = 4,
    ) -> None:
        self.local = local or LocalTransport()
        self.gh = gh or GhCliTransport()
        self.http = http or HttpTransport()
        self.max_workers = max(1, max_workers)
        self.logger = get_logger("fetch")

    def fetch(self, pointer: PresetPointer, destination: Path) -> FetchedPreset:
        """Fetch one pointer and write it to ``destination``."""
        if isinstance(pointer.source, LocalSource):
            data = self.local.read(pointer.source, pointer.file_path)
            method = self.local.name
        else:
            data, method = self._fetch_hosted(pointer)

        self._write(destination, data)
        self.logger.debug("Fetched %s via %s -> %s", pointer.describe(), method, destination)
        return FetchedPreset(
            pointer=pointer,
            local_path=destination,
            content=data.decode("utf-8", errors="replace"),
            retrieval_method=method,
        )

    def fetch_all(
        self, pointers: Sequence[PresetPointer], destinations: Sequence[Path]
    ) -> List[FetchedPreset]:
        """Fetch every pointer; all-or-nothing.

        Every fetch runs to completion before success is decided, so files
        written by successful siblings remain on disk when the batch fails.
        """
        if len(pointers) != len(destinations):
            raise LengthMismatch(len(pointers), len(destinations))
        if not pointers:
            return []

        outcomes: List[FetchedPreset | PresetSyncError] = []
        if self.max_workers == 1 or len(pointers) == 1:
            for pointer, destination in zip(pointers, destinations):
                outcomes.append(self._attempt(pointer, destination))
        else:
            workers = min(self.max_workers, len(pointers))
            with ThreadPoolExecutor(max_workers=workers) as executor:
                futures = [
                    executor.submit(self._attempt, pointer, destination)
                    for pointer, destination in zip(pointers, destinations)
                ]
                wait(futures)
                outcomes = [future.result() for future in futures]

        errors = [outcome for outcome in outcomes if isinstance(outcome, PresetSyncError)]
        if errors:
            raise BatchFetchFailed(errors)
        return [outcome for outcome in outcomes if isinstance(outcome, FetchedPreset)]

    def scan(self, source: PresetSource, revision: str = HEAD) -> List[PresetFileInfo]:
        """List every preset document available in ``source``."""
        if isinstance(source, LocalSource):
            return self.local.scan(source)
        return self._with_fallback(
            source,
            lambda: self.gh.list_tree(source, revision),
            lambda: self.http.list_tree(source, revision),
            subject=source.url,
        )[0]

    # ------------------------------------------------------------------
    # Helpers

    def _attempt(
        self, pointer: PresetPointer, destination: Path
    ) -> FetchedPreset | PresetSyncError:
        try:
            return self.fetch(pointer, destination)
        except PresetSyncError as exc:
            self.logger.warning("Failed to fetch %s: %s", pointer.describe(), exc)
            return exc

    def _fetch_hosted(self, pointer: PresetPointer) -> Tuple[bytes, str]:
        source = pointer.source
        if not isinstance(source, HostedSource):
            raise TransportUnavailable(f"{pointer.describe()}: not a hosted source")
        return self._with_fallback(
            source,
            lambda: self.gh.fetch(pointer),
            lambda: self.http.fetch(pointer),
            subject=pointer.describe(),
        )

    def _with_fallback(
        self,
        source: HostedSource,
        primary: Callable[[], _T],
        fallback: Callable[[], _T],
        *,
        subject: str,
    ) -> Tuple[_T, str]:
        primary_error: Optional[TransportError] = None
        if self.gh.supports(source) and self.gh.available():
            try:
                return primary(), self.gh.name
            except TransportError as exc:
                # Classified for diagnostics only; the HTTP fallback always runs.
                primary_error = exc
                self.logger.info("gh failed for %s (%s); falling back to HTTP", subject, exc)

        try:
            return fallback(), self.http.name
        except TransportError as exc:
            chosen = most_specific([exc, primary_error])
            if chosen is None or chosen is exc:
                raise
            raise chosen from exc

    @staticmethod
    def _write(destination: Path, data: bytes) -> None:
        try:
            destination.parent.mkdir(parents=True, exist_ok=True)
            destination.write_bytes(data)
        except OSError as exc:
            raise FilesystemFailure(f"Unable to write {destination}", exc) from exc


__all__ = ["PresetFetcher"]
