"""Transport strategies that retrieve preset bytes from a source."""

from __future__ import annotations

import base64
import binascii
import json
import os
import subprocess
import threading
from http.client import HTTPException
from pathlib import Path, PurePosixPath
from typing import Iterator, List, Optional
from urllib.error import HTTPError, URLError
from urllib.parse import quote, urlparse
from urllib.request import Request, urlopen

from ..errors import RepositoryNotFoundOrNoAccess, TransportUnavailable
from ..git.runner import CommandRunner, default_runner, failure_output
from ..logging import get_logger
from ..models import HostedSource, LocalSource, PresetFileInfo, PresetPointer
from .classify import classify_transport_error

PRESET_SUFFIX = ".md"
GITHUB_HOST = "github.com"
TOKEN_HOSTS = frozenset({GITHUB_HOST, "api.github.com", "raw.githubusercontent.com"})

_AUTO_TOKEN = object()
_LOGGER = get_logger("fetch.transports")


class LocalTransport:
    """Reads presets straight from a repository checked out on disk."""

    name = "local"

    def read(self, source: LocalSource, file_path: str) -> bytes:
        root = source.path
        if not root.is_dir():
            raise RepositoryNotFoundOrNoAccess(
                f"Local preset repository not found: {root}", transport=self.name
            )

        direct = self._direct_path(root, file_path)
        if direct is not None and direct.is_file():
            return self._read_bytes(direct)

        wanted = PurePosixPath(file_path)
        # Only bare filenames may resolve to a preset elsewhere in the tree.
        by_name = len(wanted.parts) == 1
        for relative, path in self.iter_presets(root):
            name_match = by_name and PurePosixPath(relative).name == wanted.name
            if relative == wanted.as_posix() or name_match:
                _LOGGER.debug("Resolved %s to %s by scanning %s", file_path, relative, root)
                return self._read_bytes(path)

        raise RepositoryNotFoundOrNoAccess(
            f"Preset {file_path} not found in {root}", transport=self.name
        )

    def scan(self, source: LocalSource) -> List[PresetFileInfo]:
        entries: List[PresetFileInfo] = []
        for relative, path in self.iter_presets(source.path):
            try:
                stat = path.stat()
            except OSError as exc:
                _LOGGER.warning("Skipping unreadable preset %s: %s", path, exc)
                continue
            # Placeholder, not a content hash: nothing compares it across runs.
            entries.append(
                PresetFileInfo(
                    name=path.name,
                    path=relative,
                    size=stat.st_size,
                    sha=f"local-{stat.st_mtime_ns}",
                )
            )
        return sorted(entries, key=lambda entry: entry.path)

    @staticmethod
    def iter_presets(root: Path) -> Iterator[tuple[str, Path]]:
        """Yield `(relative posix path, absolute path)` for every preset under root."""

        def _on_error(exc: OSError) -> None:
            _LOGGER.warning("Skipping unreadable directory %s: %s", exc.filename, exc.strerror)

        for dirpath, dirnames, filenames in os.walk(root, onerror=_on_error):
            dirnames[:] = sorted(name for name in dirnames if not name.startswith("."))
            for filename in sorted(filenames):
                if not filename.endswith(PRESET_SUFFIX):
                    continue
                path = Path(dirpath) / filename
                yield path.relative_to(root).as_posix(), path

    @staticmethod
    def _direct_path(root: Path, file_path: str) -> Optional[Path]:
        candidate = (root / Path(*PurePosixPath(file_path).parts)).resolve()
        try:
            candidate.relative_to(root.resolve())
        except ValueError:
            return None
        return candidate

    def _read_bytes(self, path: Path) -> bytes:
        try:
            return path.read_bytes()
        except OSError as exc:
            raise RepositoryNotFoundOrNoAccess(
                f"Unable to read {path}: {exc}", transport=self.name
            ) from exc


class GhCliTransport:
    """Fetches through the authenticated GitHub CLI (`gh api`)."""

    name = "gh"

    def __init__(self, runner: CommandRunner | None = None, executable: str = "gh") -> None:
        self._runner = runner or default_runner
        self.executable = executable
        self._available: Optional[bool] = None
        self._availability_lock = threading.Lock()

    def supports(self, source: HostedSource) -> bool:
        return source.host == GITHUB_HOST

    def available(self) -> bool:
        """Run `gh --version` once per transport instance."""
        with self._availability_lock:
            if self._available is None:
                try:
                    self._runner([self.executable, "--version"], capture_output=True)
                except (OSError, subprocess.CalledProcessError) as exc:
                    _LOGGER.debug("GitHub CLI unavailable: %s", exc)
                    self._available = False
                else:
                    self._available = True
            return self._available

    def fetch(self, pointer: PresetPointer) -> bytes:
        endpoint = (
            f"repos/{pointer.owner}/{pointer.repo}/contents/"
            f"{quote(pointer.file_path)}?ref={quote(pointer.revision, safe='')}"
        )
        payload = self._api(endpoint, subject=pointer.describe())
        if not isinstance(payload, dict) or not isinstance(payload.get("content"), str):
            raise TransportUnavailable(
                f"{pointer.describe()}: unexpected gh api response", transport=self.name
            )
        try:
            return base64.b64decode(payload["content"])
        except (binascii.Error, ValueError) as exc:
            raise TransportUnavailable(
                f"{pointer.describe()}: invalid base64 content from gh api", transport=self.name
            ) from exc

    def list_tree(self, source: HostedSource, revision: str) -> List[PresetFileInfo]:
        endpoint = (
            f"repos/{source.owner}/{source.repo}/git/trees/"
            f"{quote(revision, safe='')}?recursive=1"
        )
        payload = self._api(endpoint, subject=source.url)
        return tree_entries(payload, subject=source.url, transport=self.name)

    def _api(self, endpoint: str, *, subject: str) -> object:
        try:
            output = self._runner([self.executable, "api", endpoint], capture_output=True)
        except FileNotFoundError as exc:
            raise TransportUnavailable(
                f"Unable to locate '{self.executable}' executable", transport=self.name
            ) from exc
        except OSError as exc:
            raise TransportUnavailable(
                f"{subject}: unable to run '{self.executable}': {exc}", transport=self.name
            ) from exc
        except subprocess.CalledProcessError as exc:
            raise classify_transport_error(
                failure_output(exc), transport=self.name, subject=subject
            ) from exc
        try:
            return json.loads(output)
        except json.JSONDecodeError as exc:
            raise TransportUnavailable(
                f"{subject}: gh api returned invalid JSON", transport=self.name
            ) from exc


class HttpTransport:
    """Direct HTTP retrieval, optionally authenticated with a bearer token."""

    name = "http"
    ENV_TOKEN_KEYS = ("GITHUB_TOKEN", "GITHUB_ACCESS_TOKEN")
    API_BASE_URL = "https://api.github.com"
    RAW_BASE_URL = "https://raw.githubusercontent.com"

    def __init__(
        self,
        *,
        token: str | None | object = _AUTO_TOKEN,
        request_timeout: float = 30.0,
    ) -> None:
        self.token = self._resolve_token(token)
        self.request_timeout = request_timeout

    def raw_url(self, pointer: PresetPointer) -> str:
        path = quote(pointer.file_path)
        revision = quote(pointer.revision, safe="")
        if pointer.host == GITHUB_HOST:
            return f"{self.RAW_BASE_URL}/{pointer.owner}/{pointer.repo}/{revision}/{path}"
        return f"https://{pointer.host}/{pointer.owner}/{pointer.repo}/raw/{revision}/{path}"

    def fetch(self, pointer: PresetPointer) -> bytes:
        return self._get(self.raw_url(pointer), subject=pointer.describe())

    def list_tree(self, source: HostedSource, revision: str) -> List[PresetFileInfo]:
        if source.host != GITHUB_HOST:
            raise TransportUnavailable(
                f"{source.url}: listing presets is only supported for {GITHUB_HOST}",
                transport=self.name,
            )
        url = (
            f"{self.API_BASE_URL}/repos/{source.owner}/{source.repo}/git/trees/"
            f"{quote(revision, safe='')}?recursive=1"
        )
        raw = self._get(url, subject=source.url, accept="application/vnd.github+json")
        try:
            payload = json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise TransportUnavailable(
                f"{source.url}: GitHub API returned invalid JSON", transport=self.name
            ) from exc
        if isinstance(payload, dict) and isinstance(payload.get("message"), str):
            raise classify_transport_error(
                payload["message"], transport=self.name, subject=source.url
            )
        return tree_entries(payload, subject=source.url, transport=self.name)

    def _get(self, url: str, *, subject: str, accept: str | None = None) -> bytes:
        headers = {"User-Agent": "presetsync"}
        if accept:
            headers["Accept"] = accept
        if self.token and urlparse(url).hostname in TOKEN_HOSTS:
            headers["Authorization"] = f"Bearer {self.token}"
        request = Request(url, headers=headers, method="GET")
        try:
            with urlopen(request, timeout=self.request_timeout) as response:  # type: ignore[arg-type]
                return response.read()
        except HTTPError as exc:
            detail = _http_error_detail(exc)
            if exc.code == 404 and not self.token:
                detail = f"{detail}; set GITHUB_TOKEN for private repositories"
            raise classify_transport_error(
                detail, status=exc.code, transport=self.name, subject=subject
            ) from exc
        except URLError as exc:
            raise TransportUnavailable(
                f"{subject}: HTTP request failed: {exc.reason}", transport=self.name
            ) from exc
        except (OSError, HTTPException) as exc:
            raise TransportUnavailable(
                f"{subject}: HTTP request failed: {exc!r}", transport=self.name
            ) from exc

    @classmethod
    def _resolve_token(cls, token: str | None | object) -> str | None:
        if token is not _AUTO_TOKEN:
            return token  # type: ignore[return-value]
        for key in cls.ENV_TOKEN_KEYS:
            value = os.getenv(key)
            if value:
                return value
        return None


def tree_entries(payload: object, *, subject: str, transport: str) -> List[PresetFileInfo]:
    """Extract preset blobs from a git tree API response."""
    tree = payload.get("tree") if isinstance(payload, dict) else None
    if not isinstance(tree, list):
        raise TransportUnavailable(f"{subject}: invalid tree response", transport=transport)
    entries: List[PresetFileInfo] = []
    for item in tree:
        if not isinstance(item, dict) or item.get("type") != "blob":
            continue
        path = item.get("path")
        if not isinstance(path, str) or not path.endswith(PRESET_SUFFIX):
            continue
        size = item.get("size")
        sha = item.get("sha")
        entries.append(
            PresetFileInfo(
                name=PurePosixPath(path).name,
                path=path,
                size=size if isinstance(size, int) else 0,
                sha=sha if isinstance(sha, str) else "",
            )
        )
    return sorted(entries, key=lambda entry: entry.path)


def _http_error_detail(exc: HTTPError) -> str:
    try:
        body = exc.read().decode("utf-8", errors="ignore").strip()
    except (OSError, AttributeError):
        body = ""
    if body.startswith("{"):
        try:
            message = json.loads(body).get("message")
        except (json.JSONDecodeError, AttributeError):
            message = None
        if isinstance(message, str) and message:
            return message
    return body or str(exc.reason)


__all__ = [
    "GITHUB_HOST",
    "GhCliTransport",
    "HttpTransport",
    "LocalTransport",
    "tree_entries",
]
