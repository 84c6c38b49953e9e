"""Read-only git queries used to identify a project."""

from __future__ import annotations

import subprocess
from pathlib import Path

from ..errors import NoOriginRemote, OriginHasNoUrl
from ..logging import get_logger
from .runner import CommandRunner, default_runner, failure_output

ORIGIN_REMOTE = "origin"


class GitRepository:
    """Answers questions about the git checkout containing a project."""

    def __init__(self, runner: CommandRunner | None = None) -> None:
        self._runner = runner or default_runner
        self._logger = get_logger("git")

    def is_repository(self, path: Path) -> bool:
        try:
            output = self._runner(
                ["git", "rev-parse", "--is-inside-work-tree"],
                cwd=path,
                capture_output=True,
            )
        except (FileNotFoundError, NotADirectoryError, subprocess.CalledProcessError) as exc:
            self._logger.debug("%s is not a git repository: %s", path, exc)
            return False
        return output.strip() == "true"

    def get_origin_url(self, path: Path) -> str:
        """Return the URL of the ``origin`` remote.

        Raises ``NoOriginRemote`` when no such remote exists and
        ``OriginHasNoUrl`` when it exists without a URL.
        """
        remotes = self._run(["git", "remote"], cwd=path)
        if ORIGIN_REMOTE not in remotes.split():
            raise NoOriginRemote(f"No '{ORIGIN_REMOTE}' remote configured in {path}")

        try:
            url = self._run(
                ["git", "config", "--get", f"remote.{ORIGIN_REMOTE}.url"], cwd=path
            )
        except subprocess.CalledProcessError as exc:
            # `git config --get` exits 1 when the key is unset.
            self._logger.debug("origin url lookup failed: %s", failure_output(exc))
            url = ""
        url = url.strip()
        if not url:
            raise OriginHasNoUrl(f"Remote '{ORIGIN_REMOTE}' has no URL in {path}")
        return url

    def _run(self, args: list[str], *, cwd: Path) -> str:
        return self._runner(args, cwd=cwd, capture_output=True)


__all__ = ["GitRepository", "ORIGIN_REMOTE"]
