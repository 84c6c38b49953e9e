"""Subprocess runner shared by the git and gh integrations."""

from __future__ import annotations

import subprocess
from pathlib import Path
from typing import Iterable, Optional, Protocol


class CommandRunner(Protocol):
    """Callable that runs a command and returns its stdout when captured.

    Implementations raise ``subprocess.CalledProcessError`` on a non-zero exit
    and ``FileNotFoundError`` when the executable is missing.
    """

    def __call__(
        self,
        args: Iterable[str],
        *,
        cwd: Optional[Path] = None,
        env: Optional[dict[str, str]] = None,
        capture_output: bool = False,
    ) -> str: ...


def default_runner(
    args: Iterable[str],
    *,
    cwd: Optional[Path] = None,
    env: Optional[dict[str, str]] = None,
    capture_output: bool = False,
) -> str:
    completed = subprocess.run(
        list(args),
        cwd=str(cwd) if cwd is not None else None,
        env=env,
        check=True,
        text=True,
        capture_output=capture_output,
    )
    if capture_output:
        return completed.stdout
    return ""


def failure_output(exc: subprocess.CalledProcessError) -> str:
    """Best-effort text describing why a command failed."""
    stderr = exc.stderr.strip() if isinstance(exc.stderr, str) else ""
    stdout = exc.stdout.strip() if isinstance(exc.stdout, str) else ""
    return stderr or stdout or f"exit status {exc.returncode}"


__all__ = ["CommandRunner", "default_runner", "failure_output"]
