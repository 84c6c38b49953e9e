"""Git and GitHub CLI integration."""

from .repository import GitRepository
from .runner import CommandRunner, default_runner

__all__ = ["CommandRunner", "GitRepository", "default_runner"]
