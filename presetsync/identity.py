"""Project identity (slug) derivation from git origins and filesystem paths."""

from __future__ import annotations

import hashlib
import re
from dataclasses import dataclass

from .errors import UnsupportedOriginFormat
from .models import LOCAL_HOST, LOCAL_OWNER, ProjectIdentity

SLUG_LENGTH = 16
"""Number of lowercase hex characters in every slug."""

_FILE_PREFIX = "file://"
_LOCAL_PATH_MARKER = "local"

# Anchored, full-string patterns. A host never contains "@" in the URL form,
# so ssh:// origins cannot be mistaken for scheme://host/owner/repo.
_URL_PATTERN = re.compile(r"^(?:https?|git)://([^/@\s]+)/([^/\s]+)/([^/\s]+)$")
_SCP_PATTERN = re.compile(r"^[^@/:\s]+@([^:/\s]+):([^/\s]+)/([^/\s]+)$")
_SSH_PATTERN = re.compile(r"^ssh://[^@/\s]+@([^/:\s]+)(?::\d+)?/([^/\s]+)/([^/\s]+)$")


@dataclass(frozen=True)
class OriginParts:
    """Normalized `host/owner/repo` triple parsed from an origin URL."""

    host: str
    owner: str
    repo: str

    @property
    def canonical_url(self) -> str:
        return f"https://{self.host}/{self.owner}/{self.repo}"


def normalize_origin(origin: str) -> str:
    """Trim whitespace, trailing slashes and one trailing `.git` suffix."""
    normalized = origin.strip().rstrip("/")
    if normalized.endswith(".git"):
        normalized = normalized[: -len(".git")]
    return normalized


def parse_origin(origin: str) -> OriginParts:
    """Split an origin URL into its host, owner and repository."""
    normalized = normalize_origin(origin)

    if normalized.startswith(_FILE_PREFIX):
        segments = [part for part in normalized[len(_FILE_PREFIX):].split("/") if part]
        repo = segments[-1] if segments else "local-repo"
        return OriginParts(host=LOCAL_HOST, owner=LOCAL_OWNER, repo=repo)

    for pattern in (_URL_PATTERN, _SCP_PATTERN, _SSH_PATTERN):
        match = pattern.match(normalized)
        if match:
            host, owner, repo = match.groups()
            return OriginParts(host=host.lower(), owner=owner, repo=repo)

    raise UnsupportedOriginFormat(origin)


def short_digest(value: str) -> str:
    return hashlib.sha256(value.encode("utf-8")).hexdigest()[:SLUG_LENGTH]


def resolve_identity(origin: str) -> ProjectIdentity:
    """Derive the project slug from a git origin URL.

    The canonical `https://host/owner/repo` form is hashed into an origin
    digest, embedded in `host__owner__repo-git-<digest>`, and that composite
    is hashed again to produce the slug.
    """
    parts = parse_origin(origin)
    origin_digest = short_digest(parts.canonical_url)
    composite = f"{parts.host}__{parts.owner}__{parts.repo}-git-{origin_digest}"
    return ProjectIdentity(slug=short_digest(composite), origin=parts.canonical_url)


def resolve_identity_from_path(path: str) -> ProjectIdentity:
    """Derive a slug for a project without a git origin."""
    normalized = path[:-1] if path.endswith(("/", "\\")) else path
    return ProjectIdentity(
        slug=short_digest(f"{_LOCAL_PATH_MARKER}__{normalized}"),
        origin=normalized,
    )


__all__ = [
    "OriginParts",
    "SLUG_LENGTH",
    "normalize_origin",
    "parse_origin",
    "resolve_identity",
    "resolve_identity_from_path",
]
