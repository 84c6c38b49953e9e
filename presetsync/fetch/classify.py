"""Map raw transport output onto the presetsync error taxonomy."""

from __future__ import annotations

import re
from typing import Iterable, Optional, Type

from ..errors import (
    AuthenticationFailed,
    PermissionDenied,
    RateLimited,
    RepositoryNotFoundOrNoAccess,
    TransportError,
    TransportUnavailable,
)

_HTTP_STATUS = re.compile(r"\bHTTP (\d{3})\b")


def classify_transport_error(
    message: str,
    *,
    status: Optional[int] = None,
    transport: Optional[str] = None,
    subject: Optional[str] = None,
) -> TransportError:
    """Build the most specific error for a failed transport call.

    Transports that know the status code pass ``status``; otherwise it is
    sniffed from the message text (for example ``gh``'s ``HTTP 404`` lines).
    """
    text = (message or "").strip()
    lowered = text.lower()
    if status is None:
        match = _HTTP_STATUS.search(text)
        if match:
            status = int(match.group(1))

    error_type = _error_type(lowered, status)
    prefix = f"{subject}: " if subject else ""
    detail = text or (f"HTTP {status}" if status else "no output")
    return error_type(
        f"{prefix}{_SUMMARIES[error_type]} ({detail})",
        transport=transport,
        status=status,
    )


def _error_type(lowered: str, status: Optional[int]) -> Type[TransportError]:
    # A known status code decides; 403 is shared by throttling and access denial.
    if status == 429:
        return RateLimited
    if status == 403:
        return RateLimited if "rate limit" in lowered else PermissionDenied
    if status == 404:
        return RepositoryNotFoundOrNoAccess
    if status == 401:
        return AuthenticationFailed
    if "rate limit" in lowered:
        return RateLimited
    if "not found" in lowered:
        return RepositoryNotFoundOrNoAccess
    if "bad credentials" in lowered or "authentication" in lowered:
        return AuthenticationFailed
    if "permission denied" in lowered or "forbidden" in lowered:
        return PermissionDenied
    return TransportUnavailable


_SUMMARIES = {
    RateLimited: "rate limit exceeded; wait or configure GITHUB_TOKEN",
    RepositoryNotFoundOrNoAccess: "repository or file not found, or no access",
    AuthenticationFailed: "authentication failed; run 'gh auth login' or check GITHUB_TOKEN",
    PermissionDenied: "permission denied",
    TransportUnavailable: "transport failed",
}


def most_specific(errors: Iterable[Optional[TransportError]]) -> Optional[TransportError]:
    """Pick the error to surface; earlier errors win ties."""
    best: Optional[TransportError] = None
    for error in errors:
        if error is None:
            continue
        if best is None or error.specificity > best.specificity:
            best = error
    return best


__all__ = ["classify_transport_error", "most_specific"]
