"""Error taxonomy for presetsync operations."""

from __future__ import annotations

from typing import Optional, Sequence


class PresetSyncError(RuntimeError):
    """Base class for every error raised by presetsync."""


class UnsupportedOriginFormat(PresetSyncError):
    """Raised when an origin or repository URL matches none of the known shapes."""

    def __init__(self, origin: str) -> None:
        super().__init__(f"Unsupported git URL format: {origin!r}")
        self.origin = origin


class InvalidPresetFilename(PresetSyncError):
    """Raised when a preset filename lacks the markdown extension."""

    def __init__(self, filename: str) -> None:
        super().__init__(f"Preset filenames must end with .md: {filename!r}")
        self.filename = filename


class MissingRepository(PresetSyncError):
    """Raised when preset filenames are configured without a repository."""


class LengthMismatch(PresetSyncError):
    """Raised when pointer and destination lists differ in length."""

    def __init__(self, pointers: int, destinations: int) -> None:
        super().__init__(
            f"Pointers and destinations must have the same length ({pointers} != {destinations})"
        )
        self.pointers = pointers
        self.destinations = destinations


class BatchFetchFailed(PresetSyncError):
    """Raised when at least one fetch in a batch failed; wraps every failure."""

    def __init__(self, errors: Sequence[PresetSyncError]) -> None:
        self.errors = list(errors)
        detail = "; ".join(str(error) for error in self.errors)
        super().__init__(f"Batch fetch failed ({len(self.errors)} error(s)): {detail}")


class TransportError(PresetSyncError):
    """Base class for classified transport failures."""

    #: Higher values win when choosing which failure to surface.
    specificity = 0

    def __init__(
        self,
        message: str,
        *,
        transport: Optional[str] = None,
        status: Optional[int] = None,
    ) -> None:
        super().__init__(message)
        self.transport = transport
        self.status = status


class RepositoryNotFoundOrNoAccess(TransportError):
    """The repository or file does not exist, or is private to the caller."""

    specificity = 4


class AuthenticationFailed(TransportError):
    """Credentials were missing or rejected."""

    specificity = 4


class PermissionDenied(TransportError):
    """Credentials were accepted but lack access to the resource."""

    specificity = 3


class RateLimited(TransportError):
    """The hosting provider throttled the request."""

    specificity = 3


class TransportUnavailable(TransportError):
    """Generic failure once every transport has been exhausted."""

    specificity = 1


class InvalidDocumentPath(PresetSyncError):
    """Raised when the target document path cannot hold a document."""


class FilesystemFailure(PresetSyncError):
    """Wraps an underlying I/O failure."""

    def __init__(self, message: str, cause: Optional[BaseException] = None) -> None:
        super().__init__(message if cause is None else f"{message}: {cause}")
        self.cause = cause


class NoOriginRemote(PresetSyncError):
    """The repository has no remote named ``origin``."""


class OriginHasNoUrl(PresetSyncError):
    """The ``origin`` remote exists but has no URL configured."""


class NotLocked(PresetSyncError):
    """Raised by unlock when the document is not pinned to a revision."""


class ConfigError(PresetSyncError):
    """Raised when the configuration file cannot be parsed."""


__all__ = [
    "AuthenticationFailed",
    "BatchFetchFailed",
    "ConfigError",
    "FilesystemFailure",
    "InvalidDocumentPath",
    "InvalidPresetFilename",
    "LengthMismatch",
    "MissingRepository",
    "NoOriginRemote",
    "NotLocked",
    "OriginHasNoUrl",
    "PermissionDenied",
    "PresetSyncError",
    "RateLimited",
    "RepositoryNotFoundOrNoAccess",
    "TransportError",
    "TransportUnavailable",
    "UnsupportedOriginFormat",
]
