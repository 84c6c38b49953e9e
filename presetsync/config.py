"""Configuration loading for presetsync (config.yml)."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import yaml

from .errors import ConfigError
from .logging import get_logger
from .paths import CONFIG_FILENAME, DEFAULT_DOCUMENT_NAME

CONFIG_VERSION = "1.0.0"

_LOGGER = get_logger("config")


@dataclass
class FetchConfig:
    """Transport settings used by the fetch orchestrator."""

    request_timeout: float = 30.0
    max_workers: int = 4


@dataclass
class PresetSyncConfig:
    """Represents the settings defined in config.yml."""

    default_preset_repositories: List[str] = field(default_factory=list)
    default_preset_repo: Optional[str] = None
    default_presets: List[str] = field(default_factory=list)
    version: str = CONFIG_VERSION
    document_name: str = DEFAULT_DOCUMENT_NAME
    fetch: FetchConfig = field(default_factory=FetchConfig)

    @property
    def default_repository(self) -> Optional[str]:
        """The repository slot the default presets are resolved against."""
        if self.default_preset_repo:
            return self.default_preset_repo
        if self.default_preset_repositories:
            return self.default_preset_repositories[0]
        return None

    def repositories(self) -> List[str]:
        """Every configured repository, without duplicates, in config order."""
        ordered: List[str] = []
        for repo in [self.default_preset_repo, *self.default_preset_repositories]:
            if repo and repo not in ordered:
                ordered.append(repo)
        return ordered

    def add_repository(self, repository: str) -> bool:
        """Append to ``default_preset_repositories``; False when already listed."""
        if repository in self.default_preset_repositories:
            return False
        self.default_preset_repositories.append(repository)
        return True

    def remove_repository(self, repository: str) -> None:
        if repository not in self.default_preset_repositories:
            raise ConfigError(f"Repository {repository!r} is not in default_preset_repositories")
        self.default_preset_repositories.remove(repository)


def config_path_for(cache_root: Path) -> Path:
    return cache_root / CONFIG_FILENAME


def load_config(config_path: Path) -> PresetSyncConfig:
    """Load configuration from disk; a missing file yields the defaults."""
    config_file = _resolve_config_path(config_path)
    if not config_file.exists():
        return PresetSyncConfig()

    data = _read_config(config_file)
    if not isinstance(data, dict):
        raise ConfigError(f"{config_file.name} must contain a mapping at the root")

    fetch_data = _as_dict(data.get("fetch"))
    fetch = FetchConfig()
    if fetch_data:
        timeout = _as_float(fetch_data.get("request_timeout"))
        workers = _as_int(fetch_data.get("max_workers"))
        if timeout is not None and timeout > 0:
            fetch.request_timeout = timeout
        if workers is not None and workers > 0:
            fetch.max_workers = workers

    version = _as_str(data.get("version")) or CONFIG_VERSION
    if version != CONFIG_VERSION:
        _LOGGER.warning(
            "%s declares version %s (expected %s)", config_file.name, version, CONFIG_VERSION
        )

    return PresetSyncConfig(
        default_preset_repositories=_as_str_list(data.get("default_preset_repositories")),
        default_preset_repo=_as_str(data.get("default_preset_repo")),
        default_presets=_as_str_list(data.get("default_presets")),
        version=version,
        document_name=_as_str(data.get("document_name")) or DEFAULT_DOCUMENT_NAME,
        fetch=fetch,
    )


def save_config(config: PresetSyncConfig, config_path: Path) -> Path:
    """Write the configuration as YAML, stamping the current version."""
    config_file = _resolve_config_path(config_path)
    payload: Dict[str, Any] = {
        "version": CONFIG_VERSION,
        "default_preset_repositories": list(config.default_preset_repositories),
        "default_presets": list(config.default_presets),
        "document_name": config.document_name,
        "fetch": {
            "request_timeout": config.fetch.request_timeout,
            "max_workers": config.fetch.max_workers,
        },
    }
    if config.default_preset_repo:
        payload["default_preset_repo"] = config.default_preset_repo
    config_file.parent.mkdir(parents=True, exist_ok=True)
    config_file.write_text(yaml.safe_dump(payload, sort_keys=True), encoding="utf-8")
    return config_file


def _resolve_config_path(config_path: Path) -> Path:
    config_path = config_path.expanduser()
    if config_path.is_dir():
        return (config_path / CONFIG_FILENAME).resolve()
    return config_path.resolve()


def _read_config(path: Path) -> Any:
    text = path.read_text(encoding="utf-8")
    if not text.strip():
        return {}
    try:
        loaded = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse {path.name}: {exc}") from exc
    return loaded or {}


def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _as_str(value: Any) -> Optional[str]:
    if isinstance(value, bool):
        return None
    return str(value) if isinstance(value, (str, int, float)) else None


def _as_float(value: Any) -> Optional[float]:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            return None
    return None


def _as_int(value: Any) -> Optional[int]:
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str):
        try:
            return int(value)
        except ValueError:
            return None
    return None


def _as_str_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, Sequence):
        return [str(item) for item in value if isinstance(item, (str, int, float))]
    return []


__all__ = [
    "CONFIG_VERSION",
    "FetchConfig",
    "PresetSyncConfig",
    "config_path_for",
    "load_config",
    "save_config",
]
