from __future__ import annotations

from pathlib import Path

import pytest

from tests._fixtures.source_builder import SourceBuilder


@pytest.fixture
def source_builder(tmp_path: Path) -> SourceBuilder:
    """Provide a local preset repository rooted at the pytest tmp_path."""
    return SourceBuilder(tmp_path)


@pytest.fixture(autouse=True)
def _isolate_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep host credentials and cache locations out of tests."""
    for key in ("GITHUB_TOKEN", "GITHUB_ACCESS_TOKEN", "PRESETSYNC_HOME"):
        monkeypatch.delenv(key, raising=False)
