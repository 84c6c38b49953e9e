"""Tests for the fetch orchestrator and its transports."""

from __future__ import annotations

import base64
import io
import json
import subprocess
from pathlib import Path
from urllib.error import HTTPError, URLError

import pytest

from presetsync.errors import (
    BatchFetchFailed,
    LengthMismatch,
    PermissionDenied,
    RateLimited,
    RepositoryNotFoundOrNoAccess,
    TransportUnavailable,
)
from presetsync.fetch import GhCliTransport, HttpTransport, PresetFetcher
from presetsync.models import HostedSource, PresetPointer
from tests._fixtures.source_builder import SourceBuilder

GITHUB = HostedSource("github.com", "acme", "presets")


class FakeResponse:
    def __init__(self, body: bytes) -> None:
        self._body = body

    def read(self) -> bytes:
        return self._body

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        return False


def _http_error(url: str, code: int, body: str) -> HTTPError:
    return HTTPError(url, code, "error", {}, io.BytesIO(body.encode("utf-8")))


def _gh_runner(responses, calls):
    """Fake command runner: `responses` maps the gh api endpoint to output or an exception."""

    def runner(args, cwd=None, env=None, capture_output=False):
        args = list(args)
        calls.append(args)
        if args[1:] == ["--version"]:
            return "gh version 2.40.0\n"
        outcome = responses[args[2]]
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome

    return runner


def _unavailable_gh(calls):
    def runner(args, cwd=None, env=None, capture_output=False):
        calls.append(list(args))
        raise FileNotFoundError("gh")

    return runner


def test_local_fetch_writes_destination_and_is_idempotent(
    source_builder: SourceBuilder, tmp_path: Path
) -> None:
    source_builder.write({"react.md": "# React\n"})
    fetcher = PresetFetcher()
    destination = tmp_path / "cache" / "react.md"

    first = fetcher.fetch(source_builder.pointer("react.md"), destination)
    second = fetcher.fetch(source_builder.pointer("react.md"), destination)

    assert first == second
    assert first.content == "# React\n"
    assert first.retrieval_method == "local"
    assert destination.read_text(encoding="utf-8") == "# React\n"


def test_local_fetch_falls_back_to_scan_by_name(
    source_builder: SourceBuilder, tmp_path: Path
) -> None:
    source_builder.write({"frontend/react.md": "# Nested React\n"})
    preset = PresetFetcher().fetch(source_builder.pointer("react.md"), tmp_path / "react.md")
    assert preset.content == "# Nested React\n"


def test_local_fetch_missing_file(source_builder: SourceBuilder, tmp_path: Path) -> None:
    with pytest.raises(RepositoryNotFoundOrNoAccess):
        PresetFetcher().fetch(source_builder.pointer("missing.md"), tmp_path / "missing.md")


def test_local_fetch_rejects_escaping_paths(
    source_builder: SourceBuilder, tmp_path: Path
) -> None:
    (tmp_path / "secret.md").write_text("secret", encoding="utf-8")
    with pytest.raises(RepositoryNotFoundOrNoAccess):
        PresetFetcher().fetch(source_builder.pointer("../secret.md"), tmp_path / "out.md")


def test_length_mismatch_is_raised_before_any_io(tmp_path: Path) -> None:
    calls: list = []
    fetcher = PresetFetcher(gh=GhCliTransport(runner=_gh_runner({}, calls)))
    pointers = [PresetPointer(GITHUB, "a.md"), PresetPointer(GITHUB, "b.md")]

    with pytest.raises(LengthMismatch):
        fetcher.fetch_all(pointers, [tmp_path / "a.md"])
    assert calls == []
    assert not (tmp_path / "a.md").exists()


def test_fetch_all_preserves_order(source_builder: SourceBuilder, tmp_path: Path) -> None:
    source_builder.write({"a.md": "A\n", "b.md": "B\n", "c.md": "C\n"})
    names = ["c.md", "a.md", "b.md"]
    pointers = [source_builder.pointer(name) for name in names]
    destinations = [tmp_path / "out" / name for name in names]

    presets = PresetFetcher(max_workers=3).fetch_all(pointers, destinations)

    assert [preset.pointer.file_path for preset in presets] == names
    assert [preset.content for preset in presets] == ["C\n", "A\n", "B\n"]


def test_fetch_all_twice_writes_identical_files(
    source_builder: SourceBuilder, tmp_path: Path
) -> None:
    source_builder.write({"a.md": "A\n", "lang/b.md": "B\n"})
    pointers = [source_builder.pointer("a.md"), source_builder.pointer("lang/b.md")]
    destinations = [tmp_path / "out" / "a.md", tmp_path / "out" / "lang" / "b.md"]
    fetcher = PresetFetcher()

    fetcher.fetch_all(pointers, destinations)
    first = [path.read_bytes() for path in destinations]
    fetcher.fetch_all(pointers, destinations)

    assert [path.read_bytes() for path in destinations] == first == [b"A\n", b"B\n"]


def test_fetch_all_aggregates_every_failure(
    source_builder: SourceBuilder, tmp_path: Path
) -> None:
    source_builder.write({"ok.md": "fine\n"})
    names = ["missing-one.md", "ok.md", "missing-two.md"]
    pointers = [source_builder.pointer(name) for name in names]
    destinations = [tmp_path / "out" / name for name in names]

    with pytest.raises(BatchFetchFailed) as excinfo:
        PresetFetcher(max_workers=2).fetch_all(pointers, destinations)

    assert len(excinfo.value.errors) == 2
    assert all(isinstance(err, RepositoryNotFoundOrNoAccess) for err in excinfo.value.errors)
    assert (tmp_path / "out" / "ok.md").read_text(encoding="utf-8") == "fine\n"


def test_gh_success_skips_http(tmp_path: Path, monkeypatch) -> None:
    calls: list = []
    endpoint = "repos/acme/presets/contents/react.md?ref=HEAD"
    payload = {"content": base64.b64encode(b"# React via gh\n").decode("ascii")}
    gh = GhCliTransport(runner=_gh_runner({endpoint: json.dumps(payload)}, calls))

    def fail_urlopen(request, timeout=None):  # pragma: no cover - must not run
        raise AssertionError("HTTP transport should not be used")

    monkeypatch.setattr("presetsync.fetch.transports.urlopen", fail_urlopen)

    preset = PresetFetcher(gh=gh).fetch(PresetPointer(GITHUB, "react.md"), tmp_path / "r.md")

    assert preset.content == "# React via gh\n"
    assert preset.retrieval_method == "gh"
    assert calls == [["gh", "--version"], ["gh", "api", endpoint]]


def test_gh_failure_falls_back_to_http(tmp_path: Path, monkeypatch) -> None:
    calls: list = []
    endpoint = "repos/acme/presets/contents/react.md?ref=abc123"
    failure = subprocess.CalledProcessError(1, ["gh"], output="", stderr="gh: Not Found (HTTP 404)")
    gh = GhCliTransport(runner=_gh_runner({endpoint: failure}, calls))
    captured = {}

    def fake_urlopen(request, timeout=None):
        captured["url"] = request.full_url
        captured["headers"] = {k.lower(): v for k, v in request.header_items()}
        captured["timeout"] = timeout
        return FakeResponse(b"# React via http\n")

    monkeypatch.setattr("presetsync.fetch.transports.urlopen", fake_urlopen)
    http = HttpTransport(token="secret", request_timeout=7.0)

    preset = PresetFetcher(gh=gh, http=http).fetch(
        PresetPointer(GITHUB, "react.md", "abc123"), tmp_path / "r.md"
    )

    assert preset.content == "# React via http\n"
    assert preset.retrieval_method == "http"
    assert captured["url"] == "https://raw.githubusercontent.com/acme/presets/abc123/react.md"
    assert captured["headers"]["authorization"] == "Bearer secret"
    assert captured["timeout"] == 7.0


def test_unavailable_gh_is_checked_once(tmp_path: Path, monkeypatch) -> None:
    calls: list = []
    gh = GhCliTransport(runner=_unavailable_gh(calls))
    monkeypatch.setattr(
        "presetsync.fetch.transports.urlopen",
        lambda request, timeout=None: FakeResponse(b"body\n"),
    )
    fetcher = PresetFetcher(gh=gh, http=HttpTransport(token=None), max_workers=1)
    pointers = [PresetPointer(GITHUB, "a.md"), PresetPointer(GITHUB, "b.md")]

    presets = fetcher.fetch_all(pointers, [tmp_path / "a.md", tmp_path / "b.md"])

    assert [preset.retrieval_method for preset in presets] == ["http", "http"]
    assert calls == [["gh", "--version"]]


def test_non_github_hosts_skip_gh(tmp_path: Path, monkeypatch) -> None:
    calls: list = []
    captured = {}

    def fake_urlopen(request, timeout=None):
        captured["url"] = request.full_url
        return FakeResponse(b"gitlab\n")

    monkeypatch.setattr("presetsync.fetch.transports.urlopen", fake_urlopen)
    fetcher = PresetFetcher(gh=GhCliTransport(runner=_gh_runner({}, calls)), http=HttpTransport(token=None))
    pointer = PresetPointer(HostedSource("gitlab.com", "acme", "presets"), "docs/style.md")

    fetcher.fetch(pointer, tmp_path / "style.md")

    assert calls == []
    assert captured["url"] == "https://gitlab.com/acme/presets/raw/HEAD/docs/style.md"


def test_http_failure_surfaces_most_specific_error(tmp_path: Path, monkeypatch) -> None:
    calls: list = []
    endpoint = "repos/acme/presets/contents/react.md?ref=HEAD"
    failure = subprocess.CalledProcessError(1, ["gh"], stderr="API rate limit exceeded (HTTP 403)")
    gh = GhCliTransport(runner=_gh_runner({endpoint: failure}, calls))

    def fake_urlopen(request, timeout=None):
        raise URLError("connection refused")

    monkeypatch.setattr("presetsync.fetch.transports.urlopen", fake_urlopen)
    fetcher = PresetFetcher(gh=gh, http=HttpTransport(token=None))

    with pytest.raises(RateLimited):
        fetcher.fetch(PresetPointer(GITHUB, "react.md"), tmp_path / "r.md")
    assert not (tmp_path / "r.md").exists()


def test_http_status_is_classified(tmp_path: Path, monkeypatch) -> None:
    def fake_urlopen(request, timeout=None):
        raise _http_error(request.full_url, 403, json.dumps({"message": "Forbidden"}))

    monkeypatch.setattr("presetsync.fetch.transports.urlopen", fake_urlopen)
    fetcher = PresetFetcher(gh=GhCliTransport(runner=_unavailable_gh([])), http=HttpTransport(token="t"))

    with pytest.raises(PermissionDenied) as excinfo:
        fetcher.fetch(PresetPointer(GITHUB, "react.md"), tmp_path / "r.md")
    assert excinfo.value.status == 403
    assert excinfo.value.transport == "http"


def test_http_404_without_token_hints_at_credentials(tmp_path: Path, monkeypatch) -> None:
    def fake_urlopen(request, timeout=None):
        raise _http_error(request.full_url, 404, "404: Not Found")

    monkeypatch.setattr("presetsync.fetch.transports.urlopen", fake_urlopen)
    fetcher = PresetFetcher(gh=GhCliTransport(runner=_unavailable_gh([])), http=HttpTransport(token=None))

    with pytest.raises(RepositoryNotFoundOrNoAccess) as excinfo:
        fetcher.fetch(PresetPointer(GITHUB, "react.md"), tmp_path / "r.md")
    assert "GITHUB_TOKEN" in str(excinfo.value)


def test_http_token_is_read_from_environment(monkeypatch) -> None:
    monkeypatch.setenv("GITHUB_ACCESS_TOKEN", "from-env")
    assert HttpTransport().token == "from-env"
    monkeypatch.setenv("GITHUB_TOKEN", "preferred")
    assert HttpTransport().token == "preferred"
    assert HttpTransport(token=None).token is None


def test_scan_local_source(source_builder: SourceBuilder) -> None:
    source_builder.write(
        {
            "react.md": "# React\n",
            "lang/python.md": "# Python\n",
            "notes.txt": "ignored",
            ".hidden/secret.md": "ignored",
        }
    )
    entries = PresetFetcher().scan(source_builder.source())

    assert [entry.path for entry in entries] == ["lang/python.md", "react.md"]
    assert entries[1].name == "react.md"
    assert entries[1].size == len(b"# React\n")
    assert entries[1].sha.startswith("local-")


def test_scan_hosted_source_lists_markdown_blobs(monkeypatch) -> None:
    calls: list = []
    endpoint = "repos/acme/presets/git/trees/HEAD?recursive=1"
    tree = {
        "tree": [
            {"path": "react.md", "type": "blob", "size": 8, "sha": "aaa"},
            {"path": "lang", "type": "tree", "sha": "bbb"},
            {"path": "lang/go.md", "type": "blob", "size": 5, "sha": "ccc"},
            {"path": "README.txt", "type": "blob", "size": 1, "sha": "ddd"},
        ]
    }
    gh = GhCliTransport(runner=_gh_runner({endpoint: json.dumps(tree)}, calls))

    entries = PresetFetcher(gh=gh).scan(GITHUB)

    assert [(entry.path, entry.sha, entry.size) for entry in entries] == [
        ("lang/go.md", "ccc", 5),
        ("react.md", "aaa", 8),
    ]


def test_scan_hosted_source_over_http(monkeypatch) -> None:
    captured = {}

    def fake_urlopen(request, timeout=None):
        captured["url"] = request.full_url
        return FakeResponse(json.dumps({"tree": [{"path": "a.md", "type": "blob", "size": 1, "sha": "s"}]}).encode())

    monkeypatch.setattr("presetsync.fetch.transports.urlopen", fake_urlopen)
    fetcher = PresetFetcher(gh=GhCliTransport(runner=_unavailable_gh([])), http=HttpTransport(token=None))

    entries = fetcher.scan(GITHUB, "main")

    assert captured["url"] == "https://api.github.com/repos/acme/presets/git/trees/main?recursive=1"
    assert [entry.path for entry in entries] == ["a.md"]


def test_unavailable_transport_error_when_everything_fails(tmp_path: Path, monkeypatch) -> None:
    def fake_urlopen(request, timeout=None):
        raise URLError("no route")

    monkeypatch.setattr("presetsync.fetch.transports.urlopen", fake_urlopen)
    fetcher = PresetFetcher(gh=GhCliTransport(runner=_unavailable_gh([])), http=HttpTransport(token=None))

    with pytest.raises(TransportUnavailable):
        fetcher.fetch(PresetPointer(GITHUB, "react.md"), tmp_path / "r.md")


def test_token_is_not_sent_to_other_hosts(tmp_path: Path, monkeypatch) -> None:
    captured = {}

    def fake_urlopen(request, timeout=None):
        captured["headers"] = {k.lower(): v for k, v in request.header_items()}
        return FakeResponse(b"gitlab\n")

    monkeypatch.setattr("presetsync.fetch.transports.urlopen", fake_urlopen)
    fetcher = PresetFetcher(gh=GhCliTransport(runner=_unavailable_gh([])), http=HttpTransport(token="ghp_secret"))
    pointer = PresetPointer(HostedSource("gitlab.example.com", "acme", "presets"), "style.md")

    fetcher.fetch(pointer, tmp_path / "style.md")

    assert "authorization" not in captured["headers"]


def test_scan_of_non_github_host_is_unavailable(monkeypatch) -> None:
    def fail_urlopen(request, timeout=None):  # pragma: no cover - must not run
        raise AssertionError("no request should be made for a non-GitHub listing")

    monkeypatch.setattr("presetsync.fetch.transports.urlopen", fail_urlopen)
    fetcher = PresetFetcher(gh=GhCliTransport(runner=_unavailable_gh([])), http=HttpTransport(token="t"))

    with pytest.raises(TransportUnavailable) as excinfo:
        fetcher.scan(HostedSource("gitlab.com", "acme", "presets"))
    assert "only supported for github.com" in str(excinfo.value)


def test_socket_timeout_is_collected_into_batch_failure(tmp_path: Path, monkeypatch) -> None:
    def fake_urlopen(request, timeout=None):
        if request.full_url.endswith("/b.md"):
            raise TimeoutError("The read operation timed out")
        return FakeResponse(b"A\n")

    monkeypatch.setattr("presetsync.fetch.transports.urlopen", fake_urlopen)
    fetcher = PresetFetcher(gh=GhCliTransport(runner=_unavailable_gh([])), http=HttpTransport(token=None))
    pointers = [PresetPointer(GITHUB, "a.md"), PresetPointer(GITHUB, "b.md")]

    with pytest.raises(BatchFetchFailed) as excinfo:
        fetcher.fetch_all(pointers, [tmp_path / "a.md", tmp_path / "b.md"])

    assert len(excinfo.value.errors) == 1
    assert isinstance(excinfo.value.errors[0], TransportUnavailable)
    assert (tmp_path / "a.md").read_text(encoding="utf-8") == "A\n"


def test_gh_os_error_falls_back_to_http(tmp_path: Path, monkeypatch) -> None:
    calls: list = []
    endpoint = "repos/acme/presets/contents/react.md?ref=HEAD"
    gh = GhCliTransport(runner=_gh_runner({endpoint: PermissionError("gh: permission denied")}, calls))
    monkeypatch.setattr(
        "presetsync.fetch.transports.urlopen",
        lambda request, timeout=None: FakeResponse(b"# via http\n"),
    )

    preset = PresetFetcher(gh=gh, http=HttpTransport(token=None)).fetch(
        PresetPointer(GITHUB, "react.md"), tmp_path / "r.md"
    )

    assert preset.retrieval_method == "http"
    assert preset.content == "# via http\n"


def test_gh_version_os_error_marks_cli_unavailable() -> None:
    def runner(args, cwd=None, env=None, capture_output=False):
        raise PermissionError("gh")

    assert GhCliTransport(runner=runner).available() is False


def test_local_fetch_of_nested_path_does_not_match_by_name(
    source_builder: SourceBuilder, tmp_path: Path
) -> None:
    source_builder.write({"other/b.md": "# Other\n"})

    with pytest.raises(RepositoryNotFoundOrNoAccess):
        PresetFetcher().fetch(source_builder.pointer("lang/b.md"), tmp_path / "nested.md")
    preset = PresetFetcher().fetch(source_builder.pointer("b.md"), tmp_path / "bare.md")
    assert preset.content == "# Other\n"
