"""CLI entrypoints for presetsync commands."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from .config import PresetSyncConfig, config_path_for, load_config, save_config
from .errors import PresetSyncError
from .logging import configure_logging
from .paths import default_cache_root
from .presets.resolver import parse_source, selection_entries
from .sync import PresetSynchronizer, SyncOutcome, init_home


def _add_logging_options(
    parser: argparse.ArgumentParser, *, suppress_default: bool = False
) -> None:
    default: object = argparse.SUPPRESS if suppress_default else False
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        default=default,
        help="Increase log verbosity for troubleshooting.",
    )
    parser.add_argument(
        "-q",
        "--quiet",
        action="store_true",
        default=default,
        help="Only report errors.",
    )


def _add_path_argument(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "path",
        nargs="?",
        default=".",
        help="Path to the project root (defaults to current directory).",
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="presetsync",
        description="Keep shared preset documents in sync across project repositories.",
    )
    _add_logging_options(parser)
    parser.add_argument(
        "--home",
        type=Path,
        default=None,
        help="Cache root holding config.yml, presets and projects (default: $PRESETSYNC_HOME or ~/.presetsync).",
    )
    parser.add_argument(
        "--log-file",
        type=Path,
        default=None,
        help="Also write debug logs to this file.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    init_parser = subparsers.add_parser(
        "init",
        help="Create the cache layout and a starter config.yml.",
    )
    _add_logging_options(init_parser, suppress_default=True)
    init_parser.add_argument(
        "--repo",
        help="Default preset repository (file://<path> or host/owner/repo).",
    )
    init_parser.add_argument(
        "--preset",
        action="append",
        default=[],
        dest="presets",
        help="Default preset filename; repeat for several.",
    )
    init_parser.add_argument(
        "--force",
        action="store_true",
        help="Overwrite an existing config.yml.",
    )

    sync_parser = subparsers.add_parser(
        "sync",
        help="Fetch presets and point the project document at the merged result.",
    )
    _add_logging_options(sync_parser, suppress_default=True)
    _add_path_argument(sync_parser)
    sync_parser.add_argument(
        "--commit",
        default=None,
        help="Pin presets to this commit instead of HEAD.",
    )

    lock_parser = subparsers.add_parser(
        "lock",
        help="Pin the project's presets to a commit.",
    )
    _add_logging_options(lock_parser, suppress_default=True)
    lock_parser.add_argument("sha", help="Commit hash to pin to.")
    _add_path_argument(lock_parser)

    unlock_parser = subparsers.add_parser(
        "unlock",
        help="Return a locked project to HEAD.",
    )
    _add_logging_options(unlock_parser, suppress_default=True)
    _add_path_argument(unlock_parser)

    scan_parser = subparsers.add_parser(
        "scan",
        help="List presets available in the configured repositories.",
    )
    _add_logging_options(scan_parser, suppress_default=True)

    select_parser = subparsers.add_parser(
        "select",
        help="Choose the presets this project syncs.",
    )
    _add_logging_options(select_parser, suppress_default=True)
    select_parser.add_argument("repo", help="Preset repository (host/owner/repo or URL).")
    select_parser.add_argument("files", nargs="+", help="Preset filenames ending in .md.")
    select_parser.add_argument(
        "--path",
        default=".",
        help="Path to the project root (defaults to current directory).",
    )

    config_parser = subparsers.add_parser(
        "config",
        help="Manage the default preset repositories in config.yml.",
    )
    _add_logging_options(config_parser, suppress_default=True)
    config_commands = config_parser.add_subparsers(dest="config_command", required=True)
    config_commands.add_parser("list", aliases=["ls"], help="List configured repositories.")
    add_parser = config_commands.add_parser("add", help="Add a preset repository.")
    add_parser.add_argument("repository", help="Repository (host/owner/repo, URL or file://<path>).")
    remove_parser = config_commands.add_parser(
        "remove", aliases=["rm"], help="Remove a preset repository."
    )
    remove_parser.add_argument("repository", help="Repository exactly as listed.")

    return parser


def main(argv: list[str] | None = None) -> None:
    """CLI entrypoint for presetsync commands."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    configure_logging(
        verbose=bool(args.verbose), quiet=bool(args.quiet), log_file=args.log_file
    )
    cache_root = args.home.expanduser() if args.home is not None else default_cache_root()

    try:
        _dispatch(args, cache_root)
    except (PresetSyncError, OSError) as exc:
        parser.exit(
            1,
            f"presetsync {args.command} failed: {exc}\nRun with --verbose for more details.\n",
        )


def _dispatch(args: argparse.Namespace, cache_root: Path) -> None:
    if args.command == "init":
        config = PresetSyncConfig(
            default_preset_repo=args.repo,
            default_presets=list(args.presets),
        )
        config_file = init_home(cache_root, config, force=bool(args.force))
        print(f"Configuration at {_relativize(config_file)}")
        return

    config_file = config_path_for(cache_root)
    config = load_config(config_file)
    if args.command == "config":
        _configure(args, config, config_file)
        return

    synchronizer = PresetSynchronizer(config, cache_root=cache_root)

    if args.command == "sync":
        if args.commit:
            outcome = synchronizer.run_lock(args.path, args.commit)
        else:
            outcome = synchronizer.run_sync(args.path)
        _report(outcome)
    elif args.command == "lock":
        _report(synchronizer.run_lock(args.path, args.sha))
    elif args.command == "unlock":
        _report(synchronizer.run_unlock(args.path))
    elif args.command == "scan":
        report = synchronizer.scan_sources()
        if not report.presets and not report.errors:
            print("No preset repositories configured")
        for repo, entries in report.presets.items():
            print(f"{repo}:")
            for entry in entries:
                print(f"  {entry.path} ({entry.size} bytes)")
        for repo, error in report.errors.items():
            print(f"{repo}: scan failed: {error}", file=sys.stderr)
    elif args.command == "select":
        entries = selection_entries(args.repo, args.files)
        selection = synchronizer.select(args.path, entries)
        print(f"Selected {len(selection.selected_presets)} preset(s) from {args.repo}")
    else:  # pragma: no cover - argparse enforces choices
        raise PresetSyncError(f"Unknown command {args.command}")


def _configure(args: argparse.Namespace, config: PresetSyncConfig, config_file: Path) -> None:
    action = {"ls": "list", "rm": "remove"}.get(args.config_command, args.config_command)
    if action == "list":
        repositories = config.default_preset_repositories
        if not repositories:
            print("No preset repositories configured. Use `presetsync config add` to add one.")
        for index, repo in enumerate(repositories, start=1):
            print(f"  {index}. {repo}")
    elif action == "add":
        parse_source(args.repository)
        if config.add_repository(args.repository):
            save_config(config, config_file)
            print(f"Added repository: {args.repository}")
        else:
            print(f"Repository {args.repository} is already configured")
    elif action == "remove":
        config.remove_repository(args.repository)
        save_config(config, config_file)
        print(f"Removed repository: {args.repository}")
    else:  # pragma: no cover - argparse enforces choices
        raise PresetSyncError(f"Unknown config command {args.config_command}")


def _report(outcome: SyncOutcome) -> None:
    print(
        f"Synced {len(outcome.artifact.ordered_presets)} preset(s) at {outcome.revision} "
        f"into {_relativize(outcome.document_path)}"
    )


def _relativize(path: Path) -> str:
    try:
        return str(path.relative_to(Path.cwd()))
    except ValueError:
        return str(path)


if __name__ == "__main__":
    main(sys.argv[1:])
