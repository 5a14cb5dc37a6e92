"""Command line interface for tree_uploader."""
from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

from rich.logging import RichHandler

from . import __version__
from .cli_progress import BatchUploadProgressDisplay, render_configuration_summary
from .errors import RemoteOperationError
from .handles import handles_from_paths
from .models import UploadConfig
from .orchestrator import UploadOrchestrator
from .services.remote import RemoteDirectoryClient


class CLIError(RuntimeError):
    """Raised when CLI validation/execution fails."""


LOG_LEVEL_ENV = "TREE_UP_LOG_LEVEL"
ENV_FILE_ENV = "TREE_UP_ENV_FILE"

# chatty per-request loggers, kept at WARNING unless --debug
_NOISY_LOGGERS = ("httpx", "httpcore")


def _resolve_log_level(debug: bool, log_level: Optional[str]) -> Optional[int]:
    """--debug wins, then --log-level, then TREE_UP_LOG_LEVEL; None means silent."""
    if debug:
        return logging.DEBUG
    name = log_level or os.getenv(LOG_LEVEL_ENV)
    if not name:
        return None
    level = logging.getLevelName(name.strip().upper())
    if not isinstance(level, int):
        raise CLIError(f"unknown log level: {name}")
    return level


def _setup_logging(debug: bool, silent: bool, log_level: Optional[str]) -> str:
    """
    Route logs through rich, or switch them off.

    Returns the effective level name, or "silent".
    """
    root_logger = logging.getLogger()
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
    logging.disable(logging.NOTSET)

    level = None if silent else _resolve_log_level(debug, log_level)
    if level is None:
        logging.disable(logging.CRITICAL)
        root_logger.setLevel(logging.CRITICAL + 1)
        return "silent"

    handler = RichHandler(rich_tracebacks=True, markup=False, show_time=False, show_path=False)
    handler.setFormatter(logging.Formatter("%(message)s"))
    root_logger.addHandler(handler)
    root_logger.setLevel(level)
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.NOTSET if debug else logging.WARNING)
    return logging.getLevelName(level)


def _parse_env_line(raw_line: str) -> Optional[Tuple[str, str]]:
    """KEY=VALUE with optional "export " and matching quotes; None for anything else."""
    line = raw_line.strip()
    if not line or line.startswith("#"):
        return None
    if line.startswith("export "):
        line = line[len("export "):].lstrip()
    key, sep, value = line.partition("=")
    key = key.strip()
    if not sep or not key:
        return None
    value = value.strip()
    if len(value) >= 2 and value[0] == value[-1] and value[0] in "'\"":
        value = value[1:-1]
    return key, value


def _load_env_file(path: Path, override: bool = False) -> List[str]:
    """Apply a .env file to os.environ; returns the keys actually set."""
    if not path.is_file():
        raise CLIError(f"env file not found: {path}")
    try:
        lines = path.read_text(encoding="utf-8").splitlines()
    except OSError as exc:
        raise CLIError(f"could not read env file {path}: {exc}") from exc

    applied = []
    for pair in filter(None, map(_parse_env_line, lines)):
        key, value = pair
        if override or key not in os.environ:
            os.environ[key] = value
            applied.append(key)
    return applied


def _resolve_default_env_file() -> Optional[Path]:
    """TREE_UP_ENV_FILE when set (it must exist), else ./.env if present."""
    configured = os.getenv(ENV_FILE_ENV)
    if configured:
        return Path(configured).expanduser()
    default_env = Path(".env")
    return default_env if default_env.is_file() else None


def _normalize_url(url: Optional[str]) -> str:
    value = (url or "").strip()
    if not value:
        raise CLIError("no destination URL: pass --url or set TREE_UP_URL")
    if not value.startswith(("http://", "https://")):
        raise CLIError(f"destination URL must be http(s): {value}")
    return value if value.endswith("/") else value + "/"


async def _run_upload(
    sources: List[Path],
    url: str,
    config: UploadConfig,
    follow_symlinks: bool,
) -> int:
    try:
        roots = handles_from_paths(sources, config.page_size, follow_symlinks)
    except FileNotFoundError as exc:
        raise CLIError(str(exc)) from exc

    display = BatchUploadProgressDisplay()
    async with UploadOrchestrator(url, config=config) as orchestrator:
        process = orchestrator.upload(roots)
        process.on_counted(display.on_counted)
        process.on_task_start(display.on_task_start)
        process.on_task_progress(display.on_task_progress)
        process.on_task_complete(display.on_task_complete)
        process.on_task_fail(display.on_task_fail)
        process.on_task_cancel(display.on_task_cancel)
        process.on_enumeration_error(display.on_enumeration_error)
        process.on_error(display.on_error)

        try:
            result = await process.wait()
        except asyncio.CancelledError:
            await process.cancel()
            raise

        if result.success:
            display.on_finish(result)
        if result.error:
            print(f"ERROR: {result.error}", file=sys.stderr)
        # the batch completes even with failed files; the exit code reports them
        return 0 if result.all_success else 1


async def _run_management(url: str, timeout: float, args: argparse.Namespace) -> int:
    async with RemoteDirectoryClient(url, timeout=timeout) as remote:
        try:
            if args.mkdir:
                await remote.mkdir(args.mkdir)
                print(f"Created: {args.mkdir}")
            if args.delete:
                await remote.delete(args.delete)
                print(f"Deleted: {args.delete}")
            if args.rename:
                source, destination = args.rename
                await remote.rename(source, destination)
                print(f"Renamed: {source} -> {destination}")
        except RemoteOperationError as exc:
            raise CLIError(str(exc)) from exc
    return 0


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tree-up",
        description="Upload files and directory trees to an HTTP file server with PUT.",
    )
    parser.add_argument("sources", nargs="*", type=Path, help="Files and/or directories to upload")
    parser.add_argument(
        "-u",
        "--url",
        default=None,
        help="Destination directory URL (default from TREE_UP_URL)",
    )
    parser.add_argument(
        "-p",
        "--max-parallel",
        type=int,
        default=None,
        help="Cap simultaneous transfers (default: all at once, or TREE_UP_MAX_PARALLEL)",
    )
    parser.add_argument(
        "--no-count",
        action="store_true",
        help="Skip the counting pass; the total grows as files are discovered",
    )
    parser.add_argument(
        "--no-mtime",
        action="store_true",
        help="Do not send X-Last-Modified",
    )
    parser.add_argument(
        "--follow-symlinks",
        action="store_true",
        help="Descend into symlinked directories",
    )
    parser.add_argument("--mkdir", metavar="NAME", default=None, help="Create a directory (MKCOL)")
    parser.add_argument("--delete", metavar="NAME", default=None, help="Delete a file or directory")
    parser.add_argument(
        "--rename",
        nargs=2,
        metavar=("SRC", "DST"),
        default=None,
        help="Rename SRC to DST (MOVE)",
    )
    parser.add_argument(
        "--env-file",
        type=Path,
        default=None,
        help="Load environment variables from this .env file (default: TREE_UP_ENV_FILE or ./.env)",
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logs")
    parser.add_argument("--silent", action="store_true", help="Only print errors")
    parser.add_argument(
        "--log-level",
        default=None,
        help="Log level (DEBUG/INFO/WARNING/ERROR); default from TREE_UP_LOG_LEVEL, else silent",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"tree-up {__version__}",
    )
    return parser


def run_cli(argv: Optional[Sequence[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    # the env file goes first so it can carry TREE_UP_LOG_LEVEL
    used_env_file = args.env_file or _resolve_default_env_file()
    try:
        if used_env_file is not None:
            _load_env_file(Path(used_env_file))
        effective_log_mode = _setup_logging(
            debug=args.debug,
            silent=args.silent,
            log_level=args.log_level,
        )
    except CLIError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1

    managing = bool(args.mkdir or args.delete or args.rename)
    if not args.sources and not managing:
        parser.print_help()
        return 0

    try:
        url = _normalize_url(args.url or os.getenv("TREE_UP_URL"))
        config = UploadConfig.from_env(
            max_concurrency=args.max_parallel,
            count_first=False if args.no_count else None,
            send_last_modified=False if args.no_mtime else None,
        )
    except (CLIError, ValueError) as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1

    try:
        if managing:
            return asyncio.run(_run_management(url, config.timeout, args))

        sources = [Path(s).expanduser() for s in args.sources]
        render_configuration_summary(
            {
                "Sources": ", ".join(str(s) for s in sources),
                "Destination": url,
                "Max Parallel": config.max_concurrency or "unlimited",
                "Counting Pass": "yes" if config.count_first else "no",
                "Send mtime": "yes" if config.send_last_modified else "no",
                "Env File": str(used_env_file) if used_env_file else "-",
                "Logging": effective_log_mode,
            }
        )
        return asyncio.run(_run_upload(sources, url, config, args.follow_symlinks))
    except CLIError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("Cancelled.", file=sys.stderr)
        return 130


def main() -> None:
    raise SystemExit(run_cli())


if __name__ == "__main__":
    main()
