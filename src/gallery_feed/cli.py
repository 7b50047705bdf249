"""Command-line interface for gallery_feed."""

from __future__ import annotations

import argparse
import logging
import sys
import traceback
from contextlib import contextmanager
from typing import (
    TYPE_CHECKING,
    Any,
    Callable,
    Dict,
    Iterator,
    NoReturn,
    Optional,
    Sequence,
    Tuple,
)

from . import __version__, config, progress, workflow
from .exceptions import CommandLineError

if TYPE_CHECKING:  # pragma: no cover - typing only
    import tqdm

_LOGGER = logging.getLogger(__name__)

HELP_FLAGS = ("/?", "--help", "--h")

USAGE = """Usage: gallery-feed [ExtensionGalleryPath] [options]
[ExtensionGalleryPath] => The path to the root of the extension gallery.
\t\tIf it is not specified, the current working directory
\t\twill be used instead.

Options:
  --config FILE       Read settings from a JSON or YAML file
  --log-level LEVEL   Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
  --log-file FILE     Also write logs to FILE
  --timeout SECONDS   Timeout for packages fetched over HTTP
  --user-agent UA     User-Agent header for packages fetched over HTTP
  --sort              List categories and packages in name order
  --dry-run           Read every package but do not touch atom.xml
  --no-progress       Do not display a progress bar
  --version           Show program version and exit"""


class _TqdmScanBar:
    """Shows the package being read as the bar postfix."""

    def __init__(self, bar: "tqdm.tqdm") -> None:
        self._bar = bar

    def package_started(self, label: str) -> None:
        self._bar.set_postfix_str(label, refresh=False)

    def package_finished(self) -> None:
        self._bar.update(1)


@contextmanager
def _tqdm_scan_display(package_count: int) -> Iterator[_TqdmScanBar]:
    from tqdm import tqdm

    kwargs: Dict[str, Any] = {
        "desc": "Reading packages",
        "total": package_count,
        "unit": "pkg",
        "leave": False,
    }
    with tqdm(**kwargs) as bar:
        yield _TqdmScanBar(bar)


def print_help() -> None:
    print(USAGE)


class _ArgumentParser(argparse.ArgumentParser):
    """ArgumentParser that raises instead of printing to stderr and exiting."""

    def error(self, message: str) -> NoReturn:
        raise CommandLineError(f"{self.prog}: error: {message}")


def _build_parser() -> argparse.ArgumentParser:
    parser = _ArgumentParser(
        prog="gallery-feed",
        description="Generate the atom.xml feed of a private Visual Studio extension gallery.",
        add_help=False,
    )
    parser.add_argument("gallery_path", nargs="?", default=None, help="Extension gallery root")
    parser.add_argument("--config", default=None, help="Path to configuration file (JSON or YAML)")
    parser.add_argument(
        "--log-level",
        default=None,
        type=str.upper,
        help="Logging level (e.g., DEBUG, INFO)",
    )
    parser.add_argument("--log-file", default=None, help="Optional log file path")
    parser.add_argument("--timeout", type=int, default=None, help="Request timeout in seconds")
    parser.add_argument("--user-agent", default=None, help="User-Agent header")
    parser.add_argument(
        "--sort",
        dest="sort_entries",
        action="store_true",
        default=None,
        help="Sort categories and packages by name",
    )
    parser.add_argument(
        "--dry-run", action="store_true", default=None, help="Do not delete or write atom.xml"
    )
    parser.add_argument(
        "--no-progress",
        dest="show_progress",
        action="store_false",
        default=None,
        help="Disable the progress bar",
    )
    parser.add_argument("--version", action="store_true", help="Show program version and exit")
    return parser


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    """Parse CLI arguments (help flags are handled by ``main`` beforehand).

    Arguments beyond the gallery path and the known options are ignored.

    Raises:
        CommandLineError: If an option is missing its value or has an invalid one
    """
    args, ignored = _build_parser().parse_known_args(argv)
    if ignored:
        _LOGGER.debug(f"Ignoring extra arguments: {' '.join(ignored)}")
    return args


def _build_config(args: argparse.Namespace) -> config.Config:
    """Materialize a Config from CLI arguments layered over an optional config file.

    Raises:
        ValueError: If the config file cannot be read or holds unknown keys
        ValidationError: If the resulting values are invalid
    """
    payload: Dict[str, Any] = {}
    if args.config:
        payload.update(config.load_config_file(args.config))
        unknown_keys = [key for key in payload if key not in config.Config.model_fields]
        if unknown_keys:
            raise ValueError("Unknown config option(s): " + ", ".join(sorted(unknown_keys)))

    overrides = {
        "gallery_path": args.gallery_path,
        "log_level": args.log_level,
        "log_file": args.log_file,
        "timeout": args.timeout,
        "user_agent": args.user_agent,
        "sort_entries": args.sort_entries,
        "dry_run": args.dry_run,
        "show_progress": args.show_progress,
    }
    payload.update({key: value for key, value in overrides.items() if value is not None})
    return config.Config.model_validate(payload)


def main(
    argv: Optional[Sequence[str]] = None,
    *,
    apply_log_level_fn: Optional[Callable[[str, Optional[str]], None]] = None,
    run_pipeline_fn: Optional[Callable[[config.Config], Tuple[int, str]]] = None,
    logger: Optional[logging.Logger] = None,
) -> int:
    """Entry point for the CLI.

    Always returns 0: failures are reported by printing the full error text to
    stdout, and scripts detect them from the output or the missing atom.xml.
    """
    log = logger or _LOGGER
    argv = list(sys.argv[1:] if argv is None else argv)
    if apply_log_level_fn is None:
        apply_log_level_fn = workflow.apply_log_level
    if run_pipeline_fn is None:
        run_pipeline_fn = workflow.run_pipeline

    if argv and argv[0] in HELP_FLAGS:
        print_help()
        return 0

    try:
        args = parse_args(argv)
        if args.version:
            print(f"gallery-feed {__version__}")
            return 0

        cfg = _build_config(args)
        apply_log_level_fn(cfg.log_level, cfg.log_file)
        progress.set_scan_display(_tqdm_scan_display if cfg.show_progress else None)

        log.info("Starting extension gallery feed generation")
        log.info(f"  gallery_path: {cfg.gallery_path}")
        log.info(f"  sort_entries: {cfg.sort_entries}")
        log.info(f"  dry_run: {cfg.dry_run}")

        _, summary = run_pipeline_fn(cfg)
    except Exception as exc:
        log.error(f"Feed generation failed: {exc}")
        print(traceback.format_exc(), end="")
        return 0

    log.info(summary)
    return 0


if __name__ == "__main__":  # pragma: no cover - script entry
    raise SystemExit(main())
