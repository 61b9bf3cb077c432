from __future__ import annotations

import argparse
from importlib.metadata import PackageNotFoundError, version
import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
import sys

from drivetan.config import (
    DEFAULT_EXTENSION,
    DEFAULT_MAGIC,
    DEFAULT_MAX_SIZE,
    FileSettings,
    MirrorConfig,
    build_config,
    load_file_settings,
)
from drivetan.run_service import EXIT_INVALID_CONFIG, EXIT_RUNTIME_OR_CONFIG_ERROR, mirror
from drivetan.skip_filter import build_skip_filter, read_skip_file


def _package_version() -> str:
    try:
        return version("drivetan")
    except PackageNotFoundError:
        return "unknown"


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="drivetan",
        description=(
            "Generates a meta directory structure to remember files on unplugged drives. "
            "Standard output lists properly processed files separated by newlines."
        ),
    )
    parser.add_argument("source", type=Path)
    parser.add_argument("destination", type=Path)
    parser.add_argument(
        "-m",
        "--max-size",
        type=int,
        metavar="SIZE_IN_BYTES",
        help=f"Max size in bytes to copy file unchanged (default {DEFAULT_MAX_SIZE})",
    )
    parser.add_argument(
        "-e",
        "--extension",
        metavar="EXTENSION",
        help=f"Extension for meta files (default {DEFAULT_EXTENSION})",
    )
    parser.add_argument("--magic", metavar="MAGIC", help=f"Magic at the start of a meta file (default {DEFAULT_MAGIC})")
    parser.add_argument(
        "--skip-file",
        type=Path,
        metavar="PATH",
        help=(
            "Skip files/directories matching regexes in the provided file, separated by "
            "newlines (e.g. '\\.git'). Directories do not have trailing slashes."
        ),
    )
    parser.add_argument(
        "--exclude",
        action="append",
        default=[],
        metavar="PATTERN",
        help="Gitignore-style pattern relative to the source root; may be repeated",
    )
    parser.add_argument("--config", type=Path, help="YAML or JSON file with default options")
    parser.add_argument("--dry-run", action="store_true", help="Report what would be processed without writing")
    parser.add_argument("--log-file", type=Path, help="Also write diagnostics to a rotating log file")
    parser.add_argument("-v", "--verbose", action="store_true")
    parser.add_argument("--version", action="version", version=f"%(prog)s {_package_version()}")
    return parser


def _configure_logging(verbose: bool, log_file: Path | None) -> logging.Logger:
    logger = logging.getLogger("drivetan")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    logger.setLevel(logging.DEBUG if verbose else logging.INFO)

    stream_handler = logging.StreamHandler(sys.stderr)
    stream_handler.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(stream_handler)

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(log_file, maxBytes=1_000_000, backupCount=3, encoding="utf-8")
        file_handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(message)s"))
        logger.addHandler(file_handler)
    return logger


def _resolve_config(args: argparse.Namespace) -> MirrorConfig:
    settings = load_file_settings(args.config) if args.config else FileSettings()

    def pick(cli_value, file_value, default):
        if cli_value is not None:
            return cli_value
        if file_value is not None:
            return file_value
        return default

    skip_patterns = list(settings.skip_patterns)
    skip_file = args.skip_file or settings.skip_file
    if skip_file is not None:
        skip_patterns.extend(read_skip_file(skip_file))

    return build_config(
        source=args.source,
        destination=args.destination,
        max_inline_size=pick(args.max_size, settings.max_size, DEFAULT_MAX_SIZE),
        stub_extension=pick(args.extension, settings.extension, DEFAULT_EXTENSION),
        magic=pick(args.magic, settings.magic, DEFAULT_MAGIC),
        skip_patterns=skip_patterns,
        excludes=[*settings.excludes, *args.exclude],
    )


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    log = _configure_logging(args.verbose, args.log_file)

    try:
        config = _resolve_config(args)
        skip_filter = build_skip_filter(config)
    except (OSError, ValueError) as exc:
        log.error("Invalid config: %s", exc)
        return EXIT_INVALID_CONFIG

    try:
        exit_code, _ = mirror(config, skip_filter=skip_filter, out=sys.stdout, dry_run=args.dry_run)
    except (OSError, ValueError) as exc:
        log.error("%s", exc)
        return EXIT_RUNTIME_OR_CONFIG_ERROR
    return exit_code


if __name__ == "__main__":
    raise SystemExit(main())
