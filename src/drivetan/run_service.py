from __future__ import annotations

import logging
import sys
from typing import TextIO

from drivetan.config import MirrorConfig
from drivetan.mirror_engine import prepare_destination, process_entry
from drivetan.models import MirrorStats, WalkError
from drivetan.paths import display_path
from drivetan.skip_filter import SkipFilter, build_skip_filter
from drivetan.walker import walk_tree


EXIT_SUCCESS = 0
EXIT_RUNTIME_OR_CONFIG_ERROR = 1
EXIT_NOTHING_PROCESSED = 2
EXIT_INVALID_CONFIG = 3


def run_mirror(
    config: MirrorConfig,
    skip_filter: SkipFilter | None = None,
    out: TextIO | None = None,
    dry_run: bool = False,
    logger: logging.Logger | None = None,
) -> tuple[int, MirrorStats]:
    """Walk the source tree and materialize every entry the filter lets through.

    Each processed source path is written to ``out`` as it succeeds. Per-entry failures
    are logged and counted without stopping the walk. The destination must already have
    been checked with ``prepare_destination``.
    """
    log = logger or logging.getLogger("drivetan.run")
    stream = out or sys.stdout
    skip = skip_filter if skip_filter is not None else build_skip_filter(config)
    stats = MirrorStats()

    for item in walk_tree(config.source_root):
        if isinstance(item, WalkError):
            log.error("could not read directory entry %s: %s", display_path(item.path), item.error)
            stats.failed += 1
            continue

        if skip.is_skipped(item.path, is_dir=item.is_dir):
            log.debug("skipped %s", display_path(item.path))
            stats.skipped += 1
            continue

        try:
            decision = process_entry(item, config, dry_run=dry_run)
        except (OSError, ValueError) as exc:
            log.error("handling directory entry %s failed: %s", display_path(item.path), exc)
            stats.failed += 1
            continue

        if decision.partial:
            log.warning(
                "created %s but could not set its timestamps: %s",
                display_path(decision.destination),
                decision.timestamp_error,
            )
            stats.failed += 1
            continue

        log.debug("%s %s -> %s", decision.action, display_path(item.path), display_path(decision.destination))
        stream.write(f"{display_path(item.path)}\n")
        stats.succeeded += 1

    stream.flush()
    log.info("%s", stats.summary_line())

    if stats.succeeded == 0:
        log.error("no entries successfully processed; error count: %s", stats.failed)
        return EXIT_NOTHING_PROCESSED, stats
    return EXIT_SUCCESS, stats


def mirror(
    config: MirrorConfig,
    skip_filter: SkipFilter | None = None,
    out: TextIO | None = None,
    dry_run: bool = False,
    logger: logging.Logger | None = None,
) -> tuple[int, MirrorStats]:
    """Validate the run, then mirror. Fatal problems raise ``ValueError``."""
    if skip_filter is None:
        skip_filter = build_skip_filter(config)
    prepare_destination(config, dry_run=dry_run)
    return run_mirror(config, skip_filter=skip_filter, out=out, dry_run=dry_run, logger=logger)
