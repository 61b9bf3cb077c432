from __future__ import annotations

import logging
import os
from pathlib import Path
import shutil
import tempfile

from drivetan.config import MirrorConfig
from drivetan.models import CopyDecision, TreeEntry
from drivetan.paths import display_path, relativize, stub_destination
from drivetan.stub_format import render_stub


log = logging.getLogger("drivetan.engine")


def _safe_copy(source_file: Path, destination_file: Path) -> None:
    destination_file.parent.mkdir(parents=True, exist_ok=True)
    with tempfile.NamedTemporaryFile(delete=False, dir=str(destination_file.parent)) as tmp:
        tmp_path = Path(tmp.name)
    try:
        shutil.copyfile(source_file, tmp_path)
        shutil.copymode(source_file, tmp_path)
        tmp_path.replace(destination_file)
    finally:
        if tmp_path.exists():
            tmp_path.unlink(missing_ok=True)


def _write_stub(content: bytes, destination_file: Path) -> None:
    destination_file.parent.mkdir(parents=True, exist_ok=True)
    destination_file.write_bytes(content)


def _is_empty_dir(path: Path) -> bool:
    with os.scandir(path) as iterator:
        return next(iterator, None) is None


def _validate_paths(source_root: Path, destination_root: Path) -> None:
    source_resolved = source_root.resolve()
    destination_resolved = destination_root.resolve()

    if source_resolved == destination_resolved:
        raise ValueError(f"Invalid mapping: source and destination are equal: {display_path(source_root)}")

    if destination_resolved.is_relative_to(source_resolved):
        raise ValueError(
            f"Invalid mapping: destination is inside source, which can recurse: {display_path(destination_root)}"
        )


def prepare_destination(config: MirrorConfig, dry_run: bool = False) -> None:
    """Check the run can start, creating the destination root when it is missing.

    Raises ``ValueError`` for a missing source or an unusable destination; nothing in the
    destination is touched in that case.
    """
    source_root = config.source_root
    destination_root = config.destination_root

    if not source_root.exists():
        raise ValueError(f"source path {display_path(source_root)} does not exist or cannot be accessed")
    if not source_root.is_dir():
        raise ValueError(f"source path {display_path(source_root)} is not a directory")

    _validate_paths(source_root, destination_root)

    if destination_root.exists():
        if not destination_root.is_dir():
            raise ValueError(f"destination path {display_path(destination_root)} is not a directory")
        try:
            empty = _is_empty_dir(destination_root)
        except OSError as exc:
            raise ValueError(f"reading destination directory failed: {exc}") from exc
        if not empty:
            raise ValueError(f"destination path {display_path(destination_root)} is not empty")
        return

    if dry_run:
        return
    try:
        destination_root.mkdir(parents=True)
    except OSError as exc:
        raise ValueError(f"creating destination directory failed: {exc}") from exc


def process_entry(entry: TreeEntry, config: MirrorConfig, dry_run: bool = False) -> CopyDecision:
    """Materialize one walked entry in the destination tree.

    Directories are created with any missing ancestors. Files larger than
    ``config.max_inline_size`` are replaced by a stub, smaller ones are copied as-is.
    Hard failures raise ``OSError`` or ``ValueError``; a failure to carry the source
    timestamps over is returned on the decision instead, since the file is already
    in place by then.
    """
    destination = relativize(config.source_root, config.destination_root, entry.path)
    meta = entry.stat()

    if entry.is_dir:
        if not dry_run:
            destination.mkdir(parents=True, exist_ok=True)
        return CopyDecision(source=entry.path, destination=destination, action="mkdir")

    if meta.st_size > config.max_inline_size:
        destination = stub_destination(destination, config.stub_extension)
        decision = CopyDecision(source=entry.path, destination=destination, action="stub")
        if not dry_run:
            _write_stub(render_stub(meta.st_size, config.magic), destination)
    else:
        decision = CopyDecision(source=entry.path, destination=destination, action="copy")
        if not dry_run:
            _safe_copy(entry.path, destination)

    if dry_run:
        return decision

    try:
        os.utime(destination, ns=(meta.st_atime_ns, meta.st_mtime_ns))
    except OSError as exc:
        log.debug("setting timestamps on %s failed: %s", display_path(destination), exc)
        decision.timestamp_error = exc
    return decision
