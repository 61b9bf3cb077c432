from __future__ import annotations

import os
from pathlib import Path
from typing import Iterator

from drivetan.models import EntryKind, TreeEntry, WalkError


def _entry_kind(dir_entry: os.DirEntry) -> EntryKind:
    if dir_entry.is_dir(follow_symlinks=False):
        return EntryKind.DIRECTORY
    if dir_entry.is_file(follow_symlinks=False):
        return EntryKind.FILE
    return EntryKind.OTHER


def _scan_sorted(directory: Path) -> list[os.DirEntry]:
    with os.scandir(directory) as iterator:
        return sorted(iterator, key=lambda item: item.name)


def walk_tree(source_root: Path) -> Iterator[TreeEntry | WalkError]:
    """Yield every object under ``source_root``, the root included, exactly once.

    A directory's children are yielded together before any of them is descended into,
    so a parent is always seen before its descendants. Symbolic links are reported but
    never descended into. Failures to read a directory or classify an entry are yielded
    as ``WalkError`` items and the walk carries on with the remaining entries.
    """
    try:
        root_kind = EntryKind.DIRECTORY if source_root.is_dir() else EntryKind.FILE
    except OSError as exc:
        yield WalkError(path=source_root, error=exc)
        return

    yield TreeEntry(path=source_root, kind=root_kind, depth=0)
    if root_kind is not EntryKind.DIRECTORY:
        return

    pending: list[tuple[Path, int]] = [(source_root, 0)]
    while pending:
        directory, depth = pending.pop()
        try:
            children = _scan_sorted(directory)
        except OSError as exc:
            yield WalkError(path=directory, error=exc)
            continue

        subdirectories: list[Path] = []
        for child in children:
            child_path = directory / child.name
            try:
                kind = _entry_kind(child)
            except OSError as exc:
                yield WalkError(path=child_path, error=exc)
                continue

            yield TreeEntry(path=child_path, kind=kind, depth=depth + 1, dir_entry=child)
            if kind is EntryKind.DIRECTORY:
                subdirectories.append(child_path)

        pending.extend((subdirectory, depth + 1) for subdirectory in reversed(subdirectories))
