from __future__ import annotations

import os
from pathlib import Path


NON_UNICODE_PATH = "<NON_UNICODE_PATH>"


class PathDiffError(ValueError):
    """Raised when an entry path cannot be expressed relative to the source root."""


def display_path(path: Path | str) -> str:
    text = os.fspath(path)
    try:
        text.encode("utf-8")
    except UnicodeEncodeError:
        return NON_UNICODE_PATH
    return text


def relativize(source_root: Path, destination_root: Path, entry_path: Path) -> Path:
    try:
        relative = entry_path.relative_to(source_root)
    except ValueError as exc:
        raise PathDiffError(
            f"could not diff paths: {display_path(entry_path)}, {display_path(source_root)}"
        ) from exc
    return destination_root / relative


def stub_destination(destination: Path, extension: str) -> Path:
    if not destination.name:
        raise PathDiffError(f"Cannot derive stub name for path without a file name: {display_path(destination)}")
    return destination.with_name(destination.name + extension)
