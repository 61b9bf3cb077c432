from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
import os
from pathlib import Path


class EntryKind(str, Enum):
    DIRECTORY = "directory"
    FILE = "file"
    OTHER = "other"


@dataclass(frozen=True, slots=True)
class TreeEntry:
    path: Path
    kind: EntryKind
    depth: int = 0
    dir_entry: os.DirEntry | None = field(default=None, repr=False, compare=False)

    @property
    def is_dir(self) -> bool:
        return self.kind is EntryKind.DIRECTORY

    def stat(self) -> os.stat_result:
        # Symlinks report their own metadata; the root is reached by following it.
        if self.dir_entry is not None:
            return self.dir_entry.stat(follow_symlinks=False)
        if self.depth == 0:
            return os.stat(self.path)
        return os.lstat(self.path)


@dataclass(frozen=True, slots=True)
class WalkError:
    path: Path
    error: OSError


@dataclass(slots=True)
class CopyDecision:
    source: Path
    destination: Path
    action: str
    timestamp_error: OSError | None = None

    @property
    def partial(self) -> bool:
        return self.timestamp_error is not None


@dataclass(slots=True)
class MirrorStats:
    succeeded: int = 0
    failed: int = 0
    skipped: int = 0

    def summary_line(self) -> str:
        return (
            f"success count: {self.succeeded}, error count: {self.failed}, "
            f"skipped count: {self.skipped}"
        )
