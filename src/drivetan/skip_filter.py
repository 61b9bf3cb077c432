from __future__ import annotations

import os
from pathlib import Path
import re
from typing import Iterable

import pathspec

from drivetan.config import MirrorConfig
from drivetan.paths import display_path


class PatternCompileError(ValueError):
    """Raised when a skip pattern is not a valid regular expression."""


def read_skip_file(path: Path) -> list[str]:
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise ValueError(f"could not read file {display_path(path)}: {exc}") from exc
    return text.splitlines()


def _compile_patterns(patterns: Iterable[str]) -> list[re.Pattern[bytes]]:
    compiled: list[re.Pattern[bytes]] = []
    for pattern in patterns:
        if not pattern:
            continue
        try:
            compiled.append(re.compile(os.fsencode(pattern)))
        except re.error as exc:
            raise PatternCompileError(f"invalid skip pattern {pattern!r}: {exc}") from exc
    return compiled


class SkipFilter:
    """Decides which walked paths stay out of the destination tree.

    Regular expressions are searched in the raw bytes of the full path, so paths that
    are not valid text can still be matched. Gitignore-style excludes are matched
    against the path relative to ``source_root``. Either kind of match skips the path.
    """

    def __init__(
        self,
        patterns: Iterable[str] = (),
        excludes: Iterable[str] = (),
        source_root: Path | None = None,
    ) -> None:
        self._regexes = _compile_patterns(patterns)
        exclude_lines = [line for line in excludes if line.strip()]
        if exclude_lines and source_root is None:
            raise ValueError("source_root is required when excludes are given")
        self._spec = pathspec.PathSpec.from_lines("gitwildmatch", exclude_lines) if exclude_lines else None
        self._source_root = source_root

    def __len__(self) -> int:
        return len(self._regexes) + (len(self._spec.patterns) if self._spec else 0)

    def matches_regex(self, path: Path) -> bool:
        raw = os.fsencode(path)
        return any(regex.search(raw) for regex in self._regexes)

    def matches_exclude(self, path: Path, is_dir: bool = False) -> bool:
        if self._spec is None or self._source_root is None:
            return False
        try:
            relative = path.relative_to(self._source_root)
        except ValueError:
            return False
        unix_path = relative.as_posix()
        if unix_path == ".":
            return False
        candidate = f"{unix_path}/" if is_dir else unix_path
        return self._spec.match_file(candidate)

    def is_skipped(self, path: Path, is_dir: bool = False) -> bool:
        return self.matches_regex(path) or self.matches_exclude(path, is_dir=is_dir)


def build_skip_filter(config: MirrorConfig) -> SkipFilter:
    return SkipFilter(config.skip_patterns, excludes=config.excludes, source_root=config.source_root)
