import os
from pathlib import Path

import pytest

from drivetan.config import build_config
from drivetan.mirror_engine import prepare_destination, process_entry
from drivetan.models import EntryKind, TreeEntry
from drivetan.paths import PathDiffError


def _write(path: Path, content: bytes) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(content)


def _entry(path: Path, kind: EntryKind = EntryKind.FILE) -> TreeEntry:
    return TreeEntry(path=path, kind=kind, depth=1)


def test_small_file_is_copied_verbatim(tmp_path: Path) -> None:
    source = tmp_path / "src"
    destination = tmp_path / "dest"
    _write(source / "a" / "small.txt", b"0123456789")
    config = build_config(source=source, destination=destination, max_inline_size=1024)

    decision = process_entry(_entry(source / "a" / "small.txt"), config)

    assert decision.action == "copy"
    assert decision.destination == destination / "a" / "small.txt"
    assert decision.timestamp_error is None
    assert (destination / "a" / "small.txt").read_bytes() == b"0123456789"
    assert sorted(p.name for p in (destination / "a").iterdir()) == ["small.txt"]


def test_file_at_threshold_is_copied(tmp_path: Path) -> None:
    source = tmp_path / "src"
    destination = tmp_path / "dest"
    _write(source / "edge.bin", b"x" * 16)
    config = build_config(source=source, destination=destination, max_inline_size=16)

    decision = process_entry(_entry(source / "edge.bin"), config)

    assert decision.action == "copy"
    assert (destination / "edge.bin").read_bytes() == b"x" * 16


def test_large_file_becomes_stub(tmp_path: Path) -> None:
    source = tmp_path / "src"
    destination = tmp_path / "dest"
    _write(source / "a" / "big.bin", b"\0" * 5000)
    config = build_config(source=source, destination=destination, max_inline_size=1024)

    decision = process_entry(_entry(source / "a" / "big.bin"), config)

    stub = destination / "a" / "big.bin.drivetan.txt"
    assert decision.action == "stub"
    assert decision.destination == stub
    assert stub.read_bytes() == b"DRIVETAN\n\nsize:       5000\nhuman_size: 4.88 KiB\n"
    assert not (destination / "a" / "big.bin").exists()


def test_default_threshold_stubs_every_non_empty_file(tmp_path: Path) -> None:
    source = tmp_path / "src"
    destination = tmp_path / "dest"
    _write(source / "one.txt", b"1")
    _write(source / "empty.txt", b"")
    config = build_config(source=source, destination=destination, stub_extension=".meta", magic="OFFLINE")

    assert process_entry(_entry(source / "one.txt"), config).action == "stub"
    assert process_entry(_entry(source / "empty.txt"), config).action == "copy"
    assert (destination / "one.txt.meta").read_bytes().startswith(b"OFFLINE\n\nsize:       1\n")


def test_timestamps_are_propagated_for_both_branches(tmp_path: Path) -> None:
    source = tmp_path / "src"
    destination = tmp_path / "dest"
    _write(source / "small.txt", b"abc")
    _write(source / "big.bin", b"x" * 100)
    atime_ns = 1_500_000_000_123_456_000
    mtime_ns = 1_600_000_000_987_654_000
    for name in ("small.txt", "big.bin"):
        os.utime(source / name, ns=(atime_ns, mtime_ns))
    config = build_config(source=source, destination=destination, max_inline_size=10)

    copied = process_entry(_entry(source / "small.txt"), config)
    stubbed = process_entry(_entry(source / "big.bin"), config)

    assert copied.action == "copy"
    assert stubbed.action == "stub"
    for decision in (copied, stubbed):
        result = decision.destination.stat()
        assert result.st_mtime_ns == mtime_ns
        assert result.st_atime_ns == atime_ns


def test_timestamp_failure_keeps_file_and_reports_partial(tmp_path: Path, monkeypatch) -> None:
    source = tmp_path / "src"
    destination = tmp_path / "dest"
    _write(source / "small.txt", b"abc")
    config = build_config(source=source, destination=destination, max_inline_size=10)

    def failing_utime(*args, **kwargs):
        raise PermissionError(1, "Operation not permitted")

    monkeypatch.setattr("drivetan.mirror_engine.os.utime", failing_utime)

    decision = process_entry(_entry(source / "small.txt"), config)

    assert decision.partial is True
    assert isinstance(decision.timestamp_error, PermissionError)
    assert (destination / "small.txt").read_bytes() == b"abc"


def test_directory_creation_is_idempotent(tmp_path: Path) -> None:
    source = tmp_path / "src"
    destination = tmp_path / "dest"
    (source / "a" / "b").mkdir(parents=True)
    _write(source / "a" / "b" / "leaf.txt", b"leaf")
    config = build_config(source=source, destination=destination, max_inline_size=100)

    process_entry(_entry(source / "a" / "b" / "leaf.txt"), config)
    decision = process_entry(_entry(source / "a", EntryKind.DIRECTORY), config)
    again = process_entry(_entry(source / "a", EntryKind.DIRECTORY), config)

    assert decision.action == again.action == "mkdir"
    assert (destination / "a" / "b" / "leaf.txt").read_bytes() == b"leaf"


def test_file_before_its_directory_creates_missing_parents(tmp_path: Path) -> None:
    source = tmp_path / "src"
    destination = tmp_path / "dest"
    _write(source / "x" / "y" / "z.bin", b"z" * 10)
    config = build_config(source=source, destination=destination)

    process_entry(_entry(source / "x" / "y" / "z.bin"), config)

    assert (destination / "x" / "y" / "z.bin.drivetan.txt").is_file()


def test_copy_leaves_no_temporary_files(tmp_path: Path) -> None:
    source = tmp_path / "src"
    destination = tmp_path / "dest"
    _write(source / "data.txt", b"data")
    config = build_config(source=source, destination=destination, max_inline_size=100)

    process_entry(_entry(source / "data.txt"), config)

    assert [p.name for p in destination.iterdir()] == ["data.txt"]


def test_dry_run_writes_nothing(tmp_path: Path) -> None:
    source = tmp_path / "src"
    destination = tmp_path / "dest"
    _write(source / "a" / "big.bin", b"x" * 10)
    config = build_config(source=source, destination=destination)

    decision = process_entry(_entry(source / "a" / "big.bin"), config, dry_run=True)
    folder = process_entry(_entry(source / "a", EntryKind.DIRECTORY), config, dry_run=True)

    assert decision.action == "stub"
    assert folder.action == "mkdir"
    assert not destination.exists()


def test_entry_outside_source_raises_path_diff_error(tmp_path: Path) -> None:
    source = tmp_path / "src"
    source.mkdir()
    _write(tmp_path / "other" / "file.txt", b"1")
    config = build_config(source=source, destination=tmp_path / "dest")

    with pytest.raises(PathDiffError):
        process_entry(_entry(tmp_path / "other" / "file.txt"), config)


def test_missing_source_file_raises_os_error(tmp_path: Path) -> None:
    source = tmp_path / "src"
    source.mkdir()
    config = build_config(source=source, destination=tmp_path / "dest")

    with pytest.raises(OSError):
        process_entry(_entry(source / "vanished.txt"), config)


def test_prepare_destination_creates_missing_destination(tmp_path: Path) -> None:
    source = tmp_path / "src"
    source.mkdir()
    destination = tmp_path / "new" / "dest"
    config = build_config(source=source, destination=destination)

    prepare_destination(config)

    assert destination.is_dir()


def test_prepare_destination_accepts_existing_empty_directory(tmp_path: Path) -> None:
    source = tmp_path / "src"
    source.mkdir()
    destination = tmp_path / "dest"
    destination.mkdir()

    prepare_destination(build_config(source=source, destination=destination))


def test_prepare_destination_rejects_non_empty_destination(tmp_path: Path) -> None:
    source = tmp_path / "src"
    source.mkdir()
    destination = tmp_path / "dest"
    _write(destination / "keep.txt", b"keep")

    with pytest.raises(ValueError, match="is not empty"):
        prepare_destination(build_config(source=source, destination=destination))

    assert [p.name for p in destination.iterdir()] == ["keep.txt"]


def test_prepare_destination_rejects_missing_source(tmp_path: Path) -> None:
    config = build_config(source=tmp_path / "missing", destination=tmp_path / "dest")

    with pytest.raises(ValueError, match="does not exist"):
        prepare_destination(config)

    assert not (tmp_path / "dest").exists()


def test_prepare_destination_rejects_destination_inside_source(tmp_path: Path) -> None:
    source = tmp_path / "src"
    source.mkdir()

    with pytest.raises(ValueError, match="inside source"):
        prepare_destination(build_config(source=source, destination=source / "meta"))

    with pytest.raises(ValueError, match="are equal"):
        prepare_destination(build_config(source=source, destination=source))


def test_prepare_destination_dry_run_does_not_create(tmp_path: Path) -> None:
    source = tmp_path / "src"
    source.mkdir()
    destination = tmp_path / "dest"

    prepare_destination(build_config(source=source, destination=destination), dry_run=True)

    assert not destination.exists()
