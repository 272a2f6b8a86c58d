from __future__ import annotations

import os
import stat
from pathlib import Path

import pytest

from asset_optimizer.storage import atomic_writer
from asset_optimizer.storage.atomic_writer import AtomicWriter, restore_times


def test_write_replaces_content_and_keeps_mode(tmp_path: Path) -> None:
    target = tmp_path / "image.jpg"
    target.write_bytes(b"old")
    os.chmod(target, 0o640)

    AtomicWriter().write(target, b"new content")

    assert target.read_bytes() == b"new content"
    assert stat.S_IMODE(target.stat().st_mode) == 0o640
    assert [p.name for p in tmp_path.iterdir()] == ["image.jpg"]


def test_write_creates_new_file_with_explicit_mode(tmp_path: Path) -> None:
    target = tmp_path / "sub" / "image.webp"
    AtomicWriter().write(target, b"data", mode=0o600)
    assert target.read_bytes() == b"data"
    assert stat.S_IMODE(target.stat().st_mode) == 0o600


def test_interrupted_rename_leaves_original_untouched(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    target = tmp_path / "image.png"
    target.write_bytes(b"original bytes")

    def interrupted(src, dst):
        raise KeyboardInterrupt

    monkeypatch.setattr(atomic_writer.os, "replace", interrupted)

    with pytest.raises(KeyboardInterrupt):
        AtomicWriter().write(target, b"replacement")

    assert target.read_bytes() == b"original bytes"
    assert [p.name for p in tmp_path.iterdir()] == ["image.png"]


def test_restore_times_copies_source_stat(tmp_path: Path) -> None:
    source = tmp_path / "source.jpg"
    source.write_bytes(b"a")
    os.utime(source, (1_000_000_000, 1_100_000_000))
    target = tmp_path / "target.webp"
    target.write_bytes(b"b")

    restore_times(target, source.stat())

    assert int(target.stat().st_mtime) == 1_100_000_000
    assert int(target.stat().st_atime) == 1_000_000_000


def test_restore_times_ignores_failures(tmp_path: Path) -> None:
    source = tmp_path / "source.jpg"
    source.write_bytes(b"a")
    restore_times(tmp_path / "missing.webp", source.stat())
