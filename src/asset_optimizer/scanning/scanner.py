from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import AbstractSet, List

from ..config import BACKUP_PREFIX
from .classifier import is_optimizable

logger = logging.getLogger(__name__)

DEFAULT_IGNORE_DIRS: frozenset[str] = frozenset({"node_modules", ".git", "assets_backup"})


def scan_tree(
    root: Path,
    *,
    ignore_dirs: AbstractSet[str] = DEFAULT_IGNORE_DIRS,
    backup_prefix: str = BACKUP_PREFIX,
) -> List[Path]:
    """Return every optimizable image below *root*, depth-first.

    Hidden entries, ignored directory names and previous backup snapshots are
    skipped. Unreadable directories are logged and left out of the result.
    """

    results: List[Path] = []
    _walk(Path(root).absolute(), results, ignore_dirs, backup_prefix)
    return results


def _walk(directory: Path, results: List[Path], ignore_dirs: AbstractSet[str], backup_prefix: str) -> None:
    try:
        with os.scandir(directory) as iterator:
            entries = sorted(iterator, key=lambda entry: entry.name)
    except OSError as exc:
        logger.warning("Unable to read directory %s: %s", directory, exc)
        return

    for entry in entries:
        name = entry.name
        if name.startswith(".") or name in ignore_dirs or name.startswith(backup_prefix):
            continue
        path = directory / name
        try:
            if entry.is_dir(follow_symlinks=False):
                _walk(path, results, ignore_dirs, backup_prefix)
            elif entry.is_file(follow_symlinks=False) and is_optimizable(name):
                results.append(path)
        except OSError as exc:
            logger.warning("Unable to inspect %s: %s", path, exc)
