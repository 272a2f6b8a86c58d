from __future__ import annotations

import logging
import os
import re
import time
import unicodedata
from pathlib import Path
from typing import AbstractSet, Iterable, Optional, Set

from ..errors import RenameCollisionError
from ..models import RenameOutcome, RenamePlan
from ..scanning.classifier import extension_of

logger = logging.getLogger(__name__)

MAX_COLLISION_ATTEMPTS = 1000
TWIN_EXTENSION = ".webp"

_UNSAFE_CHARACTERS = re.compile(r"[^0-9A-Za-z\s\-_]")
_SEPARATOR_RUNS = re.compile(r"[\s_]+")
_HYPHEN_RUNS = re.compile(r"-{2,}")
_EXTENSION_UNSAFE = re.compile(r"[^0-9a-z.]")


def normalize_name(name: str) -> str:
    """Return a lower-case, hyphenated, ASCII-only version of a file name.

    >>> normalize_name("Mi Foto (2023).JPG")
    'mi-foto-2023.jpg'
    """

    stem, extension = os.path.splitext(name)
    decomposed = unicodedata.normalize("NFKD", stem)
    value = "".join(char for char in decomposed if not unicodedata.combining(char))
    value = _UNSAFE_CHARACTERS.sub("", value)
    value = _SEPARATOR_RUNS.sub("-", value.strip()).lower()
    value = _HYPHEN_RUNS.sub("-", value).strip("-")
    if not value:
        value = f"image-{int(time.time() * 1000)}"
    return value + _EXTENSION_UNSAFE.sub("", extension.lower())


def plan_rename(path: Path, reserved: AbstractSet[Path] = frozenset()) -> Optional[RenamePlan]:
    """Work out where *path* should move to, or ``None`` if its name is already normalized.

    A numeric suffix is appended when the normalized name is taken by a
    different file or appears in *reserved*.
    """

    path = Path(path)
    normalized = normalize_name(path.name)
    if normalized == path.name:
        return None

    destination = path.parent / normalized
    if _is_taken(destination, path, reserved):
        stem, extension = os.path.splitext(normalized)
        for attempt in range(1, MAX_COLLISION_ATTEMPTS + 1):
            candidate = path.parent / f"{stem}-{attempt}{extension}"
            if not _is_taken(candidate, path, reserved):
                destination = candidate
                break
        else:
            raise RenameCollisionError(
                f"no free name for {path.name} after {MAX_COLLISION_ATTEMPTS} attempts"
            )
    return RenamePlan(from_path=path, to_path=destination)


def _is_taken(candidate: Path, source: Path, reserved: AbstractSet[Path]) -> bool:
    if candidate in reserved:
        return True
    if not os.path.lexists(candidate):
        return False
    try:
        # Case-only renames on case-insensitive file systems resolve to the source itself.
        return not os.path.samefile(candidate, source)
    except OSError:
        return True


class Renamer:
    """Move files to normalized names, carrying their WebP twins along."""

    def apply(self, files: Iterable[Path], *, dry_run: bool = False) -> RenameOutcome:
        outcome = RenameOutcome()
        reserved: Set[Path] = set()
        for source in files:
            source = Path(source)
            try:
                if not source.exists():
                    logger.warning("File no longer exists, skipping rename: %s", source)
                    continue
                plan = plan_rename(source, reserved)
                if plan is None:
                    continue
                if dry_run:
                    reserved.add(plan.to_path)
                    logger.info("[DRY-RUN] Would rename %s -> %s", source.name, plan.to_path.name)
                else:
                    self._move(plan)
                    logger.info("Renamed %s -> %s", source.name, plan.to_path.name)
                outcome.renamed.append(plan)
            except (OSError, RenameCollisionError) as exc:
                logger.error("Failed to rename %s: %s", source.name, exc)
                outcome.errors.append((source, str(exc)))

        if outcome.errors:
            logger.warning(
                "Rename finished with errors: %s ok, %s failed", len(outcome.renamed), len(outcome.errors)
            )
        else:
            logger.info("Rename finished: %s files", len(outcome.renamed))
        return outcome

    def _move(self, plan: RenamePlan) -> None:
        _move_without_overwrite(plan.from_path, plan.to_path)
        if extension_of(plan.from_path) == TWIN_EXTENSION:
            return

        twin = plan.from_path.with_suffix(TWIN_EXTENSION)
        if not twin.exists():
            return
        new_twin = plan.to_path.with_suffix(TWIN_EXTENSION)
        try:
            _move_without_overwrite(twin, new_twin)
        except OSError as exc:
            logger.warning("Unable to move WebP twin %s: %s", twin, exc)


def _move_without_overwrite(source: Path, destination: Path) -> None:
    if os.path.lexists(destination) and not os.path.samefile(source, destination):
        raise FileExistsError(f"destination already exists: {destination}")
    os.rename(source, destination)
