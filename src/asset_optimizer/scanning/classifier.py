from __future__ import annotations

import os
from pathlib import Path

from ..models import AssetKind, AssetPath

OPTIMIZABLE_EXTENSIONS = frozenset({".jpg", ".jpeg", ".png", ".webp", ".tiff", ".tif"})
# Animated or vector formats; never opened regardless of content.
IGNORED_EXTENSIONS = frozenset({".gif", ".svg", ".ico"})


def extension_of(name: str | os.PathLike[str]) -> str:
    return os.path.splitext(os.fspath(name))[1].lower()


def classify(name: str | os.PathLike[str]) -> AssetKind:
    extension = extension_of(name)
    if extension in IGNORED_EXTENSIONS:
        return AssetKind.IGNORED
    if extension in OPTIMIZABLE_EXTENSIONS:
        return AssetKind.OPTIMIZABLE
    return AssetKind.IRRELEVANT


def classify_path(path: Path) -> AssetPath:
    return AssetPath(path=path.absolute(), extension=extension_of(path), kind=classify(path.name))


def is_optimizable(name: str | os.PathLike[str]) -> bool:
    return classify(name) is AssetKind.OPTIMIZABLE
