from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import List, Optional, Tuple


class AssetKind(str, Enum):
    OPTIMIZABLE = "optimizable"
    IGNORED = "ignored"
    IRRELEVANT = "irrelevant"


@dataclass(frozen=True, slots=True)
class AssetPath:
    """A discovered file together with its classification."""

    path: Path
    extension: str
    kind: AssetKind


@dataclass(frozen=True, slots=True)
class ImageMetadata:
    """Dimensions and frame information read from a decoded source image."""

    width: int
    height: int
    frames: int = 1
    format: Optional[str] = None
    mode: Optional[str] = None

    @property
    def longest_side(self) -> int:
        return max(self.width, self.height)

    @property
    def megapixels(self) -> float:
        return (self.width * self.height) / 1_000_000

    @property
    def is_animated(self) -> bool:
        return self.frames > 1


@dataclass(frozen=True, slots=True)
class QualityPolicy:
    """Encode parameters derived for a single file."""

    primary_quality: int
    alternate_quality: int
    compression_level: int
    should_resize: bool
    target_max_dimension: int
    band: str = "default"


@dataclass(slots=True)
class TranscodeResult:
    """Outcome of optimizing one file: a success, a skip, or an error."""

    path: Path
    original_bytes: int = 0
    optimized_bytes: int = 0
    alternate_bytes: int = 0
    alternate_path: Optional[Path] = None
    resized: bool = False
    savings_percent: float = 0.0
    format: Optional[str] = None
    dimensions: Optional[Tuple[int, int]] = None
    megapixels: float = 0.0
    quality_used: Optional[int] = None
    simulated: bool = False
    error: Optional[str] = None
    skipped_reason: Optional[str] = None

    @classmethod
    def skip(cls, path: Path, reason: str) -> "TranscodeResult":
        return cls(path=path, skipped_reason=reason)

    @classmethod
    def failure(cls, path: Path, message: str) -> "TranscodeResult":
        return cls(path=path, error=message)

    @property
    def status(self) -> str:
        if self.error is not None:
            return "error"
        if self.skipped_reason is not None:
            return "skipped"
        if self.simulated:
            return "simulated"
        return "optimized"


@dataclass(slots=True)
class BackupReport:
    directory: Optional[Path]
    succeeded: int = 0
    failed: int = 0
    failures: List[Tuple[Path, str]] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class RenamePlan:
    from_path: Path
    to_path: Path


@dataclass(slots=True)
class RenameOutcome:
    renamed: List[RenamePlan] = field(default_factory=list)
    errors: List[Tuple[Path, str]] = field(default_factory=list)


@dataclass(slots=True)
class RunReport:
    """Aggregated results of one optimizer run."""

    results: List[TranscodeResult] = field(default_factory=list)
    backup: Optional[BackupReport] = None
    renames: Optional[RenameOutcome] = None
    dry_run: bool = False
    elapsed_seconds: float = 0.0

    @property
    def succeeded(self) -> List[TranscodeResult]:
        return [result for result in self.results if result.status == "optimized"]

    @property
    def simulated(self) -> List[TranscodeResult]:
        return [result for result in self.results if result.status == "simulated"]

    @property
    def skipped(self) -> List[TranscodeResult]:
        return [result for result in self.results if result.status == "skipped"]

    @property
    def errors(self) -> List[TranscodeResult]:
        return [result for result in self.results if result.status == "error"]

    @property
    def processed(self) -> List[TranscodeResult]:
        return self.simulated if self.dry_run else self.succeeded

    @property
    def exit_code(self) -> int:
        return 2 if self.errors else 0
