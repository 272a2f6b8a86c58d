from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Tuple

from ..config import OptimizerConfig
from ..models import QualityPolicy

KIB = 1024
MIB = 1024 * 1024


@dataclass(frozen=True, slots=True)
class Adjustment:
    """A signed step clamped by a bound: a floor when lowering, a cap when raising."""

    delta: int = 0
    bound: int = 0

    def apply(self, value: int) -> int:
        if self.delta < 0:
            return max(self.bound, value + self.delta)
        if self.delta > 0:
            return min(self.bound, value + self.delta)
        return value


@dataclass(frozen=True, slots=True)
class SizeBand:
    name: str
    matches: Callable[[int, int], bool]
    primary: Adjustment = Adjustment()
    alternate: Adjustment = Adjustment()
    compression: Adjustment = Adjustment()


# Evaluated in order; the first matching band wins. Predicates take
# (longest side in px, original size in bytes).
SIZE_BANDS: Tuple[SizeBand, ...] = (
    SizeBand(
        name="very-large",
        matches=lambda side, size: side > 3000 or size > 3 * MIB,
        primary=Adjustment(-7, 75),
        alternate=Adjustment(-5, 75),
        compression=Adjustment(+1, 9),
    ),
    SizeBand(
        name="large",
        matches=lambda side, size: side > 2000 or size > 1.5 * MIB,
        primary=Adjustment(-4, 78),
        alternate=Adjustment(-2, 78),
    ),
    SizeBand(
        name="small",
        matches=lambda side, size: side < 800 and size < 300 * KIB,
        primary=Adjustment(+8, 95),
        alternate=Adjustment(+8, 90),
        compression=Adjustment(-2, 6),
    ),
)

DEFAULT_BAND = SizeBand(name="default", matches=lambda side, size: True)


def match_band(longest_side: int, original_bytes: int) -> SizeBand:
    for band in SIZE_BANDS:
        if band.matches(longest_side, original_bytes):
            return band
    return DEFAULT_BAND


def choose_policy(width: int, height: int, original_bytes: int, config: OptimizerConfig) -> QualityPolicy:
    """Derive encode settings for one image.

    Larger images hide compression artifacts better, so their quality is
    lowered; small images show artifacts immediately, so theirs is raised.
    """

    longest_side = max(width or 0, height or 0)
    band = match_band(longest_side, original_bytes)
    return QualityPolicy(
        primary_quality=band.primary.apply(config.jpeg_quality),
        alternate_quality=band.alternate.apply(config.webp_quality),
        compression_level=band.compression.apply(config.png_compression),
        should_resize=longest_side > config.max_dimension,
        target_max_dimension=config.max_dimension,
        band=band.name,
    )
