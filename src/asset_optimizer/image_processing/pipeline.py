from __future__ import annotations

import logging
import stat
from io import BytesIO
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import numpy as np
from PIL import Image, UnidentifiedImageError

from ..config import OptimizerConfig
from ..errors import ImageDecodeError
from ..models import AssetKind, ImageMetadata, QualityPolicy, TranscodeResult
from ..scanning.classifier import classify, extension_of
from ..storage.atomic_writer import AtomicWriter, restore_times
from .policy import choose_policy

logger = logging.getLogger(__name__)

ALTERNATE_EXTENSION = ".webp"
SKIP_IGNORED = "ignored format"
SKIP_ANIMATED = "animated"

PRIMARY_FORMATS: Dict[str, str] = {
    ".jpg": "JPEG",
    ".jpeg": "JPEG",
    ".png": "PNG",
    ".webp": "WEBP",
    ".tif": "TIFF",
    ".tiff": "TIFF",
}

WEBP_METHOD = 6
PALETTE_COLORS = 256


def decode_image(data: bytes) -> Tuple[Image.Image, ImageMetadata]:
    """Open *data* with Pillow and read its metadata without decoding pixels."""

    if not data:
        raise ImageDecodeError("empty or corrupt file")
    try:
        image = Image.open(BytesIO(data))
        metadata = ImageMetadata(
            width=image.width,
            height=image.height,
            # MPO stores a still photo plus previews, not animation frames.
            frames=1 if image.format == "MPO" else getattr(image, "n_frames", 1),
            format=image.format,
            mode=image.mode,
        )
    except (UnidentifiedImageError, OSError, ValueError) as exc:
        raise ImageDecodeError(f"unable to decode image: {exc}") from exc
    return image, metadata


def effective_channels(image: Image.Image) -> int:
    """Count bands, ignoring an alpha channel that is fully opaque."""

    bands = image.getbands()
    if "A" in bands:
        alpha = np.asarray(image.getchannel("A"))
        if alpha.size and int(alpha.min()) == 255:
            return len(bands) - 1
    return len(bands)


def has_alpha(image: Image.Image) -> bool:
    return "A" in image.getbands() or (image.mode == "P" and "transparency" in image.info)


def resize_to_fit(image: Image.Image, max_dimension: int) -> Image.Image:
    resized = image.copy()
    resized.thumbnail((max_dimension, max_dimension), Image.Resampling.LANCZOS, reducing_gap=None)
    return resized


def _save(image: Image.Image, fmt: str, **options: Any) -> bytes:
    buffer = BytesIO()
    image.save(buffer, format=fmt, **{key: value for key, value in options.items() if value is not None})
    return buffer.getvalue()


def encode_jpeg(image: Image.Image, quality: int, icc_profile: Optional[bytes] = None,
                exif: Optional[bytes] = None) -> bytes:
    converted = image if image.mode in ("RGB", "L") else image.convert("RGB")
    if converted.mode != image.mode:
        icc_profile = None
    try:
        return _save(
            converted,
            "JPEG",
            quality=quality,
            optimize=True,
            progressive=True,
            subsampling="4:2:0",
            icc_profile=icc_profile,
            exif=exif,
        )
    except OSError as exc:
        # libjpeg can refuse optimize+progressive for very large buffers
        logger.debug("Optimized JPEG encode failed (%s), retrying with basic options", exc)
        return _save(converted, "JPEG", quality=quality, progressive=True, icc_profile=icc_profile, exif=exif)


def encode_png(image: Image.Image, compression_level: int, icc_profile: Optional[bytes] = None) -> bytes:
    candidate = image
    if image.mode in ("RGB", "RGBA") and effective_channels(image) <= 3:
        candidate = image.convert("RGB").quantize(colors=PALETTE_COLORS, method=Image.Quantize.MEDIANCUT)
    # Pillow's zlib encoder picks the row filter adaptively.
    return _save(candidate, "PNG", compress_level=compression_level, icc_profile=icc_profile)


def encode_webp(image: Image.Image, quality: int, icc_profile: Optional[bytes] = None,
                exif: Optional[bytes] = None) -> bytes:
    converted = image
    if image.mode not in ("RGB", "RGBA"):
        converted = image.convert("RGBA" if has_alpha(image) else "RGB")
    return _save(converted, "WEBP", quality=quality, method=WEBP_METHOD, icc_profile=icc_profile, exif=exif)


def encode_tiff(image: Image.Image, icc_profile: Optional[bytes] = None) -> bytes:
    return _save(image, "TIFF", compression="tiff_lzw", icc_profile=icc_profile)


def _quality_used(extension: str, policy: QualityPolicy) -> int:
    if PRIMARY_FORMATS.get(extension) == "JPEG":
        return policy.primary_quality
    return policy.alternate_quality


class AssetTranscoder:
    """Optimize one image in place and derive its WebP twin."""

    def __init__(self, config: OptimizerConfig, writer: AtomicWriter | None = None) -> None:
        self.config = config
        self.writer = writer or AtomicWriter()

    def transcode(self, path: Path, *, dry_run: bool = False) -> TranscodeResult:
        path = Path(path)
        try:
            return self._transcode(path, dry_run)
        except Exception as exc:  # noqa: BLE001 - every failure becomes a per-file result
            logger.error("✗ %s: %s", path.name, exc)
            return TranscodeResult.failure(path, str(exc) or type(exc).__name__)

    def _transcode(self, path: Path, dry_run: bool) -> TranscodeResult:
        if classify(path.name) is AssetKind.IGNORED:
            logger.info("Skipping %s: %s", path.name, SKIP_IGNORED)
            return TranscodeResult.skip(path, SKIP_IGNORED)

        extension = extension_of(path)
        data = path.read_bytes()
        image, metadata = decode_image(data)
        with image:
            if not metadata.width or not metadata.height:
                raise ImageDecodeError("unable to read image metadata")
            if metadata.is_animated:
                logger.info("Skipping %s: %s (%s frames)", path.name, SKIP_ANIMATED, metadata.frames)
                return TranscodeResult.skip(path, SKIP_ANIMATED)

            try:
                image.load()
            except (OSError, SyntaxError) as exc:
                raise ImageDecodeError(f"unable to decode image: {exc}") from exc

            policy = choose_policy(metadata.width, metadata.height, len(data), self.config)
            base = resize_to_fit(image, policy.target_max_dimension) if policy.should_resize else image
            primary = self._encode_primary(base, extension, metadata, policy)
            alternate: Optional[bytes] = None
            alternate_path: Optional[Path] = None
            if extension != ALTERNATE_EXTENSION:
                alternate = encode_webp(
                    base,
                    policy.alternate_quality,
                    icc_profile=image.info.get("icc_profile"),
                    exif=image.info.get("exif"),
                )
                alternate_path = path.with_suffix(ALTERNATE_EXTENSION)

        kept_original = len(primary) >= len(data) and not policy.should_resize
        if kept_original:
            primary = data

        result = TranscodeResult(
            path=path,
            original_bytes=len(data),
            optimized_bytes=len(primary),
            alternate_bytes=len(alternate) if alternate is not None else 0,
            alternate_path=alternate_path,
            resized=policy.should_resize,
            savings_percent=(len(data) - len(primary)) / max(1, len(data)) * 100,
            format=metadata.format,
            dimensions=(metadata.width, metadata.height),
            megapixels=round(metadata.megapixels, 2),
            quality_used=_quality_used(extension, policy),
            simulated=dry_run,
        )

        if dry_run:
            logger.info(
                "[DRY-RUN] %s: %.1fKB -> %.1fKB (%.1f%% saved, band=%s)",
                path.name,
                result.original_bytes / 1024,
                result.optimized_bytes / 1024,
                result.savings_percent,
                policy.band,
            )
            return result

        source_stat = path.stat()
        if not kept_original:
            self.writer.write(path, primary)
            restore_times(path, source_stat)
        if alternate is not None and alternate_path is not None:
            self.writer.write(alternate_path, alternate, mode=stat.S_IMODE(source_stat.st_mode))
            restore_times(alternate_path, source_stat)

        twin_info = f" + WebP ({result.alternate_bytes / 1024:.1f}KB)" if alternate_path else ""
        logger.info(
            "Optimized %s: %.1fKB -> %.1fKB (-%.1fKB)%s",
            path.name,
            result.original_bytes / 1024,
            result.optimized_bytes / 1024,
            (result.original_bytes - result.optimized_bytes) / 1024,
            twin_info,
        )
        return result

    def _encode_primary(
        self,
        image: Image.Image,
        extension: str,
        metadata: ImageMetadata,
        policy: QualityPolicy,
    ) -> bytes:
        icc_profile = image.info.get("icc_profile")
        fmt = PRIMARY_FORMATS.get(extension, metadata.format)
        if fmt == "JPEG":
            return encode_jpeg(image, policy.primary_quality, icc_profile=icc_profile, exif=image.info.get("exif"))
        if fmt == "PNG":
            return encode_png(image, policy.compression_level, icc_profile=icc_profile)
        if fmt == "WEBP":
            return encode_webp(image, policy.alternate_quality, icc_profile=icc_profile, exif=image.info.get("exif"))
        if fmt == "TIFF":
            return encode_tiff(image, icc_profile=icc_profile)
        if not fmt:
            raise ImageDecodeError(f"unknown output format for {extension or 'file without extension'}")
        return _save(image, fmt)
