from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Mapping, Optional

from .errors import ConfigError

logger = logging.getLogger(__name__)

LOG_FILE_NAME = "optimize-images.log"
BACKUP_PREFIX = "assets_backup_"

DEFAULT_CONCURRENCY = 6
DEFAULT_MAX_DIMENSION = 3840
DEFAULT_JPEG_QUALITY = 82
DEFAULT_WEBP_QUALITY = 80
DEFAULT_PNG_COMPRESSION = 8


@dataclass(frozen=True, slots=True)
class OptimizerConfig:
    assets_dir: Path
    project_dir: Path
    concurrency: int = DEFAULT_CONCURRENCY
    max_dimension: int = DEFAULT_MAX_DIMENSION
    jpeg_quality: int = DEFAULT_JPEG_QUALITY
    webp_quality: int = DEFAULT_WEBP_QUALITY
    png_compression: int = DEFAULT_PNG_COMPRESSION

    @property
    def log_file(self) -> Path:
        return self.project_dir / LOG_FILE_NAME

    @classmethod
    def from_env(
        cls,
        environ: Optional[Mapping[str, str]] = None,
        project_dir: Optional[Path] = None,
    ) -> "OptimizerConfig":
        """Build a config from the environment, falling back to ``.env`` and defaults."""

        project_dir = (project_dir or Path.cwd()).resolve()
        env = os.environ if environ is None else environ
        dotenv = _read_dotenv(project_dir / ".env")

        def lookup(key: str) -> Optional[str]:
            value = env.get(key)
            if value is not None and value.strip():
                return value.strip()
            return dotenv.get(key)

        assets_value = lookup("ASSETS_DIR")
        assets_dir = Path(assets_value) if assets_value else project_dir / "src" / "assets"
        if not assets_dir.is_absolute():
            assets_dir = project_dir / assets_dir

        return cls(
            assets_dir=assets_dir,
            project_dir=project_dir,
            concurrency=_parse_int("CONCURRENCY", lookup("CONCURRENCY"), DEFAULT_CONCURRENCY, minimum=1),
            max_dimension=_parse_int("MAX_DIMENSION", lookup("MAX_DIMENSION"), DEFAULT_MAX_DIMENSION, minimum=1),
            jpeg_quality=_parse_int(
                "JPEG_QUALITY", lookup("JPEG_QUALITY"), DEFAULT_JPEG_QUALITY, minimum=1, maximum=100
            ),
            webp_quality=_parse_int(
                "WEBP_QUALITY", lookup("WEBP_QUALITY"), DEFAULT_WEBP_QUALITY, minimum=1, maximum=100
            ),
            png_compression=_parse_int(
                "PNG_COMPRESSION", lookup("PNG_COMPRESSION"), DEFAULT_PNG_COMPRESSION, minimum=0, maximum=9
            ),
        )


def _parse_int(
    key: str,
    raw: Optional[str],
    default: int,
    *,
    minimum: Optional[int] = None,
    maximum: Optional[int] = None,
) -> int:
    if raw is None:
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        raise ConfigError(f"{key} must be an integer, got {raw!r}") from exc
    if minimum is not None and value < minimum:
        raise ConfigError(f"{key} must be >= {minimum}, got {value}")
    if maximum is not None and value > maximum:
        raise ConfigError(f"{key} must be <= {maximum}, got {value}")
    return value


def _read_dotenv(env_path: Path) -> Dict[str, str]:
    values: Dict[str, str] = {}
    if not env_path.exists():
        return values

    try:
        for line in env_path.read_text(encoding="utf-8").splitlines():
            stripped = line.strip()
            if not stripped or stripped.startswith("#"):
                continue
            if "=" not in stripped:
                continue
            key, raw_value = stripped.split("=", 1)
            value = raw_value.strip().strip('"').strip("'")
            if value:
                values[key.strip()] = value
    except OSError:
        logger.debug("Unable to read %s", env_path, exc_info=True)
    return values
