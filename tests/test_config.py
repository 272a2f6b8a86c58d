from __future__ import annotations

from pathlib import Path

import pytest

from asset_optimizer.config import OptimizerConfig
from asset_optimizer.errors import ConfigError


def test_defaults(tmp_path: Path) -> None:
    config = OptimizerConfig.from_env(environ={}, project_dir=tmp_path)

    assert config.assets_dir == tmp_path.resolve() / "src" / "assets"
    assert config.log_file == tmp_path.resolve() / "optimize-images.log"
    assert (config.concurrency, config.max_dimension) == (6, 3840)
    assert (config.jpeg_quality, config.webp_quality, config.png_compression) == (82, 80, 8)


def test_environment_overrides(tmp_path: Path) -> None:
    environ = {
        "ASSETS_DIR": "public/img",
        "CONCURRENCY": "2",
        "MAX_DIMENSION": "2048",
        "JPEG_QUALITY": "70",
        "WEBP_QUALITY": "65",
        "PNG_COMPRESSION": "9",
    }

    config = OptimizerConfig.from_env(environ=environ, project_dir=tmp_path)

    assert config.assets_dir == tmp_path.resolve() / "public" / "img"
    assert config.concurrency == 2
    assert config.max_dimension == 2048
    assert (config.jpeg_quality, config.webp_quality, config.png_compression) == (70, 65, 9)


def test_dotenv_is_used_when_environment_is_silent(tmp_path: Path) -> None:
    (tmp_path / ".env").write_text(
        "# local settings\nCONCURRENCY=3\nJPEG_QUALITY=\"77\"\nbroken line\n", encoding="utf-8"
    )

    config = OptimizerConfig.from_env(environ={"JPEG_QUALITY": "90"}, project_dir=tmp_path)

    assert config.concurrency == 3
    assert config.jpeg_quality == 90


@pytest.mark.parametrize(
    "key, value",
    [
        ("CONCURRENCY", "0"),
        ("CONCURRENCY", "many"),
        ("JPEG_QUALITY", "101"),
        ("PNG_COMPRESSION", "10"),
        ("PNG_COMPRESSION", "-1"),
    ],
)
def test_invalid_values_raise(tmp_path: Path, key: str, value: str) -> None:
    with pytest.raises(ConfigError):
        OptimizerConfig.from_env(environ={key: value}, project_dir=tmp_path)
