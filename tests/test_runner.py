from __future__ import annotations

from pathlib import Path

import pytest
from PIL import Image

from asset_optimizer.config import OptimizerConfig
from asset_optimizer.errors import AssetRootNotFoundError
from asset_optimizer.orchestration.runner import AssetOptimizer, split_twins


@pytest.fixture()
def assets(tmp_path: Path) -> Path:
    root = tmp_path / "assets"
    root.mkdir()
    return root


@pytest.fixture()
def config(tmp_path: Path, assets: Path) -> OptimizerConfig:
    return OptimizerConfig(assets_dir=assets, project_dir=tmp_path, concurrency=3)


def _backups(project_dir: Path) -> list[Path]:
    return [path for path in project_dir.iterdir() if path.name.startswith("assets_backup_")]


def _png(path: Path, color: tuple[int, int, int] = (10, 120, 200)) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    Image.new("RGB", (48, 32), color).save(path, compress_level=0)
    return path


def test_missing_root_is_fatal(tmp_path: Path) -> None:
    config = OptimizerConfig(assets_dir=tmp_path / "missing", project_dir=tmp_path)

    with pytest.raises(AssetRootNotFoundError):
        AssetOptimizer(config).run()

    assert _backups(tmp_path) == []


def test_empty_root_completes_without_backup(tmp_path: Path, config: OptimizerConfig, assets: Path) -> None:
    (assets / "logo.svg").write_text("<svg/>")

    report = AssetOptimizer(config).run()

    assert report.results == []
    assert report.backup is None
    assert report.exit_code == 0
    assert _backups(tmp_path) == []


def test_dry_run_touches_nothing(tmp_path: Path, config: OptimizerConfig, assets: Path) -> None:
    files = [_png(assets / f"group{index % 5}" / f"image-{index}.png", (index * 5, 40, 90)) for index in range(50)]
    before = {path: path.read_bytes() for path in files}

    report = AssetOptimizer(config).run(dry_run=True)

    assert _backups(tmp_path) == []
    assert report.backup is None
    assert len(report.simulated) == 50
    assert report.succeeded == []
    assert report.exit_code == 0
    assert {path: path.read_bytes() for path in files} == before
    assert not any(path.suffix == ".webp" for path in assets.rglob("*"))


def test_full_run_backs_up_then_optimizes(tmp_path: Path, config: OptimizerConfig, assets: Path) -> None:
    photo = _png(assets / "photo.png")
    nested = _png(assets / "nested" / "banner.png", (250, 250, 0))
    original_photo = photo.read_bytes()
    (assets / "spinner.gif").write_bytes(b"GIF89a")

    backup_root = tmp_path / "assets_backup_fixed"
    report = AssetOptimizer(config, backup_root=backup_root).run()

    assert report.exit_code == 0
    assert len(report.succeeded) == 2
    assert report.backup is not None
    assert (report.backup.succeeded, report.backup.failed) == (2, 0)
    assert (backup_root / "photo.png").read_bytes() == original_photo
    assert (backup_root / "nested" / "banner.png").exists()
    assert (assets / "photo.webp").exists()
    assert (assets / "nested" / "banner.webp").exists()
    assert nested.exists()
    assert (assets / "spinner.gif").read_bytes() == b"GIF89a"


def test_file_errors_degrade_exit_code(tmp_path: Path, config: OptimizerConfig, assets: Path) -> None:
    _png(assets / "good.png")
    (assets / "broken.jpg").write_bytes(b"nope")

    report = AssetOptimizer(config, backup_root=tmp_path / "assets_backup_x").run()

    assert report.exit_code == 2
    assert [result.path.name for result in report.errors] == ["broken.jpg"]
    assert len(report.succeeded) == 1


def test_rename_runs_before_transcode(tmp_path: Path, config: OptimizerConfig, assets: Path) -> None:
    _png(assets / "Mi Foto (2023).PNG")
    _png(assets / "mi-foto-2023.png", (0, 0, 0))

    report = AssetOptimizer(config, backup_root=tmp_path / "assets_backup_r").run(rename=True)

    assert report.renames is not None
    assert [plan.to_path.name for plan in report.renames.renamed] == ["mi-foto-2023-1.png"]
    assert sorted(result.path.name for result in report.succeeded) == ["mi-foto-2023-1.png", "mi-foto-2023.png"]
    assert (assets / "mi-foto-2023-1.webp").exists()
    assert (tmp_path / "assets_backup_r" / "Mi Foto (2023).PNG").exists()


def test_rename_is_not_applied_in_dry_run(tmp_path: Path, config: OptimizerConfig, assets: Path) -> None:
    source = _png(assets / "Team Photo.png")

    report = AssetOptimizer(config).run(rename=True, dry_run=True)

    assert source.exists()
    assert report.renames is not None
    assert [plan.to_path.name for plan in report.renames.renamed] == ["team-photo.png"]
    assert [result.path.name for result in report.simulated] == ["Team Photo.png"]


def test_stale_twin_is_regenerated_from_its_source(tmp_path: Path, assets: Path) -> None:
    source = assets / "photo.jpg"
    Image.new("RGB", (120, 80), (220, 20, 20)).save(source, quality=95)
    Image.new("RGB", (120, 80), (20, 20, 220)).save(assets / "photo.webp", quality=95)
    config = OptimizerConfig(assets_dir=assets, project_dir=tmp_path, concurrency=6)

    report = AssetOptimizer(config, backup_root=tmp_path / "assets_backup_t").run()

    assert report.exit_code == 0
    assert [result.path.name for result in report.succeeded] == ["photo.jpg"]
    assert [(result.path.name, result.skipped_reason) for result in report.skipped] == [
        ("photo.webp", "twin regenerated from photo.jpg")
    ]
    with Image.open(assets / "photo.webp") as twin:
        red, green, blue = twin.convert("RGB").getpixel((60, 40))
    assert red > 150 and blue < 100


def test_split_twins_keeps_standalone_webp(tmp_path: Path) -> None:
    files = [tmp_path / "a.PNG", tmp_path / "a.webp", tmp_path / "b.webp", tmp_path / "c.jpg"]

    remaining, twins = split_twins(files)

    assert remaining == [tmp_path / "a.PNG", tmp_path / "b.webp", tmp_path / "c.jpg"]
    assert twins == [(tmp_path / "a.webp", tmp_path / "a.PNG")]
