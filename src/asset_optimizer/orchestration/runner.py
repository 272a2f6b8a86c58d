from __future__ import annotations

import logging
import time
from functools import partial
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

from ..config import OptimizerConfig
from ..errors import AssetRootNotFoundError
from ..image_processing.pipeline import ALTERNATE_EXTENSION, AssetTranscoder
from ..models import RunReport, TranscodeResult
from ..naming.rename import Renamer
from ..scanning.classifier import IGNORED_EXTENSIONS, OPTIMIZABLE_EXTENSIONS
from ..scanning.scanner import scan_tree
from ..storage.backup import BackupManager, backup_directory_name
from .concurrency import run_bounded

logger = logging.getLogger(__name__)

RULE = "=" * 59
MAX_REPORTED_ERRORS = 5


def split_twins(files: Sequence[Path]) -> Tuple[List[Path], List[Tuple[Path, Path]]]:
    """Separate WebP twins whose source is also queued, since they get rewritten from it."""

    sources = {
        path.with_suffix(ALTERNATE_EXTENSION): path
        for path in files
        if path.suffix.lower() != ALTERNATE_EXTENSION
    }
    remaining: List[Path] = []
    twins: List[Tuple[Path, Path]] = []
    for path in files:
        source = sources.get(path) if path.suffix.lower() == ALTERNATE_EXTENSION else None
        if source is not None:
            twins.append((path, source))
        else:
            remaining.append(path)
    return remaining, twins


class AssetOptimizer:
    """Run scan, backup, rename, re-scan and transcode over an assets tree."""

    def __init__(
        self,
        config: OptimizerConfig,
        *,
        transcoder: AssetTranscoder | None = None,
        renamer: Renamer | None = None,
        backup_root: Optional[Path] = None,
    ) -> None:
        self.config = config
        self.transcoder = transcoder or AssetTranscoder(config)
        self.renamer = renamer or Renamer()
        self.backup_root = backup_root or config.project_dir / backup_directory_name()

    def run(self, *, rename: bool = False, dry_run: bool = False) -> RunReport:
        started = time.monotonic()
        self._log_banner(rename=rename, dry_run=dry_run)

        root = self.config.assets_dir
        if not root.is_dir():
            raise AssetRootNotFoundError(f"assets directory does not exist: {root}")

        report = RunReport(dry_run=dry_run)

        logger.info("Phase 1: scanning %s", root)
        files = scan_tree(root)
        if not files:
            logger.info("No optimizable images found")
            logger.info("Supported formats: %s", ", ".join(sorted(OPTIMIZABLE_EXTENSIONS)))
            logger.info("Ignored formats: %s", ", ".join(sorted(IGNORED_EXTENSIONS)))
            report.elapsed_seconds = time.monotonic() - started
            return report
        logger.info("Found %s optimizable images", len(files))

        if dry_run:
            logger.info("Phase 2: backup skipped (dry-run)")
        else:
            logger.info("Phase 2: creating backup")
            report.backup = BackupManager(root, self.backup_root).backup(files)

        if rename:
            logger.info("Phase 3: normalizing file names")
            report.renames = self.renamer.apply(files, dry_run=dry_run)
        else:
            logger.info("Phase 3: rename disabled (use --rename-seo to enable)")

        to_process = scan_tree(root)
        if len(to_process) != len(files):
            logger.info("Files after rename: %s", len(to_process))

        to_process, twins = split_twins(to_process)
        for twin, source in twins:
            reason = f"twin regenerated from {source.name}"
            logger.info("Skipping %s: %s", twin.name, reason)
            report.results.append(TranscodeResult.skip(twin, reason))

        logger.info(
            "Phase 4: optimizing %s files (%s in parallel)", len(to_process), self.config.concurrency
        )
        transcode = partial(self.transcoder.transcode, dry_run=dry_run)
        report.results.extend(run_bounded(transcode, to_process, self.config.concurrency))
        report.elapsed_seconds = time.monotonic() - started

        self._log_report(report)
        return report

    def _log_banner(self, *, rename: bool, dry_run: bool) -> None:
        config = self.config
        logger.info(RULE)
        logger.info("Asset optimizer starting")
        logger.info(RULE)
        logger.info("Assets directory: %s", config.assets_dir)
        logger.info("  max dimension: %spx", config.max_dimension)
        logger.info("  JPEG quality: %s", config.jpeg_quality)
        logger.info("  WebP quality: %s", config.webp_quality)
        logger.info("  PNG compression: %s", config.png_compression)
        logger.info("  concurrency: %s", config.concurrency)
        logger.info("  dry-run: %s", "yes" if dry_run else "no")
        logger.info("  rename: %s", "yes" if rename else "no")

    def _log_report(self, report: RunReport) -> None:
        errors = report.errors
        logger.info(RULE)
        logger.info("Results")
        logger.info(RULE)
        logger.info("Processed: %s", len(report.processed))
        logger.info("Skipped (ignored/animated/twins): %s", len(report.skipped))
        logger.info("Errors: %s", len(errors))

        if errors:
            logger.error("Errors found:")
            for result in errors[:MAX_REPORTED_ERRORS]:
                logger.error("  - %s: %s", result.path.name, result.error)
            if len(errors) > MAX_REPORTED_ERRORS:
                logger.error("  ... and %s more", len(errors) - MAX_REPORTED_ERRORS)

        processed = report.processed
        if processed:
            total_original = sum(result.original_bytes for result in processed)
            total_optimized = sum(result.optimized_bytes for result in processed)
            total_alternate = sum(result.alternate_bytes for result in processed)
            saved = total_original - total_optimized
            logger.info("Original size:  %.2f MB", total_original / 1024 / 1024)
            logger.info("Optimized size: %.2f MB", total_optimized / 1024 / 1024)
            logger.info(
                "Saved:          %.2f MB (%.1f%%)",
                saved / 1024 / 1024,
                saved / max(1, total_original) * 100,
            )
            if total_alternate:
                logger.info("WebP generated: %.2f MB", total_alternate / 1024 / 1024)
                logger.info("WebP savings:   %.1f%% vs original", (1 - total_alternate / max(1, total_original)) * 100)

        logger.info(RULE)
        if report.dry_run:
            logger.info("DRY-RUN: no files were modified")
        elif not errors:
            logger.info("All images optimized successfully")
        else:
            logger.info("Completed with errors")
        logger.info("Elapsed: %.1fs", report.elapsed_seconds)
        logger.info("Log file: %s", self.config.log_file)
        if report.backup is not None:
            logger.info("Backup saved to: %s", report.backup.directory)
        logger.info(RULE)


def run(config: OptimizerConfig, *, rename: bool = False, dry_run: bool = False) -> RunReport:
    return AssetOptimizer(config).run(rename=rename, dry_run=dry_run)
