from __future__ import annotations

import logging
import shutil
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, Optional

from ..config import BACKUP_PREFIX
from ..models import BackupReport

logger = logging.getLogger(__name__)


def backup_directory_name(now: Optional[datetime] = None) -> str:
    stamp = (now or datetime.now(timezone.utc)).isoformat(timespec="milliseconds")
    stamp = stamp.replace("+00:00", "Z").replace(":", "-").replace(".", "-")
    return f"{BACKUP_PREFIX}{stamp}"


class BackupManager:
    """Copy the candidate file set into a snapshot that mirrors the source tree."""

    def __init__(self, source_root: Path, backup_root: Path) -> None:
        self.source_root = Path(source_root).absolute()
        self.backup_root = Path(backup_root).absolute()

    def backup(self, files: Iterable[Path]) -> BackupReport:
        files = list(files)
        report = BackupReport(directory=self.backup_root)
        if not files:
            logger.warning("No files to back up")
            return report

        logger.info("Backing up %s files to %s", len(files), self.backup_root)
        for source in files:
            try:
                destination = self.destination_for(source)
                destination.parent.mkdir(parents=True, exist_ok=True)
                shutil.copy2(source, destination)
                report.succeeded += 1
            except (OSError, ValueError) as exc:
                logger.error("Backup failed for %s: %s", source, exc)
                report.failed += 1
                report.failures.append((Path(source), str(exc)))

        if report.failed:
            logger.warning("Backup finished with errors: %s ok, %s failed", report.succeeded, report.failed)
        else:
            logger.info("Backup finished: %s files", report.succeeded)
        return report

    def destination_for(self, source: Path) -> Path:
        relative = Path(source).absolute().relative_to(self.source_root)
        return self.backup_root / relative
