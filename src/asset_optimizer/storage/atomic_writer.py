from __future__ import annotations

import logging
import os
import stat
import tempfile
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

DEFAULT_FILE_MODE = 0o644


class AtomicWriter:
    """Persist byte buffers through a temp-file-then-rename sequence.

    The temp file lives in the target's directory so the final ``os.replace``
    never crosses a file system boundary. Readers see either the previous
    content or the new one, never a partial write.
    """

    def write(self, target: Path, data: bytes, *, mode: Optional[int] = None) -> Path:
        target = Path(target)
        target.parent.mkdir(parents=True, exist_ok=True)
        file_mode = self._resolve_mode(target, mode)

        with tempfile.NamedTemporaryFile(
            dir=target.parent,
            prefix=f".{target.name}.tmp-{os.getpid()}-",
            delete=False,
        ) as handle:
            tmp_path = Path(handle.name)
            try:
                handle.write(data)
                handle.flush()
                os.fsync(handle.fileno())
            except BaseException:
                handle.close()
                _discard(tmp_path)
                raise

        try:
            os.chmod(tmp_path, file_mode)
            os.replace(tmp_path, target)
        except BaseException:
            _discard(tmp_path)
            raise
        logger.debug("Wrote %s bytes to %s", len(data), target)
        return target

    @staticmethod
    def _resolve_mode(target: Path, mode: Optional[int]) -> int:
        if mode is not None:
            return mode
        try:
            return stat.S_IMODE(target.stat().st_mode)
        except OSError:
            return DEFAULT_FILE_MODE


def restore_times(target: Path, source_stat: os.stat_result) -> None:
    """Copy access/modification times onto *target*; failures are ignored."""

    try:
        os.utime(target, ns=(source_stat.st_atime_ns, source_stat.st_mtime_ns))
    except OSError:
        logger.debug("Unable to restore timestamps on %s", target, exc_info=True)


def _discard(path: Path) -> None:
    try:
        path.unlink()
    except FileNotFoundError:
        pass
    except OSError:
        logger.debug("Unable to remove temp file %s", path, exc_info=True)
