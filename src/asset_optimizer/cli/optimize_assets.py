from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Optional, Sequence

from ..config import OptimizerConfig
from ..errors import OptimizerError
from ..orchestration.runner import AssetOptimizer

logger = logging.getLogger(__name__)

LOG_FORMAT = "[%(asctime)s] %(levelname)s %(message)s"
HANDLER_NAMES = ("asset-optimizer-console", "asset-optimizer-file")

EXIT_FATAL = 1


class _QuietFileHandler(logging.FileHandler):
    """Append-only log file whose write failures never interrupt processing."""

    def emit(self, record: logging.LogRecord) -> None:
        # FileHandler opens its stream lazily, outside the base class error guard.
        try:
            super().emit(record)
        except Exception:  # noqa: BLE001
            self.handleError(record)

    def handleError(self, record: logging.LogRecord) -> None:  # noqa: N802 - logging API
        pass


def configure_logging(log_file: Path, level: int = logging.INFO) -> None:
    formatter = logging.Formatter(LOG_FORMAT)
    console = logging.StreamHandler(sys.stdout)
    console.set_name(HANDLER_NAMES[0])
    console.setFormatter(formatter)
    file_handler = _QuietFileHandler(log_file, mode="a", encoding="utf-8", delay=True)
    file_handler.set_name(HANDLER_NAMES[1])
    file_handler.setFormatter(formatter)

    root = logging.getLogger()
    root.setLevel(level)
    for handler in root.handlers[:]:
        if handler.get_name() in HANDLER_NAMES:
            root.removeHandler(handler)
            handler.close()
    root.addHandler(console)
    root.addHandler(file_handler)
    logging.getLogger("PIL").setLevel(logging.WARNING)


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description=(
            "Optimize the images under ASSETS_DIR in place and generate WebP twins. "
            "Settings are read from the environment (CONCURRENCY, MAX_DIMENSION, "
            "JPEG_QUALITY, WEBP_QUALITY, PNG_COMPRESSION) or a .env file."
        )
    )
    parser.add_argument(
        "--rename-seo",
        action="store_true",
        help="Rename files to lower-case, hyphenated, ASCII-only names before optimizing",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Simulate the run: no backup, no renames and no writes",
    )
    return parser.parse_args(argv)


def main(argv: Optional[Sequence[str]] = None) -> None:
    args = parse_args(argv)
    try:
        config = OptimizerConfig.from_env()
    except OptimizerError as exc:
        logging.basicConfig(level=logging.INFO, format=LOG_FORMAT)
        logger.error("Invalid configuration: %s", exc)
        raise SystemExit(EXIT_FATAL) from exc

    configure_logging(config.log_file)
    try:
        report = AssetOptimizer(config).run(rename=args.rename_seo, dry_run=args.dry_run)
    except OptimizerError as exc:
        logger.error("%s", exc)
        logger.error("Check the path or set ASSETS_DIR.")
        raise SystemExit(EXIT_FATAL) from exc
    except Exception as exc:  # noqa: BLE001 - top-level guard maps crashes to the fatal exit code
        logger.exception("Fatal error: %s", exc)
        raise SystemExit(EXIT_FATAL) from exc

    raise SystemExit(report.exit_code)


if __name__ == "__main__":
    main()
