from .config import OptimizerConfig
from .errors import (
    AssetRootNotFoundError,
    ConfigError,
    ImageDecodeError,
    OptimizerError,
    RenameCollisionError,
)
from .image_processing.pipeline import AssetTranscoder
from .image_processing.policy import choose_policy
from .models import (
    AssetKind,
    AssetPath,
    BackupReport,
    ImageMetadata,
    QualityPolicy,
    RenameOutcome,
    RenamePlan,
    RunReport,
    TranscodeResult,
)
from .naming.rename import Renamer, normalize_name, plan_rename
from .orchestration.runner import AssetOptimizer, run
from .scanning.classifier import classify
from .scanning.scanner import scan_tree
from .storage.atomic_writer import AtomicWriter
from .storage.backup import BackupManager

__all__ = [
    "AssetKind",
    "AssetOptimizer",
    "AssetPath",
    "AssetRootNotFoundError",
    "AssetTranscoder",
    "AtomicWriter",
    "BackupManager",
    "BackupReport",
    "ConfigError",
    "ImageDecodeError",
    "ImageMetadata",
    "OptimizerConfig",
    "OptimizerError",
    "QualityPolicy",
    "RenameCollisionError",
    "RenameOutcome",
    "RenamePlan",
    "Renamer",
    "RunReport",
    "TranscodeResult",
    "choose_policy",
    "classify",
    "normalize_name",
    "plan_rename",
    "run",
    "scan_tree",
]
