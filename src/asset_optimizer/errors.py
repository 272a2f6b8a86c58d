from __future__ import annotations


class OptimizerError(Exception):
    """Base class for errors raised by the asset optimizer."""


class ConfigError(OptimizerError, ValueError):
    """Raised when an environment setting cannot be parsed or is out of range."""


class AssetRootNotFoundError(OptimizerError, FileNotFoundError):
    """Raised when the configured assets directory does not exist."""


class RenameCollisionError(OptimizerError, RuntimeError):
    """Raised when no free name could be found for a renamed file."""


class ImageDecodeError(OptimizerError, ValueError):
    """Raised when source bytes are empty or cannot be decoded as an image."""
