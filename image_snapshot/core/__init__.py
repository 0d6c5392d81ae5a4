"""
Core module - Base abstractions

Provides foundational components used across the package:
- Base exception hierarchy
- Configuration management
- Artifact storage layout
"""

from image_snapshot.core.config import Settings, get_settings, is_ci, reset_settings
from image_snapshot.core.exceptions import (
    ComparisonEngineError,
    ConfigurationError,
    SnapshotError,
)
from image_snapshot.core.paths import ArtifactStorage, kebab_case

__all__ = [
    "ArtifactStorage",
    "ComparisonEngineError",
    "ConfigurationError",
    "Settings",
    "SnapshotError",
    "get_settings",
    "is_ci",
    "kebab_case",
    "reset_settings",
]
