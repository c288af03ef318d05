"""Configuration parsing modules for cbuild."""

from .config_parser import DEFAULT_CONFIG_NAME, ConfigParser, load_project
from .target_config import (
    BuildConfig,
    OSConfig,
    PlatformConfig,
    ProjectConfig,
    TargetConfig,
    TargetKind,
)

__all__ = [
    "DEFAULT_CONFIG_NAME",
    "ConfigParser",
    "load_project",
    "BuildConfig",
    "OSConfig",
    "PlatformConfig",
    "ProjectConfig",
    "TargetConfig",
    "TargetKind",
]
