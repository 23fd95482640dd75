"""Configuration modules for fuzzbundle."""

from .build_system import (
    BuildSystemKind,
    allow_unsupported_platforms,
    classify,
    determine_build_system,
    not_supported_error_message,
    validate_build_system,
)
from .project_config import (
    CONFIG_FILE_NAME,
    ProjectConfig,
    create_project_config,
    find_config_dir,
    load_project_config,
)

__all__ = [
    "BuildSystemKind",
    "allow_unsupported_platforms",
    "classify",
    "determine_build_system",
    "not_supported_error_message",
    "validate_build_system",
    "CONFIG_FILE_NAME",
    "ProjectConfig",
    "create_project_config",
    "find_config_dir",
    "load_project_config",
]
