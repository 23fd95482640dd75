"""
Build system detection and validation.

This module determines which build system dialect a project uses, either
from the explicit `build-system` setting in fuzzbundle.yaml or by probing
the project directory for marker files, and checks that the tool supports
it on the current setup.
"""

import logging
import os
from enum import Enum
from pathlib import Path
from typing import List, Optional

from ..errors import (
    FeatureNotEnabledError,
    IndeterminateBuildSystemError,
    UnsupportedBuildSystemError,
)

logger = logging.getLogger(__name__)

ALLOW_UNSUPPORTED_PLATFORMS_ENV = "FUZZBUNDLE_ALLOW_UNSUPPORTED_PLATFORMS"

_TRUTHY = {"1", "true", "yes", "on"}


class BuildSystemKind(Enum):
    """Build system dialects understood by fuzzbundle."""

    CMAKE = "cmake"
    BAZEL = "bazel"
    MAVEN = "maven"
    GRADLE = "gradle"
    NODEJS = "nodejs"
    OTHER = "other"

    @property
    def is_jvm(self) -> bool:
        return self in (BuildSystemKind.MAVEN, BuildSystemKind.GRADLE)

    @property
    def display_name(self) -> str:
        return _DISPLAY_NAMES[self]


_DISPLAY_NAMES = {
    BuildSystemKind.CMAKE: "CMake",
    BuildSystemKind.BAZEL: "Bazel",
    BuildSystemKind.MAVEN: "Maven",
    BuildSystemKind.GRADLE: "Gradle",
    BuildSystemKind.NODEJS: "NodeJS",
    BuildSystemKind.OTHER: "Other",
}

BAZEL_MARKERS = ("MODULE.bazel", "WORKSPACE", "WORKSPACE.bazel")
GRADLE_MARKERS = ("build.gradle", "build.gradle.kts")


def supported_build_systems() -> List[str]:
    """Get the config values accepted for `build-system`."""
    return [kind.value for kind in BuildSystemKind]


def allow_unsupported_platforms() -> bool:
    """Check whether the unsupported-platforms override is set."""
    value = os.environ.get(ALLOW_UNSUPPORTED_PLATFORMS_ENV, "")
    return value.strip().lower() in _TRUTHY


def not_supported_error_message(command: str, subject: str) -> str:
    """Build the remediation text for an unsupported command/subject pair."""
    return (
        f"fuzzbundle {command} does not support {subject} yet.\n"
        f"Set {ALLOW_UNSUPPORTED_PLATFORMS_ENV}=1 to try it anyway."
    )


def determine_build_system(project_dir: Path) -> BuildSystemKind:
    """
    Detect the build system of a project from its marker files.

    Args:
        project_dir: Project root directory

    Returns:
        Detected BuildSystemKind (OTHER if no marker file exists)

    Raises:
        IndeterminateBuildSystemError: If the directory does not exist or
            the markers contradict each other
    """
    project_dir = Path(project_dir)
    if not project_dir.is_dir():
        raise IndeterminateBuildSystemError(
            f"Cannot determine build system: {project_dir} is not a directory"
        )

    def has_any(names) -> bool:
        return any((project_dir / name).is_file() for name in names)

    is_maven = (project_dir / "pom.xml").is_file()
    is_gradle = has_any(GRADLE_MARKERS)
    if is_maven and is_gradle:
        raise IndeterminateBuildSystemError(
            f"Found both Maven and Gradle build files in {project_dir}. "
            "Please set 'build-system' in fuzzbundle.yaml."
        )

    if (project_dir / "CMakeLists.txt").is_file():
        kind = BuildSystemKind.CMAKE
    elif has_any(BAZEL_MARKERS):
        kind = BuildSystemKind.BAZEL
    elif is_maven:
        kind = BuildSystemKind.MAVEN
    elif is_gradle:
        kind = BuildSystemKind.GRADLE
    elif (project_dir / "package.json").is_file():
        kind = BuildSystemKind.NODEJS
    else:
        kind = BuildSystemKind.OTHER

    logger.debug(f"Detected build system {kind.value} in {project_dir}")
    return kind


def validate_build_system(value) -> BuildSystemKind:
    """
    Convert a configured build system value into a BuildSystemKind.

    Args:
        value: BuildSystemKind or its config string (case-insensitive)

    Returns:
        The matching BuildSystemKind

    Raises:
        UnsupportedBuildSystemError: If the value names no known build system
    """
    if isinstance(value, BuildSystemKind):
        return value
    try:
        return BuildSystemKind(str(value).strip().lower())
    except ValueError:
        supported = ", ".join(supported_build_systems())
        raise UnsupportedBuildSystemError(
            f"Unsupported build system '{value}'. Supported build systems: {supported}"
        ) from None


def classify(
    project_dir: Path,
    configured: Optional[str] = None,
    command: str = "bundle",
) -> BuildSystemKind:
    """
    Determine and validate the build system in effect for a command.

    The configured value wins over detection. NodeJS support is still
    experimental and requires the unsupported-platforms override.

    Raises:
        IndeterminateBuildSystemError: If detection fails
        UnsupportedBuildSystemError: If the configured value is unknown
        FeatureNotEnabledError: If the kind requires the override
    """
    if configured:
        kind = validate_build_system(configured)
    else:
        kind = determine_build_system(project_dir)

    if kind is BuildSystemKind.NODEJS and not allow_unsupported_platforms():
        raise FeatureNotEnabledError(
            not_supported_error_message(command, kind.display_name)
        )
    return kind


def determine_gradle_build_language(project_dir: Path) -> str:
    """Return "kotlin" for build.gradle.kts projects, "groovy" otherwise."""
    if (Path(project_dir) / "build.gradle.kts").is_file():
        return "kotlin"
    if (Path(project_dir) / "build.gradle").is_file():
        return "groovy"
    raise IndeterminateBuildSystemError(f"No Gradle build file found in {project_dir}")


def is_gradle_multi_project(project_dir: Path) -> bool:
    """Check whether the Gradle settings file includes subprojects."""
    for name in ("settings.gradle", "settings.gradle.kts"):
        settings = Path(project_dir) / name
        if not settings.is_file():
            continue
        for line in settings.read_text(encoding="utf-8", errors="replace").splitlines():
            if line.strip().startswith("include"):
                return True
    return False
