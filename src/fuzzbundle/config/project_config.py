"""
fuzzbundle.yaml configuration parser.

This module finds, parses and creates the per-project configuration file.
Values set here act as defaults for the command-line flags of the same
name.

Example fuzzbundle.yaml:
    build-system: other
    build-command: make clean && make $FUZZ_TEST
    seed-corpus-dirs:
      - corpus
    timeout: 600

Usage:
    config = load_project_config(Path("."))
    print(config.build_command)
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from ..errors import ConfigError

logger = logging.getLogger(__name__)

CONFIG_FILE_NAME = "fuzzbundle.yaml"

CONFIG_TEMPLATE = """\
## Configuration for fuzzbundle
## All settings can be overridden on the command line.

## Build system used by the project (cmake, bazel, maven, gradle, nodejs, other).
## Detected from the project files if not set.
#build-system: other

## Command which builds the fuzz test executable named by $FUZZ_TEST.
## Required for build system "other".
#build-command: make clean && make $FUZZ_TEST

## Command executed once before the fuzz tests are built.
#clean-command: make clean

## Directories containing sample inputs added to the bundle.
#seed-corpus-dirs:
#  - path/to/seed-corpus

## Dictionary file passed to the fuzzing engine.
#dict: path/to/dictionary.dct

## Arguments passed to the fuzzing engine.
#engine-args:
#  - -rss_limit_mb=4096

## Maximum time in seconds to run each fuzz test.
#timeout: 600

## Number of parallel build jobs.
#build-jobs: 4

## Docker image used to run the bundle.
#docker-image: ubuntu:rolling

## Environment variables for the fuzz tests (NAME=VALUE, or NAME to inherit).
#env:
#  - ASAN_OPTIONS=detect_leaks=0

## Additional files added to the bundle (SOURCE or SOURCE;TARGET).
#add:
#  - extra/config.json
"""


@dataclass
class ProjectConfig:
    """Parsed contents of fuzzbundle.yaml."""

    project_dir: Path
    build_system: Optional[str] = None
    build_command: Optional[str] = None
    clean_command: Optional[str] = None
    build_jobs: Optional[int] = None
    docker_image: Optional[str] = None
    env: List[str] = field(default_factory=list)
    seed_corpus_dirs: List[str] = field(default_factory=list)
    dictionary: Optional[str] = None
    engine_args: List[str] = field(default_factory=list)
    additional_files: List[str] = field(default_factory=list)
    timeout: Optional[int] = None


# yaml key -> (ProjectConfig attribute, expected type)
_KEYS: Dict[str, tuple] = {
    "build-system": ("build_system", str),
    "build-command": ("build_command", str),
    "clean-command": ("clean_command", str),
    "build-jobs": ("build_jobs", int),
    "docker-image": ("docker_image", str),
    "env": ("env", list),
    "seed-corpus-dirs": ("seed_corpus_dirs", list),
    "dict": ("dictionary", str),
    "engine-args": ("engine_args", list),
    "add": ("additional_files", list),
    "timeout": ("timeout", int),
}


def find_config_dir(start: Optional[Path] = None) -> Path:
    """
    Find the closest directory containing fuzzbundle.yaml.

    Args:
        start: Directory to start searching from (default: current directory)

    Returns:
        Directory containing the config file

    Raises:
        ConfigError: If no config file exists in start or any parent
    """
    start = Path(start or Path.cwd()).resolve()
    for candidate in [start, *start.parents]:
        if (candidate / CONFIG_FILE_NAME).is_file():
            return candidate
    raise ConfigError(
        f"{CONFIG_FILE_NAME} not found in {start} or any parent directory.\n"
        "Use 'fuzzbundle init' to set up a project for use with fuzzbundle."
    )


def _coerce(key: str, value: Any, expected: type) -> Any:
    if value is None:
        return [] if expected is list else None
    if expected is list:
        if isinstance(value, (str, int, float)):
            return [str(value)]
        if not isinstance(value, list):
            raise ConfigError(f"'{key}' must be a list, got {type(value).__name__}")
        return [str(item) for item in value]
    if expected is int:
        if isinstance(value, bool) or not isinstance(value, int):
            raise ConfigError(f"'{key}' must be an integer, got {value!r}")
        return value
    if not isinstance(value, (str, int, float)):
        raise ConfigError(f"'{key}' must be a string, got {type(value).__name__}")
    return str(value)


def parse_project_config(text: str, project_dir: Path) -> ProjectConfig:
    """
    Parse the text of a fuzzbundle.yaml file.

    Raises:
        ConfigError: If the YAML is malformed or a value has the wrong type
    """
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise ConfigError(f"Failed to parse {CONFIG_FILE_NAME}: {e}") from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError(f"{CONFIG_FILE_NAME} must contain a mapping of settings")

    config = ProjectConfig(project_dir=Path(project_dir))
    for key, value in data.items():
        if key not in _KEYS:
            logger.warning(f"Ignoring unknown setting '{key}' in {CONFIG_FILE_NAME}")
            continue
        attr, expected = _KEYS[key]
        setattr(config, attr, _coerce(key, value, expected))
    return config


def load_project_config(project_dir: Path) -> ProjectConfig:
    """
    Load fuzzbundle.yaml from a project directory.

    Args:
        project_dir: Directory containing fuzzbundle.yaml

    Returns:
        Parsed ProjectConfig

    Raises:
        ConfigError: If the file is missing, unreadable or malformed
    """
    config_path = Path(project_dir) / CONFIG_FILE_NAME
    if not config_path.is_file():
        raise ConfigError(
            f"{CONFIG_FILE_NAME} not found in {project_dir}.\n"
            "Use 'fuzzbundle init' to set up a project for use with fuzzbundle."
        )
    try:
        text = config_path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Failed to read {config_path}: {e}") from e

    logger.debug(f"Loading project config {config_path}")
    return parse_project_config(text, Path(project_dir))


def create_project_config(project_dir: Path) -> Path:
    """
    Write the default fuzzbundle.yaml template.

    Returns:
        Path of the created file

    Raises:
        FileExistsError: If the config file already exists
    """
    config_path = Path(project_dir) / CONFIG_FILE_NAME
    with open(config_path, "x", encoding="utf-8") as f:
        f.write(CONFIG_TEMPLATE)
    return config_path
