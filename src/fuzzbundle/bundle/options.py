"""
Options of the bundle command.

BundleOptions holds what was given on the command line. Unset values are
None (or empty lists) so they can fall back to fuzzbundle.yaml and then to
the defaults below when the BundleRequest is built.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

from ..config.build_system import BuildSystemKind
from ..config.project_config import ProjectConfig
from .request import BundleRequest, parse_additional_file

DEFAULT_DOCKER_IMAGES: Dict[BuildSystemKind, str] = {
    BuildSystemKind.CMAKE: "ubuntu:rolling",
    BuildSystemKind.BAZEL: "ubuntu:rolling",
    BuildSystemKind.OTHER: "ubuntu:rolling",
    BuildSystemKind.MAVEN: "eclipse-temurin:17",
    BuildSystemKind.GRADLE: "eclipse-temurin:17",
    BuildSystemKind.NODEJS: "node:lts",
}

DEFAULT_ARCHIVE_NAME = "fuzz_tests.tar.gz"
ARCHIVE_SUFFIX = ".tar.gz"


@dataclass
class BundleOptions:
    """Command-line options of the bundle command."""

    fuzz_test_args: List[str] = field(default_factory=list)
    build_system_args: List[str] = field(default_factory=list)
    project_dir: Optional[Path] = None
    output_path: Optional[Path] = None
    build_command: Optional[str] = None
    clean_command: Optional[str] = None
    docker_image: Optional[str] = None
    env: List[str] = field(default_factory=list)
    seed_corpus_dirs: List[str] = field(default_factory=list)
    dictionary: Optional[str] = None
    engine_args: List[str] = field(default_factory=list)
    additional_files: List[str] = field(default_factory=list)
    timeout: Optional[int] = None
    build_jobs: Optional[int] = None
    resolve_source_files: bool = False
    branch: Optional[str] = None
    commit: Optional[str] = None
    verbose: bool = False


def default_output_path(fuzz_tests: List[str], cwd: Optional[Path] = None) -> Path:
    """
    Choose the archive path when --output is not given.

    A single fuzz test names the archive after itself, several fuzz tests
    share a generic name.
    """
    cwd = Path(cwd or Path.cwd())
    if len(fuzz_tests) != 1:
        return cwd / DEFAULT_ARCHIVE_NAME
    name = fuzz_tests[0].replace("::", "_").rstrip("/")
    name = name.rsplit("/", 1)[-1].rsplit(":", 1)[-1] or "fuzz_test"
    return cwd / f"{name}{ARCHIVE_SUFFIX}"


def _relative_to(project_dir: Path, value: str) -> Path:
    path = Path(value).expanduser()
    return path if path.is_absolute() else project_dir / path


def build_request(
    options: BundleOptions,
    config: ProjectConfig,
    kind: BuildSystemKind,
    fuzz_tests: List[str],
) -> BundleRequest:
    """
    Merge command-line options, project configuration and defaults.

    Command-line values win over configuration values. Paths from the
    configuration file are relative to the project directory, paths from
    the command line are relative to the current directory.

    Returns:
        Unvalidated BundleRequest
    """
    project_dir = Path(options.project_dir or config.project_dir)

    def pick(cli_value, config_value, default=None):
        if cli_value is not None:
            return cli_value
        if config_value is not None:
            return config_value
        return default

    if options.seed_corpus_dirs:
        seed_corpus_dirs = [Path(p).expanduser() for p in options.seed_corpus_dirs]
    else:
        seed_corpus_dirs = [_relative_to(project_dir, p) for p in config.seed_corpus_dirs]

    dictionary = None
    if options.dictionary:
        dictionary = Path(options.dictionary).expanduser()
    elif config.dictionary:
        dictionary = _relative_to(project_dir, config.dictionary)

    if options.additional_files:
        additional_files = [parse_additional_file(e, Path.cwd()) for e in options.additional_files]
    else:
        additional_files = [parse_additional_file(e, project_dir) for e in config.additional_files]

    output_path = options.output_path or default_output_path(fuzz_tests)

    return BundleRequest(
        project_dir=project_dir,
        build_system=kind,
        fuzz_test_args=tuple(options.fuzz_test_args),
        fuzz_tests=tuple(fuzz_tests),
        build_command=pick(options.build_command, config.build_command),
        clean_command=pick(options.clean_command, config.clean_command),
        docker_image=pick(options.docker_image, config.docker_image, DEFAULT_DOCKER_IMAGES[kind]),
        env=tuple(options.env or config.env),
        seed_corpus_dirs=tuple(seed_corpus_dirs),
        dictionary=dictionary,
        engine_args=tuple(options.engine_args or config.engine_args),
        additional_files=tuple(additional_files),
        timeout=pick(options.timeout, config.timeout, 0),
        build_jobs=pick(options.build_jobs, config.build_jobs),
        output_path=Path(output_path),
        build_system_args=tuple(options.build_system_args),
        branch=options.branch,
        commit=options.commit,
    )
