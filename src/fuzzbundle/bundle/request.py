"""
The validated description of one bundle run.

A BundleRequest is created once per invocation from the command line and
the project configuration, validated, and then handed to the bundler. It
is frozen so nothing can change it after validation.
"""

import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple

from ..config.build_system import BuildSystemKind
from ..errors import ValidationError

logger = logging.getLogger(__name__)

_ENV_ENTRY = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*(=.*)?$", re.DOTALL)


@dataclass(frozen=True)
class AdditionalFile:
    """A file or directory copied into the bundle at target."""

    source: Path
    target: str


def parse_additional_file(entry: str, base_dir: Path) -> AdditionalFile:
    """
    Parse a `SOURCE` or `SOURCE;TARGET` entry.

    Relative sources are resolved against base_dir. Without an explicit
    target the file keeps its name at the root of the bundle.

    Raises:
        ValidationError: If source or target is empty
    """
    source, sep, target = entry.partition(";")
    if not source.strip() or (sep and not target.strip()):
        raise ValidationError(f"Invalid additional file '{entry}', expected SOURCE or SOURCE;TARGET")
    source_path = Path(source.strip()).expanduser()
    if not source_path.is_absolute():
        source_path = Path(base_dir) / source_path
    return AdditionalFile(source=source_path, target=(target.strip() or source_path.name))


@dataclass(frozen=True)
class BundleRequest:
    """Everything the bundler needs to create an archive."""

    project_dir: Path
    build_system: BuildSystemKind
    fuzz_tests: Tuple[str, ...]
    output_path: Path
    fuzz_test_args: Tuple[str, ...] = ()
    build_command: Optional[str] = None
    clean_command: Optional[str] = None
    docker_image: Optional[str] = None
    env: Tuple[str, ...] = ()
    seed_corpus_dirs: Tuple[Path, ...] = ()
    dictionary: Optional[Path] = None
    engine_args: Tuple[str, ...] = ()
    additional_files: Tuple[AdditionalFile, ...] = ()
    timeout: int = 0
    build_jobs: Optional[int] = None
    build_system_args: Tuple[str, ...] = ()
    branch: Optional[str] = None
    commit: Optional[str] = None

    def validate(self) -> None:
        """
        Check the request before any build work starts.

        Raises:
            ValidationError: On the first invalid option
        """
        if not self.fuzz_tests:
            raise ValidationError("No fuzz tests to bundle")

        if self.build_system is BuildSystemKind.OTHER:
            if not self.build_command:
                raise ValidationError(
                    "A build command is required for build system 'other'. Use the "
                    "--build-command flag or the build-command setting in fuzzbundle.yaml."
                )
        elif self.build_command:
            logger.warning(
                f"The build command is ignored for {self.build_system.display_name} projects"
            )

        if self.timeout < 0:
            raise ValidationError(f"Timeout must not be negative, got {self.timeout}")

        if self.build_jobs is not None and self.build_jobs < 1:
            raise ValidationError(f"Number of build jobs must be at least 1, got {self.build_jobs}")

        for seed_dir in self.seed_corpus_dirs:
            if not Path(seed_dir).is_dir():
                raise ValidationError(f"Seed corpus directory does not exist: {seed_dir}")

        if self.dictionary is not None and not Path(self.dictionary).is_file():
            raise ValidationError(f"Dictionary file does not exist: {self.dictionary}")

        for extra in self.additional_files:
            if not extra.source.exists():
                raise ValidationError(f"Additional file does not exist: {extra.source}")

        for entry in self.env:
            if not _ENV_ENTRY.match(entry):
                raise ValidationError(
                    f"Invalid environment variable '{entry}', expected NAME=VALUE or NAME"
                )

        if self.output_path.is_dir():
            raise ValidationError(f"Output path is a directory: {self.output_path}")
