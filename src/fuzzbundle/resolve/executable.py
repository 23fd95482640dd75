"""
Fuzz test resolution for projects built with a custom build command.

Without a known build system there is nothing to enumerate, so every fuzz
test has to be named explicitly, either as the path of the executable the
build command produces or as its basename.
"""

import logging
import os
from pathlib import Path
from typing import List, Sequence

from ..errors import AmbiguousFuzzTestError, FuzzTestResolutionError
from .base import VCS_DIRS, FuzzTestResolver, dedupe, relative_posix, walk_project

logger = logging.getLogger(__name__)


class ExecutableResolver(FuzzTestResolver):
    """Resolves fuzz test executables by path or basename."""

    dialect = "other"

    def resolve(self, tokens: Sequence[str], project_dir: Path) -> List[str]:
        if not tokens:
            # A build command is mandatory here, so there is no "build everything" default
            raise FuzzTestResolutionError(
                "No fuzz test specified. With build system 'other', the fuzz tests "
                "to bundle must be named explicitly by executable path or basename."
            )
        return dedupe(self._resolve_token(token, Path(project_dir)) for token in tokens)

    def _resolve_token(self, token: str, project_dir: Path) -> str:
        path = Path(token)
        candidate = path if path.is_absolute() else project_dir / path
        if candidate.is_file():
            return relative_posix(candidate, project_dir)

        if "/" in token or os.sep in token:
            # Not built yet, the build command is expected to create it
            return path.as_posix()

        matches = self.find_executables(token, project_dir)
        if len(matches) > 1:
            raise AmbiguousFuzzTestError(token, matches)
        if matches:
            return matches[0]

        logger.debug(f"No file named {token} found yet, keeping basename")
        return token

    @staticmethod
    def is_executable(path: Path) -> bool:
        """Check whether path is a file the host OS can run."""
        if not path.is_file():
            return False
        if os.name == "nt":
            return path.suffix.lower() == ".exe"
        return os.access(path, os.X_OK)

    @classmethod
    def find_executables(cls, name: str, project_dir: Path) -> List[str]:
        """Search project_dir recursively for executables named name (or name.exe)."""
        names = {name, f"{name}.exe"}
        return [
            relative_posix(path, project_dir)
            for path in walk_project(project_dir, excluded=VCS_DIRS, skip_build_output=False)
            if path.name in names and cls.is_executable(path)
        ]
