"""
Shared pieces of the fuzz test resolvers.

Every dialect implements the same contract: turn the raw positional
arguments of a command into an ordered, duplicate-free list of fuzz test
identifiers. Dialects that can enumerate their fuzz tests from the project
sources share DeclarationResolver, which handles the "no arguments means
all fuzz tests" default, source-file lookups and deduplication.
"""

import os
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Iterator, List, Optional, Sequence, Tuple

from ..errors import FuzzTestResolutionError, NoSuchFuzzTestError

# Directories never searched for declarations
EXCLUDED_DIRS = {
    ".git",
    ".hg",
    ".svn",
    ".fuzzbundle",
    ".gradle",
    ".idea",
    "__pycache__",
    "node_modules",
}

# Directories never searched for executables
VCS_DIRS = {".git", ".hg", ".svn", ".fuzzbundle"}

# Output directories of the build tools, only pruned where a build tool puts them
BUILD_OUTPUT_DIRS = {"build", "target"}
MODULE_MARKERS = ("pom.xml", "build.gradle", "build.gradle.kts")

_STRING_LITERAL = r"\"(?:\\.|[^\"\\\n])*\"|'(?:\\.|[^'\\\n])*'"
_HASH_COMMENT = re.compile(rf"({_STRING_LITERAL})|#[^\n]*")
_C_COMMENT = re.compile(rf"({_STRING_LITERAL})|//[^\n]*|/\*.*?\*/", re.DOTALL)


@dataclass(frozen=True)
class FuzzTestDeclaration:
    """A fuzz test found in the project sources."""

    identifier: str
    sources: Tuple[str, ...] = ()  # project-relative posix paths
    methods: Tuple[str, ...] = ()


def strip_hash_comments(text: str) -> str:
    """Remove `#` comments (Starlark, shell) outside of string literals."""
    return _HASH_COMMENT.sub(lambda m: m.group(1) or "", text)


def strip_c_comments(text: str) -> str:
    """Remove `//` and `/* */` comments (Java, Kotlin) outside of string literals."""
    return _C_COMMENT.sub(lambda m: m.group(1) or " ", text)


def _in_test_source_root(rel_parts: Tuple[str, ...]) -> bool:
    for i in range(len(rel_parts) - 2):
        if rel_parts[i:i + 2] == ("src", "test") and rel_parts[i + 2] in ("java", "kotlin"):
            return True
    return False


def is_build_output_dir(parent: Path, name: str, project_dir: Path) -> bool:
    """
    Decide whether the directory parent/name holds build output.

    `bazel-*` symlinks are pruned at the project root. `build` and `target`
    are pruned when they are a configured CMake binary directory or sit in
    a Maven/Gradle module root. Package directories below src/test/java and
    src/test/kotlin are never build output.
    """
    if parent == project_dir and name.startswith("bazel-"):
        return True
    if name not in BUILD_OUTPUT_DIRS:
        return False
    if _in_test_source_root(parent.relative_to(project_dir).parts):
        return False
    if (parent / name / "CMakeCache.txt").is_file():
        return True
    return any((parent / marker).is_file() for marker in MODULE_MARKERS)


def walk_project(
    project_dir: Path,
    excluded: Iterable[str] = EXCLUDED_DIRS,
    skip_build_output: bool = True,
) -> Iterator[Path]:
    """
    Yield all files below project_dir in a stable, sorted order.

    Symlinked directories are not followed.

    Args:
        project_dir: Directory to search
        excluded: Directory names pruned at every depth
        skip_build_output: Also prune the output directories of build tools
    """
    project_dir = Path(project_dir)
    excluded = set(excluded)
    for root, dirnames, filenames in os.walk(project_dir):
        parent = Path(root)
        dirnames[:] = sorted(
            d for d in dirnames
            if d not in excluded
            and not (skip_build_output and is_build_output_dir(parent, d, project_dir))
        )
        for filename in sorted(filenames):
            yield parent / filename


def relative_posix(path: Path, project_dir: Path) -> str:
    """Express path relative to project_dir with forward slashes."""
    try:
        return Path(path).resolve().relative_to(Path(project_dir).resolve()).as_posix()
    except ValueError:
        return Path(path).as_posix()


def dedupe(identifiers: Iterable[str]) -> List[str]:
    """Remove duplicates, keeping the first occurrence of each identifier."""
    seen = set()
    result = []
    for identifier in identifiers:
        if identifier not in seen:
            seen.add(identifier)
            result.append(identifier)
    return result


class FuzzTestResolver(ABC):
    """Resolution strategy for one build system dialect."""

    #: Human readable dialect name used in messages
    dialect = "project"

    @abstractmethod
    def resolve(self, tokens: Sequence[str], project_dir: Path) -> List[str]:
        """
        Resolve fuzz test arguments.

        Args:
            tokens: Raw positional arguments (empty means all fuzz tests
                where the dialect supports it)
            project_dir: Project root directory

        Returns:
            Ordered list of fuzz test identifiers without duplicates

        Raises:
            FuzzTestResolutionError: If an argument cannot be resolved
        """

    def resolve_source_files(self, paths: Sequence[str], project_dir: Path) -> List[str]:
        """Resolve source file paths to the fuzz tests defined in them."""
        raise FuzzTestResolutionError(
            f"Resolving fuzz tests from source files is not supported for {self.dialect} projects"
        )


class DeclarationResolver(FuzzTestResolver):
    """Resolver for dialects whose fuzz tests are declared in the project."""

    @abstractmethod
    def declarations(self, project_dir: Path) -> List[FuzzTestDeclaration]:
        """Enumerate all fuzz tests declared in the project, in stable order."""

    @abstractmethod
    def match(self, token: str, declarations: List[FuzzTestDeclaration]) -> Optional[str]:
        """
        Match a single argument against the declared fuzz tests.

        Returns:
            The identifier, or None if nothing matches

        Raises:
            AmbiguousFuzzTestError: If the argument matches several fuzz tests
        """

    def resolve(self, tokens: Sequence[str], project_dir: Path) -> List[str]:
        declarations = self.declarations(project_dir)

        if not tokens:
            if not declarations:
                raise NoSuchFuzzTestError(f"No fuzz tests found in {self.dialect} project {project_dir}")
            return dedupe(d.identifier for d in declarations)

        resolved = []
        for token in tokens:
            identifier = self.match(token, declarations)
            if identifier is None:
                raise NoSuchFuzzTestError(f"No fuzz test named '{token}' found in {project_dir}")
            resolved.append(identifier)
        return dedupe(resolved)

    def resolve_source_files(self, paths: Sequence[str], project_dir: Path) -> List[str]:
        declarations = self.declarations(project_dir)
        resolved = []
        for path in paths:
            source = _source_path(path, project_dir)
            rel = relative_posix(source, project_dir)
            matches = [d.identifier for d in declarations if rel in d.sources]
            if not matches:
                raise NoSuchFuzzTestError(f"No fuzz test defined in source file {path}")
            resolved.extend(matches)
        return dedupe(resolved)


def _source_path(path: str, project_dir: Path) -> Path:
    candidate = Path(path)
    if candidate.is_absolute():
        return candidate
    in_project = Path(project_dir) / candidate
    in_cwd = Path.cwd() / candidate
    if not in_project.exists() and in_cwd.exists():
        return in_cwd
    return in_project
