"""
Fuzz test discovery for CMake, Bazel and NodeJS projects.

CMake fuzz tests are declared with `add_fuzz_test(<name> <sources>...)`,
Bazel fuzz tests with `cc_fuzz_test`/`fuzz_test` rules in BUILD files, and
NodeJS fuzz tests are `*.fuzz.js`/`*.fuzz.ts` files.
"""

import re
from pathlib import Path, PurePosixPath
from typing import List, Optional

from ..errors import AmbiguousFuzzTestError
from .base import (
    DeclarationResolver,
    FuzzTestDeclaration,
    relative_posix,
    strip_hash_comments,
    walk_project,
)

_CMAKE_COMMENT = re.compile(r"#[^\n]*")
_ADD_FUZZ_TEST = re.compile(r"\badd_fuzz_test\s*\(([^)]*)\)", re.IGNORECASE)

_BAZEL_RULE = re.compile(r"\b(?:cc_fuzz_test|fuzz_test)\s*\(")
_BAZEL_NAME = re.compile(r"\bname\s*=\s*[\"']([^\"']+)[\"']")
_BAZEL_SRCS = re.compile(r"\bsrcs\s*=\s*\[([^\]]*)\]")
_STRING = re.compile(r"[\"']([^\"']+)[\"']")

BAZEL_BUILD_FILES = ("BUILD", "BUILD.bazel")
NODEJS_SUFFIXES = (".fuzz.js", ".fuzz.ts")


def parse_cmake_fuzz_tests(cmake_file: Path, project_dir: Path) -> List[FuzzTestDeclaration]:
    """Extract add_fuzz_test declarations from a CMakeLists.txt file."""
    text = _CMAKE_COMMENT.sub("", cmake_file.read_text(encoding="utf-8", errors="replace"))
    base = PurePosixPath(relative_posix(cmake_file.parent, project_dir))

    declarations = []
    for match in _ADD_FUZZ_TEST.finditer(text):
        args = match.group(1).split()
        if not args or "${" in args[0]:
            continue
        # Keywords such as SOURCES are upper case, source files have a suffix
        sources = tuple(
            (base / arg).as_posix()
            for arg in args[1:]
            if "." in arg and not arg.isupper() and "${" not in arg
        )
        declarations.append(FuzzTestDeclaration(identifier=args[0], sources=sources))
    return declarations


def _balanced_body(text: str, start: int) -> str:
    """Return the text between the parenthesis opened before start and its match."""
    depth = 1
    pos = start
    while pos < len(text) and depth:
        if text[pos] == "(":
            depth += 1
        elif text[pos] == ")":
            depth -= 1
        pos += 1
    return text[start:pos - 1]


def parse_bazel_fuzz_tests(build_file: Path, project_dir: Path) -> List[FuzzTestDeclaration]:
    """Extract fuzz test rules from a BUILD file as //package:name labels."""
    text = strip_hash_comments(build_file.read_text(encoding="utf-8", errors="replace"))
    package = relative_posix(build_file.parent, project_dir)
    if package == ".":
        package = ""

    declarations = []
    for match in _BAZEL_RULE.finditer(text):
        body = _balanced_body(text, match.end())
        name = _BAZEL_NAME.search(body)
        if not name:
            continue
        sources = ()
        srcs = _BAZEL_SRCS.search(body)
        if srcs:
            sources = tuple(
                f"{package}/{src}" if package else src
                for src in _STRING.findall(srcs.group(1))
            )
        declarations.append(
            FuzzTestDeclaration(identifier=f"//{package}:{name.group(1)}", sources=sources)
        )
    return declarations


def _unique(token: str, matches: List[str]) -> Optional[str]:
    if len(matches) > 1:
        raise AmbiguousFuzzTestError(token, matches)
    return matches[0] if matches else None


class CMakeResolver(DeclarationResolver):
    """Resolves CMake fuzz test target names."""

    dialect = "CMake"

    def declarations(self, project_dir: Path) -> List[FuzzTestDeclaration]:
        declarations = []
        for path in walk_project(project_dir):
            if path.name == "CMakeLists.txt":
                declarations.extend(parse_cmake_fuzz_tests(path, project_dir))
        return declarations

    def match(self, token: str, declarations: List[FuzzTestDeclaration]) -> Optional[str]:
        for declaration in declarations:
            if declaration.identifier == token:
                return declaration.identifier
        return None


class BazelResolver(DeclarationResolver):
    """Resolves Bazel fuzz test labels."""

    dialect = "Bazel"

    def declarations(self, project_dir: Path) -> List[FuzzTestDeclaration]:
        declarations = []
        for path in walk_project(project_dir):
            if path.name in BAZEL_BUILD_FILES:
                declarations.extend(parse_bazel_fuzz_tests(path, project_dir))
        return declarations

    @staticmethod
    def normalize_label(token: str) -> Optional[str]:
        """
        Turn a label-like argument into an absolute label.

        Returns None for bare target names, which need a lookup by name.

        Examples:
            //src/parser:fuzz -> //src/parser:fuzz
            src/parser:fuzz   -> //src/parser:fuzz
            //src/parser      -> //src/parser:parser
        """
        if token.startswith("@"):
            token = token.split("//", 1)[-1]
            token = "//" + token
        if token.startswith("//"):
            if ":" in token:
                return token
            package = token[2:].rstrip("/")
            return f"//{package}:{package.rsplit('/', 1)[-1]}"
        if ":" in token and not token.startswith(":"):
            return "//" + token
        return None

    def match(self, token: str, declarations: List[FuzzTestDeclaration]) -> Optional[str]:
        labels = [d.identifier for d in declarations]
        label = self.normalize_label(token)
        if label is not None:
            return label if label in labels else None

        name = token.lstrip(":")
        return _unique(token, [lbl for lbl in labels if lbl.rsplit(":", 1)[1] == name])


class NodeJSResolver(DeclarationResolver):
    """Resolves NodeJS fuzz test files."""

    dialect = "NodeJS"

    def declarations(self, project_dir: Path) -> List[FuzzTestDeclaration]:
        declarations = []
        for path in walk_project(project_dir):
            if path.name.endswith(NODEJS_SUFFIXES):
                rel = relative_posix(path, project_dir)
                declarations.append(FuzzTestDeclaration(identifier=rel, sources=(rel,)))
        return declarations

    @staticmethod
    def _aliases(identifier: str) -> List[str]:
        name = identifier.rsplit("/", 1)[-1]
        stem = identifier
        for suffix in NODEJS_SUFFIXES:
            if identifier.endswith(suffix):
                stem = identifier[: -len(suffix)]
        return [identifier, stem, name, stem.rsplit("/", 1)[-1]]

    def match(self, token: str, declarations: List[FuzzTestDeclaration]) -> Optional[str]:
        token = token.replace("\\", "/")
        if token.startswith("./"):
            token = token[2:]
        matches = [d.identifier for d in declarations if token in self._aliases(d.identifier)]
        return _unique(token, matches)
