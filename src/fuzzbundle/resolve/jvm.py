"""
Fuzz test discovery for Maven and Gradle projects.

JVM fuzz tests are Java or Kotlin classes below a `src/test/java` or
`src/test/kotlin` directory that contain either a method annotated with
`@FuzzTest` or a `fuzzerTestOneInput` method.
"""

import re
from pathlib import Path
from typing import List, Optional

from ..errors import AmbiguousFuzzTestError, NoSuchFuzzTestError
from .base import (
    DeclarationResolver,
    FuzzTestDeclaration,
    relative_posix,
    strip_c_comments,
    walk_project,
)

JVM_SOURCE_SUFFIXES = (".java", ".kt")
TEST_SOURCE_ROOTS = (("src", "test", "java"), ("src", "test", "kotlin"))

FUZZER_TEST_ONE_INPUT = "fuzzerTestOneInput"

# Matches the name of the method following an @FuzzTest annotation,
# skipping annotation arguments, other annotations and modifiers.
_FUZZ_TEST_METHOD = re.compile(
    r"@FuzzTest\b(?:\s*\([^)]*\))?"
    r"(?:\s*@\w+(?:\s*\([^)]*\))?)*"
    r"[^(@]*?(\w+)\s*\("
)


def _source_root(path: Path) -> Optional[Path]:
    parts = path.parts
    for root in TEST_SOURCE_ROOTS:
        for i in range(len(parts) - len(root)):
            if parts[i:i + len(root)] == root:
                return Path(*parts[:i + len(root)])
    return None


def get_target_methods_from_jvm_fuzz_test_file(path: Path) -> List[str]:
    """
    Get the fuzz test methods defined in a Java/Kotlin file.

    Args:
        path: Source file

    Returns:
        Names of @FuzzTest methods in order of appearance, or
        ["fuzzerTestOneInput"] for classic Jazzer fuzz targets
    """
    text = strip_c_comments(Path(path).read_text(encoding="utf-8", errors="replace"))
    methods = _FUZZ_TEST_METHOD.findall(text)
    if methods:
        return methods
    if re.search(rf"\b{FUZZER_TEST_ONE_INPUT}\s*\(", text):
        return [FUZZER_TEST_ONE_INPUT]
    return []


def class_name_for_source(path: Path) -> Optional[str]:
    """Derive the fully qualified class name of a test source file."""
    root = _source_root(Path(path))
    if root is None:
        return None
    rel = Path(path).relative_to(root).with_suffix("")
    return ".".join(rel.parts)


def _jvm_declarations(project_dir: Path) -> List[FuzzTestDeclaration]:
    declarations = []
    for path in walk_project(project_dir):
        if path.suffix not in JVM_SOURCE_SUFFIXES:
            continue
        class_name = class_name_for_source(path)
        if class_name is None:
            continue
        methods = get_target_methods_from_jvm_fuzz_test_file(path)
        if not methods:
            continue
        declarations.append(
            FuzzTestDeclaration(
                identifier=class_name,
                sources=(relative_posix(path, project_dir),),
                methods=tuple(methods),
            )
        )
    return declarations


def list_jvm_fuzz_tests_with_filter(project_dir: Path, prefix: str) -> List[str]:
    """List fully qualified JVM fuzz test classes starting with prefix."""
    return sorted(
        d.identifier for d in _jvm_declarations(project_dir) if d.identifier.startswith(prefix)
    )


def list_jvm_fuzz_tests(project_dir: Path) -> List[str]:
    """List all fully qualified JVM fuzz test classes of a project."""
    return list_jvm_fuzz_tests_with_filter(project_dir, "")


class JVMResolver(DeclarationResolver):
    """Resolves Maven and Gradle fuzz test classes."""

    dialect = "Maven/Gradle"

    def declarations(self, project_dir: Path) -> List[FuzzTestDeclaration]:
        return _jvm_declarations(project_dir)

    def match(self, token: str, declarations: List[FuzzTestDeclaration]) -> Optional[str]:
        class_token, _, method = token.partition("::")

        declaration = self._find_class(class_token, declarations)
        if declaration is None:
            return None
        if not method:
            return declaration.identifier
        if method not in declaration.methods:
            raise NoSuchFuzzTestError(
                f"Class {declaration.identifier} has no fuzz test method '{method}'"
            )
        return f"{declaration.identifier}::{method}"

    @staticmethod
    def _find_class(
        class_token: str, declarations: List[FuzzTestDeclaration]
    ) -> Optional[FuzzTestDeclaration]:
        for declaration in declarations:
            if declaration.identifier == class_token:
                return declaration

        matches = [
            d for d in declarations if d.identifier.rsplit(".", 1)[-1] == class_token
        ]
        if len(matches) > 1:
            raise AmbiguousFuzzTestError(class_token, [d.identifier for d in matches])
        return matches[0] if matches else None
