"""Selection of the fuzz test resolver for a build system."""

import logging
from pathlib import Path
from typing import Dict, List, Sequence, Type

from ..config.build_system import BuildSystemKind
from .base import FuzzTestResolver
from .executable import ExecutableResolver
from .jvm import JVMResolver
from .native import BazelResolver, CMakeResolver, NodeJSResolver

logger = logging.getLogger(__name__)

RESOLVERS: Dict[BuildSystemKind, Type[FuzzTestResolver]] = {
    BuildSystemKind.CMAKE: CMakeResolver,
    BuildSystemKind.BAZEL: BazelResolver,
    BuildSystemKind.MAVEN: JVMResolver,
    BuildSystemKind.GRADLE: JVMResolver,
    BuildSystemKind.NODEJS: NodeJSResolver,
    BuildSystemKind.OTHER: ExecutableResolver,
}


def resolver_for(kind: BuildSystemKind) -> FuzzTestResolver:
    """Create the resolution strategy for a build system."""
    return RESOLVERS[kind]()


def resolve_fuzz_tests(
    kind: BuildSystemKind,
    tokens: Sequence[str],
    project_dir: Path,
    resolve_source_files: bool = False,
) -> List[str]:
    """
    Resolve raw fuzz test arguments into fuzz test identifiers.

    Args:
        kind: Build system of the project
        tokens: Positional arguments given by the user
        project_dir: Project root directory
        resolve_source_files: Treat the arguments as source file paths

    Returns:
        Ordered list of fuzz test identifiers without duplicates

    Raises:
        FuzzTestResolutionError: If the arguments cannot be resolved
    """
    resolver = resolver_for(kind)
    if resolve_source_files and tokens:
        fuzz_tests = resolver.resolve_source_files(list(tokens), Path(project_dir))
    else:
        fuzz_tests = resolver.resolve(list(tokens), Path(project_dir))
    logger.debug(f"Resolved fuzz tests {list(tokens)} -> {fuzz_tests}")
    return fuzz_tests
