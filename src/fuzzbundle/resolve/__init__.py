"""Fuzz test argument resolution for all supported build systems."""

from .base import FuzzTestDeclaration, FuzzTestResolver
from .executable import ExecutableResolver
from .jvm import (
    JVMResolver,
    get_target_methods_from_jvm_fuzz_test_file,
    list_jvm_fuzz_tests,
    list_jvm_fuzz_tests_with_filter,
)
from .native import BazelResolver, CMakeResolver, NodeJSResolver
from .resolver import resolve_fuzz_tests, resolver_for

__all__ = [
    "FuzzTestDeclaration",
    "FuzzTestResolver",
    "ExecutableResolver",
    "JVMResolver",
    "BazelResolver",
    "CMakeResolver",
    "NodeJSResolver",
    "get_target_methods_from_jvm_fuzz_test_file",
    "list_jvm_fuzz_tests",
    "list_jvm_fuzz_tests_with_filter",
    "resolve_fuzz_tests",
    "resolver_for",
]
