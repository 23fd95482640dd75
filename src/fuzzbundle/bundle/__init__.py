"""
Bundle command implementation.

This package turns the options of `fuzzbundle bundle` into a validated
BundleRequest, sets up build logging and hands the request to a Bundler.
"""

from .bundler import BuildCommandBundler, Bundler
from .options import BundleOptions, build_request
from .outcome import ExecutionOutcome, OutcomeKind
from .pipeline import BundlePipeline
from .platform_gate import PlatformSupportPolicy
from .request import AdditionalFile, BundleRequest

__all__ = [
    "AdditionalFile",
    "BuildCommandBundler",
    "Bundler",
    "BundleOptions",
    "BundlePipeline",
    "BundleRequest",
    "ExecutionOutcome",
    "OutcomeKind",
    "PlatformSupportPolicy",
    "build_request",
]
