"""
Bundle pipeline.

This module runs the bundle command from raw options to a finished
archive. The phases always run in this order, so nothing is written to
disk for a request that is going to be rejected:

1. Load fuzzbundle.yaml
2. Determine and validate the build system
3. Check that the host platform is supported
4. Resolve the fuzz test arguments
5. Build and validate the BundleRequest
6. Open the log files
7. Hand the request to the bundler
8. Report the outcome

Expected failures are printed once where they occur and raised as
SilentError. Unexpected failures propagate unchanged.
"""

import logging
from pathlib import Path
from typing import IO, Callable, Optional, TypeVar

from ..build_log import (
    LogDestination,
    print_build_log_path,
    setup_bundle_logging,
    should_log_build_to_file,
)
from ..cli_utils import ErrorFormatter, ProgressSpinner
from ..config.build_system import BuildSystemKind, classify
from ..config.project_config import ProjectConfig, find_config_dir, load_project_config
from ..errors import (
    ConfigError,
    ExpectedBuildFailure,
    FeatureNotEnabledError,
    FuzzBundleError,
    FuzzTestResolutionError,
    LogSetupError,
    SilentError,
    UnsupportedBuildSystemError,
    UnsupportedPlatformError,
    ValidationError,
)
from ..resolve import resolve_fuzz_tests
from .bundler import BuildCommandBundler, Bundler
from .options import BundleOptions, build_request
from .outcome import ExecutionOutcome, OutcomeKind
from .platform_gate import PlatformSupportPolicy
from .request import BundleRequest

logger = logging.getLogger(__name__)

T = TypeVar("T")

BUNDLE_IN_PROGRESS_MSG = "Building fuzz tests and creating bundle..."
BUNDLE_SUCCESS_MSG = "Build finished"
BUNDLE_ERROR_MSG = "Build failed"

_ERROR_TITLES = [
    (ConfigError, "Invalid project configuration"),
    (UnsupportedBuildSystemError, "Unsupported build system"),
    (FeatureNotEnabledError, "Unsupported build system"),
    (UnsupportedPlatformError, "Unsupported platform"),
    (FuzzTestResolutionError, "Invalid fuzz test"),
    (ValidationError, "Invalid options"),
    (LogSetupError, "Failed to set up logging"),
    (ExpectedBuildFailure, "Bundle failed"),
]


def error_title(error: FuzzBundleError) -> str:
    """Headline shown above an expected error."""
    for error_type, title in _ERROR_TITLES:
        if isinstance(error, error_type):
            return title
    return "Error"


def report_and_silence(error: FuzzBundleError) -> SilentError:
    """Print and log an expected error, returning the marker to raise."""
    # Printed below, so only recorded in the verbose log
    logger.debug(f"{error_title(error)}: {error}")
    ErrorFormatter.print_error(error_title(error), str(error))
    return SilentError(error)


class BundlePipeline:
    """
    Runs one invocation of the bundle command.

    Example usage:
        pipeline = BundlePipeline(BundleOptions(fuzz_test_args=["my_fuzz_test"]))
        archive = pipeline.run()
    """

    def __init__(
        self,
        options: BundleOptions,
        bundler: Optional[Bundler] = None,
        log_build_to_file: Optional[bool] = None,
        host_os: Optional[str] = None,
        allow_unsupported_platforms: Optional[bool] = None,
        terminal_stdout: Optional[IO[str]] = None,
        terminal_stderr: Optional[IO[str]] = None,
    ):
        """
        Initialize the pipeline.

        Args:
            options: Command-line options
            bundler: Bundler to delegate to (default: BuildCommandBundler)
            log_build_to_file: Send build output to a log file (default:
                decided from the verbose flag and the environment)
            host_os: Host OS override for the platform check
            allow_unsupported_platforms: Override for the platform check
                (default: from the environment)
            terminal_stdout: Terminal stream for build output in interactive mode
            terminal_stderr: Terminal stream for build errors in interactive mode
        """
        self.options = options
        self.bundler = bundler or BuildCommandBundler()
        if log_build_to_file is None:
            log_build_to_file = should_log_build_to_file(options.verbose)
        self.log_build_to_file = log_build_to_file
        self.host_os = host_os
        self.allow_unsupported_platforms = allow_unsupported_platforms
        self.terminal_stdout = terminal_stdout
        self.terminal_stderr = terminal_stderr
        self.spinner = ProgressSpinner(BUNDLE_IN_PROGRESS_MSG)

    @staticmethod
    def _guarded(func: Callable[..., T], *args, **kwargs) -> T:
        try:
            return func(*args, **kwargs)
        except FuzzBundleError as e:
            raise report_and_silence(e) from e

    def load_config(self) -> ProjectConfig:
        project_dir = self.options.project_dir or find_config_dir()
        return load_project_config(Path(project_dir))

    def prepare(self) -> BundleRequest:
        """
        Run all checks and build the validated request.

        Raises:
            SilentError: If any check fails (the error was already printed)
        """
        config = self._guarded(self.load_config)
        kind: BuildSystemKind = self._guarded(classify, config.project_dir, config.build_system)
        logger.debug(f"Build system: {kind.value}")

        self._guarded(
            PlatformSupportPolicy.check,
            kind,
            self.host_os,
            self.allow_unsupported_platforms,
        )

        fuzz_tests = self._guarded(
            resolve_fuzz_tests,
            kind,
            self.options.fuzz_test_args,
            config.project_dir,
            self.options.resolve_source_files,
        )

        request = self._guarded(build_request, self.options, config, kind, fuzz_tests)
        self._guarded(request.validate)
        return request

    def run(self) -> Path:
        """
        Create the bundle.

        Returns:
            Path of the created archive

        Raises:
            SilentError: For expected failures, already reported
            Exception: Unexpected failures of the bundler, unchanged
        """
        request = self.prepare()

        destination = self._guarded(
            setup_bundle_logging,
            request.project_dir,
            list(request.fuzz_tests),
            self.log_build_to_file,
            self.terminal_stdout,
            self.terminal_stderr,
        )
        with destination:
            logger.info(f"Bundling {', '.join(request.fuzz_tests)} into {request.output_path}")
            if self.log_build_to_file:
                self.spinner.start()
            try:
                outcome = self.bundler.bundle(request, destination)
            except BaseException:
                self.spinner.stop(success=False, message=BUNDLE_ERROR_MSG)
                raise
            return self.report(outcome, destination, request)

    def report(
        self,
        outcome: ExecutionOutcome,
        destination: LogDestination,
        request: BundleRequest,
    ) -> Path:
        """Present the outcome of the bundler to the user."""
        if outcome.kind is OutcomeKind.SUCCESS:
            if self.log_build_to_file:
                self.spinner.stop(success=True, message=BUNDLE_SUCCESS_MSG)
                print_build_log_path(destination)
            ErrorFormatter.print_success(f"Successfully created bundle: {request.output_path}")
            return outcome.archive_path or request.output_path

        if self.log_build_to_file:
            self.spinner.stop(success=False, message=BUNDLE_ERROR_MSG)
            print_build_log_path(destination)

        if outcome.kind is OutcomeKind.EXPECTED_FAILURE:
            # Caused by the user's project, so no traceback
            raise report_and_silence(outcome.cause) from outcome.cause

        logger.debug(f"Bundling failed with an internal error: {outcome.cause!r}")
        raise outcome.cause
