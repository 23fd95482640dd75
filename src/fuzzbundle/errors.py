"""Exception types shared across fuzzbundle.

Expected failures (user configuration, environment, a failing build
command) derive from FuzzBundleError. They are printed once where they are
detected and then wrapped in SilentError so outer layers only set the exit
code. Anything else is an internal error and is reported with full detail.
"""


class FuzzBundleError(Exception):
    """Base class for expected, user-caused failures."""

    pass


class ConfigError(FuzzBundleError):
    """Raised when the project configuration is missing or malformed."""

    pass


class IndeterminateBuildSystemError(ConfigError):
    """Raised when the build system of a project cannot be determined."""

    pass


class UnsupportedBuildSystemError(FuzzBundleError):
    """Raised for a build system the tool does not understand."""

    pass


class FeatureNotEnabledError(FuzzBundleError):
    """Raised for a build system that is gated behind an override."""

    pass


class UnsupportedPlatformError(FuzzBundleError):
    """Raised when the host OS cannot produce a usable bundle."""

    pass


class FuzzTestResolutionError(FuzzBundleError):
    """Raised when fuzz test arguments cannot be resolved."""

    pass


class NoSuchFuzzTestError(FuzzTestResolutionError):
    """Raised when an argument matches no fuzz test."""

    pass


class AmbiguousFuzzTestError(FuzzTestResolutionError):
    """Raised when an argument matches more than one fuzz test."""

    def __init__(self, token: str, candidates):
        self.token = token
        self.candidates = list(candidates)
        listing = "\n".join(f"  {c}" for c in self.candidates)
        super().__init__(
            f"'{token}' matches more than one fuzz test:\n{listing}\n"
            "Please specify the fuzz test unambiguously."
        )


class ValidationError(FuzzBundleError):
    """Raised when bundle options are invalid."""

    pass


class LogSetupError(FuzzBundleError):
    """Raised when the log files of a run cannot be opened."""

    pass


class ExpectedBuildFailure(FuzzBundleError):
    """Raised by a bundler for failures caused by the user's project."""

    pass


class ExecError(ExpectedBuildFailure):
    """Raised when an external command exits with a non-zero status."""

    def __init__(self, command: str, returncode: int):
        self.command = command
        self.returncode = returncode
        super().__init__(f"Command `{command}` exited with status {returncode}")


class APIError(FuzzBundleError):
    """Raised when the remote API rejects a request."""

    def __init__(self, message: str, status_code=None):
        self.status_code = status_code
        super().__init__(message)


class SilentError(Exception):
    """Marks an error that was already reported to the user."""

    def __init__(self, cause: BaseException):
        self.cause = cause
        super().__init__(str(cause))
