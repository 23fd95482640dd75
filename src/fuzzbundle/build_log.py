"""Build log handling for fuzzbundle.

This module decides where the output of a bundle run goes:
- A verbose log file that receives every diagnostic of the run
- Either a build log file (with a spinner on the terminal) or the
  terminal itself for the output of the build tools

The writers are collected in a LogDestination which is passed explicitly
to whoever runs build tools, so several runs in one process do not share
any file handles.
"""

import hashlib
import logging
import os
import re
import sys
from pathlib import Path
from typing import IO, List, Optional, Sequence

from .errors import LogSetupError

logger = logging.getLogger(__name__)

PRINT_BUILD_LOGS_ENV = "FUZZBUNDLE_PRINT_BUILD_LOGS"
LOG_DIR = Path(".fuzzbundle") / "logs"

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")
_MAX_READABLE_SUFFIX = 48

VERBOSE_LOG_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"


class TeeWriter:
    """Text stream that duplicates every write to several sinks."""

    def __init__(self, sinks: Sequence[IO[str]]):
        self.sinks: List[IO[str]] = list(sinks)

    def write(self, data: str) -> int:
        for sink in self.sinks:
            sink.write(data)
        return len(data)

    def flush(self) -> None:
        for sink in self.sinks:
            sink.flush()

    def writelines(self, lines) -> None:
        for line in lines:
            self.write(line)

    def isatty(self) -> bool:
        return False


class LogDestination:
    """Writers and log files of a single bundle run.

    Attributes:
        stdout: Writer for the standard output of build tools
        stderr: Writer for the standard error of build tools, which always
            reaches at least the sinks of stdout
        verbose_log_path: Log file receiving all diagnostics of the run
        build_log_path: Log file receiving the build output (file mode only)
    """

    def __init__(
        self,
        stdout: TeeWriter,
        stderr: TeeWriter,
        verbose_log: IO[str],
        verbose_log_path: Path,
        build_log: Optional[IO[str]] = None,
        build_log_path: Optional[Path] = None,
    ):
        self.stdout = stdout
        self.stderr = stderr
        self.verbose_log = verbose_log
        self.verbose_log_path = verbose_log_path
        self.build_log = build_log
        self.build_log_path = build_log_path
        self._handler: Optional[logging.Handler] = None
        self._previous_level: Optional[int] = None

    @property
    def logs_build_to_file(self) -> bool:
        return self.build_log is not None

    def attach_logging(self) -> None:
        """Send all fuzzbundle log records of this run to the verbose log."""
        if self._handler is not None:
            return
        handler = logging.StreamHandler(self.verbose_log)
        handler.setLevel(logging.DEBUG)
        handler.setFormatter(logging.Formatter(VERBOSE_LOG_FORMAT))
        package_logger = logging.getLogger("fuzzbundle")
        self._previous_level = package_logger.level
        package_logger.setLevel(logging.DEBUG)
        package_logger.addHandler(handler)
        self._handler = handler

    def close(self) -> None:
        """Flush and close both log files and detach the logging handler."""
        if self._handler is not None:
            package_logger = logging.getLogger("fuzzbundle")
            package_logger.removeHandler(self._handler)
            if self._previous_level is not None:
                package_logger.setLevel(self._previous_level)
            self._handler = None
        for stream in (self.build_log, self.verbose_log):
            if stream is not None and not stream.closed:
                stream.flush()
                stream.close()

    def __enter__(self) -> "LogDestination":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


def should_log_build_to_file(verbose: bool = False) -> bool:
    """Decide whether build output goes to a log file instead of the terminal."""
    if verbose:
        return False
    return os.environ.get(PRINT_BUILD_LOGS_ENV, "").strip().lower() not in {"1", "true", "yes", "on"}


def create_log_dir(project_dir: Path) -> Path:
    """Create (if needed) and return the log directory of a project."""
    log_dir = Path(project_dir) / LOG_DIR
    try:
        log_dir.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise LogSetupError(f"Failed to create log directory {log_dir}: {e}") from e
    return log_dir


def suffix_for_log(fuzz_tests: Sequence[str]) -> str:
    """
    Derive a filesystem-safe log file suffix from a list of fuzz tests.

    The suffix is a readable prefix followed by a digest of the ordered
    list, so the same list always maps to the same log file and different
    lists never share one.

    Example:
        suffix_for_log(["//src:parser_fuzzer"]) -> "src_parser_fuzzer-3f2a9c0d1e2b"
    """
    readable = "_".join(_UNSAFE_CHARS.sub("_", name).strip("_.") for name in fuzz_tests)
    readable = readable[:_MAX_READABLE_SUFFIX].strip("_.-") or "all"
    digest = hashlib.sha256("\0".join(fuzz_tests).encode("utf-8")).hexdigest()[:12]
    return f"{readable}-{digest}"


def _open_truncated(path: Path) -> IO[str]:
    try:
        return open(path, "w", encoding="utf-8", errors="replace")
    except OSError as e:
        raise LogSetupError(f"Failed to open log file {path}: {e}") from e


def setup_bundle_logging(
    project_dir: Path,
    fuzz_tests: Sequence[str],
    log_build_to_file: bool,
    terminal_stdout: Optional[IO[str]] = None,
    terminal_stderr: Optional[IO[str]] = None,
) -> LogDestination:
    """
    Open the log files of a bundle run and wire up the build writers.

    Args:
        project_dir: Project root directory
        fuzz_tests: Resolved fuzz tests (used to name the log files)
        log_build_to_file: Send build output to a log file instead of the terminal
        terminal_stdout: Terminal stdout (default: sys.stdout)
        terminal_stderr: Terminal stderr (default: sys.stderr)

    Returns:
        LogDestination with logging attached to the verbose log

    Raises:
        LogSetupError: If a log file cannot be created
    """
    log_dir = create_log_dir(project_dir)
    suffix = suffix_for_log(fuzz_tests)

    verbose_log_path = log_dir / f"bundle-{suffix}.log"
    verbose_log = _open_truncated(verbose_log_path)

    if log_build_to_file:
        build_log_path = log_dir / f"build-{suffix}.log"
        try:
            build_log = _open_truncated(build_log_path)
        except LogSetupError:
            verbose_log.close()
            raise
        stdout = TeeWriter([build_log, verbose_log])
        stderr = TeeWriter(stdout.sinks)
        destination = LogDestination(
            stdout, stderr, verbose_log, verbose_log_path, build_log, build_log_path
        )
    else:
        stdout = TeeWriter([terminal_stdout or sys.stdout, verbose_log])
        stderr = TeeWriter([terminal_stderr or sys.stderr, verbose_log])
        destination = LogDestination(stdout, stderr, verbose_log, verbose_log_path)

    destination.attach_logging()
    logger.debug(f"Verbose log: {verbose_log_path}")
    return destination


def msg_path_to_build_log(destination: LogDestination) -> str:
    """Message pointing the user to the build log of a run."""
    path = destination.build_log_path or destination.verbose_log_path
    return f"Details of the build can be found in the log file:\n    {path}"


def print_build_log_path(destination: LogDestination) -> None:
    """Print the location of the build log on stdout."""
    print(msg_path_to_build_log(destination))
