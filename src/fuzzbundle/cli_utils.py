"""CLI utility functions for fuzzbundle.

This module provides common utilities used across CLI commands including:
- Error handling and formatting
- Progress spinner for long running builds
- Splitting off build tool arguments after "--"
"""

import itertools
import sys
import threading
from pathlib import Path
from typing import IO, List, Optional, Sequence, Tuple


def split_passthrough_args(argv: Sequence[str]) -> Tuple[List[str], List[str]]:
    """Split command-line arguments at the first "--".

    Args:
        argv: Command-line arguments without the program name

    Returns:
        Tuple of (arguments before "--", arguments after "--")
    """
    argv = list(argv)
    if "--" not in argv:
        return argv, []
    index = argv.index("--")
    return argv[:index], argv[index + 1:]


class ErrorFormatter:
    """Formats and displays error messages with ANSI color codes."""

    # ANSI color codes
    RED = "\033[1;31m"
    GREEN = "\033[1;32m"
    YELLOW = "\033[1;33m"
    RESET = "\033[0m"

    @staticmethod
    def print_error(title: str, message: str) -> None:
        """Print formatted error message.

        Args:
            title: Error title (e.g., "Invalid configuration", "Bundle failed")
            message: Error message details
        """
        print()
        print(f"{ErrorFormatter.RED}✗ {title}{ErrorFormatter.RESET}")
        print()
        print(message)
        print()

    @staticmethod
    def print_success(message: str) -> None:
        """Print formatted success message."""
        print()
        print(f"{ErrorFormatter.GREEN}✓ {message}{ErrorFormatter.RESET}")

    @staticmethod
    def print_warning(message: str) -> None:
        """Print formatted warning message."""
        print()
        print(f"{ErrorFormatter.YELLOW}! {message}{ErrorFormatter.RESET}")

    @staticmethod
    def handle_keyboard_interrupt() -> None:
        """Handle KeyboardInterrupt with standard formatting."""
        ErrorFormatter.print_warning("Interrupted")
        sys.exit(130)  # Standard exit code for SIGINT

    @staticmethod
    def handle_unexpected_error(error: Exception, verbose: bool = False) -> None:
        """Handle unexpected errors with standard formatting.

        Args:
            error: The exception to handle
            verbose: Whether to print traceback
        """
        message = f"{type(error).__name__}: {error}"
        ErrorFormatter.print_error("Unexpected error", message)

        if verbose:
            import traceback

            print("Traceback:")
            print("".join(traceback.format_exception(type(error), error, error.__traceback__)))
        else:
            print("Run with --verbose for more details.")

        sys.exit(1)


class ProgressSpinner:
    """Animated one-line progress indicator shown while a build runs.

    On a terminal the message is prefixed with a spinning character that
    is redrawn from a background thread. Anywhere else the message is
    printed once, so redirected output stays readable.

    Usage:
        spinner = ProgressSpinner("Building...")
        spinner.start()
        ...
        spinner.stop(success=True, message="Build finished")
    """

    FRAMES = "⠋⠙⠹⠸⠼⠴⠦⠧⠇⠏"
    INTERVAL = 0.1

    def __init__(self, message: str, stream: Optional[IO[str]] = None):
        self.message = message
        self.stream = stream
        self.running = False
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def _out(self) -> IO[str]:
        # Looked up late so that redirected/captured stdout is honored
        return self.stream or sys.stdout

    def _is_tty(self) -> bool:
        isatty = getattr(self._out, "isatty", None)
        return bool(isatty and isatty())

    def start(self) -> None:
        """Show the spinner."""
        if self.running:
            return
        self.running = True
        if not self._is_tty():
            print(self.message, file=self._out, flush=True)
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._spin, daemon=True)
        self._thread.start()

    def _spin(self) -> None:
        for frame in itertools.cycle(self.FRAMES):
            self._out.write(f"\r{frame} {self.message}")
            self._out.flush()
            if self._stop_event.wait(self.INTERVAL):
                break

    def stop(self, success: bool, message: Optional[str] = None) -> None:
        """Replace the spinner with a success or error line."""
        if not self.running:
            return
        self.running = False
        if self._thread is not None:
            self._stop_event.set()
            self._thread.join()
            self._thread = None
            self._out.write("\r\033[K")

        color = ErrorFormatter.GREEN if success else ErrorFormatter.RED
        symbol = "✓" if success else "✗"
        print(f"{color}{symbol} {message or self.message}{ErrorFormatter.RESET}", file=self._out, flush=True)


class PathValidator:
    """Validates project paths and directories."""

    @staticmethod
    def validate_project_dir(project_dir: Path) -> None:
        """Validate that project directory exists and is a directory.

        Args:
            project_dir: Path to validate

        Raises:
            SystemExit: If path doesn't exist or isn't a directory
        """
        if not project_dir.exists():
            print(f"{ErrorFormatter.RED}✗ Error: Path does not exist: {project_dir}{ErrorFormatter.RESET}")
            sys.exit(2)
        if not project_dir.is_dir():
            print(f"{ErrorFormatter.RED}✗ Error: Path is not a directory: {project_dir}{ErrorFormatter.RESET}")
            sys.exit(2)
