"""Host platform checks for the bundle command.

Creating a bundle works everywhere, but bundles of native fuzz tests can
only be executed on Linux, so anything else is rejected before any build
work starts. JVM bundles are platform independent.
"""

import platform
from typing import Optional

from ..config.build_system import (
    BuildSystemKind,
    allow_unsupported_platforms,
    not_supported_error_message,
)
from ..errors import UnsupportedPlatformError

SUPPORTED_HOST_OS = "linux"


def host_os() -> str:
    """Name of the host operating system ("linux", "darwin", "windows", ...)."""
    return platform.system().lower()


class PlatformSupportPolicy:
    """Decides whether a bundle can be created on the host."""

    @staticmethod
    def is_allowed(kind: BuildSystemKind, os_name: str, allow_override: bool) -> bool:
        if kind.is_jvm:
            return True
        return os_name == SUPPORTED_HOST_OS or allow_override

    @classmethod
    def check(
        cls,
        kind: BuildSystemKind,
        os_name: Optional[str] = None,
        allow_override: Optional[bool] = None,
        command: str = "bundle",
    ) -> None:
        """
        Fail if the build system cannot be bundled on this host.

        Args:
            kind: Build system of the project
            os_name: Host OS (default: detected)
            allow_override: Allow unsupported platforms (default: from environment)
            command: Command name used in the error message

        Raises:
            UnsupportedPlatformError: If the combination is not supported
        """
        os_name = os_name or host_os()
        if allow_override is None:
            allow_override = allow_unsupported_platforms()
        if not cls.is_allowed(kind, os_name, allow_override):
            raise UnsupportedPlatformError(not_supported_error_message(command, os_name))
