"""Result of handing a request to the bundler."""

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional


class OutcomeKind(Enum):
    SUCCESS = "success"
    EXPECTED_FAILURE = "expected_failure"
    UNEXPECTED_FAILURE = "unexpected_failure"


@dataclass(frozen=True)
class ExecutionOutcome:
    """Tagged result of a bundler call.

    Expected failures are caused by the user's project or environment (a
    failing build command, a missing executable) and are reported without
    a traceback. Unexpected failures are internal errors.
    """

    kind: OutcomeKind
    archive_path: Optional[Path] = None
    cause: Optional[BaseException] = None

    def __post_init__(self):
        if self.kind is not OutcomeKind.SUCCESS and self.cause is None:
            raise ValueError(f"An outcome of kind '{self.kind.value}' requires a cause")

    @classmethod
    def success(cls, archive_path: Path) -> "ExecutionOutcome":
        return cls(OutcomeKind.SUCCESS, archive_path=Path(archive_path))

    @classmethod
    def expected_failure(cls, cause: BaseException) -> "ExecutionOutcome":
        return cls(OutcomeKind.EXPECTED_FAILURE, cause=cause)

    @classmethod
    def unexpected_failure(cls, cause: BaseException) -> "ExecutionOutcome":
        return cls(OutcomeKind.UNEXPECTED_FAILURE, cause=cause)

    @property
    def ok(self) -> bool:
        return self.kind is OutcomeKind.SUCCESS
