"""Exit codes and the fatal error type that carries them."""
from __future__ import annotations

from enum import IntEnum


class ExitCode(IntEnum):
    """Well-known exit codes enforced across the CLI."""

    OK = 0
    VALIDATION = 2
    ENVIRONMENT = 3


class FatalError(RuntimeError):
    """Raised when the run cannot continue; the CLI exits with :attr:`code`."""

    def __init__(self, message: str, *, code: ExitCode = ExitCode.VALIDATION) -> None:
        """Store *message* and the exit *code* used when terminating."""
        super().__init__(message)
        self.code = code


__all__ = ["ExitCode", "FatalError"]
