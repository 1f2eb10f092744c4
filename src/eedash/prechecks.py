"""Environment eligibility checks run before any network work."""
from __future__ import annotations

from typing import Protocol

from packaging.version import InvalidVersion, Version

from .config import HostConfig
from .exit_codes import ExitCode, FatalError
from .providers.host import HostError, OSRelease


class PrecheckError(FatalError):
    """Raised when the host is not eligible for dashboard registration."""

    def __init__(self, message: str) -> None:
        """Precheck failures always map to the environment exit code."""
        super().__init__(message, code=ExitCode.ENVIRONMENT)


class ReleaseSourceProtocol(Protocol):
    """Anything that can report the OS release (the host provider in practice)."""

    def os_release(self) -> OSRelease:
        """Return the detected release."""
        ...


def check_environment(host: ReleaseSourceProtocol, config: HostConfig) -> OSRelease:
    """Return the host's release if it is a supported OS family and version."""
    try:
        release = host.os_release()
    except HostError as exc:
        raise PrecheckError(f"Could not detect the operating system: {exc}") from exc

    supported = {family.lower(): minimum for family, minimum in config.supported_os.items()}
    family = release.family.strip().lower()
    minimum = supported.get(family)
    names = ", ".join(sorted(name.capitalize() for name in supported))
    if minimum is None:
        raise PrecheckError(
            f"EasyDash integration is only supported on {names}; found {release.family}."
        )

    try:
        current = Version(release.version)
    except InvalidVersion as exc:
        raise PrecheckError(
            f"Unrecognised {release.family} release version {release.version!r}."
        ) from exc
    if current < Version(minimum):
        raise PrecheckError(
            f"EasyDash integration is only supported on {release.family.capitalize()} "
            f"{minimum} or later; found {release.version}."
        )
    return release


__all__ = ["PrecheckError", "check_environment"]
