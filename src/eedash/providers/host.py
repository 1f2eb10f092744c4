"""Host provider: OS identity, hostname and SSH authorized keys."""
from __future__ import annotations

import os
import platform
import socket
import subprocess
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path


class HostError(RuntimeError):
    """Raised when a host-level query or mutation fails."""


@dataclass(frozen=True, slots=True)
class OSRelease:
    """Distribution family and version string."""

    family: str
    version: str


@dataclass(slots=True)
class HostProvider:
    """Read and mutate host-level state."""

    hostnamectl_bin: str = "hostnamectl"
    lsb_release_bin: str = "lsb_release"

    def get_hostname(self) -> str:
        """Return the machine's current hostname."""
        return socket.gethostname()

    def set_hostname(self, hostname: str) -> None:
        """Apply *hostname* to the machine (persistent, not reverted)."""
        self._run([self.hostnamectl_bin, "set-hostname", hostname])

    def os_release(self) -> OSRelease:
        """Return the distribution family and version.

        ``/etc/os-release`` is preferred; ``lsb_release`` is the fallback for
        hosts without it.
        """
        try:
            info = platform.freedesktop_os_release()
        except OSError:
            info = {}
        family = info.get("ID") or info.get("NAME") or ""
        version = info.get("VERSION_ID") or ""
        if family and version:
            return OSRelease(family=family.strip(), version=version.strip())

        distributor = self._run([self.lsb_release_bin, "-is"]).stdout.strip()
        release = self._run([self.lsb_release_bin, "-rs"]).stdout.strip()
        if not distributor or not release:
            raise HostError("Unable to determine the operating system release.")
        return OSRelease(family=distributor, version=release)

    def ensure_authorized_key(self, path: Path, key: str) -> bool:
        """Append *key* to *path* unless a line already contains it.

        Returns ``True`` when the file was changed.
        """
        key = key.strip()
        try:
            if path.exists():
                content = path.read_text(encoding="utf-8")
                if any(key in line for line in content.splitlines()):
                    return False
                prefix = "" if not content or content.endswith("\n") else "\n"
            else:
                path.parent.mkdir(mode=0o700, parents=True, exist_ok=True)
                prefix = ""
            with path.open("a", encoding="utf-8") as handle:
                handle.write(f"{prefix}{key}\n")
            os.chmod(path, 0o600)
        except OSError as exc:
            raise HostError(f"Failed to update {path}: {exc}") from exc
        return True

    # ------------------------------------------------------------------
    def _run(self, args: Sequence[str]) -> subprocess.CompletedProcess[str]:
        try:
            result = subprocess.run(  # noqa: S603, S607
                list(args),
                capture_output=True,
                text=True,
                check=False,
            )
        except FileNotFoundError as exc:
            raise HostError(f"{args[0]} not found: {exc}") from exc
        if result.returncode != 0:
            message = (result.stderr or "").strip() or (result.stdout or "").strip() or "no output"
            joined = " ".join(args)
            raise HostError(f"{joined} failed (exit {result.returncode}): {message}")
        return result


__all__ = ["HostError", "HostProvider", "OSRelease"]
