"""EasyEngine provider: toggle sites and run commands in a site's context."""
from __future__ import annotations

import subprocess
from collections.abc import Sequence
from dataclasses import dataclass


class EasyEngineError(RuntimeError):
    """Raised when an ``ee`` invocation fails."""


@dataclass(slots=True)
class EasyEngineProvider:
    """Drive the local ``ee`` binary."""

    ee_bin: str = "ee"

    def enable_site(self, domain: str) -> subprocess.CompletedProcess[str]:
        """Enable *domain* (starts its containers)."""
        return self._ee(["site", "enable", domain], error_prefix=f"ee site enable {domain}")

    def disable_site(self, domain: str) -> subprocess.CompletedProcess[str]:
        """Disable *domain*."""
        return self._ee(["site", "disable", domain], error_prefix=f"ee site disable {domain}")

    def run_in_site(self, domain: str, command: str) -> subprocess.CompletedProcess[str]:
        """Run *command* inside the site's PHP container and capture output.

        A non-zero exit is returned to the caller rather than raised.
        """
        return self._ee(
            ["shell", domain, f"--command={command}", "--skip-tty"],
            check=False,
            error_prefix=f"ee shell {domain} ({command})",
        )

    # ------------------------------------------------------------------
    def _ee(
        self,
        args: Sequence[str],
        *,
        check: bool = True,
        error_prefix: str,
    ) -> subprocess.CompletedProcess[str]:
        command = [self.ee_bin, *args]
        try:
            result = subprocess.run(  # noqa: S603, S607
                command,
                capture_output=True,
                text=True,
                check=False,
            )
        except FileNotFoundError as exc:
            raise EasyEngineError(f"{self.ee_bin} not found: {exc}") from exc
        if check and result.returncode != 0:
            stdout = getattr(result, "stdout", "") or ""
            stderr = getattr(result, "stderr", "") or ""
            message = stderr.strip() or stdout.strip() or "no output"
            raise EasyEngineError(f"{error_prefix} failed (exit {result.returncode}): {message}")
        return result


__all__ = ["EasyEngineError", "EasyEngineProvider"]
