"""Resolve the public IPv4 address and FQDN hostname the server registers under.

Resolution may change the host: when the operator has to type a hostname, it
is applied with ``hostnamectl set-hostname`` and is not reverted afterwards.
"""
from __future__ import annotations

import ipaddress
import re

from .config import DashboardConfig
from .exit_codes import ExitCode, FatalError
from .http import HttpClient
from .interaction import Terminal
from .models import HostIdentity
from .providers.host import HostError, HostProvider

_LABEL_RE = re.compile(r"^[a-z0-9](?:[a-z0-9-]{0,61}[a-z0-9])?$", re.IGNORECASE)

IP_PROMPT = "Please enter the public IP address of the server"
HOSTNAME_PROMPT = "Please enter the FQDN hostname of the server"


def is_valid_ipv4(value: str) -> bool:
    """Return ``True`` for a dotted-quad IPv4 address."""
    try:
        ipaddress.IPv4Address(value.strip())
    except ValueError:
        return False
    return True


def is_valid_fqdn(value: str) -> bool:
    """Return ``True`` when *value* is shaped like a fully-qualified hostname.

    Only syntax is checked; DNS resolvability is not.
    """
    candidate = value.strip()
    if candidate.endswith("."):
        candidate = candidate[:-1]
    if not candidate or len(candidate) > 253:
        return False
    labels = candidate.split(".")
    if len(labels) < 2:
        return False
    return all(_LABEL_RE.match(label) for label in labels)


class IdentityResolver:
    """Determine ``(ip, hostname)`` from flags, auto-detection and the operator."""

    def __init__(
        self,
        *,
        config: DashboardConfig,
        http: HttpClient,
        host: HostProvider,
        terminal: Terminal,
    ) -> None:
        """Wire the resolver to its collaborators."""
        self.config = config
        self.http = http
        self.host = host
        self.terminal = terminal

    def resolve(self, ip_flag: str = "", hostname_flag: str = "") -> HostIdentity:
        """Return the resolved identity; may set the machine hostname."""
        ip = self.resolve_ip(ip_flag)
        hostname = self.resolve_hostname(hostname_flag)
        return HostIdentity(ip=ip, hostname=hostname)

    def resolve_ip(self, ip_flag: str = "") -> str:
        """Return the public IPv4 from the flag, the IP service, or a prompt."""
        candidate = ip_flag.strip()
        if candidate:
            if not is_valid_ipv4(candidate):
                raise FatalError(
                    f"Invalid IPv4 address supplied with --ip: {candidate}",
                    code=ExitCode.VALIDATION,
                )
            return candidate

        detected = self.fetch_external_ip()
        if detected is not None:
            return detected

        return self.terminal.prompt_until(
            IP_PROMPT,
            is_valid_ipv4,
            invalid_message="Invalid IP address. Please enter a valid IPv4 address.",
        )

    def fetch_external_ip(self) -> str | None:
        """Ask the external IP service for our address; ``None`` on any failure."""
        url = self.config.ip_service_url
        response = self.http.request("GET", url, timeout=self.config.ip_timeout)
        if response.transport_failed:
            self.terminal.warning(f"Error retrieving external IP address: {response.error}")
            return None
        if not response.success:
            self.terminal.warning(
                f"Failed to retrieve external IP address from {url}. "
                f"Status code: {response.status_code} Body: {response.body}"
            )
            return None
        ip = response.body.strip()
        if not is_valid_ipv4(ip):
            self.terminal.warning(f"Invalid IP address received from {url}: {ip}")
            return None
        self.terminal.debug(f"Detected public IP {ip} via {url}.")
        return ip

    def resolve_hostname(self, hostname_flag: str = "") -> str:
        """Return an accepted FQDN, prompting (and applying it) when needed."""
        candidate = hostname_flag.strip()
        if candidate:
            if is_valid_fqdn(candidate):
                return candidate
            self.terminal.warning(f"Ignoring invalid --hostname value: {candidate}")

        current = self.host.get_hostname().strip()
        if is_valid_fqdn(current) and self.terminal.confirm(f"Is the hostname {current} correct?"):
            return current

        hostname = self.terminal.prompt_until(
            HOSTNAME_PROMPT,
            is_valid_fqdn,
            invalid_message="Invalid hostname. Please enter a valid FQDN hostname.",
        )
        try:
            self.host.set_hostname(hostname)
        except HostError as exc:
            self.terminal.warning(f"Could not apply hostname {hostname} to this server: {exc}")
        else:
            self.terminal.log(f"Hostname set to {hostname}.")
        return hostname


__all__ = ["IdentityResolver", "is_valid_fqdn", "is_valid_ipv4"]
