"""Server registration."""
from __future__ import annotations

from ..config import HostConfig
from ..dashboard import DashboardClient
from ..interaction import Terminal
from ..models import ServerRecord
from ..providers.host import HostError, HostProvider


class ServerRegistrar:
    """Grant automation SSH access and submit the server record."""

    def __init__(
        self,
        *,
        dashboard: DashboardClient,
        host: HostProvider,
        config: HostConfig,
        terminal: Terminal,
    ) -> None:
        """Wire the registrar to its collaborators."""
        self.dashboard = dashboard
        self.host = host
        self.config = config
        self.terminal = terminal

    def ensure_automation_key(self) -> None:
        """Add the automation public key to ``authorized_keys`` if missing."""
        path = self.config.authorized_keys
        try:
            changed = self.host.ensure_authorized_key(path, self.config.automation_key)
        except HostError as exc:
            self.terminal.warning(f"Could not install the EasyDash SSH key: {exc}")
            return
        if changed:
            self.terminal.log(f"Added the EasyDash automation key to {path}.")
        else:
            self.terminal.debug(f"EasyDash automation key already present in {path}.")

    def register(self, server: ServerRecord) -> bool:
        """Submit *server*; failures are warnings and return ``False``."""
        self.ensure_automation_key()
        response = self.dashboard.add_server(server)
        if response.success:
            self.terminal.success(
                "Server integrated with EasyDash successfully. "
                "Please wait for sometime for site data to populate on EasyDash."
            )
            return True
        if response.transport_failed:
            self.terminal.warning(f"Error connecting to EasyDash API: {response.error}")
        else:
            self.terminal.warning(
                f"Failed to integrate server with EasyDash. Response: {response.body}"
            )
            self.terminal.warning(f"Status code: {response.status_code}")
        return False


__all__ = ["ServerRegistrar"]
