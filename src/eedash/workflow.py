"""End-to-end registration run.

The run walks a fixed sequence of states::

    INIT -> PRECHECKED -> IDENTITY_RESOLVED -> SERVER_CHECKED
         -> SERVER_REGISTERED | SERVER_SKIPPED | SERVER_FAILED
         -> SITE_LOOP -> DONE

Only missing credentials, a failed precheck or an operator abort stop the run
(as :class:`~eedash.exit_codes.FatalError`). Server registration failures are
warnings and per-site failures are recorded without interrupting the loop.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from .config import AppConfig
from .dashboard import DashboardClient
from .exit_codes import ExitCode, FatalError
from .http import HttpClient
from .identity import IdentityResolver
from .interaction import Terminal
from .models import Credentials, HostIdentity, ServerRecord
from .prechecks import check_environment
from .providers.easyengine import EasyEngineError, EasyEngineProvider
from .providers.host import HostProvider
from .providers.inventory import InventoryError, SiteInventory
from .registration import ServerRegistrar, SitePayloadBuilder, SiteRegistrar


class WorkflowState(str, Enum):
    """Progress marker for a registration run."""

    INIT = "init"
    PRECHECKED = "prechecked"
    IDENTITY_RESOLVED = "identity_resolved"
    SERVER_CHECKED = "server_checked"
    SERVER_REGISTERED = "server_registered"
    SERVER_SKIPPED = "server_skipped"
    SERVER_FAILED = "server_failed"
    SITE_LOOP = "site_loop"
    DONE = "done"


@dataclass(slots=True)
class RegistrationSummary:
    """What a run did, for the operator and the operations log."""

    state: WorkflowState = WorkflowState.INIT
    identity: HostIdentity | None = None
    server_status: str | None = None
    registered: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, object]:
        """Return a JSON-serialisable representation."""
        return {
            "state": self.state.value,
            "ip": self.identity.ip if self.identity else None,
            "hostname": self.identity.hostname if self.identity else None,
            "server": self.server_status,
            "sites": {
                "registered": list(self.registered),
                "skipped": list(self.skipped),
                "failed": list(self.failed),
            },
        }


def build_credentials(api_key: str | None, organization: str | None) -> Credentials:
    """Return trimmed credentials or raise when either value is missing."""
    api_key = (api_key or "").strip()
    organization = (organization or "").strip()
    if not api_key:
        raise FatalError(
            "Please provide an EasyDash API key using the --api=<token:key> flag.",
            code=ExitCode.VALIDATION,
        )
    if not organization:
        raise FatalError(
            "Please provide an EasyDash organization name using the --org=<org-name> flag.",
            code=ExitCode.VALIDATION,
        )
    return Credentials(api_key=api_key, organization=organization)


class RegistrationWorkflow:
    """Sequence prechecks, identity, server and per-site registration."""

    def __init__(
        self,
        *,
        config: AppConfig,
        credentials: Credentials,
        terminal: Terminal,
        host: HostProvider,
        inventory: SiteInventory,
        easyengine: EasyEngineProvider,
        http: HttpClient,
    ) -> None:
        """Assemble the components for one run."""
        self.config = config
        self.credentials = credentials
        self.terminal = terminal
        self.host = host
        self.inventory = inventory
        self.easyengine = easyengine
        self.http = http
        self.dashboard = DashboardClient(
            config=config.dashboard,
            credentials=credentials,
            http=http,
            terminal=terminal,
        )
        self.identity = IdentityResolver(
            config=config.dashboard,
            http=http,
            host=host,
            terminal=terminal,
        )
        self.server_registrar = ServerRegistrar(
            dashboard=self.dashboard,
            host=host,
            config=config.host,
            terminal=terminal,
        )
        self.site_builder = SitePayloadBuilder(
            organization=credentials.organization,
            inventory=inventory,
            easyengine=easyengine,
            dashboard=self.dashboard,
            ee_config=config.easyengine,
            php_config=config.php,
            terminal=terminal,
        )
        self.site_registrar = SiteRegistrar(dashboard=self.dashboard, terminal=terminal)

    @classmethod
    def from_config(
        cls,
        config: AppConfig,
        credentials: Credentials,
        terminal: Terminal,
        *,
        http: HttpClient | None = None,
    ) -> RegistrationWorkflow:
        """Build a workflow backed by the real host providers."""
        return cls(
            config=config,
            credentials=credentials,
            terminal=terminal,
            host=HostProvider(
                hostnamectl_bin=config.host.hostnamectl_bin,
                lsb_release_bin=config.host.lsb_release_bin,
            ),
            inventory=SiteInventory(config.easyengine.db_path),
            easyengine=EasyEngineProvider(ee_bin=config.easyengine.ee_bin),
            http=http or HttpClient(timeout=config.dashboard.request_timeout),
        )

    def run(self, ip_flag: str = "", hostname_flag: str = "") -> RegistrationSummary:
        """Execute one registration pass and return its summary."""
        summary = RegistrationSummary()

        release = check_environment(self.host, self.config.host)
        summary.state = WorkflowState.PRECHECKED
        self.terminal.debug(f"Detected {release.family} {release.version}.")

        identity = self.identity.resolve(ip_flag, hostname_flag)
        summary.identity = identity
        summary.state = WorkflowState.IDENTITY_RESOLVED

        self.sync_server(identity, summary)
        self.sync_sites(identity.hostname, summary)

        summary.state = WorkflowState.DONE
        return summary

    def sync_server(self, identity: HostIdentity, summary: RegistrationSummary) -> None:
        """Register the server unless the dashboard already knows its IP."""
        exists = self.dashboard.server_exists(identity.ip)
        summary.state = WorkflowState.SERVER_CHECKED
        if exists:
            self.terminal.log(
                f"Server with IP {identity.ip} already exists on EasyDash. "
                "Skipping server addition."
            )
            summary.server_status = "exists"
            summary.state = WorkflowState.SERVER_SKIPPED
            return

        server = ServerRecord(
            hostname=identity.hostname,
            public_ipv4=identity.ip,
            organization=self.credentials.organization,
        )
        if self.server_registrar.register(server):
            summary.server_status = "registered"
            summary.state = WorkflowState.SERVER_REGISTERED
        else:
            summary.server_status = "failed"
            summary.state = WorkflowState.SERVER_FAILED

    def sync_sites(self, hostname: str, summary: RegistrationSummary) -> None:
        """Build and submit a record for every local site."""
        summary.state = WorkflowState.SITE_LOOP
        try:
            sites = self.inventory.list_sites()
        except InventoryError as exc:
            self.terminal.error(f"Could not list EasyEngine sites: {exc}")
            return

        for site in sites:
            try:
                record = self.site_builder.build(site, hostname)
            except (EasyEngineError, InventoryError, OSError) as exc:
                self.terminal.error(f"Failed to process site {site.domain}: {exc}")
                summary.failed.append(site.domain)
                continue

            if record is None:
                summary.skipped.append(site.domain)
                continue

            if self.site_registrar.register(record):
                summary.registered.append(site.domain)
            else:
                summary.failed.append(site.domain)


__all__ = [
    "RegistrationSummary",
    "RegistrationWorkflow",
    "WorkflowState",
    "build_credentials",
]
