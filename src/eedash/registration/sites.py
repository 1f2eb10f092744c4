"""Site payload construction and registration.

Inspecting a site (reading its WordPress table prefix or its PHP runtime
version) runs commands inside the site's containers, which only exist while
the site is enabled. A disabled site is therefore enabled while it is
inspected and disabled again afterwards.
"""
from __future__ import annotations

import re
from collections.abc import Iterator
from contextlib import contextmanager

from packaging.version import InvalidVersion, Version

from ..config import EasyEngineConfig, PHPConfig
from ..dashboard import DashboardClient
from ..interaction import Terminal
from ..models import LocalSite, SiteRecord
from ..providers.easyengine import EasyEngineError, EasyEngineProvider
from ..providers.inventory import SiteInventory

STATIC_SITE_TYPE = "html"
WORDPRESS_SITE_TYPE = "wp"
LATEST_PHP_MARKER = "latest"
BASELINE_SUB_TYPES = frozenset({"wp", "php", "html", ""})

_PHP_VERSION_RE = re.compile(r"PHP (\d+\.\d+)")


def normalize_alias_domains(aliases: str, domain: str) -> str:
    """Return *aliases* trimmed, without *domain* itself, comma-joined."""
    parts = (part.strip() for part in aliases.split(","))
    return ",".join(part for part in parts if part and part != domain)


def public_directory(container_fs_path: str, container_root: str) -> str:
    """Return the document root relative to the container web root."""
    return container_fs_path.removeprefix(container_root).lstrip("/")


def multisite_value(app_sub_type: str) -> int | str:
    """Return ``0`` for single-site subtypes, else the raw subtype."""
    value = app_sub_type.strip()
    if value in BASELINE_SUB_TYPES:
        return 0
    return value


def parse_php_version(output: str) -> str | None:
    """Extract ``major.minor`` from ``php -v`` output."""
    match = _PHP_VERSION_RE.search(output)
    return match.group(1) if match else None


def php_version_supported(php_version: str, minimum: str) -> bool:
    """Return ``True`` when *php_version* is at least *minimum*."""
    try:
        return Version(php_version) >= Version(minimum)
    except InvalidVersion:
        return False


class SitePayloadBuilder:
    """Derive a :class:`SiteRecord` for a local site, or decide to skip it."""

    def __init__(
        self,
        *,
        organization: str,
        inventory: SiteInventory,
        easyengine: EasyEngineProvider,
        dashboard: DashboardClient,
        ee_config: EasyEngineConfig,
        php_config: PHPConfig,
        terminal: Terminal,
    ) -> None:
        """Wire the builder to its collaborators."""
        self.organization = organization
        self.inventory = inventory
        self.easyengine = easyengine
        self.dashboard = dashboard
        self.ee_config = ee_config
        self.php_config = php_config
        self.terminal = terminal

    @contextmanager
    def enabled_for_inspection(self, site: LocalSite) -> Iterator[None]:
        """Keep *site* enabled while it is inspected; restore a disabled site afterwards.

        The site is disabled again only when enabling it succeeded. A failed
        restore is reported as an error; it is raised unless another exception
        is already propagating out of the block.
        """
        if site.enabled:
            yield
            return
        self.terminal.debug(f"Temporarily enabling {site.domain} to inspect it.")
        self.easyengine.enable_site(site.domain)
        try:
            yield
        except BaseException:
            self._disable_again(site.domain, reraise=False)
            raise
        self._disable_again(site.domain, reraise=True)

    def _disable_again(self, domain: str, *, reraise: bool) -> None:
        try:
            self.easyengine.disable_site(domain)
        except EasyEngineError as exc:
            self.terminal.error(f"Could not disable {domain} again; it was left enabled: {exc}")
            if reraise:
                raise

    def build(self, site: LocalSite, hostname: str) -> SiteRecord | None:
        """Return the record to submit for *site*, or ``None`` to skip it."""
        domain = site.domain
        with self.enabled_for_inspection(site):
            info = self.inventory.lookup(domain)
            if info is None:
                self.terminal.warning(f"Could not retrieve site information for: {domain}.")
                return None

            descriptor = info.fs_path / self.ee_config.compose_file
            if not descriptor.exists():
                self.terminal.warning(
                    f"{self.ee_config.compose_file} file not found for site: {domain}. Skipping."
                )
                return None

            if self.dashboard.site_exists(domain):
                self.terminal.log(
                    f"Site {domain} already exists on EasyDash. Skipping site addition."
                )
                return None

            table_prefix = self.read_table_prefix(info)
            php_version = self.resolve_php_version(info)

        record = SiteRecord(
            domain=domain,
            server=hostname,
            site_type=info.site_type,
            organization=self.organization,
            enabled=site.enabled,
            alias_domains=normalize_alias_domains(info.alias_domains, domain),
            ssl=info.ssl,
            http_basic_auth=self.inventory.has_auth(domain),
            admin_tools=info.admin_tools,
            mailhog=info.mailhog,
            php_version=php_version,
            public_directory=public_directory(
                info.container_fs_path, self.ee_config.container_root
            ),
            enable_database=bool(info.db_name),
            redis_cache=info.cache_nginx_fullpage,
            multisite=multisite_value(info.app_sub_type),
            table_prefix=table_prefix,
        )
        self.terminal.debug(f"Site data: {record.to_payload()}")

        minimum = self.php_config.min_version
        if record.site_type != STATIC_SITE_TYPE and not php_version_supported(
            record.php_version, minimum
        ):
            self.terminal.warning(
                f"Skipping site {domain} integration with EasyDash as PHP version "
                f"{record.php_version or 'unknown'} is less than {minimum}."
            )
            return None
        return record

    def read_table_prefix(self, site: LocalSite) -> str:
        """Return the WordPress table prefix; empty for other site types."""
        if site.site_type != WORDPRESS_SITE_TYPE:
            return ""
        result = self.easyengine.run_in_site(site.domain, "wp config get table_prefix")
        if result.returncode != 0:
            self.terminal.warning(f"Could not read the table prefix for {site.domain}.")
            return ""
        return (result.stdout or "").strip()

    def resolve_php_version(self, site: LocalSite) -> str:
        """Return the site's PHP ``major.minor``, asking the container when recorded as latest."""
        if site.php_version != LATEST_PHP_MARKER:
            return site.php_version
        result = self.easyengine.run_in_site(site.domain, "php -v")
        version = parse_php_version(result.stdout or "")
        if version is None:
            default = self.php_config.default_version
            self.terminal.debug(
                f"Could not determine PHP version for site {site.domain}. "
                f"Using default version {default}."
            )
            return default
        return version


class SiteRegistrar:
    """Submit site records; failures are per-site errors."""

    def __init__(self, *, dashboard: DashboardClient, terminal: Terminal) -> None:
        """Wire the registrar to the dashboard client."""
        self.dashboard = dashboard
        self.terminal = terminal

    def register(self, site: SiteRecord) -> bool:
        """Submit *site*; return ``True`` on success."""
        response = self.dashboard.add_site(site)
        if response.success:
            self.terminal.success(f"Site {site.domain} integrated with EasyDash successfully.")
            return True
        if response.transport_failed:
            self.terminal.error(
                f"Error connecting to EasyDash API for site {site.domain}: {response.error}"
            )
        else:
            self.terminal.error(
                f"Failed to integrate site {site.domain} with EasyDash. "
                f"Response: {response.body}"
            )
        return False


__all__ = [
    "SitePayloadBuilder",
    "SiteRegistrar",
    "multisite_value",
    "normalize_alias_domains",
    "parse_php_version",
    "php_version_supported",
    "public_directory",
]
