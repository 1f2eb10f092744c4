"""Records exchanged with the dashboard and read from the local host."""
from __future__ import annotations

from dataclasses import asdict, dataclass
from pathlib import Path


def redact_secret(value: str) -> str:
    """Return *value* with everything but its edges masked."""
    if not value:
        return ""
    if len(value) <= 8:
        if len(value) <= 2:
            return "*" * len(value)
        return f"{value[0]}{'*' * (len(value) - 2)}{value[-1]}"
    return f"{value[:4]}...{value[-4:]}"


@dataclass(frozen=True, slots=True)
class Credentials:
    """Operator-supplied API key and organization; never persisted."""

    api_key: str
    organization: str

    def headers(self) -> dict[str, str]:
        """Return the headers sent with every dashboard call."""
        return {"Token": self.api_key, "Content-Type": "application/json"}

    def to_log(self) -> dict[str, object]:
        """Return a log-safe representation."""
        return {"api_key": redact_secret(self.api_key), "organization": self.organization}


@dataclass(frozen=True, slots=True)
class HostIdentity:
    """Public address and FQDN hostname the server registers under."""

    ip: str
    hostname: str


@dataclass(frozen=True, slots=True)
class ServerRecord:
    """Server entry pushed to ``add_server``."""

    hostname: str
    public_ipv4: str
    organization: str

    def to_payload(self) -> dict[str, object]:
        """Return the JSON body for the dashboard."""
        return asdict(self)


@dataclass(frozen=True, slots=True)
class SiteRecord:
    """Site entry pushed to ``add_site``."""

    domain: str
    server: str
    site_type: str
    organization: str
    enabled: bool
    alias_domains: str
    ssl: bool
    http_basic_auth: bool
    admin_tools: object
    mailhog: object
    php_version: str
    public_directory: str
    enable_database: bool
    redis_cache: object
    multisite: int | str
    table_prefix: str

    def to_payload(self) -> dict[str, object]:
        """Return the JSON body for the dashboard."""
        return asdict(self)


@dataclass(slots=True)
class LocalSite:
    """One site as recorded in the EasyEngine inventory."""

    domain: str
    site_type: str
    enabled: bool
    fs_path: Path
    container_fs_path: str = ""
    app_sub_type: str = ""
    ssl: bool = False
    php_version: str = ""
    alias_domains: str = ""
    admin_tools: object = None
    mailhog: object = None
    db_name: str = ""
    cache_nginx_fullpage: object = None


__all__ = [
    "Credentials",
    "HostIdentity",
    "LocalSite",
    "ServerRecord",
    "SiteRecord",
    "redact_secret",
]
