"""Configuration loader for eedash.

Values are merged from several sources, later ones winning:

1. Built-in defaults.
2. ``/etc/eedash/config.yml`` (or an override path).
3. Environment variables prefixed with ``EEDASH_``.
4. Explicit overrides supplied programmatically (reserved for CLI flags).

Environment keys use double underscores to express nesting, e.g.::

    export EEDASH_DASHBOARD__API_URL=https://dash.example.test/api/method/
    export EEDASH_PHP__MIN_VERSION=8.2

Values are coerced via PyYAML's ``safe_load`` so that booleans and numbers are
parsed naturally; version settings are kept as text. The resulting
configuration is exposed as immutable ``dataclasses`` and handed to each
component explicitly.
"""
from __future__ import annotations

import os
from collections.abc import Mapping, MutableMapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import cast

import yaml
from packaging.version import InvalidVersion, Version

ENV_PREFIX = "EEDASH_"
CONFIG_ENV_VAR = f"{ENV_PREFIX}CONFIG_FILE"
RESERVED_ENV_KEYS = {CONFIG_ENV_VAR}

DEFAULT_API_URL = "https://dash.easyengine.io/api/method/"
AUTOMATION_KEY = (
    "ssh-ed25519 AAAAC3NzaC1lZDI1NTE5AAAAILbESQqRcGdwnn/u1BkDCD9rDiFqgDhTHBHIIasaDpWV"
    " EasyEngine"
)


class ConfigError(RuntimeError):
    """Raised when configuration parsing fails."""


@dataclass(frozen=True)
class DashboardConfig:
    """Where the EasyDash API lives and how long to wait for it."""

    api_url: str = DEFAULT_API_URL
    request_timeout: float = 30.0
    ip_service_url: str = "https://api.ipify.org"
    ip_timeout: float = 15.0

    def endpoint(self, method: str) -> str:
        """Return the full URL for an API *method* name."""
        return f"{self.api_url}{method}"


@dataclass(frozen=True)
class EasyEngineConfig:
    """Paths and binaries of the local EasyEngine installation."""

    ee_bin: str = "ee"
    db_path: Path = Path("/opt/easyengine/db/ee.sqlite")
    container_root: str = "/var/www/htdocs"
    compose_file: str = "docker-compose.yml"


@dataclass(frozen=True)
class PHPConfig:
    """PHP version policy for site registration."""

    min_version: str = "8.1"
    default_version: str = "8.2"


@dataclass(frozen=True)
class HostConfig:
    """Host-level settings: supported OS releases, SSH access, binaries."""

    authorized_keys: Path = Path("/root/.ssh/authorized_keys")
    automation_key: str = AUTOMATION_KEY
    hostnamectl_bin: str = "hostnamectl"
    lsb_release_bin: str = "lsb_release"
    supported_os: Mapping[str, str] = field(
        default_factory=lambda: {"ubuntu": "22.04", "debian": "12"}
    )


@dataclass(frozen=True)
class AppConfig:
    """Resolved configuration values for eedash."""

    config_file: Path
    logs_dir: Path
    dashboard: DashboardConfig
    easyengine: EasyEngineConfig
    php: PHPConfig
    host: HostConfig


DEFAULTS: dict[str, object] = {
    "config_file": "/etc/eedash/config.yml",
    "logs_dir": "/var/log/eedash",
    "dashboard": {
        "api_url": DEFAULT_API_URL,
        "request_timeout": 30.0,
        "ip_service_url": "https://api.ipify.org",
        "ip_timeout": 15.0,
    },
    "easyengine": {
        "ee_bin": "ee",
        "db_path": "/opt/easyengine/db/ee.sqlite",
        "container_root": "/var/www/htdocs",
        "compose_file": "docker-compose.yml",
    },
    "php": {
        "min_version": "8.1",
        "default_version": "8.2",
    },
    "host": {
        "authorized_keys": "/root/.ssh/authorized_keys",
        "automation_key": AUTOMATION_KEY,
        "hostnamectl_bin": "hostnamectl",
        "lsb_release_bin": "lsb_release",
        "supported_os": {"ubuntu": "22.04", "debian": "12"},
    },
}

ALLOWED_SECTION_KEYS: dict[str, set[str]] = {
    "dashboard": {"api_url", "request_timeout", "ip_service_url", "ip_timeout"},
    "easyengine": {"ee_bin", "db_path", "container_root", "compose_file"},
    "php": {"min_version", "default_version"},
    "host": {
        "authorized_keys",
        "automation_key",
        "hostnamectl_bin",
        "lsb_release_bin",
        "supported_os",
    },
}
ALLOWED_TOP_LEVEL_KEYS = set(DEFAULTS.keys())


def load_config(
    config_file: str | os.PathLike[str] | None = None,
    *,
    env: Mapping[str, str] | None = None,
    overrides: Mapping[str, object] | None = None,
) -> AppConfig:
    """Load and merge configuration sources into an :class:`AppConfig`."""
    merged: dict[str, object] = _deep_copy(DEFAULTS)
    resolved_env = dict(os.environ if env is None else env)

    config_default = _expect_str(merged["config_file"], "config_file")
    config_path = _determine_config_path(config_default, config_file, resolved_env)

    file_values = _load_yaml_file(config_path)
    if file_values:
        _deep_merge(merged, file_values)

    env_values = _build_env_overrides(resolved_env)
    if env_values:
        _deep_merge(merged, env_values)

    if overrides:
        _deep_merge(merged, dict(overrides))

    merged["config_file"] = str(config_path)

    _validate_structure(merged)

    return _build_app_config(merged)


def _determine_config_path(
    default_path: str,
    cli_override: str | os.PathLike[str] | None,
    env: Mapping[str, str],
) -> Path:
    if cli_override:
        return Path(cli_override)
    if CONFIG_ENV_VAR in env:
        return Path(env[CONFIG_ENV_VAR])
    return Path(default_path)


def _load_yaml_file(path: Path) -> dict[str, object]:
    if not path.exists():
        return {}
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse config file {path}: {exc}") from exc
    if not isinstance(data, Mapping):
        raise ConfigError(f"Config file {path} must contain a mapping at the top level.")
    return _as_dict(data, f"file:{path}")


def _validate_structure(raw: Mapping[str, object]) -> None:
    unknown_keys = set(raw.keys()) - ALLOWED_TOP_LEVEL_KEYS
    if unknown_keys:
        joined = ", ".join(sorted(unknown_keys))
        raise ConfigError(f"Unknown configuration keys: {joined}.")

    for section, allowed in ALLOWED_SECTION_KEYS.items():
        section_map = _as_dict(raw.get(section), section)
        unknown = set(section_map.keys()) - allowed
        if unknown:
            joined = ", ".join(sorted(unknown))
            raise ConfigError(f"Unknown {section} configuration keys: {joined}.")

    php_map = _as_dict(raw.get("php"), "php")
    for key in ("min_version", "default_version"):
        value = php_map.get(key)
        if value is not None:
            _expect_version(value, f"php.{key}")

    host_map = _as_dict(raw.get("host"), "host")
    supported = _as_dict(host_map.get("supported_os"), "host.supported_os")
    if not supported:
        raise ConfigError("host.supported_os must list at least one OS family.")
    for family, minimum in supported.items():
        _expect_version(minimum, f"host.supported_os.{family}")


def _build_app_config(raw: Mapping[str, object]) -> AppConfig:
    config_file = _to_path(raw.get("config_file"))
    logs_dir = _to_path(raw.get("logs_dir"))

    dashboard_map = _as_dict(raw.get("dashboard"), "dashboard")
    api_url = str(dashboard_map.get("api_url") or DEFAULT_API_URL).strip()
    dashboard = DashboardConfig(
        api_url=api_url.rstrip("/") + "/",
        request_timeout=_expect_positive_float(
            dashboard_map.get("request_timeout"), "dashboard.request_timeout", default=30.0
        ),
        ip_service_url=str(dashboard_map.get("ip_service_url", "https://api.ipify.org")),
        ip_timeout=_expect_positive_float(
            dashboard_map.get("ip_timeout"), "dashboard.ip_timeout", default=15.0
        ),
    )

    ee_map = _as_dict(raw.get("easyengine"), "easyengine")
    container_root = str(ee_map.get("container_root", "/var/www/htdocs"))
    easyengine = EasyEngineConfig(
        ee_bin=str(ee_map.get("ee_bin", "ee")),
        db_path=_to_path(ee_map.get("db_path", "/opt/easyengine/db/ee.sqlite")),
        container_root=container_root.rstrip("/") or "/",
        compose_file=str(ee_map.get("compose_file", "docker-compose.yml")),
    )

    php_map = _as_dict(raw.get("php"), "php")
    php = PHPConfig(
        min_version=str(php_map.get("min_version", "8.1")),
        default_version=str(php_map.get("default_version", "8.2")),
    )

    host_map = _as_dict(raw.get("host"), "host")
    supported = _as_dict(host_map.get("supported_os"), "host.supported_os")
    host = HostConfig(
        authorized_keys=_to_path(host_map.get("authorized_keys", "/root/.ssh/authorized_keys")),
        automation_key=str(host_map.get("automation_key", AUTOMATION_KEY)).strip(),
        hostnamectl_bin=str(host_map.get("hostnamectl_bin", "hostnamectl")),
        lsb_release_bin=str(host_map.get("lsb_release_bin", "lsb_release")),
        supported_os={
            family.strip().lower(): str(minimum) for family, minimum in supported.items()
        },
    )

    return AppConfig(
        config_file=config_file,
        logs_dir=logs_dir,
        dashboard=dashboard,
        easyengine=easyengine,
        php=php,
        host=host,
    )


def _build_env_overrides(env: Mapping[str, str]) -> dict[str, object]:
    overrides: dict[str, object] = {}
    for key, value in env.items():
        if key in RESERVED_ENV_KEYS:
            continue
        if not key.startswith(ENV_PREFIX):
            continue
        suffix = key[len(ENV_PREFIX) :]
        path_segments = [segment.lower() for segment in suffix.split("__") if segment]
        if not path_segments:
            continue
        _assign_nested(overrides, path_segments, _coerce_value(path_segments, value))
    return overrides


def _assign_nested(tree: MutableMapping[str, object], path: list[str], value: object) -> None:
    node = tree
    for segment in path[:-1]:
        child = node.setdefault(segment, {})
        if not isinstance(child, MutableMapping):
            dotted = ".".join(path)
            raise ConfigError(f"Environment override {dotted} collides with a scalar value.")
        node = cast(MutableMapping[str, object], child)
    node[path[-1]] = value


def _deep_merge(target: MutableMapping[str, object], overrides: Mapping[str, object]) -> None:
    for key, value in overrides.items():
        current = target.get(key)
        if isinstance(value, Mapping) and isinstance(current, MutableMapping):
            _deep_merge(current, _as_dict(value, f"merge.{key}"))
        else:
            target[key] = value


def _deep_copy(source: Mapping[str, object]) -> dict[str, object]:
    return {
        key: _deep_copy(_as_dict(value, f"copy.{key}")) if isinstance(value, Mapping) else value
        for key, value in source.items()
    }


def _coerce_value(path: list[str], raw: str) -> object:
    text = raw.strip()
    # Version strings stay textual; YAML would read 12.10 as the float 12.1.
    if path[-1].endswith("version") or path[:2] == ["host", "supported_os"]:
        return text
    try:
        return yaml.safe_load(text)
    except yaml.YAMLError:
        return text


def _to_path(value: object) -> Path:
    if value is None:
        raise ConfigError("Expected a filesystem path, received None.")
    if isinstance(value, Path):
        return value.expanduser()
    if isinstance(value, str):
        return Path(value).expanduser()
    raise ConfigError(f"Cannot convert value {value!r} to Path.")


def _expect_str(value: object, key: str) -> str:
    if isinstance(value, str):
        return value
    raise ConfigError(f"Expected {key} to resolve to a string. Got {value!r}.")


def _expect_version(value: object, label: str) -> Version:
    # YAML turns ``8.1`` into a float; accept it and compare as text.
    if isinstance(value, bool) or not isinstance(value, (str, int, float)):
        raise ConfigError(f"Expected {label} to be a version string. Got {value!r}.")
    try:
        return Version(str(value))
    except InvalidVersion as exc:
        raise ConfigError(f"Invalid version for {label}: {value!r}.") from exc


def _expect_positive_float(
    value: object | None,
    label: str,
    *,
    default: float,
) -> float:
    if value is None:
        return float(default)
    if isinstance(value, bool):
        raise ConfigError(f"Expected {label} to be a number. Got boolean {value!r}.")
    if isinstance(value, (int, float)):
        numeric = float(value)
    elif isinstance(value, str):
        try:
            numeric = float(value)
        except ValueError as exc:
            raise ConfigError(f"Invalid number for {label}: {value!r}.") from exc
    else:
        raise ConfigError(
            f"Expected {label} to be numeric. Got {type(value).__name__}."
        )
    if numeric <= 0:
        raise ConfigError(f"{label} must be greater than zero. Got {numeric}.")
    return numeric


def _as_dict(value: object | None, label: str) -> dict[str, object]:
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise ConfigError(f"Expected {label} to be a mapping. Got {type(value).__name__}.")
    result: dict[str, object] = {}
    for key, item in value.items():
        if not isinstance(key, str):
            raise ConfigError(f"Mapping {label} must use string keys. Got {key!r}.")
        result[key] = item
    return result


__all__ = [
    "AppConfig",
    "ConfigError",
    "DashboardConfig",
    "EasyEngineConfig",
    "HostConfig",
    "PHPConfig",
    "load_config",
]
