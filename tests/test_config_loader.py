"""Configuration loader tests."""
from __future__ import annotations

from pathlib import Path

import pytest

from eedash.config import AppConfig, ConfigError, load_config


def test_load_config_defaults_when_file_missing(tmp_path: Path) -> None:
    """Defaults apply when no config file is present."""
    config = load_config(config_file=tmp_path / "absent.yml", env={})

    assert isinstance(config, AppConfig)
    assert config.dashboard.api_url == "https://dash.easyengine.io/api/method/"
    assert config.dashboard.ip_service_url == "https://api.ipify.org"
    assert config.dashboard.ip_timeout == 15.0
    assert config.easyengine.db_path == Path("/opt/easyengine/db/ee.sqlite")
    assert config.easyengine.container_root == "/var/www/htdocs"
    assert config.php.min_version == "8.1"
    assert config.php.default_version == "8.2"
    assert config.host.authorized_keys == Path("/root/.ssh/authorized_keys")
    assert dict(config.host.supported_os) == {"ubuntu": "22.04", "debian": "12"}
    assert config.logs_dir == Path("/var/log/eedash")


def test_load_config_reads_yaml_file(tmp_path: Path) -> None:
    """Values are loaded from the YAML config file."""
    cfg = tmp_path / "eedash.yml"
    cfg.write_text(
        "dashboard:\n"
        "  api_url: https://dash.example.test/api/method\n"
        "php:\n"
        "  min_version: '8.2'\n"
        "easyengine:\n"
        "  container_root: /srv/www/\n"
        "host:\n"
        "  supported_os:\n"
        "    ubuntu: '24.04'\n",
        encoding="utf-8",
    )

    config = load_config(config_file=cfg, env={})

    assert config.config_file == cfg
    assert config.dashboard.api_url == "https://dash.example.test/api/method/"
    assert config.php.min_version == "8.2"
    assert config.easyengine.container_root == "/srv/www"
    assert dict(config.host.supported_os) == {"ubuntu": "24.04", "debian": "12"}


def test_env_overrides_take_precedence(tmp_path: Path) -> None:
    """Environment variables override defaults and file settings."""
    cfg = tmp_path / "eedash.yml"
    cfg.write_text("dashboard:\n  request_timeout: 10\n", encoding="utf-8")
    env = {
        "EEDASH_DASHBOARD__REQUEST_TIMEOUT": "45",
        "EEDASH_PHP__DEFAULT_VERSION": "8.3",
        "EEDASH_LOGS_DIR": str(tmp_path / "logs"),
        "EEDASH_HOST__SUPPORTED_OS__DEBIAN": "12.10",
        "UNRELATED": "ignored",
    }

    config = load_config(config_file=cfg, env=env)

    assert config.dashboard.request_timeout == 45.0
    assert config.php.default_version == "8.3"
    assert config.logs_dir == tmp_path / "logs"
    assert config.host.supported_os["debian"] == "12.10"


def test_config_file_env_var_selects_file(tmp_path: Path) -> None:
    """EEDASH_CONFIG_FILE points the loader at another file."""
    cfg = tmp_path / "alt.yml"
    cfg.write_text("easyengine:\n  ee_bin: /usr/local/bin/ee\n", encoding="utf-8")

    config = load_config(env={"EEDASH_CONFIG_FILE": str(cfg)})

    assert config.config_file == cfg
    assert config.easyengine.ee_bin == "/usr/local/bin/ee"


def test_endpoint_joins_method_names(tmp_path: Path) -> None:
    """Endpoints hang off the normalised API URL."""
    config = load_config(
        config_file=tmp_path / "absent.yml",
        env={},
        overrides={"dashboard": {"api_url": "https://dash.test/api/method///"}},
    )

    assert config.dashboard.endpoint("a.b.c") == "https://dash.test/api/method/a.b.c"


@pytest.mark.parametrize(
    "contents, message",
    [
        ("unknown: 1\n", "Unknown configuration keys"),
        ("php:\n  maximum: '9'\n", "Unknown php configuration keys"),
        ("php:\n  min_version: not-a-version\n", "Invalid version for php.min_version"),
        ("dashboard:\n  ip_timeout: 0\n", "must be greater than zero"),
        ("host:\n  supported_os:\n    ubuntu: latest\n", "Invalid version for host.supported_os.ubuntu"),
        ("- just\n- a list\n", "must contain a mapping"),
    ],
)
def test_invalid_config_raises(tmp_path: Path, contents: str, message: str) -> None:
    """Invalid values surface as ConfigError with a helpful message."""
    cfg = tmp_path / "bad.yml"
    cfg.write_text(contents, encoding="utf-8")

    with pytest.raises(ConfigError, match=message):
        load_config(config_file=cfg, env={})
