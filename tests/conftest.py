"""Shared fixtures: recording terminal, config, an in-memory dashboard and host doubles."""

from __future__ import annotations

import io
import json
import subprocess
from collections.abc import Callable, Iterable
from pathlib import Path

import httpx
import pytest
from rich.console import Console

from eedash.config import AppConfig, load_config
from eedash.http import HttpClient
from eedash.interaction import Terminal
from eedash.models import LocalSite
from eedash.providers.easyengine import EasyEngineError
from eedash.providers.host import HostProvider, OSRelease

API_URL = "https://dash.test/api/method/"


class FakeDashboard:
    """Minimal stand-in for the EasyDash API served through ``httpx.MockTransport``."""

    def __init__(self) -> None:
        """Start with empty inventories and healthy endpoints."""
        self.servers: list[dict[str, object]] = []
        self.sites: list[dict[str, object]] = []
        self.calls: list[tuple[str, dict[str, object], httpx.Headers]] = []
        self.fail: dict[str, Callable[[httpx.Request], httpx.Response]] = {}
        self.ip_response: httpx.Response | Exception = httpx.Response(200, text="203.0.113.5")

    def calls_to(self, method: str) -> list[dict[str, object]]:
        """Return the JSON bodies posted to *method*."""
        return [body for name, body, _ in self.calls if name == method]

    def handler(self, request: httpx.Request) -> httpx.Response:
        """Route *request* like the real service would."""
        if request.url.host == "api.ipify.org":
            if isinstance(self.ip_response, Exception):
                raise self.ip_response
            return self.ip_response

        method = request.url.path.rsplit("/", 1)[-1].split(".")[-1]
        body = json.loads(request.content or b"{}")
        self.calls.append((method, body, request.headers))
        if method in self.fail:
            return self.fail[method](request)
        if method == "get_server_list":
            return httpx.Response(200, json={"message": self.servers})
        if method == "get_site_list":
            return httpx.Response(200, json={"message": self.sites})
        if method == "add_server":
            self.servers.append(body)
            return httpx.Response(200, json={"message": "ok"})
        if method == "add_site":
            self.sites.append(body)
            return httpx.Response(200, json={"message": "ok"})
        return httpx.Response(404, text="unknown method")

    def client(self) -> HttpClient:
        """Return an :class:`HttpClient` wired to this fake."""
        return HttpClient(httpx.Client(transport=httpx.MockTransport(self.handler)))


class DummyInventory:
    """In-memory stand-in for the EasyEngine database."""

    def __init__(self, sites: Iterable[LocalSite] = (), auth: set[str] | None = None) -> None:
        """Index *sites* by domain."""
        self.sites = {site.domain: site for site in sites}
        self.auth = auth or set()
        self.error: Exception | None = None

    def list_sites(self) -> list[LocalSite]:
        """Return every site ordered by domain."""
        if self.error is not None:
            raise self.error
        return [self.sites[key] for key in sorted(self.sites)]

    def lookup(self, domain: str) -> LocalSite | None:
        """Return the site for *domain*."""
        return self.sites.get(domain)

    def has_auth(self, domain: str) -> bool:
        """Return whether *domain* has basic auth."""
        return domain in self.auth


class DummyEasyEngine:
    """Record toggles and answer shell commands from a table."""

    def __init__(
        self,
        outputs: dict[str, tuple[int, str]] | None = None,
        fail_command: bool = False,
        fail_enable: bool = False,
        fail_disable: bool = False,
    ) -> None:
        """Map shell commands to ``(returncode, stdout)``."""
        self.outputs = outputs or {}
        self.fail_command = fail_command
        self.fail_enable = fail_enable
        self.fail_disable = fail_disable
        self.calls: list[tuple[str, ...]] = []

    def enable_site(self, domain: str) -> None:
        """Record an enable."""
        self.calls.append(("enable", domain))
        if self.fail_enable:
            raise EasyEngineError(f"ee site enable {domain} failed")

    def disable_site(self, domain: str) -> None:
        """Record a disable."""
        self.calls.append(("disable", domain))
        if self.fail_disable:
            raise EasyEngineError(f"ee site disable {domain} failed")

    def run_in_site(self, domain: str, command: str) -> subprocess.CompletedProcess[str]:
        """Return the scripted output for *command*."""
        self.calls.append(("shell", domain, command))
        if self.fail_command:
            raise EasyEngineError("ee not found")
        returncode, stdout = self.outputs.get(command, (1, ""))
        return subprocess.CompletedProcess(["ee"], returncode, stdout=stdout, stderr="")


class DummyHost:
    """Host stand-in: fixed OS release, recorded hostname changes, real key file."""

    def __init__(
        self,
        hostname: str = "srv.example.com",
        release: OSRelease | None = None,
    ) -> None:
        """Start with *hostname* and an Ubuntu 22.04 release by default."""
        self.hostname = hostname
        self.release = release or OSRelease("ubuntu", "22.04")
        self.set_calls: list[str] = []

    def os_release(self) -> OSRelease:
        """Return the configured release."""
        return self.release

    def get_hostname(self) -> str:
        """Return the current hostname."""
        return self.hostname

    def set_hostname(self, hostname: str) -> None:
        """Record a hostname change."""
        self.set_calls.append(hostname)
        self.hostname = hostname

    def ensure_authorized_key(self, path: Path, key: str) -> bool:
        """Delegate to the real implementation against a temporary file."""
        return HostProvider().ensure_authorized_key(path, key)


@pytest.fixture
def dashboard() -> FakeDashboard:
    """Return a fresh fake dashboard."""
    return FakeDashboard()


def make_terminal(
    prompts: Iterable[str] = (),
    confirms: Iterable[bool] = (),
) -> tuple[Terminal, io.StringIO]:
    """Return a terminal with scripted answers and its captured output."""
    buffer = io.StringIO()
    console = Console(file=buffer, width=200, color_system=None)
    prompt_answers = list(prompts)
    confirm_answers = list(confirms)

    def _prompt(question: str) -> str:
        if not prompt_answers:
            raise AssertionError(f"unexpected prompt: {question}")
        return prompt_answers.pop(0)

    def _confirm(question: str) -> bool:
        if not confirm_answers:
            raise AssertionError(f"unexpected confirm: {question}")
        return confirm_answers.pop(0)

    terminal = Terminal(console, verbose=True, prompt_fn=_prompt, confirm_fn=_confirm)
    return terminal, buffer


@pytest.fixture
def terminal() -> tuple[Terminal, io.StringIO]:
    """Return a terminal that fails on any prompt."""
    return make_terminal()


def make_config(tmp_path: Path, **sections: object) -> AppConfig:
    """Load config rooted in *tmp_path* with optional section overrides."""
    overrides: dict[str, object] = {
        "logs_dir": str(tmp_path / "logs"),
        "dashboard": {"api_url": API_URL},
        "easyengine": {"db_path": str(tmp_path / "ee.sqlite")},
        "host": {"authorized_keys": str(tmp_path / "ssh" / "authorized_keys")},
    }
    for key, value in sections.items():
        existing = overrides.get(key)
        if isinstance(existing, dict) and isinstance(value, dict):
            existing.update(value)
        else:
            overrides[key] = value
    return load_config(config_file=tmp_path / "missing.yml", env={}, overrides=overrides)


@pytest.fixture
def config(tmp_path: Path) -> AppConfig:
    """Return a config whose paths live under the temporary directory."""
    return make_config(tmp_path)
