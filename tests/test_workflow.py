"""End-to-end tests for the registration workflow."""
from __future__ import annotations

import json
from pathlib import Path

import httpx
import pytest
from conftest import DummyEasyEngine, DummyHost, DummyInventory, FakeDashboard, make_terminal

from eedash.config import AppConfig
from eedash.exit_codes import ExitCode, FatalError
from eedash.models import LocalSite
from eedash.prechecks import PrecheckError
from eedash.providers.host import OSRelease
from eedash.providers.inventory import InventoryError
from eedash.workflow import RegistrationWorkflow, WorkflowState, build_credentials


def _local_site(tmp_path: Path, domain: str, **fields: object) -> LocalSite:
    site_dir = tmp_path / "sites" / domain
    site_dir.mkdir(parents=True, exist_ok=True)
    (site_dir / "docker-compose.yml").write_text("services: {}\n", encoding="utf-8")
    values: dict[str, object] = {
        "site_type": "wp",
        "enabled": True,
        "container_fs_path": "/var/www/htdocs/current",
        "app_sub_type": "wp",
        "php_version": "8.2",
        "db_name": "db",
    }
    values.update(fields)
    return LocalSite(domain=domain, fs_path=site_dir, **values)  # type: ignore[arg-type]


def _workflow(
    config: AppConfig,
    dashboard: FakeDashboard,
    inventory: DummyInventory,
    *,
    host: DummyHost | None = None,
    easyengine: DummyEasyEngine | None = None,
    prompts: tuple[str, ...] = (),
    confirms: tuple[bool, ...] = (True,),
):
    terminal, output = make_terminal(prompts=prompts, confirms=confirms)
    workflow = RegistrationWorkflow(
        config=config,
        credentials=build_credentials("T1", "Acme"),
        terminal=terminal,
        host=host or DummyHost("srv.example.com"),
        inventory=inventory,
        easyengine=easyengine or DummyEasyEngine({"wp config get table_prefix": (0, "wp_")}),
        http=dashboard.client(),
    )
    return workflow, output


@pytest.mark.parametrize(
    "api, org, message",
    [
        ("", "Acme", "--api=<token:key>"),
        ("  ", "Acme", "--api=<token:key>"),
        ("T1", "", "--org=<org-name>"),
    ],
)
def test_build_credentials_requires_both(api: str, org: str, message: str) -> None:
    """Missing credentials are validation errors."""
    with pytest.raises(FatalError, match=message) as excinfo:
        build_credentials(api, org)

    assert excinfo.value.code is ExitCode.VALIDATION


def test_first_run_registers_server_then_sites(
    tmp_path: Path,
    config: AppConfig,
    dashboard: FakeDashboard,
) -> None:
    """A fresh server is registered once and its sites follow in the same run."""
    inventory = DummyInventory([_local_site(tmp_path, "a.example.com")])
    workflow, output = _workflow(config, dashboard, inventory)

    summary = workflow.run()

    assert summary.state is WorkflowState.DONE
    assert summary.server_status == "registered"
    assert summary.registered == ["a.example.com"]
    assert dashboard.calls_to("add_server") == [
        {"hostname": "srv.example.com", "public_ipv4": "203.0.113.5", "organization": "Acme"}
    ]
    (site_body,) = dashboard.calls_to("add_site")
    assert site_body["server"] == "srv.example.com"
    assert site_body["organization"] == "Acme"
    assert "Server integrated with EasyDash successfully" in output.getvalue()


def test_second_run_submits_nothing(
    tmp_path: Path,
    config: AppConfig,
    dashboard: FakeDashboard,
) -> None:
    """Re-running against an up-to-date dashboard is a no-op."""
    inventory = DummyInventory(
        [_local_site(tmp_path, "a.example.com"), _local_site(tmp_path, "b.example.com")]
    )
    first, _ = _workflow(config, dashboard, inventory)
    first.run()
    submitted = len(dashboard.calls_to("add_server")) + len(dashboard.calls_to("add_site"))

    second, output = _workflow(config, dashboard, inventory)
    summary = second.run()

    assert submitted == 3
    assert len(dashboard.calls_to("add_server")) == 1
    assert len(dashboard.calls_to("add_site")) == 2
    assert summary.server_status == "exists"
    assert summary.state is WorkflowState.DONE
    assert summary.skipped == ["a.example.com", "b.example.com"]
    assert summary.registered == []
    assert "already exists on EasyDash. Skipping server addition." in output.getvalue()


def test_flags_skip_detection_and_confirmation(
    tmp_path: Path,
    config: AppConfig,
    dashboard: FakeDashboard,
) -> None:
    """--ip and --hostname bypass the IP service and the confirm prompt."""
    dashboard.ip_response = AssertionError("IP service must not be called")
    host = DummyHost("ubuntu")
    workflow, _ = _workflow(config, dashboard, DummyInventory(), host=host, confirms=())

    summary = workflow.run("198.51.100.9", "web.example.org")

    assert summary.identity is not None
    assert summary.identity.ip == "198.51.100.9"
    assert summary.identity.hostname == "web.example.org"
    assert host.set_calls == []
    assert dashboard.servers[0]["public_ipv4"] == "198.51.100.9"


def test_list_timeout_and_add_failure_still_process_sites(
    tmp_path: Path,
    config: AppConfig,
    dashboard: FakeDashboard,
) -> None:
    """Server-side failures are warnings; the site loop still runs."""

    def _timeout(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("timed out", request=request)

    dashboard.fail["get_server_list"] = _timeout
    dashboard.fail["add_server"] = lambda request: httpx.Response(500, text="server error")
    inventory = DummyInventory([_local_site(tmp_path, "a.example.com")])
    workflow, output = _workflow(config, dashboard, inventory)

    summary = workflow.run()

    assert summary.server_status == "failed"
    assert summary.registered == ["a.example.com"]
    assert len(dashboard.calls_to("add_site")) == 1
    text = output.getvalue()
    assert "Error connecting to EasyDash API to get server list" in text
    assert "Failed to integrate server with EasyDash" in text


def test_unsupported_os_stops_before_network(
    tmp_path: Path,
    config: AppConfig,
    dashboard: FakeDashboard,
) -> None:
    """A failed precheck aborts before any dashboard call."""
    host = DummyHost(release=OSRelease("centos", "9"))
    workflow, _ = _workflow(config, dashboard, DummyInventory(), host=host, confirms=())

    with pytest.raises(PrecheckError):
        workflow.run()

    assert dashboard.calls == []


def test_site_failures_do_not_stop_the_loop(
    tmp_path: Path,
    config: AppConfig,
    dashboard: FakeDashboard,
) -> None:
    """An inspection error or a rejected site is recorded and the next site proceeds."""
    broken = _local_site(tmp_path, "a.example.com", enabled=False, php_version="latest")
    rejected = _local_site(tmp_path, "b.example.com", site_type="html", app_sub_type="html")
    fine = _local_site(tmp_path, "c.example.com", site_type="html", app_sub_type="html")
    inventory = DummyInventory([broken, rejected, fine])
    easyengine = DummyEasyEngine(fail_command=True)

    def _reject_b(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        if body["domain"] == "b.example.com":
            return httpx.Response(417, text="rejected")
        dashboard.sites.append(body)
        return httpx.Response(200, json={"message": "ok"})

    dashboard.fail["add_site"] = _reject_b
    workflow, output = _workflow(config, dashboard, inventory, easyengine=easyengine)

    summary = workflow.run()

    assert summary.failed == ["a.example.com", "b.example.com"]
    assert summary.registered == ["c.example.com"]
    assert ("disable", "a.example.com") in easyengine.calls
    assert "Failed to process site a.example.com" in output.getvalue()


def test_unreadable_inventory_is_reported(
    tmp_path: Path,
    config: AppConfig,
    dashboard: FakeDashboard,
) -> None:
    """A missing EasyEngine database ends the site loop with an error line."""
    inventory = DummyInventory()
    inventory.error = InventoryError("EasyEngine database not found at /nowhere.")
    workflow, output = _workflow(config, dashboard, inventory)

    summary = workflow.run()

    assert summary.state is WorkflowState.DONE
    assert summary.registered == []
    assert "Could not list EasyEngine sites" in output.getvalue()
