"""EasyDash API client.

Every call is a JSON ``POST`` authenticated with the ``Token`` header. List
queries fail open: when the dashboard cannot be reached or answers with
something unusable, the record is treated as absent so the run keeps going. A
duplicate submission is preferred over skipping a registration.
"""
from __future__ import annotations

import json
from collections.abc import Mapping

from .config import DashboardConfig
from .http import HttpClient, HttpResponse
from .interaction import Terminal
from .models import Credentials, ServerRecord, SiteRecord

SERVER_LIST_METHOD = "easydash.easydash.doctype.server.server.get_server_list"
SERVER_ADD_METHOD = "easydash.easydash.doctype.server.server.add_server"
SITE_LIST_METHOD = "easydash.easydash.doctype.site.site.get_site_list"
SITE_ADD_METHOD = "easydash.easydash.doctype.site.site.add_site"

BODY_PREVIEW_CHARS = 300


def preview_body(body: str, limit: int = BODY_PREVIEW_CHARS) -> str:
    """Return *body* cut to *limit* characters for debug output."""
    if len(body) <= limit:
        return body
    return f"{body[:limit]}... ({len(body) - limit} more characters)"


def parse_list_message(body: str) -> list[Mapping[str, object]] | None:
    """Return the ``message`` entries of a list response, or ``None`` if malformed."""
    try:
        payload = json.loads(body)
    except (TypeError, ValueError):
        return None
    if not isinstance(payload, Mapping):
        return None
    message = payload.get("message")
    if not isinstance(message, list):
        return None
    return [entry for entry in message if isinstance(entry, Mapping)]


class DashboardClient:
    """Query and populate the dashboard for one organization."""

    def __init__(
        self,
        *,
        config: DashboardConfig,
        credentials: Credentials,
        http: HttpClient,
        terminal: Terminal,
    ) -> None:
        """Bind the client to an API endpoint and credentials."""
        self.config = config
        self.credentials = credentials
        self.http = http
        self.terminal = terminal

    # ------------------------------------------------------------------
    # Existence checks
    # ------------------------------------------------------------------
    def server_exists(self, public_ipv4: str) -> bool:
        """Return ``True`` if a server with *public_ipv4* is registered."""
        self.terminal.debug(f"Checking if server with IP {public_ipv4} exists on EasyDash...")
        return self._exists(SERVER_LIST_METHOD, "public_ipv4", public_ipv4, kind="server")

    def site_exists(self, domain: str) -> bool:
        """Return ``True`` if a site for *domain* is registered."""
        self.terminal.debug(f"Checking if site {domain} exists on EasyDash...")
        return self._exists(SITE_LIST_METHOD, "domain", domain, kind="site")

    def _exists(self, method: str, key: str, value: str, *, kind: str) -> bool:
        response = self._post(method, {"organization": self.credentials.organization})
        if response.transport_failed:
            self.terminal.warning(
                f"Error connecting to EasyDash API to get {kind} list: {response.error}"
            )
            return False
        if not response.success:
            self.terminal.log(f"Failed to retrieve {kind} list; assuming {value} is new.")
            self.terminal.debug(
                f"Status code: {response.status_code} "
                f"Response: {preview_body(response.body)}"
            )
            return False

        entries = parse_list_message(response.body)
        if entries is None:
            self.terminal.debug(
                f"Unexpected {kind} list payload: {preview_body(response.body)}"
            )
            return False
        return any(entry.get(key) == value for entry in entries)

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------
    def add_server(self, server: ServerRecord) -> HttpResponse:
        """Submit *server* to the dashboard."""
        return self._post(SERVER_ADD_METHOD, server.to_payload())

    def add_site(self, site: SiteRecord) -> HttpResponse:
        """Submit *site* to the dashboard."""
        return self._post(SITE_ADD_METHOD, site.to_payload())

    def _post(self, method: str, payload: Mapping[str, object]) -> HttpResponse:
        url = self.config.endpoint(method)
        self.terminal.debug(f"POST {url} {json.dumps(dict(payload), default=str)}")
        response = self.http.request(
            "POST",
            url,
            json_body=payload,
            headers=self.credentials.headers(),
            timeout=self.config.request_timeout,
        )
        self.terminal.debug(
            f"Response from EasyDash: status={response.status_code} "
            f"body={preview_body(response.body)}"
        )
        return response


__all__ = [
    "DashboardClient",
    "SERVER_ADD_METHOD",
    "SERVER_LIST_METHOD",
    "SITE_ADD_METHOD",
    "SITE_LIST_METHOD",
    "parse_list_message",
    "preview_body",
]
