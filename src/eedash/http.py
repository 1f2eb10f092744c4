"""Thin HTTP client returning explicit outcomes instead of raising."""
from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass

import httpx


@dataclass(frozen=True, slots=True)
class HttpResponse:
    """Outcome of a single HTTP request.

    Transport failures are reported with ``status_code=None`` and ``error`` set;
    HTTP error statuses keep the body so callers can surface it.
    """

    success: bool
    status_code: int | None
    body: str
    error: str | None = None

    @property
    def transport_failed(self) -> bool:
        """Return ``True`` when no HTTP response was received."""
        return self.status_code is None


class HttpClient:
    """Wrap an :class:`httpx.Client` so network errors become values."""

    def __init__(self, client: httpx.Client | None = None, *, timeout: float = 30.0) -> None:
        """Use *client* when given (tests inject a mock transport)."""
        self._client = client or httpx.Client(timeout=timeout, follow_redirects=True)
        self._timeout = timeout

    def request(
        self,
        method: str,
        url: str,
        *,
        json_body: Mapping[str, object] | None = None,
        headers: Mapping[str, str] | None = None,
        timeout: float | None = None,
    ) -> HttpResponse:
        """Perform a request and convert the result into :class:`HttpResponse`."""
        try:
            response = self._client.request(
                method,
                url,
                json=dict(json_body) if json_body is not None else None,
                headers=dict(headers or {}),
                timeout=timeout if timeout is not None else self._timeout,
            )
        except httpx.HTTPError as exc:
            return HttpResponse(
                success=False,
                status_code=None,
                body="",
                error=f"{exc.__class__.__name__}: {exc}",
            )
        return HttpResponse(
            success=response.is_success,
            status_code=response.status_code,
            body=response.text,
        )

    def close(self) -> None:
        """Release the underlying connection pool."""
        self._client.close()


__all__ = ["HttpClient", "HttpResponse"]
