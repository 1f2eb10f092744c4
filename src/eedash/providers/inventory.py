"""Read-only view of the EasyEngine site database.

EasyEngine keeps its inventory in SQLite (``/opt/easyengine/db/ee.sqlite``):
the ``sites`` table holds one row per site and ``auth_users`` holds HTTP basic
auth credentials keyed by ``site_url``. Rows are read with ``SELECT *`` so
older schemas lacking optional columns still load.
"""
from __future__ import annotations

import sqlite3
from collections.abc import Iterator, Mapping
from contextlib import closing, contextmanager
from dataclasses import dataclass
from pathlib import Path

from ..models import LocalSite


class InventoryError(RuntimeError):
    """Raised when the EasyEngine database cannot be read."""


@dataclass(frozen=True)
class SiteInventory:
    """Query sites and auth entries from the EasyEngine database."""

    db_path: Path

    def list_sites(self) -> list[LocalSite]:
        """Return every site, ordered by domain."""
        with self._connect() as conn:
            rows = self._fetch(conn, "SELECT * FROM sites ORDER BY site_url")
        return [_row_to_site(row) for row in rows]

    def lookup(self, domain: str) -> LocalSite | None:
        """Return the current record for *domain*, or ``None`` when absent."""
        with self._connect() as conn:
            rows = self._fetch(conn, "SELECT * FROM sites WHERE site_url = ?", (domain,))
        if not rows:
            return None
        return _row_to_site(rows[0])

    def has_auth(self, domain: str) -> bool:
        """Return ``True`` when at least one basic-auth entry exists for *domain*."""
        with self._connect() as conn:
            rows = self._fetch(
                conn,
                "SELECT COUNT(*) AS total FROM auth_users WHERE site_url = ?",
                (domain,),
            )
        return bool(rows and rows[0]["total"])

    # ------------------------------------------------------------------
    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        if not self.db_path.exists():
            raise InventoryError(f"EasyEngine database not found at {self.db_path}.")
        uri = f"{self.db_path.resolve().as_uri()}?mode=ro"
        try:
            conn = sqlite3.connect(uri, uri=True)
        except sqlite3.Error as exc:
            raise InventoryError(f"Failed to open {self.db_path}: {exc}") from exc
        conn.row_factory = sqlite3.Row
        with closing(conn):
            yield conn

    def _fetch(
        self,
        conn: sqlite3.Connection,
        query: str,
        params: tuple[object, ...] = (),
    ) -> list[sqlite3.Row]:
        try:
            return list(conn.execute(query, params).fetchall())
        except sqlite3.Error as exc:
            raise InventoryError(f"Query failed on {self.db_path}: {exc}") from exc


def _row_to_site(row: sqlite3.Row) -> LocalSite:
    data: Mapping[str, object] = {key: row[key] for key in row.keys()}
    return LocalSite(
        domain=_text(data.get("site_url")),
        site_type=_text(data.get("site_type")),
        enabled=_flag(data.get("site_enabled")),
        fs_path=Path(_text(data.get("site_fs_path"))),
        container_fs_path=_text(data.get("site_container_fs_path")),
        app_sub_type=_text(data.get("app_sub_type")),
        ssl=_flag(data.get("site_ssl")),
        php_version=_text(data.get("php_version")),
        alias_domains=_text(data.get("alias_domains")),
        admin_tools=data.get("admin_tools"),
        mailhog=data.get("mailhog_enabled"),
        db_name=_text(data.get("db_name")),
        cache_nginx_fullpage=data.get("cache_nginx_fullpage"),
    )


def _text(value: object) -> str:
    if value is None:
        return ""
    return str(value).strip()


def _flag(value: object) -> bool:
    # ``site_ssl`` stores the certificate type (``le``, ``self``...) when enabled.
    if isinstance(value, str):
        return value.strip().lower() not in {"", "0", "false", "no"}
    return bool(value)


__all__ = ["InventoryError", "SiteInventory"]
