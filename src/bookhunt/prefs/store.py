# ABOUTME: SitePreferences backed by SQLite, so site order and enablement survive restarts.
# ABOUTME: Every write commits immediately.

import logging
import sqlite3

from bookhunt.search.sites import ListType

logger = logging.getLogger(__name__)


class SqliteSitePreferences:
    """Stores per-(provider, list type) flags and per-list order strings."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    def get_enabled(self, provider_id: int, list_type: ListType) -> bool | None:
        row = self._conn.execute(
            "SELECT enabled FROM site_enabled WHERE provider_id = ? AND list_type = ?",
            (provider_id, list_type.value),
        ).fetchone()
        return None if row is None else bool(row["enabled"])

    def set_enabled(self, provider_id: int, list_type: ListType, enabled: bool) -> None:
        self._conn.execute(
            "INSERT INTO site_enabled (provider_id, list_type, enabled) VALUES (?, ?, ?) "
            "ON CONFLICT (provider_id, list_type) DO UPDATE SET enabled = excluded.enabled",
            (provider_id, list_type.value, int(enabled)),
        )
        self._conn.commit()

    def get_order(self, list_type: ListType) -> str | None:
        row = self._conn.execute(
            "SELECT provider_ids FROM site_order WHERE list_type = ?",
            (list_type.value,),
        ).fetchone()
        return None if row is None else row["provider_ids"]

    def set_order(self, list_type: ListType, order: str) -> None:
        self._conn.execute(
            "INSERT INTO site_order (list_type, provider_ids) VALUES (?, ?) "
            "ON CONFLICT (list_type) DO UPDATE SET provider_ids = excluded.provider_ids",
            (list_type.value, order),
        )
        self._conn.commit()
        logger.debug("Saved %s site order: %s", list_type.value, order)

