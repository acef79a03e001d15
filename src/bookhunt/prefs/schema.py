# ABOUTME: SQL DDL statements for the site preferences database.
# ABOUTME: One row per (provider, list type) enablement flag and one order string per list type.

SCHEMA_V1 = """
-- Whether a provider is enabled for one list type
CREATE TABLE site_enabled (
    provider_id INTEGER NOT NULL,
    list_type   TEXT NOT NULL,
    enabled     INTEGER NOT NULL,
    PRIMARY KEY (provider_id, list_type)
);

-- Comma-separated provider ids, enabled and disabled, in user order
CREATE TABLE site_order (
    list_type    TEXT PRIMARY KEY,
    provider_ids TEXT NOT NULL
);

-- Schema versioning for future migrations
CREATE TABLE schema_version (
    version    INTEGER NOT NULL,
    applied_at TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%S', 'now'))
);

INSERT INTO schema_version (version) VALUES (1);
"""

# (version, sql) pairs applied in order to databases older than `version`.
MIGRATIONS: list[tuple[int, str]] = []
