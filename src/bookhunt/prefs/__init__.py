# ABOUTME: Public API for the SQLite store of site enablement and order preferences.
# ABOUTME: Exports connection management and the SitePreferences implementation.

from bookhunt.prefs.connection import DEFAULT_PREFS_PATH, open_preferences
from bookhunt.prefs.store import SqliteSitePreferences

__all__ = [
    "DEFAULT_PREFS_PATH",
    "SqliteSitePreferences",
    "open_preferences",
]
