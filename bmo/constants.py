"""
Constants for BMO.

These constants are used by various modules for sensible defaults.
Many are also available via the config system.
"""

# Document format
FORMAT_VERSION = "1.0"
EXPORT_SOURCE = "BMO Bookmark Organizer"
IMPORTED_SUFFIX = " (Imported)"

# Persistent (local scope) storage keys
KEY_THEME = "theme"
KEY_FAVORITES = "favorites"
KEY_SEARCH_HISTORY = "search-history"
KEY_ACTIVE_TAGS = "active-tags"
KEY_COLLAPSED = "collapsed-categories"
KEY_TAG_SECTION_EXPANDED = "tag-section-expanded"
KEY_RECENT_VISITS = "recent-visits"
KEY_USER_DATA = "user-data"

LOCAL_KEYS = (
    KEY_THEME,
    KEY_FAVORITES,
    KEY_SEARCH_HISTORY,
    KEY_ACTIVE_TAGS,
    KEY_COLLAPSED,
    KEY_TAG_SECTION_EXPANDED,
    KEY_RECENT_VISITS,
    KEY_USER_DATA,
)

# Session scope storage keys
KEY_UI_STATE = "ui-state"
KEY_IMPORT_BACKUP = "import-backup"

# Pseudo-category ids for the synthetic sections
FAVORITES_SECTION = "favorites"
RECENT_VISITS_SECTION = "recent-visits"

# Defaults
DEFAULT_THEME = "eco-lime"
DEFAULT_RECENT_VISITS_LIMIT = 8
DEFAULT_IMPORTED_VISITS_LIMIT = 15
DEFAULT_RETENTION_DAYS = 30
DEFAULT_SEARCH_HISTORY_LIMIT = 10
DEFAULT_SEARCH_MIN_LENGTH = 3
DEFAULT_SUGGESTION_LIMIT = 8
DEFAULT_SEARCH_DEBOUNCE_MS = 300
DEFAULT_REFRESH_DELAY_SECONDS = 10
DEFAULT_UI_STATE_TTL_SECONDS = 30

EXPORT_TYPES = ("full", "bookmarks", "settings", "selective")
SETTING_GROUPS = ("favorites", "recentVisits", "theme", "searchHistory", "uiPreferences")

MS_PER_DAY = 24 * 60 * 60 * 1000
