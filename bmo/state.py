"""
Application state for BMO.

``AppState`` is the explicit state struct handed to the engines. The
``PreferenceStore`` loads and saves its persisted fields, one storage key per
field, each falling back to its own default when the stored value is corrupt.
The short-lived UI snapshot used by the smart refresh lives in session scope.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Set

from bmo import constants
from bmo.filters import FilterState
from bmo.models import VisitRecord
from bmo.recent import prune_visits
from bmo.storage import Scope, Storage
from bmo.utils import now_ms

logger = logging.getLogger(__name__)


def _default_collapsed() -> Set[str]:
    return {constants.RECENT_VISITS_SECTION}


@dataclass
class AppState:
    """Personal, non-bookmark state of one user."""
    theme: str = constants.DEFAULT_THEME
    favorites: Set[str] = field(default_factory=set)
    search_history: List[str] = field(default_factory=list)
    active_tags: Set[str] = field(default_factory=set)
    collapsed_categories: Set[str] = field(default_factory=_default_collapsed)
    tag_section_expanded: bool = False
    recent_visits: List[VisitRecord] = field(default_factory=list)
    search_term: str = ""

    @property
    def filter(self) -> FilterState:
        return FilterState(search_term=self.search_term, active_tags=set(self.active_tags))

    def set_search_term(self, term: str) -> None:
        self.search_term = (term or "").lower()

    def toggle_favorite(self, url: str) -> bool:
        """Flip a favorite. Returns True if the url is now a favorite."""
        if url in self.favorites:
            self.favorites.discard(url)
            return False
        self.favorites.add(url)
        return True

    def toggle_tag(self, tag: str) -> bool:
        """Flip an active tag. Returns True if the tag is now active."""
        if tag in self.active_tags:
            self.active_tags.discard(tag)
            return False
        self.active_tags.add(tag)
        return True

    def clear_tags(self) -> None:
        self.active_tags.clear()

    def toggle_category(self, category_id: str) -> bool:
        """Flip a section's collapsed flag. Returns True if it is now collapsed."""
        if category_id in self.collapsed_categories:
            self.collapsed_categories.discard(category_id)
            return False
        self.collapsed_categories.add(category_id)
        return True


# AppState field -> (storage key, encoder)
_PERSISTED_FIELDS = {
    "theme": (constants.KEY_THEME, lambda v: v),
    "favorites": (constants.KEY_FAVORITES, sorted),
    "search_history": (constants.KEY_SEARCH_HISTORY, list),
    "active_tags": (constants.KEY_ACTIVE_TAGS, sorted),
    "collapsed_categories": (constants.KEY_COLLAPSED, sorted),
    "tag_section_expanded": (constants.KEY_TAG_SECTION_EXPANDED, bool),
    "recent_visits": (constants.KEY_RECENT_VISITS, lambda v: [r.to_dict() for r in v]),
}


class PreferenceStore:
    """Loads and saves the persisted fields of ``AppState``."""

    def __init__(self, storage: Storage):
        self.storage = storage

    def _load_list(self, key: str, default: List[Any]) -> List[Any]:
        value = self.storage.get_json(key, default)
        if not isinstance(value, list):
            logger.warning(f"Could not parse saved {key}: expected a list")
            return list(default)
        return value

    def _load_strings(self, key: str, default: List[str]) -> List[str]:
        return [v for v in self._load_list(key, default) if isinstance(v, str)]

    def load(self, default_theme: str = constants.DEFAULT_THEME, now: Optional[int] = None,
             retention_days: int = constants.DEFAULT_RETENTION_DAYS) -> AppState:
        """
        Build the state from storage.

        Recent visits older than ``retention_days`` are dropped on load.
        """
        state = AppState(theme=default_theme)

        theme = self.storage.get_json(constants.KEY_THEME)
        if isinstance(theme, str) and theme:
            state.theme = theme

        state.favorites = set(self._load_strings(constants.KEY_FAVORITES, []))
        state.search_history = self._load_strings(constants.KEY_SEARCH_HISTORY, [])
        state.active_tags = set(self._load_strings(constants.KEY_ACTIVE_TAGS, []))
        state.collapsed_categories = set(self._load_strings(
            constants.KEY_COLLAPSED, sorted(_default_collapsed())))

        expanded = self.storage.get_json(constants.KEY_TAG_SECTION_EXPANDED, False)
        state.tag_section_expanded = expanded is True or expanded == "true"

        try:
            visits = [VisitRecord.from_dict(v)
                      for v in self._load_list(constants.KEY_RECENT_VISITS, [])]
        except (TypeError, ValueError, AttributeError) as e:
            logger.warning(f"Could not parse saved recent visits: {e}")
            visits = []
        state.recent_visits = prune_visits(visits, now=now, retention_days=retention_days)

        return state

    def save(self, state: AppState, *fields: str) -> None:
        """
        Persist fields of the state.

        Args:
            state: State to save
            *fields: AppState field names; all persisted fields when omitted
        """
        for name in fields or tuple(_PERSISTED_FIELDS):
            key, encode = _PERSISTED_FIELDS[name]
            self.storage.set_json(key, encode(getattr(state, name)))

    def clear(self) -> None:
        """Remove all personal data, including the session scope."""
        for key in constants.LOCAL_KEYS:
            self.storage.remove_item(key)
        self.storage.clear(Scope.SESSION)


def ui_snapshot(state: AppState, scroll_position: int = 0, now: Optional[int] = None) -> Dict[str, Any]:
    """The UI state preserved across a smart refresh."""
    return {
        "scrollPosition": scroll_position,
        "searchTerm": state.search_term,
        "activeTags": sorted(state.active_tags),
        "collapsedCategories": sorted(state.collapsed_categories),
        "tagSectionExpanded": state.tag_section_expanded,
        "currentTheme": state.theme,
        "timestamp": now if now is not None else now_ms(),
    }


def save_ui_state(storage: Storage, state: AppState, scroll_position: int = 0,
                  now: Optional[int] = None) -> Dict[str, Any]:
    snapshot = ui_snapshot(state, scroll_position, now)
    storage.set_json(constants.KEY_UI_STATE, snapshot, Scope.SESSION)
    return snapshot


def restore_ui_state(storage: Storage, state: AppState, now: Optional[int] = None,
                     ttl_seconds: int = constants.DEFAULT_UI_STATE_TTL_SECONDS) -> Optional[int]:
    """
    Apply a saved UI snapshot if it is recent enough.

    The snapshot is removed whether or not it was applied.

    Returns:
        The saved scroll position, or None when nothing was restored
    """
    snapshot = storage.get_json(constants.KEY_UI_STATE, scope=Scope.SESSION)
    if snapshot is None:
        return None

    if now is None:
        now = now_ms()

    try:
        if now - int(snapshot["timestamp"]) > ttl_seconds * 1000:
            return None

        if snapshot.get("searchTerm"):
            state.set_search_term(snapshot["searchTerm"])
        if snapshot.get("activeTags") is not None:
            state.active_tags = set(snapshot["activeTags"])
        if snapshot.get("collapsedCategories") is not None:
            state.collapsed_categories = set(snapshot["collapsedCategories"])
        if isinstance(snapshot.get("tagSectionExpanded"), bool):
            state.tag_section_expanded = snapshot["tagSectionExpanded"]
        if snapshot.get("currentTheme"):
            state.theme = snapshot["currentTheme"]

        return int(snapshot.get("scrollPosition") or 0)
    except (KeyError, TypeError, ValueError, AttributeError) as e:
        logger.warning(f"Could not restore UI state: {e}")
        return None
    finally:
        storage.remove_item(constants.KEY_UI_STATE, Scope.SESSION)
