"""
Import of BMO export documents.

An import is validated completely before anything changes. Conflicts with
existing data (a category with the same name, a bookmark with the same url)
are resolved with one policy chosen for the whole import.
"""
import copy
import json
import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Union

from bmo import constants
from bmo.models import Bookmark, Category, UserOverlay, VisitRecord
from bmo.recent import merge_visits
from bmo.state import AppState
from bmo.storage import Scope, Storage
from bmo.store import BookmarkStore
from bmo.utils import generate_category_id, now_ms

logger = logging.getLogger(__name__)


class ImportFormatError(Exception):
    """The file is not a readable BMO export document."""
    pass


class ConflictPolicy(str, Enum):
    """How conflicting categories and bookmarks are resolved."""
    SKIP = "skip"
    OVERWRITE = "overwrite"
    RENAME = "rename"


@dataclass
class ImportConflict:
    """
    A conflict found before importing.

    Attributes:
        kind: "category" or "bookmark"
        name: Name of the importing item
        url: Url of the importing bookmark (bookmark conflicts only)
    """
    kind: str
    name: str
    url: Optional[str] = None

    def __str__(self):
        if self.kind == "category":
            return f'Category "{self.name}" already exists'
        return f'Bookmark "{self.name}" ({self.url}) already exists'


@dataclass
class ImportResult:
    """Counters of one import."""
    bookmarks_imported: int = 0
    categories_imported: int = 0
    bookmarks_skipped: int = 0
    categories_skipped: int = 0
    settings_imported: bool = False


def is_valid_export_format(data: Any) -> bool:
    """Check the shape of an export document."""
    if not isinstance(data, dict):
        return False

    info = data.get("exportInfo")
    if not isinstance(info, dict) or not info.get("version") or not info.get("source"):
        return False

    if "userBookmarks" not in data and "userSettings" not in data:
        return False

    if "userBookmarks" in data:
        bookmarks = data["userBookmarks"]
        if not isinstance(bookmarks, dict):
            return False
        version = bookmarks.get("version")
        if not isinstance(version, str) or not version:
            return False
        if not isinstance(bookmarks.get("categories"), list):
            return False
        if not isinstance(bookmarks.get("bookmarksInExistingCategories"), dict):
            return False

    return True


def read_import_file(path: Union[str, Path]) -> Dict[str, Any]:
    """
    Read and validate an export document.

    Raises:
        ImportFormatError: wrong extension, unreadable file, bad JSON or bad shape
    """
    path = Path(path)
    if path.suffix.lower() != ".json":
        raise ImportFormatError("Please select a valid JSON file")

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except OSError as e:
        raise ImportFormatError(f"Error reading file: {e}")
    except json.JSONDecodeError as e:
        raise ImportFormatError(f"Error parsing JSON file: {e}")

    parse_import_document(data)

    logger.debug(f"Read import document {path}")
    return data


def _check_strings(values, what: str) -> None:
    if not all(isinstance(v, str) for v in values):
        raise TypeError(f"{what} must be strings")


def _import_overlay(document: Dict[str, Any]) -> UserOverlay:
    user_bookmarks = document.get("userBookmarks")
    if not user_bookmarks:
        return UserOverlay()
    try:
        overlay = UserOverlay.from_dict(user_bookmarks)
        _check_strings((c.name for c in overlay.categories), "category names")
        for bookmark in overlay.iter_bookmarks():
            _check_strings((bookmark.name, bookmark.url), "bookmark names and urls")
            _check_strings(bookmark.tags, "tags")
    except (TypeError, ValueError, AttributeError) as e:
        raise ImportFormatError(f"Invalid bookmark data in import file: {e}") from e
    return overlay


def parse_import_document(document: Any) -> UserOverlay:
    """
    Validate an export document and parse its bookmarks.

    Raises:
        ImportFormatError: bad document shape or malformed categories and bookmarks
    """
    if not is_valid_export_format(document):
        raise ImportFormatError("Invalid file format. Please select a valid bookmark export file.")
    return _import_overlay(document)


def iter_import_bookmarks(document: Dict[str, Any]) -> Iterator[Bookmark]:
    """All bookmarks of a document: inside its categories and in its injected lists."""
    yield from _import_overlay(document).iter_bookmarks()


def check_import_conflicts(document: Dict[str, Any], store: BookmarkStore) -> List[ImportConflict]:
    """
    List the conflicts an import would run into.

    Categories conflict by case-insensitive name with existing user
    categories; bookmarks conflict by url with anything already stored.
    """
    conflicts = []
    incoming = _import_overlay(document)
    existing_names = {c.name.lower() for c in store.overlay.categories}

    for category in incoming.categories:
        if category.name.lower() in existing_names:
            conflicts.append(ImportConflict(kind="category", name=category.name))

    for bookmark in incoming.iter_bookmarks():
        if store.is_duplicate_url(bookmark.url):
            conflicts.append(ImportConflict(kind="bookmark", name=bookmark.name, url=bookmark.url))

    return conflicts


def _find_category_index(overlay: UserOverlay, name: str) -> Optional[int]:
    name = name.lower()
    for index, category in enumerate(overlay.categories):
        if category.name.lower() == name:
            return index
    return None


class _Importer:
    """Applies one document to a store and state under a single policy."""

    def __init__(self, policy: ConflictPolicy, store: BookmarkStore, state: AppState, now: int):
        self.policy = policy
        self.store = store
        self.state = state
        self.now = now
        self.result = ImportResult()

    def resolve_bookmark(self, bookmark: Bookmark) -> Optional[Bookmark]:
        """Apply the policy to one bookmark. Returns the bookmark to add, or None."""
        bookmark = copy.deepcopy(bookmark)
        if self.store.is_duplicate_url(bookmark.url):
            if self.policy == ConflictPolicy.SKIP:
                logger.warning(f"Skipping duplicate bookmark {bookmark.url}")
                self.result.bookmarks_skipped += 1
                return None
            if self.policy == ConflictPolicy.OVERWRITE:
                self.store.remove_bookmark_by_url(bookmark.url)
                self.state.favorites.discard(bookmark.url)
            elif self.policy == ConflictPolicy.RENAME:
                bookmark.name = f"{bookmark.name}{constants.IMPORTED_SUFFIX}"

        bookmark.is_user_created = True
        bookmark.date_added = self.now
        self.result.bookmarks_imported += 1
        return bookmark

    def import_category(self, incoming: Category) -> None:
        overlay = self.store.overlay
        index = _find_category_index(overlay, incoming.name)

        category = Category(
            id=generate_category_id(self.now),
            name=incoming.name,
            description=incoming.description,
            color=incoming.color,
            is_user_created=True,
            extra=copy.deepcopy(incoming.extra),
        )

        if index is not None:
            if self.policy == ConflictPolicy.SKIP:
                logger.warning(f"Skipping existing category {incoming.name}")
                self.result.categories_skipped += 1
                return
            if self.policy == ConflictPolicy.OVERWRITE:
                category.id = overlay.categories[index].id
                overlay.categories[index] = category
            else:
                category.name = f"{incoming.name}{constants.IMPORTED_SUFFIX}"
                overlay.categories.append(category)
        else:
            overlay.categories.append(category)

        self.result.categories_imported += 1

        # Bookmarks are added one by one so later ones see earlier ones as duplicates
        for bookmark in incoming.bookmarks:
            resolved = self.resolve_bookmark(bookmark)
            if resolved is not None:
                category.bookmarks.append(resolved)

    def import_existing(self, category_id: str, bookmarks: List[Bookmark]) -> None:
        for bookmark in bookmarks:
            resolved = self.resolve_bookmark(bookmark)
            if resolved is not None:
                self.store.overlay.bookmarks_in_existing_categories.setdefault(
                    category_id, []).append(resolved)


def import_settings(settings: Dict[str, Any], policy: ConflictPolicy, state: AppState,
                    default_theme: str = constants.DEFAULT_THEME,
                    visits_limit: int = constants.DEFAULT_IMPORTED_VISITS_LIMIT,
                    history_limit: int = constants.DEFAULT_SEARCH_HISTORY_LIMIT) -> bool:
    """
    Merge imported settings into the state.

    Settings are merged, never replaced: sets are unioned, visits keep the
    later record per url, and the theme only changes under ``overwrite`` or
    while the current theme is still the default.

    Returns:
        True if a settings block was processed
    """
    if not isinstance(settings, dict):
        return False

    favorites = settings.get("favorites")
    if isinstance(favorites, list):
        state.favorites |= {f for f in favorites if isinstance(f, str)}

    visits = settings.get("recentVisits")
    if isinstance(visits, list):
        try:
            imported = [VisitRecord.from_dict(v) for v in visits]
        except (TypeError, ValueError, AttributeError) as e:
            logger.warning(f"Skipping imported recent visits: {e}")
        else:
            state.recent_visits = merge_visits(state.recent_visits, imported, visits_limit)

    theme = settings.get("theme")
    if isinstance(theme, str) and theme:
        if policy == ConflictPolicy.OVERWRITE or state.theme == default_theme:
            state.theme = theme

    history = settings.get("searchHistory")
    if isinstance(history, list):
        merged = list(dict.fromkeys(state.search_history + [h for h in history if isinstance(h, str)]))
        state.search_history = merged[:history_limit]

    collapsed = settings.get("collapsedCategories")
    if isinstance(collapsed, list):
        state.collapsed_categories |= {c for c in collapsed if isinstance(c, str)}

    active_tags = settings.get("activeTags")
    if isinstance(active_tags, list):
        state.active_tags |= {t for t in active_tags if isinstance(t, str)}

    expanded = settings.get("tagSectionExpanded")
    if isinstance(expanded, bool):
        state.tag_section_expanded = expanded

    return True


def execute_import(document: Dict[str, Any], policy: Union[ConflictPolicy, str],
                   store: BookmarkStore, state: AppState,
                   default_theme: str = constants.DEFAULT_THEME,
                   now: Optional[int] = None,
                   visits_limit: int = constants.DEFAULT_IMPORTED_VISITS_LIMIT,
                   history_limit: int = constants.DEFAULT_SEARCH_HISTORY_LIMIT) -> ImportResult:
    """
    Import a validated document into the store overlay and the state.

    Nothing is persisted here; the caller saves the store and the state.

    Args:
        document: Export document
        policy: Conflict policy for the whole import
        store: Target bookmark store
        state: Target application state
        default_theme: Factory default theme
        now: Import time in epoch ms, stamped as ``dateAdded``
        visits_limit: Cap of the merged recent visits
        history_limit: Cap of the merged search history

    Returns:
        Import counters

    Raises:
        ImportFormatError: the document is not a valid export document
    """
    incoming = parse_import_document(document)
    policy = ConflictPolicy(policy)
    importer = _Importer(policy, store, state, now if now is not None else now_ms())

    for category in incoming.categories:
        importer.import_category(category)

    for category_id, bookmarks in incoming.bookmarks_in_existing_categories.items():
        importer.import_existing(category_id, bookmarks)

    result = importer.result
    if "userSettings" in document:
        result.settings_imported = import_settings(
            document["userSettings"], policy, state, default_theme, visits_limit, history_limit)

    store.refresh()
    logger.info(f"Imported {result.bookmarks_imported} bookmarks, "
                f"{result.categories_imported} categories "
                f"({result.bookmarks_skipped} bookmarks, {result.categories_skipped} categories skipped)")
    return result


def create_import_backup(storage: Storage, overlay: UserOverlay, state: AppState,
                         now: Optional[int] = None) -> Dict[str, Any]:
    """Write a pre-import snapshot to session storage."""
    backup = {
        "timestamp": now if now is not None else now_ms(),
        "userBookmarks": overlay.copy().to_dict(),
        "favorites": sorted(state.favorites),
        "recentVisits": [v.to_dict() for v in state.recent_visits],
        "theme": state.theme,
        "collapsedCategories": sorted(state.collapsed_categories),
        "activeTags": sorted(state.active_tags),
        "searchHistory": list(state.search_history),
        "tagSectionExpanded": state.tag_section_expanded,
    }
    storage.set_json(constants.KEY_IMPORT_BACKUP, backup, Scope.SESSION)
    logger.debug("Saved pre-import backup")
    return backup
