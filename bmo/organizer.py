"""
The bookmark organizer.

``Organizer`` ties the engines together: it owns the bookmark store and the
application state, persists every mutation immediately, and drives the
debounced search and the smart refresh. Front ends (the CLI, or any other
view) call its methods and render the returned ``SectionView`` lists.
"""
import logging
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

from bmo.catalog import load_catalog, load_seed
from bmo.config import BmoConfig, get_config
from bmo.exporters import ExportSelection, default_export_filename, export_file, generate_export_data
from bmo.filters import SectionView, build_view, collect_all_tags, tag_counts
from bmo.importers import (
    ConflictPolicy, ImportConflict, ImportResult,
    check_import_conflicts, create_import_backup, execute_import,
    parse_import_document, read_import_file,
)
from bmo.models import Bookmark, Catalog, Category, SupportType, UserOverlay, VisitRecord
from bmo.recent import track_visit
from bmo.scheduler import Debouncer, SmartRefresh
from bmo.search import Suggestion, add_to_search_history, generate_suggestions
from bmo.state import AppState, PreferenceStore, restore_ui_state, ui_snapshot
from bmo.storage import Storage, get_storage
from bmo.store import BookmarkStore
from bmo.utils import now_ms

logger = logging.getLogger(__name__)


class Organizer:
    """
    Application facade over the catalog, the user overlay and personal state.

    Args:
        catalog: Read-only catalog
        storage: Key-value storage for both scopes
        config: Configuration (defaults to the global one)
        timer_factory: Timer factory for the debounce and refresh tasks
    """

    def __init__(self, catalog: Catalog, storage: Storage, config: Optional[BmoConfig] = None,
                 timer_factory=threading.Timer):
        self.config = config or get_config()
        self.storage = storage
        self.store = BookmarkStore(catalog, storage)
        self.preferences = PreferenceStore(storage)
        self.state = AppState(theme=self.config.default_theme)
        self.scroll_position = 0

        self._debouncer = Debouncer(
            self.set_search,
            delay=self.config.search_debounce_ms / 1000,
            timer_factory=timer_factory,
        )
        self._smart_refresh = SmartRefresh(
            storage,
            snapshot=lambda: ui_snapshot(self.state, self.scroll_position),
            on_refresh=self.reload,
            delay=self.config.refresh_delay_seconds,
            timer_factory=timer_factory,
        )

    @classmethod
    def open(cls, catalog_path: Optional[Union[str, Path]] = None,
             seed_path: Optional[Union[str, Path]] = None,
             storage: Optional[Storage] = None,
             config: Optional[BmoConfig] = None, **kwargs) -> "Organizer":
        """
        Load the catalog, the stored state and the optional pre-seed file.

        Raises:
            CatalogLoadError: the catalog cannot be loaded
        """
        config = config or get_config()
        catalog = load_catalog(catalog_path or config.catalog_path)
        organizer = cls(catalog, storage or get_storage(), config, **kwargs)
        organizer.load()

        seed = load_seed(seed_path or config.seed_path)
        if seed is not None:
            organizer.store.merge_seed(seed)

        return organizer

    def load(self) -> None:
        """Read the overlay and the personal state from storage."""
        self.store.load()
        self.state = self.preferences.load(
            default_theme=self.config.default_theme,
            retention_days=self.config.recent_visits_retention_days,
        )

    def reload(self) -> Optional[int]:
        """Reload everything from storage and restore the saved UI state."""
        self.load()
        return self.restore_ui_state()

    def refresh(self) -> Catalog:
        return self.store.refresh()

    @property
    def working(self) -> Catalog:
        return self.store.working

    @property
    def overlay(self) -> UserOverlay:
        return self.store.overlay

    # ----- view -----

    def view(self) -> List[SectionView]:
        """Display sections for the current filter."""
        return build_view(
            self.store.working,
            self.state.favorites,
            self.state.recent_visits,
            self.state.filter,
            self.state.collapsed_categories,
        )

    def all_tags(self) -> List[str]:
        return collect_all_tags(self.store.working)

    def tag_counts(self) -> Dict[str, int]:
        return tag_counts(self.store.working)

    def favorites(self) -> List[Bookmark]:
        return [b for b in self.store.working.iter_bookmarks() if b.url in self.state.favorites]

    def recent_visits(self) -> List[VisitRecord]:
        return list(self.state.recent_visits)

    # ----- search and filters -----

    def set_search(self, term: str) -> None:
        self.state.set_search_term(term)

    def type_search(self, term: str) -> None:
        """Debounced search input: only the last term within the window is applied."""
        self._debouncer(term)

    def search(self, term: str) -> List[SectionView]:
        """Apply a search term now and record it in the history."""
        self.set_search(term)
        history = add_to_search_history(
            self.state.search_history, term.strip(),
            limit=self.config.search_history_limit,
            min_length=self.config.search_min_length,
        )
        if history != self.state.search_history:
            self.state.search_history = history
            self.preferences.save(self.state, "search_history")
        return self.view()

    def suggestions(self, query: str) -> List[Suggestion]:
        if len(query) < 2:
            return []
        return generate_suggestions(
            query, self.state.search_history, self.store.working,
            self.all_tags(), limit=self.config.suggestion_limit,
        )

    def toggle_tag(self, tag: str) -> bool:
        active = self.state.toggle_tag(tag)
        self.preferences.save(self.state, "active_tags")
        return active

    def clear_tags(self) -> None:
        self.state.clear_tags()
        self.preferences.save(self.state, "active_tags")

    def toggle_tag_section(self) -> bool:
        self.state.tag_section_expanded = not self.state.tag_section_expanded
        self.preferences.save(self.state, "tag_section_expanded")
        return self.state.tag_section_expanded

    # ----- personal state -----

    def toggle_favorite(self, url: str) -> bool:
        favorite = self.state.toggle_favorite(url)
        self.preferences.save(self.state, "favorites")
        return favorite

    def toggle_category(self, category_id: str) -> bool:
        collapsed = self.state.toggle_category(category_id)
        self.preferences.save(self.state, "collapsed_categories")
        return collapsed

    def change_theme(self, theme: str) -> None:
        self.state.theme = theme
        self.preferences.save(self.state, "theme")

    def track_visit(self, url: str, now: Optional[int] = None) -> List[VisitRecord]:
        """
        Record that the bookmark at ``url`` was opened.

        Raises:
            KeyError: no bookmark has this url
        """
        bookmark = self.store.find_by_url(url)
        if bookmark is None:
            raise KeyError(f"No bookmark with url {url}")
        self.state.recent_visits = track_visit(
            self.state.recent_visits, bookmark, now=now,
            limit=self.config.recent_visits_limit,
        )
        self.preferences.save(self.state, "recent_visits")
        return self.state.recent_visits

    def dispatch_help(self, url: str) -> Optional[SupportType]:
        return self.store.dispatch_help(url)

    # ----- bookmarks -----

    def add_bookmark(self, name: str, url: str, category: str, **kwargs) -> Bookmark:
        """
        Add a user bookmark. See ``BookmarkStore.add_bookmark``.

        Raises:
            BookmarkValidationError: invalid or duplicate input
        """
        return self.store.add_bookmark(name, url, category, **kwargs)

    def create_category(self, name: str, color: str = "") -> Category:
        category = self.store.create_category(name, color)
        self.store.refresh()
        return category

    # ----- export / import -----

    def export(self, export_type: str = "full", selection: Optional[ExportSelection] = None,
               now: Optional[int] = None) -> Dict[str, Any]:
        return generate_export_data(export_type, self.store.overlay, self.state, selection, now)

    def write_export(self, path: Optional[Union[str, Path]] = None, export_type: str = "full",
                     selection: Optional[ExportSelection] = None, pretty: Optional[bool] = None,
                     now: Optional[int] = None) -> Path:
        """Export to a file; the default name carries the export date."""
        if now is None:
            now = now_ms()
        if path is None:
            path = Path.cwd() / default_export_filename(now, self.config.export_filename_prefix)
        data = self.export(export_type, selection, now)
        return export_file(data, Path(path), self.config.export_pretty if pretty is None else pretty)

    def preview_import(self, path: Union[str, Path]) -> Tuple[Dict[str, Any], List[ImportConflict]]:
        """
        Read an import file and list its conflicts without changing anything.

        Raises:
            ImportFormatError: the file is not a valid export document
        """
        document = read_import_file(path)
        return document, check_import_conflicts(document, self.store)

    def import_document(self, document: Dict[str, Any],
                        policy: Union[ConflictPolicy, str] = ConflictPolicy.SKIP,
                        now: Optional[int] = None) -> ImportResult:
        """
        Import an export document.

        A backup of the current data is written to session storage before
        anything changes; the result is persisted immediately.

        Raises:
            ImportFormatError: the document is not valid; nothing is changed
            ValueError: unknown conflict policy
        """
        parse_import_document(document)
        policy = ConflictPolicy(policy)

        create_import_backup(self.storage, self.store.overlay, self.state, now)
        result = execute_import(
            document, policy, self.store, self.state,
            default_theme=self.config.default_theme,
            now=now,
            visits_limit=self.config.imported_visits_limit,
            history_limit=self.config.search_history_limit,
        )

        self.store.save()
        self.preferences.save(self.state)
        self.store.refresh()
        return result

    # ----- smart refresh -----

    def schedule_refresh(self, scroll_position: int = 0) -> None:
        self.scroll_position = scroll_position
        self._smart_refresh.schedule()

    def cancel_refresh(self) -> None:
        self._smart_refresh.cancel()

    @property
    def refresh_pending(self) -> bool:
        return self._smart_refresh.pending

    def restore_ui_state(self, now: Optional[int] = None) -> Optional[int]:
        """Apply a recent UI snapshot, if any. Returns the saved scroll position."""
        position = restore_ui_state(
            self.storage, self.state, now=now,
            ttl_seconds=self.config.ui_state_ttl_seconds,
        )
        if position is not None:
            self.scroll_position = position
        return position

    # ----- reset -----

    def clear_all_data(self) -> None:
        """Remove the overlay and every personal setting."""
        self._debouncer.cancel()
        self._smart_refresh.cancel()
        self.preferences.clear()
        self.store.overlay = UserOverlay()
        self.store.refresh()
        self.state = AppState(theme=self.config.default_theme)
        logger.info("Cleared all user data")
