"""
Tests for bmo/organizer.py - the application facade.
"""
import json

import pytest

from bmo import constants
from bmo.catalog import CatalogLoadError
from bmo.config import BmoConfig
from bmo.exporters import ExportSelection
from bmo.importers import ImportFormatError
from bmo.models import SupportType
from bmo.organizer import Organizer
from bmo.state import save_ui_state
from bmo.storage import Scope
from bmo.store import BookmarkValidationError
from bmo.utils import now_ms


class TestOpen:
    """Test opening an organizer."""

    def test_open_loads_catalog(self, catalog_file, storage):
        """open should load the catalog and stored state."""
        storage.set_json(constants.KEY_THEME, "dark")
        organizer = Organizer.open(catalog_file, storage=storage, config=BmoConfig())
        assert organizer.state.theme == "dark"
        assert len(list(organizer.working.iter_bookmarks())) == 5

    def test_open_missing_catalog(self, tmp_path, storage):
        """A missing catalog should raise CatalogLoadError."""
        with pytest.raises(CatalogLoadError):
            Organizer.open(tmp_path / "missing.json", storage=storage, config=BmoConfig())

    def test_open_merges_seed(self, catalog_file, tmp_path, storage):
        """A pre-seed file should be merged and persisted."""
        seed = tmp_path / "user-bookmarks.json"
        seed.write_text(json.dumps({
            "categories": [],
            "bookmarksInExistingCategories": {"tools": [{"name": "Seeded", "url": "https://seeded.com"}]},
        }), encoding="utf-8")

        organizer = Organizer.open(catalog_file, seed, storage=storage, config=BmoConfig())
        assert organizer.store.find_by_url("https://seeded.com") is not None

        again = Organizer.open(catalog_file, seed, storage=storage, config=BmoConfig())
        seeded = [b for b in again.working.iter_bookmarks() if b.url == "https://seeded.com"]
        assert len(seeded) == 1


class TestPersistence:
    """Every mutation should persist immediately."""

    def test_state_changes_persist(self, organizer, catalog, storage):
        """Favorites, tags, categories and theme should survive a reload."""
        organizer.toggle_favorite("https://support.hp.com")
        organizer.toggle_tag("drivers")
        organizer.toggle_category("tools")
        organizer.change_theme("dark")
        organizer.toggle_tag_section()

        fresh = Organizer(catalog, storage, BmoConfig())
        fresh.load()
        assert fresh.state.favorites == {"https://support.hp.com"}
        assert fresh.state.active_tags == {"drivers"}
        assert "tools" in fresh.state.collapsed_categories
        assert fresh.state.theme == "dark"
        assert fresh.state.tag_section_expanded is True

    def test_add_bookmark_persists(self, organizer, catalog, storage):
        """Added bookmarks should survive a reload."""
        organizer.add_bookmark("Mine", "https://mine.example.com", "new", new_category_name="Team")

        fresh = Organizer(catalog, storage, BmoConfig())
        fresh.load()
        assert [c.name for c in fresh.overlay.categories] == ["Team"]

    def test_add_to_unknown_category_rejected(self, organizer):
        """A mistyped category should be rejected instead of hiding the bookmark."""
        with pytest.raises(BookmarkValidationError):
            organizer.add_bookmark("Docs", "https://docs.example.com", "no-such-category")
        assert organizer.store.find_by_url("https://docs.example.com") is None
        organizer.add_bookmark("Docs", "https://docs.example.com", "tools")
        assert organizer.store.find_by_url("https://docs.example.com") is not None

    def test_add_duplicate_rejected(self, organizer):
        """Duplicates should be rejected without changes."""
        with pytest.raises(BookmarkValidationError):
            organizer.add_bookmark("Dup", "https://support.hp.com", "tools")
        assert organizer.overlay.is_empty()

    def test_create_category_visible(self, organizer):
        """A created category should show up in the view."""
        category = organizer.create_category("Team", "#fff")
        assert organizer.view()[-1].key == category.id


class TestViewAndSearch:
    """Test filtering through the organizer."""

    def test_view_with_favorite(self, organizer):
        """Favorites should appear first."""
        organizer.toggle_favorite("https://wiki.example.com")
        sections = organizer.view()
        assert sections[0].key == "favorites"
        assert [b.name for b in organizer.favorites()] == ["Wiki"]

    def test_search_records_history(self, organizer):
        """search should filter and record the term."""
        sections = organizer.search("Lenovo")
        visible = [b.name for s in sections for b in s.visible_items]
        assert visible == ["Lenovo Support"]
        assert organizer.state.search_history == ["Lenovo"]
        assert organizer.storage.get_json(constants.KEY_SEARCH_HISTORY) == ["Lenovo"]

    def test_type_search_is_debounced(self, organizer, timers):
        """Only the last typed term should be applied."""
        organizer.type_search("h")
        organizer.type_search("hp")
        assert organizer.state.search_term == ""

        timers.active[0].fire()
        assert organizer.state.search_term == "hp"

    def test_clear_tags(self, organizer):
        """clear_tags should empty the tag filter."""
        organizer.toggle_tag("drivers")
        organizer.clear_tags()
        assert all(not s.hidden for s in organizer.view())

    def test_suggestions(self, organizer):
        """Suggestions should need at least two characters."""
        assert organizer.suggestions("w") == []
        assert [s.text for s in organizer.suggestions("wik")] == ["Wiki"]


class TestVisitsAndHelp:
    """Test visit tracking and help dispatch."""

    def test_track_visit(self, organizer, catalog, storage):
        """Visits should be recorded and persisted."""
        organizer.track_visit("https://wiki.example.com")
        organizer.track_visit("https://wiki.example.com")

        assert organizer.recent_visits()[0].count == 2
        fresh = Organizer(catalog, storage, BmoConfig())
        fresh.load()
        assert fresh.recent_visits()[0].url == "https://wiki.example.com"

    def test_track_unknown_visit(self, organizer):
        """Unknown urls should raise KeyError."""
        with pytest.raises(KeyError):
            organizer.track_visit("https://unknown.example.com")

    def test_dispatch_help(self, organizer):
        """Legacy support types should dispatch to the mapped flow."""
        assert organizer.dispatch_help("https://support.hp.com") is SupportType.SPLIT_HELP


class TestExportImport:
    """Test export and import through the organizer."""

    def test_write_export_default_name(self, organizer, clean_bmo_env):
        """Without a path, the export should use the dated default name."""
        path = organizer.write_export(now=1753611300123)
        assert path.name == "bookmarks-export-2025-07-27.json"
        assert json.loads(path.read_text(encoding="utf-8"))["exportInfo"]["exportType"] == "full"

    def test_selective_export(self, organizer):
        """Selective exports should pass the selection through."""
        organizer.toggle_favorite("https://wiki.example.com")
        data = organizer.export("selective", ExportSelection(settings=["favorites"]))
        assert data["userSettings"] == {"favorites": ["https://wiki.example.com"]}

    def test_import_round_trip(self, organizer, tmp_path):
        """Re-importing an export under skip should change nothing."""
        organizer.add_bookmark("Mine", "https://mine.example.com", "tools")
        path = organizer.write_export(tmp_path / "export.json")

        document, conflicts = organizer.preview_import(path)
        assert [c.url for c in conflicts] == ["https://mine.example.com"]

        result = organizer.import_document(document, "skip")
        assert result.bookmarks_imported == 0
        assert organizer.overlay.bookmark_count() == 1

    def test_import_writes_backup_and_persists(self, organizer, catalog, storage):
        """An import should back up first and persist the result."""
        organizer.toggle_favorite("https://wiki.example.com")
        document = {
            "exportInfo": {"version": "1.0", "source": "BMO Bookmark Organizer"},
            "userBookmarks": {"version": "1.0", "categories": [],
                              "bookmarksInExistingCategories": {
                                  "tools": [{"name": "New", "url": "https://new.example.com"}]}},
            "userSettings": {"favorites": ["https://new.example.com"]},
        }
        organizer.import_document(document, "skip")

        backup = storage.get_json(constants.KEY_IMPORT_BACKUP, scope=Scope.SESSION)
        assert backup["favorites"] == ["https://wiki.example.com"]
        assert backup["userBookmarks"]["bookmarksInExistingCategories"] == {}

        fresh = Organizer(catalog, storage, BmoConfig())
        fresh.load()
        assert fresh.store.find_by_url("https://new.example.com") is not None
        assert fresh.state.favorites == {"https://wiki.example.com", "https://new.example.com"}

    def test_invalid_import_changes_nothing(self, organizer, storage):
        """An invalid document should leave no backup and no changes."""
        with pytest.raises(ImportFormatError):
            organizer.import_document({"exportInfo": {"version": "1.0"}}, "skip")
        assert storage.get_json(constants.KEY_IMPORT_BACKUP, scope=Scope.SESSION) is None
        assert organizer.overlay.is_empty()

    @pytest.mark.parametrize("user_bookmarks", [
        {"version": "1.0", "categories": [None], "bookmarksInExistingCategories": {}},
        {"version": "1.0", "categories": [], "bookmarksInExistingCategories": {"tools": "oops"}},
        {"version": "1.0", "categories": [],
         "bookmarksInExistingCategories": {"tools": [{"name": "X", "url": "https://x.com", "tags": 5}]}},
    ])
    def test_malformed_items_change_nothing(self, organizer, storage, user_bookmarks):
        """Broken bookmarks in a valid outline should be rejected before the backup."""
        organizer.toggle_favorite("https://wiki.example.com")
        document = {
            "exportInfo": {"version": "1.0", "source": "BMO Bookmark Organizer"},
            "userBookmarks": user_bookmarks,
            "userSettings": {"favorites": ["https://x.com"]},
        }
        with pytest.raises(ImportFormatError):
            organizer.import_document(document, "skip")

        assert storage.get_json(constants.KEY_IMPORT_BACKUP, scope=Scope.SESSION) is None
        assert organizer.overlay.is_empty()
        assert organizer.state.favorites == {"https://wiki.example.com"}


class TestSmartRefresh:
    """Test the refresh lifecycle."""

    def test_refresh_restores_ui_state(self, organizer, timers):
        """After the countdown, the organizer should reload and restore the UI state."""
        organizer.set_search("lenovo")
        organizer.toggle_tag("drivers")
        organizer.schedule_refresh(scroll_position=300)
        assert organizer.refresh_pending

        organizer.state.set_search_term("")
        timers.with_interval(10)[0].fire()

        assert organizer.state.search_term == "lenovo"
        assert organizer.scroll_position == 300
        assert not organizer.refresh_pending

    def test_cancel_refresh_removes_snapshot(self, organizer, storage, timers):
        """Cancelling should remove the snapshot and stop the timers."""
        organizer.schedule_refresh()
        organizer.cancel_refresh()
        assert storage.get_json(constants.KEY_UI_STATE, scope=Scope.SESSION) is None
        assert timers.active == []

    def test_restore_ui_state_on_start(self, organizer, storage):
        """A recent snapshot should be applied once."""
        organizer.state.set_search_term("wiki")
        save_ui_state(storage, organizer.state, scroll_position=5, now=now_ms())
        organizer.state.set_search_term("")

        assert organizer.restore_ui_state() == 5
        assert organizer.state.search_term == "wiki"
        assert organizer.restore_ui_state() is None


class TestClearAllData:
    """Test the full reset."""

    def test_clear_all_data(self, organizer, catalog, storage):
        """Everything personal should be gone, in memory and in storage."""
        organizer.add_bookmark("Mine", "https://mine.example.com", "tools")
        organizer.toggle_favorite("https://wiki.example.com")
        organizer.change_theme("dark")
        storage.set_json(constants.KEY_IMPORT_BACKUP, {}, Scope.SESSION)

        organizer.clear_all_data()

        assert organizer.overlay.is_empty()
        assert organizer.state.theme == "eco-lime"
        assert storage.keys() == []
        assert storage.keys(Scope.SESSION) == []

        fresh = Organizer(catalog, storage, BmoConfig())
        fresh.load()
        assert fresh.state.favorites == set()
        assert fresh.overlay.is_empty()
