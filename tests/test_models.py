"""
Tests for bmo/models.py dataclasses and the support type variant.
"""
import pytest

from bmo.models import Bookmark, Catalog, Category, SupportType, UserOverlay, VisitRecord


class TestSupportType:
    """Test support type parsing."""

    @pytest.mark.parametrize("value,expected", [
        ("help", SupportType.HELP),
        ("split-help", SupportType.SPLIT_HELP),
        ("approval-process", SupportType.APPROVAL_PROCESS),
        ("ticket", SupportType.SPLIT_HELP),
        ("popup", SupportType.HELP),
        ("none", SupportType.HELP),
        (None, SupportType.HELP),
        ("", SupportType.HELP),
    ])
    def test_parse(self, value, expected):
        """Known and legacy values should map onto the variants."""
        assert SupportType.parse(value) is expected

    def test_unknown_falls_back_to_help(self, caplog):
        """Unknown values should fall back to HELP with a warning."""
        assert SupportType.parse("carrier-pigeon") is SupportType.HELP
        assert "carrier-pigeon" in caplog.text

    def test_bookmark_support_property(self):
        """Bookmark.support should parse the raw value."""
        assert Bookmark(name="a", url="u", support_type="ticket").support is SupportType.SPLIT_HELP


class TestBookmark:
    """Test bookmark conversion."""

    def test_from_dict_defaults(self):
        """Missing fields should get defaults."""
        bookmark = Bookmark.from_dict({"name": "A", "url": "https://a.com"})
        assert bookmark.description == ""
        assert bookmark.tags == []
        assert bookmark.type == "web"
        assert bookmark.support_type is None
        assert bookmark.is_user_created is False

    def test_to_dict_omits_unset_optionals(self):
        """supportType, isUserCreated and dateAdded should only appear when set."""
        data = Bookmark(name="A", url="https://a.com").to_dict()
        assert "supportType" not in data
        assert "isUserCreated" not in data
        assert "dateAdded" not in data

    def test_unknown_keys_survive(self):
        """Keys the model does not know should be preserved."""
        data = {"name": "A", "url": "https://a.com", "custom": {"x": 1}}
        assert Bookmark.from_dict(data).to_dict()["custom"] == {"x": 1}

    def test_camel_case_fields(self):
        """User fields should use the document's camelCase names."""
        bookmark = Bookmark.from_dict({
            "name": "A", "url": "https://a.com",
            "supportType": "help", "isUserCreated": True, "dateAdded": 123,
        })
        assert bookmark.is_user_created is True
        assert bookmark.date_added == 123
        data = bookmark.to_dict()
        assert data["isUserCreated"] is True
        assert data["dateAdded"] == 123
        assert data["supportType"] == "help"


class TestCatalog:
    """Test catalog helpers."""

    def test_from_dict(self, catalog):
        """Categories and bookmarks should be parsed in order."""
        assert [c.id for c in catalog.categories] == ["drivers", "tools"]
        assert len(list(catalog.iter_bookmarks())) == 5
        assert catalog.settings == {"title": "Test Catalog"}

    def test_get_category(self, catalog):
        """Lookup by id should work and return None for unknown ids."""
        assert catalog.get_category("tools").name == "Tools"
        assert catalog.get_category("nope") is None


class TestUserOverlay:
    """Test the overlay model."""

    def test_empty(self):
        """A new overlay should be empty."""
        overlay = UserOverlay()
        assert overlay.is_empty()
        assert overlay.bookmark_count() == 0

    def test_round_trip(self):
        """to_dict/from_dict should preserve structure."""
        data = {
            "categories": [{
                "id": "user-1-abc", "name": "Mine", "description": "", "color": "",
                "isUserCreated": True,
                "bookmarks": [{"name": "A", "url": "https://a.com", "isUserCreated": True}],
            }],
            "bookmarksInExistingCategories": {
                "tools": [{"name": "B", "url": "https://b.com", "isUserCreated": True}],
            },
        }
        overlay = UserOverlay.from_dict(data)
        assert overlay.bookmark_count() == 2
        assert not overlay.is_empty()
        assert UserOverlay.from_dict(overlay.to_dict()) == overlay

    def test_empty_injected_lists_count_as_empty(self):
        """An overlay with only empty injected lists should be empty."""
        assert UserOverlay(bookmarks_in_existing_categories={"tools": []}).is_empty()

    def test_copy_is_deep(self):
        """Copies should not share bookmark lists."""
        overlay = UserOverlay(categories=[Category(id="c", name="C")])
        clone = overlay.copy()
        clone.categories[0].bookmarks.append(Bookmark(name="A", url="u"))
        assert overlay.categories[0].bookmarks == []


class TestVisitRecord:
    """Test visit records."""

    def test_from_dict_defaults_first_visited(self):
        """firstVisited should default to lastVisited."""
        visit = VisitRecord.from_dict({"url": "u", "lastVisited": 50})
        assert visit.first_visited == 50
        assert visit.count == 1

    def test_visit_records_have_no_tags(self):
        """Visit records carry no tags."""
        assert VisitRecord(url="u").tags == []

    def test_to_dict(self):
        """Visit records should serialize with camelCase keys."""
        data = VisitRecord(url="u", name="n", count=2, first_visited=1, last_visited=2).to_dict()
        assert data == {"url": "u", "name": "n", "description": "", "count": 2,
                        "firstVisited": 1, "lastVisited": 2}
