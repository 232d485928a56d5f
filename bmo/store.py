"""
Bookmark store for BMO.

Owns the read-only catalog, the user overlay and the merged working catalog,
and is the single deduplication gate for adds and imports.
"""
import logging
from typing import Any, Dict, List, Optional

from bmo import constants
from bmo.merge import merge_overlays, merge_user_bookmarks, orphaned_category_ids
from bmo.models import Bookmark, Catalog, Category, SupportType, UserOverlay
from bmo.storage import Storage
from bmo.utils import generate_category_id, is_valid_url, now_ms

logger = logging.getLogger(__name__)

NEW_CATEGORY = "new"


class BookmarkValidationError(ValueError):
    """Raised when a bookmark cannot be added. ``errors`` maps field name to message."""

    def __init__(self, errors: Dict[str, str]):
        self.errors = errors
        super().__init__("; ".join(f"{field}: {message}" for field, message in errors.items()))


def is_duplicate_url(url: str, catalog: Catalog, overlay: UserOverlay) -> bool:
    """
    Check whether a url already exists anywhere.

    Looks in the catalog, in user categories and in the bookmarks injected
    into catalog categories. Comparison is exact and case-sensitive.
    """
    if any(b.url == url for b in catalog.iter_bookmarks()):
        return True
    return any(b.url == url for b in overlay.iter_bookmarks())


class BookmarkStore:
    """
    Catalog plus user overlay, with a derived working catalog.

    The catalog is never modified. The overlay is persisted to storage after
    every mutation made through this class.
    """

    def __init__(self, catalog: Catalog, storage: Optional[Storage] = None):
        self.catalog = catalog
        self.storage = storage
        self.overlay = UserOverlay()
        self.working = merge_user_bookmarks(catalog, self.overlay)

    # ----- persistence -----

    def load(self) -> UserOverlay:
        """
        Load the overlay from storage.

        Unparseable or malformed data resets the overlay to empty.
        """
        data = self.storage.get_json(constants.KEY_USER_DATA) if self.storage else None
        if data is None:
            self.overlay = UserOverlay()
        else:
            try:
                if not isinstance(data, dict):
                    raise TypeError(f"expected an object, got {type(data).__name__}")
                self.overlay = UserOverlay.from_dict(data)
            except (TypeError, ValueError, AttributeError) as e:
                logger.warning(f"Could not parse user bookmarks data: {e}")
                self.overlay = UserOverlay()

        for category in self.overlay.categories:
            category.is_user_created = True

        self.refresh()
        return self.overlay

    def save(self) -> None:
        """Persist the overlay with version and modification time."""
        if self.storage is None:
            return
        data = {
            "version": constants.FORMAT_VERSION,
            "lastModified": now_ms(),
            **self.overlay.to_dict(),
        }
        self.storage.set_json(constants.KEY_USER_DATA, data)

    def refresh(self) -> Catalog:
        """Rebuild the working catalog."""
        self.working = merge_user_bookmarks(self.catalog, self.overlay)
        return self.working

    # ----- lookups -----

    def is_duplicate_url(self, url: str) -> bool:
        return is_duplicate_url(url, self.catalog, self.overlay)

    def find_by_url(self, url: str) -> Optional[Bookmark]:
        """Find a bookmark in the working catalog."""
        for bookmark in self.working.iter_bookmarks():
            if bookmark.url == url:
                return bookmark
        return None

    def dispatch_help(self, url: str) -> Optional[SupportType]:
        """Resolve which help flow applies to the bookmark at ``url``."""
        bookmark = self.find_by_url(url)
        if bookmark is None:
            return None
        return bookmark.support

    def user_category(self, category_id: str) -> Optional[Category]:
        return self.overlay.get_category(category_id)

    def has_category(self, category_id: str) -> bool:
        """True if bookmarks can be added to this catalog or user category."""
        return (self.catalog.get_category(category_id) is not None
                or self.user_category(category_id) is not None)

    def category_choices(self) -> List[Category]:
        """Categories a bookmark can be added to: catalog first, then user categories."""
        return list(self.working.categories)

    def orphaned_category_ids(self) -> List[str]:
        return orphaned_category_ids(self.catalog, self.overlay)

    # ----- mutations -----

    def validate_bookmark_data(self, data: Dict[str, Any]) -> Dict[str, str]:
        """
        Validate a bookmark about to be added.

        Returns:
            Mapping of field name to error message; empty when valid
        """
        errors = {}
        name = (data.get("name") or "").strip()
        url = (data.get("url") or "").strip()

        if not name:
            errors["name"] = "Name is required"

        if not url:
            errors["url"] = "URL is required"
        elif not is_valid_url(url):
            errors["url"] = "Please enter a valid URL"
        elif self.is_duplicate_url(url):
            errors["url"] = "This URL already exists in your bookmarks"

        category = data.get("category")
        if not category or (category != NEW_CATEGORY and not self.has_category(category)):
            errors["category"] = "Please select a category"

        return errors

    def create_category(self, name: str, color: str = "", save: bool = True) -> Category:
        """Create an empty user category."""
        name = name.strip()
        if not name:
            raise BookmarkValidationError({"newCategoryName": "Please enter a name for the new category"})
        category = Category(
            id=generate_category_id(),
            name=name,
            description=f"Custom category: {name}",
            color=color,
            is_user_created=True,
        )
        self.overlay.categories.append(category)
        if save:
            self.save()
        return category

    def add_bookmark(self, name: str, url: str, category: str, description: str = "",
                     tags: Optional[List[str]] = None, logo: str = "",
                     support_type: str = SupportType.HELP.value, type: str = "web",
                     new_category_name: Optional[str] = None,
                     new_category_color: str = "") -> Bookmark:
        """
        Add a user bookmark.

        Args:
            name: Display name
            url: Absolute url, must not exist yet
            category: Target category id, or ``"new"`` to create one
            description: Optional description
            tags: Tag list
            logo: Optional logo url
            support_type: Help flow identifier
            type: "web" or "desktop"
            new_category_name: Name of the category created when category is "new"
            new_category_color: Color of that category

        Returns:
            The stored bookmark

        Raises:
            BookmarkValidationError: if any field is invalid; nothing is changed
        """
        data = {"name": name, "url": url, "category": category}
        errors = self.validate_bookmark_data(data)
        if category == NEW_CATEGORY and not (new_category_name or "").strip():
            errors["newCategoryName"] = "Please enter a name for the new category"
        if errors:
            raise BookmarkValidationError(errors)

        if category == NEW_CATEGORY:
            category = self.create_category(new_category_name, new_category_color, save=False).id

        bookmark = Bookmark(
            name=name.strip(),
            url=url.strip(),
            description=(description or "").strip(),
            tags=[t.strip() for t in tags or [] if t and t.strip()],
            logo=(logo or "").strip(),
            type=type or "web",
            support_type=support_type or SupportType.HELP.value,
            is_user_created=True,
            date_added=now_ms(),
        )

        user_category = self.user_category(category)
        if user_category is not None:
            user_category.bookmarks.append(bookmark)
        else:
            self.overlay.bookmarks_in_existing_categories.setdefault(category, []).append(bookmark)

        self.save()
        self.refresh()
        logger.info(f"Added bookmark {bookmark.url} to {category}")
        return bookmark

    def remove_bookmark_by_url(self, url: str) -> int:
        """
        Remove a url from every overlay location.

        Returns:
            Number of bookmarks removed
        """
        removed = 0
        for category in self.overlay.categories:
            before = len(category.bookmarks)
            category.bookmarks = [b for b in category.bookmarks if b.url != url]
            removed += before - len(category.bookmarks)

        for category_id, bookmarks in self.overlay.bookmarks_in_existing_categories.items():
            kept = [b for b in bookmarks if b.url != url]
            removed += len(bookmarks) - len(kept)
            self.overlay.bookmarks_in_existing_categories[category_id] = kept

        return removed

    def merge_seed(self, seed: UserOverlay) -> UserOverlay:
        """Merge a pre-seed overlay into the current one and persist it."""
        self.overlay = merge_overlays(self.overlay, seed)
        self.save()
        self.refresh()
        return self.overlay
