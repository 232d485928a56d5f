"""
Search and tag filtering for BMO.

Computes which bookmarks are visible for a search term and a set of active
tags, and projects the working catalog into display sections. The view layer
only renders ``SectionView`` objects; it never feeds state back.
"""
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence, Set

from bmo import constants
from bmo.models import Bookmark, Catalog, VisitRecord


@dataclass
class FilterState:
    """The search term (stored lowercased) and the active tag set."""
    search_term: str = ""
    active_tags: Set[str] = field(default_factory=set)

    @property
    def is_active(self) -> bool:
        return bool(self.search_term) or bool(self.active_tags)


def matches_search(item: Any, term: str) -> bool:
    """
    Case-insensitive substring match over name, description, url and tags.

    Args:
        item: Bookmark or VisitRecord
        term: Search term; empty matches everything
    """
    if not term:
        return True
    fields = [item.name or "", item.description or "", item.url or ""]
    fields.extend(getattr(item, "tags", None) or [])
    return term.lower() in " ".join(fields).lower()


def matches_tags(item: Any, active_tags: Iterable[str]) -> bool:
    """True if no tag is active or the item carries at least one active tag (OR)."""
    active = set(active_tags)
    if not active:
        return True
    return any(tag in active for tag in getattr(item, "tags", None) or [])


def is_visible(item: Any, state: FilterState) -> bool:
    return matches_search(item, state.search_term) and matches_tags(item, state.active_tags)


@dataclass
class SectionView:
    """
    A display section (favorites, recent visits or a category).

    Attributes:
        key: Section id ('favorites', 'recent-visits' or the category id)
        title: Display title
        items: All items in the section, in display order
        visible: Per-item visibility, parallel to ``items``
        hidden: Whole section hidden by the active filter
        badge: Count to show next to the title
        collapsed: Section collapsed by the user
        color: Category color, when the section is a category
    """
    key: str
    title: str
    items: List[Any]
    visible: List[bool]
    hidden: bool
    badge: int
    collapsed: bool = False
    color: str = ""
    is_user_created: bool = False

    @property
    def visible_items(self) -> List[Any]:
        return [item for item, shown in zip(self.items, self.visible) if shown]


def filter_section(key: str, title: str, items: Sequence[Any], state: FilterState,
                   collapsed: bool = False, **extra) -> SectionView:
    """
    Apply the filter to one section.

    A section with at least one item but no visible item is hidden while a
    filter is active. Without an active filter every section is shown and the
    badge counts all items.
    """
    visible = [is_visible(item, state) for item in items]
    visible_count = sum(visible)
    hidden = bool(items) and visible_count == 0 and state.is_active
    badge = visible_count if state.is_active else len(items)
    return SectionView(
        key=key,
        title=title,
        items=list(items),
        visible=visible,
        hidden=hidden,
        badge=badge,
        collapsed=collapsed,
        **extra
    )


def favorite_bookmarks(working: Catalog, favorites: Iterable[str]) -> List[Bookmark]:
    """Favorite bookmarks in working catalog order."""
    favorite_urls = set(favorites)
    return [b for b in working.iter_bookmarks() if b.url in favorite_urls]


def build_view(working: Catalog, favorites: Iterable[str], recent_visits: Sequence[VisitRecord],
               state: FilterState, collapsed: Optional[Iterable[str]] = None) -> List[SectionView]:
    """
    Project the working catalog into filtered display sections.

    Order: favorites (if any), recent visits (if any), then every category.
    """
    collapsed = set(collapsed or ())
    sections = []

    favorite_items = favorite_bookmarks(working, favorites)
    if favorite_items:
        sections.append(filter_section(
            constants.FAVORITES_SECTION, "My Favorites", favorite_items, state,
            collapsed=constants.FAVORITES_SECTION in collapsed,
        ))

    if recent_visits:
        sections.append(filter_section(
            constants.RECENT_VISITS_SECTION, "Recently Visited", list(recent_visits), state,
            collapsed=constants.RECENT_VISITS_SECTION in collapsed,
        ))

    for category in working.categories:
        sections.append(filter_section(
            category.id, category.name, category.bookmarks, state,
            collapsed=category.id in collapsed,
            color=category.color,
            is_user_created=category.is_user_created,
        ))

    return sections


def collect_all_tags(working: Catalog) -> List[str]:
    """Every tag used in the working catalog, sorted."""
    tags = set()
    for bookmark in working.iter_bookmarks():
        tags.update(bookmark.tags)
    return sorted(tags)


def tag_counts(working: Catalog) -> Dict[str, int]:
    """Number of bookmarks carrying each tag."""
    counts = Counter()
    for bookmark in working.iter_bookmarks():
        counts.update(bookmark.tags)
    return dict(counts)
