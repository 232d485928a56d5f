"""
Bookmark merging operations for BMO.

This module builds the working catalog from the read-only catalog and the
user overlay, and merges overlay documents into each other. All functions
return fresh objects; their inputs are never mutated.
"""

import copy
import logging
from typing import List

from bmo.models import Catalog, UserOverlay

logger = logging.getLogger(__name__)


def strip_user_entries(catalog: Catalog) -> Catalog:
    """
    Undo a previous merge.

    Removes user-created bookmarks from every category, then removes
    user-created categories.

    Args:
        catalog: Catalog or a previously merged working catalog

    Returns:
        A copy holding catalog data only
    """
    stripped = copy.deepcopy(catalog)
    for category in stripped.categories:
        category.bookmarks = [b for b in category.bookmarks if not b.is_user_created]
    stripped.categories = [c for c in stripped.categories if not c.is_user_created]
    return stripped


def orphaned_category_ids(catalog: Catalog, overlay: UserOverlay) -> List[str]:
    """
    Find injected bookmark lists whose category is not in the catalog.

    Such bookmarks stay in the overlay but never show up in the working catalog.
    """
    known = {c.id for c in catalog.categories if not c.is_user_created}
    return [
        category_id
        for category_id, bookmarks in overlay.bookmarks_in_existing_categories.items()
        if bookmarks and category_id not in known
    ]


def merge_user_bookmarks(catalog: Catalog, overlay: UserOverlay) -> Catalog:
    """
    Produce the working catalog from catalog and overlay.

    Steps:
    1. Drop user-created bookmarks from catalog categories
    2. Drop user-created categories
    3. Append injected bookmarks to the category they are keyed by
    4. Append user categories in overlay order

    Merging an already merged catalog with the same overlay gives the same
    result, because every copied overlay entry is flagged as user-created and
    is stripped again by steps 1 and 2.

    Args:
        catalog: Read-only catalog (or a previous merge result)
        overlay: User overlay

    Returns:
        New working catalog
    """
    working = strip_user_entries(catalog)

    for category in working.categories:
        injected = overlay.bookmarks_in_existing_categories.get(category.id)
        if injected:
            additions = copy.deepcopy(injected)
            for bookmark in additions:
                bookmark.is_user_created = True
            category.bookmarks = category.bookmarks + additions

    for orphan in orphaned_category_ids(working, overlay):
        logger.warning(f"User bookmarks reference missing category '{orphan}' and will not be shown")

    if overlay.categories:
        user_categories = copy.deepcopy(overlay.categories)
        for category in user_categories:
            category.is_user_created = True
            for bookmark in category.bookmarks:
                bookmark.is_user_created = True
        working.categories = working.categories + user_categories

    return working


def merge_overlays(base: UserOverlay, incoming: UserOverlay) -> UserOverlay:
    """
    Merge a pre-seed overlay into an existing one.

    Categories are deduplicated by id (existing wins), injected bookmarks by
    url within their category list (existing wins).

    Args:
        base: Current overlay
        incoming: Overlay to merge in

    Returns:
        New merged overlay
    """
    merged = base.copy()

    existing_ids = {c.id for c in merged.categories}
    for category in incoming.categories:
        if category.id not in existing_ids:
            added = copy.deepcopy(category)
            added.is_user_created = True
            merged.categories.append(added)
            existing_ids.add(category.id)

    for category_id, bookmarks in incoming.bookmarks_in_existing_categories.items():
        target = merged.bookmarks_in_existing_categories.setdefault(category_id, [])
        urls = {b.url for b in target}
        for bookmark in bookmarks:
            if bookmark.url not in urls:
                target.append(copy.deepcopy(bookmark))
                urls.add(bookmark.url)

    return merged
