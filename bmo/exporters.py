"""
Export of user data for BMO.

Serializes the user overlay and personal settings (or a selected subset of
them) into a portable JSON document that ``bmo.importers`` can read back.
"""
import copy
import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from bmo import constants
from bmo.models import UserOverlay
from bmo.state import AppState
from bmo.utils import iso_timestamp, ms_to_datetime, now_ms

logger = logging.getLogger(__name__)


@dataclass
class ExportSelection:
    """
    Items picked for a selective export.

    Attributes:
        categories: Ids of user categories to include
        existing_categories: Catalog category ids whose injected bookmarks are included
        settings: Setting groups (favorites, recentVisits, theme, searchHistory, uiPreferences)
    """
    categories: List[str] = field(default_factory=list)
    existing_categories: List[str] = field(default_factory=list)
    settings: List[str] = field(default_factory=list)


def count_bookmarks(user_bookmarks: Dict[str, Any]) -> int:
    """Bookmarks in exported categories plus bookmarks in injected lists."""
    count = 0
    for category in user_bookmarks.get("categories") or []:
        count += len(category.get("bookmarks") or [])
    for bookmarks in (user_bookmarks.get("bookmarksInExistingCategories") or {}).values():
        count += len(bookmarks)
    return count


def bookmarks_for_export(overlay: UserOverlay, now: Optional[int] = None) -> Dict[str, Any]:
    """The whole overlay in export shape."""
    return {
        "version": constants.FORMAT_VERSION,
        "lastModified": now if now is not None else now_ms(),
        **overlay.to_dict(),
    }


def settings_for_export(state: AppState) -> Dict[str, Any]:
    return {
        "favorites": sorted(state.favorites),
        "recentVisits": [v.to_dict() for v in state.recent_visits],
        "theme": state.theme,
        "collapsedCategories": sorted(state.collapsed_categories),
        "activeTags": sorted(state.active_tags),
        "searchHistory": list(state.search_history),
        "tagSectionExpanded": state.tag_section_expanded,
    }


def selective_bookmarks_for_export(overlay: UserOverlay, selection: ExportSelection,
                                   now: Optional[int] = None) -> Dict[str, Any]:
    """Only the selected user categories and non-empty injected lists."""
    exported = {
        "version": constants.FORMAT_VERSION,
        "lastModified": now if now is not None else now_ms(),
        "categories": [],
        "bookmarksInExistingCategories": {},
    }

    for category_id in selection.categories:
        category = overlay.get_category(category_id)
        if category is not None:
            exported["categories"].append(category.to_dict())

    for category_id in selection.existing_categories:
        bookmarks = overlay.bookmarks_in_existing_categories.get(category_id)
        if bookmarks:
            exported["bookmarksInExistingCategories"][category_id] = [b.to_dict() for b in bookmarks]

    return exported


def selective_settings_for_export(state: AppState, groups: List[str]) -> Dict[str, Any]:
    settings = {}
    full = settings_for_export(state)
    for group in groups:
        if group == "uiPreferences":
            settings["collapsedCategories"] = full["collapsedCategories"]
            settings["activeTags"] = full["activeTags"]
            settings["tagSectionExpanded"] = full["tagSectionExpanded"]
        elif group in ("favorites", "recentVisits", "theme", "searchHistory"):
            settings[group] = full[group]
        else:
            logger.warning(f"Unknown setting group: {group}")
    return settings


def generate_export_data(export_type: str, overlay: UserOverlay, state: AppState,
                         selection: Optional[ExportSelection] = None,
                         now: Optional[int] = None) -> Dict[str, Any]:
    """
    Build an export document.

    Args:
        export_type: full, bookmarks, settings or selective
        overlay: User overlay to export
        state: Personal settings to export
        selection: Picked items, for the selective export
        now: Export time in epoch ms

    Returns:
        Export document with ``exportInfo`` and the requested sections

    Raises:
        ValueError: unknown export type
    """
    if export_type not in constants.EXPORT_TYPES:
        raise ValueError(f"Unknown export type: {export_type}")
    if now is None:
        now = now_ms()

    data = {
        "exportInfo": {
            "version": constants.FORMAT_VERSION,
            "exportDate": iso_timestamp(now),
            "exportType": export_type,
            "source": constants.EXPORT_SOURCE,
            "totalBookmarks": 0,
            "totalCategories": 0,
        }
    }

    if export_type in ("full", "bookmarks"):
        data["userBookmarks"] = bookmarks_for_export(overlay, now)

    if export_type in ("full", "settings"):
        data["userSettings"] = settings_for_export(state)

    if export_type == "selective":
        selection = selection or ExportSelection()
        if selection.categories or selection.existing_categories:
            data["userBookmarks"] = selective_bookmarks_for_export(overlay, selection, now)
        if selection.settings:
            data["userSettings"] = selective_settings_for_export(state, selection.settings)

    if "userBookmarks" in data:
        data["exportInfo"]["totalBookmarks"] = count_bookmarks(data["userBookmarks"])
        data["exportInfo"]["totalCategories"] = len(data["userBookmarks"]["categories"])

    return copy.deepcopy(data)


def default_export_filename(now: Optional[int] = None,
                            prefix: str = "bookmarks-export") -> str:
    """e.g. bookmarks-export-2025-07-27.json"""
    if now is None:
        now = now_ms()
    return f"{prefix}-{ms_to_datetime(now).strftime('%Y-%m-%d')}.json"


def export_file(data: Dict[str, Any], path: Path, pretty: bool = True) -> Path:
    """
    Write an export document to disk.

    Args:
        data: Export document
        path: Output file path
        pretty: Indent the JSON
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2 if pretty else None, ensure_ascii=False)

    info = data.get("exportInfo", {})
    logger.info(f"Exported {info.get('totalBookmarks', 0)} bookmarks, "
                f"{info.get('totalCategories', 0)} categories to {path}")
    return path
