"""
Search history and autocomplete suggestions.
"""
from dataclasses import dataclass
from typing import List, Sequence

from bmo import constants
from bmo.models import Catalog


@dataclass
class Suggestion:
    text: str
    type: str  # Recent search, Bookmark, Description match, Tag


def add_to_search_history(history: Sequence[str], term: str,
                          limit: int = constants.DEFAULT_SEARCH_HISTORY_LIMIT,
                          min_length: int = constants.DEFAULT_SEARCH_MIN_LENGTH) -> List[str]:
    """
    Record a search term, most recent first.

    Terms shorter than ``min_length`` are ignored. A repeated term moves to
    the front instead of appearing twice.

    Returns:
        New history list
    """
    if not term or len(term) < min_length:
        return list(history)
    updated = [t for t in history if t != term]
    updated.insert(0, term)
    return updated[:limit]


def generate_suggestions(query: str, history: Sequence[str], working: Catalog,
                         all_tags: Sequence[str],
                         limit: int = constants.DEFAULT_SUGGESTION_LIMIT) -> List[Suggestion]:
    """
    Build autocomplete suggestions for a partial query.

    Sources, in order: past searches containing the query, bookmark names
    matching by name or by description, then tags. Duplicate texts keep their
    first occurrence.
    """
    query_lower = query.lower()
    suggestions = []

    for term in history:
        if query_lower in term.lower() and term != query:
            suggestions.append(Suggestion(term, "Recent search"))

    for bookmark in working.iter_bookmarks():
        if query_lower in bookmark.name.lower():
            suggestions.append(Suggestion(bookmark.name, "Bookmark"))
        if (query_lower in bookmark.description.lower()
                and not any(s.text == bookmark.name for s in suggestions)):
            suggestions.append(Suggestion(bookmark.name, "Description match"))

    for tag in all_tags:
        if query_lower in tag.lower():
            suggestions.append(Suggestion(tag, "Tag"))

    seen = set()
    unique = []
    for suggestion in suggestions:
        if suggestion.text not in seen:
            seen.add(suggestion.text)
            unique.append(suggestion)

    return unique[:limit]
