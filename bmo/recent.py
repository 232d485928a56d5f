"""
Recently visited bookmarks.

A small, bounded list of visit records ranked by recency, with a visit count
per url. All functions return new lists.
"""
from typing import Any, Iterable, List, Optional, Sequence

from bmo import constants
from bmo.models import VisitRecord
from bmo.utils import now_ms


def track_visit(visits: Sequence[VisitRecord], bookmark: Any, now: Optional[int] = None,
                limit: int = constants.DEFAULT_RECENT_VISITS_LIMIT) -> List[VisitRecord]:
    """
    Record a visit to a bookmark.

    A known url has its count bumped and its last visit moved to ``now``; a
    new url gets a fresh record at the front. The list is then ordered most
    recent first and capped at ``limit``, evicting the oldest entries.

    Args:
        visits: Current visit records
        bookmark: Anything with url, name and description
        now: Visit time in epoch ms (defaults to the current time)
        limit: Maximum number of records kept

    Returns:
        New list of visit records
    """
    if now is None:
        now = now_ms()

    updated = [VisitRecord(**vars(v)) for v in visits]
    for visit in updated:
        if visit.url == bookmark.url:
            visit.count += 1
            visit.last_visited = now
            break
    else:
        updated.insert(0, VisitRecord(
            url=bookmark.url,
            name=bookmark.name,
            description=bookmark.description,
            count=1,
            first_visited=now,
            last_visited=now,
        ))

    # sort is stable, so a new entry stays ahead of others with the same time
    updated.sort(key=lambda v: v.last_visited, reverse=True)
    return updated[:limit]


def prune_visits(visits: Iterable[VisitRecord], now: Optional[int] = None,
                 retention_days: int = constants.DEFAULT_RETENTION_DAYS) -> List[VisitRecord]:
    """Drop visits whose last visit is older than the retention window."""
    if now is None:
        now = now_ms()
    cutoff = now - retention_days * constants.MS_PER_DAY
    return [v for v in visits if v.last_visited > cutoff]


def merge_visits(current: Sequence[VisitRecord], imported: Iterable[VisitRecord],
                 limit: int = constants.DEFAULT_IMPORTED_VISITS_LIMIT) -> List[VisitRecord]:
    """
    Merge imported visit records into the current ones.

    For a url present in both, the record with the later last visit wins.
    """
    merged = list(current)
    for visit in imported:
        for index, existing in enumerate(merged):
            if existing.url == visit.url:
                if visit.last_visited > existing.last_visited:
                    merged[index] = visit
                break
        else:
            merged.append(visit)

    merged.sort(key=lambda v: v.last_visited, reverse=True)
    return merged[:limit]


def time_ago(timestamp: int, now: Optional[int] = None) -> str:
    """Short relative time label."""
    if now is None:
        now = now_ms()
    minutes = (now - timestamp) // 60000
    hours = minutes // 60
    days = hours // 24

    if minutes < 1:
        return "Just now"
    if minutes < 60:
        return f"{minutes}m ago"
    if hours < 24:
        return f"{hours}h ago"
    return f"{days}d ago"
