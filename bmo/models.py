"""
Models for BMO bookmark management.

This module defines the SQLAlchemy schema of the key-value storage table and
the plain dataclasses used by the engines: bookmarks, categories, the
read-only catalog, the user overlay and visit records.

The dataclasses convert to and from the camelCase JSON documents used for
persistence and export. Keys they do not know about are kept in ``extra`` so
that documents survive a load/save round trip unchanged.
"""
import copy
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional

from sqlalchemy import String, Text, DateTime
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""
    pass


class StorageEntry(Base):
    """
    A single JSON-encoded value in the key-value store.

    Attributes:
        key: Storage key (e.g. 'favorites', 'user-data')
        value: JSON-encoded value, stored verbatim
        updated_at: Last write timestamp
    """
    __tablename__ = 'storage_entries'

    key: Mapped[str] = mapped_column(String(256), primary_key=True)
    value: Mapped[str] = mapped_column(Text, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc)
    )

    def __repr__(self):
        return f"<StorageEntry(key='{self.key}', size={len(self.value or '')})>"


class SupportType(Enum):
    """How a bookmark's help/support flow is presented."""
    HELP = "help"
    SPLIT_HELP = "split-help"
    APPROVAL_PROCESS = "approval-process"

    @classmethod
    def parse(cls, value: Optional[str]) -> "SupportType":
        """
        Resolve a raw ``supportType`` value.

        Legacy values are mapped onto the current variants; anything unknown
        falls back to HELP.
        """
        if not value:
            return cls.HELP
        for member in cls:
            if member.value == value:
                return member
        legacy = _LEGACY_SUPPORT_TYPES.get(value)
        if legacy is not None:
            return legacy
        logger.warning(f"Unknown support type: {value}, falling back to help")
        return cls.HELP


_LEGACY_SUPPORT_TYPES = {
    "ticket": SupportType.SPLIT_HELP,
    "popup": SupportType.HELP,
    "none": SupportType.HELP,
}


def _split_extra(data: Dict[str, Any], known: tuple) -> Dict[str, Any]:
    return {k: copy.deepcopy(v) for k, v in data.items() if k not in known}


@dataclass
class Bookmark:
    """A link in the catalog or in the user overlay. ``url`` is the unique key."""
    name: str
    url: str
    description: str = ""
    tags: List[str] = field(default_factory=list)
    logo: str = ""
    type: str = "web"  # web, desktop
    support_type: Optional[str] = None
    is_user_created: bool = False
    date_added: Optional[int] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    _KEYS = ("name", "url", "description", "tags", "logo", "type",
             "supportType", "isUserCreated", "dateAdded")

    @property
    def support(self) -> SupportType:
        return SupportType.parse(self.support_type)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Bookmark":
        return cls(
            name=data.get("name") or "",
            url=data.get("url") or "",
            description=data.get("description") or "",
            tags=list(data.get("tags") or []),
            logo=data.get("logo") or "",
            type=data.get("type") or "web",
            support_type=data.get("supportType"),
            is_user_created=bool(data.get("isUserCreated", False)),
            date_added=data.get("dateAdded"),
            extra=_split_extra(data, cls._KEYS),
        )

    def to_dict(self) -> Dict[str, Any]:
        data = copy.deepcopy(self.extra)
        data.update({
            "name": self.name,
            "url": self.url,
            "description": self.description,
            "tags": list(self.tags),
            "logo": self.logo,
            "type": self.type,
        })
        if self.support_type is not None:
            data["supportType"] = self.support_type
        if self.is_user_created:
            data["isUserCreated"] = True
        if self.date_added is not None:
            data["dateAdded"] = self.date_added
        return data


@dataclass
class Category:
    """An ordered group of bookmarks with a stable id."""
    id: str
    name: str
    description: str = ""
    color: str = ""
    is_user_created: bool = False
    bookmarks: List[Bookmark] = field(default_factory=list)
    extra: Dict[str, Any] = field(default_factory=dict)

    _KEYS = ("id", "name", "description", "color", "isUserCreated", "bookmarks")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Category":
        return cls(
            id=str(data.get("id") or ""),
            name=data.get("name") or "",
            description=data.get("description") or "",
            color=data.get("color") or "",
            is_user_created=bool(data.get("isUserCreated", False)),
            bookmarks=[Bookmark.from_dict(b) for b in data.get("bookmarks") or []],
            extra=_split_extra(data, cls._KEYS),
        )

    def to_dict(self) -> Dict[str, Any]:
        data = copy.deepcopy(self.extra)
        data.update({
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "color": self.color,
        })
        if self.is_user_created:
            data["isUserCreated"] = True
        data["bookmarks"] = [b.to_dict() for b in self.bookmarks]
        return data


@dataclass
class Catalog:
    """Ordered categories plus the optional settings block of the catalog document."""
    categories: List[Category] = field(default_factory=list)
    settings: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Catalog":
        return cls(
            categories=[Category.from_dict(c) for c in data.get("categories") or []],
            settings=copy.deepcopy(data.get("settings") or {}),
        )

    def to_dict(self) -> Dict[str, Any]:
        data = {"categories": [c.to_dict() for c in self.categories]}
        if self.settings:
            data["settings"] = copy.deepcopy(self.settings)
        return data

    def get_category(self, category_id: str) -> Optional[Category]:
        for category in self.categories:
            if category.id == category_id:
                return category
        return None

    def iter_bookmarks(self) -> Iterator[Bookmark]:
        for category in self.categories:
            yield from category.bookmarks


@dataclass
class UserOverlay:
    """
    All user-owned additions to the catalog.

    Attributes:
        categories: Categories created by the user, in creation order
        bookmarks_in_existing_categories: Bookmarks the user added to catalog
            categories, keyed by catalog category id
    """
    categories: List[Category] = field(default_factory=list)
    bookmarks_in_existing_categories: Dict[str, List[Bookmark]] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "UserOverlay":
        injected = data.get("bookmarksInExistingCategories") or {}
        return cls(
            categories=[Category.from_dict(c) for c in data.get("categories") or []],
            bookmarks_in_existing_categories={
                str(category_id): [Bookmark.from_dict(b) for b in bookmarks or []]
                for category_id, bookmarks in injected.items()
            },
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "categories": [c.to_dict() for c in self.categories],
            "bookmarksInExistingCategories": {
                category_id: [b.to_dict() for b in bookmarks]
                for category_id, bookmarks in self.bookmarks_in_existing_categories.items()
            },
        }

    def copy(self) -> "UserOverlay":
        return copy.deepcopy(self)

    def get_category(self, category_id: str) -> Optional[Category]:
        for category in self.categories:
            if category.id == category_id:
                return category
        return None

    def iter_bookmarks(self) -> Iterator[Bookmark]:
        for category in self.categories:
            yield from category.bookmarks
        for bookmarks in self.bookmarks_in_existing_categories.values():
            yield from bookmarks

    def bookmark_count(self) -> int:
        return sum(1 for _ in self.iter_bookmarks())

    def is_empty(self) -> bool:
        return not self.categories and not any(self.bookmarks_in_existing_categories.values())


@dataclass
class VisitRecord:
    """A recency/frequency tracked visit of a bookmark. Timestamps are epoch ms."""
    url: str
    name: str = ""
    description: str = ""
    count: int = 1
    first_visited: int = 0
    last_visited: int = 0

    @property
    def tags(self) -> List[str]:
        # Visit records carry no tags, so any active tag filter hides them
        return []

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "VisitRecord":
        last_visited = int(data.get("lastVisited") or 0)
        return cls(
            url=data.get("url") or "",
            name=data.get("name") or "",
            description=data.get("description") or "",
            count=int(data.get("count") or 1),
            first_visited=int(data.get("firstVisited") or last_visited),
            last_visited=last_visited,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "url": self.url,
            "name": self.name,
            "description": self.description,
            "count": self.count,
            "firstVisited": self.first_visited,
            "lastVisited": self.last_visited,
        }
