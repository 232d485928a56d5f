"""
BMO - Bookmark Organizer

A curated, read-only bookmark catalog combined with a personal overlay of
user categories and bookmarks, with filtering, favorites, recent visits and
JSON export/import.

Design Principles:
- The catalog is never modified; user data lives in a separate overlay
- The working catalog is always rebuilt from catalog + overlay
- Every url exists at most once (except where an import renames it)
- State is an explicit object passed to the engines, persisted per key

Example Usage:
    >>> from bmo import Organizer
    >>> organizer = Organizer.open("bookmarks.json")
    >>> organizer.toggle_tag("drivers")
    >>> sections = organizer.search("lenovo")
    >>> organizer.write_export("backup.json")
"""

__version__ = "1.0.0"
__author__ = "BMO Contributors"

# Storage
from bmo.storage import Storage, Scope, get_storage

# Configuration
from bmo.config import BmoConfig, get_config, init_config

# Models
from bmo.models import Bookmark, Category, Catalog, UserOverlay, VisitRecord, SupportType

# Engines
from bmo.store import BookmarkStore, BookmarkValidationError
from bmo.merge import merge_user_bookmarks
from bmo.filters import FilterState, SectionView, build_view
from bmo.state import AppState

# Import/Export
from bmo.exporters import ExportSelection, generate_export_data, export_file
from bmo.importers import ConflictPolicy, ImportFormatError, execute_import, read_import_file

# Application
from bmo.catalog import CatalogLoadError, load_catalog
from bmo.organizer import Organizer

__all__ = [
    # Storage
    "Storage",
    "Scope",
    "get_storage",
    # Config
    "BmoConfig",
    "get_config",
    "init_config",
    # Models
    "Bookmark",
    "Category",
    "Catalog",
    "UserOverlay",
    "VisitRecord",
    "SupportType",
    # Engines
    "BookmarkStore",
    "BookmarkValidationError",
    "merge_user_bookmarks",
    "FilterState",
    "SectionView",
    "build_view",
    "AppState",
    # Import/Export
    "ExportSelection",
    "generate_export_data",
    "export_file",
    "ConflictPolicy",
    "ImportFormatError",
    "execute_import",
    "read_import_file",
    # Application
    "CatalogLoadError",
    "load_catalog",
    "Organizer",
]
