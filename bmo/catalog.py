"""
Loading of the catalog and pre-seed documents.

The catalog is the read-only set of categories shipped with the organizer;
the optional pre-seed document carries user bookmarks (for instance converted
from a browser) that are merged into the overlay at startup.
"""
import json
import logging
from pathlib import Path
from typing import Optional, Union

from bmo.models import Catalog, UserOverlay

logger = logging.getLogger(__name__)


class CatalogLoadError(Exception):
    """The catalog document is missing or broken."""
    pass


def load_catalog(path: Union[str, Path]) -> Catalog:
    """
    Read the catalog document.

    Args:
        path: JSON file with a top-level ``categories`` list

    Returns:
        Parsed catalog

    Raises:
        CatalogLoadError: file missing, unreadable, not JSON, or without categories
    """
    path = Path(path)
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except FileNotFoundError:
        raise CatalogLoadError(f"Could not load {path} - please ensure the file exists")
    except (OSError, json.JSONDecodeError) as e:
        raise CatalogLoadError(f"Could not load {path}: {e}")

    if not isinstance(data, dict) or not isinstance(data.get("categories"), list):
        raise CatalogLoadError(f"{path} has no 'categories' list")

    try:
        catalog = Catalog.from_dict(data)
    except (TypeError, ValueError, AttributeError) as e:
        raise CatalogLoadError(f"Malformed catalog in {path}: {e}")

    logger.debug(f"Loaded {len(catalog.categories)} categories from {path}")
    return catalog


def load_seed(path: Optional[Union[str, Path]]) -> Optional[UserOverlay]:
    """
    Read an optional pre-seed overlay.

    Returns None when there is no file or when it cannot be parsed.
    """
    if not path:
        return None
    path = Path(path)
    if not path.exists():
        logger.debug(f"No pre-seed file at {path}")
        return None

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        if not isinstance(data, dict) or not isinstance(data.get("categories"), list):
            raise ValueError("missing 'categories' list")
        seed = UserOverlay.from_dict(data)
    except (OSError, json.JSONDecodeError, TypeError, ValueError, AttributeError) as e:
        logger.warning(f"Could not load user bookmarks from {path}: {e}")
        return None

    logger.info(f"Loaded user bookmarks from {path}")
    return seed
