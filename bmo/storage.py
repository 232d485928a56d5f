"""
Key-value storage for BMO.

Provides typed JSON get/set over two scopes backed by SQLAlchemy:

- LOCAL: a database file (SQLite by default) that survives restarts
- SESSION: an in-memory SQLite database that lives as long as the Storage object

Corrupt values never propagate: ``get_json`` logs a warning and falls back to
the caller's default.
"""
import copy
import json
import logging
from contextlib import contextmanager
from enum import Enum
from pathlib import Path
from typing import Any, Generator, List, Optional

from sqlalchemy import create_engine, select, delete, event
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import NullPool, StaticPool

from bmo.config import get_config
from bmo.models import Base, StorageEntry

logger = logging.getLogger(__name__)


class Scope(str, Enum):
    """Lifetime of a stored value."""
    LOCAL = "local"
    SESSION = "session"


class Storage:
    """
    Minimal key-value interface over SQLAlchemy.

    Values are stored as JSON text; ``get_item``/``set_item`` work on the raw
    text, ``get_json``/``set_json`` encode and decode.
    """

    def __init__(self, path: Optional[str] = None, url: Optional[str] = None):
        """
        Initialize storage engines.

        Args:
            path: Database file path (for SQLite). Uses config default if not provided.
            url: Full database URL (overrides path).

        Examples:
            Storage()  # Uses config default
            Storage(path="bmo.db")  # SQLite file
            Storage(url="sqlite://")  # Throwaway in-memory store
        """
        config = get_config()

        if url:
            self.url = url
            self.path = None
        elif path:
            self.path = Path(path)
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.url = f"sqlite:///{self.path}"
        else:
            self.url = config.get_database_url()
            if config.is_sqlite() and not config.database_url:
                self.path = config.get_database_path()
                self.path.parent.mkdir(parents=True, exist_ok=True)
            else:
                self.path = None

        if self.url in ("sqlite://", "sqlite:///:memory:"):
            self.engine = self._memory_engine(config.database_echo)
        elif self.url.startswith("sqlite:"):
            self.engine = create_engine(
                self.url,
                connect_args={"check_same_thread": False},
                poolclass=NullPool,
                echo=config.database_echo
            )
            event.listen(self.engine, "connect", self._configure_sqlite)
        else:
            self.engine = create_engine(self.url, pool_pre_ping=True, echo=config.database_echo)

        # Session scope never touches disk
        self.session_engine = self._memory_engine(config.database_echo)

        self._factories = {
            Scope.LOCAL: sessionmaker(bind=self.engine, autoflush=False),
            Scope.SESSION: sessionmaker(bind=self.session_engine, autoflush=False),
        }

        Base.metadata.create_all(self.engine)
        Base.metadata.create_all(self.session_engine)

    @staticmethod
    def _memory_engine(echo: bool):
        # StaticPool keeps a single connection so the in-memory database persists
        return create_engine(
            "sqlite://",
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
            echo=echo
        )

    @staticmethod
    def _configure_sqlite(dbapi_conn, connection_record):
        """Configure SQLite for small, frequent writes."""
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA journal_mode = WAL")
        cursor.execute("PRAGMA synchronous = NORMAL")
        cursor.close()

    @contextmanager
    def session(self, scope: Scope = Scope.LOCAL) -> Generator[Session, None, None]:
        """
        Context manager for storage sessions.

        Yields:
            SQLAlchemy session with automatic commit/rollback
        """
        session = self._factories[Scope(scope)]()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def get_item(self, key: str, scope: Scope = Scope.LOCAL) -> Optional[str]:
        """Return the raw stored text for a key, or None if missing."""
        with self.session(scope) as session:
            entry = session.get(StorageEntry, key)
            return entry.value if entry is not None else None

    def set_item(self, key: str, value: str, scope: Scope = Scope.LOCAL) -> None:
        """Store raw text under a key, replacing any previous value."""
        with self.session(scope) as session:
            entry = session.get(StorageEntry, key)
            if entry is None:
                session.add(StorageEntry(key=key, value=value))
            else:
                entry.value = value
        logger.debug(f"Stored {key} ({scope.value if isinstance(scope, Scope) else scope})")

    def remove_item(self, key: str, scope: Scope = Scope.LOCAL) -> None:
        with self.session(scope) as session:
            session.execute(delete(StorageEntry).where(StorageEntry.key == key))

    def keys(self, scope: Scope = Scope.LOCAL) -> List[str]:
        with self.session(scope) as session:
            return list(session.scalars(select(StorageEntry.key).order_by(StorageEntry.key)))

    def clear(self, scope: Scope = Scope.LOCAL) -> None:
        """Remove every key in a scope."""
        with self.session(scope) as session:
            session.execute(delete(StorageEntry))

    def get_json(self, key: str, default: Any = None, scope: Scope = Scope.LOCAL) -> Any:
        """
        Load and decode a JSON value.

        Args:
            key: Storage key
            default: Returned (as a copy) when the key is missing or corrupt
            scope: Storage scope

        Returns:
            Decoded value or a copy of the default
        """
        raw = self.get_item(key, scope)
        if raw is None:
            return copy.deepcopy(default)
        try:
            return json.loads(raw)
        except (json.JSONDecodeError, TypeError) as e:
            logger.warning(f"Could not parse saved {key}: {e}")
            return copy.deepcopy(default)

    def set_json(self, key: str, value: Any, scope: Scope = Scope.LOCAL) -> None:
        """Encode a value as JSON and store it."""
        self.set_item(key, json.dumps(value, ensure_ascii=False), scope)

    def close(self) -> None:
        self.engine.dispose()
        self.session_engine.dispose()


# Global storage instance
_storage: Optional[Storage] = None


def get_storage(path: Optional[str] = None, reload: bool = False) -> Storage:
    """
    Get the global storage instance.

    Args:
        path: Database file path
        reload: Force new connection

    Returns:
        Storage instance
    """
    global _storage
    if _storage is None or reload or path:
        _storage = Storage(path)
    return _storage
