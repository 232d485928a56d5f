import pytest
import json
import os
import shutil
import tempfile

from bmo import config as bmo_config
from bmo import storage as bmo_storage
from bmo.config import BmoConfig
from bmo.models import Catalog
from bmo.organizer import Organizer
from bmo.state import AppState
from bmo.storage import Storage
from bmo.store import BookmarkStore


@pytest.fixture(autouse=True)
def reset_singletons(monkeypatch):
    """Drop the global config and storage between tests and hide BMO_ variables."""
    for key in list(os.environ.keys()):
        if key.startswith("BMO_"):
            monkeypatch.delenv(key, raising=False)

    bmo_config._config = None
    bmo_storage._storage = None
    yield
    if bmo_storage._storage is not None:
        bmo_storage._storage.close()
    bmo_config._config = None
    bmo_storage._storage = None


@pytest.fixture
def clean_bmo_env(monkeypatch, tmp_path):
    """
    Fixture to create a clean BMO environment without affecting real config.

    Sets HOME to a temp directory and runs the test from tmp_path.
    """
    mock_home = tmp_path / "home"
    mock_home.mkdir()
    monkeypatch.setenv("HOME", str(mock_home))
    monkeypatch.chdir(tmp_path)

    return tmp_path


@pytest.fixture
def temp_db():
    """Create a temporary database file."""
    temp_dir = tempfile.mkdtemp(prefix="bmo_test_db_")
    db_path = os.path.join(temp_dir, "test.db")
    yield db_path
    # Cleanup
    shutil.rmtree(temp_dir)


@pytest.fixture
def storage():
    """Throwaway in-memory storage."""
    s = Storage(url="sqlite://")
    yield s
    s.close()


@pytest.fixture
def sample_catalog_data():
    """A small catalog document."""
    return {
        "categories": [
            {
                "id": "drivers",
                "name": "Drivers & Support",
                "description": "Vendor support sites",
                "color": "#2563eb",
                "bookmarks": [
                    {
                        "name": "Lenovo Support",
                        "url": "https://support.lenovo.com",
                        "description": "Drivers and manuals for ThinkPads",
                        "tags": ["drivers", "support"],
                        "logo": "",
                        "supportType": "help",
                    },
                    {
                        "name": "HP Support",
                        "url": "https://support.hp.com",
                        "description": "HP drivers",
                        "tags": ["drivers"],
                        "logo": "",
                        "supportType": "ticket",
                    },
                ],
            },
            {
                "id": "tools",
                "name": "Tools",
                "description": "Internal tools",
                "color": "#16a34a",
                "bookmarks": [
                    {
                        "name": "Service Desk",
                        "url": "https://servicedesk.example.com",
                        "description": "Open a ticket",
                        "tags": ["support", "tickets"],
                        "logo": "",
                        "supportType": "split-help",
                    },
                    {
                        "name": "Access Request",
                        "url": "https://access.example.com",
                        "description": "Request application access",
                        "tags": ["access"],
                        "logo": "",
                        "type": "desktop",
                        "supportType": "approval-process",
                    },
                    {
                        "name": "Wiki",
                        "url": "https://wiki.example.com",
                        "description": "Team knowledge base",
                        "tags": [],
                        "logo": "",
                    },
                ],
            },
        ],
        "settings": {"title": "Test Catalog"},
    }


@pytest.fixture
def catalog(sample_catalog_data):
    return Catalog.from_dict(sample_catalog_data)


@pytest.fixture
def catalog_file(tmp_path, sample_catalog_data):
    """Catalog document written to disk."""
    path = tmp_path / "bookmarks.json"
    path.write_text(json.dumps(sample_catalog_data), encoding="utf-8")
    return path


@pytest.fixture
def store(catalog, storage):
    s = BookmarkStore(catalog, storage)
    s.load()
    return s


@pytest.fixture
def state():
    return AppState()


class FakeTimer:
    """``threading.Timer`` stand-in that only runs when fired by the test."""

    def __init__(self, interval, function):
        self.interval = interval
        self.function = function
        self.daemon = False
        self.started = False
        self.cancelled = False
        self.fired = False

    def start(self):
        self.started = True

    def cancel(self):
        self.cancelled = True

    def fire(self):
        if self.started and not self.cancelled and not self.fired:
            self.fired = True
            self.function()


class FakeTimers:
    """Timer factory recording every timer it creates."""

    def __init__(self):
        self.created = []

    def __call__(self, interval, function):
        timer = FakeTimer(interval, function)
        self.created.append(timer)
        return timer

    @property
    def active(self):
        return [t for t in self.created if t.started and not t.cancelled and not t.fired]

    def with_interval(self, interval):
        return [t for t in self.active if t.interval == interval]


@pytest.fixture
def timers():
    return FakeTimers()


@pytest.fixture
def organizer(catalog, storage, timers):
    """Organizer over the sample catalog with manual timers."""
    org = Organizer(catalog, storage, BmoConfig(), timer_factory=timers)
    org.load()
    return org
