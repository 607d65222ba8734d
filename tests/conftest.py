import os
from pathlib import Path
import sys
import pytest

# Ensure src/ is on sys.path for direct test invocation without an editable install
PROJECT_ROOT = Path(__file__).resolve().parents[1]
SRC_PATH = PROJECT_ROOT / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))

# Headless Qt for QTimer-based services
os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

from day_tracker.database_manager import DBConfig, DatabaseManager
from day_tracker.storage import MemoryRecoveryStore


class FakeWallClock:
    """Epoch-ms wall clock that only moves when told to."""

    def __init__(self, start_ms: int = 1_750_000_000_000):
        self.now = start_ms

    def advance(self, ms: int) -> None:
        self.now += ms

    def __call__(self) -> int:
        return self.now


class FakeMonotonic:
    def __init__(self, start: float = 1000.0):
        self.now = start

    def advance(self, ms: float) -> None:
        self.now += ms

    def __call__(self) -> float:
        return self.now


@pytest.fixture()
def db(tmp_path: Path):
    config = DBConfig(path=tmp_path / "test.sqlite")
    manager = DatabaseManager(config)
    manager.init_db()
    yield manager
    manager.close()


@pytest.fixture()
def store():
    return MemoryRecoveryStore()


@pytest.fixture()
def wall():
    return FakeWallClock()


@pytest.fixture()
def mono():
    return FakeMonotonic()


def test_init_idempotent(db: DatabaseManager):
    # Second call should not raise and should not duplicate migrations
    db.init_db()
    rows = db.query_all("SELECT COUNT(*) as c FROM schema_migrations")
    assert rows[0]["c"] == 3
