"""Shared test fixtures for all tests."""

import sys
from pathlib import Path

import pytest

# Add src to path for absolute imports
src_path = str(Path(__file__).parent.parent / "src")
sys.path.insert(0, src_path)

from drivetime import database, observability
from drivetime.models import Artifact


@pytest.fixture(autouse=True)
def isolated_dirs(tmp_path: Path, monkeypatch) -> Path:
    """Point config, data and event logs at a temp directory for every test."""
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))
    monkeypatch.delenv("DRIVETIME_DB_PATH", raising=False)
    monkeypatch.delenv("DRIVETIME_URL", raising=False)
    observability.reset_logger()
    yield tmp_path
    observability.reset_logger()


@pytest.fixture
def test_db(isolated_dirs: Path) -> Path:
    """Create the database where Storage() looks by default."""
    db_path = isolated_dirs / "data" / "drivetime" / "drivetime.db"
    database.init_db(db_path)
    return db_path


@pytest.fixture
def make_artifact():
    """Factory for artifacts with sensible defaults."""

    def _make(**overrides) -> Artifact:
        fields = {
            "user_id": "demo-user",
            "type": "note",
            "title": "Test note",
            "raw_content": "Remember to check the tire pressure",
        }
        fields.update(overrides)
        return Artifact(**fields)

    return _make
