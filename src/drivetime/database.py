"""Database initialization for DriveTime."""

import os
import sqlite3
from pathlib import Path
from typing import Optional


def default_db_path() -> Path:
    """Resolve the database path.

    DRIVETIME_DB_PATH wins; otherwise $XDG_DATA_HOME/drivetime/drivetime.db
    (or ~/.local/share/drivetime/drivetime.db).
    """
    override = os.environ.get("DRIVETIME_DB_PATH")
    if override:
        return Path(override)

    xdg_data_home = os.environ.get(
        "XDG_DATA_HOME", str(Path.home() / ".local" / "share")
    )
    return Path(xdg_data_home) / "drivetime" / "drivetime.db"


def init_db(db_path: Optional[Path] = None) -> Path:
    """Initialize the DriveTime database with schema.

    Creates the database if it doesn't exist and applies schema.sql.
    Safe to run repeatedly.

    Args:
        db_path: Optional custom database path for testing

    Returns:
        Path to the created/verified database

    Raises:
        sqlite3.Error: If database creation fails
    """
    if db_path is None:
        db_path = default_db_path()
    db_path.parent.mkdir(parents=True, exist_ok=True)

    schema_file = Path(__file__).parent / "schema.sql"
    if not schema_file.exists():
        raise FileNotFoundError(f"Schema file not found: {schema_file}")

    schema_sql = schema_file.read_text()

    conn = sqlite3.connect(db_path)
    try:
        conn.executescript(schema_sql)
        conn.commit()

        cursor = conn.execute(
            "SELECT name FROM sqlite_master WHERE type='table' AND name='artifacts'"
        )
        if cursor.fetchone() is None:
            raise sqlite3.Error("Failed to create tables: {'artifacts'}")

        return db_path

    except sqlite3.Error as e:
        conn.rollback()
        raise sqlite3.Error(f"Failed to initialize database: {e}")
    finally:
        conn.close()


def get_db_connection(db_path: Optional[Path] = None) -> sqlite3.Connection:
    """Get a connection to the DriveTime database.

    Ensures WAL mode and other pragmas are set correctly.

    Args:
        db_path: Optional custom database path

    Returns:
        SQLite connection with rows accessible by column name
    """
    if db_path is None:
        db_path = default_db_path()

    if not db_path.exists():
        raise FileNotFoundError(
            f"Database not found at {db_path}. Run 'drivetime init' first."
        )

    conn = sqlite3.connect(db_path, check_same_thread=False)
    conn.row_factory = sqlite3.Row

    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute("PRAGMA busy_timeout=5000")
    conn.execute("PRAGMA synchronous=NORMAL")

    return conn


if __name__ == "__main__":
    print(f"Database initialized at: {init_db()}")
