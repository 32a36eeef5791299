"""Repository pattern storage layer for DriveTime artifacts."""

import json
import logging
import sqlite3
from pathlib import Path
from typing import List, Dict, Any, Optional

from .database import get_db_connection
from .grouping import DayGroup, group_by_day
from .lifecycle import ArtifactStatus, apply_status
from .models import Artifact

logger = logging.getLogger(__name__)

COLUMNS = (
    "id",
    "user_id",
    "type",
    "title",
    "raw_content",
    "summary",
    "full_audio_text",
    "source_url",
    "image_data",
    "status",
    "created_at",
    "played_at",
    "completed_at",
    "tags",
    "day_bucket",
)


class Storage:
    """Repository for all artifact database operations.

    Implements the repository pattern - all SQL stays in this class.
    Read failures are logged and reported as an absent result; write
    failures are raised.
    """

    def __init__(self, db_path: Optional[Path] = None):
        """Initialize storage with database connection.

        Args:
            db_path: Optional custom database path for testing.
                     Defaults to database.default_db_path()
        """
        self.db_path = db_path
        self._conn = None  # Lazy connection initialization
        # Fail fast if the database is missing
        test_conn = get_db_connection(self.db_path)
        test_conn.close()

    @property
    def conn(self) -> sqlite3.Connection:
        """Get or create the database connection, reused across operations."""
        if self._conn is None:
            self._conn = get_db_connection(self.db_path)
        return self._conn

    def close(self) -> None:
        """Close the database connection if open."""
        if self._conn:
            self._conn.close()
            self._conn = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def _select(self, where: str, params: tuple) -> List[Artifact]:
        """Run a filtered select, newest first. Returns [] on database errors."""
        try:
            cursor = self.conn.execute(
                f"SELECT * FROM artifacts WHERE {where} ORDER BY created_at DESC",
                params,
            )
            return [Artifact.from_row(row) for row in cursor.fetchall()]
        except sqlite3.Error as e:
            logger.error(f"Failed to query artifacts ({where}): {e}")
            return []

    def get_artifact(self, artifact_id: str) -> Optional[Artifact]:
        """Get a single artifact by ID.

        Returns:
            Artifact if found, None if missing or the query failed
        """
        try:
            cursor = self.conn.execute(
                "SELECT * FROM artifacts WHERE id = ?", (artifact_id,)
            )
            row = cursor.fetchone()
        except sqlite3.Error as e:
            logger.error(f"Failed to get artifact {artifact_id}: {e}")
            return None

        return Artifact.from_row(row) if row else None

    def get_all_artifacts(self, user_id: str) -> List[Artifact]:
        """Get all of a user's artifacts, newest first."""
        return self._select("user_id = ?", (user_id,))

    def get_artifacts_by_day(self, user_id: str, date: str) -> List[Artifact]:
        """Get a user's artifacts captured on ``date`` (YYYY-MM-DD), newest first."""
        return self._select("user_id = ? AND day_bucket = ?", (user_id, date))

    def get_artifacts_by_status(self, user_id: str, status: str) -> List[Artifact]:
        """Get a user's artifacts with the given status, newest first."""
        return self._select("user_id = ? AND status = ?", (user_id, status))

    def get_pending_artifacts(self, user_id: str) -> List[Artifact]:
        """Get the artifacts counted as "pending" by the assistant tools.

        Despite the name this returns artifacts with status 'ready'. The
        assistant tools count the queue this way, so the behavior is kept;
        use get_playable_artifacts() for the drive player's queue.
        """
        return self.get_artifacts_by_status(user_id, ArtifactStatus.READY.value)

    def get_playable_artifacts(self, user_id: str) -> List[Artifact]:
        """Get artifacts eligible for the playback queue (pending or ready)."""
        return self._select(
            "user_id = ? AND status IN (?, ?)",
            (user_id, ArtifactStatus.PENDING.value, ArtifactStatus.READY.value),
        )

    def save_artifact(self, artifact: Artifact) -> None:
        """Insert or fully overwrite an artifact, keyed by id.

        Raises:
            sqlite3.Error: If database operation fails
        """
        row = artifact.to_row()
        placeholders = ", ".join("?" for _ in COLUMNS)
        updates = ", ".join(f"{col} = excluded.{col}" for col in COLUMNS if col != "id")

        try:
            self.conn.execute(
                f"""
                INSERT INTO artifacts ({", ".join(COLUMNS)})
                VALUES ({placeholders})
                ON CONFLICT(id) DO UPDATE SET {updates}
                """,
                tuple(row[col] for col in COLUMNS),
            )
            self.conn.commit()
        except sqlite3.Error as e:
            self.conn.rollback()
            logger.error(f"Error saving artifact {artifact.id}: {e}")
            raise sqlite3.Error(f"Failed to save artifact: {e}")

    def update_artifact_status(
        self,
        artifact_id: str,
        status: str,
        patch: Optional[Dict[str, Any]] = None,
    ) -> Optional[Artifact]:
        """Set an artifact's status, stamping played_at/completed_at once.

        Args:
            artifact_id: UUID of the artifact
            status: New status (any status may follow any other)
            patch: Optional summary, full_audio_text, title and tags to store

        Returns:
            The updated Artifact, or None if not found

        Raises:
            ValueError: If status is not a known status
            sqlite3.Error: If the write fails
        """
        current = self.get_artifact(artifact_id)
        if current is None:
            return None

        updated = apply_status(current, status, patch)

        try:
            cursor = self.conn.execute(
                """
                UPDATE artifacts
                SET status = ?, played_at = ?, completed_at = ?,
                    summary = ?, full_audio_text = ?, title = ?, tags = ?
                WHERE id = ?
                """,
                (
                    updated.status,
                    updated.played_at,
                    updated.completed_at,
                    updated.summary,
                    updated.full_audio_text,
                    updated.title,
                    json.dumps(updated.tags),
                    artifact_id,
                ),
            )
            self.conn.commit()
        except sqlite3.Error as e:
            self.conn.rollback()
            raise sqlite3.Error(f"Failed to update artifact status: {e}")

        if cursor.rowcount == 0:
            # Deleted between read and write
            return None
        return updated

    def set_full_audio_text(self, artifact_id: str, text: str) -> bool:
        """Store the long-form audio text, leaving status and stamps alone.

        Returns:
            True if the artifact exists, False otherwise

        Raises:
            sqlite3.Error: If the write fails
        """
        try:
            cursor = self.conn.execute(
                "UPDATE artifacts SET full_audio_text = ? WHERE id = ?",
                (text, artifact_id),
            )
            self.conn.commit()
        except sqlite3.Error as e:
            self.conn.rollback()
            raise sqlite3.Error(f"Failed to store audio text: {e}")

        return cursor.rowcount > 0

    def delete_artifact(self, artifact_id: str) -> bool:
        """Delete an artifact.

        Returns:
            True if a row was deleted, False if the id was unknown
        """
        try:
            cursor = self.conn.execute(
                "DELETE FROM artifacts WHERE id = ?", (artifact_id,)
            )
            self.conn.commit()
            return cursor.rowcount > 0
        except sqlite3.Error as e:
            self.conn.rollback()
            raise sqlite3.Error(f"Failed to delete artifact: {e}")

    def get_day_groups(self, user_id: str) -> List[DayGroup]:
        """Group all of a user's artifacts by day, newest day first."""
        return group_by_day(self.get_all_artifacts(user_id))

    def count_artifacts(self) -> int:
        """Count all stored artifacts (used by the health check)."""
        cursor = self.conn.execute("SELECT COUNT(*) FROM artifacts")
        return cursor.fetchone()[0]
