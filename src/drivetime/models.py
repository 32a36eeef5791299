"""Data models for DriveTime."""

import json
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, List, Dict, Any, Mapping


class ArtifactType(str, Enum):
    """Kinds of captured content."""

    IDEA = "idea"
    ARTICLE = "article"
    QUESTION = "question"
    SCREENSHOT = "screenshot"
    NOTE = "note"


TYPE_VALUES = tuple(artifact_type.value for artifact_type in ArtifactType)


def utc_now_iso(now: Optional[datetime] = None) -> str:
    """Format a datetime as a UTC ISO-8601 string with millisecond precision.

    The fixed width keeps lexicographic order equal to chronological order,
    which the store relies on when sorting by created_at.
    """
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    now = now.astimezone(timezone.utc)
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")


@dataclass
class Artifact:
    """A captured piece of content with its playback status.

    Matches the artifacts table schema. Attribute names are the snake_case
    column names; to_dict() produces the camelCase JSON shape.
    """

    user_id: str
    type: str  # 'idea', 'article', 'question', 'screenshot', 'note'
    title: str
    raw_content: str
    status: str = "pending"  # see lifecycle.ArtifactStatus
    created_at: str = field(default_factory=utc_now_iso)
    day_bucket: str = ""  # YYYY-MM-DD, derived from created_at
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    summary: Optional[str] = None
    full_audio_text: Optional[str] = None
    source_url: Optional[str] = None
    image_data: Optional[str] = None  # base64, screenshots only
    played_at: Optional[str] = None
    completed_at: Optional[str] = None
    tags: List[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        if not self.day_bucket:
            self.day_bucket = self.created_at[:10]

    def to_row(self) -> Dict[str, Any]:
        """Convert to a row dict for database storage."""
        return {
            "id": self.id,
            "user_id": self.user_id,
            "type": self.type,
            "title": self.title,
            "raw_content": self.raw_content,
            "summary": self.summary,
            "full_audio_text": self.full_audio_text,
            "source_url": self.source_url,
            "image_data": self.image_data,
            "status": self.status,
            "created_at": self.created_at,
            "played_at": self.played_at,
            "completed_at": self.completed_at,
            "tags": json.dumps(self.tags),
            "day_bucket": self.day_bucket,
        }

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "Artifact":
        """Build an Artifact from a database row (sqlite3.Row or dict)."""
        tags = row["tags"]
        if isinstance(tags, str):
            try:
                tags = json.loads(tags)
            except json.JSONDecodeError:
                tags = []

        return cls(
            id=row["id"],
            user_id=row["user_id"],
            type=row["type"],
            title=row["title"],
            raw_content=row["raw_content"],
            summary=row["summary"],
            full_audio_text=row["full_audio_text"],
            source_url=row["source_url"],
            image_data=row["image_data"],
            status=row["status"],
            created_at=row["created_at"],
            played_at=row["played_at"],
            completed_at=row["completed_at"],
            tags=list(tags or []),
            day_bucket=row["day_bucket"],
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the camelCase JSON shape, omitting absent optional fields."""
        data = {
            "id": self.id,
            "userId": self.user_id,
            "type": self.type,
            "title": self.title,
            "rawContent": self.raw_content,
            "summary": self.summary,
            "fullAudioText": self.full_audio_text,
            "sourceUrl": self.source_url,
            "imageData": self.image_data,
            "status": self.status,
            "createdAt": self.created_at,
            "playedAt": self.played_at,
            "completedAt": self.completed_at,
            "tags": list(self.tags),
            "dayBucket": self.day_bucket,
        }
        return {key: value for key, value in data.items() if value is not None}
