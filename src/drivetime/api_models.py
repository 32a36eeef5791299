"""Pydantic models for REST API requests.

Field names follow the camelCase JSON the browser extension and web UI send.
"""

from typing import Optional, List, Literal, Dict, Any
from pydantic import BaseModel, Field, validator

ArtifactTypeName = Literal["idea", "article", "question", "screenshot", "note"]
ArtifactStatusName = Literal["pending", "processing", "ready", "playing", "completed"]


class ArtifactCreateRequest(BaseModel):
    """Request model for capturing a new artifact."""

    type: ArtifactTypeName = Field(..., description="Requested artifact type")
    content: str = Field(..., description="Captured text or URL")
    title: Optional[str] = Field(None, description="Optional explicit title")
    sourceUrl: Optional[str] = Field(None, description="URL the content came from")
    imageData: Optional[str] = Field(None, description="Base64 screenshot")
    tags: List[str] = Field(default_factory=list, description="Optional tags")

    @validator("content")
    def validate_content(cls, v: str) -> str:
        """Reject blank captures; the text itself is stored as sent."""
        if not v.strip():
            raise ValueError("Content cannot be empty")
        return v

    @validator("sourceUrl")
    def validate_source_url(cls, v: Optional[str]) -> Optional[str]:
        """Treat blank URLs as absent."""
        if v is None:
            return None
        v = v.strip()
        return v or None


class ArtifactUpdateRequest(BaseModel):
    """Request model for a status change, optionally carrying enrichment fields."""

    status: ArtifactStatusName = Field(..., description="New status")
    summary: Optional[str] = Field(None, description="Audio-friendly summary")
    fullAudioText: Optional[str] = Field(None, description="Long-form audio text")
    title: Optional[str] = Field(None, description="Replacement title")
    tags: Optional[List[str]] = Field(None, description="Replacement tags")

    def patch(self) -> Dict[str, Any]:
        """Patch fields keyed by their storage (snake_case) names."""
        return {
            "summary": self.summary,
            "full_audio_text": self.fullAudioText,
            "title": self.title,
            "tags": self.tags,
        }


class TTSRequest(BaseModel):
    """Request model for speech synthesis."""

    artifactId: Optional[str] = Field(None, description="Artifact to speak")
    mode: Literal["summary", "full"] = Field("summary", description="What to speak")
