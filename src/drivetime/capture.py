"""Turn capture requests into new artifacts."""

from datetime import datetime, timezone
from typing import Optional, List

from .lifecycle import ArtifactStatus
from .models import Artifact, ArtifactType, utc_now_iso

TITLE_MAX_CHARS = 100


def is_url(content: str) -> bool:
    """Check whether captured content is a bare http(s) URL."""
    return content.startswith(("http://", "https://"))


def make_title(content: str) -> str:
    """Derive a title from content: first 100 chars, ellipsis when truncated."""
    title = content[:TITLE_MAX_CHARS]
    if len(content) > TITLE_MAX_CHARS:
        title += "..."
    return title


def resolve_type(
    requested_type: str, source_url: Optional[str], image_data: Optional[str]
) -> str:
    """Image data wins over a source URL, which wins over the requested type."""
    if image_data:
        return ArtifactType.SCREENSHOT.value
    if source_url:
        return ArtifactType.ARTICLE.value
    return requested_type


def build_artifact(
    user_id: str,
    artifact_type: str,
    content: str,
    title: Optional[str] = None,
    source_url: Optional[str] = None,
    image_data: Optional[str] = None,
    tags: Optional[List[str]] = None,
    now: Optional[datetime] = None,
) -> Artifact:
    """Build a new pending artifact from captured content.

    Content that is itself a URL becomes the source URL when none was given,
    so a pasted link is always stored as an article. Surrounding whitespace
    is ignored for the title and URL check; raw_content keeps it.

    Args:
        user_id: Owner of the artifact
        artifact_type: Requested type ('idea', 'note', ...)
        content: Captured text or URL
        title: Optional explicit title (assistant-provided)
        source_url: Optional URL the content came from
        image_data: Optional base64 screenshot
        tags: Optional tags
        now: Creation time (defaults to current UTC time)

    Returns:
        Artifact with status 'pending' and a fixed day bucket
    """
    now = now or datetime.now(timezone.utc)
    created_at = utc_now_iso(now)

    text = content.strip()
    if not source_url and is_url(text):
        source_url = text

    return Artifact(
        user_id=user_id,
        type=resolve_type(artifact_type, source_url, image_data),
        title=title or make_title(text),
        raw_content=content,
        source_url=source_url or None,
        image_data=image_data or None,
        status=ArtifactStatus.PENDING.value,
        created_at=created_at,
        day_bucket=created_at[:10],
        tags=list(tags or []),
    )
