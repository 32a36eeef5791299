"""Artifact status lifecycle.

Statuses move pending -> processing -> ready -> playing -> completed, but the
machine is advisory: any status may be set from any other. The only rules
are the timestamp stamps applied on first entry into ``playing`` and
``completed``.
"""

from dataclasses import replace
from enum import Enum
from typing import Optional, Dict, Any

from .models import Artifact, utc_now_iso


class ArtifactStatus(str, Enum):
    """Artifact statuses."""

    PENDING = "pending"  # Captured, not yet enriched
    PROCESSING = "processing"  # Enrichment running
    READY = "ready"  # Summary available
    PLAYING = "playing"  # Currently being listened to
    COMPLETED = "completed"  # Listened to


STATUS_VALUES = tuple(status.value for status in ArtifactStatus)

# Statuses the drive player puts in the queue
PLAYABLE_STATUSES = frozenset({ArtifactStatus.PENDING.value, ArtifactStatus.READY.value})

# Fields a status update may carry along with the new status
PATCHABLE_FIELDS = ("summary", "full_audio_text", "title", "tags")


def is_playable(artifact: Artifact) -> bool:
    return artifact.status in PLAYABLE_STATUSES


def transition_stamps(
    artifact: Artifact, status: str, now: Optional[str] = None
) -> Dict[str, str]:
    """Return the timestamp fields to stamp when moving ``artifact`` to ``status``.

    ``played_at`` and ``completed_at`` are set once and never overwritten.

    Args:
        artifact: Current state of the artifact
        status: Status being applied
        now: ISO timestamp to stamp with (defaults to current UTC time)

    Returns:
        Dict of field name to timestamp, empty when nothing is stamped
    """
    stamp = now or utc_now_iso()
    stamps = {}
    if status == ArtifactStatus.PLAYING.value and not artifact.played_at:
        stamps["played_at"] = stamp
    if status == ArtifactStatus.COMPLETED.value and not artifact.completed_at:
        stamps["completed_at"] = stamp
    return stamps


def apply_status(
    artifact: Artifact,
    status: str,
    patch: Optional[Dict[str, Any]] = None,
    now: Optional[str] = None,
) -> Artifact:
    """Return a copy of ``artifact`` with the new status, stamps and patch applied.

    Only PATCHABLE_FIELDS are taken from ``patch``; keys with a None value
    are ignored. No transition is rejected.

    Raises:
        ValueError: If ``status`` is not a known status value
    """
    if status not in STATUS_VALUES:
        raise ValueError(f"Invalid status: {status}")

    changes: Dict[str, Any] = {"status": status}
    changes.update(transition_stamps(artifact, status, now))

    if patch:
        for field_name in PATCHABLE_FIELDS:
            if patch.get(field_name) is not None:
                changes[field_name] = patch[field_name]

    return replace(artifact, **changes)
