"""Group artifacts into per-day buckets for the inbox and drive views."""

from dataclasses import dataclass, field
from typing import List, Dict, Any, Iterable

from .lifecycle import ArtifactStatus
from .models import Artifact


@dataclass
class DayStats:
    total: int = 0
    pending: int = 0  # pending and processing
    ready: int = 0
    completed: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {
            "total": self.total,
            "pending": self.pending,
            "ready": self.ready,
            "completed": self.completed,
        }


@dataclass
class DayGroup:
    """Artifacts captured on one day, with status counts. Never persisted."""

    date: str
    artifacts: List[Artifact] = field(default_factory=list)
    stats: DayStats = field(default_factory=DayStats)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "date": self.date,
            "artifacts": [artifact.to_dict() for artifact in self.artifacts],
            "stats": self.stats.to_dict(),
        }


def group_by_day(artifacts: Iterable[Artifact]) -> List[DayGroup]:
    """Bucket artifacts by day_bucket and count statuses per day.

    Artifacts keep their input order inside a bucket. Groups are sorted by
    date descending; YYYY-MM-DD sorts chronologically as a string.

    Args:
        artifacts: Artifacts to group, usually one user's full set

    Returns:
        List of DayGroup, newest day first
    """
    groups: Dict[str, DayGroup] = {}

    for artifact in artifacts:
        group = groups.get(artifact.day_bucket)
        if group is None:
            group = DayGroup(date=artifact.day_bucket)
            groups[artifact.day_bucket] = group

        group.artifacts.append(artifact)
        group.stats.total += 1
        if artifact.status in (
            ArtifactStatus.PENDING.value,
            ArtifactStatus.PROCESSING.value,
        ):
            group.stats.pending += 1
        elif artifact.status == ArtifactStatus.READY.value:
            group.stats.ready += 1
        elif artifact.status == ArtifactStatus.COMPLETED.value:
            group.stats.completed += 1

    return sorted(groups.values(), key=lambda group: group.date, reverse=True)
