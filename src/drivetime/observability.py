"""Observability logging for DriveTime - JSONL event tracking."""

import fcntl
import json
import os
import sys
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Any


def default_events_dir() -> Path:
    """Return $XDG_DATA_HOME/drivetime/observability."""
    data_home = os.environ.get("XDG_DATA_HOME", str(Path.home() / ".local" / "share"))
    return Path(data_home) / "drivetime" / "observability"


class ObservabilityLogger:
    """Process-safe JSONL event logger with one file per day."""

    def __init__(self, base_dir: Path | None = None):
        """Initialize observability logger.

        Args:
            base_dir: Directory for JSONL files. Defaults to default_events_dir()
        """
        self.base_dir = base_dir or default_events_dir()

    def log(self, event: str, **metadata: Any) -> None:
        """Append an event with metadata to today's JSONL file.

        Process-safe via fcntl file locking. Never raises: failures are
        reported on stderr so a broken log directory cannot fail a request.

        Args:
            event: Event name (e.g., "api.request", "llm.call")
            **metadata: Additional event metadata
        """
        now = datetime.now(timezone.utc)
        log_file = self.base_dir / f"{now.strftime('%Y-%m-%d')}_events.jsonl"

        entry = {
            "ts": now.isoformat(timespec="milliseconds").replace("+00:00", "Z"),
            "event": event,
            **metadata,
        }

        # 3 attempts with backoff on lock contention
        for attempt in range(3):
            try:
                self.base_dir.mkdir(parents=True, exist_ok=True)
                with open(log_file, "a") as f:
                    fcntl.flock(f.fileno(), fcntl.LOCK_EX)
                    try:
                        f.write(json.dumps(entry, default=str) + "\n")
                        f.flush()
                    finally:
                        fcntl.flock(f.fileno(), fcntl.LOCK_UN)
                return
            except BlockingIOError:
                if attempt < 2:
                    time.sleep(0.01 * (attempt + 1))
                else:
                    print(
                        f"[Observability] Failed to log event after 3 attempts: {event}",
                        file=sys.stderr,
                    )
            except Exception as e:
                print(
                    f"[Observability] Error logging event '{event}': {e}",
                    file=sys.stderr,
                )
                return


_logger: ObservabilityLogger | None = None


def get_logger() -> ObservabilityLogger:
    """Get global observability logger instance (singleton pattern)."""
    global _logger
    if _logger is None:
        _logger = ObservabilityLogger()
    return _logger


def reset_logger() -> None:
    """Drop the cached logger so the next event re-reads XDG_DATA_HOME."""
    global _logger
    _logger = None


def log(event: str, **metadata: Any) -> None:
    """Convenience function to log events using global logger.

    Usage:
        from drivetime.observability import log
        log("artifact.created", artifact_id=artifact.id, type="idea")
        log("llm.call", action="summarize", duration_ms=812, status="success")
    """
    get_logger().log(event, **metadata)
