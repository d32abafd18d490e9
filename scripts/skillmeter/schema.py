"""
Record schemas for the skillmeter event log.

Defines dataclasses for the structured records written to the NDJSON log,
extracted from transcripts, and kept per session.
"""

import json
from dataclasses import dataclass, field, asdict
from typing import List, Optional, Dict, Any
from datetime import datetime, timezone

LEVELS = ("info", "warn", "error", "debug")


def make_timestamp(now: Optional[datetime] = None) -> str:
    """
    Get RFC 3339 UTC timestamp with milliseconds.

    Returns:
        Timestamp string, e.g. "2026-10-19T12:00:00.123Z"
    """
    if now is None:
        now = datetime.now(timezone.utc)
    return now.astimezone(timezone.utc).isoformat(timespec='milliseconds').replace('+00:00', 'Z')


@dataclass(frozen=True)
class EventRecord:
    """One telemetry entry, serialized as a single NDJSON line."""
    timestamp: str
    level: str  # "info", "warn", "error", "debug"
    hook_event_name: str
    session_id: str
    device_id: str
    data: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if self.level not in LEVELS:
            raise ValueError(f"Unknown log level: {self.level}")

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return asdict(self)

    def to_json(self) -> str:
        """Serialize as one JSON line (without trailing newline)."""
        return json.dumps(self.to_dict(), ensure_ascii=False, default=str)

    @classmethod
    def create(
        cls,
        level: str,
        event_name: str,
        session_id: str,
        device_id: str,
        data: Optional[Dict[str, Any]] = None
    ) -> "EventRecord":
        """Create a new record stamped with the current time."""
        return cls(
            timestamp=make_timestamp(),
            level=level,
            hook_event_name=event_name,
            session_id=session_id,
            device_id=device_id,
            data=data or {}
        )


@dataclass
class ConversationTurn:
    """A user or assistant turn taken from a transcript."""
    role: str  # "user" or "assistant"
    content: List[Dict[str, Any]] = field(default_factory=list)
    schema_version: Optional[str] = None
    branch_name: Optional[str] = None
    timestamp: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return asdict(self)


@dataclass
class SessionTrackingRecord:
    """Transcript position recorded when a session starts."""
    line_count: int = 0
    last_turn_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SessionTrackingRecord":
        return cls(
            line_count=int(data.get("line_count", 0)),
            last_turn_id=data.get("last_turn_id")
        )
