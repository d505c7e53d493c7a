"""
Action history service.

Appends entries to a room's append-only action log and renders the public
projection clients receive, so the frontend never sees seat credentials or
the undelivered private deals.
"""
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from core.room_state import LogEntry, Room

PRIVATE_SEAT_FIELDS = ("token", "tokenHash")
PRIVATE_ROOM_FIELDS = ("dealQueue",)


def record_action(room: Room, seat: str, action_type: str, at: Optional[datetime] = None) -> LogEntry:
    """
    Append one log entry for an applied action

    The entry carries the room version the action produced, so a log line
    can be matched with the state snapshot that followed it.
    """
    moment = at or datetime.now(timezone.utc)
    entry = LogEntry(
        at=moment.isoformat(),
        seat=seat,
        type=str(getattr(action_type, "value", action_type)),
        version=room.version,
    )
    room.log.append(entry)
    return entry


def to_public_room_state(room: Room) -> Dict[str, Any]:
    """Serialized room with credentials and the deal queue stripped"""
    document = room.to_document()

    for field in PRIVATE_ROOM_FIELDS:
        document.pop(field, None)

    for seat_state in document.get("seats", {}).values():
        for field in PRIVATE_SEAT_FIELDS:
            seat_state.pop(field, None)

    return document
