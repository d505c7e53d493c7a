"""
Concurrency control helpers

Rooms are guarded optimistically instead of with row locks: every write is
an UPDATE whose WHERE clause also matches the entity tag read earlier. If
another writer replaced the document in between, the tag no longer matches,
zero rows are updated, and the caller reports a conflict.

Nothing here blocks or waits.
"""
from sqlalchemy.orm import Session, Query

from models import RoomDocument


def with_etag_guard(room_id: str, expected_etag: str, db: Session) -> Query:
    """
    Select a room only if its entity tag is still the one the caller read

    Usage:
        updated = with_etag_guard(room_id, etag, db).update(
            {RoomDocument.document: doc, RoomDocument.etag: new_etag},
            synchronize_session=False,
        )
        if updated == 0:
            # someone else won the race
            ...

    Args:
        room_id: room id
        expected_etag: tag returned by the read this write is based on
        db: SQLAlchemy Session

    Returns:
        Query object (call .update() for the compare-and-swap)

    Notes:
        - the UPDATE re-evaluates the WHERE clause under the row lock the
          database takes for it, so two racing writers cannot both match
    """
    return db.query(RoomDocument).filter(
        RoomDocument.id == room_id,
        RoomDocument.etag == expected_etag
    )


def room_exists(room_id: str, db: Session) -> bool:
    return db.query(RoomDocument.id).filter(RoomDocument.id == room_id).first() is not None
