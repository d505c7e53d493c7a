"""
Room store: the document-storage collaborator

Interface consumed by the engine:
    get(room_id)                          -> (room, etag)
    write(room_id, room, expected_etag)   -> new etag, or WriteConflict

The whole document is replaced on every write; there are no partial
updates. Each successful write mints a fresh etag.
"""
import logging
import uuid
from typing import Optional, Tuple

from sqlalchemy.orm import Session

from core.exceptions import RoomNotFound, WriteConflict
from core.locks import with_etag_guard
from core.room_state import Room
from database import transactional
from models import RoomDocument

logger = logging.getLogger(__name__)


def new_etag() -> str:
    return f'"{uuid.uuid4().hex}"'


@transactional
def insert_room_document(db: Session, room: Room) -> str:
    etag = new_etag()
    db.add(RoomDocument(id=room.room_id, document=room.to_document(), etag=etag))
    return etag


@transactional
def replace_room_document(db: Session, room_id: str, room: Room, expected_etag: str) -> Optional[str]:
    """
    Compare-and-swap write

    Returns:
        the new etag, or None when expected_etag is stale
    """
    etag = new_etag()
    updated = with_etag_guard(room_id, expected_etag, db).update(
        {RoomDocument.document: room.to_document(), RoomDocument.etag: etag},
        synchronize_session=False,
    )
    return etag if updated else None


def load_room_document(db: Session, room_id: str) -> Tuple[Room, str]:
    # populate_existing: the identity map may hold a copy older than the last write
    row = db.query(RoomDocument).filter(RoomDocument.id == room_id).populate_existing().first()
    if not row:
        raise RoomNotFound(room_id)
    return Room.from_document(row.document), row.etag


class RoomStore:
    """Etag-addressable room documents on top of a SQLAlchemy session"""

    def __init__(self, db: Session):
        self.db = db

    def create(self, room: Room) -> str:
        return insert_room_document(self.db, room)

    def get(self, room_id: str) -> Tuple[Room, str]:
        return load_room_document(self.db, room_id)

    def write(self, room_id: str, room: Room, expected_etag: str) -> str:
        """
        Raises:
            WriteConflict: the document changed since expected_etag was read
        """
        etag = replace_room_document(self.db, room_id, room, expected_etag)
        if etag is None:
            logger.warning(f"Stale etag {expected_etag} for room {room_id}, write rejected")
            raise WriteConflict(room_id)
        return etag
