"""
ORM models

The room game state is persisted as one opaque JSON document per room.
The storage layer never looks inside it; it only keeps the entity tag that
the optimistic write path compares against.
"""
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, JSON, String

from database import Base


def _utcnow():
    return datetime.now(timezone.utc)


class RoomDocument(Base):
    __tablename__ = "room_documents"

    id = Column(String(32), primary_key=True)
    document = Column(JSON, nullable=False)
    etag = Column(String(64), nullable=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False)

    def __repr__(self):
        return f"<RoomDocument id={self.id} etag={self.etag}>"
