"""
Room API Endpoints

Responsibilities:
1. Create a room and hand out seat invites
2. Read the public room state (with ETag revalidation)
"""
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, Header, Request, Response
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session
from typing import Optional
import logging

from database import get_db
from schemas import CreateRoomRequest, CreateRoomResponse, ErrorResponse, RoomResponse, SeatInvite
from core.room_manager import RoomManager
from core.room_store import RoomStore
from core.exceptions import RoomNotFound
from services.history_service import to_public_room_state

router = APIRouter(prefix="/api/rooms", tags=["rooms"])
logger = logging.getLogger(__name__)

CACHE_CONTROL = "private, max-age=0, must-revalidate"


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


@router.post(
    "",
    status_code=201,
    response_model=CreateRoomResponse,
    responses={500: {"model": ErrorResponse}},
)
def create_room(request: Request, body: Optional[CreateRoomRequest] = None, db: Session = Depends(get_db)):
    """
    Create a room (host endpoint)

    Flow:
    1. Clamp the player count to 2-4
    2. Build decks, market and private deals
    3. Return one invite link per seat

    Returns:
        - roomId
        - invites: seat, token, url
        - privateDelta: always null here
    """
    body = body or CreateRoomRequest()
    try:
        room, seat_tokens = RoomManager.create_room(
            RoomStore(db), body.player_count, body.shuffle_seed
        )

        origin = request.headers.get("origin") or f"http://{request.headers.get('host', 'localhost')}"
        invites = [
            SeatInvite(
                seat=seat,
                token=token,
                url=f"{origin}/play?{urlencode({'room': room.room_id, 'seat': seat, 'token': token})}",
            )
            for seat, token in seat_tokens.items()
        ]
        return CreateRoomResponse(room_id=room.room_id, invites=invites, private_delta=None)

    except Exception as e:
        logger.error(f"Failed to create room: {e}", exc_info=True)
        db.rollback()
        return _error(500, "Internal error")


@router.get(
    "/{room_id}",
    response_model=RoomResponse,
    responses={304: {"description": "Not modified"}, 404: {"model": ErrorResponse}},
)
def get_room(
    room_id: str,
    response: Response,
    if_none_match: Optional[str] = Header(default=None),
    db: Session = Depends(get_db)
):
    """
    Read the public room state

    Clients poll this endpoint; sending the last ETag back in If-None-Match
    yields 304 while nothing changed.
    """
    try:
        room, etag = RoomManager.get_room(RoomStore(db), room_id)

        if if_none_match and if_none_match == etag:
            return Response(status_code=304, headers={"ETag": etag, "Cache-Control": CACHE_CONTROL})

        response.headers["ETag"] = etag
        response.headers["Cache-Control"] = CACHE_CONTROL
        return RoomResponse(room=to_public_room_state(room))

    except RoomNotFound:
        return _error(404, "Room not found.")
    except Exception as e:
        logger.error(f"Failed to load room: {e}", exc_info=True)
        return _error(500, "Internal error")
