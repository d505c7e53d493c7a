"""
Player API Endpoints

Responsibilities:
1. A seat joins its room and receives its private deal
"""
from fastapi import APIRouter, Depends, Response
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session
import logging

from database import get_db
from schemas import ActionResponse, ConflictResponse, ErrorResponse, JoinRequest
from core.room_manager import RoomManager
from core.room_store import RoomStore
from core.exceptions import AuthenticationFailed, RoomNotFound, WriteConflict
from services.history_service import to_public_room_state

router = APIRouter(prefix="/api/rooms", tags=["players"])
logger = logging.getLogger(__name__)


@router.post(
    "/{room_id}/join",
    response_model=ActionResponse,
    responses={
        403: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ConflictResponse},
    },
)
def join_room(room_id: str, player_data: JoinRequest, response: Response, db: Session = Depends(get_db)):
    """
    Join a room (player endpoint)

    Preconditions:
    - the room exists
    - seat and token match

    Flow:
    1. Authenticate the seat
    2. Mark it connected
    3. Return the queued deal once as privateDelta
    """
    store = RoomStore(db)
    try:
        room, private_delta, next_etag = RoomManager.join_room(
            store, room_id, player_data.seat, player_data.token
        )

        response.headers["ETag"] = next_etag
        response.headers["Cache-Control"] = "private, max-age=0, must-revalidate"
        return ActionResponse(
            room=to_public_room_state(room),
            private_delta=private_delta,
            next_etag=next_etag
        )

    except RoomNotFound:
        return JSONResponse(status_code=404, content={"error": "Room not found."})
    except AuthenticationFailed as e:
        return JSONResponse(status_code=403, content={"error": str(e)})
    except WriteConflict as e:
        latest, _ = store.get(room_id)
        return JSONResponse(
            status_code=409,
            content={"error": str(e), "latestState": to_public_room_state(latest)}
        )
    except Exception as e:
        logger.error(f"Failed to join room: {e}", exc_info=True)
        db.rollback()
        return JSONResponse(status_code=500, content={"error": "Internal error"})
