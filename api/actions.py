"""
Action API Endpoint

Key points:
1. Every game action goes through ActionController (optimistic CAS)
2. Conflicts answer 409 with the latest public state so clients resync
   without a second round trip
3. Lost write races are not retried server-side
"""
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session
import logging

from database import get_db
from schemas import ActionRequest, ActionResponse, ConflictResponse, ErrorResponse
from core.concurrency import ActionController, Applied, ConflictStale, Rejected
from core.room_store import RoomStore
from core.exceptions import AuthenticationFailed, RoomNotFound
from services.history_service import to_public_room_state

router = APIRouter(prefix="/api/rooms", tags=["actions"])
logger = logging.getLogger(__name__)


@router.post(
    "/{room_id}/act",
    response_model=ActionResponse,
    responses={
        400: {"model": ErrorResponse},
        403: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ConflictResponse},
    },
)
def submit_action(room_id: str, action_data: ActionRequest, db: Session = Depends(get_db)):
    """
    Submit one game action

    Responses:
        200: {room, privateDelta, nextEtag}
        400: action broke a game rule (nothing applied)
        403: unknown seat or bad token
        404: unknown room
        409: {error, latestState} - stale version/nonce, not your turn,
             round-end discard gate, or lost write race
    """
    try:
        logger.info(
            f"Seat {action_data.seat} submitting {action_data.action.type.value} "
            f"in room {room_id} at version {action_data.expected_version}"
        )

        outcome = ActionController(RoomStore(db)).submit(
            room_id,
            action_data.seat,
            action_data.token,
            action_data.expected_version,
            action_data.action,
            expected_turn_nonce=action_data.expected_turn_nonce,
        )

        if isinstance(outcome, Applied):
            private_delta = outcome.private_delta.to_document() if outcome.private_delta else None
            headers = {}
            if outcome.next_etag:
                headers = {
                    "ETag": outcome.next_etag,
                    "Cache-Control": "private, max-age=0, must-revalidate",
                }
            return JSONResponse(
                status_code=200,
                headers=headers,
                content={
                    "room": to_public_room_state(outcome.room),
                    "privateDelta": private_delta,
                    "nextEtag": outcome.next_etag,
                },
            )

        if isinstance(outcome, ConflictStale):
            latest = to_public_room_state(outcome.latest_room) if outcome.latest_room else None
            return JSONResponse(status_code=409, content={"error": outcome.error, "latestState": latest})

        if isinstance(outcome, Rejected):
            return JSONResponse(status_code=400, content={"error": outcome.reason})

        raise TypeError(f"Unexpected outcome {outcome!r}")

    except RoomNotFound:
        return JSONResponse(status_code=404, content={"error": "Room not found."})
    except AuthenticationFailed as e:
        return JSONResponse(status_code=403, content={"error": str(e)})
    except Exception as e:
        logger.error(f"Failed to submit action: {e}", exc_info=True)
        db.rollback()
        return JSONResponse(status_code=500, content={"error": "Internal error"})
