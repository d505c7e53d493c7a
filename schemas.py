"""
Request/response schemas for the HTTP layer
"""
from typing import Any, Dict, List, Optional

from pydantic import Field

from core.room_state import CamelModel, GameAction, PrivateDelta


class CreateRoomRequest(CamelModel):
    # Kept loose on purpose: non-integers fall back to 2 players
    player_count: Any = 2
    shuffle_seed: Optional[str] = None


class SeatInvite(CamelModel):
    seat: str
    token: str
    url: str


class CreateRoomResponse(CamelModel):
    room_id: str
    invites: List[SeatInvite]
    private_delta: Optional[PrivateDelta] = None


class RoomResponse(CamelModel):
    room: Dict[str, Any]


class JoinRequest(CamelModel):
    seat: str = Field(min_length=1)
    token: str = Field(min_length=1)


class ActionRequest(CamelModel):
    seat: str = Field(min_length=1)
    token: str = Field(min_length=1)
    expected_version: int
    expected_turn_nonce: Optional[str] = None
    action: GameAction


class ActionResponse(CamelModel):
    room: Dict[str, Any]
    private_delta: Optional[PrivateDelta] = None
    next_etag: Optional[str] = None


class ConflictResponse(CamelModel):
    error: str
    latest_state: Optional[Dict[str, Any]] = None


class ErrorResponse(CamelModel):
    error: str
