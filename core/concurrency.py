"""
Concurrency controller: one validate-apply-persist cycle per request

Flow:
1. Read the room and its etag
2. Authenticate the seat
3. Check expectedVersion, expectedTurnNonce and turn ownership
4. Apply the action and append a log entry
5. Conditional write against the etag from step 1

A lost write race is never retried here: the latest state is read again
and handed back as a conflict, and the client decides whether to retry.
At most one writer wins each race and the loser always sees fresher state.
"""
from dataclasses import dataclass
from typing import Optional, Union
import logging

from core.action_applier import apply_action
from core.exceptions import (
    ActionRejected,
    ConcurrencyConflict,
    TurnNonceMismatch,
    VersionMismatch,
    WriteConflict,
)
from core.room_manager import RoomManager
from core.room_state import GameAction, PrivateDelta, Room
from core.room_store import RoomStore
from core.state_machine import TurnStateMachine
from services.history_service import record_action

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Applied:
    room: Room
    private_delta: Optional[PrivateDelta]
    next_etag: Optional[str]


@dataclass(frozen=True)
class ConflictStale:
    error: str
    latest_room: Optional[Room]


@dataclass(frozen=True)
class Rejected:
    reason: str


ActionOutcome = Union[Applied, ConflictStale, Rejected]


class ActionController:
    """Single-attempt optimistic compare-and-swap around the action applier"""

    def __init__(self, store: RoomStore):
        self.store = store

    def submit(
        self,
        room_id: str,
        seat: str,
        token: str,
        expected_version: int,
        action: GameAction,
        expected_turn_nonce: Optional[str] = None,
    ) -> ActionOutcome:
        """
        Run one action request against the stored room

        Returns:
            Applied, ConflictStale (stale version/nonce, turn ownership,
            discard gate, lost write race) or Rejected (domain rule)

        Raises:
            RoomNotFound: no such room
            AuthenticationFailed: unknown seat or bad token
        """
        # 1. Read
        room, etag = self.store.get(room_id)

        # 2. Authenticate
        RoomManager.authenticate(room, seat, token)

        # 3. Preconditions
        try:
            if room.version != expected_version:
                raise VersionMismatch(expected_version, room.version)
            if expected_turn_nonce is not None and expected_turn_nonce != room.turn_nonce:
                raise TurnNonceMismatch()
            TurnStateMachine.ensure_action_allowed(room, seat, action.type)
        except ConcurrencyConflict as e:
            logger.info(f"Conflict for seat {seat} in room {room_id}: {e}")
            return ConflictStale(error=str(e), latest_room=room)

        # 4. Apply
        try:
            next_room, private_delta = apply_action(room, seat, action)
        except ActionRejected as e:
            logger.info(f"Rejected {action.type.value} for seat {seat} in room {room_id}: {e}")
            return Rejected(reason=str(e))

        record_action(next_room, seat, action.type)

        # 5. Conditional write
        try:
            next_etag = self.store.write(room_id, next_room, etag)
        except WriteConflict as e:
            latest_room, _ = self.store.get(room_id)
            return ConflictStale(error=str(e), latest_room=latest_room)

        logger.info(
            f"Applied {action.type.value} for seat {seat} in room {room_id} "
            f"(version {room.version} -> {next_room.version})"
        )
        return Applied(room=next_room, private_delta=private_delta, next_etag=next_etag)
