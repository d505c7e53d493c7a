"""
Room Manager: room lifecycle outside of game actions

Responsibilities:
1. Create a room (decks, market, private deals, seat credentials)
2. Authenticate a seat
3. Let a seat join and receive its private deal once
4. Read a room

Principles:
- Single responsibility: rooms only, game actions go through the controller
- Check the data first, then mutate
"""
from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple
import logging

from core.exceptions import InvalidSeatToken, SeatNotFound
from core.locks import room_exists
from core.room_state import PrivateDelta, Room, SeatState
from core.room_store import RoomStore
from core.state_machine import SEAT_ORDER, compute_turn_nonce
from services.deck_service import (
    ASSETS_DECK,
    PROJECTS_DECK,
    build_initial_decks,
    draw,
)
from services.naming_service import (
    generate_room_code,
    generate_seat_token,
    generate_shuffle_seed,
    hash_token,
    verify_seat_token,
)

logger = logging.getLogger(__name__)

MIN_PLAYERS = 2
MAX_PLAYERS = 4
INITIAL_HAND_SIZE = 2
INITIAL_MARKET_PROJECTS = 5
INITIAL_MARKET_ASSETS = 3
TOTAL_ROUNDS = 3


def clamp_player_count(requested) -> int:
    """
    Integral values (3, 3.0, "3") are clamped to 2..4; anything else
    falls back to 2
    """
    if isinstance(requested, bool) or requested is None:
        return MIN_PLAYERS
    try:
        number = float(requested)
    except (TypeError, ValueError):
        return MIN_PLAYERS
    if not number.is_integer():
        return MIN_PLAYERS
    return max(MIN_PLAYERS, min(MAX_PLAYERS, int(number)))


def build_initial_room(
    room_id: str,
    player_seats: List[str],
    seat_token_hashes: Dict[str, str],
    shuffle_seed: str,
    created_at: Optional[str] = None,
) -> Room:
    """
    Build the starting state of a room

    Flow:
    1. Shuffle every deck from its own sub-seed of shuffle_seed
    2. Lay out the market (5 projects, 3 assets)
    3. Queue a private deal of 2 assets per seat

    Pure apart from the timestamp: the same seed and seats always produce
    the same decks, market and deals.
    """
    decks = build_initial_decks(shuffle_seed)

    market_projects = draw(decks[PROJECTS_DECK], INITIAL_MARKET_PROJECTS, PROJECTS_DECK)
    market_assets = draw(decks[ASSETS_DECK], INITIAL_MARKET_ASSETS, ASSETS_DECK)
    deal_queue = {
        seat: draw(decks[ASSETS_DECK], INITIAL_HAND_SIZE, ASSETS_DECK)
        for seat in player_seats
    }

    seats = {
        seat: SeatState(hand_size=INITIAL_HAND_SIZE, token_hash=seat_token_hashes.get(seat))
        for seat in player_seats
    }

    room = Room(
        room_id=room_id,
        created_at=created_at or datetime.now(timezone.utc).isoformat(),
        version=1,
        current_seat=player_seats[0] if player_seats else SEAT_ORDER[0],
        current_round=1,
        total_rounds=TOTAL_ROUNDS,
        seats=seats,
        must_discard_by_seat={seat: 0 for seat in player_seats},
        decks=decks,
        deal_queue=deal_queue,
        shuffle_seed=str(shuffle_seed),
    )
    room.market.available_projects = market_projects
    room.market.available_assets = market_assets
    room.turn_nonce = compute_turn_nonce(room)
    return room


class RoomManager:
    """Room lifecycle manager"""

    @staticmethod
    def create_room(store: RoomStore, player_count=MIN_PLAYERS,
                    shuffle_seed: Optional[str] = None) -> Tuple[Room, Dict[str, str]]:
        """
        Create a room and mint one token per seat

        Flow:
        1. Generate a unique room code
        2. Mint seat tokens (only their hashes are stored)
        3. Build and persist the initial state

        Returns:
            (Room, {seat: token}) - tokens are only ever returned here
        """
        # 1. Unique room code
        room_id = generate_room_code()
        while room_exists(room_id, store.db):
            logger.warning(f"Room code collision detected, regenerating: {room_id}")
            room_id = generate_room_code()

        # 2. Seat credentials
        player_seats = list(SEAT_ORDER[:clamp_player_count(player_count)])
        seat_tokens = {seat: generate_seat_token() for seat in player_seats}
        seat_token_hashes = {seat: hash_token(token) for seat, token in seat_tokens.items()}

        # 3. Initial state
        seed = shuffle_seed if shuffle_seed is not None else generate_shuffle_seed()
        room = build_initial_room(room_id, player_seats, seat_token_hashes, seed)
        store.create(room)

        logger.info(f"Created room {room_id} with seats {player_seats}")
        return room, seat_tokens

    @staticmethod
    def authenticate(room: Room, seat: str, token: str) -> SeatState:
        """
        Raises:
            SeatNotFound: the seat is not part of the room
            InvalidSeatToken: the token does not match the seat credential
        """
        seat_state = room.seats.get(seat)
        if seat_state is None:
            raise SeatNotFound(seat)
        if not verify_seat_token(seat_state.token, seat_state.token_hash, token):
            raise InvalidSeatToken()
        return seat_state

    @staticmethod
    def join_room(store: RoomStore, room_id: str, seat: str, token: str) -> Tuple[Room, PrivateDelta, str]:
        """
        Mark a seat connected and hand over its queued deal

        The deal is delivered once; later joins get an empty delta. Joining
        is not a game action, so the version stays as it is.

        Raises:
            RoomNotFound, SeatNotFound, InvalidSeatToken
            WriteConflict: another writer changed the room meanwhile
        """
        room, etag = store.get(room_id)
        RoomManager.authenticate(room, seat, token)

        updated = room.model_copy(deep=True)
        updated.seats[seat].connected = True
        added_card_ids = updated.deal_queue.get(seat, [])
        updated.deal_queue[seat] = []

        next_etag = store.write(room_id, updated, etag)

        logger.info(f"Seat {seat} joined room {room_id} (dealt {len(added_card_ids)} cards)")
        delta = PrivateDelta(seat=seat, added_card_ids=added_card_ids, removed_card_ids=[])
        return updated, delta, next_etag

    @staticmethod
    def get_room(store: RoomStore, room_id: str) -> Tuple[Room, str]:
        return store.get(room_id)
