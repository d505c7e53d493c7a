"""
Turn/round state machine

States:
    IN_TURN            normal play, only the current seat acts
    ROUND_END_PENDING  round-end discard debts outstanding, only discards
    GAME_OVER          terminal

Transitions happen on END_TURN and ADVANCE_ROUND:
    1. ADVANCE_ROUND while debts are outstanding is refused
    2. decide whether a round boundary is reached
    3. no boundary: rotate to the next joined seat
    4. boundary with debts: hold the round and gate on discards
    5. boundary without debts: next round, or final scoring after the last

All methods work on a room the caller already copied; nothing here touches
storage. The version bump is done once by the action applier.
"""
import hashlib
import logging
from typing import Dict, List, Mapping, Optional

from core.exceptions import (
    DiscardRequired,
    GameAlreadyOver,
    InvalidStateTransition,
    NotYourTurn,
    RoundEndDiscardPending,
)
from core.room_state import ActionType, Room, RoundPhase, SeatState
from services.catalog import get_macro_event
from services.deck_service import MACRO_EVENTS_DECK, PROJECTS_DECK, discard, draw_top
from services.round_phase_service import build_round_modifier, get_round_phase, is_macro_event_round
from services.scoring_service import calculate_final_scoring

logger = logging.getLogger(__name__)

SEAT_ORDER = ("A", "B", "C", "D")
FULL_TURN_ROUND_ADVANCE = 2


def _seat_sort_key(seat: str):
    # Canonical seats first, anything else after them alphabetically
    if seat in SEAT_ORDER:
        return (0, SEAT_ORDER.index(seat), "")
    return (1, 0, seat)


def get_joined_seat_order(seats: Mapping[str, SeatState]) -> List[str]:
    """
    Seats that take turns, in rotation order

    Connected seats only; when nobody is connected yet every configured
    seat takes part.
    """
    connected = [seat for seat, state in seats.items() if state.connected]
    if connected:
        return sorted(connected, key=_seat_sort_key)
    return sorted(seats.keys(), key=_seat_sort_key)


def get_next_seat(joined_seats: List[str], current_seat: str) -> str:
    if not joined_seats:
        raise InvalidStateTransition("No joined seats available.")
    if current_seat not in joined_seats:
        return joined_seats[0]
    return joined_seats[(joined_seats.index(current_seat) + 1) % len(joined_seats)]


def compute_must_discard_by_seat(projects_started: Mapping[str, int],
                                 hand_sizes: Optional[Mapping[str, int]] = None) -> Dict[str, int]:
    """
    Round-end discard debt

    A single seat that started strictly more projects than everybody else
    owes nothing and every other seat owes one discard. A tie for the lead,
    or nobody starting anything, means no debt at all. A seat never owes
    more cards than it holds, so an empty hand owes nothing.

    Example:
        {A: 2, B: 0, C: 1} -> {A: 0, B: 1, C: 1}
        {A: 1, B: 1, C: 0} -> {A: 0, B: 0, C: 0}
    """
    if not projects_started:
        return {}

    max_started = max(max(projects_started.values()), 0)
    leaders = [seat for seat, started in projects_started.items() if started == max_started]

    if len(leaders) != 1 or max_started <= 0:
        return {seat: 0 for seat in projects_started}

    leader = leaders[0]
    hand_sizes = hand_sizes or {}
    return {
        seat: 0 if seat == leader else min(1, max(hand_sizes.get(seat, 1), 0))
        for seat in projects_started
    }


def has_outstanding_round_discards(must_discard_by_seat: Mapping[str, int], joined_seats: List[str]) -> bool:
    return any(must_discard_by_seat.get(seat, 0) > 0 for seat in joined_seats)


def compute_turn_nonce(room: Room) -> str:
    """
    Opaque marker of the current turn instance

    Derived from the turn coordinates only, so free actions keep it while
    seat rotation, round changes and the discard gate replace it.
    """
    material = "|".join([
        room.room_id,
        str(room.current_round),
        str(room.turn_count),
        room.current_seat,
        "pending" if room.pending_round_advance else "open",
        "over" if room.game_over else "live",
    ])
    return hashlib.sha256(material.encode("utf-8")).hexdigest()[:16]


class TurnStateMachine:
    """Seat rotation, round boundaries, discard gating and game end"""

    @staticmethod
    def ensure_action_allowed(room: Room, seat: str, action_type: ActionType) -> None:
        """
        Turn-ownership check run before an action reaches the applier

        Rules:
        1. nothing is accepted after the game ended
        2. while round-end debts are outstanding only discards go through
        3. a seat carrying discard debt may discard out of turn
        4. everything else needs the seat to be current
        5. END_TURN is refused while the seat is over its hand limit

        Raises:
            GameAlreadyOver, RoundEndDiscardPending, NotYourTurn,
            DiscardRequired (all ConcurrencyConflict)
        """
        phase = get_round_phase(room)
        if phase == RoundPhase.GAME_OVER:
            raise GameAlreadyOver()

        joined_seats = get_joined_seat_order(room.seats)
        debts_outstanding = phase == RoundPhase.ROUND_END_PENDING and has_outstanding_round_discards(
            room.must_discard_by_seat, joined_seats
        )
        if debts_outstanding and action_type != ActionType.DISCARD_ASSET:
            raise RoundEndDiscardPending()

        seat_state = room.seats.get(seat)
        owes_discard = seat_state is not None and (
            seat_state.must_discard or room.must_discard_by_seat.get(seat, 0) > 0
        )
        if action_type == ActionType.DISCARD_ASSET and owes_discard:
            return

        if room.current_seat != seat:
            raise NotYourTurn(seat)

        if action_type == ActionType.END_TURN and seat_state is not None and seat_state.must_discard:
            raise DiscardRequired(seat)

    @staticmethod
    def should_advance_round(room: Room, joined_seats: List[str], action_type: ActionType) -> bool:
        if action_type == ActionType.ADVANCE_ROUND:
            return True

        projects_deck = room.decks.get(PROJECTS_DECK)
        if projects_deck is not None and not projects_deck.draw_pile:
            return True

        return room.turn_count + 1 >= len(joined_seats) * FULL_TURN_ROUND_ADVANCE

    @staticmethod
    def transition(room: Room, action_type: ActionType) -> None:
        """
        Apply END_TURN or ADVANCE_ROUND to `room` in place

        Raises:
            InvalidStateTransition: ADVANCE_ROUND while round-end debts remain
        """
        joined_seats = get_joined_seat_order(room.seats)
        outstanding = has_outstanding_round_discards(room.must_discard_by_seat, joined_seats)

        # 1. Debts must be paid before the next round can start
        if room.pending_round_advance and outstanding:
            if action_type == ActionType.ADVANCE_ROUND:
                raise InvalidStateTransition(
                    "Round-end discards must be completed before starting the next round."
                )
            # Debts computed at the first boundary check are held as-is
            return

        # 2. Boundary?
        advance = room.pending_round_advance or TurnStateMachine.should_advance_round(
            room, joined_seats, action_type
        )

        # 3. Common case: next seat
        if not advance:
            room.current_seat = get_next_seat(joined_seats, room.current_seat)
            room.turn_count += 1
            return

        # 4. Boundary with debts: gate the round on discards
        if not room.pending_round_advance:
            must_discard_by_seat = compute_must_discard_by_seat(
                {seat: room.seats[seat].projects_started_this_round for seat in joined_seats},
                {seat: room.seats[seat].hand_size for seat in joined_seats},
            )
            if has_outstanding_round_discards(must_discard_by_seat, joined_seats):
                room.pending_round_advance = True
                room.must_discard_by_seat = must_discard_by_seat
                logger.info(
                    f"Round {room.current_round} of room {room.room_id} waiting on discards: "
                    f"{must_discard_by_seat}"
                )
                return

        # 5. Boundary without debts
        if room.current_round >= room.total_rounds:
            TurnStateMachine._finish_game(room, joined_seats)
        else:
            TurnStateMachine._start_next_round(room, joined_seats)

    @staticmethod
    def _finish_game(room: Room, joined_seats: List[str]) -> None:
        room.pending_round_advance = False
        room.must_discard_by_seat = {seat: 0 for seat in joined_seats}
        room.final_scoring = calculate_final_scoring(room.seats, joined_seats)
        room.game_over = True
        logger.info(f"Game over in room {room.room_id}, winners: {room.final_scoring.winners}")

    @staticmethod
    def _start_next_round(room: Room, joined_seats: List[str]) -> None:
        next_round = min(room.current_round + 1, room.total_rounds)

        for seat_state in room.seats.values():
            seat_state.projects_started_this_round = 0

        room.current_round = next_round
        room.current_seat = joined_seats[0]
        room.turn_count = 0
        room.pending_round_advance = False
        room.must_discard_by_seat = {seat: 0 for seat in joined_seats}
        room.final_scoring = None

        if is_macro_event_round(next_round):
            TurnStateMachine._reveal_macro_event(room)

        logger.info(f"Room {room.room_id} entered round {next_round}")

    @staticmethod
    def _reveal_macro_event(room: Room) -> Optional[str]:
        """
        Draw the next macro event and install its modifiers for the round

        An empty macro deck leaves the previous event and modifiers alone.
        """
        macro_deck = room.decks.get(MACRO_EVENTS_DECK)
        if macro_deck is None or not macro_deck.draw_pile:
            return None

        event_id = draw_top(macro_deck, MACRO_EVENTS_DECK)
        discard(macro_deck, [event_id])

        event = get_macro_event(event_id)
        room.macro_event = event
        room.round_modifiers = [build_round_modifier(event)]
        return event_id
