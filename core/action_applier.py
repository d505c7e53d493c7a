"""
Action applier: (room, acting seat, action) -> (next room, private delta)

Responsibilities:
1. Dispatch one action to its rule branch
2. Enforce the branch's domain rules
3. Bump the version exactly once and refresh the turn nonce

Turn ownership, version and credentials are checked by the caller before
anything reaches this module. Every branch works on a deep copy, so a
rejected action leaves the caller's room untouched.
"""
import logging
import re
from typing import Callable, Dict, List, NamedTuple, Optional, Set

from core.exceptions import (
    DeckExhausted,
    InvalidAction,
    ProjectNotFound,
    SeatNotFound,
    UnknownCard,
)
from core.room_state import (
    ActionType,
    AllocatedTotals,
    GameAction,
    PrivateDelta,
    ProjectInstance,
    Room,
    SeatState,
    Stage,
)
from core.state_machine import TurnStateMachine, compute_turn_nonce
from services.catalog import ProjectCard, get_asset, get_project
from services.deck_service import ASSETS_DECK, PROJECTS_DECK, draw_top, refill
from services.round_phase_service import BASE_HAND_LIMIT, active_hand_limit

logger = logging.getLogger(__name__)

MARKET_ASSET_SLOTS = 3
MARKET_PROJECT_SLOTS = 5
DEFAULT_RESTART_BURDEN = 1
HAND_HASH_PATTERN = re.compile(r"[0-9a-fA-F]{64}")


class ActionResult(NamedTuple):
    room: Room
    private_delta: Optional[PrivateDelta]


# ============ Default-selection rules ============

def is_unconditionally_pickable(card_id: str) -> bool:
    asset = get_asset(card_id)
    return asset is not None and asset.pick_condition is None


def default_market_asset(eligible_ids: List[str]) -> str:
    """Without an explicit choice the first eligible market asset is taken"""
    return eligible_ids[0]


def default_allocation_target(seat_state: SeatState) -> ProjectInstance:
    """Without an explicit target the seat's first active project receives the cards"""
    for project in seat_state.projects:
        if project.is_active:
            return project
    raise ProjectNotFound("No active project to allocate to.")


def default_pause_target(seat_state: SeatState) -> ProjectInstance:
    """Without an explicit target the seat's first unpaused project is paused"""
    for project in seat_state.projects:
        if not project.paused:
            return project
    raise ProjectNotFound("No unpaused project to pause.")


# ============ Helpers ============

def project_stage(tailwind: int, card: ProjectCard) -> Stage:
    """Stage reached by a tailwind total: MV at mvReq, TF at mvReq + tfReq"""
    if tailwind >= card.mv_req + card.tf_req:
        return Stage.TF
    if tailwind >= card.mv_req:
        return Stage.MV
    return Stage.NONE


def _require_project_card(project_id: str) -> ProjectCard:
    card = get_project(project_id)
    if card is None:
        raise UnknownCard(project_id)
    return card


def _find_owned_project(seat_state: SeatState, project_id: str) -> ProjectInstance:
    for project in seat_state.projects:
        if project.id == project_id:
            return project
    raise ProjectNotFound(f"Project {project_id} does not belong to this seat.")


def _located_card_ids(room: Room, seat: str) -> Set[str]:
    """
    Card ids known to sit somewhere other than `seat`'s hand

    Market, every allocated card, every draw pile and the deals still queued
    for other seats. A card found here cannot be allocated or discarded.
    """
    located = set(room.market.available_assets) | set(room.market.available_projects)
    for seat_state in room.seats.values():
        for project in seat_state.projects:
            located.update(project.allocated_card_ids)
    for deck in room.decks.values():
        located.update(deck.draw_pile)
    for owner, card_ids in room.deal_queue.items():
        if owner != seat:
            located.update(card_ids)
    return located


def _flag_hand_limit(seat_state: SeatState, limit: int) -> None:
    if seat_state.hand_size > limit:
        seat_state.must_discard = True
        seat_state.discard_target = limit


# ============ Branches ============

def _pick_asset(room: Room, seat: str, action: GameAction) -> PrivateDelta:
    seat_state = room.seats[seat]
    market_assets = room.market.available_assets
    eligible = [card_id for card_id in market_assets if is_unconditionally_pickable(card_id)]
    deck = room.deck(ASSETS_DECK)

    if action.card_id:
        if action.card_id not in eligible:
            raise InvalidAction(f"Asset {action.card_id} is not available to pick.")
        card_id = action.card_id
        market_assets.remove(card_id)
    elif eligible:
        card_id = default_market_asset(eligible)
        market_assets.remove(card_id)
    else:
        if not deck.draw_pile:
            raise DeckExhausted(ASSETS_DECK, 1, 0)
        card_id = draw_top(deck, ASSETS_DECK)

    refill(market_assets, deck, MARKET_ASSET_SLOTS)

    seat_state.hand_size += 1
    _flag_hand_limit(seat_state, active_hand_limit(room))

    return PrivateDelta(seat=seat, added_card_ids=[card_id], removed_card_ids=[])


def _start_project(room: Room, seat: str, action: GameAction) -> None:
    seat_state = room.seats[seat]
    project_id = action.project_id

    if not project_id:
        raise InvalidAction("START_PROJECT requires a projectId.")
    if project_id not in room.market.available_projects:
        raise InvalidAction(f"Project {project_id} is not in the market.")
    _require_project_card(project_id)

    room.market.available_projects.remove(project_id)
    seat_state.projects.append(ProjectInstance(id=project_id))
    seat_state.projects_started_this_round += 1

    refill(room.market.available_projects, room.deck(PROJECTS_DECK), MARKET_PROJECT_SLOTS)
    return None


def _allocate_to_project(room: Room, seat: str, action: GameAction) -> PrivateDelta:
    seat_state = room.seats[seat]
    card_ids = list(action.card_ids)

    # 1. Payload shape
    if not card_ids or any(not card_id for card_id in card_ids):
        raise InvalidAction("ALLOCATE_TO_PROJECT requires at least one card id.")
    if len(set(card_ids)) != len(card_ids):
        raise InvalidAction("Duplicate card ids in allocation.")
    if len(card_ids) > seat_state.hand_size:
        raise InvalidAction(
            f"Cannot allocate {len(card_ids)} cards with a hand of {seat_state.hand_size}."
        )
    if not action.hand_hash or not HAND_HASH_PATTERN.fullmatch(action.hand_hash):
        raise InvalidAction("handHash must be a 64-character hex string.")

    # 2. Target project
    if action.project_id:
        project = _find_owned_project(seat_state, action.project_id)
        if project.paused:
            raise InvalidAction(f"Project {project.id} is paused.")
        if project.stage == Stage.TF:
            raise InvalidAction(f"Project {project.id} is already complete.")
    else:
        project = default_allocation_target(seat_state)
    card = _require_project_card(project.id)

    # 3. Accumulate outcomes
    located = _located_card_ids(room, seat)
    for card_id in card_ids:
        asset = get_asset(card_id)
        if asset is None:
            raise UnknownCard(card_id)
        if card_id in located:
            raise InvalidAction(f"Card {card_id} is not in hand.")
        project.allocated_totals.budget += asset.outcomes.budget
        project.allocated_totals.headcount += asset.outcomes.headcount
        project.allocated_totals.tailwind += asset.outcomes.tailwind

    project.allocated_card_ids.extend(card_ids)
    project.stage = project_stage(project.allocated_totals.tailwind, card)

    seat_state.hand_size -= len(card_ids)
    seat_state.last_hand_hash = action.hand_hash

    return PrivateDelta(seat=seat, added_card_ids=[], removed_card_ids=card_ids)


def _pause_project(room: Room, seat: str, action: GameAction) -> PrivateDelta:
    seat_state = room.seats[seat]

    if action.project_id:
        project = _find_owned_project(seat_state, action.project_id)
        if project.paused:
            raise InvalidAction(f"Project {project.id} is already paused.")
    else:
        project = default_pause_target(seat_state)

    card = get_project(project.id)
    burden = card.restart_burden_tailwind if card and card.restart_burden_tailwind is not None else None
    returned = list(project.allocated_card_ids)

    project.paused = True
    project.allocated_totals = AllocatedTotals()
    project.allocated_card_ids = []
    project.stage = Stage.NONE
    project.abandoned_penalty_count = 1
    project.restart_burden_tailwind = DEFAULT_RESTART_BURDEN if burden is None else burden

    seat_state.hand_size += len(returned)

    return PrivateDelta(seat=seat, added_card_ids=returned, removed_card_ids=[])


def _discard_asset(room: Room, seat: str, action: GameAction) -> PrivateDelta:
    seat_state = room.seats[seat]

    if not action.card_id:
        raise InvalidAction("DISCARD_ASSET requires a cardId.")
    if seat_state.hand_size <= 0:
        raise InvalidAction("Cannot discard from an empty hand.")
    if action.card_id in _located_card_ids(room, seat):
        raise InvalidAction(f"Card {action.card_id} is not in hand.")

    seat_state.hand_size -= 1

    # One discard can pay hand-limit overflow and round-end debt together
    debt = room.must_discard_by_seat.get(seat, 0)
    if debt > 0:
        room.must_discard_by_seat[seat] = max(0, debt - 1)

    limit = seat_state.discard_target if seat_state.discard_target is not None else BASE_HAND_LIMIT
    seat_state.must_discard = seat_state.hand_size > limit
    seat_state.discard_target = limit if seat_state.must_discard else None
    room.discard_pile_count += 1

    return PrivateDelta(seat=seat, added_card_ids=[], removed_card_ids=[action.card_id])


def _end_turn_or_advance(room: Room, seat: str, action: GameAction) -> None:
    TurnStateMachine.transition(room, action.type)
    return None


_HANDLERS: Dict[ActionType, Callable[[Room, str, GameAction], Optional[PrivateDelta]]] = {
    ActionType.PICK_ASSET: _pick_asset,
    ActionType.START_PROJECT: _start_project,
    ActionType.ALLOCATE_TO_PROJECT: _allocate_to_project,
    ActionType.PAUSE_PROJECT: _pause_project,
    ActionType.DISCARD_ASSET: _discard_asset,
    ActionType.END_TURN: _end_turn_or_advance,
    ActionType.ADVANCE_ROUND: _end_turn_or_advance,
}


def apply_action(room: Room, acting_seat: str, action: GameAction) -> ActionResult:
    """
    Apply one action and return the next room plus its private delta

    Args:
        room: current room (never modified)
        acting_seat: seat submitting the action
        action: the action payload

    Returns:
        ActionResult(room, private_delta); private_delta is None when no
        card identity crosses the public/private boundary

    Raises:
        ActionRejected subclasses when a rule is broken; nothing is applied
    """
    if acting_seat not in room.seats:
        raise SeatNotFound(acting_seat)

    handler = _HANDLERS.get(action.type)
    if handler is None:
        raise InvalidAction(f"Unsupported action type: {action.type}")

    next_room = room.model_copy(deep=True)
    private_delta = handler(next_room, acting_seat, action)

    next_room.version = room.version + 1
    next_room.turn_nonce = compute_turn_nonce(next_room)

    logger.debug(
        f"Applied {action.type.value} for seat {acting_seat} in room {room.room_id} "
        f"-> version {next_room.version}"
    )
    return ActionResult(room=next_room, private_delta=private_delta)
