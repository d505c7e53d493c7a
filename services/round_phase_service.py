"""
Round phase service: what a round looks like and which rules apply in it

Round layout (3 rounds):
- Round 1: no macro event
- Rounds 2-3: a macro event is revealed when the round starts and its rule
  modifiers stay active for that round

Pure computation, no state transitions.
"""
from typing import Dict, Optional

from core.room_state import Room, RoundModifier, RoundPhase
from services.catalog import MacroEventCard

BASE_HAND_LIMIT = 7

# Overrides some events carry on top of the modifiers stored in the catalog
MACRO_EVENT_OVERRIDES: Dict[str, Dict[str, int]] = {
    "macro-m5": {"handLimit": 6},
    "macro-m6": {"tailwindPickBonus": 1},
}


def get_round_phase(room: Room) -> RoundPhase:
    """
    Current state of the turn/round machine

    Returns:
        GAME_OVER once the game ended, ROUND_END_PENDING while a round
        boundary waits on discards, IN_TURN otherwise
    """
    if room.game_over:
        return RoundPhase.GAME_OVER
    if room.pending_round_advance:
        return RoundPhase.ROUND_END_PENDING
    return RoundPhase.IN_TURN


def is_macro_event_round(round_number: int) -> bool:
    return round_number in (2, 3)


def build_round_modifier(event: MacroEventCard) -> RoundModifier:
    """Merge an event's declared modifiers with its hardcoded overrides"""
    rules = dict(event.rule_modifiers)
    rules.update(MACRO_EVENT_OVERRIDES.get(event.id, {}))
    return RoundModifier(source=event.id, rules=rules)


def find_rule(room: Room, rule: str) -> Optional[int]:
    """Most recently installed value of `rule`, or None"""
    for modifier in reversed(room.round_modifiers):
        if rule in modifier.rules:
            return modifier.rules[rule]
    return None


def active_hand_limit(room: Room) -> int:
    limit = find_rule(room, "handLimit")
    return BASE_HAND_LIMIT if limit is None else limit
