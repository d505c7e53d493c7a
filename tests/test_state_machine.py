import pytest

from core.action_applier import apply_action
from core.exceptions import (
    DiscardRequired,
    GameAlreadyOver,
    InvalidStateTransition,
    NotYourTurn,
    RoundEndDiscardPending,
)
from core.room_state import ActionType, Deck, GameAction, ProjectInstance, RoundPhase, SeatState, Stage
from core.state_machine import (
    TurnStateMachine,
    compute_must_discard_by_seat,
    get_joined_seat_order,
)
from services.round_phase_service import get_round_phase
from tests.factories import make_room

END_TURN = GameAction(type=ActionType.END_TURN)
ADVANCE_ROUND = GameAction(type=ActionType.ADVANCE_ROUND)


def test_joined_order_uses_connected_seats_in_canonical_order():
    seats = {
        "C": SeatState(connected=True),
        "A": SeatState(connected=True),
        "B": SeatState(connected=False),
    }
    assert get_joined_seat_order(seats) == ["A", "C"]


def test_joined_order_falls_back_to_all_seats():
    seats = {seat: SeatState(connected=False) for seat in ("C", "A", "B")}
    assert get_joined_seat_order(seats) == ["A", "B", "C"]


def test_unknown_seats_sort_after_canonical_ones():
    seats = {seat: SeatState(connected=True) for seat in ("Z", "E", "B")}
    assert get_joined_seat_order(seats) == ["B", "E", "Z"]


@pytest.mark.parametrize("seat_ids", [("A", "B"), ("A", "B", "C"), ("A", "B", "C", "D")])
def test_end_turn_visits_every_seat_once_per_cycle(seat_ids):
    room = make_room(seat_ids=seat_ids, version=5)
    visited = []

    for _ in seat_ids:
        previous_version = room.version
        room, delta = apply_action(room, room.current_seat, END_TURN)
        assert room.version == previous_version + 1
        assert delta is None
        visited.append(room.current_seat)

    assert sorted(visited) == sorted(seat_ids)
    assert room.current_seat == seat_ids[0]
    assert room.version == 5 + len(seat_ids)
    assert room.current_round == 1


def test_turn_nonce_changes_with_the_turn():
    room = make_room()
    next_room, _ = apply_action(room, "A", END_TURN)
    assert next_room.turn_nonce != room.turn_nonce


def test_unique_leader_makes_others_owe_a_discard():
    assert compute_must_discard_by_seat({"A": 2, "B": 0, "C": 1}) == {"A": 0, "B": 1, "C": 1}


def test_tied_leaders_owe_nothing():
    assert compute_must_discard_by_seat({"A": 1, "B": 1, "C": 0}) == {"A": 0, "B": 0, "C": 0}


def test_nobody_started_anything_owes_nothing():
    assert compute_must_discard_by_seat({"A": 0, "B": 0}) == {"A": 0, "B": 0}


def test_empty_hand_owes_nothing():
    assert compute_must_discard_by_seat({"A": 1, "B": 0, "C": 0}, {"A": 3, "B": 0, "C": 2}) == {"A": 0, "B": 0, "C": 1}


def test_round_with_only_empty_handed_debtors_advances():
    room = make_room(current_seat="B", turn_count=3)
    room.seats["A"].projects_started_this_round = 1
    room.seats["B"].hand_size = 0

    updated, _ = apply_action(room, "B", END_TURN)

    assert updated.pending_round_advance is False
    assert updated.current_round == 2
    assert updated.must_discard_by_seat == {"A": 0, "B": 0}


def test_empty_handed_seat_is_not_gated_with_others():
    room = make_room(seat_ids=("A", "B", "C"), current_seat="C", turn_count=5)
    room.seats["A"].projects_started_this_round = 1
    room.seats["C"].hand_size = 0

    updated, _ = apply_action(room, "C", END_TURN)

    assert updated.pending_round_advance is True
    assert updated.must_discard_by_seat == {"A": 0, "B": 1, "C": 0}
    TurnStateMachine.ensure_action_allowed(updated, "B", ActionType.DISCARD_ASSET)


def test_two_full_cycles_start_round_two_with_macro_event():
    room = make_room(current_seat="B", turn_count=3, version=5)
    room.decks["macroEvents"] = Deck(draw_pile=["macro-m6"])

    updated, _ = apply_action(room, "B", END_TURN)

    assert updated.current_round == 2
    assert updated.current_seat == "A"
    assert updated.turn_count == 0
    assert updated.version == 6
    assert updated.macro_event.id == "macro-m6"
    assert updated.macro_event.rule_modifiers == {"tailwindBonus": 2}
    assert updated.round_modifiers[0].source == "macro-m6"
    assert updated.round_modifiers[0].rules == {"tailwindBonus": 2, "tailwindPickBonus": 1}
    assert updated.decks["macroEvents"].draw_pile == []
    assert updated.decks["macroEvents"].discard_pile == ["macro-m6"]


def test_empty_project_deck_ends_the_round():
    room = make_room()
    room.decks["projects"] = Deck(draw_pile=[])

    updated, _ = apply_action(room, "A", END_TURN)

    assert updated.current_round == 2
    assert updated.macro_event.id == "macro-m5"


def test_unique_leader_holds_round_for_discards():
    room = make_room(seat_ids=("A", "B", "C"), current_seat="B", turn_count=5, version=9)
    room.seats["A"].projects_started_this_round = 2
    room.seats["C"].projects_started_this_round = 1

    updated, _ = apply_action(room, "B", END_TURN)

    assert updated.current_round == 1
    assert updated.current_seat == "B"
    assert updated.pending_round_advance is True
    assert updated.must_discard_by_seat == {"A": 0, "B": 1, "C": 1}
    assert updated.version == 10
    assert get_round_phase(updated) == RoundPhase.ROUND_END_PENDING


def test_tied_leaders_advance_without_discards():
    room = make_room(seat_ids=("A", "B", "C"), current_seat="B", turn_count=5)
    room.seats["A"].projects_started_this_round = 1
    room.seats["B"].projects_started_this_round = 1

    updated, _ = apply_action(room, "B", END_TURN)

    assert updated.current_round == 2
    assert updated.pending_round_advance is False
    assert updated.must_discard_by_seat == {"A": 0, "B": 0, "C": 0}
    assert all(seat.projects_started_this_round == 0 for seat in updated.seats.values())


def test_advance_round_refused_while_debts_outstanding():
    room = make_room(pending_round_advance=True, must_discard_by_seat={"A": 0, "B": 1})

    with pytest.raises(InvalidStateTransition):
        apply_action(room, "A", ADVANCE_ROUND)


def test_end_turn_holds_debts_while_outstanding():
    room = make_room(pending_round_advance=True, must_discard_by_seat={"A": 0, "B": 1})

    updated, _ = apply_action(room, "A", END_TURN)

    assert updated.pending_round_advance is True
    assert updated.must_discard_by_seat == {"A": 0, "B": 1}
    assert updated.current_round == 1


def test_paid_debts_let_the_round_advance():
    room = make_room(pending_round_advance=True, must_discard_by_seat={"A": 0, "B": 0})
    room.seats["A"].projects_started_this_round = 1

    updated, _ = apply_action(room, "A", ADVANCE_ROUND)

    assert updated.current_round == 2
    assert updated.pending_round_advance is False
    assert updated.seats["A"].projects_started_this_round == 0


def test_last_round_boundary_ends_the_game_with_scoring():
    room = make_room(current_seat="B", current_round=3, turn_count=99, version=20)
    room.decks["projects"] = Deck(draw_pile=[])
    room.seats["A"].projects = [
        ProjectInstance(id="project-p1", stage=Stage.MV),
        ProjectInstance(id="project-p2", stage=Stage.TF),
        ProjectInstance(id="project-p3", paused=True, abandoned_penalty_count=1),
    ]
    room.seats["B"].projects = [ProjectInstance(id="project-p4", stage=Stage.MV)]

    updated, _ = apply_action(room, "B", END_TURN)

    assert updated.game_over is True
    assert updated.version == 21
    assert updated.final_scoring.by_seat["A"].final_score == 4
    assert updated.final_scoring.by_seat["B"].final_score == 1
    assert updated.final_scoring.winners == ["A"]
    assert updated.must_discard_by_seat == {"A": 0, "B": 0}
    assert get_round_phase(updated) == RoundPhase.GAME_OVER


class TestEnsureActionAllowed:

    def test_other_seat_cannot_act(self):
        room = make_room()
        with pytest.raises(NotYourTurn):
            TurnStateMachine.ensure_action_allowed(room, "B", ActionType.PICK_ASSET)

    def test_seat_over_hand_limit_may_discard_out_of_turn(self):
        room = make_room()
        room.seats["B"].must_discard = True
        TurnStateMachine.ensure_action_allowed(room, "B", ActionType.DISCARD_ASSET)

    def test_seat_over_hand_limit_cannot_end_turn(self):
        room = make_room()
        room.seats["A"].must_discard = True
        with pytest.raises(DiscardRequired):
            TurnStateMachine.ensure_action_allowed(room, "A", ActionType.END_TURN)

    def test_discard_gate_blocks_everything_but_discards(self):
        room = make_room(pending_round_advance=True, must_discard_by_seat={"A": 0, "B": 1})
        with pytest.raises(RoundEndDiscardPending):
            TurnStateMachine.ensure_action_allowed(room, "A", ActionType.START_PROJECT)
        TurnStateMachine.ensure_action_allowed(room, "B", ActionType.DISCARD_ASSET)

    def test_game_over_refuses_all_actions(self):
        room = make_room(game_over=True)
        with pytest.raises(GameAlreadyOver):
            TurnStateMachine.ensure_action_allowed(room, "A", ActionType.END_TURN)
