import pytest

from core.concurrency import ActionController, Applied, ConflictStale, Rejected
from core.exceptions import InvalidSeatToken, RoomNotFound, SeatNotFound
from core.room_state import ActionType, GameAction
from core.room_store import RoomStore
from tests.factories import make_room, seat_token

PICK_A1 = GameAction(type=ActionType.PICK_ASSET, card_id="asset-a1")
END_TURN = GameAction(type=ActionType.END_TURN)


@pytest.fixture
def store(db_session):
    return RoomStore(db_session)


@pytest.fixture
def room(store):
    room = make_room(version=7)
    store.create(room)
    return room


def submit(store, seat, expected_version, action, **kwargs):
    return ActionController(store).submit("ROOMAB", seat, seat_token(seat), expected_version, action, **kwargs)


def test_applied_action_is_persisted_and_logged(store, room):
    outcome = submit(store, "A", 7, PICK_A1, expected_turn_nonce=room.turn_nonce)

    assert isinstance(outcome, Applied)
    assert outcome.room.version == 8
    assert outcome.private_delta.added_card_ids == ["asset-a1"]
    assert [(entry.seat, entry.type, entry.version) for entry in outcome.room.log] == [("A", "PICK_ASSET", 8)]

    stored, etag = store.get("ROOMAB")
    assert stored.version == 8
    assert etag == outcome.next_etag
    assert stored.market.available_assets == ["asset-a2", "asset-a3", "asset-a10"]


def test_stale_version_is_a_conflict(store, room):
    outcome = submit(store, "A", 6, PICK_A1)

    assert isinstance(outcome, ConflictStale)
    assert outcome.error == "Version mismatch."
    assert outcome.latest_room.version == 7
    assert store.get("ROOMAB")[0].version == 7


def test_stale_turn_nonce_is_a_conflict(store, room):
    outcome = submit(store, "A", 7, PICK_A1, expected_turn_nonce="0000000000000000")

    assert isinstance(outcome, ConflictStale)
    assert outcome.error == "Turn nonce mismatch."


def test_acting_out_of_turn_is_a_conflict(store, room):
    outcome = submit(store, "B", 7, END_TURN)

    assert isinstance(outcome, ConflictStale)
    assert outcome.error == "Not B's turn."


def test_rule_violation_is_rejected_and_not_written(store, room):
    _, etag_before = store.get("ROOMAB")

    outcome = submit(store, "A", 7, GameAction(type=ActionType.PICK_ASSET, card_id="asset-a99"))

    assert isinstance(outcome, Rejected)
    stored, etag_after = store.get("ROOMAB")
    assert stored.version == 7
    assert etag_after == etag_before


def test_bad_credentials_raise(store, room):
    with pytest.raises(InvalidSeatToken):
        ActionController(store).submit("ROOMAB", "A", "wrong", 7, PICK_A1)
    with pytest.raises(SeatNotFound):
        ActionController(store).submit("ROOMAB", "D", seat_token("A"), 7, PICK_A1)


def test_missing_room_raises(store):
    with pytest.raises(RoomNotFound):
        submit(store, "A", 1, PICK_A1)


def test_discard_gate(store):
    store.create(make_room(pending_round_advance=True, must_discard_by_seat={"A": 0, "B": 1}))

    blocked = submit(store, "A", 1, GameAction(type=ActionType.START_PROJECT, project_id="project-p1"))
    assert isinstance(blocked, ConflictStale)

    paid = submit(store, "B", 1, GameAction(type=ActionType.DISCARD_ASSET, card_id="asset-a9"))
    assert isinstance(paid, Applied)
    assert paid.room.must_discard_by_seat == {"A": 0, "B": 0}

    advanced = submit(store, "A", 2, GameAction(type=ActionType.ADVANCE_ROUND))
    assert isinstance(advanced, Applied)
    assert advanced.room.current_round == 2
    assert advanced.room.pending_round_advance is False


def test_game_over_is_a_conflict(store):
    store.create(make_room(game_over=True))

    outcome = submit(store, "A", 1, END_TURN)

    assert isinstance(outcome, ConflictStale)


class RacingRoomStore(RoomStore):
    """Lets a competing request commit between our read and our write"""

    def __init__(self, db):
        super().__init__(db)
        self.raced = False

    def write(self, room_id, room, expected_etag):
        if not self.raced:
            self.raced = True
            competitor = submit(RoomStore(self.db), "A", 7, END_TURN)
            assert isinstance(competitor, Applied)
        return super().write(room_id, room, expected_etag)


def test_lost_write_race_returns_latest_state(db_session, room):
    outcome = submit(RacingRoomStore(db_session), "A", 7, PICK_A1)

    assert isinstance(outcome, ConflictStale)
    assert outcome.error == "Room changed, retry with latest version."
    assert outcome.latest_room.version == 8
    assert outcome.latest_room.current_seat == "B"
    assert outcome.latest_room.market.available_assets == ["asset-a1", "asset-a2", "asset-a3"]

    stored, _ = RoomStore(db_session).get("ROOMAB")
    assert stored.version == 8
    assert [entry.type for entry in stored.log] == ["END_TURN"]
