"""Room builders for unit tests"""
from core.room_state import Deck, Room, SeatState
from core.state_machine import compute_turn_nonce
from services.naming_service import hash_token

HAND_HASH = "ab" * 32


def seat_token(seat):
    return f"token-{seat}"


def make_room(seat_ids=("A", "B"), connected=True, hand_size=2, **overrides):
    seats = {
        seat: SeatState(connected=connected, hand_size=hand_size, token_hash=hash_token(seat_token(seat)))
        for seat in seat_ids
    }
    room = Room(
        room_id="ROOMAB",
        version=1,
        current_seat=seat_ids[0],
        seats=seats,
        must_discard_by_seat={seat: 0 for seat in seat_ids},
        decks={
            "projects": Deck(draw_pile=["project-p9", "project-p10", "project-p11", "project-p12"]),
            "assetsRound1": Deck(draw_pile=["asset-a10", "asset-a11"]),
            "obstacles": Deck(draw_pile=["obstacle-o1"]),
            "macroEvents": Deck(draw_pile=["macro-m5", "macro-m6"]),
        },
    )
    room.market.available_projects = ["project-p1", "project-p2", "project-p3", "project-p4", "project-p5"]
    room.market.available_assets = ["asset-a1", "asset-a2", "asset-a3"]

    for field, value in overrides.items():
        setattr(room, field, value)

    room.turn_nonce = compute_turn_nonce(room)
    return room
