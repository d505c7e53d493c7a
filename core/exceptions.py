"""
Custom exceptions

All rule-engine failures live here so the controller and the API layer can
translate them in one place:

- AuthenticationFailed   -> 403
- ConcurrencyConflict    -> 409, answered with the latest public state
- ActionRejected         -> 400, nothing was applied
"""


class IntrapreneursException(Exception):
    """Base class for every game exception"""
    pass


# ============ Room ============

class RoomNotFound(IntrapreneursException):
    """The room document does not exist"""
    def __init__(self, room_id):
        self.room_id = room_id
        super().__init__(f"Room {room_id} not found")


# ============ Authentication ============

class AuthenticationFailed(IntrapreneursException):
    """Seat credentials could not be verified"""
    pass


class SeatNotFound(AuthenticationFailed):
    """The claimed seat is not part of the room"""
    def __init__(self, seat):
        self.seat = seat
        super().__init__("Seat not found in room.")


class InvalidSeatToken(AuthenticationFailed):
    """The submitted token does not match the seat credential"""
    def __init__(self):
        super().__init__("Invalid seat token.")


# ============ Concurrency preconditions ============

class ConcurrencyConflict(IntrapreneursException):
    """The caller acted on a stale view of the room"""
    pass


class VersionMismatch(ConcurrencyConflict):
    """expectedVersion no longer matches the stored version"""
    def __init__(self, expected, actual):
        self.expected = expected
        self.actual = actual
        super().__init__("Version mismatch.")


class TurnNonceMismatch(ConcurrencyConflict):
    """expectedTurnNonce no longer matches the current turn instance"""
    def __init__(self):
        super().__init__("Turn nonce mismatch.")


class NotYourTurn(ConcurrencyConflict):
    """Only the current seat may act"""
    def __init__(self, seat):
        self.seat = seat
        super().__init__(f"Not {seat}'s turn.")


class RoundEndDiscardPending(ConcurrencyConflict):
    """Round-end discards are outstanding; only discards are accepted"""
    def __init__(self):
        super().__init__("Round-end discards must be completed first; only discards are accepted.")


class DiscardRequired(ConcurrencyConflict):
    """The seat is over its hand limit and must discard before ending the turn"""
    def __init__(self, seat):
        self.seat = seat
        super().__init__(f"Seat {seat} must discard before ending the turn.")


class GameAlreadyOver(ConcurrencyConflict):
    """The game has ended and the room is read-only"""
    def __init__(self):
        super().__init__("Game is over.")


class WriteConflict(ConcurrencyConflict):
    """Another writer replaced the document between read and write"""
    def __init__(self, room_id):
        self.room_id = room_id
        super().__init__("Room changed, retry with latest version.")


# ============ Domain rules ============

class ActionRejected(IntrapreneursException):
    """The action breaks a game rule; nothing was applied"""
    pass


class InvalidAction(ActionRejected):
    """Malformed or illegal action payload"""
    pass


class DeckExhausted(ActionRejected):
    """Not enough cards left in a draw pile"""
    def __init__(self, deck_key, requested, available):
        self.deck_key = deck_key
        self.requested = requested
        self.available = available
        super().__init__(
            f"Deck {deck_key} does not have enough cards to draw {requested} (has {available})."
        )


class UnknownCard(ActionRejected):
    """Card id is not in the catalog"""
    def __init__(self, card_id):
        self.card_id = card_id
        super().__init__(f"Unknown card {card_id}.")


class ProjectNotFound(ActionRejected):
    """No eligible project for the requested operation"""
    pass


class InvalidStateTransition(ActionRejected):
    """Illegal turn/round transition"""
    pass
