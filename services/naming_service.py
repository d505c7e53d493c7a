"""
Naming service: room codes, seat tokens and token hashes

Pure computation, no state transitions.
"""
import hashlib
import hmac
import random
import secrets
import string


def generate_room_code() -> str:
    """
    Generate a random 6-letter uppercase room code

    Examples: ABCDEF, XYZABC

    Notes:
    - uniqueness is not checked here (the caller does that)
    - 26^6 = 308,915,776 codes, collisions are rare
    """
    return ''.join(random.choices(string.ascii_uppercase, k=6))


def generate_seat_token() -> str:
    """URL-safe secret handed to one seat in its invite link"""
    return secrets.token_urlsafe(24)


def generate_shuffle_seed() -> str:
    return str(secrets.randbits(32))


def hash_token(token: str) -> str:
    """SHA-256 hex digest; only this is stored in the room document"""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def verify_seat_token(stored_token, stored_hash, token: str) -> bool:
    """
    Check a submitted token against a seat credential

    Rooms written by older clients may hold the raw token; newer ones only
    keep its hash. A raw token, when present, wins.
    """
    if not isinstance(token, str) or not token:
        return False
    if isinstance(stored_token, str):
        return hmac.compare_digest(stored_token, token)
    if isinstance(stored_hash, str):
        return hmac.compare_digest(stored_hash, hash_token(token))
    return False
