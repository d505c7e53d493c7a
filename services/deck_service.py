"""
Deck service: seeded shuffling and draw/discard primitives

Pure computation over ordered id lists. A shuffle is a pure function of
(ids, seed): the same seed and input order always give the same
permutation, which keeps room setup reproducible for tests and audits.
"""
import random
from typing import Dict, List, Sequence

from core.exceptions import DeckExhausted
from core.room_state import Deck
from services.catalog import DECK_CATALOGS, catalog_ids

ASSETS_DECK = "assetsRound1"
PROJECTS_DECK = "projects"
OBSTACLES_DECK = "obstacles"
MACRO_EVENTS_DECK = "macroEvents"


def deck_seed(room_seed: str, deck_key: str) -> str:
    """Sub-seed for one deck, so every deck shuffles independently from one room seed"""
    return f"{room_seed}:{deck_key}"


def shuffle(ids: Sequence[str], seed: str) -> List[str]:
    """
    Fisher-Yates shuffle driven by a PRNG seeded from `seed`

    random.Random.shuffle walks from the last index down to 1 and swaps
    each slot with a uniformly drawn index in the remaining range. Seeding
    with a str is stable across processes and interpreter runs.
    """
    shuffled = list(ids)
    random.Random(str(seed)).shuffle(shuffled)
    return shuffled


def build_initial_decks(room_seed: str) -> Dict[str, Deck]:
    return {
        deck_key: Deck(draw_pile=shuffle(catalog_ids(deck_key), deck_seed(room_seed, deck_key)))
        for deck_key in DECK_CATALOGS
    }


def draw(deck: Deck, count: int, deck_key: str = "deck") -> List[str]:
    """
    Remove the first `count` ids from the draw pile and return them in order

    Raises DeckExhausted when fewer than `count` cards remain; callers that
    cannot accept a partial draw must check the pile first.
    """
    if count < 0:
        raise ValueError(f"Cannot draw a negative number of cards: {count}")
    if len(deck.draw_pile) < count:
        raise DeckExhausted(deck_key, count, len(deck.draw_pile))

    cards = deck.draw_pile[:count]
    deck.draw_pile = deck.draw_pile[count:]
    return cards


def draw_top(deck: Deck, deck_key: str = "deck") -> str:
    return draw(deck, 1, deck_key)[0]


def discard(deck: Deck, card_ids: Sequence[str]) -> None:
    """Move drawn ids onto the discard pile, keeping draw order"""
    deck.discard_pile.extend(card_ids)


def refill(target: List[str], deck: Deck, size: int) -> List[str]:
    """
    Top `target` back up to `size` from the deck, stopping early when the
    deck runs dry. Returns the ids that were added.
    """
    added = []
    while len(target) < size and deck.draw_pile:
        card_id = draw_top(deck)
        target.append(card_id)
        added.append(card_id)
    return added
