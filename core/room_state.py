"""
Room state model

The room is one document: seats, market, decks, projects and the action log
all live inside a single aggregate that is replaced wholesale on every
successful write. Field names serialize in camelCase, the wire format
clients already speak.

Invariants kept by the engine:
1. version grows by exactly 1 per applied action
2. exactly one seat is current unless a round-end discard gate is active
3. mustDiscardBySeat is non-zero only while pendingRoundAdvance is true
4. a project's stage follows from its tailwind total and catalog thresholds
5. a card id lives in exactly one place (deck pile, market, hand or project)
"""
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from services.catalog import MacroEventCard


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_document(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class Stage(str, Enum):
    NONE = "NONE"
    MV = "MV"
    TF = "TF"


class RoundPhase(str, Enum):
    IN_TURN = "IN_TURN"
    ROUND_END_PENDING = "ROUND_END_PENDING"
    GAME_OVER = "GAME_OVER"


class ActionType(str, Enum):
    END_TURN = "END_TURN"
    ADVANCE_ROUND = "ADVANCE_ROUND"
    PICK_ASSET = "PICK_ASSET"
    START_PROJECT = "START_PROJECT"
    ALLOCATE_TO_PROJECT = "ALLOCATE_TO_PROJECT"
    PAUSE_PROJECT = "PAUSE_PROJECT"
    DISCARD_ASSET = "DISCARD_ASSET"


class AllocatedTotals(CamelModel):
    budget: int = 0
    headcount: int = 0
    tailwind: int = 0


class ProjectInstance(CamelModel):
    id: str
    allocated_totals: AllocatedTotals = Field(default_factory=AllocatedTotals)
    allocated_card_ids: List[str] = Field(default_factory=list)
    stage: Stage = Stage.NONE
    paused: bool = False
    restart_burden_tailwind: int = 0
    abandoned_penalty_count: int = 0

    @property
    def is_active(self) -> bool:
        return not self.paused and self.stage != Stage.TF


class SeatState(CamelModel):
    connected: bool = False
    token: Optional[str] = None
    token_hash: Optional[str] = None
    hand_size: int = 0
    must_discard: bool = False
    discard_target: Optional[int] = None
    projects: List[ProjectInstance] = Field(default_factory=list)
    projects_started_this_round: int = 0
    last_hand_hash: Optional[str] = None


class Deck(CamelModel):
    draw_pile: List[str] = Field(default_factory=list)
    discard_pile: List[str] = Field(default_factory=list)


class Market(CamelModel):
    available_projects: List[str] = Field(default_factory=list)
    available_assets: List[str] = Field(default_factory=list)


class RoundModifier(CamelModel):
    """Rule overrides installed for a round, tagged with the card that caused them"""
    source: str
    rules: Dict[str, int] = Field(default_factory=dict)


class SeatScore(CamelModel):
    growth: int = 0
    fuel: int = 0
    mv_completed_count: int = 0
    tf_completed_count: int = 0
    paused_or_abandoned_count: int = 0
    base_score: int = 0
    final_score: int = 0


class FinalScoring(CamelModel):
    by_seat: Dict[str, SeatScore] = Field(default_factory=dict)
    winners: List[str] = Field(default_factory=list)
    is_tie: bool = False


class LogEntry(CamelModel):
    at: str
    seat: str
    type: str
    version: int


class PrivateDelta(CamelModel):
    """Card ids entering or leaving one seat's hand; shown to that seat only"""
    seat: str
    added_card_ids: List[str] = Field(default_factory=list)
    removed_card_ids: List[str] = Field(default_factory=list)


class GameAction(CamelModel):
    type: ActionType
    card_id: Optional[str] = None
    project_id: Optional[str] = None
    card_ids: List[str] = Field(default_factory=list)
    hand_hash: Optional[str] = None


class Room(CamelModel):
    schema_version: int = 1
    room_id: str = ""
    created_at: str = ""
    version: int = 1
    current_seat: str = "A"
    turn_nonce: str = ""
    current_round: int = 1
    total_rounds: int = 3
    turn_count: int = 0
    pending_round_advance: bool = False
    must_discard_by_seat: Dict[str, int] = Field(default_factory=dict)
    macro_event: Optional[MacroEventCard] = None
    round_modifiers: List[RoundModifier] = Field(default_factory=list)
    seats: Dict[str, SeatState] = Field(default_factory=dict)
    market: Market = Field(default_factory=Market)
    decks: Dict[str, Deck] = Field(default_factory=dict)
    deal_queue: Dict[str, List[str]] = Field(default_factory=dict)
    game_over: bool = False
    final_scoring: Optional[FinalScoring] = None
    discard_pile_count: int = 0
    shuffle_seed: str = ""
    log: List[LogEntry] = Field(default_factory=list)

    @classmethod
    def from_document(cls, document: Dict[str, Any]) -> "Room":
        return cls.model_validate(document)

    def deck(self, deck_key: str) -> Deck:
        """Return the named deck, creating an empty one if the room never had it"""
        return self.decks.setdefault(deck_key, Deck())
