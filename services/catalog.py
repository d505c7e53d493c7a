"""
Card catalog: static card definitions keyed by card id

Loaded once at import time from the JSON files under services/data and
exposed as read-only lookup tables. Nothing mutates them afterwards, so they
are safe to share between concurrent requests.
"""
import json
from pathlib import Path
from types import MappingProxyType
from typing import Dict, List, Mapping, Optional, Type, TypeVar

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

DATA_DIR = Path(__file__).parent / "data"


class CatalogCard(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    id: str
    name: str = ""


class AssetOutcomes(BaseModel):
    model_config = ConfigDict(frozen=True)

    budget: int = 0
    headcount: int = 0
    tailwind: int = 0


class AssetCard(CatalogCard):
    family: str = ""
    outcomes: AssetOutcomes = AssetOutcomes()
    pick_condition: Optional[str] = None


class ProjectRewards(BaseModel):
    model_config = ConfigDict(frozen=True)

    growth: int = 0
    fuel: int = 0


class ProjectCard(CatalogCard):
    family: str = ""
    mv_req: int
    tf_req: int
    rewards: ProjectRewards = ProjectRewards()
    restart_burden_tailwind: Optional[int] = None
    acceleration: Optional[int] = None


class ObstacleCard(CatalogCard):
    impact: Dict[str, int] = {}
    defense_key: Optional[str] = None


class MacroEventCard(CatalogCard):
    rule_modifiers: Dict[str, int] = {}


CardT = TypeVar("CardT", bound=CatalogCard)


def _load(filename: str, card_type: Type[CardT]) -> Mapping[str, CardT]:
    with open(DATA_DIR / filename, encoding="utf-8") as fh:
        raw = json.load(fh)
    cards = [card_type.model_validate(entry) for entry in raw]
    return MappingProxyType({card.id: card for card in cards})


ASSETS: Mapping[str, AssetCard] = _load("assets_round1.json", AssetCard)
PROJECTS: Mapping[str, ProjectCard] = _load("projects.json", ProjectCard)
OBSTACLES: Mapping[str, ObstacleCard] = _load("obstacles.json", ObstacleCard)
MACRO_EVENTS: Mapping[str, MacroEventCard] = _load("macro_events.json", MacroEventCard)

# Deck key -> catalog whose ids seed that deck, in catalog order
DECK_CATALOGS: Mapping[str, Mapping[str, CatalogCard]] = MappingProxyType({
    "projects": PROJECTS,
    "assetsRound1": ASSETS,
    "obstacles": OBSTACLES,
    "macroEvents": MACRO_EVENTS,
})


def catalog_ids(deck_key: str) -> List[str]:
    return list(DECK_CATALOGS[deck_key].keys())


def get_asset(card_id: str) -> Optional[AssetCard]:
    return ASSETS.get(card_id)


def get_project(project_id: str) -> Optional[ProjectCard]:
    return PROJECTS.get(project_id)


def get_macro_event(event_id: str) -> MacroEventCard:
    """
    Look up a macro event; ids missing from the catalog become a bare
    event with no rule modifiers so a round can still start.
    """
    event = MACRO_EVENTS.get(event_id)
    if event is None:
        return MacroEventCard(id=event_id, name=event_id, rule_modifiers={})
    return event
