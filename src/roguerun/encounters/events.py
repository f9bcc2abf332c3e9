from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple

from ..config import EngineConfig, default_config
from ..core.modifiers import ModifierCatalog, RunModifier
from ..core.rng import RngCursor, draw_int, draw_weighted
from ..errors import InternalInvariant, InvalidChoice
from ..items.catalog import ItemRegistry
from ..items.generator import MAX_DRAWS_PER_ITEM, roll_item
from ..items.models import ItemInstance, ItemSource

logger = logging.getLogger(__name__)


class EventType(str, Enum):
    HEAL = "HEAL"
    BLESSING = "BLESSING"
    CURSE = "CURSE"
    WHEEL = "WHEEL"
    CHOICE = "CHOICE"


# Draw order of event types and wheel segments; part of the replay contract.
RANDOM_EVENT_TYPES = (EventType.HEAL, EventType.BLESSING, EventType.CURSE, EventType.WHEEL)
WHEEL_SEGMENTS = ("GOLD", "GEMS", "ITEM", "NOTHING")


@dataclass(frozen=True)
class ChoiceOption:
    """One branch of a CHOICE event. Costs are fractions of max HP."""

    label: str
    hp_cost_percent: float = 0.0
    heal_percent: float = 0.0
    gold_base: int = 0
    gold_per_step: int = 0
    gems: int = 0
    grant_blessing: bool = False
    apply_curse: bool = False
    grant_item: bool = False


@dataclass(frozen=True)
class ChoiceTemplate:
    id: str
    description: str
    options: Tuple[ChoiceOption, ...]


CHOICE_TEMPLATES: Tuple[ChoiceTemplate, ...] = (
    ChoiceTemplate(
        "blood_altar",
        "A stained altar hums with old power.",
        (
            ChoiceOption("Offer your blood", hp_cost_percent=0.25, grant_blessing=True),
            ChoiceOption("Walk away"),
        ),
    ),
    ChoiceTemplate(
        "cursed_chest",
        "A chest wrapped in black chains rattles softly.",
        (
            ChoiceOption("Break the chains", apply_curse=True, gold_base=40, gold_per_step=4, grant_item=True),
            ChoiceOption("Leave it be"),
        ),
    ),
    ChoiceTemplate(
        "wandering_merchant",
        "A hooded merchant offers a strange bargain.",
        (
            ChoiceOption("Trade vitality for gems", hp_cost_percent=0.15, gems=2),
            ChoiceOption("Ask for a remedy", heal_percent=0.15),
            ChoiceOption("Decline"),
        ),
    ),
    ChoiceTemplate(
        "gamblers_den",
        "Dice clatter in a smoky tent.",
        (
            ChoiceOption("Wager your health", hp_cost_percent=0.10, gold_base=30, gold_per_step=3),
            ChoiceOption("Move on"),
        ),
    ),
)

_CHOICES_BY_ID = {c.id: c for c in CHOICE_TEMPLATES}


def get_choice_template(choice_id: str) -> ChoiceTemplate:
    try:
        return _CHOICES_BY_ID[choice_id]
    except KeyError as e:
        raise KeyError(f"Unknown choice template id: {choice_id}") from e


# Worst case: blessing + curse + item template + item roll.
MAX_DRAWS_PER_EVENT = 3 + MAX_DRAWS_PER_ITEM


@dataclass
class EventOutcome:
    """What an event did. HP fields are already bounded by the player's HP."""

    event_type: EventType
    event_id: str
    description: str
    hp_healed: int = 0
    hp_lost: int = 0
    blessing_granted: Optional[str] = None
    curse_applied: Optional[str] = None
    gold_gained: int = 0
    gems_gained: int = 0
    items_gained: List[ItemInstance] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "eventId": self.event_id,
            "type": self.event_type.value,
            "description": self.description,
        }
        if self.hp_healed:
            data["hpHealed"] = self.hp_healed
        if self.hp_lost:
            data["hpLost"] = self.hp_lost
        if self.blessing_granted:
            data["blessingGranted"] = self.blessing_granted
        if self.curse_applied:
            data["curseApplied"] = self.curse_applied
        if self.gold_gained:
            data["goldGained"] = self.gold_gained
        if self.gems_gained:
            data["gemsGained"] = self.gems_gained
        if self.items_gained:
            data["itemsGained"] = [i.to_document() for i in self.items_gained]
        return data


@dataclass(frozen=True)
class EventContext:
    """Player-side inputs for an event resolution."""

    step: int
    player_hp: int
    player_hp_max: int
    blessings: Sequence[str] = ()
    curses: Sequence[str] = ()
    gold_multiplier: float = 1.0
    now: int = 0


def _unowned(pool: Sequence[RunModifier], owned: Sequence[str]) -> List[RunModifier]:
    return [m for m in pool if m.id not in owned]


def _pick_modifier(
    cursor: RngCursor, pool: Sequence[RunModifier], owned: Sequence[str]
) -> Tuple[Optional[RunModifier], RngCursor]:
    candidates = _unowned(pool, owned)
    if not candidates:
        return None, cursor
    idx, cursor = draw_int(cursor, len(candidates))
    return candidates[idx], cursor


def _roll_event_item(
    cursor: RngCursor, registry: ItemRegistry, now: int
) -> Tuple[ItemInstance, RngCursor]:
    ids = registry.ids()
    idx, cursor = draw_int(cursor, len(ids))
    return roll_item(registry.get(ids[idx]), cursor, source=ItemSource.EVENT, now=now)


def _heal_amount(ctx: EventContext, percent: float) -> int:
    return min(ctx.player_hp_max - ctx.player_hp, math.floor(ctx.player_hp_max * percent))


def resolve_event(
    payload: Dict[str, Any],
    cursor: RngCursor,
    ctx: EventContext,
    *,
    choice_index: Optional[int] = None,
    catalog: ModifierCatalog,
    items: ItemRegistry,
    config: Optional[EngineConfig] = None,
) -> Tuple[EventOutcome, RngCursor]:
    """Resolve the event stored in a node payload.

    Draw usage per type (at most MAX_DRAWS_PER_EVENT):
      HEAL: none
      BLESSING / CURSE: one pick among unowned modifiers, none when exhausted
      WHEEL: one segment draw, plus template + item roll on ITEM
      CHOICE: the chosen option's blessing, curse and item draws in that order
    """
    cfg = config or default_config()
    event_type = EventType(payload["eventType"])

    if event_type is EventType.CHOICE:
        outcome, end = _resolve_choice(payload, cursor, ctx, choice_index, catalog, items, cfg)
    elif choice_index is not None:
        raise InvalidChoice(f"Event {event_type.value} does not take a choice")
    else:
        outcome, end = _resolve_random(event_type, cursor, ctx, catalog, items, cfg)

    used = end.consumed_since(cursor)
    if used > MAX_DRAWS_PER_EVENT:
        raise InternalInvariant(f"Event {outcome.event_id} used {used} draws (max {MAX_DRAWS_PER_EVENT})")
    return outcome, end


def _resolve_random(
    event_type: EventType,
    cursor: RngCursor,
    ctx: EventContext,
    catalog: ModifierCatalog,
    items: ItemRegistry,
    cfg: EngineConfig,
) -> Tuple[EventOutcome, RngCursor]:
    ec = cfg.events
    outcome = EventOutcome(event_type, event_type.value.lower(), "")
    if event_type is EventType.HEAL:
        outcome.hp_healed = _heal_amount(ctx, ec.heal_percent)
        outcome.description = f"A quiet spring restores {outcome.hp_healed} HP."
    elif event_type is EventType.BLESSING:
        picked, cursor = _pick_modifier(cursor, catalog.blessings(), ctx.blessings)
        if picked is None:
            outcome.gold_gained = math.floor(ec.wheel_gold_base * ctx.gold_multiplier)
            outcome.description = "The shrine has nothing left to teach you; it leaves an offering instead."
        else:
            outcome.blessing_granted = picked.id
            outcome.description = f"A shrine blesses you with {picked.name}."
    elif event_type is EventType.CURSE:
        picked, cursor = _pick_modifier(cursor, catalog.curses(), ctx.curses)
        if picked is None:
            outcome.description = "A dark whisper finds nothing left to take."
        else:
            outcome.curse_applied = picked.id
            outcome.description = f"A dark whisper afflicts you with {picked.name}."
    elif event_type is EventType.WHEEL:
        weights = [ec.wheel_weights.get(s, 0) for s in WHEEL_SEGMENTS]
        idx, cursor = draw_weighted(cursor, weights)
        segment = WHEEL_SEGMENTS[idx]
        if segment == "GOLD":
            outcome.gold_gained = math.floor(
                (ec.wheel_gold_base + ec.wheel_gold_per_step * ctx.step) * ctx.gold_multiplier
            )
        elif segment == "GEMS":
            outcome.gems_gained = ec.wheel_gems
        elif segment == "ITEM":
            item, cursor = _roll_event_item(cursor, items, ctx.now)
            outcome.items_gained.append(item)
        outcome.description = f"The wheel stops on {segment}."
    logger.debug("Resolved event %s: %s", event_type.value, outcome)
    return outcome, cursor


def _resolve_choice(
    payload: Dict[str, Any],
    cursor: RngCursor,
    ctx: EventContext,
    choice_index: Optional[int],
    catalog: ModifierCatalog,
    items: ItemRegistry,
    cfg: EngineConfig,
) -> Tuple[EventOutcome, RngCursor]:
    template = get_choice_template(payload["choiceId"])
    if choice_index is None or not (0 <= choice_index < len(template.options)):
        raise InvalidChoice(
            f"Choice '{template.id}' needs an option index in [0, {len(template.options) - 1}], got {choice_index}"
        )
    option = template.options[choice_index]
    outcome = EventOutcome(EventType.CHOICE, template.id, option.label)

    if option.hp_cost_percent:
        cost = max(1, math.floor(ctx.player_hp_max * option.hp_cost_percent))
        outcome.hp_lost = min(ctx.player_hp, cost)
    if option.heal_percent:
        outcome.hp_healed = _heal_amount(ctx, option.heal_percent)
    if option.gold_base or option.gold_per_step:
        outcome.gold_gained = math.floor(
            (option.gold_base + option.gold_per_step * ctx.step) * ctx.gold_multiplier
        )
    outcome.gems_gained = option.gems
    if option.grant_blessing:
        picked, cursor = _pick_modifier(cursor, catalog.blessings(), ctx.blessings)
        outcome.blessing_granted = picked.id if picked else None
    if option.apply_curse:
        picked, cursor = _pick_modifier(cursor, catalog.curses(), ctx.curses)
        outcome.curse_applied = picked.id if picked else None
    if option.grant_item:
        item, cursor = _roll_event_item(cursor, items, ctx.now)
        outcome.items_gained.append(item)
    logger.debug("Resolved choice %s option %d: %s", template.id, choice_index, outcome)
    return outcome, cursor


def draw_blessing_offer(
    cursor: RngCursor,
    owned: Sequence[str],
    catalog: ModifierCatalog,
    size: int,
) -> Tuple[List[str], RngCursor]:
    """Draw up to ``size`` distinct unowned blessings, one draw per pick."""
    remaining = _unowned(catalog.blessings(), owned)
    offer: List[str] = []
    while remaining and len(offer) < size:
        idx, cursor = draw_int(cursor, len(remaining))
        offer.append(remaining.pop(idx).id)
    return offer, cursor
