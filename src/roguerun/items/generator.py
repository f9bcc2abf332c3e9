from __future__ import annotations

import logging
import uuid
from typing import Dict, Optional, Sequence, Tuple

from ..core.rng import RngCursor, draw_chance, draw_int, draw_weighted
from ..utils.math import clamp
from .catalog import ItemRegistry
from .models import (
    ITEM_STAT_KEYS,
    RARITY_ORDER,
    ItemInstance,
    ItemSource,
    ItemStats,
    ItemTemplate,
)

logger = logging.getLogger(__name__)

# Namespace for deterministic item ids derived from (seed, rng index).
ITEM_ID_NAMESPACE = uuid.UUID("6f1c2a8e-4f7b-5d0e-9a3c-1b2d3e4f5a6b")

# One rarity draw plus at most one draw per stat key.
MAX_DRAWS_PER_ITEM = 1 + len(ITEM_STAT_KEYS)


def _item_id(cursor: RngCursor) -> str:
    return "itm_" + uuid.uuid5(ITEM_ID_NAMESPACE, f"{cursor.seed}:{cursor.index}").hex[:16]


def roll_item(
    template: ItemTemplate,
    cursor: RngCursor,
    *,
    source: ItemSource,
    now: int,
) -> Tuple[ItemInstance, RngCursor]:
    """Roll a concrete item from a template.

    Draws: one weighted rarity draw, then one draw per stat range of that rarity
    in ITEM_STAT_KEYS order. The item id is derived from the cursor position the
    roll started at, so replays reproduce ids as well.
    """
    item_id = _item_id(cursor)
    weights = [template.rarity_weights.get(r, 0) for r in RARITY_ORDER]
    idx, cursor = draw_weighted(cursor, weights)
    rarity = RARITY_ORDER[idx]

    rolled: Dict[str, float] = {}
    ranges = template.stat_ranges.get(rarity, {})
    for key in ITEM_STAT_KEYS:
        rng_range = ranges.get(key)
        if rng_range is None:
            continue
        offset, cursor = draw_int(cursor, rng_range.span)
        rolled[key] = rng_range.min + offset

    speed = rolled.get("actionSpeedMod")
    stats = ItemStats(
        atk=rolled.get("ATK"),
        defense=rolled.get("DEF"),
        hp=rolled.get("HP"),
        action_speed_mod=(speed / 1000.0) if speed is not None else None,
    )
    item = ItemInstance(
        item_id=item_id,
        template_id=template.template_id,
        type=template.type,
        equip_slot=template.equip_slot,
        rarity=rarity,
        stats=stats,
        source=source,
        created_at=now,
    )
    logger.debug("Rolled item %s (%s %s)", item.item_id, rarity.value, template.template_id)
    return item, cursor


def roll_drop(
    drop_chance: float,
    drop_table: Sequence[Tuple[str, int]],
    cursor: RngCursor,
    registry: ItemRegistry,
    *,
    drop_multiplier: float = 1.0,
    now: int,
) -> Tuple[Optional[ItemInstance], RngCursor]:
    """Roll one enemy's drop.

    Draws: one chance draw; on a hit one weighted template draw plus the item
    roll itself. An empty drop table still consumes the chance draw.
    """
    chance = clamp(drop_chance * drop_multiplier, 0.0, 1.0)
    hit, cursor = draw_chance(cursor, chance)
    if not hit or not drop_table:
        return None, cursor
    idx, cursor = draw_weighted(cursor, [w for _, w in drop_table])
    template = registry.get(drop_table[idx][0])
    return roll_item(template, cursor, source=ItemSource.DROP, now=now)
