from __future__ import annotations

import functools
from typing import Dict, Iterable, List, Optional

from .models import EquipmentSlot, ItemTemplate, ItemType, Rarity, StatRange

_STANDARD_WEIGHTS = {Rarity.N: 50, Rarity.R: 30, Rarity.SR: 15, Rarity.SSR: 4, Rarity.L: 1}


def _ranges(**per_rarity: Dict[str, tuple]) -> Dict[Rarity, Dict[str, StatRange]]:
    return {
        Rarity(r): {k: StatRange(lo, hi) for k, (lo, hi) in stats.items()}
        for r, stats in per_rarity.items()
    }


class ItemRegistry:
    """In-memory registry of item templates.

    Populated with a default set when no templates are given. Template ids are
    referenced from enemy drop tables and persisted item instances.
    """

    def __init__(self, templates: Optional[Iterable[ItemTemplate]] = None) -> None:
        self._templates: Dict[str, ItemTemplate] = {}
        if templates is not None:
            for t in templates:
                self.add(t)
        else:
            self._bootstrap_defaults()

    def add(self, template: ItemTemplate) -> None:
        if template.template_id in self._templates:
            raise ValueError(f"Duplicate item template id: {template.template_id}")
        self._templates[template.template_id] = template

    def get(self, template_id: str) -> ItemTemplate:
        try:
            return self._templates[template_id]
        except KeyError as e:
            raise KeyError(f"Unknown item template id: {template_id}") from e

    def has(self, template_id: str) -> bool:
        return template_id in self._templates

    def ids(self) -> List[str]:
        return list(self._templates)

    def _bootstrap_defaults(self) -> None:
        self.add(ItemTemplate(
            template_id="sword_basic",
            name="Basic Sword",
            type=ItemType.EQUIPMENT,
            equip_slot=EquipmentSlot.RIGHT_HAND,
            rarity_weights=dict(_STANDARD_WEIGHTS),
            stat_ranges=_ranges(
                N={"ATK": (5, 10)},
                R={"ATK": (10, 20)},
                SR={"ATK": (20, 35)},
                SSR={"ATK": (35, 55)},
                L={"ATK": (55, 80)},
            ),
        ))
        self.add(ItemTemplate(
            template_id="helmet_basic",
            name="Basic Helmet",
            type=ItemType.EQUIPMENT,
            equip_slot=EquipmentSlot.HEAD,
            rarity_weights=dict(_STANDARD_WEIGHTS),
            stat_ranges=_ranges(
                N={"DEF": (3, 6), "HP": (10, 20)},
                R={"DEF": (6, 12), "HP": (20, 40)},
                SR={"DEF": (12, 20), "HP": (40, 70)},
                SSR={"DEF": (20, 30), "HP": (70, 110)},
                L={"DEF": (30, 45), "HP": (110, 160)},
            ),
        ))
        self.add(ItemTemplate(
            template_id="armor_basic",
            name="Basic Chainmail",
            type=ItemType.EQUIPMENT,
            equip_slot=EquipmentSlot.BODY,
            rarity_weights=dict(_STANDARD_WEIGHTS),
            stat_ranges=_ranges(
                N={"DEF": (5, 9), "HP": (15, 30)},
                R={"DEF": (9, 16), "HP": (30, 55)},
                SR={"DEF": (16, 26), "HP": (55, 90)},
                SSR={"DEF": (26, 38), "HP": (90, 140)},
                L={"DEF": (38, 55), "HP": (140, 200)},
            ),
        ))
        self.add(ItemTemplate(
            template_id="boots_basic",
            name="Traveler's Boots",
            type=ItemType.EQUIPMENT,
            equip_slot=EquipmentSlot.SHOES,
            rarity_weights=dict(_STANDARD_WEIGHTS),
            stat_ranges=_ranges(
                N={"DEF": (1, 3), "actionSpeedMod": (-40, -10)},
                R={"DEF": (3, 5), "actionSpeedMod": (-80, -40)},
                SR={"DEF": (5, 8), "actionSpeedMod": (-130, -80)},
                SSR={"DEF": (8, 12), "actionSpeedMod": (-190, -130)},
                L={"DEF": (12, 18), "actionSpeedMod": (-260, -190)},
            ),
        ))
        self.add(ItemTemplate(
            template_id="ring_basic",
            name="Copper Ring",
            type=ItemType.EQUIPMENT,
            equip_slot=EquipmentSlot.RING,
            rarity_weights={Rarity.N: 60, Rarity.R: 28, Rarity.SR: 9, Rarity.SSR: 2, Rarity.L: 1},
            stat_ranges=_ranges(
                N={"ATK": (1, 3), "HP": (5, 10)},
                R={"ATK": (3, 6), "HP": (10, 20)},
                SR={"ATK": (6, 10), "HP": (20, 35)},
                SSR={"ATK": (10, 15), "HP": (35, 55)},
                L={"ATK": (15, 22), "HP": (55, 80)},
            ),
        ))


@functools.lru_cache(maxsize=1)
def default_item_registry() -> ItemRegistry:
    return ItemRegistry()
