from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Optional

from pydantic import Field

from ..utils.document import DocumentModel


class Rarity(str, Enum):
    N = "N"
    R = "R"
    SR = "SR"
    SSR = "SSR"
    L = "L"


# Draw order for rarity rolls; part of the replay contract.
RARITY_ORDER = (Rarity.N, Rarity.R, Rarity.SR, Rarity.SSR, Rarity.L)


class ItemType(str, Enum):
    EQUIPMENT = "EQUIPMENT"


class ItemSource(str, Enum):
    DROP = "DROP"
    SHOP = "SHOP"
    EVENT = "EVENT"


class EquipmentSlot(str, Enum):
    HEAD = "HEAD"
    BODY = "BODY"
    SHOES = "SHOES"
    GLOVES = "GLOVES"
    LEFT_HAND = "LEFT_HAND"
    RIGHT_HAND = "RIGHT_HAND"
    NECKLACE = "NECKLACE"
    RING = "RING"


@dataclass(frozen=True)
class StatRange:
    min: int
    max: int

    def __post_init__(self) -> None:
        if self.max < self.min:
            raise ValueError(f"StatRange max ({self.max}) must be >= min ({self.min})")

    @property
    def span(self) -> int:
        return self.max - self.min + 1


# Stat keys in the fixed order they are rolled.
ITEM_STAT_KEYS = ("ATK", "DEF", "HP", "actionSpeedMod")


@dataclass(frozen=True)
class ItemTemplate:
    """Static item definition.

    stat_ranges maps rarity -> stat key -> range. ``actionSpeedMod`` ranges are
    expressed in milliseconds (negative = faster).
    """

    template_id: str
    name: str
    type: ItemType = ItemType.EQUIPMENT
    equip_slot: Optional[EquipmentSlot] = None
    rarity_weights: Dict[Rarity, int] = field(default_factory=dict)
    stat_ranges: Dict[Rarity, Dict[str, StatRange]] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if sum(self.rarity_weights.get(r, 0) for r in RARITY_ORDER) <= 0:
            raise ValueError(f"Item template '{self.template_id}' has no positive rarity weight")
        for rarity, ranges in self.stat_ranges.items():
            unknown = set(ranges) - set(ITEM_STAT_KEYS)
            if unknown:
                raise ValueError(f"Item template '{self.template_id}' has unknown stat keys {sorted(unknown)}")


class ItemStats(DocumentModel):
    """Rolled item stats."""

    atk: Optional[int] = Field(default=None, alias="ATK")
    defense: Optional[int] = Field(default=None, alias="DEF")
    hp: Optional[int] = Field(default=None, alias="HP")
    action_speed_mod: Optional[float] = Field(default=None, alias="actionSpeedMod")


class ItemInstance(DocumentModel):
    """A concrete item picked up during a run."""

    item_id: str
    template_id: str
    type: ItemType
    equip_slot: Optional[EquipmentSlot] = None
    rarity: Rarity
    stats: ItemStats
    source: ItemSource
    created_at: int


__all__ = [
    "EquipmentSlot",
    "ITEM_STAT_KEYS",
    "ItemInstance",
    "ItemSource",
    "ItemStats",
    "ItemTemplate",
    "ItemType",
    "RARITY_ORDER",
    "Rarity",
    "StatRange",
]
