from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Mapping, Optional

from ..config import EngineConfig, default_config
from ..utils.math import clamp
from .modifiers import ModifierTotals, RunModifier

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Attributes:
    """Permanent, player-allocated character attributes.

    Attributes:
        STR: Strength, scales ATK.
        AGI: Agility, scales action speed, crit and dodge chance.
        CON: Constitution, scales DEF and max HP.
        LUCK: Luck, scales item drop chance.
    """

    STR: int = 1
    AGI: int = 1
    CON: int = 1
    LUCK: int = 1

    def __post_init__(self) -> None:
        for name in ("STR", "AGI", "CON", "LUCK"):
            if getattr(self, name) < 0:
                raise ValueError(f"Attribute {name} must be >= 0")

    @staticmethod
    def from_dict(data: Mapping[str, Any]) -> "Attributes":
        return Attributes(
            STR=int(data.get("STR", 1)),
            AGI=int(data.get("AGI", 1)),
            CON=int(data.get("CON", 1)),
            LUCK=int(data.get("LUCK", 1)),
        )


@dataclass(frozen=True)
class StatDeltas:
    """Flat stat deltas contributed by equipment."""

    atk: int = 0
    defense: int = 0
    hp_max: int = 0
    action_interval_sec: float = 0.0
    crit_chance: float = 0.0
    dodge_chance: float = 0.0

    def __add__(self, other: "StatDeltas") -> "StatDeltas":
        return StatDeltas(
            atk=self.atk + other.atk,
            defense=self.defense + other.defense,
            hp_max=self.hp_max + other.hp_max,
            action_interval_sec=self.action_interval_sec + other.action_interval_sec,
            crit_chance=self.crit_chance + other.crit_chance,
            dodge_chance=self.dodge_chance + other.dodge_chance,
        )


@dataclass(frozen=True)
class Stats:
    """Fully derived combat statistics of an actor."""

    atk: int
    defense: int
    hp_max: int
    action_interval_sec: float
    crit_chance: float
    crit_multiplier: float
    dodge_chance: float

    @property
    def action_interval_ms(self) -> int:
        return int(round(self.action_interval_sec * 1000))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ATK": self.atk,
            "DEF": self.defense,
            "HP_MAX": self.hp_max,
            "actionIntervalSec": self.action_interval_sec,
            "critChance": self.crit_chance,
            "critMultiplier": self.crit_multiplier,
            "dodgeChance": self.dodge_chance,
        }

    @staticmethod
    def from_dict(data: Mapping[str, Any]) -> "Stats":
        return Stats(
            atk=int(data["ATK"]),
            defense=int(data["DEF"]),
            hp_max=int(data["HP_MAX"]),
            action_interval_sec=float(data["actionIntervalSec"]),
            crit_chance=float(data["critChance"]),
            crit_multiplier=float(data["critMultiplier"]),
            dodge_chance=float(data["dodgeChance"]),
        )


def compute_stats(
    attributes: Attributes,
    equipment_stats: Optional[StatDeltas] = None,
    modifiers: Iterable[RunModifier] = (),
    config: Optional[EngineConfig] = None,
) -> Stats:
    """Derive combat stats from attributes, equipment and run modifiers.

    Stacking order is fixed so every implementation rounds the same way:
      1. base values from attributes, floored
      2. plus equipment deltas and modifier flat deltas
      3. times the product of modifier multipliers, floored
      4. action interval clamped to [min, max] after all deltas
      5. crit/dodge chance capped (hard ceilings) and floored at 0

    Pure; safe to call for previews without touching run state.
    """
    cfg = config or default_config()
    sc = cfg.stats
    cc = cfg.combat
    eq = equipment_stats or StatDeltas()
    mods = ModifierTotals.from_modifiers(modifiers)

    base_atk = math.floor(sc.base_atk + attributes.STR * sc.str_to_atk)
    base_def = math.floor(sc.base_def + attributes.CON * sc.con_to_def)
    base_hp = math.floor(sc.base_hp + attributes.CON * sc.con_to_hp)

    atk = math.floor((base_atk + eq.atk + mods.delta("ATK")) * mods.multiplier("ATK"))
    defense = math.floor((base_def + eq.defense + mods.delta("DEF")) * mods.multiplier("DEF"))
    hp_max = math.floor((base_hp + eq.hp_max + mods.delta("HP_MAX")) * mods.multiplier("HP_MAX"))

    interval = (
        sc.base_action_interval_sec
        - attributes.AGI * sc.agi_to_action_speed
        + eq.action_interval_sec
        + mods.delta("action_interval_sec")
    )
    interval = round(clamp(interval, sc.action_interval_min, sc.action_interval_max), 3)

    crit = cc.base_crit_chance + attributes.AGI * cc.crit_per_agi + eq.crit_chance + mods.delta("crit_chance")
    dodge = cc.base_dodge_chance + attributes.AGI * cc.dodge_per_agi + eq.dodge_chance + mods.delta("dodge_chance")

    stats = Stats(
        atk=max(0, atk),
        defense=max(0, defense),
        hp_max=max(1, hp_max),
        action_interval_sec=interval,
        crit_chance=clamp(crit, 0.0, cc.crit_cap),
        crit_multiplier=cc.crit_multiplier,
        dodge_chance=clamp(dodge, 0.0, cc.dodge_cap),
    )
    logger.debug("Computed stats from %s => %s", attributes, stats)
    return stats


def equipment_deltas(items: Iterable[Any]) -> StatDeltas:
    """Fold the rolled stats of equipped items into a single StatDeltas.

    Each item is expected to expose ``stats`` with optional ATK/DEF/HP and
    action-speed entries (see ItemStats).
    """
    total = StatDeltas()
    for item in items:
        s = item.stats
        total = total + StatDeltas(
            atk=int(s.atk or 0),
            defense=int(s.defense or 0),
            hp_max=int(s.hp or 0),
            action_interval_sec=float(s.action_speed_mod or 0.0),
        )
    return total
