from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

from ..config import DifficultyConfig, EngineConfig, default_config
from ..core.stats import Stats
from .enemy_registry import EnemyTemplate

logger = logging.getLogger(__name__)


class EliteKind(str, Enum):
    NONE = "NONE"
    ELITE = "ELITE"
    STRONG_ELITE = "STRONG_ELITE"


@dataclass(frozen=True)
class Enemy:
    """A concrete enemy for one fight. Never persisted beyond the node payload."""

    id: str
    template_id: str
    name: str
    level: int
    stats: Stats
    is_elite: bool = False
    is_strong_elite: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "enemyId": self.id,
            "templateId": self.template_id,
            "name": self.name,
            "level": self.level,
            "stats": self.stats.to_dict(),
            "isElite": self.is_elite,
            "isStrongElite": self.is_strong_elite,
        }

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "Enemy":
        return Enemy(
            id=str(data["enemyId"]),
            template_id=str(data["templateId"]),
            name=str(data["name"]),
            level=int(data["level"]),
            stats=Stats.from_dict(data["stats"]),
            is_elite=bool(data.get("isElite", False)),
            is_strong_elite=bool(data.get("isStrongElite", False)),
        )


def enemy_level(step: int, config: Optional[DifficultyConfig] = None) -> int:
    """Enemy level for a step: 1 + floor(step / divisor)."""
    dc = config or default_config().difficulty
    if step < 0:
        raise ValueError("step must be >= 0")
    return 1 + step // dc.enemy_level_step_divisor


def elite_multipliers(kind: EliteKind, config: Optional[DifficultyConfig] = None) -> tuple:
    dc = config or default_config().difficulty
    if kind is EliteKind.STRONG_ELITE:
        return dc.strong_elite_hp_mult, dc.strong_elite_atk_mult, dc.strong_elite_def_mult
    if kind is EliteKind.ELITE:
        return dc.elite_hp_mult, dc.elite_atk_mult, dc.elite_def_mult
    return 1.0, 1.0, 1.0


def scale_enemy(
    template: EnemyTemplate,
    step: int,
    elite_kind: EliteKind = EliteKind.NONE,
    *,
    enemy_id: Optional[str] = None,
    config: Optional[EngineConfig] = None,
) -> Enemy:
    """Scale a template to the given step.

    Level scaling is applied and floored first; elite multipliers are then
    applied on the level-scaled values and floored again. Pure.
    """
    cfg = config or default_config()
    dc = cfg.difficulty
    level = enemy_level(step, dc)

    hp = math.floor(template.hp * (1 + level * dc.hp_mult_per_level))
    atk = math.floor(template.atk * (1 + level * dc.atk_mult_per_level))
    defense = math.floor(template.defense * (1 + level * dc.def_mult_per_level))

    hp_mult, atk_mult, def_mult = elite_multipliers(elite_kind, dc)
    if elite_kind is not EliteKind.NONE:
        hp = math.floor(hp * hp_mult)
        atk = math.floor(atk * atk_mult)
        defense = math.floor(defense * def_mult)

    stats = Stats(
        atk=max(0, atk),
        defense=max(0, defense),
        hp_max=max(1, hp),
        action_interval_sec=template.action_interval_sec,
        crit_chance=template.crit_chance,
        crit_multiplier=cfg.combat.crit_multiplier,
        dodge_chance=template.dodge_chance,
    )
    enemy = Enemy(
        id=enemy_id or template.id,
        template_id=template.id,
        name=template.name,
        level=level,
        stats=stats,
        is_elite=elite_kind is EliteKind.ELITE,
        is_strong_elite=elite_kind is EliteKind.STRONG_ELITE,
    )
    logger.debug("Scaled %s for step %d (%s): %s", template.id, step, elite_kind.value, stats)
    return enemy
