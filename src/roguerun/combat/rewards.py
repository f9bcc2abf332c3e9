from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Sequence, Tuple

from ..config import RewardConfig, default_config
from ..core.modifiers import ModifierTotals
from ..core.rng import RngCursor
from ..encounters.difficulty import Enemy
from ..encounters.enemy_registry import EnemyRegistry
from ..items.catalog import ItemRegistry
from ..items.generator import roll_drop
from ..items.models import ItemInstance

logger = logging.getLogger(__name__)


@dataclass
class CombatRewards:
    score: int = 0
    gold: int = 0
    gems: int = 0
    blessing_points: int = 0
    items: List[ItemInstance] = field(default_factory=list)
    items_discarded: int = 0


class CombatRewardCalculator:
    """Computes score, gold, gems, blessing points and drops for a won combat.

    Tier multipliers follow the enemy flags; gems and blessing points follow the
    node tier (the toughest enemy fought).
    """

    def __init__(self, config: Optional[RewardConfig] = None) -> None:
        self.config = config or default_config().rewards

    def _tier(self, enemy: Enemy) -> Tuple[float, float]:
        c = self.config
        if enemy.is_strong_elite:
            return c.strong_elite_score_mult, c.strong_elite_gold_mult
        if enemy.is_elite:
            return c.elite_score_mult, c.elite_gold_mult
        return 1.0, 1.0

    def score_for(self, enemy: Enemy) -> int:
        score_mult, _ = self._tier(enemy)
        return math.floor(self.config.score_per_enemy_level * enemy.level * score_mult)

    def gold_for(self, enemy: Enemy, template_gold: int, gold_multiplier: float = 1.0) -> int:
        _, gold_mult = self._tier(enemy)
        scale = 1 + enemy.level * self.config.gold_per_enemy_level
        return max(0, math.floor(template_gold * scale * gold_mult * gold_multiplier))

    def gems_and_points(self, enemies: Iterable[Enemy]) -> Tuple[int, int]:
        c = self.config
        enemies = list(enemies)
        if any(e.is_strong_elite for e in enemies):
            return c.strong_elite_gems, c.strong_elite_blessing_points
        if any(e.is_elite for e in enemies):
            return c.elite_gems, c.elite_blessing_points
        return 0, c.normal_blessing_points

    def drop_multiplier(self, luck: int, totals: ModifierTotals) -> float:
        return totals.drop_rate_multiplier * (1 + luck * self.config.luck_drop_bonus)

    def compute(
        self,
        enemies: Sequence[Enemy],
        cursor: RngCursor,
        *,
        enemy_registry: EnemyRegistry,
        item_registry: ItemRegistry,
        totals: ModifierTotals,
        luck: int,
        inventory_size: int,
        now: int,
    ) -> Tuple[CombatRewards, RngCursor]:
        """Rewards for the defeated ``enemies``, rolling one drop per enemy in roster order.

        Drops past the run inventory cap are discarded; their draws still count.
        """
        rewards = CombatRewards()
        drop_mult = self.drop_multiplier(luck, totals)
        space = max(0, self.config.run_inventory_max - inventory_size)
        for enemy in enemies:
            template = enemy_registry.get(enemy.template_id)
            rewards.score += self.score_for(enemy)
            rewards.gold += self.gold_for(enemy, template.gold, totals.gold_multiplier)
            item, cursor = roll_drop(
                template.drop_chance,
                template.drop_table,
                cursor,
                item_registry,
                drop_multiplier=drop_mult,
                now=now,
            )
            if item is None:
                continue
            if len(rewards.items) < space:
                rewards.items.append(item)
            else:
                rewards.items_discarded += 1
                logger.info("Run inventory full; discarding drop %s", item.item_id)
        rewards.gems, rewards.blessing_points = self.gems_and_points(enemies)
        logger.debug("Combat rewards: %s", rewards)
        return rewards, cursor
