from __future__ import annotations

import pytest

from roguerun.combat.rewards import CombatRewardCalculator
from roguerun.core.modifiers import ModifierTotals, default_modifier_catalog
from roguerun.core.rng import RngCursor
from roguerun.core.stats import Stats
from roguerun.encounters.difficulty import Enemy
from roguerun.encounters.enemy_registry import EnemyRegistry, EnemyTemplate
from roguerun.items.catalog import default_item_registry

STATS = Stats(atk=1, defense=1, hp_max=1, action_interval_sec=1.0, crit_chance=0.0, crit_multiplier=1.5, dodge_chance=0.0)


def _enemy(level=3, elite=False, strong=False, template="looter"):
    return Enemy(
        id=f"{template}_{level}",
        template_id=template,
        name=template,
        level=level,
        stats=STATS,
        is_elite=elite,
        is_strong_elite=strong,
    )


def _registry(drop_chance=1.0):
    looter = EnemyTemplate(
        "looter", "Looter", hp=10, atk=1, defense=1, action_interval_sec=1.0,
        gold=10, drop_chance=drop_chance, drop_table=(("sword_basic", 1),),
    )
    boss = EnemyTemplate("boss", "Boss", hp=10, atk=1, defense=1, action_interval_sec=1.0, gold=10)
    return EnemyRegistry(enemies=[looter], elites=[boss])


def test_score_and_gold_scale_with_level_and_tier():
    calc = CombatRewardCalculator()
    assert calc.score_for(_enemy(3)) == 30
    assert calc.score_for(_enemy(3, elite=True)) == 60
    assert calc.score_for(_enemy(3, strong=True)) == 90
    # 10 * (1 + 3 * 0.1) = 13
    assert calc.gold_for(_enemy(3), 10) == 13
    assert calc.gold_for(_enemy(3, elite=True), 10) == 26
    assert calc.gold_for(_enemy(3), 10, gold_multiplier=1.25) == 16


def test_gems_and_blessing_points_follow_node_tier():
    calc = CombatRewardCalculator()
    assert calc.gems_and_points([_enemy(), _enemy()]) == (0, 1)
    assert calc.gems_and_points([_enemy(elite=True)]) == (1, 2)
    assert calc.gems_and_points([_enemy(strong=True)]) == (3, 3)


def test_drop_multiplier_includes_luck_and_modifiers():
    calc = CombatRewardCalculator()
    fortune = ModifierTotals.from_modifiers(default_modifier_catalog().resolve(["fortune"]))
    assert calc.drop_multiplier(10, fortune) == pytest.approx(1.5 * 1.1)


def test_compute_rolls_one_drop_per_enemy():
    calc = CombatRewardCalculator()
    enemies = [_enemy(2), _enemy(3)]
    rewards, cursor = calc.compute(
        enemies,
        RngCursor("drops"),
        enemy_registry=_registry(),
        item_registry=default_item_registry(),
        totals=ModifierTotals(),
        luck=1,
        inventory_size=0,
        now=123,
    )
    assert rewards.score == 20 + 30
    assert rewards.gold == 12 + 13
    assert len(rewards.items) == 2
    assert all(i.template_id == "sword_basic" and i.created_at == 123 for i in rewards.items)
    # chance + template pick + rarity + ATK roll, per enemy
    assert cursor.index == 8


def test_inventory_cap_discards_but_consumes_draws():
    calc = CombatRewardCalculator()
    kwargs = dict(
        enemy_registry=_registry(),
        item_registry=default_item_registry(),
        totals=ModifierTotals(),
        luck=1,
        now=0,
    )
    full, c_full = calc.compute([_enemy(), _enemy()], RngCursor("cap"), inventory_size=49, **kwargs)
    roomy, c_roomy = calc.compute([_enemy(), _enemy()], RngCursor("cap"), inventory_size=0, **kwargs)
    assert len(full.items) == 1
    assert full.items_discarded == 1
    assert c_full == c_roomy


def test_no_drop_still_takes_chance_draw():
    calc = CombatRewardCalculator()
    rewards, cursor = calc.compute(
        [_enemy()],
        RngCursor("dry"),
        enemy_registry=_registry(drop_chance=0.0),
        item_registry=default_item_registry(),
        totals=ModifierTotals(),
        luck=0,
        inventory_size=0,
        now=0,
    )
    assert rewards.items == []
    assert cursor.index == 1
