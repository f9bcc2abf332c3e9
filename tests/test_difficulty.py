from __future__ import annotations

import pytest

from roguerun.encounters.difficulty import EliteKind, Enemy, enemy_level, scale_enemy
from roguerun.encounters.enemy_registry import EnemyRegistry, EnemyTemplate

TEMPLATE = EnemyTemplate("dummy", "Dummy", hp=47, atk=10, defense=10, action_interval_sec=2.0)


@pytest.mark.parametrize("step,level", [(0, 1), (1, 1), (2, 2), (5, 3), (9, 5), (40, 21)])
def test_enemy_level(step, level):
    assert enemy_level(step) == level


def test_level_scaling_floors():
    # step 5 -> level 3: hp 47*1.24=58.28, atk 10*1.21=12.1, def 10*1.15=11.5
    e = scale_enemy(TEMPLATE, 5)
    assert e.level == 3
    assert (e.stats.hp_max, e.stats.atk, e.stats.defense) == (58, 12, 11)
    assert not e.is_elite and not e.is_strong_elite


def test_elite_multipliers_apply_on_scaled_values():
    e = scale_enemy(TEMPLATE, 5, EliteKind.ELITE)
    # 58*1.8=104.4, 12*1.6=19.2, 11*1.3=14.3
    assert (e.stats.hp_max, e.stats.atk, e.stats.defense) == (104, 19, 14)
    assert e.is_elite and not e.is_strong_elite


def test_strong_elite_multipliers():
    e = scale_enemy(TEMPLATE, 5, EliteKind.STRONG_ELITE)
    # 58*2.6=150.8, 12*2.1=25.2, 11*1.6=17.6
    assert (e.stats.hp_max, e.stats.atk, e.stats.defense) == (150, 25, 17)
    assert e.is_strong_elite and not e.is_elite


def test_template_speed_and_chances_carry_through():
    e = scale_enemy(TEMPLATE, 12, enemy_id="dummy_1_2")
    assert e.id == "dummy_1_2"
    assert e.template_id == "dummy"
    assert e.stats.action_interval_sec == 2.0
    assert e.stats.dodge_chance == TEMPLATE.dodge_chance


def test_enemy_dict_round_trip():
    e = scale_enemy(TEMPLATE, 7, EliteKind.ELITE)
    assert Enemy.from_dict(e.to_dict()) == e


def test_registry_defaults_and_validation():
    reg = EnemyRegistry()
    assert reg.normal_pool and reg.elite_pool
    assert reg.has("slime")
    with pytest.raises(KeyError):
        reg.get("dragon")
    with pytest.raises(ValueError):
        reg.add(reg.get("slime"))
    with pytest.raises(ValueError):
        EnemyRegistry(enemies=[TEMPLATE])
    with pytest.raises(ValueError):
        EnemyTemplate("bad", "Bad", hp=10, atk=1, defense=1, action_interval_sec=1.0, dodge_chance=1.0)
