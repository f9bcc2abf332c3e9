from __future__ import annotations

import pytest

from roguerun.core.modifiers import RunModifier, default_modifier_catalog
from roguerun.core.stats import Attributes, StatDeltas, Stats, compute_stats, equipment_deltas
from roguerun.items.models import ItemInstance, ItemSource, ItemStats, ItemType, Rarity


def _mods(*ids):
    return default_modifier_catalog().resolve(ids)


def test_all_ones_scenario():
    s = compute_stats(Attributes(STR=1, AGI=1, CON=1, LUCK=1))
    assert s.atk == 12
    assert s.defense == 6
    assert s.hp_max == 120
    assert s.action_interval_sec == pytest.approx(2.98)
    assert s.crit_chance == pytest.approx(0.053)
    assert s.dodge_chance == pytest.approx(0.032)
    assert s.crit_multiplier == 1.5
    assert s.action_interval_ms == 2980


def test_base_values_are_floored():
    # 10 + 3 * 2.5 = 17.5 -> 17 ; 5 + 3 * 1.5 = 9.5 -> 9
    s = compute_stats(Attributes(STR=3, CON=3))
    assert s.atk == 17
    assert s.defense == 9
    assert s.hp_max == 160


def test_flat_deltas_apply_before_multipliers():
    assert compute_stats(Attributes(), modifiers=_mods("might_of_the_bear")).atk == 18
    # floor(12 * 1.15) = 13
    assert compute_stats(Attributes(), modifiers=_mods("berserker")).atk == 13
    # floor((12 + 6) * 1.15) = floor(20.7) = 20
    assert compute_stats(Attributes(), modifiers=_mods("berserker", "might_of_the_bear")).atk == 20


def test_equipment_and_modifier_deltas_stack():
    eq = StatDeltas(atk=5, defense=2, hp_max=10)
    s = compute_stats(Attributes(), eq, _mods("iron_skin", "frailty"))
    assert s.atk == 17
    assert s.defense == 12
    assert s.hp_max == 110


def test_interval_clamped_after_all_deltas():
    s = compute_stats(Attributes(AGI=200))
    assert s.action_interval_sec == 0.5
    slow = StatDeltas(action_interval_sec=10.0)
    assert compute_stats(Attributes(), slow).action_interval_sec == 5.0
    # swift_wind alone stays inside the bounds: 2.98 - 0.25
    assert compute_stats(Attributes(), modifiers=_mods("swift_wind")).action_interval_sec == pytest.approx(2.73)


def test_crit_and_dodge_capped():
    s = compute_stats(Attributes(AGI=200))
    assert s.crit_chance == pytest.approx(0.35)
    assert s.dodge_chance == pytest.approx(0.25)


def test_stat_floors():
    crushing = RunModifier(
        id="crush", name="Crush", is_blessing=False, stat_deltas={"ATK": -100, "DEF": -100, "HP_MAX": -1000}
    )
    s = compute_stats(Attributes(), modifiers=[crushing])
    assert s.atk == 0
    assert s.defense == 0
    assert s.hp_max == 1


def test_negative_attribute_rejected():
    with pytest.raises(ValueError):
        Attributes(STR=-1)


def test_stats_dict_round_trip():
    s = compute_stats(Attributes(STR=4, AGI=2))
    assert Stats.from_dict(s.to_dict()) == s


def test_equipment_deltas_fold_item_stats():
    def item(stats):
        return ItemInstance(
            item_id="i",
            template_id="t",
            type=ItemType.EQUIPMENT,
            rarity=Rarity.N,
            stats=stats,
            source=ItemSource.DROP,
            created_at=0,
        )

    deltas = equipment_deltas([
        item(ItemStats(atk=7)),
        item(ItemStats(defense=3, hp=15)),
        item(ItemStats(action_speed_mod=-0.05)),
    ])
    assert deltas.atk == 7
    assert deltas.defense == 3
    assert deltas.hp_max == 15
    assert deltas.action_interval_sec == pytest.approx(-0.05)
