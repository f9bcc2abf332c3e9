from __future__ import annotations

import pytest

from roguerun.combat.log import PLAYER_ID, CombatAction
from roguerun.combat.resolver import CombatResolver, compute_damage
from roguerun.config import CombatConfig
from roguerun.core.rng import RngCursor
from roguerun.core.stats import Stats
from roguerun.encounters.difficulty import Enemy
from roguerun.errors import InternalInvariant


def _stats(atk, defense, hp, interval, crit=0.0, dodge=0.0):
    return Stats(
        atk=atk,
        defense=defense,
        hp_max=hp,
        action_interval_sec=interval,
        crit_chance=crit,
        crit_multiplier=1.5,
        dodge_chance=dodge,
    )


def _enemy(eid, atk=5, defense=6, hp=30, interval=2.0, **kw):
    return Enemy(id=eid, template_id="t", name=eid.title(), level=1, stats=_stats(atk, defense, hp, interval, **kw))


def test_damage_formula():
    assert compute_damage(12, 6, False, 1.5) == 6
    assert compute_damage(12, 6, True, 1.5) == 12
    assert compute_damage(1, 999, False, 1.5) == 1
    assert compute_damage(1, 999, True, 1.5, min_damage=3) == 3


def test_scripted_fight_timeline():
    player = _stats(atk=12, defense=0, hp=100, interval=1.0)
    out = CombatResolver().resolve(player, 100, [[_enemy("goblin")]], RngCursor("script"))

    assert out.victory
    # Player hits for 6 at 1s..5s; the goblin hits at 2s and 4s for 5
    assert out.round_count == 5
    assert out.elapsed_ms == 5000
    assert out.player_hp_remaining == 90
    assert [(e.timestamp, e.actor_id, e.action) for e in out.log] == [
        (1000, PLAYER_ID, CombatAction.ATTACK),
        (2000, PLAYER_ID, CombatAction.ATTACK),
        (2000, "goblin", CombatAction.ATTACK),
        (3000, PLAYER_ID, CombatAction.ATTACK),
        (4000, PLAYER_ID, CombatAction.ATTACK),
        (4000, "goblin", CombatAction.ATTACK),
        (5000, PLAYER_ID, CombatAction.ATTACK),
        (5000, PLAYER_ID, CombatAction.DEATH),
    ]
    assert [e.target_hp_remaining for e in out.log if e.actor_id == PLAYER_ID][:5] == [24, 18, 12, 6, 0]
    # Seven landed attacks, each one dodge and one crit draw
    assert out.cursor.index == 14
    assert [e.id for e in out.enemies_defeated] == ["goblin"]


def test_player_targets_lowest_index_living_enemy():
    player = _stats(atk=100, defense=50, hp=100, interval=1.0)
    enemies = [_enemy("a", hp=10), _enemy("b", hp=10), _enemy("c", hp=10)]
    out = CombatResolver().resolve(player, 100, [enemies], RngCursor("order"))
    deaths = [e.target_id for e in out.log if e.action is CombatAction.DEATH]
    assert deaths == ["a", "b", "c"]


def test_defeat_keeps_hp_at_zero():
    player = _stats(atk=1, defense=0, hp=20, interval=5.0)
    brute = _enemy("brute", atk=50, defense=100, hp=500, interval=1.0)
    out = CombatResolver().resolve(player, 20, [[brute]], RngCursor("ouch"))
    assert not out.victory
    assert out.player_hp_remaining == 0
    assert out.log[-1].action is CombatAction.DEATH
    assert out.log[-1].target_id == PLAYER_ID
    assert out.enemies_defeated == []


def test_waves_carry_player_hp_over():
    player = _stats(atk=12, defense=0, hp=100, interval=1.0)
    waves = [[_enemy("w1")], [_enemy("w2")]]
    out = CombatResolver().resolve(player, 100, waves, RngCursor("waves"))
    assert out.victory
    assert out.player_hp_remaining == 80
    assert out.elapsed_ms == 10000
    assert [e.id for e in out.enemies_defeated] == ["w1", "w2"]


def test_same_cursor_same_fight():
    player = _stats(atk=14, defense=3, hp=80, interval=1.3, crit=0.3, dodge=0.2)
    waves = [[_enemy("x", crit=0.2, dodge=0.2), _enemy("y", interval=1.7, dodge=0.1)]]
    a = CombatResolver().resolve(player, 80, waves, RngCursor("repeat", 5))
    b = CombatResolver().resolve(player, 80, waves, RngCursor("repeat", 5))
    assert a.log == b.log
    assert a.cursor == b.cursor
    assert all(0 <= e.target_hp_remaining for e in a.log if e.target_hp_remaining is not None)


def test_guards():
    player = _stats(atk=12, defense=0, hp=100, interval=1.0)
    with pytest.raises(InternalInvariant):
        CombatResolver(CombatConfig(min_damage=0))
    with pytest.raises(InternalInvariant):
        CombatResolver().resolve(player, 100, [[_enemy("ghost", dodge=1.0)]], RngCursor("g"))
    with pytest.raises(InternalInvariant):
        CombatResolver().resolve(player, 0, [[_enemy("e")]], RngCursor("g"))
    with pytest.raises(InternalInvariant):
        CombatResolver().resolve(player, 100, [], RngCursor("g"))
