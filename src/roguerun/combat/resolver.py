from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from ..config import CombatConfig, default_config
from ..core.rng import RngCursor, draw_chance
from ..core.stats import Stats
from ..encounters.difficulty import Enemy
from ..errors import InternalInvariant
from .log import PLAYER_ID, CombatAction, CombatLog, CombatLogEntry

logger = logging.getLogger(__name__)

# Upper bound on ticks per fight; reaching it means the fight cannot end.
MAX_TICKS = 10_000


def compute_damage(atk: int, defense: int, crit: bool, crit_multiplier: float, min_damage: int = 1) -> int:
    """max(min_damage, floor(ATK * (crit_multiplier if crit else 1) - DEF))"""
    raw = atk * (crit_multiplier if crit else 1.0) - defense
    return max(min_damage, math.floor(raw))


@dataclass
class _Actor:
    id: str
    stats: Stats
    hp: int
    cooldown_ms: int = 0

    @property
    def alive(self) -> bool:
        return self.hp > 0


@dataclass
class CombatOutcome:
    victory: bool
    round_count: int
    player_hp_remaining: int
    elapsed_ms: int
    cursor: RngCursor
    log: List[CombatLogEntry] = field(default_factory=list)
    enemies_defeated: List[Enemy] = field(default_factory=list)


class CombatResolver:
    """Cooldown-driven auto battle between the player and waves of enemies.

    Each tick advances the clock to the earliest ready actor; every actor whose
    cooldown reaches zero then acts, the player first and enemies in roster
    order. An attack takes one dodge draw and, when it lands, one crit draw.
    """

    def __init__(self, config: Optional[CombatConfig] = None) -> None:
        self.config = config or default_config().combat
        if self.config.min_damage < 1:
            raise InternalInvariant("min_damage must be >= 1 or fights may never end")

    def resolve(
        self,
        player_stats: Stats,
        player_hp: int,
        waves: Sequence[Sequence[Enemy]],
        cursor: RngCursor,
    ) -> CombatOutcome:
        if not (0 < player_hp <= player_stats.hp_max):
            raise InternalInvariant(f"Player HP {player_hp} outside (0, {player_stats.hp_max}]")
        if not waves or any(not w for w in waves):
            raise InternalInvariant("Combat needs at least one non-empty wave")
        self._check_actor(PLAYER_ID, player_stats)

        log = CombatLog()
        player = _Actor(PLAYER_ID, player_stats, player_hp)
        clock = 0
        rounds = 0
        defeated: List[Enemy] = []

        for wave_no, wave in enumerate(waves, start=1):
            enemies = []
            for e in wave:
                self._check_actor(e.id, e.stats)
                enemies.append(_Actor(e.id, e.stats, e.stats.hp_max, e.stats.action_interval_ms))
            player.cooldown_ms = player_stats.action_interval_ms
            logger.debug("Wave %d: %s", wave_no, [e.id for e in wave])

            while player.alive and any(e.alive for e in enemies):
                if rounds >= MAX_TICKS:
                    raise InternalInvariant(f"Combat exceeded {MAX_TICKS} ticks")
                living = [player] + [e for e in enemies if e.alive]
                dt = min(a.cooldown_ms for a in living)
                clock += dt
                for a in living:
                    a.cooldown_ms -= dt

                for actor in living:
                    if actor.cooldown_ms > 0 or not actor.alive:
                        continue
                    if actor is player:
                        target = next((e for e in enemies if e.alive), None)
                    else:
                        target = player if player.alive else None
                    if target is None:
                        break
                    cursor = self._attack(actor, target, clock, cursor, log)
                    actor.cooldown_ms = actor.stats.action_interval_ms
                rounds += 1
                self._check_hp(player, enemies)

            defeated.extend(e for e, a in zip(wave, enemies) if not a.alive)
            if not player.alive:
                break

        victory = player.alive
        logger.info(
            "Combat %s after %d ticks (%dms), player hp %d/%d",
            "won" if victory else "lost",
            rounds,
            clock,
            player.hp,
            player_stats.hp_max,
        )
        return CombatOutcome(
            victory=victory,
            round_count=rounds,
            player_hp_remaining=player.hp,
            elapsed_ms=clock,
            cursor=cursor,
            log=log.entries(),
            enemies_defeated=defeated,
        )

    def _attack(self, attacker: _Actor, target: _Actor, clock: int, cursor: RngCursor, log: CombatLog) -> RngCursor:
        dodged, cursor = draw_chance(cursor, target.stats.dodge_chance)
        if dodged:
            log.add(clock, attacker.id, target.id, CombatAction.DODGE)
            return cursor
        crit, cursor = draw_chance(cursor, attacker.stats.crit_chance)
        damage = compute_damage(
            attacker.stats.atk, target.stats.defense, crit, attacker.stats.crit_multiplier, self.config.min_damage
        )
        target.hp = max(0, target.hp - damage)
        log.add(
            clock,
            attacker.id,
            target.id,
            CombatAction.CRIT if crit else CombatAction.ATTACK,
            damage=damage,
            target_hp_remaining=target.hp,
        )
        if target.hp == 0:
            log.add(clock, attacker.id, target.id, CombatAction.DEATH, target_hp_remaining=0)
        return cursor

    @staticmethod
    def _check_actor(actor_id: str, stats: Stats) -> None:
        if not (0 <= stats.dodge_chance < 1):
            raise InternalInvariant(f"{actor_id} dodge chance {stats.dodge_chance} must be in [0, 1)")
        if stats.action_interval_ms < 1:
            raise InternalInvariant(f"{actor_id} action interval must be at least 1ms")

    @staticmethod
    def _check_hp(player: _Actor, enemies: Sequence[_Actor]) -> None:
        for a in [player, *enemies]:
            if not (0 <= a.hp <= a.stats.hp_max):
                raise InternalInvariant(f"{a.id} HP {a.hp} outside [0, {a.stats.hp_max}]")
