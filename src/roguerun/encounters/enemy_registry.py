from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple


@dataclass(frozen=True)
class EnemyTemplate:
    """Level-1 enemy archetype.

    Stats here are the unscaled baseline; the difficulty scaler turns a template
    into a concrete Enemy for a given step. ``drop_table`` holds
    (item template id, weight) pairs rolled when the enemy drops loot.
    """

    id: str
    name: str
    hp: int
    atk: int
    defense: int
    action_interval_sec: float
    crit_chance: float = 0.05
    dodge_chance: float = 0.02
    gold: int = 5
    drop_chance: float = 0.10
    drop_table: Tuple[Tuple[str, int], ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        if self.hp < 1:
            raise ValueError(f"Enemy '{self.id}' must have hp >= 1")
        if self.atk < 0 or self.defense < 0:
            raise ValueError(f"Enemy '{self.id}' has negative ATK/DEF")
        if self.action_interval_sec <= 0:
            raise ValueError(f"Enemy '{self.id}' must have a positive action interval")
        if not (0 <= self.dodge_chance < 1):
            raise ValueError(f"Enemy '{self.id}' dodge chance must be in [0, 1)")
        if not (0 <= self.drop_chance <= 1):
            raise ValueError(f"Enemy '{self.id}' drop chance must be in [0, 1]")


class EnemyRegistry:
    """In-memory registry of enemy archetypes.

    Normal and elite pools are kept apart; pool order is part of the replay
    contract since templates are picked by index.
    """

    def __init__(
        self,
        enemies: Optional[Iterable[EnemyTemplate]] = None,
        elites: Optional[Iterable[EnemyTemplate]] = None,
    ) -> None:
        self._enemies: Dict[str, EnemyTemplate] = {}
        self._normal: List[str] = []
        self._elite: List[str] = []
        if enemies is None and elites is None:
            self._bootstrap_defaults()
        else:
            for e in enemies or ():
                self.add(e)
            for e in elites or ():
                self.add(e, elite=True)
        if not self._normal or not self._elite:
            raise ValueError("Enemy registry needs at least one normal and one elite template")

    def add(self, enemy: EnemyTemplate, elite: bool = False) -> None:
        if enemy.id in self._enemies:
            raise ValueError(f"Duplicate enemy id: {enemy.id}")
        self._enemies[enemy.id] = enemy
        (self._elite if elite else self._normal).append(enemy.id)

    def get(self, enemy_id: str) -> EnemyTemplate:
        try:
            return self._enemies[enemy_id]
        except KeyError as e:
            raise KeyError(f"Unknown enemy id: {enemy_id}") from e

    def has(self, enemy_id: str) -> bool:
        return enemy_id in self._enemies

    @property
    def normal_pool(self) -> List[EnemyTemplate]:
        return [self._enemies[i] for i in self._normal]

    @property
    def elite_pool(self) -> List[EnemyTemplate]:
        return [self._enemies[i] for i in self._elite]

    def _bootstrap_defaults(self) -> None:
        common = (("sword_basic", 3), ("helmet_basic", 3), ("ring_basic", 1))
        armor = (("armor_basic", 2), ("boots_basic", 2), ("helmet_basic", 1))
        self.add(EnemyTemplate("slime", "Slime", hp=40, atk=8, defense=2, action_interval_sec=3.2,
                               gold=4, drop_chance=0.08, drop_table=common))
        self.add(EnemyTemplate("rat", "Cave Rat", hp=32, atk=9, defense=1, action_interval_sec=2.4,
                               dodge_chance=0.05, gold=3, drop_chance=0.06, drop_table=common))
        self.add(EnemyTemplate("skeleton", "Skeleton", hp=50, atk=11, defense=4, action_interval_sec=3.0,
                               gold=6, drop_chance=0.10, drop_table=common + armor))
        self.add(EnemyTemplate("zombie", "Zombie", hp=65, atk=10, defense=5, action_interval_sec=3.8,
                               crit_chance=0.02, dodge_chance=0.0, gold=6, drop_chance=0.10, drop_table=armor))
        self.add(EnemyTemplate("bandit", "Bandit", hp=45, atk=13, defense=3, action_interval_sec=2.6,
                               crit_chance=0.10, dodge_chance=0.04, gold=10, drop_chance=0.12,
                               drop_table=common + armor))
        # Elites
        self.add(EnemyTemplate("ogre", "Ogre Brute", hp=90, atk=16, defense=7, action_interval_sec=3.6,
                               crit_chance=0.08, dodge_chance=0.0, gold=20, drop_chance=0.35,
                               drop_table=armor + common), elite=True)
        self.add(EnemyTemplate("wraith", "Wraith", hp=70, atk=18, defense=4, action_interval_sec=2.5,
                               crit_chance=0.12, dodge_chance=0.08, gold=22, drop_chance=0.35,
                               drop_table=common + armor), elite=True)
        self.add(EnemyTemplate("dread_knight", "Dread Knight", hp=110, atk=17, defense=10,
                               action_interval_sec=3.2, gold=28, drop_chance=0.45,
                               drop_table=(("sword_basic", 2), ("armor_basic", 2), ("helmet_basic", 1))),
                 elite=True)
