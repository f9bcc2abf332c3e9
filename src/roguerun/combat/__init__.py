"""
Combat package.

Contains:
- Cooldown-driven combat resolution across waves with a strict damage floor.
- Combat logging of attacks, crits, dodges and deaths.
- Reward calculation and item drops for won fights.
"""

from .log import CombatAction, CombatLog, CombatLogEntry
from .resolver import CombatOutcome, CombatResolver, compute_damage
from .rewards import CombatRewardCalculator, CombatRewards

__all__ = [
    "CombatAction",
    "CombatLog",
    "CombatLogEntry",
    "CombatOutcome",
    "CombatResolver",
    "CombatRewardCalculator",
    "CombatRewards",
    "compute_damage",
]
