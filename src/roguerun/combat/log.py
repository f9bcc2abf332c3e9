from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)

PLAYER_ID = "player"


class CombatAction(str, Enum):
    ATTACK = "ATTACK"
    CRIT = "CRIT"
    DODGE = "DODGE"
    DEATH = "DEATH"


@dataclass(frozen=True)
class CombatLogEntry:
    """One line of the combat log.

    ``timestamp`` is combat time in milliseconds since the fight started.
    """

    timestamp: int
    actor_id: str
    target_id: str
    action: CombatAction
    damage: Optional[int] = None
    target_hp_remaining: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "timestamp": self.timestamp,
            "actorId": self.actor_id,
            "targetId": self.target_id,
            "action": self.action.value,
        }
        if self.damage is not None:
            data["damage"] = self.damage
        if self.target_hp_remaining is not None:
            data["targetHpRemaining"] = self.target_hp_remaining
        return data


class CombatLog:
    """Ordered in-memory combat log."""

    def __init__(self) -> None:
        self._entries: List[CombatLogEntry] = []

    def add(
        self,
        timestamp: int,
        actor_id: str,
        target_id: str,
        action: CombatAction,
        damage: Optional[int] = None,
        target_hp_remaining: Optional[int] = None,
    ) -> CombatLogEntry:
        entry = CombatLogEntry(timestamp, actor_id, target_id, action, damage, target_hp_remaining)
        self._entries.append(entry)
        if action is CombatAction.DEATH:
            logger.info("[%dms] %s defeated %s", timestamp, actor_id, target_id)
        else:
            logger.debug(
                "[%dms] %s -> %s %s dmg=%s hp=%s",
                timestamp,
                actor_id,
                target_id,
                action.value,
                damage,
                target_hp_remaining,
            )
        return entry

    def entries(self) -> List[CombatLogEntry]:
        return list(self._entries)

    def to_list(self) -> List[Dict[str, Any]]:
        return [e.to_dict() for e in self._entries]

    def __len__(self) -> int:
        return len(self._entries)
