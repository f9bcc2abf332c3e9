from .engine import RunEngine
from .models import (
    ActionResult,
    CombatSummary,
    EndReason,
    HealingPotion,
    PlayerProfile,
    RewardDelta,
    Run,
    RunReport,
    RunStateType,
)
from .state_machine import ALLOWED_TRANSITIONS

__all__ = [
    "ALLOWED_TRANSITIONS",
    "ActionResult",
    "CombatSummary",
    "EndReason",
    "HealingPotion",
    "PlayerProfile",
    "RewardDelta",
    "Run",
    "RunEngine",
    "RunReport",
    "RunStateType",
]
