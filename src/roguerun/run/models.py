from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import Field, field_validator, model_validator

from ..combat.log import CombatLogEntry
from ..core.rng import RngCursor
from ..core.stats import Attributes, StatDeltas
from ..encounters.nodes import NodeType
from ..items.models import ItemInstance
from ..utils.document import DocumentModel


class RunStateType(str, Enum):
    INIT = "INIT"
    EXPLORING = "EXPLORING"
    COMBAT = "COMBAT"
    EVENT = "EVENT"
    BLESSING_SELECT = "BLESSING_SELECT"
    REST = "REST"
    RESOLUTION = "RESOLUTION"
    ENDED = "ENDED"


class EndReason(str, Enum):
    DEAD = "DEAD"
    QUIT = "QUIT"
    DISCONNECT = "DISCONNECT"
    TIMEOUT = "TIMEOUT"


class EnemySummary(DocumentModel):
    enemy_id: str
    name: str
    level: int = Field(ge=1)


class CombatSummary(DocumentModel):
    """Outcome of the most recent combat, kept on the run for audits."""

    victory: bool
    round_count: int = Field(ge=0)
    player_hp_remaining: int = Field(ge=0)
    score_gained: int = Field(default=0, ge=0)
    gold_dropped: int = Field(default=0, ge=0)
    gems_dropped: int = Field(default=0, ge=0)
    items_dropped: List[ItemInstance] = Field(default_factory=list)
    blessing_points_gained: int = Field(default=0, ge=0)
    enemies: List[EnemySummary] = Field(default_factory=list)
    completed_at: int


class Run(DocumentModel):
    """Snapshot of one adventure run.

    The engine never mutates a snapshot it was given; every action returns a
    fresh copy. Replaying draws 0..rng_index-1 from ``seed`` reproduces every
    outcome recorded here.
    """

    run_id: str
    character_id: str
    account_id: str

    seed: str = Field(min_length=1)
    rng_index: int = Field(default=0, ge=0)

    state: RunStateType = RunStateType.INIT
    step: int = Field(default=0, ge=0)
    started_at: int
    ended_at: Optional[int] = None
    end_reason: Optional[EndReason] = None

    current_node_type: Optional[NodeType] = None
    current_node_data: Optional[Dict[str, Any]] = None

    player_hp: int = Field(ge=0)
    player_hp_max: int = Field(ge=1)

    blessings: List[str] = Field(default_factory=list)
    curses: List[str] = Field(default_factory=list)
    blessing_points: int = Field(default=0, ge=0)
    blessing_offer_pending: bool = False

    run_inventory: List[ItemInstance] = Field(default_factory=list)

    score: int = Field(default=0, ge=0)
    gold_earned: int = Field(default=0, ge=0)
    gems_earned: int = Field(default=0, ge=0)
    enemies_killed: int = Field(default=0, ge=0)
    steps_since_rest: int = Field(default=0, ge=0)

    last_combat_summary: Optional[CombatSummary] = None

    last_activity_at: int
    disconnected_at: Optional[int] = None
    updated_at: int

    @field_validator("blessings", "curses")
    @classmethod
    def unique_ids(cls, v: List[str]) -> List[str]:
        if len(set(v)) != len(v):
            raise ValueError("modifier ids must be unique")
        return v

    @model_validator(mode="after")
    def hp_within_max(self) -> "Run":
        if self.player_hp > self.player_hp_max:
            raise ValueError(f"playerHp {self.player_hp} exceeds playerHpMax {self.player_hp_max}")
        if self.state is RunStateType.ENDED and self.end_reason is None:
            raise ValueError("ended runs need an endReason")
        return self

    @property
    def cursor(self) -> RngCursor:
        return RngCursor(self.seed, self.rng_index)

    @property
    def is_ended(self) -> bool:
        return self.state is RunStateType.ENDED


class HealingPotion(DocumentModel):
    """The character's reusable healing potion."""

    level: int = Field(default=1, ge=1)
    cooldown_until: Optional[int] = None

    def ready(self, now: int) -> bool:
        return self.cooldown_until is None or now >= self.cooldown_until


@dataclass(frozen=True)
class PlayerProfile:
    """Character-side inputs handed to every action. Owned by the caller."""

    attributes: Attributes = field(default_factory=Attributes)
    equipment: StatDeltas = field(default_factory=StatDeltas)
    character_level: int = 1
    potion: Optional[HealingPotion] = None


class RewardDelta(DocumentModel):
    """What a single action added to the run's accumulators."""

    score: int = 0
    gold: int = 0
    gems: int = 0
    blessing_points: int = 0
    items: List[ItemInstance] = Field(default_factory=list)

    @property
    def empty(self) -> bool:
        return not (self.score or self.gold or self.gems or self.blessing_points or self.items)


@dataclass
class RunReport:
    """Final tallies of an ended run, for leaderboards and quest progress."""

    run_id: str
    character_id: str
    account_id: str
    end_reason: EndReason
    final_score: int
    gold_earned: int
    gems_earned: int
    items_earned: int
    enemies_killed: int
    steps: int
    ended_at: int

    @classmethod
    def from_run(cls, run: Run) -> "RunReport":
        if run.end_reason is None or run.ended_at is None:
            raise ValueError("run has not ended")
        return cls(
            run_id=run.run_id,
            character_id=run.character_id,
            account_id=run.account_id,
            end_reason=run.end_reason,
            final_score=run.score,
            gold_earned=run.gold_earned,
            gems_earned=run.gems_earned,
            items_earned=len(run.run_inventory),
            enemies_killed=run.enemies_killed,
            steps=run.step,
            ended_at=run.ended_at,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "runId": self.run_id,
            "characterId": self.character_id,
            "accountId": self.account_id,
            "endReason": self.end_reason.value,
            "finalScore": self.final_score,
            "goldEarned": self.gold_earned,
            "gemsEarned": self.gems_earned,
            "itemsEarned": self.items_earned,
            "enemiesKilled": self.enemies_killed,
            "steps": self.steps,
            "endedAt": self.ended_at,
        }


@dataclass
class ActionResult:
    """Return value of every engine action."""

    run: Run
    log: List[CombatLogEntry] = field(default_factory=list)
    rewards: RewardDelta = field(default_factory=RewardDelta)
    rng_consumed: int = 0
    outcome: Dict[str, Any] = field(default_factory=dict)
    report: Optional[RunReport] = None
